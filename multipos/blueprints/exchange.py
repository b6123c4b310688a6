"""Exchange rate endpoints."""
from flask import Blueprint, jsonify, request

from multipos.services import exchange_rate_service

exchange_bp = Blueprint('exchange', __name__, url_prefix='/api')


@exchange_bp.route('/exchange-rate', methods=['GET'])
def exchange_rate():
    """
    Single rate, optionally converting an amount.

    Query: from, to, amount (optional)
    """
    from_currency = request.args.get('from', 'MXN')
    to_currency = request.args.get('to', 'USD')
    amount = request.args.get('amount')

    if amount not in (None, ''):
        result = exchange_rate_service.convert(amount, from_currency, to_currency)
        return jsonify({
            'from': result['from'],
            'to': result['to'],
            'rate': str(result['rate']),
            'amount': str(result['amount']),
            'converted': str(result['converted']),
        })

    rate = exchange_rate_service.get_rate(from_currency, to_currency)
    return jsonify({
        'from': exchange_rate_service.normalize_currency(from_currency),
        'to': exchange_rate_service.normalize_currency(to_currency),
        'rate': str(rate),
    })


@exchange_bp.route('/exchange-rates', methods=['GET'])
def exchange_rates():
    data = exchange_rate_service.get_exchange_rates(request.args.get('base', 'MXN'))
    return jsonify({
        'base': data['base'],
        'rates': {code: str(value) for code, value in data['rates'].items()},
        'timestamp': data['timestamp'],
        'source': data['source'],
    })


@exchange_bp.route('/exchange-rates/refresh', methods=['POST'])
def refresh_exchange_rates():
    return jsonify({'invalidated': exchange_rate_service.refresh_exchange_rates()})
