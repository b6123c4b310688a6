"""Sales reports (JSON)."""
from flask import Blueprint, jsonify

from multipos.database import get_session
from multipos.exceptions import ValidationError
from multipos.services import report_service
from multipos.utils.request_helpers import arg_date, arg_int

reports_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


def _period():
    start, end = arg_date('start'), arg_date('end')
    if start and end and start > end:
        raise ValidationError('La fecha inicial no puede ser posterior a la final')
    return start, end


@reports_bp.route('/summary', methods=['GET'])
def summary():
    db_session = get_session()
    start, end = _period()
    return jsonify(report_service.get_sales_summary(db_session, start, end))


@reports_bp.route('/top-products', methods=['GET'])
def top_products():
    db_session = get_session()
    start, end = _period()
    products = report_service.get_top_products(db_session, start, end, limit=arg_int('limit', default=10, maximum=100))
    return jsonify({'products': products})


@reports_bp.route('/daily', methods=['GET'])
def daily():
    db_session = get_session()
    start, end = _period()
    return jsonify({'days': report_service.get_daily_totals(db_session, start, end)})
