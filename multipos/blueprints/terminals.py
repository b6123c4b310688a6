"""Payment terminal endpoints: Mercado Pago OAuth linking and Point charges."""
import secrets

from flask import Blueprint, jsonify, request, session

from multipos.database import get_session
from multipos.services import terminal_service
from multipos.utils.request_helpers import get_json_body

terminals_bp = Blueprint('terminals', __name__, url_prefix='/api')

OAUTH_STATE_KEY = 'mp_oauth_state'


# =====================================================
# OAUTH
# =====================================================

@terminals_bp.route('/oauth/mercadopago/connect', methods=['GET'])
def oauth_connect():
    """Authorization URL the admin opens to link the account."""
    # CSRF state token, checked against the callback
    state = secrets.token_urlsafe(32)
    result = terminal_service.start_oauth(state)
    session[OAUTH_STATE_KEY] = state
    return jsonify(result)


@terminals_bp.route('/oauth/mercadopago/callback', methods=['GET'])
def oauth_callback():
    db_session = get_session()
    connection = terminal_service.complete_oauth(
        db_session,
        request.args.get('code'),
        request.args.get('state'),
        session.pop(OAUTH_STATE_KEY, None)
    )
    return jsonify({'success': True, 'connection': connection.to_dict()})


# =====================================================
# CONNECTION
# =====================================================

@terminals_bp.route('/terminals/connection', methods=['GET'])
def get_connection():
    db_session = get_session()
    connection = terminal_service.get_connection(db_session)
    return jsonify({
        'connected': bool(connection and connection.status == 'connected'),
        'connection': connection.to_dict() if connection else None,
    })


@terminals_bp.route('/terminals/connection', methods=['PATCH'])
def update_connection():
    """Select the default Point device."""
    db_session = get_session()
    data = get_json_body()
    connection = terminal_service.set_default_device(db_session, data.get('device_id'))
    return jsonify({'connection': connection.to_dict()})


@terminals_bp.route('/terminals/connection', methods=['DELETE'])
def delete_connection():
    db_session = get_session()
    terminal_service.disconnect(db_session)
    return '', 204


# =====================================================
# DEVICES AND PAYMENTS
# =====================================================

@terminals_bp.route('/terminals/devices', methods=['GET'])
def list_devices():
    db_session = get_session()
    return jsonify({'devices': terminal_service.list_devices(db_session)})


@terminals_bp.route('/terminals/payment-intent', methods=['POST'])
def create_payment_intent():
    db_session = get_session()
    data = get_json_body()
    result = terminal_service.create_payment_intent(
        db_session,
        data.get('amount'),
        device_id=data.get('device_id'),
        external_reference=data.get('external_reference')
    )
    return jsonify(result), 201


@terminals_bp.route('/terminals/payment-status/<intent_id>', methods=['GET'])
def payment_status(intent_id: str):
    db_session = get_session()
    return jsonify(terminal_service.get_payment_status(db_session, intent_id))
