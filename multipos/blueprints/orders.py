"""Digital menu orders blueprint (JSON)."""
from flask import Blueprint, jsonify, request

from multipos.database import get_session
from multipos.services import order_service
from multipos.utils.request_helpers import get_json_body, arg_date, arg_int

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['POST'])
def create_order():
    """
    Public endpoint used by the shared digital menu.

    Body: {items: [{product_id, quantity}], currency, notes, customer_name, table_number}
    """
    db_session = get_session()
    order = order_service.create_order(db_session, get_json_body())
    return jsonify({
        'success': True,
        'order': order.to_dict(),
        'message': 'Pedido creado exitosamente',
    }), 201


@orders_bp.route('', methods=['GET'])
def list_orders():
    db_session = get_session()
    orders = order_service.list_orders(
        db_session,
        status=request.args.get('status') or None,
        start=arg_date('start'),
        end=arg_date('end'),
        limit=arg_int('limit', default=100)
    )
    return jsonify({'orders': [o.to_dict(include_items=False) for o in orders]})


@orders_bp.route('/<int:order_id>', methods=['GET'])
def get_order(order_id: int):
    db_session = get_session()
    return jsonify({'order': order_service.get_order(db_session, order_id).to_dict()})


@orders_bp.route('/<int:order_id>/status', methods=['PATCH', 'PUT'])
def update_status(order_id: int):
    db_session = get_session()
    data = get_json_body()
    order = order_service.update_order_status(db_session, order_id, data.get('status'))
    return jsonify({'order': order.to_dict()})
