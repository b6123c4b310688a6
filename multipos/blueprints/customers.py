"""Customers blueprint (JSON)."""
from flask import Blueprint, jsonify, request

from multipos.database import get_session
from multipos.services import customer_service
from multipos.services.sales_service import list_sales
from multipos.utils.request_helpers import get_json_body, arg_bool, arg_int

customers_bp = Blueprint('customers', __name__, url_prefix='/api/customers')


@customers_bp.route('', methods=['GET'])
def list_customers():
    session = get_session()
    customers = customer_service.search_customers(
        session,
        query=request.args.get('q', ''),
        include_inactive=arg_bool('include_inactive'),
        limit=arg_int('limit', default=50)
    )
    return jsonify({'customers': [c.to_dict() for c in customers]})


@customers_bp.route('/<int:customer_id>', methods=['GET'])
def get_customer(customer_id: int):
    session = get_session()
    customer = customer_service.get_customer(session, customer_id)
    data = customer.to_dict()
    data['recent_sales'] = [s.to_dict(include_items=False) for s in list_sales(session, customer_id=customer.id, limit=10)]
    return jsonify({'customer': data})


@customers_bp.route('', methods=['POST'])
def create_customer():
    session = get_session()
    customer = customer_service.create_customer(session, get_json_body())
    return jsonify({'customer': customer.to_dict()}), 201


@customers_bp.route('/<int:customer_id>', methods=['PUT', 'PATCH'])
def update_customer(customer_id: int):
    session = get_session()
    customer = customer_service.update_customer(session, customer_id, get_json_body())
    return jsonify({'customer': customer.to_dict()})


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
def delete_customer(customer_id: int):
    """Soft delete: past sales keep their customer."""
    session = get_session()
    customer_service.deactivate_customer(session, customer_id)
    return '', 204


@customers_bp.route('/<int:customer_id>/credit-payment', methods=['POST'])
def credit_payment(customer_id: int):
    """Customer pays down their store-credit balance."""
    session = get_session()
    data = get_json_body()
    customer = customer_service.register_credit_payment(session, customer_id, data.get('amount'))
    return jsonify({'customer': customer.to_dict()})
