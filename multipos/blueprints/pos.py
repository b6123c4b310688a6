"""
POS blueprint: the cashier's cart and tenders.

The checkout session (cart lines, discounts, tenders) lives in the Flask
session cookie and is only written to the database by /api/pos/checkout.
"""
from flask import Blueprint, jsonify, session, current_app

from multipos.database import get_session
from multipos.exceptions import BusinessLogicError, NotFoundError, InsufficientStockError, ValidationError
from multipos.services import catalog_service
from multipos.services.checkout import CheckoutSession
from multipos.services.sales_service import complete_checkout
from multipos.services.store_config_service import get_tax_rate
from multipos.utils.request_helpers import get_json_body

pos_bp = Blueprint('pos', __name__, url_prefix='/api/pos')

SESSION_KEY = 'pos_checkout'


def _load_checkout(db_session) -> CheckoutSession:
    """Restore the checkout from the session, always at the current tax rate."""
    return CheckoutSession.from_dict(session.get(SESSION_KEY), tax_rate=get_tax_rate(db_session))


def _save_checkout(checkout: CheckoutSession) -> None:
    session[SESSION_KEY] = checkout.to_dict()
    session.modified = True


def _checkout_response(checkout: CheckoutSession, status: int = 200):
    return jsonify(checkout.to_dict()), status


@pos_bp.route('/cart', methods=['GET'])
def get_cart():
    db_session = get_session()
    return _checkout_response(_load_checkout(db_session))


@pos_bp.route('/cart', methods=['DELETE'])
def clear_cart():
    """Drop the cart and every tender."""
    db_session = get_session()
    checkout = _load_checkout(db_session)
    checkout.reset()
    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/cart/items', methods=['POST'])
def add_item():
    """Add a product (merging with an existing line for the same product)."""
    db_session = get_session()
    data = get_json_body()
    if not data.get('product_id'):
        raise ValidationError('product_id es requerido')
    product = catalog_service.get_product(db_session, data['product_id'])
    if not product.active:
        raise BusinessLogicError(f'El producto "{product.name}" no está activo')
    if product.stock <= 0:
        raise BusinessLogicError(f'El producto "{product.name}" no tiene stock disponible')

    checkout = _load_checkout(db_session)
    line = checkout.cart.add_item(product, data.get('quantity', 1))
    if line.quantity > product.stock:
        # Not saved: the stored cart keeps its previous quantity
        raise InsufficientStockError(product.name, line.quantity, product.stock)

    _save_checkout(checkout)
    return _checkout_response(checkout, 201)


@pos_bp.route('/cart/items/<int:product_id>', methods=['PATCH', 'PUT'])
def update_item(product_id: int):
    """Change a line's quantity and/or discount percent."""
    db_session = get_session()
    data = get_json_body()
    checkout = _load_checkout(db_session)
    if not checkout.cart.get_line(product_id):
        raise NotFoundError(f'El producto {product_id} no está en el carrito')

    if 'quantity' in data:
        checkout.cart.update_quantity(product_id, data['quantity'])
    if 'discount' in data:
        checkout.cart.update_item_discount(product_id, data['discount'])

    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/cart/items/<int:product_id>', methods=['DELETE'])
def remove_item(product_id: int):
    db_session = get_session()
    checkout = _load_checkout(db_session)
    if not checkout.cart.remove_item(product_id):
        raise NotFoundError(f'El producto {product_id} no está en el carrito')
    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/cart/discount', methods=['PUT'])
def set_global_discount():
    db_session = get_session()
    data = get_json_body()
    checkout = _load_checkout(db_session)
    checkout.cart.update_global_discount(data.get('discount', 0))
    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/tenders', methods=['POST'])
def add_tender():
    """Add a tender; method and amount default to the payment input."""
    db_session = get_session()
    data = get_json_body(required=False)
    checkout = _load_checkout(db_session)
    checkout.add_tender(data.get('method'), data.get('amount'), data.get('reference'))
    _save_checkout(checkout)
    return _checkout_response(checkout, 201)


@pos_bp.route('/tenders/<int:tender_id>', methods=['DELETE'])
def remove_tender(tender_id: int):
    db_session = get_session()
    checkout = _load_checkout(db_session)
    checkout.remove_tender(tender_id)
    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/payment-input', methods=['PUT'])
def set_payment_input():
    """Selected method and the amount typed by the cashier."""
    db_session = get_session()
    data = get_json_body()
    checkout = _load_checkout(db_session)
    if 'method' in data:
        checkout.select_method(data['method'])
    if 'amount' in data:
        checkout.set_input(data['amount'])
    _save_checkout(checkout)
    return _checkout_response(checkout)


@pos_bp.route('/checkout', methods=['POST'])
def checkout():
    """
    Commit the sale. On any failure the cart and tenders stay as they were
    so the cashier can fix the problem and retry.
    """
    db_session = get_session()
    data = get_json_body(required=False)
    pos_checkout = _load_checkout(db_session)

    sale = complete_checkout(
        db_session,
        pos_checkout,
        customer_id=data.get('customer_id'),
        currency=data.get('customer_currency'),
        language=data.get('customer_language'),
        exchange_rate=data.get('exchange_rate')
    )
    _save_checkout(pos_checkout)

    current_app.logger.info(f"POS sale {sale.sale_number} completed")
    return jsonify({'sale': sale.to_dict(), 'change': str(sale.change_amount)}), 201
