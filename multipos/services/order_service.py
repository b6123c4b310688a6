"""
Digital menu orders.

Guests order from the shared menu without an account. Items are checked
against the live catalog and priced from it; the order is a kitchen ticket
and does not move stock (the sale rung up at the POS does).
"""
import logging
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from multipos.exceptions import BusinessLogicError, InsufficientStockError, NotFoundError, ValidationError
from multipos.models import Order, OrderItem, OrderStatus, Product
from multipos.services.exchange_rate_service import normalize_currency
from multipos.services.sales_service import parse_positive_int
from multipos.services.store_config_service import get_store_config
from multipos.utils.money import round2

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500

# Allowed status transitions
TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.CANCELLED),
    OrderStatus.READY: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}


def create_order(session, data: Dict[str, Any]) -> Order:
    """
    Place an order from the digital menu.

    Payload:
        items: [{product_id, quantity}]  (repeated products are merged)
        currency, notes, customer_name, table_number: optional

    Prices come from the catalog, not from the payload.

    Raises:
        ValidationError: no items, bad quantity, bad currency, notes too long
        NotFoundError: unknown product
        BusinessLogicError: product inactive or not on the digital menu
        InsufficientStockError: more units than in stock
    """
    items = data.get('items') or []
    if not isinstance(items, list) or not items:
        raise ValidationError('Se requieren productos para crear un pedido')

    quantities: Dict[int, int] = {}
    for item in items:
        if not isinstance(item, dict) or item.get('product_id') in (None, ''):
            raise ValidationError('Cada producto requiere product_id')
        product_id = parse_positive_int(item['product_id'], 'product_id')
        quantity = parse_positive_int(item.get('quantity', 1), 'cantidad')
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    products = {p.id: p for p in session.query(Product).filter(Product.id.in_(list(quantities))).all()}
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if not product:
            raise NotFoundError(f'Producto {product_id} no encontrado')
        _check_orderable(product, quantity)

    currency = data.get('currency') or get_store_config(session).default_currency
    currency = normalize_currency(currency)

    notes = (data.get('notes') or '').strip() or None
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f'Las notas no pueden exceder {MAX_NOTES_LENGTH} caracteres')

    try:
        now = datetime.now()
        order = Order(
            order_number=f'TMP-{uuid.uuid4().hex[:16]}',
            customer_name=(data.get('customer_name') or '').strip() or None,
            table_number=str(data.get('table_number') or '').strip() or None,
            notes=notes,
            currency=currency,
            total=Decimal('0.00'),
            status=OrderStatus.PENDING.value,
            created_at=now
        )
        session.add(order)
        session.flush()
        order.order_number = generate_order_number(order.id, now)

        total = Decimal('0.00')
        for product_id, quantity in quantities.items():
            product = products[product_id]
            subtotal = round2(product.price * quantity)
            session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                subtotal=subtotal
            ))
            total += subtotal
        order.total = total

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDER] Placed {order.order_number} total={order.total} {order.currency}")
    return order


def get_order(session, order_id: int) -> Order:
    order = session.query(Order).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError(f'Pedido {order_id} no encontrado')
    return order


def list_orders(session, status: Optional[str] = None, start: Optional[date] = None,
                end: Optional[date] = None, limit: int = 100) -> List[Order]:
    """Orders newest first."""
    query = session.query(Order)
    if status:
        query = query.filter(Order.status == _parse_status(status).value)
    if start:
        query = query.filter(Order.created_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(Order.created_at <= datetime.combine(end, time.max))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def update_order_status(session, order_id: int, status: str) -> Order:
    """Move an order along pending -> preparing -> ready -> delivered, or cancel it."""
    order = get_order(session, order_id)
    new_status = _parse_status(status)
    current = OrderStatus(order.status)
    if new_status not in TRANSITIONS[current]:
        raise BusinessLogicError(f'El pedido {order.order_number} no puede pasar de {current.value} a {new_status.value}')

    order.status = new_status.value
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[ORDER] {order.order_number} -> {new_status.value}")
    return order


def generate_order_number(order_id: int, when: Optional[datetime] = None) -> str:
    """P-YYYYMMDD-000123"""
    when = when or datetime.now()
    return f"P-{when.strftime('%Y%m%d')}-{order_id:06d}"


def _check_orderable(product: Product, quantity: int) -> None:
    if not product.active:
        raise BusinessLogicError(f'El producto "{product.name}" no está disponible')
    category = product.category
    if category is not None and (not category.active or not category.available_in_digital_menu):
        raise BusinessLogicError(f'El producto "{product.name}" no está en el menú digital')
    if product.stock < quantity:
        raise InsufficientStockError(product.name, quantity, product.stock)


def _parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(str(value or '').strip().lower())
    except ValueError:
        raise ValidationError(f'Estado de pedido inválido: {value}')
