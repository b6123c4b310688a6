"""
Sales service with transactional logic.
Turns a checkout session into a persisted sale: header, items, payments,
stock decrement, customer credit and loyalty, all in one transaction.
"""
import logging
import uuid
from decimal import Decimal
from datetime import datetime, date, time
from typing import List, Dict, Optional, Any

from sqlalchemy import update

from multipos.blueprints.metrics import record_sale
from multipos.models import Product, Customer, Sale, SaleItem, SalePayment, SaleStatus
from multipos.exceptions import (
    PosError, BusinessLogicError, NotFoundError, ValidationError, InsufficientStockError
)
from multipos.services.cart import Cart
from multipos.services.checkout import CheckoutSession, PaymentMethod, Tender
from multipos.utils.money import round2, to_decimal

logger = logging.getLogger(__name__)

LOYALTY_UNIT = Decimal('10')


def complete_checkout(session, checkout: CheckoutSession, customer_id: Optional[int] = None,
                      currency: Optional[str] = None, language: Optional[str] = None,
                      exchange_rate=None) -> Sale:
    """
    Commit the checkout as a sale.

    Everything happens in a single transaction: if any line cannot be
    fulfilled (conditional stock decrement affects no row) the whole sale is
    rolled back. The checkout is cleared only after the commit succeeds;
    on failure it is left exactly as it was.

    Raises:
        ValidationError: empty cart, credit without customer, bad exchange rate
        BusinessLogicError: tenders don't cover the total, credit limit exceeded
        NotFoundError: product or customer missing
        InsufficientStockError: a product ran out
    """
    # Work on a copy so implicit-tender synthesis does not leak on failure
    pending = CheckoutSession.from_dict(checkout.to_dict(), tax_rate=checkout.cart.tax_rate)
    tenders = pending.finalize_tenders()
    cart = pending.cart

    rate = _parse_exchange_rate(exchange_rate)

    try:
        # 1. Fetch products and validate in batch
        product_ids = [line.product_id for line in cart.lines]
        products = session.query(Product).filter(Product.id.in_(product_ids)).all()
        if len(products) != len(product_ids):
            raise NotFoundError('Uno o más productos no fueron encontrados')

        products_dict = {p.id: p for p in products}
        for p in products:
            if not p.active:
                raise BusinessLogicError(f'El producto "{p.name}" no está activo')

        # 2. Customer and credit
        customer = None
        if customer_id:
            customer = session.query(Customer).filter_by(id=customer_id).first()
            if not customer or not customer.active:
                raise NotFoundError(f'Cliente {customer_id} no encontrado')

        total = cart.total
        credit_amount = sum((t.amount for t in tenders if t.method is PaymentMethod.CREDIT), Decimal('0.00'))
        if credit_amount > 0:
            _validate_credit(customer, credit_amount, total - (pending.total_paid - credit_amount))

        # 3. Sale header
        now = datetime.now()
        total_paid = pending.total_paid
        sale = Sale(
            sale_number=f'TMP-{uuid.uuid4().hex[:16]}',
            customer_id=customer.id if customer else None,
            subtotal=cart.subtotal,
            discount=cart.discount,
            tax=cart.tax,
            total=total,
            amount_paid=total_paid,
            change_amount=pending.change,
            payment_method=tenders[0].method.value,
            status=SaleStatus.COMPLETED.value,
            customer_language=language,
            customer_currency=currency,
            exchange_rate=rate,
            created_at=now
        )
        session.add(sale)
        session.flush()
        sale.sale_number = generate_sale_number(sale.id, now)

        # 4. Items + conditional stock decrement
        for line in cart.lines:
            product = products_dict[line.product_id]
            session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=round2(line.subtotal),
                discount=round2(line.discount_amount)
            ))
            _decrement_stock(session, product, line.quantity)

        # 5. Payments
        for tender in tenders:
            session.add(SalePayment(
                sale_id=sale.id,
                payment_method=tender.method.value,
                amount=tender.amount,
                reference=tender.reference
            ))

        # 6. Customer balance and loyalty
        if customer:
            if credit_amount > 0:
                _charge_credit(session, customer, credit_amount)
            points = loyalty_points_for(total, tenders)
            if points:
                customer.loyalty_points = (customer.loyalty_points or 0) + points

        session.commit()

    except PosError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[SALE] Unexpected error committing sale: {e}")
        raise PosError(f'Error al confirmar venta: {str(e)}')

    logger.info(f"[SALE] Committed {sale.sale_number} total={sale.total} method={sale.payment_method}")
    _record_sale_metrics(sale)
    checkout.reset()
    return sale


def build_checkout_from_payload(session, data: Dict[str, Any], tax_rate) -> CheckoutSession:
    """
    Build a CheckoutSession from a stateless sale request.

    Payload:
        items: [{product_id, quantity, discount}], one entry per product
        global_discount: percent
        payments: [{method, amount, reference}]  (optional)
        payment_method, amount_paid: single tender shorthand
    """
    items = data.get('items') or []
    if not isinstance(items, list) or not items:
        raise ValidationError('La venta debe incluir al menos un producto')

    cart = Cart(tax_rate=tax_rate)
    for item in items:
        if not isinstance(item, dict) or item.get('product_id') in (None, ''):
            raise ValidationError('Cada producto requiere product_id')
        product_id = parse_positive_int(item['product_id'], 'product_id')
        # One entry per product; a repeated id would make its discount ambiguous
        if cart.get_line(product_id):
            raise ValidationError(f'El producto {product_id} aparece más de una vez')
        quantity = parse_positive_int(item.get('quantity', 1), 'cantidad')

        product = session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise NotFoundError(f'Producto {product_id} no encontrado')
        if not product.active:
            raise BusinessLogicError(f'El producto "{product.name}" no está activo')

        line = cart.add_item(product, quantity)
        if item.get('discount') not in (None, ''):
            cart.update_item_discount(line.id, _parse_percent(item['discount']))

    if data.get('global_discount') not in (None, ''):
        cart.update_global_discount(_parse_percent(data['global_discount']))

    checkout = CheckoutSession(cart=cart)
    payments = data.get('payments')
    if payments:
        if not isinstance(payments, list):
            raise ValidationError('payments debe ser una lista')
        for p in payments:
            if not isinstance(p, dict):
                raise ValidationError('Cada pago debe ser un objeto')
            checkout.add_tender(p.get('method'), p.get('amount'), p.get('reference'))
    else:
        checkout.select_method(data.get('payment_method'))
        if data.get('amount_paid') not in (None, ''):
            checkout.set_input(data['amount_paid'])
    return checkout


def cancel_sale(session, sale_id: int) -> Sale:
    """Cancel a completed sale, restoring stock and customer balances."""
    return _reverse_sale(session, sale_id, SaleStatus.CANCELLED)


def refund_sale(session, sale_id: int) -> Sale:
    """Refund a completed sale, restoring stock and customer balances."""
    return _reverse_sale(session, sale_id, SaleStatus.REFUNDED)


def get_sale(session, sale_id: int) -> Sale:
    sale = session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError(f'Venta {sale_id} no encontrada')
    return sale


def list_sales(session, start: Optional[date] = None, end: Optional[date] = None,
               status: Optional[str] = None, customer_id: Optional[int] = None,
               limit: int = 100) -> List[Sale]:
    """Sales newest first, optionally filtered by date range (inclusive), status and customer."""
    query = session.query(Sale)
    if start:
        query = query.filter(Sale.created_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(Sale.created_at <= datetime.combine(end, time.max))
    if status:
        if status not in {s.value for s in SaleStatus}:
            raise ValidationError(f'Estado inválido: {status}')
        query = query.filter(Sale.status == status)
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def generate_sale_number(sale_id: int, when: Optional[datetime] = None) -> str:
    """V-YYYYMMDD-000123"""
    when = when or datetime.now()
    return f"V-{when.strftime('%Y%m%d')}-{sale_id:06d}"


def loyalty_points_for(total, tenders: List[Tender]) -> int:
    """One point per whole 10 of total; credit-only sales earn nothing."""
    if not tenders or all(t.method is PaymentMethod.CREDIT for t in tenders):
        return 0
    return int(to_decimal(total) // LOYALTY_UNIT)


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _decrement_stock(session, product: Product, quantity: int) -> None:
    """UPDATE ... WHERE stock >= qty; no row affected means not enough stock."""
    result = session.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InsufficientStockError(product.name, quantity, product.stock)


def _validate_credit(customer: Optional[Customer], credit_amount: Decimal, uncovered: Decimal) -> None:
    if customer is None:
        raise ValidationError('Para pagar a crédito debe seleccionar un cliente')
    if credit_amount > uncovered:
        raise BusinessLogicError('El pago a crédito no puede exceder el saldo de la venta')
    if credit_amount > customer.available_credit:
        raise BusinessLogicError(
            f'Crédito insuficiente para {customer.name}: disponible ${round2(customer.available_credit)}',
            payload={'available_credit': str(round2(customer.available_credit))}
        )


def _charge_credit(session, customer: Customer, amount: Decimal) -> None:
    """Conditional balance increase so concurrent sales cannot overrun the limit."""
    result = session.execute(
        update(Customer)
        .where(Customer.id == customer.id, Customer.credit_balance + amount <= Customer.credit_limit)
        .values(credit_balance=Customer.credit_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise BusinessLogicError(f'Crédito insuficiente para {customer.name}')


def _reverse_sale(session, sale_id: int, new_status: SaleStatus) -> Sale:
    try:
        sale = get_sale(session, sale_id)
        if sale.status != SaleStatus.COMPLETED.value:
            raise BusinessLogicError(f'La venta {sale.sale_number} ya está en estado {sale.status}')

        for item in sale.items:
            session.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(stock=Product.stock + item.quantity)
                .execution_options(synchronize_session=False)
            )

        customer = sale.customer
        if customer:
            credit_amount = sum(
                (Decimal(str(p.amount)) for p in sale.payments if p.payment_method == PaymentMethod.CREDIT.value),
                Decimal('0.00')
            )
            if credit_amount > 0:
                customer.credit_balance = max(Decimal('0.00'), Decimal(str(customer.credit_balance)) - credit_amount)

            tenders = [Tender(p.id, p.payment_method, p.amount) for p in sale.payments]
            points = loyalty_points_for(sale.total, tenders)
            if points:
                customer.loyalty_points = max(0, (customer.loyalty_points or 0) - points)

        sale.status = new_status.value
        sale.updated_at = datetime.now()
        session.commit()
        logger.info(f"[SALE] {sale.sale_number} -> {new_status.value}")
        return sale

    except PosError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[SALE] Unexpected error reversing sale {sale_id}: {e}")
        raise PosError(f'Error al anular venta: {str(e)}')


def _record_sale_metrics(sale: Sale) -> None:
    """Metrics must not fail a committed sale."""
    try:
        record_sale(sale)
    except Exception as e:
        logger.warning(f"[SALE] Failed to record metrics: {e}")


def parse_positive_int(value, field: str) -> int:
    try:
        number = Decimal(str(value))
    except (ArithmeticError, ValueError):
        raise ValidationError(f'{field} debe ser un número entero')
    if not number.is_finite() or number != number.to_integral_value() or number < 1:
        raise ValidationError(f'{field} debe ser un entero mayor a 0')
    return int(number)


def _parse_percent(value) -> Decimal:
    try:
        percent = to_decimal(value)
    except ValueError:
        raise ValidationError(f'Descuento inválido: {value}')
    if percent < 0 or percent > 100:
        raise ValidationError('El descuento debe estar entre 0 y 100')
    return percent


def _parse_exchange_rate(value) -> Optional[Decimal]:
    if value in (None, ''):
        return None
    try:
        rate = to_decimal(value)
    except ValueError:
        raise ValidationError(f'Tipo de cambio inválido: {value}')
    if rate <= 0:
        raise ValidationError('El tipo de cambio debe ser mayor a 0')
    return rate.quantize(Decimal('0.000001'))
