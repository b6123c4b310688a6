"""Customer service: CRUD, search and store-credit payments."""
from decimal import Decimal
from typing import Any, Dict, List

from flask import current_app
from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError

from multipos.models import Customer
from multipos.exceptions import ValidationError, NotFoundError, BusinessLogicError
from multipos.utils.money import parse_amount

CUSTOMER_FIELDS = ('name', 'email', 'phone', 'address', 'credit_limit', 'active')


def search_customers(session, query: str = '', include_inactive: bool = False, limit: int = 50) -> List[Customer]:
    base = session.query(Customer)
    if not include_inactive:
        base = base.filter(Customer.active == True)  # noqa: E712

    query = (query or '').strip()[:100]
    if query:
        pattern = f'%{query.lower()}%'
        base = base.filter(or_(
            func.lower(Customer.name).like(pattern),
            func.lower(Customer.email).like(pattern),
            func.lower(Customer.phone).like(pattern)
        ))
    return base.order_by(Customer.name).limit(limit).all()


def get_customer(session, customer_id: int) -> Customer:
    customer = session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError(f'Cliente {customer_id} no encontrado')
    return customer


def create_customer(session, data: Dict[str, Any]) -> Customer:
    customer = Customer(**_validate_customer_data(data))
    session.add(customer)
    _commit_unique(session)
    return customer


def update_customer(session, customer_id: int, data: Dict[str, Any]) -> Customer:
    customer = get_customer(session, customer_id)
    clean = _validate_customer_data(data, partial=True)
    if 'credit_limit' in clean and clean['credit_limit'] < Decimal(str(customer.credit_balance)):
        raise BusinessLogicError('El límite de crédito no puede ser menor al saldo actual')
    for field, value in clean.items():
        setattr(customer, field, value)
    _commit_unique(session)
    return customer


def deactivate_customer(session, customer_id: int) -> Customer:
    customer = get_customer(session, customer_id)
    customer.active = False
    session.commit()
    return customer


def register_credit_payment(session, customer_id: int, amount) -> Customer:
    """
    Customer pays down store credit.

    Raises:
        ValidationError: amount is not a positive number
        BusinessLogicError: amount exceeds the outstanding balance
    """
    try:
        amount = parse_amount(amount, field='monto del abono')
    except ValueError as e:
        raise ValidationError(str(e))

    customer = get_customer(session, customer_id)
    balance = Decimal(str(customer.credit_balance))
    if amount > balance:
        raise BusinessLogicError(
            f'El abono (${amount}) excede el saldo pendiente (${balance})',
            payload={'credit_balance': str(balance)}
        )

    try:
        customer.credit_balance = balance - amount
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(f"Credit payment: customer={customer.id} amount={amount}")
    return customer


def _validate_customer_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    unknown = set(data) - set(CUSTOMER_FIELDS)
    if unknown:
        raise ValidationError(f"Campos desconocidos: {', '.join(sorted(unknown))}")

    clean: Dict[str, Any] = {}
    if 'name' in data or not partial:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('El nombre del cliente es obligatorio')
        clean['name'] = name

    for field in ('email', 'phone', 'address'):
        if field in data:
            clean[field] = (str(data[field]).strip() or None) if data[field] else None

    if clean.get('email') and '@' not in clean['email']:
        raise ValidationError('El email no es válido')

    if 'credit_limit' in data:
        try:
            clean['credit_limit'] = parse_amount(data['credit_limit'] or 0, field='límite de crédito', allow_zero=True)
        except ValueError as e:
            raise ValidationError(str(e))

    if 'active' in data:
        clean['active'] = bool(data['active'])
    return clean


def _commit_unique(session) -> None:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError('Ya existe un cliente con ese email', status_code=409)
