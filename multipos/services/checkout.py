"""
Multi-tender checkout session.

A CheckoutSession owns the cart being sold and the tenders the cashier has
entered so far. It never touches the database: committing is done by
sales_service.complete_checkout, which only clears the session after the
sale is durably recorded.

States:
    idle -> tender added -> ... -> completable (remaining == 0) -> committed
"""
import enum
from decimal import Decimal
from typing import Dict, List, Optional, Any

from multipos.exceptions import ValidationError, NotFoundError, BusinessLogicError
from multipos.services.cart import Cart
from multipos.utils.money import round2, parse_amount

ZERO = Decimal('0.00')


class PaymentMethod(str, enum.Enum):
    """Supported tender methods."""
    CASH = 'cash'
    CARD = 'card'
    TRANSFER = 'transfer'
    CREDIT = 'credit'        # store credit, needs a customer
    TERMINAL = 'terminal'    # card charged through a Point terminal

    @property
    def label(self) -> str:
        return PAYMENT_METHOD_LABELS[self]

    @property
    def requires_customer(self) -> bool:
        return self is PaymentMethod.CREDIT

    @property
    def accepts_reference(self) -> bool:
        return self in (PaymentMethod.CARD, PaymentMethod.TERMINAL, PaymentMethod.TRANSFER)


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH: 'Efectivo',
    PaymentMethod.CARD: 'Tarjeta',
    PaymentMethod.TRANSFER: 'Transferencia',
    PaymentMethod.CREDIT: 'Crédito',
    PaymentMethod.TERMINAL: 'Terminal',
}


def normalize_payment_method(value) -> PaymentMethod:
    """
    Normalize payment method input to the enum.

    Args:
        value: None, PaymentMethod, or a string like 'cash' / 'CASH'

    Raises:
        ValidationError: if the value is not a supported method
    """
    if value is None or value == '':
        return PaymentMethod.CASH
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f'Método de pago inválido: {value}')


class Tender:
    """One payment contribution toward the order total."""

    def __init__(self, id: int, method, amount, reference: Optional[str] = None):
        self.id = int(id)
        self.method = normalize_payment_method(method)
        self.amount = round2(amount)
        # Only card-like methods carry an authorization / intent reference
        self.reference = reference if self.method.accepts_reference else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'method': self.method.value,
            'amount': str(self.amount),
            'reference': self.reference,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Tender':
        return cls(data['id'], data['method'], data['amount'], data.get('reference'))

    def __repr__(self):
        return f"<Tender(id={self.id}, method={self.method.value}, amount={self.amount})>"


class CheckoutSession:
    """Cart + tenders for one cashier session."""

    def __init__(self, cart: Optional[Cart] = None, tenders: Optional[List[Tender]] = None,
                 selected_method=PaymentMethod.CASH, input_amount=None, next_tender_id: int = 1):
        self.cart = cart if cart is not None else Cart()
        self.tenders: List[Tender] = list(tenders or [])
        self.selected_method = normalize_payment_method(selected_method)
        self.input_amount: Optional[Decimal] = round2(input_amount) if input_amount not in (None, '') else None
        self.next_tender_id = max([next_tender_id] + [t.id + 1 for t in self.tenders])

    # ------------------------------------------------------------------
    # Running figures
    # ------------------------------------------------------------------

    @property
    def total(self) -> Decimal:
        return self.cart.total

    @property
    def total_paid(self) -> Decimal:
        return sum((t.amount for t in self.tenders), ZERO)

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.total - self.total_paid)

    @property
    def change(self) -> Decimal:
        return max(ZERO, self.total_paid - self.total)

    @property
    def is_completable(self) -> bool:
        return not self.cart.is_empty and self.remaining <= 0

    # ------------------------------------------------------------------
    # Tender entry
    # ------------------------------------------------------------------

    def select_method(self, method) -> PaymentMethod:
        self.selected_method = normalize_payment_method(method)
        return self.selected_method

    def set_input(self, amount) -> Optional[Decimal]:
        if amount in (None, ''):
            self.input_amount = None
        else:
            self.input_amount = _tender_amount(amount, allow_zero=True)
        return self.input_amount

    def add_tender(self, method=None, amount=None, reference: Optional[str] = None) -> Tender:
        """
        Push a tender; defaults to the selected method and the input field.
        The input field resets afterwards.
        """
        method = normalize_payment_method(method if method is not None else self.selected_method)
        if amount is None:
            amount = self.input_amount
        amount = _tender_amount(amount)

        tender = Tender(self.next_tender_id, method, amount, reference)
        self.next_tender_id += 1
        self.tenders.append(tender)
        self.selected_method = method
        self.input_amount = None
        return tender

    def remove_tender(self, tender_id) -> Tender:
        tender_id = int(tender_id)
        for tender in self.tenders:
            if tender.id == tender_id:
                self.tenders.remove(tender)
                return tender
        raise NotFoundError(f'Pago {tender_id} no encontrado')

    def finalize_tenders(self) -> List[Tender]:
        """
        Tenders to commit. With no explicit tenders, a single implicit tender is
        synthesized from the input field (or the remaining balance) using the
        selected method.

        Raises:
            ValidationError: empty cart
            BusinessLogicError: tendered amount does not cover the total
        """
        if self.cart.is_empty:
            raise ValidationError('El carrito está vacío')

        if not self.tenders:
            amount = self.input_amount if self.input_amount else self.remaining
            if amount > 0:
                self.add_tender(self.selected_method, amount)

        if self.remaining > 0:
            raise BusinessLogicError(
                f'Falta cubrir ${self.remaining} del total ${self.total}',
                payload={'remaining': str(self.remaining)}
            )
        return list(self.tenders)

    def reset(self) -> None:
        """Clear cart and tenders after a committed sale (or on cancel)."""
        self.cart.clear()
        self.tenders = []
        self.input_amount = None
        self.selected_method = PaymentMethod.CASH
        self.next_tender_id = 1

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        return {
            'total': str(self.total),
            'total_paid': str(self.total_paid),
            'remaining': str(self.remaining),
            'change': str(self.change),
            'completable': self.is_completable,
            'selected_method': self.selected_method.value,
            'input_amount': str(self.input_amount) if self.input_amount is not None else None,
            'tenders': [t.to_dict() for t in self.tenders],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cart': self.cart.to_dict(),
            'payment': self.summary(),
            'next_tender_id': self.next_tender_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], tax_rate=None) -> 'CheckoutSession':
        data = data or {}
        payment = data.get('payment') or {}
        return cls(
            cart=Cart.from_dict(data.get('cart'), tax_rate=tax_rate),
            tenders=[Tender.from_dict(t) for t in payment.get('tenders', [])],
            selected_method=payment.get('selected_method') or PaymentMethod.CASH,
            input_amount=payment.get('input_amount'),
            next_tender_id=data.get('next_tender_id', 1),
        )

    def __repr__(self):
        return f"<CheckoutSession(total={self.total}, paid={self.total_paid}, tenders={len(self.tenders)})>"


def _tender_amount(amount, allow_zero: bool = False) -> Decimal:
    try:
        return parse_amount(amount, field='monto del pago', allow_zero=allow_zero)
    except ValueError as e:
        raise ValidationError(str(e))
