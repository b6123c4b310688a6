"""
Unit tests for the multi-tender checkout session.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from multipos.exceptions import ValidationError, BusinessLogicError, NotFoundError
from multipos.services.cart import Cart
from multipos.services.checkout import CheckoutSession, PaymentMethod, Tender, normalize_payment_method


@pytest.fixture
def checkout():
    """Two coffees: total 41.76 at 16% tax."""
    cart = Cart(tax_rate=Decimal('0.16'))
    cart.add_item(SimpleNamespace(id=1, name='Café Americano', price=Decimal('18.00'), sku='CAFE-1'), 2)
    return CheckoutSession(cart=cart)


class TestPaymentMethod:
    """Payment method normalization."""

    def test_accepts_any_case(self):
        assert normalize_payment_method('CARD') is PaymentMethod.CARD
        assert normalize_payment_method(' transfer ') is PaymentMethod.TRANSFER

    def test_defaults_to_cash(self):
        assert normalize_payment_method(None) is PaymentMethod.CASH
        assert normalize_payment_method('') is PaymentMethod.CASH

    def test_rejects_unknown_method(self):
        with pytest.raises(ValidationError):
            normalize_payment_method('bitcoin')

    def test_only_credit_requires_customer(self):
        assert PaymentMethod.CREDIT.requires_customer
        assert not PaymentMethod.CASH.requires_customer


class TestTenders:
    """Tender entry and running balance."""

    def test_cash_overpayment_gives_change(self, checkout):
        checkout.add_tender('cash', '50')

        assert checkout.remaining == Decimal('0.00')
        assert checkout.change == Decimal('8.24')
        assert checkout.is_completable

    def test_split_payment_covers_total(self, checkout):
        checkout.add_tender('card', '20.00', reference='AUTH-123')
        assert checkout.remaining == Decimal('21.76')
        assert not checkout.is_completable

        checkout.add_tender('cash', '21.76')
        assert checkout.remaining == Decimal('0.00')
        assert checkout.change == Decimal('0.00')
        assert checkout.is_completable

    def test_tender_defaults_to_selected_method_and_input(self, checkout):
        checkout.select_method('transfer')
        checkout.set_input('41.76')

        tender = checkout.add_tender()

        assert tender.method is PaymentMethod.TRANSFER
        assert tender.amount == Decimal('41.76')
        assert checkout.input_amount is None

    @pytest.mark.parametrize('amount', ['0', '-5', 'abc', None])
    def test_rejects_non_positive_or_invalid_amounts(self, checkout, amount):
        with pytest.raises(ValidationError):
            checkout.add_tender('cash', amount)
        assert checkout.tenders == []

    def test_tender_ids_are_sequential_and_removable(self, checkout):
        first = checkout.add_tender('cash', '10')
        second = checkout.add_tender('card', '10')
        assert (first.id, second.id) == (1, 2)

        checkout.remove_tender(first.id)
        assert [t.id for t in checkout.tenders] == [second.id]
        assert checkout.remaining == Decimal('31.76')

    def test_remove_unknown_tender(self, checkout):
        with pytest.raises(NotFoundError):
            checkout.remove_tender(42)

    def test_reference_kept_only_for_card_like_methods(self):
        assert Tender(1, 'card', '10', 'AUTH-1').reference == 'AUTH-1'
        assert Tender(2, 'cash', '10', 'AUTH-1').reference is None


class TestFinalizeTenders:
    """Tenders committed with the sale."""

    def test_empty_cart_cannot_be_finalized(self):
        with pytest.raises(ValidationError):
            CheckoutSession().finalize_tenders()

    def test_implicit_tender_for_remaining_balance(self, checkout):
        checkout.select_method('card')

        tenders = checkout.finalize_tenders()

        assert len(tenders) == 1
        assert tenders[0].method is PaymentMethod.CARD
        assert tenders[0].amount == Decimal('41.76')

    def test_implicit_tender_uses_input_amount(self, checkout):
        checkout.set_input('50')

        tenders = checkout.finalize_tenders()

        assert tenders[0].method is PaymentMethod.CASH
        assert tenders[0].amount == Decimal('50.00')
        assert checkout.change == Decimal('8.24')

    def test_short_tenders_are_rejected(self, checkout):
        checkout.add_tender('cash', '40')

        with pytest.raises(BusinessLogicError) as exc_info:
            checkout.finalize_tenders()
        assert exc_info.value.payload == {'remaining': '1.76'}


class TestCheckoutState:
    """Reset and session round trip."""

    def test_reset_clears_cart_and_tenders(self, checkout):
        checkout.add_tender('card', '10')
        checkout.select_method('card')
        checkout.reset()

        assert checkout.cart.is_empty
        assert checkout.tenders == []
        assert checkout.selected_method is PaymentMethod.CASH

    def test_restored_session_keeps_tenders_and_numbering(self, checkout):
        checkout.add_tender('card', '20', reference='AUTH-9')
        checkout.set_input('5')

        restored = CheckoutSession.from_dict(checkout.to_dict(), tax_rate=Decimal('0.16'))

        assert restored.total_paid == Decimal('20.00')
        assert restored.tenders[0].reference == 'AUTH-9'
        assert restored.input_amount == Decimal('5.00')
        assert restored.add_tender('cash', '1').id == 2
