"""
Unit tests for the pure parts of the external integrations:
menu reply parsing, terminal status mapping, OAuth state checks,
exchange-rate tables and voice product matching.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from multipos.exceptions import ExternalServiceError, ValidationError
from multipos.services.exchange_rate_service import default_rates, normalize_currency
from multipos.services.menu_service import parse_menu_reply, find_existing_product
from multipos.services.mercadopago_client import normalize_intent_status, build_authorization_url, cents_to_amount
from multipos.services.terminal_service import complete_oauth
from multipos.services.voice_service import match_product, normalize_language


class TestMenuReplyParsing:
    """The vision model reply is not always clean JSON."""

    def test_plain_json_array(self):
        items = parse_menu_reply('[{"name": "Tacos", "price": 45, "category": "Platos"}]')
        assert items == [{'name': 'Tacos', 'price': 45, 'category': 'Platos'}]

    def test_markdown_fences_are_stripped(self):
        reply = '```json\n[{"name": "Agua de Jamaica", "price": 25}]\n```'
        assert parse_menu_reply(reply)[0]['name'] == 'Agua de Jamaica'

    def test_array_embedded_in_prose(self):
        reply = 'Aquí están los productos: [{"name": "Flan", "price": 30}] Espero que sirva.'
        assert parse_menu_reply(reply) == [{'name': 'Flan', 'price': 30}]

    def test_items_without_name_are_dropped(self):
        items = parse_menu_reply('[{"name": ""}, {"price": 10}, {"name": "Café"}]')
        assert [i['name'] for i in items] == ['Café']

    @pytest.mark.parametrize('reply', ['no hay productos', '{"name": "Tacos"}', ''])
    def test_unusable_reply(self, reply):
        with pytest.raises(ExternalServiceError):
            parse_menu_reply(reply)

    def test_existing_product_fuzzy_match(self):
        products = [SimpleNamespace(name='Café Americano'), SimpleNamespace(name='Capuchino')]
        assert find_existing_product(products, 'café americano grande').name == 'Café Americano'
        assert find_existing_product(products, 'Té Verde') is None


class TestIntentStatus:
    """Mapping of Point payment intent states."""

    def test_finished_and_approved(self):
        status = normalize_intent_status({
            'state': 'FINISHED',
            'payment': {'id': 123, 'state': 'approved', 'authorization_code': 'A1'},
        })
        assert status['status'] == 'approved'
        assert status['payment_id'] == 123
        assert status['authorization_code'] == 'A1'

    @pytest.mark.parametrize('state,expected', [
        ('OPEN', 'processing'),
        ('PROCESSING', 'processing'),
        ('CANCELED', 'pending'),
        ('CANCELLED', 'cancelled'),
        ('ERROR', 'error'),
        (None, 'pending'),
    ])
    def test_other_states(self, state, expected):
        assert normalize_intent_status({'state': state})['status'] == expected

    def test_finished_rejected(self):
        status = normalize_intent_status({
            'state': 'FINISHED',
            'payment': {'state': 'rejected', 'status_detail': 'cc_rejected_insufficient_amount'},
        })
        assert status['status'] == 'rejected'
        assert status['error_message'] == 'cc_rejected_insufficient_amount'

    def test_cents(self):
        assert cents_to_amount(4176) == Decimal('41.76')

    def test_authorization_url_carries_state(self):
        url = build_authorization_url('client-1', 'http://localhost/cb', 'abc.def')
        assert url.startswith('https://auth.mercadopago.com/authorization?')
        assert 'client_id=client-1' in url
        assert 'state=abc.def' in url


class TestOAuthState:
    """The callback state must match the one issued at connect."""

    def test_mismatched_state_is_rejected(self, session, mocker):
        mock_post = mocker.patch('multipos.services.mercadopago_client.requests.post')

        with pytest.raises(ValidationError):
            complete_oauth(session, 'TG-code', 'received', 'issued')
        mock_post.assert_not_called()

    def test_missing_issued_state_is_rejected(self, session):
        with pytest.raises(ValidationError):
            complete_oauth(session, 'TG-code', 'received', None)

    def test_missing_code_is_rejected(self, session):
        with pytest.raises(ValidationError):
            complete_oauth(session, None, 'issued', 'issued')


class TestExchangeTables:

    def test_default_table_is_mxn_based(self):
        rates = default_rates('MXN')
        assert rates['MXN'] == Decimal('1')
        assert rates['USD'] == Decimal('0.05')

    def test_default_table_rebased(self):
        rates = default_rates('USD')
        assert rates['USD'] == Decimal('1')
        assert rates['MXN'] == Decimal('20')
        assert rates['EUR'] == Decimal('0.9')

    def test_unknown_currency(self):
        assert normalize_currency(' usd ') == 'USD'
        with pytest.raises(ValidationError):
            normalize_currency('ARS')


class TestVoiceMatching:

    @pytest.fixture
    def products(self):
        return [
            SimpleNamespace(name='Café Americano', sku='BEB-001', barcode='7501', active=True, stock=5),
            SimpleNamespace(name='Capuchino', sku='BEB-002', barcode=None, active=True, stock=0),
            SimpleNamespace(name='Pastel de Chocolate', sku='POS-001', barcode=None, active=True, stock=2),
        ]

    def test_matches_by_partial_name(self, products):
        assert match_product(products, 'americano').name == 'Café Americano'

    def test_matches_by_sku(self, products):
        assert match_product(products, 'pos-001').name == 'Pastel de Chocolate'

    def test_skips_out_of_stock(self, products):
        assert match_product(products, 'capuchino') is None

    def test_language_fallback(self):
        assert normalize_language('en-US') == 'en'
        assert normalize_language('pt') == 'es'
