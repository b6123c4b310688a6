"""
Integration tests for the cashier flow through /api/pos and /api/sales.
"""

from decimal import Decimal

from multipos.models import Sale


class TestPosCart:
    """Cart endpoints backed by the Flask session."""

    def test_empty_cart(self, client, store_config):
        response = client.get('/api/pos/cart')

        assert response.status_code == 200
        data = response.get_json()
        assert data['cart']['lines'] == []
        assert data['cart']['total'] == '0.00'

    def test_add_and_merge_items(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 1})
        response = client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 1})

        assert response.status_code == 201
        cart = response.get_json()['cart']
        assert len(cart['lines']) == 1
        assert cart['lines'][0]['quantity'] == 2
        assert cart['subtotal'] == '36.00'
        assert cart['tax'] == '5.76'
        assert cart['total'] == '41.76'

    def test_add_unknown_product(self, client, store_config):
        response = client.post('/api/pos/cart/items', json={'product_id': 999})
        assert response.status_code == 404

    def test_add_requires_product_id(self, client, store_config):
        response = client.post('/api/pos/cart/items', json={'quantity': 1})
        assert response.status_code == 400

    def test_add_more_than_stock(self, client, product2):
        response = client.post('/api/pos/cart/items', json={'product_id': product2.id, 'quantity': 4})

        assert response.status_code == 409
        assert client.get('/api/pos/cart').get_json()['cart']['lines'] == []

    def test_update_quantity_and_discount(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 1})

        response = client.patch(f'/api/pos/cart/items/{product.id}', json={'quantity': 2, 'discount': 10})

        line = response.get_json()['cart']['lines'][0]
        assert line['quantity'] == 2
        assert line['discount'] == '3.60'

    def test_quantity_is_clamped_to_one(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 3})

        response = client.patch(f'/api/pos/cart/items/{product.id}', json={'quantity': 0})

        assert response.get_json()['cart']['lines'][0]['quantity'] == 1

    def test_update_line_not_in_cart(self, client, product):
        response = client.patch(f'/api/pos/cart/items/{product.id}', json={'quantity': 2})
        assert response.status_code == 404

    def test_remove_item_and_clear(self, client, product, product2):
        client.post('/api/pos/cart/items', json={'product_id': product.id})
        client.post('/api/pos/cart/items', json={'product_id': product2.id})

        response = client.delete(f'/api/pos/cart/items/{product2.id}')
        assert [line['product_id'] for line in response.get_json()['cart']['lines']] == [product.id]

        response = client.delete('/api/pos/cart')
        assert response.get_json()['cart']['lines'] == []

    def test_global_discount(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 2})

        response = client.put('/api/pos/cart/discount', json={'discount': 10})

        assert response.get_json()['cart']['discount'] == '3.60'


class TestPosTenders:
    """Tender entry and checkout."""

    def test_split_tenders_and_remaining(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 2})

        response = client.post('/api/pos/tenders', json={'method': 'card', 'amount': '20', 'reference': 'AUTH-1'})
        assert response.status_code == 201
        payment = response.get_json()['payment']
        assert payment['remaining'] == '21.76'
        assert payment['completable'] is False

        response = client.post('/api/pos/tenders', json={'method': 'cash', 'amount': '30'})
        payment = response.get_json()['payment']
        assert payment['remaining'] == '0.00'
        assert payment['change'] == '8.24'
        assert payment['completable'] is True

    def test_remove_tender(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id})
        tender = client.post('/api/pos/tenders', json={'method': 'cash', 'amount': '5'}).get_json()['payment']['tenders'][0]

        response = client.delete(f"/api/pos/tenders/{tender['id']}")
        assert response.get_json()['payment']['tenders'] == []

        response = client.delete(f"/api/pos/tenders/{tender['id']}")
        assert response.status_code == 404

    def test_invalid_tender_amount(self, client, product):
        client.post('/api/pos/cart/items', json={'product_id': product.id})
        response = client.post('/api/pos/tenders', json={'method': 'cash', 'amount': '-3'})
        assert response.status_code == 400

    def test_payment_input_then_checkout(self, client, session, product):
        product_id = product.id
        client.post('/api/pos/cart/items', json={'product_id': product_id, 'quantity': 2})
        client.put('/api/pos/payment-input', json={'method': 'cash', 'amount': '50'})

        response = client.post('/api/pos/checkout', json={})

        assert response.status_code == 201
        data = response.get_json()
        assert data['sale']['total'] == '41.76'
        assert data['change'] == '8.24'
        assert data['sale']['payments'][0]['method'] == 'cash'

        # Cart is emptied only after the sale is recorded
        assert client.get('/api/pos/cart').get_json()['cart']['lines'] == []
        session.refresh(product)
        assert product.stock == 8

    def test_failed_checkout_keeps_cart(self, client, session, product2):
        client.post('/api/pos/cart/items', json={'product_id': product2.id, 'quantity': 3})
        client.post('/api/pos/tenders', json={'method': 'cash', 'amount': '300'})

        # Someone else sells two units meanwhile
        product2.stock = 1
        session.commit()

        response = client.post('/api/pos/checkout', json={})

        assert response.status_code == 409
        assert response.get_json()['status'] == 'error'
        cart = client.get('/api/pos/cart').get_json()
        assert cart['cart']['lines'][0]['quantity'] == 3
        assert len(cart['payment']['tenders']) == 1
        assert session.query(Sale).count() == 0

    def test_checkout_empty_cart(self, client, store_config):
        response = client.post('/api/pos/checkout', json={})
        assert response.status_code == 400

    def test_credit_checkout_with_customer(self, client, session, product, customer):
        client.post('/api/pos/cart/items', json={'product_id': product.id, 'quantity': 1})
        client.post('/api/pos/tenders', json={'method': 'credit', 'amount': '20.88'})

        response = client.post('/api/pos/checkout', json={
            'customer_id': customer.id,
            'customer_currency': 'USD',
            'customer_language': 'en',
            'exchange_rate': '0.05',
        })

        assert response.status_code == 201
        sale = response.get_json()['sale']
        assert sale['customer_id'] == customer.id
        assert sale['customer_currency'] == 'USD'
        session.refresh(customer)
        assert customer.credit_balance == Decimal('20.88')


class TestSalesApi:
    """Stateless sale creation and history."""

    def test_create_sale(self, client, product):
        response = client.post('/api/sales', json={
            'items': [{'product_id': product.id, 'quantity': 2}],
            'payments': [{'method': 'cash', 'amount': '50'}],
        })

        assert response.status_code == 201
        sale = response.get_json()['sale']
        assert sale['total'] == '41.76'
        assert sale['change'] == '8.24'
        assert sale['sale_number'].startswith('V-')

    def test_create_sale_validation(self, client, product):
        response = client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': -1}]})
        assert response.status_code == 400

    def test_create_sale_with_malformed_payment(self, client, session, product):
        response = client.post('/api/sales', json={
            'items': [{'product_id': product.id}],
            'payments': ['cash'],
        })

        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'
        assert session.query(Sale).count() == 0

    def test_create_sale_insufficient_stock(self, client, product2):
        response = client.post('/api/sales', json={'items': [{'product_id': product2.id, 'quantity': 10}]})

        assert response.status_code == 409
        assert response.get_json()['available'] == '3'

    def test_list_get_and_cancel(self, client, product):
        created = client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': 1}]}).get_json()['sale']

        listed = client.get('/api/sales').get_json()['sales']
        assert [s['id'] for s in listed] == [created['id']]

        fetched = client.get(f"/api/sales/{created['id']}").get_json()['sale']
        assert fetched['items'][0]['quantity'] == 1

        response = client.post(f"/api/sales/{created['id']}/cancel")
        assert response.get_json()['sale']['status'] == 'cancelled'

        response = client.post(f"/api/sales/{created['id']}/refund")
        assert response.status_code == 400

        assert client.get('/api/sales?status=completed').get_json()['sales'] == []

    def test_list_rejects_bad_filters(self, client, store_config):
        assert client.get('/api/sales?status=pending').status_code == 400
        assert client.get('/api/sales?start=05-03-2024').status_code == 400

    def test_missing_sale(self, client, store_config):
        assert client.get('/api/sales/999').status_code == 404

    def test_receipt_pdf(self, client, product):
        created = client.post('/api/sales', json={
            'items': [{'product_id': product.id, 'quantity': 2}],
            'payments': [{'method': 'card', 'amount': '41.76', 'reference': 'AUTH-5'}],
            'customer_currency': 'USD',
            'exchange_rate': '0.05',
        }).get_json()['sale']

        response = client.get(f"/api/sales/{created['id']}/receipt.pdf")

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
