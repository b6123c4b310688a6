"""
Integration tests for reports, metrics, health check and CLI commands.
"""

import pytest

from multipos.cli_commands import seed_demo_data
from multipos.models import Product, Customer


@pytest.fixture
def two_sales(client, product, product2):
    """Cash sale of two coffees (41.76) and card sale of one sandwich (75.40)."""
    client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': 2}]})
    client.post('/api/sales', json={
        'items': [{'product_id': product2.id, 'quantity': 1}],
        'payment_method': 'card',
    })


class TestReports:

    def test_summary(self, client, two_sales):
        data = client.get('/api/reports/summary').get_json()

        assert data['sale_count'] == 2
        assert data['subtotal'] == '101.00'
        assert data['tax'] == '16.16'
        assert data['total'] == '117.16'
        assert data['average_ticket'] == '58.58'
        assert data['by_payment_method']['cash'] == {'count': 1, 'amount': '41.76'}
        assert data['by_payment_method']['card'] == {'count': 1, 'amount': '75.40'}

    def test_cancelled_sales_are_excluded(self, client, product):
        sale = client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': 1}]}).get_json()['sale']
        client.post(f"/api/sales/{sale['id']}/cancel")

        data = client.get('/api/reports/summary').get_json()

        assert data['sale_count'] == 0
        assert data['average_ticket'] == '0.00'

    def test_top_products(self, client, two_sales, product):
        products = client.get('/api/reports/top-products').get_json()['products']

        assert products[0]['product_id'] == product.id
        assert products[0]['units'] == 2
        assert products[0]['revenue'] == '36.00'

    def test_daily_includes_empty_days(self, client, two_sales):
        sales = client.get('/api/sales').get_json()['sales']
        today = sales[0]['created_at'][:10]

        days = client.get(f'/api/reports/daily?end={today}').get_json()['days']

        assert len(days) == 30
        assert days[-1] == {'date': today, 'sale_count': 2, 'total': '117.16'}
        assert days[0]['sale_count'] == 0

    def test_inverted_period(self, client, store_config):
        response = client.get('/api/reports/summary?start=2024-02-01&end=2024-01-01')
        assert response.status_code == 400


class TestOperations:

    def test_health(self, client):
        assert client.get('/health').get_json() == {'status': 'ok'}

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nope')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'

    def test_metrics_exposes_sale_counters(self, client, product):
        client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': 1}]})

        response = client.get('/metrics')

        assert response.status_code == 200
        body = response.data.decode()
        assert 'pos_sales_total' in body
        assert 'http_requests_total' in body


class TestCliCommands:

    def test_seed_demo_is_idempotent(self, session):
        first = seed_demo_data(session)
        second = seed_demo_data(session)

        assert first == {'categorías': 3, 'productos': 6, 'clientes': 2}
        assert second == {'categorías': 0, 'productos': 0, 'clientes': 0}
        assert session.query(Product).filter_by(sku='BEB-001').one().name == 'Café Americano'
        assert session.query(Customer).count() == 2

    def test_seed_demo_command(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['seed-demo'])

        assert result.exit_code == 0
        assert 'productos: 6' in result.output

    def test_init_db_command(self, app):
        result = app.test_cli_runner().invoke(args=['init-db'])

        assert result.exit_code == 0
