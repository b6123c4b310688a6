import pytest
import uuid
from decimal import Decimal

from multipos import create_app
from multipos.database import db_session, get_session, create_all, drop_all
from multipos.models import Category, Product, Customer, StoreConfig


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def database(app):
    """Fresh schema per test, inside an app context shared with the test client."""
    with app.app_context():
        create_all()
        yield
        db_session.remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def store_config(session):
    """Store config with 16% tax."""
    config = StoreConfig(
        business_name='Cafetería de Prueba',
        default_language='es',
        default_currency='MXN',
        tax_rate=Decimal('16.00'),
        active=True
    )
    session.add(config)
    session.commit()
    return config


@pytest.fixture(scope='function')
def category(session):
    """Create test category."""
    suffix = str(uuid.uuid4())[:8]
    category = Category(name=f'Bebidas {suffix}', available_in_pos=True, available_in_digital_menu=True)
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def product(session, category, store_config):
    """Coffee at 18.00 with 10 units in stock."""
    suffix = str(uuid.uuid4())[:8]
    product = Product(
        sku=f'CAFE-{suffix}',
        barcode=f'750{suffix}',
        name='Café Americano',
        category_id=category.id,
        price=Decimal('18.00'),
        cost=Decimal('6.00'),
        stock=10,
        min_stock=2,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product2(session, category, store_config):
    """Sandwich at 65.00 with 3 units in stock."""
    suffix = str(uuid.uuid4())[:8]
    product = Product(
        sku=f'SAND-{suffix}',
        name='Sándwich de Pavo',
        category_id=category.id,
        price=Decimal('65.00'),
        cost=Decimal('28.00'),
        stock=3,
        min_stock=5,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer(session):
    """Customer with a 500.00 credit limit and no balance."""
    suffix = str(uuid.uuid4())[:8]
    customer = Customer(
        name='Ana López',
        email=f'ana-{suffix}@test.com',
        phone='5512345678',
        credit_limit=Decimal('500.00'),
        credit_balance=Decimal('0.00'),
        loyalty_points=0,
        active=True
    )
    session.add(customer)
    session.commit()
    return customer
