"""
Flask CLI commands.

Commands:
- flask init-db: Create every table
- flask seed-demo: Load demo categories, products, customers and store config
"""
from decimal import Decimal

import click

from multipos.database import db_session, create_all, drop_all
from multipos.models import Category, Product, Customer, StoreConfig

DEMO_CATEGORIES = ('Bebidas', 'Comida', 'Postres')

DEMO_PRODUCTS = (
    # sku, barcode, name, category, price, cost, stock
    ('BEB-001', '7501055300075', 'Café Americano', 'Bebidas', '18.00', '6.00', 200),
    ('BEB-002', '7501055300082', 'Capuchino', 'Bebidas', '35.00', '11.00', 150),
    ('BEB-003', '7501055300099', 'Agua Natural 600ml', 'Bebidas', '12.00', '5.00', 300),
    ('COM-001', '7501055300105', 'Sándwich de Pavo', 'Comida', '65.00', '28.00', 40),
    ('COM-002', '7501055300112', 'Ensalada César', 'Comida', '85.00', '35.00', 25),
    ('POS-001', '7501055300129', 'Pastel de Chocolate', 'Postres', '45.00', '18.00', 20),
)

DEMO_CUSTOMERS = (
    # name, email, phone, credit_limit
    ('Ana López', 'ana.lopez@example.com', '5512345678', '1000.00'),
    ('Carlos Ruiz', 'carlos.ruiz@example.com', '5587654321', '0.00'),
)


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create the database schema."""
        if drop:
            click.confirm('Esto eliminará todos los datos. ¿Continuar?', abort=True)
            drop_all()
            click.echo(click.style('Tablas eliminadas', fg='yellow'))
        create_all()
        click.echo(click.style('✅ Base de datos inicializada', fg='green', bold=True))

    @app.cli.command('seed-demo')
    def seed_demo():
        """Load demo data (idempotent: skips rows that already exist)."""
        try:
            counts = seed_demo_data(db_session)
            click.echo(click.style('\n✅ Datos de demostración cargados', fg='green', bold=True))
            for label, count in counts.items():
                click.echo(f'   {label}: {count}')
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al cargar datos: {str(e)}', fg='red'))
            raise SystemExit(1)


def seed_demo_data(session, business_name: str = 'MultiPOS Demo') -> dict:
    """Insert demo rows that are not present yet; returns how many were added per table."""
    counts = {'categorías': 0, 'productos': 0, 'clientes': 0}

    if not session.query(StoreConfig).first():
        session.add(StoreConfig(business_name=business_name, default_language='es',
                                default_currency='MXN', tax_rate=Decimal('16.00')))

    categories = {c.name: c for c in session.query(Category).all()}
    for name in DEMO_CATEGORIES:
        if name not in categories:
            category = Category(name=name, available_in_pos=True, available_in_digital_menu=True)
            session.add(category)
            categories[name] = category
            counts['categorías'] += 1
    session.flush()

    existing_skus = {sku for (sku,) in session.query(Product.sku).all()}
    for sku, barcode, name, category, price, cost, stock in DEMO_PRODUCTS:
        if sku in existing_skus:
            continue
        session.add(Product(
            sku=sku, barcode=barcode, name=name, category_id=categories[category].id,
            price=Decimal(price), cost=Decimal(cost), stock=stock, min_stock=5
        ))
        counts['productos'] += 1

    existing_emails = {email for (email,) in session.query(Customer.email).all()}
    for name, email, phone, credit_limit in DEMO_CUSTOMERS:
        if email in existing_emails:
            continue
        session.add(Customer(name=name, email=email, phone=phone, credit_limit=Decimal(credit_limit)))
        counts['clientes'] += 1

    session.commit()
    return counts
