"""Models package - exports all SQLAlchemy models."""
from multipos.models.category import Category
from multipos.models.product import Product
from multipos.models.customer import Customer
from multipos.models.sale import Sale, SaleStatus
from multipos.models.sale_item import SaleItem
from multipos.models.sale_payment import SalePayment
from multipos.models.store_config import StoreConfig
from multipos.models.order import Order, OrderStatus
from multipos.models.order_item import OrderItem
from multipos.models.terminal_connection import TerminalConnection

__all__ = [
    'Category', 'Product', 'Customer',
    'Sale', 'SaleStatus', 'SaleItem', 'SalePayment',
    'StoreConfig', 'TerminalConnection',
    'Order', 'OrderStatus', 'OrderItem',
]
