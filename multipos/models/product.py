"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK


class Product(Base):
    """Product model."""

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sku = Column(String(64), nullable=False, unique=True)
    barcode = Column(String(64), nullable=True, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(BigInteger, ForeignKey('category.id'), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False, default=0, server_default='0.00')  # Precio de compra
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    min_stock = Column(Integer, nullable=False, default=0, server_default='0')
    max_stock = Column(Integer, nullable=False, default=1000, server_default='1000')
    image_url = Column(String(500), nullable=True)
    # Never hard-deleted: sale_item rows keep pointing here
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    category = relationship('Category', back_populates='products')

    @property
    def is_low_stock(self):
        return self.stock <= self.min_stock

    def to_dict(self):
        return {
            'id': self.id,
            'sku': self.sku,
            'barcode': self.barcode,
            'name': self.name,
            'description': self.description,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category else None,
            'price': str(self.price),
            'cost': str(self.cost),
            'stock': self.stock,
            'min_stock': self.min_stock,
            'max_stock': self.max_stock,
            'image_url': self.image_url,
            'active': self.active,
            'is_low_stock': self.is_low_stock,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"
