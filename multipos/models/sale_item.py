"""Sale Item model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from multipos.database import Base, BigIntPK


class SaleItem(Base):
    """Sale Item (detalle de venta), one per cart line."""

    __tablename__ = 'sale_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)  # list price x quantity
    discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')  # line discount amount

    # Relationships
    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
        }

    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
