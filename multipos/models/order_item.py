"""Order Item model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from multipos.database import Base, BigIntPK


class OrderItem(Base):
    """Order line; name and price are snapshots taken when the order is placed."""

    __tablename__ = 'menu_order_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('menu_order.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'subtotal': str(self.subtotal),
        }
