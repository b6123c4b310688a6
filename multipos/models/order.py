"""Digital menu order model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK
import enum


class OrderStatus(str, enum.Enum):
    """Kitchen flow of an order placed from the shared menu."""
    PENDING = 'pending'
    PREPARING = 'preparing'
    READY = 'ready'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class Order(Base):
    """Order (pedido) placed by a guest from the digital menu. Does not touch stock."""

    __tablename__ = 'menu_order'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    customer_name = Column(String(200), nullable=True)
    table_number = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default='MXN')
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'order_number': self.order_number,
            'customer_name': self.customer_name,
            'table_number': self.table_number,
            'notes': self.notes,
            'currency': self.currency,
            'total': str(self.total),
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"
