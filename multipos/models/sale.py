"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK
import enum


class SaleStatus(str, enum.Enum):
    """Sale status. A completed sale only moves to refunded or cancelled."""
    COMPLETED = 'completed'
    REFUNDED = 'refunded'
    CANCELLED = 'cancelled'


class Sale(Base):
    """Sale (venta confirmada). Immutable apart from status transitions."""

    __tablename__ = 'sale'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sale_number = Column(String(32), nullable=False, unique=True, index=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    tax = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    change_amount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')

    # First tender's method; every tender is in sale_payment
    payment_method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)

    # Customer-facing currency/language at the time of sale
    customer_language = Column(String(5), nullable=True)
    customer_currency = Column(String(3), nullable=True)
    exchange_rate = Column(Numeric(10, 6), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan')
    payments = relationship('SalePayment', back_populates='sale', cascade='all, delete-orphan',
                            order_by='SalePayment.id')

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'sale_number': self.sale_number,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
            'amount_paid': str(self.amount_paid),
            'change': str(self.change_amount),
            'payment_method': self.payment_method,
            'status': self.status,
            'customer_language': self.customer_language,
            'customer_currency': self.customer_currency,
            'exchange_rate': str(self.exchange_rate) if self.exchange_rate is not None else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
            data['payments'] = [payment.to_dict() for payment in self.payments]
        return data

    def __repr__(self):
        return f"<Sale(id={self.id}, number={self.sale_number}, total={self.total}, status={self.status})>"
