"""Customer model."""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK


class Customer(Base):
    """Customer (cliente) with store credit and loyalty points."""

    __tablename__ = 'customer'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    credit_limit = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    credit_balance = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    loyalty_points = Column(Integer, nullable=False, default=0, server_default='0')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='customer')

    @property
    def available_credit(self):
        """Credit still available: limit - balance."""
        return Decimal(str(self.credit_limit or 0)) - Decimal(str(self.credit_balance or 0))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'credit_limit': str(self.credit_limit),
            'credit_balance': str(self.credit_balance),
            'available_credit': str(self.available_credit),
            'loyalty_points': self.loyalty_points,
            'active': self.active,
        }

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
