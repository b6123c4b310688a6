"""Sale Payment model for split tenders."""
from sqlalchemy import Column, BigInteger, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from multipos.database import Base, BigIntPK


class SalePayment(Base):
    """
    Sale Payment - one tender applied to a sale.

    Allows mixed payment methods (e.g., CASH + CARD).
    Multiple payments can be associated with a single sale.
    """

    __tablename__ = 'sale_payment'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)

    payment_method = Column(String(20), nullable=False)  # cash, card, transfer, credit, terminal
    amount = Column(Numeric(10, 2), nullable=False)

    # Card authorization code or terminal payment intent id
    reference = Column(String(100), nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'method': self.payment_method,
            'amount': str(self.amount),
            'reference': self.reference,
        }

    def __repr__(self):
        return f"<SalePayment(id={self.id}, sale_id={self.sale_id}, method={self.payment_method}, amount={self.amount})>"
