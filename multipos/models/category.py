"""Category model."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK


class Category(Base):
    """Product Category (optionally nested under a parent)."""

    __tablename__ = 'category'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    parent_id = Column(BigInteger, ForeignKey('category.id'), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    available_in_pos = Column(Boolean, nullable=False, default=True)
    available_in_digital_menu = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    parent = relationship('Category', remote_side=[id])
    products = relationship('Product', back_populates='category')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'parent_id': self.parent_id,
            'active': self.active,
            'available_in_pos': self.available_in_pos,
            'available_in_digital_menu': self.available_in_digital_menu,
        }

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
