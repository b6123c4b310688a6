"""Store configuration model (white label settings)."""
from sqlalchemy import Column, String, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK


class StoreConfig(Base):
    """Store-wide settings: branding, defaults and tax rate."""

    __tablename__ = 'store_config'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    business_name = Column(String(200), nullable=False)
    domain = Column(String(200), nullable=True, unique=True)
    logo_url = Column(String(500), nullable=True)
    primary_color = Column(String(7), nullable=False, default='#3b82f6')
    secondary_color = Column(String(7), nullable=False, default='#64748b')
    accent_color = Column(String(7), nullable=False, default='#8b5cf6')
    default_language = Column(String(5), nullable=False, default='es')
    default_currency = Column(String(3), nullable=False, default='MXN')
    tax_rate = Column(Numeric(5, 2), nullable=False, default=16)  # percent
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'business_name': self.business_name,
            'domain': self.domain,
            'logo_url': self.logo_url,
            'primary_color': self.primary_color,
            'secondary_color': self.secondary_color,
            'accent_color': self.accent_color,
            'default_language': self.default_language,
            'default_currency': self.default_currency,
            'tax_rate': str(self.tax_rate),
            'active': self.active,
        }

    def __repr__(self):
        return f"<StoreConfig(id={self.id}, business_name='{self.business_name}')>"
