"""Terminal connection model (payment provider OAuth credentials)."""
from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from multipos.database import Base, BigIntPK


class TerminalConnection(Base):
    """OAuth link between the store and a payment-terminal provider account."""

    __tablename__ = 'terminal_connection'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    provider = Column(String(30), nullable=False, unique=True)  # 'mercadopago'
    mp_user_id = Column(String(50), nullable=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    public_key = Column(String(200), nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    live_mode = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default='connected')
    device_id = Column(String(100), nullable=True)  # default Point device
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        # Tokens never leave the server
        return {
            'id': self.id,
            'provider': self.provider,
            'mp_user_id': self.mp_user_id,
            'public_key': self.public_key,
            'token_expires_at': self.token_expires_at.isoformat() if self.token_expires_at else None,
            'live_mode': self.live_mode,
            'status': self.status,
            'device_id': self.device_id,
        }

    def __repr__(self):
        return f"<TerminalConnection(id={self.id}, provider='{self.provider}', status='{self.status}')>"
