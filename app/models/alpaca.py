"""Alpaca Model - The scarce asset row"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum
from sqlalchemy.sql import func
from app.database import Base
from app.domain.alpaca import AccessoryType


class AlpacaRow(Base):
    """Alpaca Model

    Current state of one alpaca. Ownership history lives in `transactions`.
    """
    __tablename__ = "alpacas"

    id = Column(Integer, primary_key=True, index=True, autoincrement=False)
    name = Column(String(100), nullable=False)
    color = Column(String(50), nullable=False)
    accessory = Column(Enum(AccessoryType), nullable=False, default=AccessoryType.NONE)
    stable_color = Column(String(50), nullable=False)
    background_image = Column(String(500))

    current_value = Column(Numeric(precision=20, scale=2), nullable=False)
    owner_name = Column(String(50), nullable=False)
    password_hash = Column(String(255))  # bcrypt hash, never plaintext
    last_transfer_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<AlpacaRow(id={self.id}, owner='{self.owner_name}', value={self.current_value})>"
