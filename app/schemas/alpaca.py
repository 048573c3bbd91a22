"""Alpaca Schemas - Request/Response Models"""
from pydantic import BaseModel, Field, validator
from decimal import Decimal
from datetime import datetime
from typing import Optional, List

from app.domain.alpaca import AccessoryType


def _check_amount(v: Decimal) -> Decimal:
    if v <= 0:
        raise ValueError('Amount must be greater than 0')
    if v.as_tuple().exponent < -2:
        raise ValueError('Amount cannot have more than 2 decimal places')
    return v


MAX_PASSWORD_BYTES = 72


def _check_password_bytes(v: Optional[str]) -> Optional[str]:
    # bcrypt only looks at the first 72 bytes of the UTF-8 encoding
    if v is not None and len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return v


class BidRequest(BaseModel):
    """Request schema for a hostile takeover"""
    amount: Decimal = Field(..., gt=0, description="Bid amount (must beat the current value)")
    new_owner: str = Field(..., min_length=1, max_length=50, description="Name of the new owner")
    password: str = Field(..., min_length=1, description="Password protecting future customization")
    payment_token: Optional[str] = Field(None, description="Stripe payment intent id")

    @validator('amount')
    def validate_amount(cls, v):
        return _check_amount(v)

    @validator('password')
    def validate_password(cls, v):
        return _check_password_bytes(v)


class CustomizeRequest(BaseModel):
    """Request schema for cosmetic updates

    Only the fields present in the body are applied. Sending
    `"background_image": null` removes the background.
    """
    password: Optional[str] = Field(None, description="Owner password (not needed for System DAO alpacas)")
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    coat_color: Optional[str] = Field(None, min_length=1, max_length=50)
    accessory: Optional[AccessoryType] = None
    pen_color: Optional[str] = Field(None, min_length=1, max_length=50)
    background_image: Optional[str] = Field(None, max_length=500)

    @validator('display_name', 'coat_color', 'accessory', 'pen_color')
    def not_clearable(cls, v):
        if v is None:
            raise ValueError('Field cannot be cleared')
        return v

    @validator('password')
    def validate_password(cls, v):
        return _check_password_bytes(v)

    def cosmetic_changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"password"})


class PaymentIntentRequest(BaseModel):
    """Request schema for starting a takeover payment"""
    amount: Decimal = Field(..., gt=0)
    bidder: str = Field(..., min_length=1, max_length=50)

    @validator('amount')
    def validate_amount(cls, v):
        return _check_amount(v)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class TransactionRecordResponse(BaseModel):
    """Response schema for one ledger entry"""
    occurred_at: datetime
    previous_owner: str
    new_owner: str
    amount: Decimal


class AlpacaResponse(BaseModel):
    """Response schema for an alpaca with its full history (most recent first)"""
    id: int
    name: str
    color: str
    accessory: AccessoryType
    stable_color: str
    background_image: Optional[str]
    current_value: Decimal
    owner_name: str
    last_transfer_at: datetime
    locked_until: datetime
    cooldown_remaining_seconds: int
    history: List[TransactionRecordResponse]
