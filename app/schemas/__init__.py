"""Pydantic Schemas for Request/Response Validation"""
from app.schemas.alpaca import (
    AlpacaResponse,
    TransactionRecordResponse,
    BidRequest,
    CustomizeRequest,
    PaymentIntentRequest,
    PaymentIntentResponse,
)

__all__ = [
    "AlpacaResponse",
    "TransactionRecordResponse",
    "BidRequest",
    "CustomizeRequest",
    "PaymentIntentRequest",
    "PaymentIntentResponse",
]
