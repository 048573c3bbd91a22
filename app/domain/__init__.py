"""Domain Entities"""
from app.domain.alpaca import (
    Alpaca,
    AccessoryType,
    TransactionRecord,
    InvalidBidError,
    SYSTEM_OWNER,
    EPOCH,
)

__all__ = [
    "Alpaca",
    "AccessoryType",
    "TransactionRecord",
    "InvalidBidError",
    "SYSTEM_OWNER",
    "EPOCH",
]
