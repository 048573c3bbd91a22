"""Database Models"""
from app.models.alpaca import AlpacaRow
from app.models.transaction import TransactionRow

__all__ = [
    "AlpacaRow",
    "TransactionRow",
]
