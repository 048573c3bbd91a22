"""Storage adapters"""
from app.repositories.alpaca_repository import AlpacaRepository

__all__ = [
    "AlpacaRepository",
]
