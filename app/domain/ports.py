"""Capabilities the alpaca service depends on"""
from decimal import Decimal
from typing import Dict, List, Optional, Protocol

from app.domain.alpaca import Alpaca


class AlpacaStore(Protocol):
    """Loads and persists alpacas together with their ledger"""

    async def get_by_id(self, alpaca_id: int, for_update: bool = False) -> Optional[Alpaca]:
        ...

    async def get_all(self) -> List[Alpaca]:
        ...

    async def save(self, alpaca: Alpaca) -> Alpaca:
        """Persist the alpaca fields and insert ledger records that have no id yet"""
        ...


class SecretHasher(Protocol):
    """One-way, verifiable hashing of owner passwords"""

    def hash(self, plaintext: str) -> str:
        ...

    def verify(self, plaintext: str, hashed: Optional[str]) -> bool:
        ...


class PaymentGateway(Protocol):
    """External payment provider, consulted as a pass/fail gate"""

    async def verify_payment(self, reference: str) -> bool:
        ...

    async def create_payment_intent(self, amount: Decimal, metadata: Dict[str, str]) -> Dict[str, str]:
        ...
