"""Alpaca entity - the ownership-transfer state machine

Pure in-memory logic. Persistence lives in app.repositories, policy
(cooldown, payments, hashing) lives in app.services.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional


SYSTEM_OWNER = "System DAO"

# Never-transferred alpacas are never cooldown-locked
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_COAT_COLOR = "White"
DEFAULT_PEN_COLOR = "#795548"

CUSTOMIZABLE_FIELDS = frozenset({
    "display_name",
    "coat_color",
    "accessory",
    "pen_color",
    "background_image",
})


class AccessoryType(str, enum.Enum):
    """Accessories an owner can dress an alpaca with"""
    NONE = "None"
    GOLD_CHAIN = "Gold Chain"
    SILK_SCARF = "Silk Scarf"
    TOP_HAT = "Top Hat"
    DIAMOND_STUD = "Diamond Stud"


class InvalidBidError(Exception):
    """Raised when a bid does not strictly exceed the current valuation"""

    def __init__(self, amount, current_value):
        self.amount = amount
        self.current_value = current_value
        super().__init__(
            f"Bid amount {amount} must be greater than current value {current_value}"
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_display_name(alpaca_id: int) -> str:
    return f"Alpaca #{alpaca_id}"


@dataclass(frozen=True)
class TransactionRecord:
    """One ownership change. `id` stays None until the row is persisted."""
    occurred_at: datetime
    previous_owner_name: str
    new_owner_name: str
    settled_amount: Decimal
    id: Optional[int] = None


@dataclass
class Alpaca:
    id: int
    display_name: str
    coat_color: str
    accessory: AccessoryType
    valuation: Decimal
    owner_name: str
    pen_color: str = DEFAULT_PEN_COLOR
    background_image: Optional[str] = None
    owner_secret_hash: Optional[str] = None
    last_transfer_at: datetime = EPOCH
    ledger: List[TransactionRecord] = field(default_factory=list)

    @classmethod
    def provision(cls, alpaca_id: int, valuation: Decimal, now: datetime = EPOCH) -> "Alpaca":
        """Create a fresh, system-owned alpaca in factory condition"""
        return cls(
            id=alpaca_id,
            display_name=default_display_name(alpaca_id),
            coat_color=DEFAULT_COAT_COLOR,
            accessory=AccessoryType.NONE,
            valuation=valuation,
            owner_name=SYSTEM_OWNER,
            last_transfer_at=now,
        )

    @property
    def is_system_owned(self) -> bool:
        return self.owner_name == SYSTEM_OWNER

    def is_bid_acceptable(self, amount) -> bool:
        """Strictly greater than the current valuation; ties never win."""
        return amount > self.valuation

    def transfer_ownership(
        self,
        new_owner_name: str,
        new_amount: Decimal,
        new_secret_hash: str,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Hand the alpaca over to a new owner.

        Records the transaction at the head of the ledger, restores factory
        cosmetics and moves owner, valuation, secret and cooldown timestamp
        to the new values. Raises InvalidBidError without touching any state
        when the amount does not beat the current valuation.
        """
        if not self.is_bid_acceptable(new_amount):
            raise InvalidBidError(new_amount, self.valuation)

        now = now or utcnow()

        # Recorded before the reset so the previous owner is captured
        self.ledger.insert(0, TransactionRecord(
            occurred_at=now,
            previous_owner_name=self.owner_name,
            new_owner_name=new_owner_name,
            settled_amount=new_amount,
        ))

        self.reset_cosmetics()

        self.owner_name = new_owner_name
        self.valuation = new_amount
        self.owner_secret_hash = new_secret_hash
        self.last_transfer_at = now

    def reset_cosmetics(self) -> None:
        self.display_name = default_display_name(self.id)
        self.coat_color = DEFAULT_COAT_COLOR
        self.accessory = AccessoryType.NONE
        self.pen_color = DEFAULT_PEN_COLOR
        self.background_image = None

    def apply_customization(self, changes: Mapping[str, Any]) -> None:
        """Apply only the cosmetic fields present in `changes`"""
        unknown = set(changes) - CUSTOMIZABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be customized: {', '.join(sorted(unknown))}")

        for name, value in changes.items():
            if name == "accessory":
                value = AccessoryType(value)
            setattr(self, name, value)
