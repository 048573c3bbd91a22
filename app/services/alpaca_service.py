from decimal import Decimal
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging
import math

from app.domain.alpaca import Alpaca, InvalidBidError, utcnow
from app.domain.ports import AlpacaStore, SecretHasher, PaymentGateway
from app.config import settings

logger = logging.getLogger(__name__)


class AlpacaError(Exception):
    """Base class for business-rule failures"""
    pass


class AlpacaNotFoundError(AlpacaError):
    """Raised when no alpaca exists for the requested id"""

    def __init__(self, alpaca_id: int):
        self.alpaca_id = alpaca_id
        super().__init__(f"Alpaca {alpaca_id} not found")


class CooldownLockedError(AlpacaError):
    """Raised when a takeover is attempted inside the lock window"""

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Asset LOCKED. Cooldown active for another {remaining_seconds} seconds."
        )


class ForbiddenError(AlpacaError):
    """Raised when customization is attempted without the owner's password"""

    def __init__(self, reason: str):
        # "missing" or "mismatch", for logs only
        self.reason = reason
        super().__init__("Access denied")


class PaymentVerificationError(AlpacaError):
    """Raised when a supplied payment token does not verify"""
    pass


class BidLimitExceededError(AlpacaError):
    """Raised when an unverified bid exceeds the beta sanity cap"""
    pass


class PaymentUnavailableError(AlpacaError):
    """Raised when a payment is requested but no gateway is configured"""
    pass


class AlpacaService:
    """Alpaca Service - Hostile takeovers and owner customization

    Collaborators are injected so the policy can run against any store,
    hasher, payment gateway and clock.
    """

    def __init__(
        self,
        store: AlpacaStore,
        hasher: SecretHasher,
        payment_gateway: Optional[PaymentGateway] = None,
        clock: Callable[[], datetime] = utcnow,
        cooldown: Optional[timedelta] = None,
        max_unverified_bid: Optional[Decimal] = None,
    ):
        self.store = store
        self.hasher = hasher
        self.payment_gateway = payment_gateway
        self.clock = clock
        self.cooldown = cooldown if cooldown is not None else timedelta(seconds=settings.COOLDOWN_SECONDS)
        self.max_unverified_bid = (
            max_unverified_bid if max_unverified_bid is not None else settings.MAX_UNVERIFIED_BID
        )

    def cooldown_remaining(self, alpaca: Alpaca, now: Optional[datetime] = None) -> int:
        """Whole seconds until the alpaca can change hands again (0 when unlocked)"""
        now = now or self.clock()
        elapsed = now - alpaca.last_transfer_at
        if elapsed >= self.cooldown:
            return 0
        return math.ceil((self.cooldown - elapsed).total_seconds())

    def locked_until(self, alpaca: Alpaca) -> datetime:
        return alpaca.last_transfer_at + self.cooldown

    async def _get_alpaca(self, alpaca_id: int, for_update: bool = False) -> Alpaca:
        alpaca = await self.store.get_by_id(alpaca_id, for_update=for_update)
        if not alpaca:
            raise AlpacaNotFoundError(alpaca_id)
        return alpaca

    async def _check_payment(self, amount: Decimal, payment_token: Optional[str]) -> None:
        """
        Verify the payment when a gateway and a token are both present
        Otherwise only the beta cap applies
        """
        if self.payment_gateway is not None and payment_token:
            if not await self.payment_gateway.verify_payment(payment_token):
                raise PaymentVerificationError("Payment could not be verified")
            return

        if amount > self.max_unverified_bid:
            raise BidLimitExceededError(
                f"Amount {amount} exceeds the limit of {self.max_unverified_bid} for unverified bids"
            )

    async def list_alpacas(self) -> List[Alpaca]:
        return await self.store.get_all()

    async def get_alpaca(self, alpaca_id: int) -> Alpaca:
        return await self._get_alpaca(alpaca_id)

    async def bid_on_alpaca(
        self,
        alpaca_id: int,
        amount: Decimal,
        new_owner: str,
        password: str,
        payment_token: Optional[str] = None,
    ) -> Alpaca:
        """
        Hostile takeover

        Cooldown is checked before the bid amount, so a locked alpaca reports
        the lock even for a losing bid. Nothing is persisted on any failure.
        """
        alpaca = await self._get_alpaca(alpaca_id, for_update=True)
        now = self.clock()

        remaining = self.cooldown_remaining(alpaca, now)
        if remaining > 0:
            logger.info(f"Alpaca {alpaca_id} locked for another {remaining}s, bid rejected")
            raise CooldownLockedError(remaining)

        if not alpaca.is_bid_acceptable(amount):
            logger.info(f"Bid {amount} on alpaca {alpaca_id} rejected, current value {alpaca.valuation}")
            raise InvalidBidError(amount, alpaca.valuation)

        await self._check_payment(amount, payment_token)

        password_hash = self.hasher.hash(password)

        previous_owner = alpaca.owner_name
        alpaca.transfer_ownership(new_owner, amount, password_hash, now=now)

        saved = await self.store.save(alpaca)

        logger.info(
            f"Alpaca {alpaca_id} taken over by '{new_owner}' from '{previous_owner}' for {amount}"
        )
        return saved

    async def customize_alpaca(
        self,
        alpaca_id: int,
        password: Optional[str],
        changes: Mapping[str, Any],
    ) -> Alpaca:
        """
        Update cosmetic fields

        System-owned alpacas can be customized by anyone, every other alpaca
        needs its owner's password.
        The row is locked like a bid, so a takeover cannot land between the
        password check and the save.
        """
        alpaca = await self._get_alpaca(alpaca_id, for_update=True)

        if not alpaca.is_system_owned:
            if not password:
                logger.info(f"Customization of alpaca {alpaca_id} denied: password missing")
                raise ForbiddenError("missing")
            if not self.hasher.verify(password, alpaca.owner_secret_hash):
                logger.info(f"Customization of alpaca {alpaca_id} denied: password mismatch")
                raise ForbiddenError("mismatch")

        alpaca.apply_customization(changes)

        saved = await self.store.save(alpaca)
        logger.info(f"Alpaca {alpaca_id} customized: {', '.join(sorted(changes)) or 'no changes'}")
        return saved

    async def create_payment_intent(self, alpaca_id: int, amount: Decimal, bidder: str) -> Dict[str, str]:
        """Start a Stripe payment for a bid that would currently win"""
        if self.payment_gateway is None:
            raise PaymentUnavailableError("Payments are not configured")

        alpaca = await self._get_alpaca(alpaca_id)

        if not alpaca.is_bid_acceptable(amount):
            raise InvalidBidError(amount, alpaca.valuation)

        return await self.payment_gateway.create_payment_intent(
            amount,
            {"alpaca_id": str(alpaca_id), "bidder": bidder},
        )
