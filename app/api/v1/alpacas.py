from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from app.config import settings
from app.database import get_db
from app.domain.alpaca import Alpaca, InvalidBidError
from app.repositories import AlpacaRepository
from app.schemas.alpaca import (
    AlpacaResponse,
    TransactionRecordResponse,
    BidRequest,
    CustomizeRequest,
    PaymentIntentRequest,
    PaymentIntentResponse,
)
from app.services.alpaca_service import (
    AlpacaService,
    AlpacaNotFoundError,
    CooldownLockedError,
    ForbiddenError,
    PaymentVerificationError,
    BidLimitExceededError,
    PaymentUnavailableError,
)
from app.services.payment_gateway import StripePaymentGateway, PaymentGatewayError
from app.services.security import BcryptHasher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alpacas", tags=["Alpacas"])


def get_hasher() -> BcryptHasher:
    return BcryptHasher(rounds=settings.BCRYPT_ROUNDS)


def get_payment_gateway() -> Optional[StripePaymentGateway]:
    """Stripe is optional, without a key bids fall back to the beta cap"""
    if not settings.STRIPE_SECRET_KEY:
        return None
    return StripePaymentGateway(settings.STRIPE_SECRET_KEY, currency=settings.PAYMENT_CURRENCY)


def get_alpaca_service(
    db: AsyncSession = Depends(get_db),
    hasher: BcryptHasher = Depends(get_hasher),
    payment_gateway: Optional[StripePaymentGateway] = Depends(get_payment_gateway),
) -> AlpacaService:
    return AlpacaService(
        store=AlpacaRepository(db),
        hasher=hasher,
        payment_gateway=payment_gateway,
    )


def _to_response(service: AlpacaService, alpaca: Alpaca) -> AlpacaResponse:
    return AlpacaResponse(
        id=alpaca.id,
        name=alpaca.display_name,
        color=alpaca.coat_color,
        accessory=alpaca.accessory,
        stable_color=alpaca.pen_color,
        background_image=alpaca.background_image,
        current_value=alpaca.valuation,
        owner_name=alpaca.owner_name,
        last_transfer_at=alpaca.last_transfer_at,
        locked_until=service.locked_until(alpaca),
        cooldown_remaining_seconds=service.cooldown_remaining(alpaca),
        history=[
            TransactionRecordResponse(
                occurred_at=r.occurred_at,
                previous_owner=r.previous_owner_name,
                new_owner=r.new_owner_name,
                amount=r.settled_amount,
            )
            for r in alpaca.ledger
        ],
    )


def _not_found(e: AlpacaNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "Alpaca Not Found",
            "message": str(e),
            "alpaca_id": e.alpaca_id
        }
    )


def _invalid_bid(e: InvalidBidError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "error": "Bid Too Low",
            "message": str(e),
            "requested_amount": str(e.amount),
            "current_value": str(e.current_value)
        }
    )


@router.get("", response_model=List[AlpacaResponse])
async def list_alpacas(service: AlpacaService = Depends(get_alpaca_service)):
    """
    List the whole herd with each alpaca's history

    Example:
    ```
    GET /api/v1/alpacas
    ```
    """
    try:
        alpacas = await service.list_alpacas()
        return [_to_response(service, a) for a in alpacas]

    except Exception as e:
        logger.error(f"List alpacas failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Failed to List Alpacas",
                "message": str(e),
                "type": type(e).__name__
            }
        )


@router.get("/{alpaca_id}", response_model=AlpacaResponse)
async def get_alpaca(alpaca_id: int, service: AlpacaService = Depends(get_alpaca_service)):
    """Get one alpaca with its history"""
    try:
        alpaca = await service.get_alpaca(alpaca_id)
        return _to_response(service, alpaca)

    except AlpacaNotFoundError as e:
        raise _not_found(e)
    except Exception as e:
        logger.error(f"Get alpaca failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Failed to Get Alpaca",
                "message": str(e),
                "type": type(e).__name__
            }
        )


@router.post("/{alpaca_id}/bid", response_model=AlpacaResponse)
async def bid_on_alpaca(
    alpaca_id: int,
    request: BidRequest,
    db: AsyncSession = Depends(get_db),
    service: AlpacaService = Depends(get_alpaca_service),
):
    """
    Hostile takeover

    The bid must be strictly higher than the current value and the alpaca
    must not have changed hands in the last 5 minutes. The new owner's
    cosmetics start from factory defaults.

    Example:
    ```
    POST /api/v1/alpacas/1/bid
    Body: {
        "amount": 150.00,
        "new_owner": "Alice",
        "password": "correct horse battery staple"
    }
    ```
    """
    try:
        alpaca = await service.bid_on_alpaca(
            alpaca_id=alpaca_id,
            amount=request.amount,
            new_owner=request.new_owner,
            password=request.password,
            payment_token=request.payment_token
        )

        response = _to_response(service, alpaca)

        await db.commit()

        return response

    except AlpacaNotFoundError as e:
        raise _not_found(e)
    except CooldownLockedError as e:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={
                "error": "Alpaca Locked",
                "message": str(e),
                "alpaca_id": alpaca_id,
                "remaining_seconds": e.remaining_seconds
            },
            headers={"Retry-After": str(e.remaining_seconds)}
        )
    except InvalidBidError as e:
        raise _invalid_bid(e)
    except PaymentVerificationError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "Payment Not Verified",
                "message": str(e),
                "alpaca_id": alpaca_id
            }
        )
    except BidLimitExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Bid Limit Exceeded",
                "message": str(e),
                "requested_amount": str(request.amount)
            }
        )
    except Exception as e:
        await db.rollback()
        logger.error(f"Bid failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Takeover Failed",
                "message": f"Takeover failed: {str(e)}",
                "type": type(e).__name__
            }
        )


@router.patch("/{alpaca_id}", response_model=AlpacaResponse)
async def customize_alpaca(
    alpaca_id: int,
    request: CustomizeRequest,
    db: AsyncSession = Depends(get_db),
    service: AlpacaService = Depends(get_alpaca_service),
):
    """
    Customize an alpaca

    Only the owner (proven by password) may customize, System DAO alpacas
    are open to everyone. Fields left out of the body are untouched.

    Example:
    ```
    PATCH /api/v1/alpacas/1
    Body: {
        "password": "correct horse battery staple",
        "display_name": "Sir Fluffington",
        "accessory": "Top Hat"
    }
    ```
    """
    try:
        alpaca = await service.customize_alpaca(
            alpaca_id=alpaca_id,
            password=request.password,
            changes=request.cosmetic_changes()
        )

        response = _to_response(service, alpaca)

        await db.commit()

        return response

    except AlpacaNotFoundError as e:
        raise _not_found(e)
    except ForbiddenError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "Forbidden",
                "message": "Access denied",
                "alpaca_id": alpaca_id
            }
        )
    except Exception as e:
        await db.rollback()
        logger.error(f"Customization failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Customization Failed",
                "message": str(e),
                "type": type(e).__name__
            }
        )


@router.post("/{alpaca_id}/payment-intent", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    alpaca_id: int,
    request: PaymentIntentRequest,
    service: AlpacaService = Depends(get_alpaca_service),
):
    """
    Start a Stripe payment for a takeover bid

    The returned client secret is used by the frontend to collect the card,
    the payment intent id is then sent as `payment_token` with the bid.
    """
    try:
        intent = await service.create_payment_intent(
            alpaca_id=alpaca_id,
            amount=request.amount,
            bidder=request.bidder
        )
        return PaymentIntentResponse(**intent)

    except PaymentUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "Payments Unavailable",
                "message": str(e)
            }
        )
    except AlpacaNotFoundError as e:
        raise _not_found(e)
    except InvalidBidError as e:
        raise _invalid_bid(e)
    except PaymentGatewayError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "Payment Provider Error",
                "message": str(e)
            }
        )
    except Exception as e:
        logger.error(f"Payment intent failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Payment Intent Failed",
                "message": str(e),
                "type": type(e).__name__
            }
        )
