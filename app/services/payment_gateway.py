import logging
from decimal import Decimal
from typing import Dict

import stripe
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when Stripe cannot create a payment"""
    pass


class StripePaymentGateway:
    """Stripe integration for takeover payments

    Stripe's client is blocking, calls run in the threadpool.
    """

    def __init__(self, api_key: str, currency: str = "eur"):
        if not api_key:
            raise ValueError("Stripe secret key is required")
        self.api_key = api_key
        self.currency = currency
        logger.debug("Stripe payment gateway initialized")

    async def create_payment_intent(self, amount: Decimal, metadata: Dict[str, str]) -> Dict[str, str]:
        """
        Create a payment intent for a bid
        Returns the client secret the frontend needs and the intent id
        """
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                amount=int((amount * 100).to_integral_value()),  # Stripe wants cents
                currency=self.currency,
                automatic_payment_methods={"enabled": True},
                metadata={**metadata, "purpose": "alpaca_hostile_takeover"},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create payment intent: {e}")
            raise PaymentGatewayError("Unable to initialize payment") from e

        if not intent.client_secret:
            raise PaymentGatewayError("Stripe did not return a client secret")

        logger.info(f"Payment intent created: {intent.id} amount={amount}")

        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
        }

    async def verify_payment(self, reference: str) -> bool:
        """A payment is valid only once Stripe reports it as succeeded"""
        if not reference:
            logger.warning("verify_payment called with an empty payment reference")
            return False

        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.retrieve,
                reference,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Payment verification failed for {reference}: {e}")
            return False

        verified = intent.status == "succeeded"
        logger.info(f"Payment verification {reference}: status={intent.status} verified={verified}")
        return verified
