"""Payment gateway wrapper (Stripe PaymentIntents).

The storefront never handles card data. Checkout asks the gateway for a
payment with an amount, a description and prefilled contact fields; the
browser completes it with the returned client secret, and the server then
confirms the outcome:

- success → ``PaymentResult(success=True, payment_id, order_id)`` plus the
  captured amount (minor units) and currency
- failure → ``PaymentResult(success=False, description=...)``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import stripe

from storefront.backend.errors import PaymentFailed

logger = logging.getLogger(__name__)


@dataclass
class PaymentPrefill:
    name: str = ""
    email: str = ""
    contact: str = ""


@dataclass
class PaymentHandle:
    """A created, not yet completed payment."""

    payment_id: str
    client_secret: str | None
    amount: float
    currency: str
    order_ref: str


@dataclass
class PaymentResult:
    success: bool
    payment_id: str | None = None
    order_id: str | None = None
    description: str = ""
    amount_minor: int | None = None
    currency: str | None = None
    user_id: str | None = None


def to_minor_units(amount: float) -> int:
    """Rupees (or dollars) → paise (or cents)."""
    return int(round(amount * 100))


class StripeGateway:
    """Creates and confirms PaymentIntents with a per-call API key."""

    def __init__(self, api_key: str | None, currency: str = "inr"):
        self.api_key = api_key
        self.currency = currency

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> None:
        if not self.api_key:
            raise PaymentFailed("Payments are not configured. Set STRIPE_SECRET_KEY.")

    def create_payment(
        self,
        amount: float,
        description: str,
        prefill: PaymentPrefill,
        order_ref: str,
        user_id: str = "",
    ) -> PaymentHandle:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=to_minor_units(amount),
                currency=self.currency,
                description=description,
                receipt_email=prefill.email or None,
                metadata={
                    "order_ref": order_ref,
                    "customer_name": prefill.name,
                    "contact": prefill.contact,
                    "user_id": user_id,
                },
            )
        except stripe.StripeError as exc:
            logger.error("Payment creation failed: %s", exc)
            raise PaymentFailed(getattr(exc, "user_message", None) or str(exc)) from exc

        logger.info("Created payment %s for %s %.2f", intent.id, self.currency, amount)
        return PaymentHandle(
            payment_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=self.currency,
            order_ref=order_ref,
        )

    def confirm(self, payment_id: str) -> PaymentResult:
        """Look up ``payment_id`` and report whether it succeeded."""
        self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Payment lookup failed for %s: %s", payment_id, exc)
            return PaymentResult(success=False, payment_id=payment_id, description=str(exc))

        if intent.status == "succeeded":
            return PaymentResult(
                success=True,
                payment_id=intent.id,
                order_id=getattr(intent.metadata, "order_ref", None),
                amount_minor=intent.amount,
                currency=intent.currency,
                user_id=getattr(intent.metadata, "user_id", None) or None,
            )

        error = getattr(intent, "last_payment_error", None)
        description = getattr(error, "message", None) or f"Payment {intent.status}"
        return PaymentResult(success=False, payment_id=intent.id, description=description)
