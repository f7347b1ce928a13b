"""
Stripe Checkout implementation of the payment gateway.

The API key is passed on every call instead of being set on the stripe
module, so several gateways (or tests) can coexist in one process. The
stripe client is synchronous and runs in a worker thread.
"""

import asyncio
import json
import time
from typing import Optional

import stripe

from app.core.config import Settings
from app.core.errors import PaymentGatewayError, SignatureInvalid
from app.core.logging import get_logger
from app.services.interfaces.payment_gateway import (
    PayableIntent,
    PaymentEvent,
    PaymentEventType,
    PaymentGateway,
)

logger = get_logger(__name__)

# Stripe rejects checkout sessions that expire sooner than this.
MIN_SESSION_LIFETIME_SECONDS = 30 * 60

_EVENT_TYPES = {
    "checkout.session.completed": PaymentEventType.COMPLETED,
    "checkout.session.expired": PaymentEventType.EXPIRED,
}


class StripePaymentGateway(PaymentGateway):

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        site_url: str,
        tolerance_seconds: int = 300,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.site_url = site_url.rstrip("/")
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripePaymentGateway":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            site_url=settings.SITE_URL,
            tolerance_seconds=settings.STRIPE_WEBHOOK_TOLERANCE,
        )

    async def create_payable_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
        customer_email: Optional[str] = None,
    ) -> PayableIntent:
        if not self.secret_key:
            raise PaymentGatewayError("Payment gateway is not configured")

        is_gift = metadata.get("purchase_type") == "gift"
        product = "Gift certificate" if is_gift else "Booking"
        path = "gift-certificates" if is_gift else "booking"

        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {"name": product, "description": description},
                    "unit_amount": amount_cents,
                },
                "quantity": 1,
            }],
            "metadata": metadata,
            "success_url": f"{self.site_url}/{path}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.site_url}/{path}/cancel?session_id={{CHECKOUT_SESSION_ID}}",
            "expires_at": int(time.time()) + MIN_SESSION_LIFETIME_SECONDS,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self.secret_key, **params
            )
        except stripe.StripeError as e:
            logger.error("stripe_checkout_failed", error=str(e), error_type=type(e).__name__)
            raise PaymentGatewayError("Could not create payment session") from e

        logger.info("stripe_checkout_created", session_id=session.id, amount_cents=amount_cents)
        return PayableIntent(id=session.id, redirect_url=session.url)

    def parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if not self.webhook_secret:
            raise SignatureInvalid("Webhook secret is not configured")
        if not signature:
            raise SignatureInvalid("Missing signature header")

        # Verify signature BEFORE parsing
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                self.tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise SignatureInvalid("Invalid webhook signature") from e

        try:
            body = json.loads(payload)
        except ValueError as e:
            raise SignatureInvalid("Malformed webhook payload") from e

        raw_type = body.get("type", "")
        data_object = body.get("data", {}).get("object", {}) or {}
        metadata = data_object.get("metadata") or {}
        return PaymentEvent(
            id=body.get("id", ""),
            type=_EVENT_TYPES.get(raw_type, PaymentEventType.OTHER),
            reference=data_object.get("id"),
            metadata={str(k): str(v) for k, v in metadata.items()},
            raw_type=raw_type,
        )
