"""
Customer gift certificate purchases.

A purchase issues a gift code in ``pending`` status, which no checkout
accepts, and sends the buyer to the gateway. The payment event settles it:

  completed: pending -> active (a redelivery finds it active and does nothing)
  expired:   pending -> expired
"""

import time
from dataclasses import dataclass
from datetime import timedelta

from app.core.clock import Clock, utcnow
from app.core.config import Settings
from app.core.errors import BookingEngineError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import checkout_latency, record_checkout
from app.domain.models import ContactInfo, DiscountCode, DiscountStatus
from app.services.discount_service import DiscountCodeService
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.payment_metadata import GiftPurchaseMetadata

logger = get_logger(__name__)

PRESET_AMOUNTS_CENTS = (2500, 5000, 10000)
MIN_CUSTOM_AMOUNT_CENTS = 1000
MAX_CUSTOM_AMOUNT_CENTS = 50000


@dataclass(frozen=True)
class GiftPurchaseRequest:
    amount_cents: int
    purchaser: ContactInfo
    recipient_email: str
    recipient_name: str = ""


@dataclass(frozen=True)
class GiftPurchaseResult:
    gift_code: DiscountCode
    checkout_url: str
    payment_reference: str


class GiftPurchaseService:

    def __init__(
        self,
        discounts: DiscountCodeService,
        gateway: PaymentGateway,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        self.discounts = discounts
        self.gateway = gateway
        self.validity = timedelta(days=settings.GIFT_VALIDITY_DAYS)
        self.currency = settings.GIFT_CURRENCY
        self.clock = clock

    @staticmethod
    def _validate(request: GiftPurchaseRequest) -> None:
        amount = request.amount_cents
        if amount not in PRESET_AMOUNTS_CENTS and not (
            MIN_CUSTOM_AMOUNT_CENTS <= amount <= MAX_CUSTOM_AMOUNT_CENTS
        ):
            raise ValidationError(
                f"Gift amount must be between {MIN_CUSTOM_AMOUNT_CENTS} and {MAX_CUSTOM_AMOUNT_CENTS} cents"
            )
        purchaser = request.purchaser
        if not purchaser.first_name.strip() or not purchaser.last_name.strip():
            raise ValidationError("Purchaser first and last name are required")
        if "@" not in purchaser.email or "@" not in request.recipient_email:
            raise ValidationError("Valid purchaser and recipient email addresses are required")

    async def purchase(self, request: GiftPurchaseRequest) -> GiftPurchaseResult:
        start = time.perf_counter()
        try:
            result = await self._purchase(request)
        except BookingEngineError as e:
            record_checkout(f"gift_{e.code.value.lower()}")
            raise
        finally:
            checkout_latency.observe(time.perf_counter() - start)

        record_checkout("gift_payment_required")
        return result

    async def _purchase(self, request: GiftPurchaseRequest) -> GiftPurchaseResult:
        self._validate(request)

        gift_code = await self.discounts.issue_gift_code(
            value_cents=request.amount_cents,
            currency=self.currency,
            expires_at=self.clock() + self.validity,
            notes=f"Purchased by {request.purchaser.email} for {request.recipient_email}",
            status=DiscountStatus.PENDING,
        )
        metadata = GiftPurchaseMetadata.for_purchase(
            gift_code,
            purchaser_email=request.purchaser.email,
            recipient_email=request.recipient_email,
            recipient_name=request.recipient_name,
        )

        try:
            intent = await self.gateway.create_payable_intent(
                amount_cents=request.amount_cents,
                currency=gift_code.currency,
                metadata=metadata.to_metadata(),
                description=f"Gift certificate ({request.amount_cents / 100:.2f})",
                customer_email=request.purchaser.email,
            )
            gift_code = await self.discounts.attach_purchase_reference(gift_code.code, intent.id)
        except BookingEngineError as e:
            logger.error("gift_purchase_payment_setup_failed", code=gift_code.code, error=str(e))
            await self.discounts.void_purchased_gift(gift_code.code)
            raise

        logger.info(
            "gift_purchase_payment_required",
            code=gift_code.code,
            payment_reference=intent.id,
            amount_cents=request.amount_cents,
        )
        return GiftPurchaseResult(
            gift_code=gift_code,
            checkout_url=intent.redirect_url,
            payment_reference=intent.id,
        )
