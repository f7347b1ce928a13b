"""
Gift and promo codes as a second scarce resource.

A code moves through three steps while a booking is in flight:

  reserve  - provisional hold taken at checkout (balance or one use)
  release  - hold given back when the booking is cancelled or expires
  apply    - permanent conversion after payment, once per (code, booking)

Reservation uses the same decrement/verify/compensate protocol as capacity,
on the single code row. Apply is made idempotent by the redemption ledger:
the (code, booking_id) row is written first and a duplicate means a
redelivered confirmation.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from app.core.clock import Clock, utcnow
from app.core.errors import (
    BookingEngineError,
    DiscountConflict,
    DiscountInvalid,
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import compensation_failures, discount_rollbacks
from app.domain.codes import format_code, generate_code, is_valid_code_format
from app.domain.models import (
    DiscountCode,
    DiscountKind,
    DiscountStatus,
    PromoDiscountType,
    Redemption,
)
from app.stores.interfaces import ResourceStore

logger = get_logger(__name__)

MAX_CODE_ATTEMPTS = 2
MAX_CODES_PER_BATCH = 1000


class ApplyResult(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


@dataclass(frozen=True)
class DiscountQuote:
    code: str
    kind: DiscountKind
    discount_cents: int
    remaining_to_pay_cents: int


@dataclass
class GenerationResult:
    created: list[str]
    failed: int = 0


class DiscountCodeService:

    def __init__(
        self,
        store: ResourceStore,
        clock: Clock = utcnow,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.store = store
        self.clock = clock
        self.code_factory = code_factory

    # Read-only checks

    async def _load(self, code: str) -> DiscountCode:
        if not code or not is_valid_code_format(code):
            raise DiscountInvalid("Invalid discount code format")
        normalized = format_code(code)
        discount_code = await self.store.get_discount_code(normalized)
        if discount_code is None:
            raise NotFoundError(f"Discount code {normalized} not found")
        return discount_code

    async def _ensure_usable(self, discount_code: DiscountCode) -> None:
        if discount_code.status == DiscountStatus.PENDING:
            raise DiscountInvalid("Gift code is awaiting payment")
        if discount_code.status == DiscountStatus.EXPIRED:
            raise DiscountInvalid("Discount code has expired")

        if discount_code.expires_at is not None and discount_code.expires_at < self.clock():
            # Found still marked usable after its expiry date.
            await self.store.update_discount_code(discount_code.code, status=DiscountStatus.EXPIRED)
            logger.info("discount_code_marked_expired", code=discount_code.code)
            raise DiscountInvalid("Discount code has expired")

        if discount_code.status == DiscountStatus.EXHAUSTED:
            raise DiscountInvalid("Discount code has been fully used")

        if discount_code.is_limited and discount_code.balance_or_uses_remaining <= 0:
            if discount_code.kind == DiscountKind.GIFT:
                raise DiscountInvalid("Gift code has no remaining balance")
            raise DiscountInvalid("Promo code has reached its usage limit")

    async def validate_code(self, code: str) -> DiscountCode:
        discount_code = await self._load(code)
        await self._ensure_usable(discount_code)
        return discount_code

    async def calculate_discount(self, code: str, total_cents: int) -> DiscountQuote:
        """
        Work out what a code takes off ``total_cents`` without holding anything.

        Gift codes cover up to their balance; promo codes take a percentage
        (rounded down) or a fixed amount. The result never exceeds the total.
        """
        if total_cents < 0:
            raise ValidationError("Total must not be negative")
        discount_code = await self.validate_code(code)

        if discount_code.kind == DiscountKind.GIFT:
            discount = min(discount_code.balance_or_uses_remaining or 0, total_cents)
        elif discount_code.discount_type == PromoDiscountType.PERCENTAGE:
            discount = total_cents * (discount_code.discount_value or 0) // 100
        else:
            discount = discount_code.discount_value or 0

        discount = max(0, min(discount, total_cents))
        return DiscountQuote(
            code=discount_code.code,
            kind=discount_code.kind,
            discount_cents=discount,
            remaining_to_pay_cents=total_cents - discount,
        )

    # Provisional holds

    @staticmethod
    def _hold_size(discount_code: DiscountCode, amount_cents: int) -> int:
        """Units a reservation takes: cents for gift codes, one use for limited promos."""
        if not discount_code.is_limited:
            return 0
        if discount_code.kind == DiscountKind.GIFT:
            return amount_cents
        return 1

    async def reserve_code(self, code: str, amount_cents: int) -> None:
        """Hold ``amount_cents`` of a code, or raise DiscountConflict with nothing held."""
        discount_code = await self._load(code)
        units = self._hold_size(discount_code, amount_cents)
        if units <= 0:
            return

        remaining = await self.store.adjust_discount_remaining(discount_code.code, -units)
        if remaining is None:
            raise NotFoundError(f"Discount code {discount_code.code} not found")

        current = await self.store.get_discount_code(discount_code.code)
        if current is not None and current.is_limited and current.balance_or_uses_remaining < 0:
            await self._compensate(discount_code.code, units)
            discount_rollbacks.inc()
            logger.warning(
                "discount_rollback",
                code=discount_code.code,
                requested=units,
                observed=current.balance_or_uses_remaining,
            )
            raise DiscountConflict()

        logger.info("discount_reserved", code=discount_code.code, units=units)

    async def release_code(self, code: str, amount_cents: int) -> bool:
        """Give a hold back. A missing code is tolerated and reported as False."""
        discount_code = await self.store.get_discount_code(format_code(code))
        if discount_code is None:
            logger.warning("discount_release_missing", code=code)
            return False

        units = self._hold_size(discount_code, amount_cents)
        if units <= 0:
            return True

        remaining = await self.store.adjust_discount_remaining(discount_code.code, units)
        logger.info("discount_released", code=discount_code.code, units=units, remaining=remaining)
        if remaining is None:
            return False

        # Another booking's apply may have marked the code exhausted while this hold was out
        current = await self.store.get_discount_code(discount_code.code)
        if current is not None and current.status == DiscountStatus.EXHAUSTED:
            await self._refresh_status(current)
        return True

    async def _compensate(self, code: str, units: int) -> None:
        try:
            await self.store.adjust_discount_remaining(code, units)
        except BookingEngineError as e:
            compensation_failures.labels(resource="discount").inc()
            logger.error("discount_compensation_failed", code=code, units=units, error=str(e))

    # Permanent conversion

    async def apply_code(
        self,
        code: str,
        booking_id: int,
        amount_cents: int,
        reserved: bool = False,
    ) -> ApplyResult:
        """
        Make a redemption permanent after payment.

        Idempotent on (code, booking_id). With ``reserved=True`` the amount
        was already held at checkout and the balance is not touched again;
        otherwise it is taken here with the reserve protocol.
        """
        discount_code = await self._load(code)
        recorded = await self.store.add_redemption(Redemption(
            code=discount_code.code,
            booking_id=booking_id,
            amount_cents=amount_cents,
            redeemed_at=self.clock(),
        ))
        if not recorded:
            logger.info("discount_already_applied", code=discount_code.code, booking_id=booking_id)
            return ApplyResult.ALREADY_APPLIED

        if not reserved:
            try:
                await self.reserve_code(discount_code.code, amount_cents)
            except BookingEngineError:
                await self.store.delete_redemption(discount_code.code, booking_id)
                raise

        current = await self.store.get_discount_code(discount_code.code)
        if current is not None:
            await self._refresh_status(current)

        logger.info(
            "discount_applied",
            code=discount_code.code,
            booking_id=booking_id,
            amount_cents=amount_cents,
        )
        return ApplyResult.APPLIED

    async def _refresh_status(self, discount_code: DiscountCode) -> None:
        if not discount_code.is_limited or discount_code.status == DiscountStatus.EXPIRED:
            return
        remaining = discount_code.balance_or_uses_remaining
        if remaining <= 0:
            status = DiscountStatus.EXHAUSTED
        elif discount_code.kind == DiscountKind.GIFT:
            status = DiscountStatus.PARTIALLY_USED
        else:
            status = DiscountStatus.ACTIVE
        if status != discount_code.status:
            await self.store.update_discount_code(discount_code.code, status=status)

    # Code issuance

    async def _create_with_retry(self, template: DiscountCode) -> Optional[DiscountCode]:
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            candidate = replace(template, code=self.code_factory())
            try:
                return await self.store.create_discount_code(candidate)
            except DuplicateRecordError:
                logger.info("discount_code_collision", code=candidate.code, attempt=attempt)
        return None

    async def generate_promo_codes(
        self,
        count: int,
        discount_type: PromoDiscountType,
        discount_value: int,
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> GenerationResult:
        if not 1 <= count <= MAX_CODES_PER_BATCH:
            raise ValidationError(f"Count must be between 1 and {MAX_CODES_PER_BATCH}")
        if discount_type == PromoDiscountType.PERCENTAGE and not 0 <= discount_value <= 100:
            raise ValidationError("Percentage discount must be between 0 and 100")
        if discount_type == PromoDiscountType.FIXED and discount_value < 0:
            raise ValidationError("Fixed discount must not be negative")
        if max_uses is not None and max_uses < 1:
            raise ValidationError("Max uses must be at least 1")

        template = DiscountCode(
            code="",
            kind=DiscountKind.PROMO,
            balance_or_uses_remaining=max_uses,
            expires_at=expires_at,
            discount_type=discount_type,
            discount_value=discount_value,
            max_uses=max_uses,
            notes=notes,
        )

        result = GenerationResult(created=[])
        for _ in range(count):
            created = await self._create_with_retry(template)
            if created is None:
                result.failed += 1
            else:
                result.created.append(created.code)

        logger.info(
            "promo_codes_generated",
            requested=count,
            created=len(result.created),
            failed=result.failed,
            discount_type=discount_type.value,
        )
        return result

    async def issue_gift_code(
        self,
        value_cents: int,
        currency: str = "eur",
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        status: DiscountStatus = DiscountStatus.ACTIVE,
    ) -> DiscountCode:
        if value_cents < 1:
            raise ValidationError("Gift value must be positive")

        created = await self._create_with_retry(DiscountCode(
            code="",
            kind=DiscountKind.GIFT,
            balance_or_uses_remaining=value_cents,
            status=status,
            expires_at=expires_at,
            currency=currency.lower(),
            initial_value_cents=value_cents,
            notes=notes,
        ))
        if created is None:
            raise DuplicateRecordError("Could not generate a unique gift code")

        logger.info("gift_code_issued", code=created.code, value_cents=value_cents, status=status.value)
        return created

    # Customer gift purchases

    async def attach_purchase_reference(self, code: str, payment_reference: str) -> DiscountCode:
        updated = await self.store.update_discount_code(
            code,
            expected_status=DiscountStatus.PENDING,
            purchase_reference=payment_reference,
        )
        if updated is None:
            raise NotFoundError(f"Gift code {code} is not awaiting payment")
        return updated

    async def activate_purchased_gift(
        self, code: str, payment_reference: Optional[str]
    ) -> Optional[DiscountCode]:
        """
        Make a paid gift code usable and return it.

        Only a pending code is activated, so a redelivered payment event is a
        no-op (returns None). Raises NotFoundError when the code is gone.
        """
        discount_code = await self.store.get_discount_code(format_code(code))
        if discount_code is None:
            raise NotFoundError(f"Gift code {code} not found")
        if discount_code.status == DiscountStatus.EXPIRED:
            logger.error(
                "gift_payment_for_voided_code",
                code=discount_code.code,
                payment_reference=payment_reference,
                action_required="manual_refund",
            )
            return None
        if discount_code.status != DiscountStatus.PENDING:
            logger.info(
                "gift_purchase_already_settled",
                code=discount_code.code,
                status=discount_code.status.value,
                payment_reference=payment_reference,
            )
            return None

        activated = await self.store.update_discount_code(
            discount_code.code,
            expected_status=DiscountStatus.PENDING,
            status=DiscountStatus.ACTIVE,
            purchase_reference=payment_reference or discount_code.purchase_reference,
        )
        if activated is None:
            return None
        logger.info(
            "gift_purchase_activated",
            code=activated.code,
            value_cents=activated.initial_value_cents,
            payment_reference=activated.purchase_reference,
        )
        return activated

    async def void_purchased_gift(self, code: str) -> bool:
        """Retire a gift code whose payment never completed. False if it was not pending."""
        voided = await self.store.update_discount_code(
            format_code(code),
            expected_status=DiscountStatus.PENDING,
            status=DiscountStatus.EXPIRED,
        )
        if voided is None:
            return False
        logger.info("gift_purchase_voided", code=voided.code)
        return True
