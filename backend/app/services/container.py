"""
Service wiring.

Builds every service from one explicit Settings value. The app factory
and the tests are the only callers; services never look configuration up
themselves.
"""

from dataclasses import dataclass
from typing import Optional

from app.core.clock import Clock, utcnow
from app.core.config import Settings
from app.services.booking_service import BookingService, SweepResult
from app.services.cache_service import AvailabilityCache
from app.services.capacity_service import CapacityService
from app.services.checkout_service import CheckoutService
from app.services.discount_service import DiscountCodeService
from app.services.gift_purchase_service import GiftPurchaseService
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.notification_service import LoggingNotifier, Notifier
from app.services.payment_event_service import PaymentEventService
from app.services.reaper import ExpirationReaper
from app.stores.interfaces import ResourceStore


@dataclass
class ServiceContainer:
    settings: Settings
    store: ResourceStore
    cache: AvailabilityCache
    capacity: CapacityService
    discounts: DiscountCodeService
    bookings: BookingService
    checkout: CheckoutService
    gift_purchases: GiftPurchaseService
    payment_events: PaymentEventService
    reaper: ExpirationReaper


def build_container(
    settings: Settings,
    store: ResourceStore,
    gateway: PaymentGateway,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[Notifier] = None,
    clock: Clock = utcnow,
) -> ServiceContainer:
    cache = cache or AvailabilityCache(None, settings.AVAILABILITY_CACHE_TTL)
    capacity = CapacityService(store)
    discounts = DiscountCodeService(store, clock=clock)
    notifier = notifier or LoggingNotifier()
    bookings = BookingService(
        store,
        capacity,
        discounts,
        notifier,
        settings,
        clock=clock,
    )

    async def _after_sweep(result: SweepResult) -> None:
        await cache.invalidate_all()

    return ServiceContainer(
        settings=settings,
        store=store,
        cache=cache,
        capacity=capacity,
        discounts=discounts,
        bookings=bookings,
        checkout=CheckoutService(bookings, gateway),
        gift_purchases=GiftPurchaseService(discounts, gateway, settings, clock=clock),
        payment_events=PaymentEventService(gateway, bookings, discounts, notifier),
        reaper=ExpirationReaper(bookings, settings.REAPER_INTERVAL_SECONDS, on_sweep=_after_sweep),
    )
