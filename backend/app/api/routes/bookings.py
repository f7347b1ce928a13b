"""
Booking lookup and cancellation endpoints.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_container
from app.schemas.booking import BookingCancelResponse, BookingResponse
from app.services.container import ServiceContainer

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    container: ServiceContainer = Depends(get_container),
):
    booking = await container.bookings.get_booking(booking_id)
    return BookingResponse.model_validate(booking)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    container: ServiceContainer = Depends(get_container),
):
    """
    Cancel a pending booking and release its spots and discount hold.

    Idempotent: cancelling a missing, already cancelled or confirmed booking
    succeeds without changing anything.
    """
    booking = await container.bookings.find_booking(booking_id)
    cancelled = await container.bookings.cancel_booking(booking_id)
    if cancelled and booking is not None:
        await container.cache.invalidate_offering(booking.offering_id)

    return BookingCancelResponse(
        message="Booking cancelled successfully" if cancelled else "Nothing to cancel",
        booking_id=booking_id,
        cancelled=cancelled,
    )
