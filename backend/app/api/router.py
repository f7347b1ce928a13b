"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import admin, bookings, checkout, cron, discount_codes, gift_certificates, offerings, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(checkout.router)
api_router.include_router(gift_certificates.router)
api_router.include_router(bookings.router)
api_router.include_router(webhooks.router)
api_router.include_router(cron.router)
api_router.include_router(offerings.router)
api_router.include_router(discount_codes.router)
api_router.include_router(admin.router)
