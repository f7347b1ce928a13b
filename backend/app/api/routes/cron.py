"""
Scheduler entry point for the expiry sweep.

Runs the same sweep as the in-process reaper, for deployments where an
external scheduler drives it instead.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_container, verify_cron_secret
from app.core.logging import get_logger
from app.services.container import ServiceContainer

logger = get_logger(__name__)
router = APIRouter(prefix="/cron", tags=["Cron"])


@router.post("/cleanup-expired-bookings", dependencies=[Depends(verify_cron_secret)])
async def cleanup_expired_bookings(container: ServiceContainer = Depends(get_container)):
    result = await container.reaper.run_once()
    logger.info("cron_cleanup_completed", processed=result.processed, errors=result.errors)
    return {
        "success": True,
        "processed": result.processed,
        "errors": result.errors,
    }
