"""
Public discount code validation.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_container
from app.schemas.discount import DiscountCodeResponse
from app.services.container import ServiceContainer

router = APIRouter(prefix="/discount-codes", tags=["Discount Codes"])


@router.get("/{code}", response_model=DiscountCodeResponse)
async def validate_discount_code(
    code: str,
    container: ServiceContainer = Depends(get_container),
):
    """Check a code before checkout. Nothing is reserved."""
    discount_code = await container.discounts.validate_code(code)
    return DiscountCodeResponse.from_domain(discount_code)
