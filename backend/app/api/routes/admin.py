"""
Admin endpoints for issuing discount codes. Protected by X-Admin-Key.
"""

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_container, verify_admin_key
from app.schemas.discount import (
    DiscountCodeResponse,
    GiftCodeIssue,
    PromoCodeGenerate,
    PromoCodeGenerateResponse,
)
from app.services.container import ServiceContainer

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(verify_admin_key)])


@router.post(
    "/promo-codes",
    response_model=PromoCodeGenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_promo_codes(
    request: PromoCodeGenerate,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.discounts.generate_promo_codes(
        count=request.count,
        discount_type=request.discount_type,
        discount_value=request.discount_value,
        max_uses=request.max_uses,
        expires_at=request.expires_at,
        notes=request.notes,
    )
    return PromoCodeGenerateResponse(
        created=result.created,
        count=len(result.created),
        failed=result.failed,
    )


@router.post(
    "/gift-codes",
    response_model=DiscountCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_gift_code(
    request: GiftCodeIssue,
    container: ServiceContainer = Depends(get_container),
):
    gift_code = await container.discounts.issue_gift_code(
        value_cents=request.value_cents,
        currency=request.currency,
        expires_at=request.expires_at,
        notes=request.notes,
    )
    return DiscountCodeResponse.from_domain(gift_code)
