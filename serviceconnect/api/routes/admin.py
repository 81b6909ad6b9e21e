"""
Admin API Routes - provider approval, user blocking, unlock prices

All endpoints require the X-Admin-API-Key header.
"""
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.api.dependencies.admin_auth import require_admin_api_key
from serviceconnect.api.routes.users import ProviderProfileResponse
from serviceconnect.core.config import settings
from serviceconnect.core.exceptions import ValidationException
from serviceconnect.core.validation import CategoryValidator
from serviceconnect.db.database import get_db
from serviceconnect.domain.services.pricing_service import PricingService
from serviceconnect.domain.services.provider_approval_service import ApprovalResult, ProviderApprovalService

router = APIRouter(dependencies=[Depends(require_admin_api_key)])


class RejectRequest(BaseModel):
    rejection_note: Optional[str] = Field(default=None, max_length=500)


class UnlockPriceUpdate(BaseModel):
    price: Decimal


class AdminActionResponse(BaseModel):
    success: bool
    message: str
    user_id: int


class UnlockPriceResponse(BaseModel):
    category: str
    price: float


class UnlockPriceTableResponse(BaseModel):
    default_price: float
    configured: dict[str, float]
    overrides: dict[str, float]


class DashboardStatsResponse(BaseModel):
    total_users: int
    active_providers: int
    pending_approvals: int
    total_jobs: int
    open_jobs: int
    unlock_revenue: float


def _to_response(result: ApprovalResult, user_id: int) -> AdminActionResponse:
    """פעולה שנדחתה (כבר מאושר / חסום / לא נמצא) מוחזרת כשגיאת ולידציה"""
    if not result.success:
        raise ValidationException(result.message, field="user_id", details={"user_id": user_id})
    return AdminActionResponse(success=True, message=result.message, user_id=user_id)


@router.get(
    "/providers/pending",
    response_model=List[ProviderProfileResponse],
    summary="Providers waiting for approval",
)
async def list_pending_providers(db: AsyncSession = Depends(get_db)):
    return await ProviderApprovalService.list_pending(db)


@router.post("/providers/{user_id}/approve", response_model=AdminActionResponse, summary="Approve a provider")
async def approve_provider(user_id: int, db: AsyncSession = Depends(get_db)):
    result = await ProviderApprovalService.approve(db, user_id)
    return _to_response(result, user_id)


@router.post("/providers/{user_id}/reject", response_model=AdminActionResponse, summary="Reject a provider")
async def reject_provider(
    user_id: int,
    request: Optional[RejectRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    note = request.rejection_note if request else None
    result = await ProviderApprovalService.reject(db, user_id, note)
    return _to_response(result, user_id)


@router.post("/users/{user_id}/block", response_model=AdminActionResponse, summary="Block a user")
async def block_user(user_id: int, db: AsyncSession = Depends(get_db)):
    result = await ProviderApprovalService.block(db, user_id)
    return _to_response(result, user_id)


@router.post("/users/{user_id}/unblock", response_model=AdminActionResponse, summary="Unblock a user")
async def unblock_user(user_id: int, db: AsyncSession = Depends(get_db)):
    result = await ProviderApprovalService.unblock(db, user_id)
    return _to_response(result, user_id)


@router.get(
    "/unlock-prices",
    response_model=UnlockPriceTableResponse,
    summary="Unlock prices in effect",
    description="Default price, per-category prices from configuration and admin overrides (overrides win).",
)
async def list_unlock_prices(db: AsyncSession = Depends(get_db)):
    service = PricingService(db)
    overrides = await service.list_overrides()
    return UnlockPriceTableResponse(
        default_price=float(settings.UNLOCK_PRICE_DEFAULT),
        configured={category: float(price) for category, price in settings.UNLOCK_PRICES.items()},
        overrides={category: float(price) for category, price in overrides.items()}
    )


@router.put(
    "/unlock-prices/{category}",
    response_model=UnlockPriceResponse,
    summary="Set the unlock price for a category",
    description="Applies to unlocks made after the change; past unlocks keep their charged amount.",
)
async def set_unlock_price(
    category: str,
    request: UnlockPriceUpdate,
    db: AsyncSession = Depends(get_db)
):
    service = PricingService(db)
    price = await service.set_unlock_price(category, request.price)
    return UnlockPriceResponse(category=CategoryValidator.normalize(category), price=float(price))


@router.get("/stats", response_model=DashboardStatsResponse, summary="Admin dashboard counters")
async def dashboard_stats(db: AsyncSession = Depends(get_db)):
    return await ProviderApprovalService.dashboard_stats(db)
