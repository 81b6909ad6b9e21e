"""
Wallet API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.validation import sanitized_text_validator
from serviceconnect.db.database import get_db
from serviceconnect.db.models.transaction import TransactionType
from serviceconnect.domain.services.wallet_service import WalletService

router = APIRouter()


class RechargeRequest(BaseModel):
    amount: Decimal
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=500)


class BalanceResponse(BaseModel):
    provider_id: int
    balance: float


class TransactionResponse(BaseModel):
    id: int
    type: TransactionType
    amount: float
    job_id: Optional[int]
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class WalletSummaryResponse(BaseModel):
    provider_id: int
    balance: float
    last_recharge_at: Optional[datetime]
    unlock_price: float
    unlocks_available: int
    recent_transactions: List[TransactionResponse]

    class Config:
        from_attributes = True


@router.get(
    "/{provider_id}",
    response_model=WalletSummaryResponse,
    summary="Wallet overview for a provider",
    description="Balance, last recharge and how many unlocks the balance covers. Creates an empty wallet if missing.",
)
async def get_wallet(
    provider_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = WalletService(db)
    return await service.get_wallet_summary(provider_id)


@router.get(
    "/{provider_id}/balance",
    response_model=BalanceResponse,
    summary="Current balance",
)
async def get_balance(
    provider_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get current balance for provider"""
    service = WalletService(db)
    balance = await service.get_balance(provider_id)
    return {"provider_id": provider_id, "balance": float(balance)}


@router.post(
    "/{provider_id}/recharge",
    response_model=BalanceResponse,
    summary="Credit a wallet after a confirmed payment",
    responses={400: {"description": "INVALID_AMOUNT"}, 404: {"description": "USER_NOT_FOUND"}},
)
async def recharge_wallet(
    provider_id: int,
    request: RechargeRequest,
    db: AsyncSession = Depends(get_db)
):
    service = WalletService(db)
    balance = await service.recharge(provider_id, request.amount, request.description)
    return {"provider_id": provider_id, "balance": float(balance)}


@router.get(
    "/{provider_id}/history",
    response_model=List[TransactionResponse],
    summary="Wallet transaction history",
    description="Ledger entries for the provider, newest first.",
)
async def get_transaction_history(
    provider_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    service = WalletService(db)
    return await service.get_history(provider_id, limit)
