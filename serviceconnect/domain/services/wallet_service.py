"""
Wallet Service - Provider balance, recharge and history
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.config import settings
from serviceconnect.core.exceptions import InvalidAmountError, UserNotFoundError, ValidationException
from serviceconnect.core.logging import get_logger, log_async_operation
from serviceconnect.core.validation import AmountValidator
from serviceconnect.db.models.transaction import Transaction
from serviceconnect.db.models.user import User
from serviceconnect.domain.services.ledger_store import LedgerStore

logger = get_logger(__name__)

HISTORY_MAX_LIMIT = 100


@dataclass
class WalletSummary:
    provider_id: int
    balance: Decimal
    last_recharge_at: Optional[datetime]
    unlock_price: Decimal
    unlocks_available: int
    recent_transactions: list[Transaction] = field(default_factory=list)


class WalletService:
    """Service for managing provider wallets"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = LedgerStore(db)

    async def get_balance(self, provider_id: int) -> Decimal:
        """יתרה נוכחית: 0 כשאין עדיין ארנק"""
        wallet = await self.store.get_wallet(provider_id)
        if wallet is None:
            return Decimal("0.00")
        return Decimal(wallet.balance)

    @log_async_operation("wallet_recharge")
    async def recharge(
        self,
        provider_id: int,
        amount: Decimal,
        description: Optional[str] = None
    ) -> Decimal:
        """
        Credit a provider's wallet after a confirmed payment.

        Returns the new balance. Amount must be within
        MIN_RECHARGE_AMOUNT..MAX_RECHARGE_AMOUNT with at most 2 decimals.
        """
        amount = AmountValidator.to_decimal(amount)
        is_valid, error = AmountValidator.validate(
            amount,
            min_value=settings.MIN_RECHARGE_AMOUNT,
            max_value=settings.MAX_RECHARGE_AMOUNT
        )
        if not is_valid:
            raise InvalidAmountError(amount, error, provider_id)
        amount = amount.quantize(AmountValidator.CENT)

        await self._ensure_provider(provider_id)

        try:
            record = await self.store.record_recharge(provider_id, amount, description)
            await self.store.commit("recharge")
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "Wallet recharged",
            extra_data={
                "provider_id": provider_id,
                "amount": str(amount),
                "balance": str(record.wallet.balance),
                "transaction_id": record.transaction.id,
            }
        )
        return Decimal(record.wallet.balance)

    async def get_wallet_summary(self, provider_id: int) -> WalletSummary:
        """Wallet screen: balance, last recharge, unlocks affordable at the default price"""
        await self._ensure_provider(provider_id)

        wallet = await self.store.get_or_create_wallet(provider_id)
        await self.store.commit("get_wallet_summary")

        balance = Decimal(wallet.balance)
        price = settings.UNLOCK_PRICE_DEFAULT
        recent = await self.store.get_wallet_transactions(wallet.id, limit=5)

        return WalletSummary(
            provider_id=provider_id,
            balance=balance,
            last_recharge_at=wallet.last_recharge_at,
            unlock_price=price,
            unlocks_available=int((balance / price).to_integral_value(rounding=ROUND_FLOOR)),
            recent_transactions=recent
        )

    async def get_history(self, provider_id: int, limit: int = 20) -> list[Transaction]:
        """Get transaction history for provider (newest first)"""
        if limit < 1 or limit > HISTORY_MAX_LIMIT:
            raise ValidationException(
                f"limit must be between 1 and {HISTORY_MAX_LIMIT}", field="limit"
            )
        wallet = await self.store.get_wallet(provider_id)
        if wallet is None:
            return []
        return await self.store.get_wallet_transactions(wallet.id, limit=limit)

    async def _ensure_provider(self, provider_id: int) -> User:
        user = await self.db.get(User, provider_id)
        if user is None:
            raise UserNotFoundError(provider_id)
        if not user.is_provider:
            raise ValidationException(f"User {provider_id} is not a provider", field="provider_id")
        return user
