"""
Unlock Service - Paid access to a job's customer contact

Implements the unlock as one atomic unit of work:
1. Verify the provider is approved (and not blocked)
2. Lock the job row (SELECT ... FOR UPDATE); it must exist and be open
3. Reject a repeat unlock by the same provider
4. Verify the wallet covers the category price
5. Record transaction, debit, unlock row and counter increment via LedgerStore
6. Commit, or roll back everything

Transient storage failures that certainly did not commit are retried once.
"""
import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.config import settings
from serviceconnect.core.exceptions import (
    AlreadyUnlockedError,
    DuplicateUnlockError,
    InsufficientBalanceError,
    JobClosedError,
    JobNotFoundError,
    ProviderNotApprovedError,
    StorageUnavailableError,
)
from serviceconnect.core.logging import get_logger
from serviceconnect.db.models.job import JobStatus
from serviceconnect.db.models.provider_profile import ProviderProfile
from serviceconnect.db.models.user import User, UserType
from serviceconnect.domain.services.ledger_store import LedgerStore, storage_error
from serviceconnect.domain.services.pricing_service import PricingService

logger = get_logger(__name__)


@dataclass
class CustomerContact:
    customer_id: int
    name: Optional[str]
    phone_number: str


@dataclass
class UnlockResult:
    """מה שהספק מקבל אחרי פתיחה מוצלחת"""
    job_id: int
    provider_id: int
    balance: Decimal
    unlock_count: int
    max_unlocks: int
    status: JobStatus
    just_closed: bool
    price: Decimal
    customer_contact: CustomerContact


class UnlockService:
    """Service for atomic job unlocks"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = LedgerStore(db)
        self.pricing = PricingService(db)
        self._committing = False

    async def unlock_job(self, job_id: int, provider_id: int) -> UnlockResult:
        """
        Unlock a job for a provider.

        Raises:
            ProviderNotApprovedError, JobNotFoundError, JobClosedError,
            AlreadyUnlockedError, InsufficientBalanceError, StorageUnavailableError
        """
        attempts = settings.STORAGE_RETRY_ATTEMPTS + 1
        attempt = 0

        while True:
            attempt += 1
            self._committing = False
            try:
                result = await asyncio.wait_for(
                    self._unlock_once(job_id, provider_id),
                    timeout=settings.STORAGE_TIMEOUT_SECONDS
                )
            except asyncio.TimeoutError as exc:
                await self._rollback()
                error = StorageUnavailableError(
                    "unlock_job",
                    f"timed out after {settings.STORAGE_TIMEOUT_SECONDS}s",
                    committed=None if self._committing else False
                )
                error.__cause__ = exc
            except StorageUnavailableError as exc:
                await self._rollback()
                error = exc
            except DuplicateUnlockError as exc:
                # מרוץ של אותו ספק: ה-UNIQUE תפס את הבקשה השנייה
                await self._rollback()
                raise AlreadyUnlockedError(job_id, provider_id) from exc
            except (sa_exc.OperationalError, sa_exc.InterfaceError) as exc:
                # קריאות שלא עוברות דרך ה-LedgerStore (ספק, מחיר, לקוח)
                await self._rollback()
                error = storage_error(
                    "unlock_job", exc, committed=None if self._committing else False
                )
            except Exception:
                await self._rollback()
                raise
            else:
                logger.info(
                    "Job unlocked",
                    extra_data={
                        "job_id": job_id,
                        "provider_id": provider_id,
                        "price": str(result.price),
                        "balance": str(result.balance),
                        "unlock_count": result.unlock_count,
                        "just_closed": result.just_closed,
                        "attempt": attempt,
                    }
                )
                return result

            if not error.retryable or attempt == attempts:
                logger.error(
                    "Unlock failed: storage unavailable",
                    extra_data={
                        "job_id": job_id,
                        "provider_id": provider_id,
                        "operation": error.operation,
                        "committed": error.committed,
                        "attempt": attempt,
                    }
                )
                raise error

            logger.warning(
                "Retrying unlock after transient storage failure",
                extra_data={
                    "job_id": job_id,
                    "provider_id": provider_id,
                    "operation": error.operation,
                    "attempt": attempt,
                }
            )

    async def _unlock_once(self, job_id: int, provider_id: int) -> UnlockResult:
        await self._ensure_provider_approved(provider_id)

        job = await self.store.get_job(job_id, for_update=True)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JobStatus.OPEN or job.unlock_count >= job.max_unlocks:
            raise JobClosedError(job_id, job.unlock_count, job.max_unlocks)

        if await self.store.has_unlocked(job_id, provider_id):
            raise AlreadyUnlockedError(job_id, provider_id)

        price = await self.pricing.get_unlock_price(job.category)

        wallet = await self.store.get_wallet(provider_id, for_update=True)
        balance = Decimal(wallet.balance) if wallet else Decimal("0.00")
        if balance < price:
            raise InsufficientBalanceError(provider_id, balance, price)

        record = await self.store.record_unlock(job_id, provider_id, price)

        customer = await self.db.get(User, job.customer_id)

        self._committing = True
        await self.store.commit("unlock_job")
        self._committing = False

        return UnlockResult(
            job_id=job_id,
            provider_id=provider_id,
            balance=Decimal(record.wallet.balance),
            unlock_count=record.job.unlock_count,
            max_unlocks=record.job.max_unlocks,
            status=JobStatus(record.job.status),
            just_closed=record.just_closed,
            price=price,
            customer_contact=CustomerContact(
                customer_id=customer.id,
                name=customer.name,
                phone_number=customer.phone_number
            )
        )

    async def _ensure_provider_approved(self, provider_id: int) -> None:
        result = await self.db.execute(
            select(User, ProviderProfile)
            .outerjoin(ProviderProfile, ProviderProfile.user_id == User.id)
            .where(User.id == provider_id)
        )
        row = result.first()
        if row is None:
            raise ProviderNotApprovedError(provider_id, status=None)

        user, profile = row
        if user.user_type != UserType.PROVIDER or profile is None:
            raise ProviderNotApprovedError(provider_id, status=None)
        if user.is_blocked:
            raise ProviderNotApprovedError(provider_id, status="blocked")
        if not profile.is_approved:
            raise ProviderNotApprovedError(provider_id, status=profile.status.value)

    async def _rollback(self) -> None:
        """Rollback after a failed attempt; the original error is what the caller sees"""
        try:
            await self.store.rollback()
        except sa_exc.SQLAlchemyError as exc:
            logger.warning(
                "Rollback after failed unlock attempt also failed",
                extra_data={"error": str(exc), "error_type": type(exc).__name__}
            )

