"""
Ledger Store - Wallets, Transactions and Job Unlocks

Repository over the ledger tables. The store never commits by itself:
the caller owns the transaction and finishes it with commit() / rollback().
Every multi-row write (unlock, recharge) is made of conditional
single-statement updates so that concurrent requests cannot push a wallet
below zero or a job past its unlock cap.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update, func, case, exists
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.exceptions import (
    DuplicateUnlockError,
    InsufficientBalanceError,
    InvalidAmountError,
    JobClosedError,
    JobNotFoundError,
    StorageUnavailableError,
)
from serviceconnect.core.logging import get_logger
from serviceconnect.db.models.job import Job, JobStatus
from serviceconnect.db.models.job_unlock import JobUnlock
from serviceconnect.db.models.transaction import Transaction, TransactionType
from serviceconnect.db.models.wallet import Wallet

logger = get_logger(__name__)

_CENT = Decimal("0.01")

# שגיאות תשתית שמתורגמות ל-STORAGE_UNAVAILABLE (IntegrityError מטופל בנפרד)
_TRANSIENT_ERRORS = (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError, asyncio.TimeoutError)


def storage_error(operation: str, exc: BaseException, committed: Optional[bool] = False) -> StorageUnavailableError:
    """
    Build STORAGE_UNAVAILABLE from a driver failure.

    הטקסט של הדרייבר (SQL, פרמטרים, host) נרשם רק בלוג השרת;
    ללקוח מוחזר שם סוג החריגה בלבד.
    """
    logger.error(
        "Storage failure",
        extra_data={
            "operation": operation,
            "committed": committed,
            "error": str(exc),
            "error_type": type(exc).__name__,
        }
    )
    error = StorageUnavailableError(operation, type(exc).__name__, committed=committed)
    error.__cause__ = exc
    return error


@dataclass
class UnlockRecord:
    """תוצאת רישום פתיחה: כל השורות שנכתבו באותה טרנזקציה"""
    wallet: Wallet
    job: Job
    unlock: JobUnlock
    transaction: Transaction
    just_closed: bool


@dataclass
class RechargeRecord:
    wallet: Wallet
    transaction: Transaction


class LedgerStore:
    """Repository for wallets, ledger transactions and unlock records"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_wallet(self, provider_id: int, for_update: bool = False) -> Optional[Wallet]:
        """Wallet of a provider or None. for_update takes a row lock (PostgreSQL)."""
        query = (
            select(Wallet)
            .where(Wallet.provider_id == provider_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self._execute(query, "get_wallet")
        return result.scalar_one_or_none()

    async def get_or_create_wallet(self, provider_id: int) -> Wallet:
        """
        Get the provider's wallet, creating an empty one inside the current transaction.

        מרוץ על יצירת ארנק (UNIQUE provider_id) מדווח כשגיאת אחסון זמנית:
        הניסיון החוזר ימצא את הארנק שכבר נוצר.
        """
        wallet = await self.get_wallet(provider_id, for_update=True)
        if wallet is not None:
            return wallet

        wallet = Wallet(provider_id=provider_id, balance=Decimal("0.00"))
        self.db.add(wallet)
        try:
            await self.db.flush()
        except sa_exc.IntegrityError as exc:
            raise StorageUnavailableError(
                "create_wallet", "concurrent wallet creation", committed=False
            ) from exc
        except _TRANSIENT_ERRORS as exc:
            raise storage_error("create_wallet", exc, committed=False) from exc

        logger.info("Wallet created", extra_data={"provider_id": provider_id, "wallet_id": wallet.id})
        return wallet

    async def get_job(self, job_id: int, for_update: bool = False) -> Optional[Job]:
        query = (
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self._execute(query, "get_job")
        return result.scalar_one_or_none()

    async def has_unlocked(self, job_id: int, provider_id: int) -> bool:
        """Must run in the same transaction as the following record_unlock"""
        result = await self._execute(
            select(
                exists().where(
                    JobUnlock.job_id == job_id,
                    JobUnlock.provider_id == provider_id
                )
            ),
            "has_unlocked"
        )
        return bool(result.scalar())

    async def get_wallet_transactions(self, wallet_id: int, limit: int = 20) -> list[Transaction]:
        result = await self._execute(
            select(Transaction)
            .where(Transaction.wallet_id == wallet_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit),
            "get_wallet_transactions"
        )
        return list(result.scalars().all())

    async def get_job_unlocks(self, job_id: int) -> list[JobUnlock]:
        result = await self._execute(
            select(JobUnlock)
            .where(JobUnlock.job_id == job_id)
            .order_by(JobUnlock.unlocked_at, JobUnlock.id),
            "get_job_unlocks"
        )
        return list(result.scalars().all())

    async def ledger_balance(self, wallet_id: int) -> Decimal:
        """Sum of signed transaction amounts: what the wallet balance must equal"""
        signed_amount = case(
            (Transaction.type == TransactionType.RECHARGE, Transaction.amount),
            else_=-Transaction.amount
        )
        result = await self._execute(
            select(func.coalesce(func.sum(signed_amount), 0))
            .where(Transaction.wallet_id == wallet_id),
            "ledger_balance"
        )
        return Decimal(str(result.scalar_one())).quantize(_CENT)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_unlock(
        self,
        job_id: int,
        provider_id: int,
        amount: Decimal,
        description: str | None = None
    ) -> UnlockRecord:
        """
        Record a paid unlock.

        Within the caller's transaction:
        1. Insert an UNLOCK ledger transaction
        2. Debit the wallet: only if balance >= amount
        3. Insert the JobUnlock row (UNIQUE job/provider)
        4. Increment unlock_count: only while open and below max_unlocks
        5. Close the job when unlock_count reaches max_unlocks

        Any raised error leaves the transaction for the caller to roll back.
        """
        if amount <= 0:
            raise InvalidAmountError(amount, "unlock price must be greater than zero", provider_id)

        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        wallet = await self.get_or_create_wallet(provider_id)

        ledger_entry = Transaction(
            wallet_id=wallet.id,
            type=TransactionType.UNLOCK,
            amount=amount,
            job_id=job_id,
            description=description or f"Unlocked job #{job_id}"
        )
        self.db.add(ledger_entry)
        await self._flush("insert_unlock_transaction")

        now = datetime.utcnow()
        debit = await self._execute(
            update(Wallet)
            .where(Wallet.id == wallet.id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=now)
            .execution_options(synchronize_session=False),
            "debit_wallet"
        )
        if debit.rowcount != 1:
            await self._refresh(wallet, "debit_wallet")
            raise InsufficientBalanceError(provider_id, Decimal(wallet.balance), amount)

        unlock = JobUnlock(job_id=job_id, provider_id=provider_id, unlocked_at=now)
        self.db.add(unlock)
        try:
            await self.db.flush()
        except sa_exc.IntegrityError as exc:
            raise DuplicateUnlockError(job_id, provider_id) from exc
        except _TRANSIENT_ERRORS as exc:
            raise storage_error("insert_job_unlock", exc, committed=False) from exc

        increment = await self._execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.OPEN,
                Job.unlock_count < Job.max_unlocks
            )
            .values(unlock_count=Job.unlock_count + 1, updated_at=now)
            .execution_options(synchronize_session=False),
            "increment_unlock_count"
        )
        if increment.rowcount != 1:
            await self._refresh(job, "increment_unlock_count")
            raise JobClosedError(job_id, job.unlock_count, job.max_unlocks)

        close = await self._execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.OPEN,
                Job.unlock_count >= Job.max_unlocks
            )
            .values(status=JobStatus.CLOSED)
            .execution_options(synchronize_session=False),
            "close_job_at_cap"
        )
        just_closed = close.rowcount == 1

        await self._refresh(wallet, "record_unlock")
        await self._refresh(job, "record_unlock")

        return UnlockRecord(
            wallet=wallet,
            job=job,
            unlock=unlock,
            transaction=ledger_entry,
            just_closed=just_closed
        )

    async def record_recharge(
        self,
        provider_id: int,
        amount: Decimal,
        description: str | None = None
    ) -> RechargeRecord:
        """Credit the wallet and append a RECHARGE transaction (caller commits)"""
        if amount <= 0:
            raise InvalidAmountError(amount, "recharge amount must be greater than zero", provider_id)

        wallet = await self.get_or_create_wallet(provider_id)

        ledger_entry = Transaction(
            wallet_id=wallet.id,
            type=TransactionType.RECHARGE,
            amount=amount,
            description=description or f"Wallet recharge of ₹{amount}"
        )
        self.db.add(ledger_entry)
        await self._flush("insert_recharge_transaction")

        now = datetime.utcnow()
        await self._execute(
            update(Wallet)
            .where(Wallet.id == wallet.id)
            .values(balance=Wallet.balance + amount, last_recharge_at=now, updated_at=now)
            .execution_options(synchronize_session=False),
            "credit_wallet"
        )
        await self._refresh(wallet, "record_recharge")

        return RechargeRecord(wallet=wallet, transaction=ledger_entry)

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self, operation: str) -> None:
        """
        Commit the caller's transaction.

        כשל בזמן COMMIT הוא עמום: ייתכן שהשרת כבר שמר. לכן committed=None
        והשירות לא ינסה שוב.
        """
        try:
            await self.db.commit()
        except (sa_exc.DBAPIError, sa_exc.TimeoutError, asyncio.TimeoutError) as exc:
            raise storage_error(operation, exc, committed=None) from exc

    async def rollback(self) -> None:
        await self.db.rollback()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _execute(self, statement: Any, operation: str):
        try:
            return await self.db.execute(statement)
        except _TRANSIENT_ERRORS as exc:
            raise storage_error(operation, exc, committed=False) from exc

    async def _flush(self, operation: str) -> None:
        try:
            await self.db.flush()
        except _TRANSIENT_ERRORS as exc:
            raise storage_error(operation, exc, committed=False) from exc

    async def _refresh(self, instance: Any, operation: str) -> None:
        try:
            await self.db.refresh(instance)
        except _TRANSIENT_ERRORS as exc:
            raise storage_error(operation, exc, committed=False) from exc
