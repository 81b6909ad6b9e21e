"""
Tests for LedgerStore - conditional writes and ledger consistency
"""
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy import exc as sa_exc
from unittest.mock import AsyncMock, patch

from serviceconnect.core.exceptions import (
    DuplicateUnlockError,
    InsufficientBalanceError,
    InvalidAmountError,
    JobClosedError,
    JobNotFoundError,
    StorageUnavailableError,
)
from serviceconnect.db.models.job import JobStatus
from serviceconnect.db.models.job_unlock import JobUnlock
from serviceconnect.db.models.transaction import Transaction, TransactionType
from serviceconnect.domain.services.ledger_store import LedgerStore


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestWallets:

    @pytest.mark.unit
    async def test_get_wallet_missing_returns_none(self, db_session, provider_factory):
        provider = await provider_factory()
        store = LedgerStore(db_session)

        assert await store.get_wallet(provider.id) is None

    @pytest.mark.unit
    async def test_get_or_create_wallet_creates_empty_once(self, db_session, provider_factory):
        provider = await provider_factory()
        store = LedgerStore(db_session)

        first = await store.get_or_create_wallet(provider.id)
        await store.commit("test")
        second = await store.get_or_create_wallet(provider.id)

        assert first.id == second.id
        assert first.balance == Decimal("0.00")


class TestRecordRecharge:

    @pytest.mark.unit
    async def test_recharge_credits_wallet_and_appends_transaction(self, db_session, provider_factory):
        provider = await provider_factory()
        store = LedgerStore(db_session)

        record = await store.record_recharge(provider.id, Decimal("500.00"))
        await store.commit("test")

        assert record.wallet.balance == Decimal("500.00")
        assert record.wallet.last_recharge_at is not None
        assert record.transaction.type == TransactionType.RECHARGE
        assert record.transaction.amount == Decimal("500.00")
        assert await store.ledger_balance(record.wallet.id) == Decimal("500.00")

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00")])
    async def test_recharge_rejects_non_positive_amount(self, db_session, provider_factory, amount):
        provider = await provider_factory()
        store = LedgerStore(db_session)

        with pytest.raises(InvalidAmountError):
            await store.record_recharge(provider.id, amount)


class TestRecordUnlock:

    @pytest.mark.unit
    async def test_unlock_writes_every_row_together(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("1000.00"))
        job = await job_factory()
        store = LedgerStore(db_session)

        record = await store.record_unlock(job.id, provider.id, Decimal("300.00"))
        await store.commit("test")

        assert record.wallet.balance == Decimal("700.00")
        assert record.job.unlock_count == 1
        assert record.job.status == JobStatus.OPEN
        assert record.just_closed is False
        assert record.transaction.type == TransactionType.UNLOCK
        assert record.transaction.amount == Decimal("300.00")
        assert record.transaction.job_id == job.id
        assert record.unlock.provider_id == provider.id
        assert await store.has_unlocked(job.id, provider.id) is True
        assert await store.ledger_balance(record.wallet.id) == Decimal("700.00")

    @pytest.mark.unit
    async def test_last_unlock_closes_job(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("500.00"))
        job = await job_factory(max_unlocks=3, unlock_count=2)
        store = LedgerStore(db_session)

        record = await store.record_unlock(job.id, provider.id, Decimal("100.00"))
        await store.commit("test")

        assert record.just_closed is True
        assert record.job.unlock_count == 3
        assert record.job.status == JobStatus.CLOSED

    @pytest.mark.unit
    async def test_debit_never_goes_below_zero(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("100.00"))
        job = await job_factory()
        provider_id = provider.id
        store = LedgerStore(db_session)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await store.record_unlock(job.id, provider.id, Decimal("300.00"))
        await store.rollback()

        assert exc_info.value.details["current_balance"] == 100.0
        assert exc_info.value.details["shortfall"] == 200.0
        wallet = await store.get_wallet(provider_id)
        assert wallet.balance == Decimal("100.00")
        assert await _count(db_session, JobUnlock) == 0

    @pytest.mark.unit
    async def test_increment_refused_at_cap(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("500.00"))
        job = await job_factory(max_unlocks=2, unlock_count=2, status=JobStatus.CLOSED)
        job_id, provider_id = job.id, provider.id
        store = LedgerStore(db_session)

        with pytest.raises(JobClosedError):
            await store.record_unlock(job_id, provider_id, Decimal("100.00"))
        await store.rollback()

        wallet = await store.get_wallet(provider_id)
        assert wallet.balance == Decimal("500.00")
        job = await store.get_job(job_id)
        assert job.unlock_count == 2

    @pytest.mark.unit
    async def test_unique_constraint_reports_duplicate(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("1000.00"))
        provider_id = provider.id
        job = await job_factory()
        store = LedgerStore(db_session)

        await store.record_unlock(job.id, provider.id, Decimal("100.00"))
        await store.commit("test")

        with pytest.raises(DuplicateUnlockError):
            await store.record_unlock(job.id, provider.id, Decimal("100.00"))
        await store.rollback()

        wallet = await store.get_wallet(provider_id)
        assert wallet.balance == Decimal("900.00")
        assert await _count(db_session, JobUnlock) == 1

    @pytest.mark.unit
    async def test_unknown_job(self, db_session, provider_factory):
        provider = await provider_factory(balance=Decimal("1000.00"))
        store = LedgerStore(db_session)

        with pytest.raises(JobNotFoundError):
            await store.record_unlock(999, provider.id, Decimal("100.00"))

    @pytest.mark.unit
    async def test_job_unlocks_listed_in_order(self, db_session, provider_factory, job_factory):
        first = await provider_factory(balance=Decimal("500.00"))
        second = await provider_factory(balance=Decimal("500.00"))
        job = await job_factory()
        store = LedgerStore(db_session)

        for provider in (first, second):
            await store.record_unlock(job.id, provider.id, Decimal("100.00"))
            await store.commit("test")

        unlocks = await store.get_job_unlocks(job.id)
        assert [u.provider_id for u in unlocks] == [first.id, second.id]


class TestHistoryAndErrors:

    @pytest.mark.unit
    async def test_transactions_newest_first(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(balance=Decimal("1000.00"))
        job = await job_factory()
        store = LedgerStore(db_session)

        await store.record_unlock(job.id, provider.id, Decimal("100.00"))
        await store.commit("test")
        wallet = await store.get_wallet(provider.id)

        history = await store.get_wallet_transactions(wallet.id)
        assert [t.type for t in history] == [TransactionType.UNLOCK, TransactionType.RECHARGE]
        assert len(await store.get_wallet_transactions(wallet.id, limit=1)) == 1

    @pytest.mark.unit
    async def test_operational_error_becomes_storage_unavailable(self, db_session):
        store = LedgerStore(db_session)
        failure = sa_exc.OperationalError("SELECT 1", {}, Exception("connection reset"))

        with patch.object(db_session, "execute", AsyncMock(side_effect=failure)):
            with pytest.raises(StorageUnavailableError) as exc_info:
                await store.get_wallet(1)

        assert exc_info.value.committed is False
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["reason"] == "OperationalError"
        assert "connection reset" not in str(exc_info.value.to_dict())

    @pytest.mark.unit
    async def test_commit_failure_outcome_unknown(self, db_session):
        store = LedgerStore(db_session)
        failure = sa_exc.OperationalError("COMMIT", {}, Exception("server closed the connection"))

        with patch.object(db_session, "commit", AsyncMock(side_effect=failure)):
            with pytest.raises(StorageUnavailableError) as exc_info:
                await store.commit("unlock_job")

        assert exc_info.value.committed is None
        assert exc_info.value.retryable is False

    @pytest.mark.unit
    async def test_ledger_balance_of_empty_wallet(self, db_session, provider_factory):
        provider = await provider_factory()
        store = LedgerStore(db_session)
        wallet = await store.get_or_create_wallet(provider.id)

        assert await store.ledger_balance(wallet.id) == Decimal("0.00")
        assert await _count(db_session, Transaction) == 0
