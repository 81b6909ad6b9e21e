"""
Fixtures ו-helpers לבדיקות תרחיש מקצה לקצה.

מספק:
- פונקציות אימות DB (מצב עבודה, יתרת ארנק, התאמה ל-ledger)
- הרצת פתיחות מקבילות, כל אחת ב-session נפרד
"""
import asyncio
from decimal import Decimal
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from serviceconnect.db.models.job import Job, JobStatus
from serviceconnect.db.models.job_unlock import JobUnlock
from serviceconnect.domain.services.ledger_store import LedgerStore
from serviceconnect.domain.services.unlock_service import UnlockService


async def assert_job_state(
    session: AsyncSession,
    job_id: int,
    unlock_count: int,
    status: JobStatus,
) -> Job:
    """בודק מונה וסטטוס, ושמספר שורות ה-JobUnlock תואם למונה"""
    job = await LedgerStore(session).get_job(job_id)
    assert job is not None, f"עבודה {job_id} לא נמצאה"
    assert job.unlock_count == unlock_count, f"unlock_count={job.unlock_count}, expected {unlock_count}"
    assert job.status == status, f"status={job.status}, expected {status}"

    rows = await session.scalar(
        select(func.count(JobUnlock.id)).where(JobUnlock.job_id == job_id)
    )
    assert rows == unlock_count
    return job


async def assert_wallet_balance(
    session: AsyncSession,
    provider_id: int,
    expected: Decimal | str,
) -> None:
    """יתרה צפויה, ויתרה == סכום ה-ledger"""
    store = LedgerStore(session)
    wallet = await store.get_wallet(provider_id)
    assert wallet is not None, f"לספק {provider_id} אין ארנק"
    assert Decimal(wallet.balance) == Decimal(str(expected))
    assert await store.ledger_balance(wallet.id) == Decimal(wallet.balance)


async def unlock_concurrently(
    session_maker: async_sessionmaker,
    attempts: list[tuple[int, int]],
) -> list[Any]:
    """
    מריץ (job_id, provider_id) במקביל, כל ניסיון ב-session משלו.

    מחזיר UnlockResult או את ה-exception שנזרק, לפי סדר הניסיונות.
    """
    async def _attempt(job_id: int, provider_id: int):
        async with session_maker() as session:
            return await UnlockService(session).unlock_job(job_id, provider_id)

    return await asyncio.gather(
        *(_attempt(job_id, provider_id) for job_id, provider_id in attempts),
        return_exceptions=True
    )
