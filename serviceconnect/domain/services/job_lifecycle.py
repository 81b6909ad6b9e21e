"""
Job Lifecycle - Status rules and customer-side job operations

A job is open while unlock_count < max_unlocks and closes when it
reaches the cap. The only other way to close a job is the customer
closing it by hand; a hand-closed job can be reopened while it is
still below its cap.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.config import settings
from serviceconnect.core.exceptions import (
    ForbiddenException,
    JobClosedError,
    JobNotFoundError,
    UserNotFoundError,
    ValidationException,
)
from serviceconnect.core.logging import get_logger
from serviceconnect.core.validation import CategoryValidator, TextSanitizer
from serviceconnect.db.models.job import Job, JobStatus
from serviceconnect.db.models.job_unlock import JobUnlock
from serviceconnect.db.models.provider_profile import ProviderProfile
from serviceconnect.db.models.user import User
from serviceconnect.domain.services.ledger_store import LedgerStore

logger = get_logger(__name__)


def derive_status(unlock_count: int, max_unlocks: int) -> JobStatus:
    """Status implied by the counter alone"""
    return JobStatus.CLOSED if unlock_count >= max_unlocks else JobStatus.OPEN


def is_consistent(job: Job) -> bool:
    """Bounds hold, and a job at its cap is closed"""
    if job.max_unlocks < 1:
        return False
    if job.unlock_count < 0 or job.unlock_count > job.max_unlocks:
        return False
    if job.unlock_count == job.max_unlocks and job.status != JobStatus.CLOSED:
        return False
    return True


@dataclass
class UnlockState:
    job_id: int
    unlock_count: int
    max_unlocks: int
    status: JobStatus


WHATSAPP_GREETING = "Hi, I saw your profile on ServiceConnect and would like to discuss the job."


def whatsapp_link(phone_number: str) -> str:
    """wa.me link with a prefilled greeting (wa.me takes digits only)"""
    return f"https://wa.me/{phone_number.lstrip('+')}?text={quote(WHATSAPP_GREETING)}"


@dataclass
class CustomerUnlockView:
    """A provider who unlocked one of the customer's jobs, with their contact"""
    unlock_id: int
    job_id: int
    job_title: str
    provider_id: int
    provider_name: Optional[str]
    business_name: Optional[str]
    provider_phone: str
    whatsapp_link: str
    unlocked_at: Optional[datetime]


class JobLifecycleService:
    """Service for posting and managing customer jobs"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = LedgerStore(db)

    async def create_job(
        self,
        customer_id: int,
        category: str,
        title: str,
        description: str,
        location: str,
        budget: Optional[str] = None,
        latitude: Optional[Decimal] = None,
        longitude: Optional[Decimal] = None,
        max_unlocks: Optional[int] = None
    ) -> Job:
        """Post a new open job with unlock_count = 0"""
        customer = await self.db.get(User, customer_id)
        if customer is None:
            raise UserNotFoundError(customer_id)
        if not customer.is_customer:
            raise ValidationException(f"User {customer_id} is not a customer", field="customer_id")
        if customer.is_blocked:
            raise ForbiddenException(
                f"User {customer_id} is blocked", details={"customer_id": customer_id}
            )

        is_valid, error = CategoryValidator.validate(category)
        if not is_valid:
            raise ValidationException(error, field="category")

        if max_unlocks is None:
            max_unlocks = settings.DEFAULT_MAX_UNLOCKS
        if max_unlocks < 1:
            raise ValidationException("max_unlocks must be at least 1", field="max_unlocks")

        job = Job(
            customer_id=customer_id,
            category=CategoryValidator.normalize(category),
            title=TextSanitizer.sanitize(title, max_length=200),
            description=TextSanitizer.sanitize(description, max_length=2000),
            location=TextSanitizer.sanitize(location, max_length=500),
            budget=TextSanitizer.sanitize(budget, max_length=100) if budget else None,
            latitude=latitude,
            longitude=longitude,
            status=JobStatus.OPEN,
            unlock_count=0,
            max_unlocks=max_unlocks
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        logger.info(
            "Job created",
            extra_data={"job_id": job.id, "customer_id": customer_id, "category": job.category}
        )
        return job

    async def get_job(self, job_id: int) -> Job:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_unlock_state(self, job_id: int) -> UnlockState:
        job = await self.get_job(job_id)
        return UnlockState(
            job_id=job.id,
            unlock_count=job.unlock_count,
            max_unlocks=job.max_unlocks,
            status=JobStatus(job.status)
        )

    async def list_customer_jobs(self, customer_id: int, status: Optional[JobStatus] = None) -> list[Job]:
        query = select(Job).where(Job.customer_id == customer_id)
        if status is not None:
            query = query.where(Job.status == status)
        result = await self.db.execute(query.order_by(Job.created_at.desc(), Job.id.desc()))
        return list(result.scalars().all())

    async def list_unlocks(self, job_id: int) -> list[JobUnlock]:
        await self.get_job(job_id)
        return await self.store.get_job_unlocks(job_id)

    async def list_customer_unlocks(self, customer_id: int) -> list[CustomerUnlockView]:
        """Providers who unlocked any of the customer's jobs, newest first"""
        customer = await self.db.get(User, customer_id)
        if customer is None:
            raise UserNotFoundError(customer_id)

        result = await self.db.execute(
            select(JobUnlock, Job.title, User, ProviderProfile.business_name)
            .join(Job, Job.id == JobUnlock.job_id)
            .join(User, User.id == JobUnlock.provider_id)
            .outerjoin(ProviderProfile, ProviderProfile.user_id == User.id)
            .where(Job.customer_id == customer_id)
            .order_by(JobUnlock.unlocked_at.desc(), JobUnlock.id.desc())
        )
        return [
            CustomerUnlockView(
                unlock_id=unlock.id,
                job_id=unlock.job_id,
                job_title=title,
                provider_id=provider.id,
                provider_name=provider.name,
                business_name=business_name,
                provider_phone=provider.phone_number,
                whatsapp_link=whatsapp_link(provider.phone_number),
                unlocked_at=unlock.unlocked_at
            )
            for unlock, title, provider, business_name in result.all()
        ]

    async def close_job(self, job_id: int, customer_id: int) -> Job:
        """Customer closes their job early; closing a closed job is a no-op"""
        job = await self._get_owned_job_for_update(job_id, customer_id)

        if job.status == JobStatus.CLOSED:
            return job

        job.status = JobStatus.CLOSED
        await self.db.commit()
        await self.db.refresh(job)

        logger.info("Job closed by customer", extra_data={"job_id": job_id, "customer_id": customer_id})
        return job

    async def reopen_job(self, job_id: int, customer_id: int) -> Job:
        """Reopen a hand-closed job; a job that reached its cap stays closed"""
        job = await self._get_owned_job_for_update(job_id, customer_id)

        if job.status == JobStatus.OPEN:
            return job

        if job.unlock_count >= job.max_unlocks:
            error = JobClosedError(job_id, job.unlock_count, job.max_unlocks)
            await self.db.rollback()
            raise error

        job.status = JobStatus.OPEN
        await self.db.commit()
        await self.db.refresh(job)

        logger.info("Job reopened by customer", extra_data={"job_id": job_id, "customer_id": customer_id})
        return job

    async def _get_owned_job_for_update(self, job_id: int, customer_id: int) -> Job:
        job = await self.store.get_job(job_id, for_update=True)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.customer_id != customer_id:
            await self.db.rollback()
            raise ForbiddenException(
                f"Job {job_id} does not belong to customer {customer_id}",
                details={"job_id": job_id, "customer_id": customer_id}
            )
        return job
