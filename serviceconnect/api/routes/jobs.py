"""
Job API Routes - posting, lifecycle and paid unlocks
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.db.database import get_db
from serviceconnect.db.models.job import JobStatus
from serviceconnect.domain.services.job_lifecycle import JobLifecycleService
from serviceconnect.domain.services.unlock_service import UnlockService
from serviceconnect.core.validation import category_validator, sanitized_text_validator

router = APIRouter()


class JobCreate(BaseModel):
    """Schema for posting a new job"""
    customer_id: int
    category: str
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    location: str = Field(min_length=2, max_length=500)
    budget: Optional[str] = Field(default=None, max_length=100)
    latitude: Optional[Decimal] = Field(default=None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(default=None, ge=-180, le=180)
    max_unlocks: Optional[int] = Field(default=None, ge=1, le=20)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return category_validator(v)

    @field_validator("title", "description", "location", "budget")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        """Reject injection patterns in free text"""
        return sanitized_text_validator(v)


class JobResponse(BaseModel):
    id: int
    customer_id: int
    category: str
    title: str
    description: str
    location: str
    budget: Optional[str]
    status: JobStatus
    unlock_count: int
    max_unlocks: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class UnlockStateResponse(BaseModel):
    unlock_count: int
    max_unlocks: int
    status: JobStatus


class UnlockRequest(BaseModel):
    provider_id: int


class CustomerContactResponse(BaseModel):
    customer_id: int
    name: Optional[str]
    phone_number: str


class UnlockResponse(BaseModel):
    job_id: int
    balance: float
    job: UnlockStateResponse
    just_closed: bool
    price: float
    customer_contact: CustomerContactResponse


class CustomerUnlockResponse(BaseModel):
    unlock_id: int
    job_id: int
    job_title: str
    provider_id: int
    provider_name: Optional[str]
    business_name: Optional[str]
    provider_phone: str
    whatsapp_link: str
    unlocked_at: Optional[datetime]

    class Config:
        from_attributes = True


class OwnerRequest(BaseModel):
    customer_id: int


class JobUnlockResponse(BaseModel):
    id: int
    job_id: int
    provider_id: int
    unlocked_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post(
    "",
    response_model=JobResponse,
    status_code=201,
    summary="Post a new job",
    description="Customer posts a service request. It starts open with unlock_count = 0.",
)
async def create_job(
    job_data: JobCreate,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.create_job(**job_data.model_dump())


@router.get(
    "/customer/{customer_id}",
    response_model=List[JobResponse],
    summary="List a customer's jobs",
)
async def list_customer_jobs(
    customer_id: int,
    status: Optional[JobStatus] = None,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.list_customer_jobs(customer_id, status)


@router.get(
    "/customer/{customer_id}/unlocks",
    response_model=List[CustomerUnlockResponse],
    summary="Providers who unlocked a customer's jobs",
    description="Newest first, with each provider's phone and a WhatsApp link so the customer can reach them too.",
)
async def list_customer_unlocks(
    customer_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.list_customer_unlocks(customer_id)


@router.get("/{job_id}", response_model=JobResponse, summary="Get job details")
async def get_job(
    job_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.get_job(job_id)


@router.get(
    "/{job_id}/unlock-state",
    response_model=UnlockStateResponse,
    summary="Unlock counter and status of a job",
)
async def get_unlock_state(
    job_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    state = await service.get_unlock_state(job_id)
    return UnlockStateResponse(
        unlock_count=state.unlock_count,
        max_unlocks=state.max_unlocks,
        status=state.status
    )


@router.post(
    "/{job_id}/unlock",
    response_model=UnlockResponse,
    summary="Unlock a job's customer contact",
    description=(
        "Charges the provider's wallet the category unlock price and reveals the customer "
        "contact. The job closes automatically when it reaches max_unlocks."
    ),
    responses={
        400: {"description": "INSUFFICIENT_BALANCE"},
        403: {"description": "PROVIDER_NOT_APPROVED"},
        404: {"description": "JOB_NOT_FOUND"},
        409: {"description": "JOB_CLOSED or ALREADY_UNLOCKED"},
        503: {"description": "STORAGE_UNAVAILABLE"},
    },
)
async def unlock_job(
    job_id: int,
    request: UnlockRequest,
    db: AsyncSession = Depends(get_db)
):
    service = UnlockService(db)
    result = await service.unlock_job(job_id, request.provider_id)
    return UnlockResponse(
        job_id=result.job_id,
        balance=float(result.balance),
        job=UnlockStateResponse(
            unlock_count=result.unlock_count,
            max_unlocks=result.max_unlocks,
            status=result.status
        ),
        just_closed=result.just_closed,
        price=float(result.price),
        customer_contact=CustomerContactResponse(
            customer_id=result.customer_contact.customer_id,
            name=result.customer_contact.name,
            phone_number=result.customer_contact.phone_number
        )
    )


@router.get(
    "/{job_id}/unlocks",
    response_model=List[JobUnlockResponse],
    summary="Providers who unlocked a job",
)
async def list_job_unlocks(
    job_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.list_unlocks(job_id)


@router.post("/{job_id}/close", response_model=JobResponse, summary="Close a job early")
async def close_job(
    job_id: int,
    request: OwnerRequest,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.close_job(job_id, request.customer_id)


@router.post(
    "/{job_id}/reopen",
    response_model=JobResponse,
    summary="Reopen a closed job",
    description="Only allowed while unlock_count is below max_unlocks.",
)
async def reopen_job(
    job_id: int,
    request: OwnerRequest,
    db: AsyncSession = Depends(get_db)
):
    service = JobLifecycleService(db)
    return await service.reopen_job(job_id, request.customer_id)
