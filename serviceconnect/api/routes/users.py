"""
User API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.db.database import get_db
from serviceconnect.db.models.provider_profile import ProviderStatus
from serviceconnect.db.models.user import UserType
from serviceconnect.domain.services.user_service import UserService
from serviceconnect.core.validation import (
    category_validator,
    name_validator,
    phone_validator,
    sanitized_text_validator,
)

router = APIRouter()


class UserCreate(BaseModel):
    """Schema for creating a new user with validation"""
    phone_number: str
    user_type: UserType = UserType.CUSTOMER
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("user_type", mode="before")
    @classmethod
    def validate_user_type(cls, v: str | UserType) -> UserType:
        """תמיכה בערכי Enum גם בפורמט 'PROVIDER' וגם 'provider'"""
        if isinstance(v, UserType):
            return v
        if isinstance(v, str):
            try:
                return UserType(v.strip().lower())
            except ValueError as e:
                raise ValueError("Invalid user_type value") from e
        raise ValueError("Invalid user_type value")

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return phone_validator(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return name_validator(v)


class UserResponse(BaseModel):
    id: int
    phone_number: str
    name: Optional[str]
    email: Optional[str]
    user_type: UserType
    is_verified: bool
    is_blocked: bool
    profile_completed: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class CustomerProfileUpdate(BaseModel):
    location: Optional[str] = Field(default=None, max_length=500)
    latitude: Optional[Decimal] = Field(default=None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(default=None, ge=-180, le=180)
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("location")
    @classmethod
    def sanitize_location(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return name_validator(v)


class CustomerProfileResponse(BaseModel):
    id: int
    user_id: int
    location: Optional[str]
    latitude: Optional[Decimal]
    longitude: Optional[Decimal]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProviderProfileUpdate(BaseModel):
    service_categories: List[str] = Field(min_length=1)
    business_name: Optional[str] = Field(default=None, max_length=200)
    business_details: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=500)
    latitude: Optional[Decimal] = Field(default=None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(default=None, ge=-180, le=180)
    service_radius: int = Field(default=5, ge=1, le=20)

    @field_validator("service_categories")
    @classmethod
    def validate_categories(cls, v: List[str]) -> List[str]:
        return [category_validator(category) for category in v]

    @field_validator("business_name", "business_details", "location")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v)


class ProviderProfileResponse(BaseModel):
    id: int
    user_id: int
    business_name: Optional[str]
    business_details: Optional[str]
    service_categories: List[str]
    location: Optional[str]
    service_radius: int
    status: ProviderStatus
    rejection_note: Optional[str]
    approved_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    summary="Register a user",
    description="Creates a customer or provider after phone verification.",
    responses={
        400: {"description": "Phone number already registered"},
        422: {"description": "Request validation failed"},
    },
)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.create_user(**user_data.model_dump())


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.get_user(user_id)


@router.put(
    "/{user_id}/provider-profile",
    response_model=ProviderProfileResponse,
    summary="Create or update a provider profile",
    description="New profiles start pending admin approval.",
)
async def upsert_provider_profile(
    user_id: int,
    profile_data: ProviderProfileUpdate,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.complete_provider_profile(user_id, **profile_data.model_dump())


@router.get(
    "/{user_id}/provider-profile",
    response_model=ProviderProfileResponse,
    summary="Get a provider profile",
)
async def get_provider_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.get_provider_profile(user_id)


@router.put(
    "/{user_id}/customer-profile",
    response_model=CustomerProfileResponse,
    summary="Create or update a customer profile",
    description="Stores the customer's usual service location; name and email update the user.",
)
async def upsert_customer_profile(
    user_id: int,
    profile_data: CustomerProfileUpdate,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.complete_customer_profile(user_id, **profile_data.model_dump())


@router.get(
    "/{user_id}/customer-profile",
    response_model=CustomerProfileResponse,
    summary="Get a customer profile",
)
async def get_customer_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.get_customer_profile(user_id)
