"""
User Service - Users, customer profiles and provider profiles
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.exceptions import NotFoundException, UserNotFoundError, ValidationException
from serviceconnect.core.logging import get_logger
from serviceconnect.core.validation import (
    CategoryValidator,
    NameValidator,
    PhoneNumberValidator,
    TextSanitizer,
)
from serviceconnect.db.models.customer_profile import CustomerProfile
from serviceconnect.db.models.provider_profile import ProviderProfile, ProviderStatus
from serviceconnect.db.models.user import User, UserType

logger = get_logger(__name__)

MIN_SERVICE_RADIUS = 1
MAX_SERVICE_RADIUS = 20


class UserService:
    """Service for user registration and customer / provider profiles"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(
        self,
        phone_number: str,
        user_type: UserType,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> User:
        """Register a user after OTP verification; phone numbers are unique"""
        if not PhoneNumberValidator.validate(phone_number):
            raise ValidationException("Invalid phone number format", field="phone_number")
        phone_number = PhoneNumberValidator.normalize(phone_number)

        if name is not None:
            is_valid, error = NameValidator.validate(name)
            if not is_valid:
                raise ValidationException(error, field="name")
            name = TextSanitizer.sanitize(name, max_length=NameValidator.MAX_LENGTH)

        existing = await self.get_by_phone(phone_number)
        if existing is not None:
            raise ValidationException(
                "Phone number already registered", field="phone_number"
            )

        user = User(
            phone_number=phone_number,
            user_type=user_type,
            name=name,
            email=email,
            is_verified=True
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ValidationException(
                "Phone number already registered", field="phone_number"
            ) from exc
        await self.db.refresh(user)

        logger.info(
            "User created",
            extra_data={
                "user_id": user.id,
                "user_type": user_type.value,
                "phone": PhoneNumberValidator.mask(phone_number),
            }
        )
        return user

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_by_phone(self, phone_number: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.phone_number == phone_number)
        )
        return result.scalar_one_or_none()

    async def get_customer_profile(self, user_id: int) -> CustomerProfile:
        result = await self.db.execute(
            select(CustomerProfile).where(CustomerProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundException("CustomerProfile", user_id)
        return profile

    async def complete_customer_profile(
        self,
        user_id: int,
        location: Optional[str] = None,
        latitude: Optional[Decimal] = None,
        longitude: Optional[Decimal] = None,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> CustomerProfile:
        """Create or update the customer profile; name and email go on the user"""
        user = await self.get_user(user_id)
        if not user.is_customer:
            raise ValidationException(f"User {user_id} is not a customer", field="user_id")

        if name is not None:
            is_valid, error = NameValidator.validate(name)
            if not is_valid:
                raise ValidationException(error, field="name")
            user.name = TextSanitizer.sanitize(name, max_length=NameValidator.MAX_LENGTH)
        if email is not None:
            user.email = email.strip() or None

        result = await self.db.execute(
            select(CustomerProfile).where(CustomerProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
        created = profile is None
        if created:
            profile = CustomerProfile(user_id=user_id)
            self.db.add(profile)

        profile.location = TextSanitizer.sanitize(location, max_length=500) if location else None
        profile.latitude = latitude
        profile.longitude = longitude
        user.profile_completed = True

        await self.db.commit()
        await self.db.refresh(profile)

        logger.info("Customer profile saved", extra_data={"user_id": user_id, "created": created})
        return profile

    async def get_provider_profile(self, user_id: int) -> ProviderProfile:
        result = await self.db.execute(
            select(ProviderProfile).where(ProviderProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundException("ProviderProfile", user_id)
        return profile

    async def complete_provider_profile(
        self,
        user_id: int,
        service_categories: list[str],
        business_name: Optional[str] = None,
        business_details: Optional[str] = None,
        location: Optional[str] = None,
        latitude: Optional[Decimal] = None,
        longitude: Optional[Decimal] = None,
        service_radius: int = 5
    ) -> ProviderProfile:
        """
        Create or update the provider profile.

        New profiles start pending approval. Editing an existing profile
        keeps its approval status.
        """
        user = await self.get_user(user_id)
        if not user.is_provider:
            raise ValidationException(f"User {user_id} is not a provider", field="user_id")

        categories: list[str] = []
        for category in service_categories:
            is_valid, error = CategoryValidator.validate(category)
            if not is_valid:
                raise ValidationException(error, field="service_categories")
            normalized = CategoryValidator.normalize(category)
            if normalized not in categories:
                categories.append(normalized)
        if not categories:
            raise ValidationException(
                "At least one service category is required", field="service_categories"
            )

        if not MIN_SERVICE_RADIUS <= service_radius <= MAX_SERVICE_RADIUS:
            raise ValidationException(
                f"service_radius must be between {MIN_SERVICE_RADIUS} and {MAX_SERVICE_RADIUS} km",
                field="service_radius"
            )

        result = await self.db.execute(
            select(ProviderProfile).where(ProviderProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
        created = profile is None
        if created:
            profile = ProviderProfile(user_id=user_id, status=ProviderStatus.PENDING)
            self.db.add(profile)

        profile.service_categories = categories
        profile.business_name = TextSanitizer.sanitize(business_name, max_length=200) if business_name else None
        profile.business_details = TextSanitizer.sanitize(business_details) if business_details else None
        profile.location = TextSanitizer.sanitize(location, max_length=500) if location else None
        profile.latitude = latitude
        profile.longitude = longitude
        profile.service_radius = service_radius
        user.profile_completed = True

        await self.db.commit()
        await self.db.refresh(profile)

        logger.info(
            "Provider profile saved",
            extra_data={"user_id": user_id, "created": created, "status": profile.status.value}
        )
        return profile
