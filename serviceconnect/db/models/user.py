"""
User Model - Customers, Providers and Admins
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Boolean

from serviceconnect.db.database import Base


class UserType(str, enum.Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


class User(Base):
    """Identity record: נוצר באימות OTP ראשון, לעולם לא נמחק (חסימה במקום)"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)  # חובה רק בהשלמת פרופיל
    user_type = Column(
        SQLEnum(UserType, name="user_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    is_verified = Column(Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    profile_completed = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_provider(self) -> bool:
        return self.user_type == UserType.PROVIDER

    @property
    def is_customer(self) -> bool:
        return self.user_type == UserType.CUSTOMER
