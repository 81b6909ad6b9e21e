"""
Provider Profile Model - Business details and approval status
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Boolean, ForeignKey, Numeric, Text
from sqlalchemy.types import JSON

from serviceconnect.db.database import Base


class ProviderStatus(str, enum.Enum):
    """Provider approval status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProviderProfile(Base):
    """One-to-one extension of a provider user"""

    __tablename__ = "provider_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    business_name = Column(String(200), nullable=True)
    business_details = Column(Text, nullable=True)
    # רשימת קטגוריות (מחרוזות מנורמלות ב-lowercase)
    service_categories = Column(JSON, nullable=False, default=list)

    location = Column(String(500), nullable=True)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)
    service_radius = Column(Integer, default=5, nullable=False)  # ק"מ
    max_service_radius = Column(Integer, default=20, nullable=False)

    status = Column(
        SQLEnum(ProviderStatus, name="provider_status", values_callable=lambda x: [e.value for e in x]),
        default=ProviderStatus.PENDING,
        nullable=False,
        index=True
    )
    documents_uploaded = Column(Boolean, default=False, nullable=False)
    rejection_note = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_approved(self) -> bool:
        return self.status == ProviderStatus.APPROVED
