"""
Job Model - Customer service requests
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Enum as SQLEnum, ForeignKey, Numeric, Text, CheckConstraint
)

from serviceconnect.db.database import Base


class JobStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class Job(Base):
    """Posted service request, open to provider unlocks until its cap is reached"""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    category = Column(String(50), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    budget = Column(String(100), nullable=True)  # טווח תקציב חופשי, למשל "₹500-1000"

    location = Column(String(500), nullable=False)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)

    status = Column(
        SQLEnum(JobStatus, name="job_status", values_callable=lambda x: [e.value for e in x]),
        default=JobStatus.OPEN,
        nullable=False,
        index=True
    )
    unlock_count = Column(Integer, default=0, nullable=False)
    max_unlocks = Column(Integer, default=3, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("max_unlocks > 0", name="ck_jobs_max_unlocks_positive"),
        CheckConstraint(
            "unlock_count >= 0 AND unlock_count <= max_unlocks",
            name="ck_jobs_unlock_count_bounds"
        ),
    )
