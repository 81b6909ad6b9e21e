"""
Job Unlock Model - Which provider unlocked which job
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint

from serviceconnect.db.database import Base


class JobUnlock(Base):
    """Immutable join record; a provider unlocks a given job at most once"""

    __tablename__ = "job_unlocks"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    unlocked_at = Column(DateTime, default=datetime.utcnow)

    # גיבוי אחרון מול מרוץ בין שתי בקשות מקבילות של אותו ספק
    __table_args__ = (
        UniqueConstraint("job_id", "provider_id", name="uq_job_unlock_job_provider"),
    )
