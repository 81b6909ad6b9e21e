"""
Admin Action Log Model: לוג ביקורת לפעולות אדמין

רישום בלתי-הפיך: מי אישר/דחה/חסם את מי ומתי.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Enum as SQLEnum
from sqlalchemy.types import JSON

from serviceconnect.db.database import Base


class AdminActionType(str, enum.Enum):
    APPROVE_PROVIDER = "approve_provider"
    REJECT_PROVIDER = "reject_provider"
    BLOCK_USER = "block_user"
    UNBLOCK_USER = "unblock_user"
    UPDATE_UNLOCK_PRICE = "update_unlock_price"


class AdminActionLog(Base):
    """Immutable admin audit entry"""

    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True, index=True)
    # קריאה עם X-Admin-API-Key אינה משויכת למשתמש: לכן nullable
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(
        SQLEnum(AdminActionType, name="admin_action_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True
    )
    target_id = Column(Integer, nullable=True)
    target_type = Column(String(20), nullable=True)  # user, job, wallet...
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
