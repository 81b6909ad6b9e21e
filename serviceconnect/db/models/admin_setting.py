"""
Admin Setting Model - key/value overrides managed from the admin dashboard
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Text

from serviceconnect.db.database import Base


class AdminSetting(Base):
    """Global setting, e.g. unlock_price:plumbing -> "150.00" """

    __tablename__ = "admin_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(Text, nullable=False)
    category = Column(String(50), nullable=False)  # pricing, notifications...
    description = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
