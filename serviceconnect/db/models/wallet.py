"""
Wallet Model - Provider prepaid balance
"""
from decimal import Decimal
from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint

from serviceconnect.db.database import Base


class Wallet(Base):
    """Materialized balance per provider: מקור האמת הוא טבלת transactions"""

    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    balance = Column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    last_recharge_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )
