"""
Transaction Model - Immutable wallet ledger
"""
import enum
from decimal import Decimal
from datetime import datetime
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, String, Enum as SQLEnum, CheckConstraint

from serviceconnect.db.database import Base


class TransactionType(str, enum.Enum):
    RECHARGE = "recharge"
    UNLOCK = "unlock"


# סימן התנועה נגזר מהסוג: הסכום נשמר תמיד חיובי
TRANSACTION_SIGN: dict[TransactionType, int] = {
    TransactionType.RECHARGE: 1,
    TransactionType.UNLOCK: -1,
}


class Transaction(Base):
    """Immutable ledger entry; sum of signed amounts == wallet balance"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)

    type = Column(
        SQLEnum(TransactionType, name="transaction_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False
    )
    amount = Column(Numeric(10, 2), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)  # רק עבור unlock

    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    @property
    def signed_amount(self) -> Decimal:
        return Decimal(self.amount) * TRANSACTION_SIGN[TransactionType(self.type)]
