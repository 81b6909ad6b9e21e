"""
Provider Approval Service - לוגיקת אישור/דחייה/חסימה לאדמין

Every successful mutation also writes an AdminActionLog row in the same commit.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.logging import get_logger
from serviceconnect.core.validation import TextSanitizer
from serviceconnect.db.models.admin_action_log import AdminActionLog, AdminActionType
from serviceconnect.db.models.job import Job, JobStatus
from serviceconnect.db.models.provider_profile import ProviderProfile, ProviderStatus
from serviceconnect.db.models.transaction import Transaction, TransactionType
from serviceconnect.db.models.user import User, UserType

logger = get_logger(__name__)


@dataclass
class ApprovalResult:
    """תוצאת פעולת אדמין"""
    success: bool
    message: str
    user: Optional[User] = None
    profile: Optional[ProviderProfile] = None


def _display_name(user: User, profile: Optional[ProviderProfile] = None) -> str:
    if profile is not None and profile.business_name:
        return profile.business_name
    return user.name or "unnamed"


def _log_action(
    db: AsyncSession,
    action: AdminActionType,
    user_id: int,
    admin_id: Optional[int],
    details: Optional[dict[str, Any]] = None
) -> None:
    db.add(AdminActionLog(
        admin_id=admin_id,
        action=action,
        target_id=user_id,
        target_type="user",
        details=details
    ))


class ProviderApprovalService:
    """שירות אישור/דחיית ספקים וחסימת משתמשים"""

    @staticmethod
    async def _load(db: AsyncSession, user_id: int) -> tuple[Optional[User], Optional[ProviderProfile]]:
        result = await db.execute(
            select(User, ProviderProfile)
            .outerjoin(ProviderProfile, ProviderProfile.user_id == User.id)
            .where(User.id == user_id)
        )
        row = result.first()
        if row is None:
            return None, None
        return row[0], row[1]

    @staticmethod
    async def approve(db: AsyncSession, user_id: int, admin_id: Optional[int] = None) -> ApprovalResult:
        """Approve a pending or previously rejected provider"""
        user, profile = await ProviderApprovalService._load(db, user_id)

        if user is None:
            return ApprovalResult(False, f"User {user_id} not found")

        if user.user_type != UserType.PROVIDER or profile is None:
            return ApprovalResult(False, f"User {user_id} has no provider profile")

        if user.is_blocked:
            return ApprovalResult(
                False,
                f"Provider {user_id} ({_display_name(user, profile)}) is blocked and cannot be approved"
            )

        if profile.status == ProviderStatus.APPROVED:
            return ApprovalResult(
                False,
                f"Provider {user_id} ({_display_name(user, profile)}) is already approved"
            )

        previous = profile.status.value
        profile.status = ProviderStatus.APPROVED
        profile.approved_at = datetime.utcnow()
        profile.rejection_note = None
        _log_action(db, AdminActionType.APPROVE_PROVIDER, user_id, admin_id, {"previous_status": previous})
        await db.commit()

        logger.info(
            "Provider approved",
            extra_data={"user_id": user_id, "admin_id": admin_id, "previous_status": previous}
        )
        return ApprovalResult(
            True,
            f"Provider {user_id} ({_display_name(user, profile)}) approved",
            user,
            profile
        )

    @staticmethod
    async def reject(
        db: AsyncSession,
        user_id: int,
        rejection_note: Optional[str] = None,
        admin_id: Optional[int] = None
    ) -> ApprovalResult:
        """Reject a pending provider; approved providers are blocked instead"""
        user, profile = await ProviderApprovalService._load(db, user_id)

        if user is None:
            return ApprovalResult(False, f"User {user_id} not found")

        if user.user_type != UserType.PROVIDER or profile is None:
            return ApprovalResult(False, f"User {user_id} has no provider profile")

        if profile.status == ProviderStatus.APPROVED:
            return ApprovalResult(
                False,
                f"Provider {user_id} ({_display_name(user, profile)}) is already approved and cannot be rejected"
            )

        if profile.status == ProviderStatus.REJECTED:
            return ApprovalResult(
                False,
                f"Provider {user_id} ({_display_name(user, profile)}) is already rejected"
            )

        note = TextSanitizer.sanitize(rejection_note, max_length=500) if rejection_note else None
        profile.status = ProviderStatus.REJECTED
        # מעדכנים תמיד, גם ל-None
        profile.rejection_note = note
        _log_action(db, AdminActionType.REJECT_PROVIDER, user_id, admin_id, {"note": note})
        await db.commit()

        logger.info(
            "Provider rejected",
            extra_data={"user_id": user_id, "admin_id": admin_id, "has_rejection_note": bool(note)}
        )
        return ApprovalResult(
            True,
            f"Provider {user_id} ({_display_name(user, profile)}) rejected",
            user,
            profile
        )

    @staticmethod
    async def block(db: AsyncSession, user_id: int, admin_id: Optional[int] = None) -> ApprovalResult:
        user, profile = await ProviderApprovalService._load(db, user_id)

        if user is None:
            return ApprovalResult(False, f"User {user_id} not found")

        if user.is_blocked:
            return ApprovalResult(False, f"User {user_id} is already blocked", user, profile)

        user.is_blocked = True
        _log_action(db, AdminActionType.BLOCK_USER, user_id, admin_id)
        await db.commit()

        logger.info("User blocked", extra_data={"user_id": user_id, "admin_id": admin_id})
        return ApprovalResult(True, f"User {user_id} blocked", user, profile)

    @staticmethod
    async def unblock(db: AsyncSession, user_id: int, admin_id: Optional[int] = None) -> ApprovalResult:
        user, profile = await ProviderApprovalService._load(db, user_id)

        if user is None:
            return ApprovalResult(False, f"User {user_id} not found")

        if not user.is_blocked:
            return ApprovalResult(False, f"User {user_id} is not blocked", user, profile)

        user.is_blocked = False
        _log_action(db, AdminActionType.UNBLOCK_USER, user_id, admin_id)
        await db.commit()

        logger.info("User unblocked", extra_data={"user_id": user_id, "admin_id": admin_id})
        return ApprovalResult(True, f"User {user_id} unblocked", user, profile)

    @staticmethod
    async def list_pending(db: AsyncSession) -> list[ProviderProfile]:
        """ספקים שממתינים לאישור, הוותיקים קודם"""
        result = await db.execute(
            select(ProviderProfile)
            .join(User, User.id == ProviderProfile.user_id)
            .where(
                ProviderProfile.status == ProviderStatus.PENDING,
                User.is_blocked.is_(False)
            )
            .order_by(ProviderProfile.created_at, ProviderProfile.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def dashboard_stats(db: AsyncSession) -> dict[str, Any]:
        """Counters for the admin dashboard"""
        total_users = await db.scalar(select(func.count(User.id)))
        active_providers = await db.scalar(
            select(func.count(ProviderProfile.id))
            .where(ProviderProfile.status == ProviderStatus.APPROVED)
        )
        pending_approvals = await db.scalar(
            select(func.count(ProviderProfile.id))
            .where(ProviderProfile.status == ProviderStatus.PENDING)
        )
        total_jobs = await db.scalar(select(func.count(Job.id)))
        open_jobs = await db.scalar(
            select(func.count(Job.id)).where(Job.status == JobStatus.OPEN)
        )
        unlock_revenue = await db.scalar(
            select(func.coalesce(func.sum(Transaction.amount), 0))
            .where(Transaction.type == TransactionType.UNLOCK)
        )

        return {
            "total_users": total_users or 0,
            "active_providers": active_providers or 0,
            "pending_approvals": pending_approvals or 0,
            "total_jobs": total_jobs or 0,
            "open_jobs": open_jobs or 0,
            "unlock_revenue": Decimal(str(unlock_revenue or 0)).quantize(Decimal("0.01")),
        }
