"""
Tests for ProviderApprovalService - approve, reject, block and dashboard stats
"""
from decimal import Decimal

import pytest
from sqlalchemy import select

from serviceconnect.db.models.admin_action_log import AdminActionLog, AdminActionType
from serviceconnect.db.models.job import JobStatus
from serviceconnect.db.models.provider_profile import ProviderStatus
from serviceconnect.db.models.user import UserType
from serviceconnect.domain.services.provider_approval_service import ProviderApprovalService
from serviceconnect.domain.services.unlock_service import UnlockService


async def _actions(db_session) -> list[AdminActionType]:
    result = await db_session.execute(select(AdminActionLog.action).order_by(AdminActionLog.id))
    return list(result.scalars().all())


class TestApprove:

    @pytest.mark.unit
    async def test_approve_pending_provider(self, db_session, provider_factory):
        provider = await provider_factory(status=ProviderStatus.PENDING)

        result = await ProviderApprovalService.approve(db_session, provider.id)

        assert result.success is True
        assert result.profile.status == ProviderStatus.APPROVED
        assert result.profile.approved_at is not None
        assert await _actions(db_session) == [AdminActionType.APPROVE_PROVIDER]

    @pytest.mark.unit
    async def test_approve_clears_rejection_note(self, db_session, provider_factory):
        provider = await provider_factory(status=ProviderStatus.PENDING)
        await ProviderApprovalService.reject(db_session, provider.id, "ID proof unreadable")

        result = await ProviderApprovalService.approve(db_session, provider.id)

        assert result.success is True
        assert result.profile.rejection_note is None

    @pytest.mark.unit
    async def test_already_approved(self, db_session, provider_factory):
        provider = await provider_factory()

        result = await ProviderApprovalService.approve(db_session, provider.id)

        assert result.success is False
        assert "already approved" in result.message
        assert await _actions(db_session) == []

    @pytest.mark.unit
    async def test_unknown_user(self, db_session):
        result = await ProviderApprovalService.approve(db_session, 999)
        assert result.success is False
        assert "not found" in result.message

    @pytest.mark.unit
    async def test_customer_has_no_profile(self, db_session, user_factory):
        customer = await user_factory(user_type=UserType.CUSTOMER)

        result = await ProviderApprovalService.approve(db_session, customer.id)

        assert result.success is False
        assert "no provider profile" in result.message

    @pytest.mark.unit
    async def test_blocked_provider_cannot_be_approved(self, db_session, provider_factory):
        provider = await provider_factory(status=ProviderStatus.PENDING, is_blocked=True)

        result = await ProviderApprovalService.approve(db_session, provider.id)

        assert result.success is False
        assert "blocked" in result.message

    @pytest.mark.unit
    async def test_approved_provider_can_unlock(self, db_session, provider_factory, job_factory):
        provider = await provider_factory(status=ProviderStatus.PENDING, balance=Decimal("500.00"))
        job = await job_factory()

        await ProviderApprovalService.approve(db_session, provider.id)
        result = await UnlockService(db_session).unlock_job(job.id, provider.id)

        assert result.unlock_count == 1


class TestReject:

    @pytest.mark.unit
    async def test_reject_with_note(self, db_session, provider_factory):
        provider = await provider_factory(status=ProviderStatus.PENDING)

        result = await ProviderApprovalService.reject(
            db_session, provider.id, "  Business   licence missing ", admin_id=None
        )

        assert result.success is True
        assert result.profile.status == ProviderStatus.REJECTED
        assert result.profile.rejection_note == "Business licence missing"
        assert await _actions(db_session) == [AdminActionType.REJECT_PROVIDER]

    @pytest.mark.unit
    async def test_cannot_reject_approved(self, db_session, provider_factory):
        provider = await provider_factory()

        result = await ProviderApprovalService.reject(db_session, provider.id)

        assert result.success is False
        assert "already approved" in result.message

    @pytest.mark.unit
    async def test_cannot_reject_twice(self, db_session, provider_factory):
        provider = await provider_factory(status=ProviderStatus.REJECTED)

        result = await ProviderApprovalService.reject(db_session, provider.id)

        assert result.success is False
        assert "already rejected" in result.message


class TestBlock:

    @pytest.mark.unit
    async def test_block_and_unblock(self, db_session, provider_factory):
        provider = await provider_factory()

        blocked = await ProviderApprovalService.block(db_session, provider.id)
        again = await ProviderApprovalService.block(db_session, provider.id)
        unblocked = await ProviderApprovalService.unblock(db_session, provider.id)

        assert blocked.success is True
        assert again.success is False
        assert unblocked.success is True
        assert unblocked.user.is_blocked is False
        assert await _actions(db_session) == [AdminActionType.BLOCK_USER, AdminActionType.UNBLOCK_USER]

    @pytest.mark.unit
    async def test_unblock_user_not_blocked(self, db_session, user_factory):
        user = await user_factory()

        result = await ProviderApprovalService.unblock(db_session, user.id)

        assert result.success is False


class TestQueries:

    @pytest.mark.unit
    async def test_list_pending_skips_blocked(self, db_session, provider_factory):
        first = await provider_factory(status=ProviderStatus.PENDING)
        second = await provider_factory(status=ProviderStatus.PENDING)
        await provider_factory(status=ProviderStatus.PENDING, is_blocked=True)
        await provider_factory()

        pending = await ProviderApprovalService.list_pending(db_session)

        assert [p.user_id for p in pending] == [first.id, second.id]

    @pytest.mark.unit
    async def test_dashboard_stats(self, db_session, provider_factory, job_factory, monkeypatch):
        from serviceconnect.core.config import settings
        monkeypatch.setattr(settings, "UNLOCK_PRICE_DEFAULT", Decimal("100.00"))
        monkeypatch.setattr(settings, "UNLOCK_PRICES", {})

        provider = await provider_factory(balance=Decimal("500.00"))
        await provider_factory(status=ProviderStatus.PENDING)
        job = await job_factory(max_unlocks=1)
        await job_factory(status=JobStatus.CLOSED)
        await UnlockService(db_session).unlock_job(job.id, provider.id)

        stats = await ProviderApprovalService.dashboard_stats(db_session)

        # שני ספקים ושני לקוחות (לקוח לכל עבודה)
        assert stats["total_users"] == 4
        assert stats["active_providers"] == 1
        assert stats["pending_approvals"] == 1
        assert stats["total_jobs"] == 2
        assert stats["open_jobs"] == 0
        assert stats["unlock_revenue"] == Decimal("100.00")
