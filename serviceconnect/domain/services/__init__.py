"""
Domain Services
"""
from serviceconnect.domain.services.ledger_store import LedgerStore
from serviceconnect.domain.services.unlock_service import UnlockService
from serviceconnect.domain.services.wallet_service import WalletService
from serviceconnect.domain.services.job_lifecycle import JobLifecycleService
from serviceconnect.domain.services.pricing_service import PricingService
from serviceconnect.domain.services.provider_approval_service import ProviderApprovalService
from serviceconnect.domain.services.user_service import UserService

__all__ = [
    "LedgerStore",
    "UnlockService",
    "WalletService",
    "JobLifecycleService",
    "PricingService",
    "ProviderApprovalService",
    "UserService",
]
