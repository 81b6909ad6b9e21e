"""
Database Models
"""
from serviceconnect.db.models.user import User
from serviceconnect.db.models.customer_profile import CustomerProfile
from serviceconnect.db.models.provider_profile import ProviderProfile
from serviceconnect.db.models.job import Job
from serviceconnect.db.models.wallet import Wallet
from serviceconnect.db.models.transaction import Transaction
from serviceconnect.db.models.job_unlock import JobUnlock
from serviceconnect.db.models.admin_setting import AdminSetting
from serviceconnect.db.models.admin_action_log import AdminActionLog

__all__ = [
    "User",
    "CustomerProfile",
    "ProviderProfile",
    "Job",
    "Wallet",
    "Transaction",
    "JobUnlock",
    "AdminSetting",
    "AdminActionLog",
]
