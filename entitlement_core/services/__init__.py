"""Service layer for entitlement governance."""

from .admin_override_service import AdminOverrideService
from .base_service import BaseService, SessionManagedService
from .feature_gate import FeatureGate, evaluate_feature
from .governance_service import GovernanceService
from .quota_enforcer import QuotaEnforcer, inactive_reason
from .resource_slot_service import ResourceSlotService
from .usage_ledger_service import UsageLedgerService, replay_balance

__all__ = [
    "AdminOverrideService",
    "BaseService",
    "FeatureGate",
    "GovernanceService",
    "QuotaEnforcer",
    "ResourceSlotService",
    "SessionManagedService",
    "UsageLedgerService",
    "evaluate_feature",
    "inactive_reason",
    "replay_balance",
]
