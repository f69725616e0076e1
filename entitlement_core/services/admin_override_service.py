"""
Admin override service.

Privileged operations on tenant records: provisioning, limit and feature
overrides, activation and tier changes. Callers are already authorized;
every operation fails loudly with a typed error.
"""

from collections import Counter
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..config import get_config
from ..context.operation_context import operation
from ..db.db_base import ensure_utc
from ..db.db_tenant_models import Tenant
from ..enums import TierName
from ..exceptions import BaseError, ErrorCode, InvalidTierError, RepositoryError, ServiceError
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.tenant_repository import TenantRepository
from ..schemas.entitlement_schema import SystemUsageStats
from ..schemas.tenant_schema import FeaturesUpdate, LimitsUpdate, TenantCreate, TenantRead
from .base_service import SessionManagedService

_LIMIT_FIELDS = ("max_agents", "max_campaigns", "max_concurrent_calls", "max_minutes")


class AdminOverrideService(SessionManagedService):
    """
    Service for managing tenant records.

    Writes are single UPDATE statements so concurrent readers see either the
    old or the new tenant state, never a mix.
    """

    def __init__(self, session: Optional[Session] = None, logger=None):
        super().__init__(session=session, logger=logger)
        self.repository = TenantRepository(self.session, self.logger)

    @operation()
    def create_tenant(self, tenant_data: TenantCreate) -> TenantRead:
        """
        Provision a new tenant.

        Args:
            tenant_data: Validated tenant data; omitted limits inherit the tier

        Returns:
            The stored tenant

        Raises:
            ServiceError: DUPLICATE if the tenant_id is taken
        """
        try:
            with self.transaction():
                if self.repository.exists(tenant_data.tenant_id):
                    raise ServiceError(
                        f"Tenant already exists: {tenant_data.tenant_id}",
                        error_code=ErrorCode.DUPLICATE,
                        operation="create_tenant",
                        tenant_id=tenant_data.tenant_id,
                    )

                tier = tenant_data.tier or get_config().governance.default_tier
                tenant = Tenant(
                    tenant_id=tenant_data.tenant_id,
                    name=tenant_data.name,
                    tier=tier.value,
                    max_agents=tenant_data.max_agents,
                    max_campaigns=tenant_data.max_campaigns,
                    max_concurrent_calls=tenant_data.max_concurrent_calls,
                    max_minutes=tenant_data.max_minutes,
                    minutes_used=0,
                    allowed_features=dict(tenant_data.allowed_features),
                    is_active=tenant_data.is_active,
                    subscription_expires_at=ensure_utc(tenant_data.subscription_expires_at),
                    created_by=tenant_data.created_by,
                )
                self.repository.add(tenant)
                result = TenantRead.model_validate(tenant)
        except RepositoryError as e:
            # Lost a race with another create for the same tenant_id
            if e.error_code == ErrorCode.DUPLICATE:
                raise ServiceError(
                    f"Tenant already exists: {tenant_data.tenant_id}",
                    error_code=ErrorCode.DUPLICATE,
                    operation="create_tenant",
                    tenant_id=tenant_data.tenant_id,
                    cause=e,
                ) from e
            raise
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("create_tenant", e, tenant_data.tenant_id)

        self.logger.info(
            f"Created tenant: {result.tenant_id}",
            extra={"tier": result.tier, "created_by": result.created_by},
        )
        return result

    @operation()
    def get_tenant(self, tenant_id: str) -> TenantRead:
        with self.transaction():
            return TenantRead.model_validate(self.repository.get_by_tenant_id(tenant_id))

    @operation()
    def list_tenants(self, limit: int = 100, offset: int = 0) -> List[TenantRead]:
        with self.transaction():
            tenants = self.repository.list_tenants(limit=limit, offset=offset)
            return [TenantRead.model_validate(t) for t in tenants]

    def _update(self, operation_name: str, tenant_id: str, values: dict) -> TenantRead:
        try:
            with self.transaction():
                if values:
                    self.repository.update_fields(tenant_id, values)
                result = TenantRead.model_validate(self.repository.get_by_tenant_id(tenant_id))
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception(operation_name, e, tenant_id)

        self.logger.info(
            f"Updated tenant {tenant_id} via {operation_name}",
            extra={"fields": ",".join(sorted(values))},
        )
        return result

    @operation()
    def update_limits(self, tenant_id: str, limits: LimitsUpdate) -> TenantRead:
        """
        Override limits; only fields set on ``limits`` change.

        An explicit None clears the override so the tier default applies.
        """
        return self._update("update_limits", tenant_id, limits.provided_changes())

    @operation()
    def update_features(self, tenant_id: str, update: FeaturesUpdate) -> TenantRead:
        """Merge feature overrides; None removes an override."""
        try:
            with self.transaction():
                tenant = self.repository.get_by_tenant_id(tenant_id, for_update=True)
                merged = dict(tenant.allowed_features or {})
                for feature, enabled in update.features.items():
                    if enabled is None:
                        merged.pop(feature, None)
                    else:
                        merged[feature] = bool(enabled)
                self.repository.update_fields(tenant_id, {"allowed_features": merged})
                result = TenantRead.model_validate(self.repository.get_by_tenant_id(tenant_id))
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("update_features", e, tenant_id)

        self.logger.info(
            f"Updated feature overrides for tenant {tenant_id}",
            extra={"overrides": len(result.allowed_features)},
        )
        return result

    @operation()
    def set_active(self, tenant_id: str, active: bool) -> TenantRead:
        """Activate or deactivate a tenant; the minute balance is untouched."""
        return self._update("set_active", tenant_id, {"is_active": bool(active)})

    @operation()
    def set_subscription_expiry(self, tenant_id: str, expires_at: Optional[datetime]) -> TenantRead:
        """Set or clear (None) the subscription end."""
        return self._update(
            "set_subscription_expiry", tenant_id, {"subscription_expires_at": ensure_utc(expires_at)}
        )

    @operation()
    def change_tier(self, tenant_id: str, new_tier: Union[TierName, str]) -> TenantRead:
        """
        Move a tenant to another tier.

        Limit overrides and feature overrides are cleared in the same UPDATE
        so everything comes from the new tier.

        Raises:
            InvalidTierError: Unknown tier name
        """
        tier = TierName.parse(new_tier)
        if tier is None:
            raise InvalidTierError(new_tier)

        values = {field: None for field in _LIMIT_FIELDS}
        values["tier"] = tier.value
        values["allowed_features"] = {}
        return self._update("change_tier", tenant_id, values)

    @operation()
    def get_system_usage_stats(self, batch_size: Optional[int] = None) -> SystemUsageStats:
        """Tenant counts and minute totals across every tenant."""
        batch_size = batch_size or get_config().governance.reconciliation_batch_size

        total = active = 0
        tiers: Counter = Counter()
        minutes_used = minutes_allowed = 0
        with self.transaction():
            for batch in self.repository.iter_batches(batch_size):
                for tenant in self.repository.get_many(batch):
                    entitlements = resolve_entitlements(tenant)
                    total += 1
                    if tenant.is_active:
                        active += 1
                    tiers[entitlements.tier] += 1
                    minutes_used += entitlements.minutes_used
                    minutes_allowed += entitlements.max_minutes

        return SystemUsageStats(
            total_tenants=total,
            active_tenants=active,
            inactive_tenants=total - active,
            tenants_by_tier=dict(tiers),
            total_minutes_used=minutes_used,
            total_minutes_allowed=minutes_allowed,
        )
