"""
Authoritative admission for counted resources.

Each live agent, campaign or call holds one slot ``0..max-1``. A unique
index on ``(tenant_id, resource_kind, slot_index)`` lets the database reject
the second of two concurrent claims, so two callers can never both take the
last slot.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..enums import ResourceKind
from ..exceptions import (
    BaseError,
    ConcurrentUpdateConflictError,
    LimitExceededError,
    TenantInactiveError,
    validation_failed,
)
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.slot_repository import SlotRepository
from ..repositories.tenant_repository import TenantRepository
from ..schemas.entitlement_schema import SlotReservation
from .base_service import SessionManagedService
from .quota_enforcer import inactive_reason


class ResourceSlotService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None, logger=None):
        super().__init__(session=session, logger=logger)
        self.tenant_repository = TenantRepository(self.session, self.logger)
        self.slot_repository = SlotRepository(self.session, self.logger)

    @operation()
    def acquire_slot(self, tenant_id: str, kind: ResourceKind, resource_ref: str) -> SlotReservation:
        """
        Reserve a slot for ``resource_ref`` if the tenant is under its limit.

        Acquiring again for a ref that already holds a slot returns that
        reservation with ``reused=True``.

        Raises:
            TenantNotFoundError: Unknown tenant
            TenantInactiveError: Tenant deactivated or subscription expired
            LimitExceededError: Every slot below the effective limit is held
            ConcurrentUpdateConflictError: Another caller took the free slot first
        """
        kind = ResourceKind(kind)
        if not isinstance(resource_ref, str) or not resource_ref.strip():
            raise validation_failed("resource_ref", resource_ref, "must be a non-empty string")

        try:
            with self.transaction():
                tenant = self.tenant_repository.get_by_tenant_id(tenant_id, for_update=True)
                entitlements = resolve_entitlements(tenant)

                reason = inactive_reason(entitlements)
                if reason is not None:
                    raise TenantInactiveError(tenant_id, reason=reason.value, resource=kind.value)

                existing = self.slot_repository.find_by_ref(tenant_id, kind, resource_ref)
                if existing is not None:
                    reservation = SlotReservation.model_validate(existing)
                    return reservation.model_copy(update={"reused": True})

                limit = entitlements.limit_for(kind)
                held = self.slot_repository.held_slots(tenant_id, kind)
                if len(held) >= limit:
                    raise LimitExceededError(tenant_id, kind.value, len(held), limit)

                taken = {slot.slot_index for slot in held}
                slot_index = next(i for i in range(limit) if i not in taken)

                if not self.slot_repository.try_claim(tenant_id, kind, slot_index, resource_ref):
                    raise ConcurrentUpdateConflictError(
                        f"Slot {slot_index} for {kind.value} was claimed concurrently",
                        tenant_id=tenant_id,
                        resource=kind.value,
                        slot_index=slot_index,
                    )

                claimed = self.slot_repository.find_by_ref(tenant_id, kind, resource_ref)
                reservation = SlotReservation.model_validate(claimed)
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("acquire_slot", e, tenant_id)

        self.logger.info(
            f"Acquired {kind.value} slot {slot_index} for tenant {tenant_id}",
            extra={"resource_ref": resource_ref, "held": len(held) + 1, "max": limit},
        )
        return reservation

    @operation()
    def release_slot(self, tenant_id: str, kind: ResourceKind, resource_ref: str) -> bool:
        """
        Free the slot held by ``resource_ref``.

        Returns:
            False if the ref held no slot
        """
        kind = ResourceKind(kind)
        try:
            with self.transaction():
                released = self.slot_repository.release(tenant_id, kind, resource_ref)
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("release_slot", e, tenant_id)

        if released:
            self.logger.info(
                f"Released {kind.value} slot for tenant {tenant_id}",
                extra={"resource_ref": resource_ref},
            )
        return released
