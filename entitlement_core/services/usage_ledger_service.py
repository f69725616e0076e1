"""
Usage ledger service.

Every change to a tenant's minute balance is an idempotent ledger append
plus one server-side UPDATE, both in the same transaction. The balance on
the tenant row is a cache of the ledger; ``reconcile_tenant`` can rebuild
it from the records.
"""

from typing import List, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import MAX_IDEMPOTENCY_KEY_LENGTH, LedgerSource
from ..context.operation_context import operation
from ..exceptions import BaseError, validation_failed
from ..governance.entitlement_resolver import resolve_entitlements
from ..repositories.interfaces import AuditSink
from ..repositories.tenant_repository import TenantRepository
from ..repositories.usage_repository import UsageRepository
from ..schemas.entitlement_schema import (
    ReconciliationResult,
    UsageBalance,
    UsageRecordRead,
    UsageResult,
)
from ..utils.audit_sink import NoOpAuditSink
from ..utils.logger import get_logger
from .base_service import SessionManagedService

_PENDING_AUDIT_KEY = "pending_usage_audit"
_AUDIT_HOOKS_KEY = "usage_audit_hooks"


def _publish_pending(session: Session) -> None:
    pending = session.info.pop(_PENDING_AUDIT_KEY, [])
    for sink, record in pending:
        try:
            sink.publish(record)
        except Exception as e:
            get_logger().exception(
                f"Audit sink failed for usage record {record.sequence}: {str(e)}",
                extra={
                    "tenant_id": record.tenant_id,
                    "sequence": record.sequence,
                    "sink": type(sink).__name__,
                },
            )


def _discard_pending(session: Session) -> None:
    session.info.pop(_PENDING_AUDIT_KEY, None)


def _install_audit_hooks(session: Session) -> None:
    """Publish queued records once the session commits; drop them on rollback."""
    if session.info.get(_AUDIT_HOOKS_KEY):
        return
    event.listen(session, "after_commit", _publish_pending)
    event.listen(session, "after_rollback", _discard_pending)
    session.info[_AUDIT_HOOKS_KEY] = True


def replay_balance(deltas: List[int]) -> int:
    """Fold deltas in sequence order, clamping at zero after each one."""
    balance = 0
    for delta in deltas:
        balance = max(balance + delta, 0)
    return balance


class UsageLedgerService(SessionManagedService):
    """Records minute consumption and credits for tenants."""

    def __init__(
        self,
        session: Optional[Session] = None,
        audit_sink: Optional[AuditSink] = None,
        logger=None,
    ):
        super().__init__(session=session, logger=logger)
        self.tenant_repository = TenantRepository(self.session, self.logger)
        self.usage_repository = UsageRepository(self.session, self.logger)
        self.audit_sink = audit_sink or NoOpAuditSink()
        _install_audit_hooks(self.session)

    @staticmethod
    def _validate(minutes_delta: int, idempotency_key: str) -> None:
        if isinstance(minutes_delta, bool) or not isinstance(minutes_delta, int):
            raise validation_failed("minutes_delta", minutes_delta, "must be an integer")
        if minutes_delta == 0:
            raise validation_failed("minutes_delta", minutes_delta, "must not be zero")
        if not isinstance(idempotency_key, str) or not idempotency_key.strip():
            raise validation_failed("idempotency_key", idempotency_key, "must be a non-empty string")
        if len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise validation_failed(
                "idempotency_key",
                idempotency_key[:20] + "...",
                f"must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
            )

    def _queue_for_audit(self, record: UsageRecordRead) -> None:
        self.session.info.setdefault(_PENDING_AUDIT_KEY, []).append((self.audit_sink, record))

    @operation()
    def record_usage(
        self,
        tenant_id: str,
        minutes_delta: int,
        idempotency_key: str,
        source: str = LedgerSource.USAGE.value,
    ) -> UsageResult:
        """
        Apply a signed minute delta to the tenant's balance exactly once.

        A replayed ``idempotency_key`` changes nothing and returns the current
        balance with ``applied=False``. Recording is allowed for inactive or
        suspended tenants: the minutes were already consumed.

        Args:
            tenant_id: Tenant to charge
            minutes_delta: Non-zero minutes; negative values credit
            idempotency_key: Caller-chosen key, unique per tenant
            source: Label stored on the ledger record

        Returns:
            UsageResult with the balance after the call

        Raises:
            ValidationError: Invalid delta or key
            TenantNotFoundError: Unknown tenant
            ConcurrentUpdateConflictError: Lock contention; safe to retry with the same key
        """
        self._validate(minutes_delta, idempotency_key)
        source = source.value if isinstance(source, LedgerSource) else str(source)

        try:
            with self.transaction():
                # Serializes writers for this tenant until commit
                self.tenant_repository.get_by_tenant_id(tenant_id, for_update=True)

                inserted = self.usage_repository.insert_if_absent(
                    tenant_id, minutes_delta, idempotency_key, source
                )
                record = self.usage_repository.get_by_key(tenant_id, idempotency_key)

                if not inserted:
                    minutes_used = self.tenant_repository.get_minutes_used(tenant_id)
                    if record is not None and record.minutes_delta != minutes_delta:
                        self.logger.warning(
                            f"Idempotency key '{idempotency_key}' replayed with a different delta",
                            extra={
                                "tenant_id": tenant_id,
                                "recorded_delta": record.minutes_delta,
                                "replayed_delta": minutes_delta,
                            },
                        )
                    result = UsageResult(
                        tenant_id=tenant_id,
                        minutes_used=minutes_used,
                        applied=False,
                        sequence=record.sequence if record is not None else None,
                    )
                else:
                    minutes_used = self.tenant_repository.apply_minutes_delta(tenant_id, minutes_delta)
                    self._queue_for_audit(UsageRecordRead.model_validate(record))
                    result = UsageResult(
                        tenant_id=tenant_id,
                        minutes_used=minutes_used,
                        applied=True,
                        sequence=record.sequence,
                    )
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("record_usage", e, tenant_id)

        if result.applied:
            self.logger.info(
                f"Recorded {minutes_delta} minutes for tenant {tenant_id}",
                extra={"minutes_used": result.minutes_used, "sequence": result.sequence, "source": source},
            )
        else:
            self.logger.info(
                f"Ignored replayed usage key '{idempotency_key}' for tenant {tenant_id}",
                extra={"minutes_used": result.minutes_used},
            )
        return result

    def credit_minutes(self, tenant_id: str, minutes: int, idempotency_key: str) -> UsageResult:
        """Give minutes back to a tenant (a negative ledger delta)."""
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise validation_failed("minutes", minutes, "must be a positive integer")
        return self.record_usage(tenant_id, -minutes, idempotency_key, source=LedgerSource.CREDIT.value)

    @operation()
    def get_balance(self, tenant_id: str) -> UsageBalance:
        with self.transaction():
            entitlements = resolve_entitlements(self.tenant_repository.get_by_tenant_id(tenant_id))
        return UsageBalance(
            tenant_id=tenant_id,
            minutes_used=entitlements.minutes_used,
            max_minutes=entitlements.max_minutes,
            remaining=entitlements.minutes_remaining,
            status=entitlements.status,
        )

    @operation()
    def get_usage_history(self, tenant_id: str, limit: int = 100, offset: int = 0) -> List[UsageRecordRead]:
        """Ledger records of a tenant, newest first."""
        with self.transaction():
            self.tenant_repository.get_by_tenant_id(tenant_id)
            records = self.usage_repository.list_for_tenant(tenant_id, limit=limit, offset=offset)
            return [UsageRecordRead.model_validate(r) for r in records]

    @operation()
    def reconcile_tenant(self, tenant_id: str, apply: bool = True) -> ReconciliationResult:
        """
        Rebuild a tenant's balance from its ledger.

        Args:
            tenant_id: Tenant to check
            apply: Overwrite the stored balance when it drifted

        Returns:
            ReconciliationResult comparing stored and replayed balances
        """
        try:
            with self.transaction():
                self.tenant_repository.get_by_tenant_id(tenant_id, for_update=True)
                deltas = self.usage_repository.deltas_in_order(tenant_id)
                ledger_minutes = replay_balance(deltas)
                stored_minutes = self.tenant_repository.get_minutes_used(tenant_id)

                corrected = False
                if stored_minutes != ledger_minutes:
                    self.logger.warning(
                        f"Balance drift for tenant {tenant_id}: stored={stored_minutes}, "
                        f"ledger={ledger_minutes}",
                        extra={"apply": apply, "record_count": len(deltas)},
                    )
                    if apply:
                        self.tenant_repository.set_minutes_used(tenant_id, ledger_minutes)
                        corrected = True
        except BaseError:
            raise
        except Exception as e:
            self._handle_service_exception("reconcile_tenant", e, tenant_id)

        return ReconciliationResult(
            tenant_id=tenant_id,
            stored_minutes_used=stored_minutes,
            ledger_minutes_used=ledger_minutes,
            record_count=len(deltas),
            corrected=corrected,
        )

    @operation()
    def reconcile_all(self, apply: bool = True, batch_size: Optional[int] = None) -> List[ReconciliationResult]:
        """Reconcile every tenant, one transaction per tenant."""
        batch_size = batch_size or get_config().governance.reconciliation_batch_size

        results = []
        for batch in self.tenant_repository.iter_batches(batch_size):
            for tenant_id in batch:
                results.append(self.reconcile_tenant(tenant_id, apply=apply))

        drifted = sum(1 for r in results if not r.in_sync)
        self.logger.info(
            f"Reconciled {len(results)} tenants, {drifted} drifted",
            extra={"apply": apply, "batch_size": batch_size},
        )
        return results
