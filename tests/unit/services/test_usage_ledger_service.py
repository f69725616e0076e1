"""
Tests for UsageLedgerService.

Uses the real SQLite test database. The ledger fixture shares the test
session, so these tests commit explicitly wherever publishing after commit
matters.
"""

import pytest

from entitlement_core.constants import LedgerSource
from entitlement_core.enums import TenantStatus
from entitlement_core.exceptions import ErrorCode, TenantNotFoundError, ValidationError
from entitlement_core.repositories.interfaces import AuditSink
from entitlement_core.services import QuotaEnforcer, UsageLedgerService, replay_balance
from tests.fixtures.factories import TenantFactory, UsageRecordFactory


class FailingSink(AuditSink):
    def publish(self, record):
        raise RuntimeError("sink is down")


class TestRecordUsage:
    def test_first_record_applies(self, usage_ledger, usage_repository):
        tenant = TenantFactory()

        result = usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")

        assert result.applied
        assert result.minutes_used == 10
        assert result.sequence is not None
        assert usage_repository.count_for_tenant(tenant.tenant_id) == 1

    def test_records_accumulate(self, usage_ledger):
        tenant = TenantFactory()

        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        result = usage_ledger.record_usage(tenant.tenant_id, 15, "call-2")

        assert result.minutes_used == 25

    def test_replayed_key_changes_nothing(self, usage_ledger, usage_repository):
        tenant = TenantFactory()
        first = usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")

        replay = usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")

        assert not replay.applied
        assert replay.minutes_used == 10
        assert replay.sequence == first.sequence
        assert usage_repository.count_for_tenant(tenant.tenant_id) == 1

    def test_replay_with_different_delta_keeps_original(self, usage_ledger):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")

        replay = usage_ledger.record_usage(tenant.tenant_id, 99, "call-1")

        assert not replay.applied
        assert replay.minutes_used == 10

    def test_same_key_on_different_tenants_is_independent(self, usage_ledger):
        tenant_a = TenantFactory()
        tenant_b = TenantFactory()

        usage_ledger.record_usage(tenant_a.tenant_id, 10, "shared-key")
        result = usage_ledger.record_usage(tenant_b.tenant_id, 7, "shared-key")

        assert result.applied
        assert result.minutes_used == 7

    def test_credit_clamps_at_zero(self, usage_ledger):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 5, "call-1")

        result = usage_ledger.record_usage(tenant.tenant_id, -20, "refund-1")

        assert result.applied
        assert result.minutes_used == 0

    def test_overshoot_is_recorded_then_next_call_blocked(
        self, usage_ledger, tenant_repository, census
    ):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 95, "call-1")

        result = usage_ledger.record_usage(tenant.tenant_id, 10, "call-2")

        assert result.minutes_used == 105
        check = QuotaEnforcer(tenant_repository, census).has_minutes_remaining(tenant.tenant_id)
        assert not check.allowed
        assert check.remaining == 0

    def test_inactive_tenant_can_still_record(self, usage_ledger):
        tenant = TenantFactory(is_active=False)

        result = usage_ledger.record_usage(tenant.tenant_id, 12, "call-1")

        assert result.applied
        assert result.minutes_used == 12

    def test_source_is_stored(self, usage_ledger, usage_repository):
        tenant = TenantFactory()

        usage_ledger.record_usage(
            tenant.tenant_id, 3, "call-1", source=LedgerSource.CALL_COMPLETED
        )

        record = usage_repository.get_by_key(tenant.tenant_id, "call-1")
        assert record.source == "call_completed"

    def test_unknown_tenant_raises_and_writes_nothing(self, usage_ledger, usage_repository):
        with pytest.raises(TenantNotFoundError):
            usage_ledger.record_usage("missing", 10, "call-1")

        assert usage_repository.count_for_tenant("missing") == 0


class TestValidation:
    @pytest.mark.parametrize("delta", [0, True, 1.5, "10", None])
    def test_invalid_delta(self, usage_ledger, delta):
        tenant = TenantFactory()

        with pytest.raises(ValidationError) as exc_info:
            usage_ledger.record_usage(tenant.tenant_id, delta, "call-1")

        assert exc_info.value.context["field"] == "minutes_delta"
        assert exc_info.value.error_code == ErrorCode.VALIDATION_FAILED

    @pytest.mark.parametrize("key", ["", "   ", None, "k" * 201])
    def test_invalid_key(self, usage_ledger, key):
        tenant = TenantFactory()

        with pytest.raises(ValidationError) as exc_info:
            usage_ledger.record_usage(tenant.tenant_id, 10, key)

        assert exc_info.value.context["field"] == "idempotency_key"

    def test_key_at_max_length_is_accepted(self, usage_ledger):
        tenant = TenantFactory()
        assert usage_ledger.record_usage(tenant.tenant_id, 1, "k" * 200).applied


class TestAuditPublishing:
    def test_published_only_after_commit(self, usage_ledger, audit_sink, db_session):
        tenant = TenantFactory()

        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        assert audit_sink.records == []

        db_session.commit()

        assert len(audit_sink.records) == 1
        record = audit_sink.records[0]
        assert record.tenant_id == tenant.tenant_id
        assert record.minutes_delta == 10
        assert record.idempotency_key == "call-1"

    def test_rollback_discards_pending_records(self, usage_ledger, audit_sink, db_session):
        tenant = TenantFactory()

        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        db_session.rollback()
        db_session.commit()

        assert audit_sink.records == []

    def test_replay_is_not_published(self, usage_ledger, audit_sink, db_session):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        db_session.commit()

        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        db_session.commit()

        assert len(audit_sink.records) == 1

    def test_owned_session_publishes_on_return(self, db_session, audit_sink):
        tenant = TenantFactory()
        service = UsageLedgerService(audit_sink=audit_sink)

        service.record_usage(tenant.tenant_id, 4, "call-1")

        assert [r.minutes_delta for r in audit_sink.records] == [4]

    def test_sink_failure_does_not_fail_the_call(self, db_session):
        tenant = TenantFactory()
        service = UsageLedgerService(audit_sink=FailingSink())

        result = service.record_usage(tenant.tenant_id, 4, "call-1")

        assert result.applied
        assert service.get_balance(tenant.tenant_id).minutes_used == 4


class TestCredits:
    def test_credit_reduces_balance(self, usage_ledger, usage_repository):
        tenant = TenantFactory(minutes_used=0)
        usage_ledger.record_usage(tenant.tenant_id, 60, "call-1")

        result = usage_ledger.credit_minutes(tenant.tenant_id, 25, "grant-1")

        assert result.minutes_used == 35
        record = usage_repository.get_by_key(tenant.tenant_id, "grant-1")
        assert record.minutes_delta == -25
        assert record.source == LedgerSource.CREDIT.value

    @pytest.mark.parametrize("minutes", [0, -5, True])
    def test_credit_must_be_positive(self, usage_ledger, minutes):
        tenant = TenantFactory()
        with pytest.raises(ValidationError):
            usage_ledger.credit_minutes(tenant.tenant_id, minutes, "grant-1")


class TestQueries:
    def test_get_balance(self, usage_ledger):
        tenant = TenantFactory(max_minutes=50)
        usage_ledger.record_usage(tenant.tenant_id, 20, "call-1")

        balance = usage_ledger.get_balance(tenant.tenant_id)

        assert balance.minutes_used == 20
        assert balance.max_minutes == 50
        assert balance.remaining == 30
        assert balance.status == TenantStatus.ACTIVE

    def test_balance_of_exhausted_tenant_is_suspended(self, usage_ledger):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 100, "call-1")

        assert usage_ledger.get_balance(tenant.tenant_id).status == TenantStatus.SUSPENDED

    def test_history_is_newest_first(self, usage_ledger):
        tenant = TenantFactory()
        for i in range(5):
            usage_ledger.record_usage(tenant.tenant_id, i + 1, f"call-{i}")

        history = usage_ledger.get_usage_history(tenant.tenant_id)

        assert [r.minutes_delta for r in history] == [5, 4, 3, 2, 1]

    def test_history_pagination(self, usage_ledger):
        tenant = TenantFactory()
        for i in range(5):
            usage_ledger.record_usage(tenant.tenant_id, i + 1, f"call-{i}")

        page = usage_ledger.get_usage_history(tenant.tenant_id, limit=2, offset=1)

        assert [r.minutes_delta for r in page] == [4, 3]

    def test_history_of_unknown_tenant_raises(self, usage_ledger):
        with pytest.raises(TenantNotFoundError):
            usage_ledger.get_usage_history("missing")


class TestReconciliation:
    @pytest.mark.parametrize(
        "deltas,expected",
        [([], 0), ([10, 20], 30), ([10, -30, 5], 5), ([-5, 5], 5), ([95, 10], 105)],
    )
    def test_replay_balance_clamps_each_step(self, deltas, expected):
        assert replay_balance(deltas) == expected

    def test_in_sync_tenant(self, usage_ledger):
        tenant = TenantFactory()
        usage_ledger.record_usage(tenant.tenant_id, 10, "call-1")
        usage_ledger.record_usage(tenant.tenant_id, -30, "refund-1")
        usage_ledger.record_usage(tenant.tenant_id, 5, "call-2")

        result = usage_ledger.reconcile_tenant(tenant.tenant_id)

        assert result.in_sync
        assert result.ledger_minutes_used == 5
        assert result.record_count == 3
        assert not result.corrected

    def test_drift_is_corrected(self, usage_ledger, tenant_repository):
        tenant = TenantFactory(minutes_used=50)
        UsageRecordFactory(tenant_id=tenant.tenant_id, minutes_delta=20)

        result = usage_ledger.reconcile_tenant(tenant.tenant_id)

        assert result.stored_minutes_used == 50
        assert result.ledger_minutes_used == 20
        assert result.drift == 30
        assert result.corrected
        assert tenant_repository.get_minutes_used(tenant.tenant_id) == 20

    def test_dry_run_leaves_balance(self, usage_ledger, tenant_repository):
        tenant = TenantFactory(minutes_used=50)

        result = usage_ledger.reconcile_tenant(tenant.tenant_id, apply=False)

        assert not result.in_sync
        assert not result.corrected
        assert tenant_repository.get_minutes_used(tenant.tenant_id) == 50

    def test_reconcile_all(self, usage_ledger):
        drifted = TenantFactory(minutes_used=9)
        clean = TenantFactory()
        usage_ledger.record_usage(clean.tenant_id, 3, "call-1")

        results = usage_ledger.reconcile_all(batch_size=1)

        by_tenant = {r.tenant_id: r for r in results}
        assert set(by_tenant) == {drifted.tenant_id, clean.tenant_id}
        assert by_tenant[drifted.tenant_id].corrected
        assert by_tenant[clean.tenant_id].in_sync
