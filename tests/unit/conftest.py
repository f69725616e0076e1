"""
Unit test conftest.py - Component-specific fixtures.

This module provides fixtures specific to unit testing:
- Repository fixtures with test sessions
- Service fixtures sharing the test session (caller-managed transactions)
- A fake resource census and recording audit sink
"""

from collections import defaultdict
from unittest.mock import Mock

import pytest

from entitlement_core.enums import ResourceKind
from entitlement_core.repositories import (
    AuditSink,
    ResourceCensus,
    SlotRepository,
    TenantRepository,
    UsageRepository,
)
from entitlement_core.services import (
    AdminOverrideService,
    FeatureGate,
    GovernanceService,
    QuotaEnforcer,
    ResourceSlotService,
    UsageLedgerService,
)


class FakeCensus(ResourceCensus):
    """In-memory live counts, set directly by tests."""

    def __init__(self):
        self.counts = defaultdict(int)
        self.calls = []

    def set(self, tenant_id, kind, count):
        self.counts[(tenant_id, ResourceKind(kind))] = count

    def count_live(self, tenant_id, kind):
        self.calls.append((tenant_id, ResourceKind(kind)))
        return self.counts[(tenant_id, ResourceKind(kind))]


class RecordingAuditSink(AuditSink):
    def __init__(self):
        self.records = []

    def publish(self, record):
        self.records.append(record)


# ==================== REPOSITORY FIXTURES ====================


@pytest.fixture(scope="function")
def tenant_repository(db_session):
    return TenantRepository(db_session)


@pytest.fixture(scope="function")
def usage_repository(db_session):
    return UsageRepository(db_session)


@pytest.fixture(scope="function")
def slot_repository(db_session):
    return SlotRepository(db_session)


# ==================== SERVICE FIXTURES ====================


@pytest.fixture(scope="function")
def census():
    return FakeCensus()


@pytest.fixture(scope="function")
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture(scope="function")
def quota_enforcer(tenant_repository, census):
    return QuotaEnforcer(tenant_repository, census)


@pytest.fixture(scope="function")
def feature_gate(tenant_repository):
    return FeatureGate(tenant_repository)


@pytest.fixture(scope="function")
def usage_ledger(db_session, audit_sink):
    """Usage ledger with test session; tests commit explicitly when needed."""
    return UsageLedgerService(session=db_session, audit_sink=audit_sink)


@pytest.fixture(scope="function")
def slot_service(db_session):
    return ResourceSlotService(session=db_session)


@pytest.fixture(scope="function")
def admin_service(db_session):
    return AdminOverrideService(session=db_session)


@pytest.fixture(scope="function")
def governance_service(db_session, census, audit_sink):
    """Facade owning the thread's session, so every call commits."""
    return GovernanceService(census=census, audit_sink=audit_sink)


# ==================== MOCK FIXTURES (ONLY WHEN NECESSARY) ====================


@pytest.fixture(scope="function")
def mock_azure_queue_client():
    """
    Mock Azure Queue Client for testing queue operations.

    Only use this when testing queue-dependent functionality
    without requiring actual Azure infrastructure.
    """
    mock_client = Mock()
    mock_client.send_message.return_value = Mock(id="test_message_id")
    return mock_client
