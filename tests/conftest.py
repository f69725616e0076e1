"""
Test fixtures for the governance library.

This module provides shared test fixtures including database setup,
factory wiring, and common test utilities.
"""

import pytest
from sqlalchemy.orm import Session

from entitlement_core.config import reset_config
from entitlement_core.context.tenant_context import TenantContext
from entitlement_core.db import DatabaseConfig, DatabaseManager, import_all_models
from entitlement_core.db.db_config import Base, initialize_db, set_db_manager
from entitlement_core.exceptions import clear_correlation_id
from tests.fixtures.factories import configure_factories


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    manager = initialize_db(db_config)
    yield manager
    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    The session is the calling thread's scoped session, so services created
    without an explicit session share it. Tables are recreated per test.
    """
    set_db_manager(db_manager)
    session = db_manager.get_session()

    Base.metadata.create_all(db_manager.engine)
    configure_factories(session)

    yield session

    session.rollback()
    session.close()

    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_thread_state():
    """Reset global config, tenant context and correlation id around each test."""
    reset_config()
    TenantContext.clear_current_tenant()
    clear_correlation_id()
    yield
    reset_config()
    TenantContext.clear_current_tenant()
    clear_correlation_id()


@pytest.fixture
def sample_tenant_id() -> str:
    """Standard tenant ID for testing."""
    return "test-tenant-123"
