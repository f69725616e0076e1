"""
Tenant model.

Just the data structure - no business logic or class methods. Limit columns
are overrides: NULL means "inherit the tier default".
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class Tenant(Base, UUIDMixin, TimestampMixin):
    """Governed tenant (profile) - just data, no logic."""

    __tablename__ = "tenant"

    tenant_id = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    tier = Column(String(50), nullable=False, default="basic")

    max_agents = Column(Integer, nullable=True)
    max_campaigns = Column(Integer, nullable=True)
    max_concurrent_calls = Column(Integer, nullable=True)
    max_minutes = Column(Integer, nullable=True)

    # Projection of the usage ledger; written only by the atomic UPDATE
    minutes_used = Column(Integer, nullable=False, default=0, server_default="0")

    # feature name -> bool overrides on top of the tier's feature set
    allowed_features = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("minutes_used >= 0", name="ck_tenant_minutes_used_non_negative"),
        CheckConstraint(
            "(max_agents IS NULL OR max_agents >= 0) "
            "AND (max_campaigns IS NULL OR max_campaigns >= 0) "
            "AND (max_concurrent_calls IS NULL OR max_concurrent_calls >= 0) "
            "AND (max_minutes IS NULL OR max_minutes >= 0)",
            name="ck_tenant_limits_non_negative",
        ),
    )
