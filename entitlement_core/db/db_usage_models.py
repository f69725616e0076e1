"""
Append-only usage ledger.

``sequence`` defines application order per tenant; rows are never updated
or deleted.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from .db_base import utc_now
from .db_config import Base


class UsageRecord(Base):
    """One minute-consumption (positive) or credit (negative) event."""

    __tablename__ = "usage_record"

    sequence = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(100), nullable=False)
    minutes_delta = Column(Integer, nullable=False)
    idempotency_key = Column(String(200), nullable=False)
    source = Column(String(100), nullable=False, default="usage")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "idempotency_key", name="uq_usage_record_tenant_key"),
        Index("ix_usage_record_tenant_sequence", "tenant_id", "sequence"),
    )
