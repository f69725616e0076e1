"""
Resource slot reservations.

A tenant with limit N for a resource kind can hold at most N rows, one per
``slot_index`` in ``[0, N)``; the unique constraint makes the admission
atomic across concurrent callers.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from .db_base import UUIDMixin, utc_now
from .db_config import Base


class ResourceSlot(Base, UUIDMixin):
    """A live counted resource (agent, campaign or concurrent call)."""

    __tablename__ = "resource_slot"

    tenant_id = Column(String(100), nullable=False)
    resource_kind = Column(String(20), nullable=False)
    slot_index = Column(Integer, nullable=False)
    resource_ref = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "resource_kind", "slot_index", name="uq_resource_slot_index"
        ),
        UniqueConstraint("tenant_id", "resource_kind", "resource_ref", name="uq_resource_slot_ref"),
        Index("ix_resource_slot_tenant_kind", "tenant_id", "resource_kind"),
    )
