"""Append-only storage for the usage ledger."""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..db.db_usage_models import UsageRecord
from .base_repository import BaseRepository


class UsageRepository(BaseRepository[UsageRecord]):
    """Inserts and reads ledger rows; never updates or deletes them."""

    def __init__(self, session: Session, logger=None):
        super().__init__(session, UsageRecord, logger)

    def insert_if_absent(
        self, tenant_id: str, minutes_delta: int, idempotency_key: str, source: str
    ) -> bool:
        """
        Append a ledger row unless ``(tenant_id, idempotency_key)`` already exists.

        Returns:
            True if the row was written, False for a replayed key
        """
        with self._session_operation("insert_usage_record", tenant_id):
            inserted = self._insert_ignoring_conflicts(
                {
                    "tenant_id": tenant_id,
                    "minutes_delta": minutes_delta,
                    "idempotency_key": idempotency_key,
                    "source": source,
                    "created_at": utc_now(),
                },
                index_elements=["tenant_id", "idempotency_key"],
            )
        return inserted > 0

    def get_by_key(self, tenant_id: str, idempotency_key: str) -> Optional[UsageRecord]:
        with self._session_operation("get_usage_record", tenant_id):
            query = select(UsageRecord).where(
                UsageRecord.tenant_id == tenant_id,
                UsageRecord.idempotency_key == idempotency_key,
            )
            return self.session.execute(query).scalar_one_or_none()

    def list_for_tenant(self, tenant_id: str, limit: int = 100, offset: int = 0) -> List[UsageRecord]:
        """Newest first."""
        with self._session_operation("list_usage_records", tenant_id):
            query = (
                select(UsageRecord)
                .where(UsageRecord.tenant_id == tenant_id)
                .order_by(UsageRecord.sequence.desc())
            )
            query = self._apply_pagination(query, limit, offset)
            return list(self.session.execute(query).scalars().all())

    def deltas_in_order(self, tenant_id: str) -> List[int]:
        """Every delta of the tenant in application (sequence) order."""
        with self._session_operation("ledger_deltas", tenant_id):
            query = (
                select(UsageRecord.minutes_delta)
                .where(UsageRecord.tenant_id == tenant_id)
                .order_by(UsageRecord.sequence.asc())
            )
            return list(self.session.execute(query).scalars().all())

    def count_for_tenant(self, tenant_id: str) -> int:
        with self._session_operation("count_usage_records", tenant_id):
            query = (
                select(func.count())
                .select_from(UsageRecord)
                .where(UsageRecord.tenant_id == tenant_id)
            )
            return self.session.execute(query).scalar_one()
