"""
Storage for resource slot reservations.

Also serves as the default ``ResourceCensus``: the number of live resources
of a kind is the number of slots the tenant holds.
"""

import uuid
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..db.db_slot_models import ResourceSlot
from ..enums import ResourceKind
from .base_repository import BaseRepository
from .interfaces import ResourceCensus


class SlotRepository(BaseRepository[ResourceSlot], ResourceCensus):
    def __init__(self, session: Session, logger=None):
        super().__init__(session, ResourceSlot, logger)

    def held_slots(self, tenant_id: str, kind: ResourceKind) -> List[ResourceSlot]:
        with self._session_operation("held_slots", tenant_id):
            query = (
                select(ResourceSlot)
                .where(
                    ResourceSlot.tenant_id == tenant_id,
                    ResourceSlot.resource_kind == ResourceKind(kind).value,
                )
                .order_by(ResourceSlot.slot_index)
            )
            return list(self.session.execute(query).scalars().all())

    def find_by_ref(
        self, tenant_id: str, kind: ResourceKind, resource_ref: str
    ) -> Optional[ResourceSlot]:
        with self._session_operation("find_slot", tenant_id):
            query = select(ResourceSlot).where(
                ResourceSlot.tenant_id == tenant_id,
                ResourceSlot.resource_kind == ResourceKind(kind).value,
                ResourceSlot.resource_ref == resource_ref,
            )
            return self.session.execute(query).scalar_one_or_none()

    def try_claim(self, tenant_id: str, kind: ResourceKind, slot_index: int, resource_ref: str) -> bool:
        """
        Claim ``slot_index`` for ``resource_ref``.

        Returns:
            False if the index (or the ref) was taken concurrently
        """
        with self._session_operation("claim_slot", tenant_id):
            inserted = self._insert_ignoring_conflicts(
                {
                    "id": str(uuid.uuid4()),
                    "tenant_id": tenant_id,
                    "resource_kind": ResourceKind(kind).value,
                    "slot_index": slot_index,
                    "resource_ref": resource_ref,
                    "created_at": utc_now(),
                }
            )
        return inserted > 0

    def release(self, tenant_id: str, kind: ResourceKind, resource_ref: str) -> bool:
        with self._session_operation("release_slot", tenant_id):
            stmt = delete(ResourceSlot.__table__).where(
                ResourceSlot.tenant_id == tenant_id,
                ResourceSlot.resource_kind == ResourceKind(kind).value,
                ResourceSlot.resource_ref == resource_ref,
            )
            return self.session.execute(stmt).rowcount > 0

    def count_live(self, tenant_id: str, kind: ResourceKind) -> int:
        with self._session_operation("count_slots", tenant_id):
            query = (
                select(func.count())
                .select_from(ResourceSlot)
                .where(
                    ResourceSlot.tenant_id == tenant_id,
                    ResourceSlot.resource_kind == ResourceKind(kind).value,
                )
            )
            return self.session.execute(query).scalar_one()
