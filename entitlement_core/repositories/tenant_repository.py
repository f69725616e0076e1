"""
SQLAlchemy tenant store.

Every write goes through a single UPDATE statement so concurrent readers
never observe a half-applied change, and ``minutes_used`` is only ever
computed server side.
"""

from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..db.db_tenant_models import Tenant
from ..exceptions import TenantNotFoundError
from .base_repository import BaseRepository
from .interfaces import TenantStore


class TenantRepository(BaseRepository[Tenant], TenantStore):
    """Tenant persistence on the service's session."""

    def __init__(self, session: Session, logger=None):
        super().__init__(session, Tenant, logger)

    def find(self, tenant_id: str, for_update: bool = False) -> Optional[Tenant]:
        """
        Load a tenant, always refreshing it from the database.

        Args:
            tenant_id: External tenant identifier
            for_update: Lock the row until the transaction ends (no-op on SQLite)
        """
        with self._session_operation("find_tenant", tenant_id):
            query = (
                select(Tenant)
                .where(Tenant.tenant_id == tenant_id)
                .execution_options(populate_existing=True)
            )
            if for_update:
                query = query.with_for_update()
            return self.session.execute(query).scalar_one_or_none()

    def get_by_tenant_id(self, tenant_id: str, for_update: bool = False) -> Tenant:
        tenant = self.find(tenant_id, for_update=for_update)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def exists(self, tenant_id: str) -> bool:
        with self._session_operation("tenant_exists", tenant_id):
            query = select(func.count()).select_from(Tenant).where(Tenant.tenant_id == tenant_id)
            return self.session.execute(query).scalar_one() > 0

    def add(self, tenant: Tenant) -> Tenant:
        with self._session_operation("create_tenant", tenant.tenant_id):
            self.session.add(tenant)
            self.session.flush()
            return tenant

    def list_tenants(self, limit: int = 100, offset: int = 0) -> List[Tenant]:
        with self._session_operation("list_tenants"):
            query = select(Tenant).order_by(Tenant.created_at.desc(), Tenant.tenant_id)
            query = self._apply_pagination(query, limit, offset)
            return list(self.session.execute(query).scalars().all())

    def iter_batches(self, batch_size: int = 100) -> Iterator[List[str]]:
        """Yield tenant ids in stable order, ``batch_size`` at a time."""
        last_seen = ""
        while True:
            with self._session_operation("iter_tenant_ids"):
                query = (
                    select(Tenant.tenant_id)
                    .where(Tenant.tenant_id > last_seen)
                    .order_by(Tenant.tenant_id)
                    .limit(batch_size)
                )
                batch = list(self.session.execute(query).scalars().all())
            if not batch:
                return
            yield batch
            last_seen = batch[-1]

    def update_fields(self, tenant_id: str, values: Dict[str, Any]) -> None:
        """
        Apply ``values`` to the tenant in one UPDATE statement.

        Raises:
            TenantNotFoundError: If no row matched
        """
        with self._session_operation("update_tenant", tenant_id):
            stmt = (
                update(Tenant)
                .where(Tenant.tenant_id == tenant_id)
                .values(**values, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
        if result.rowcount == 0:
            raise TenantNotFoundError(tenant_id)

    def apply_minutes_delta(self, tenant_id: str, minutes_delta: int) -> int:
        """
        Add ``minutes_delta`` to the balance, clamped at zero, server side.

        Returns:
            The new ``minutes_used``
        """
        with self._session_operation("apply_minutes_delta", tenant_id):
            new_value = Tenant.minutes_used + minutes_delta
            stmt = (
                update(Tenant)
                .where(Tenant.tenant_id == tenant_id)
                .values(
                    minutes_used=case((new_value < 0, 0), else_=new_value),
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                raise TenantNotFoundError(tenant_id)
            return self.get_minutes_used(tenant_id)

    def get_minutes_used(self, tenant_id: str) -> int:
        with self._session_operation("get_minutes_used", tenant_id):
            query = select(Tenant.minutes_used).where(Tenant.tenant_id == tenant_id)
            value = self.session.execute(query).scalar_one_or_none()
        if value is None:
            raise TenantNotFoundError(tenant_id)
        return value

    def set_minutes_used(self, tenant_id: str, minutes_used: int) -> None:
        """Overwrite the balance; only reconciliation does this."""
        self.update_fields(tenant_id, {"minutes_used": max(minutes_used, 0)})

    def get_many(self, tenant_ids: List[str]) -> List[Tenant]:
        if not tenant_ids:
            return []
        with self._session_operation("get_tenants"):
            query = (
                select(Tenant)
                .where(Tenant.tenant_id.in_(tenant_ids))
                .order_by(Tenant.tenant_id)
                .execution_options(populate_existing=True)
            )
            return list(self.session.execute(query).scalars().all())
