"""
Base repository implementation with common functionality for all repositories.

Repositories receive a session and never commit or roll back; the service
layer owns transaction boundaries.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generic, NoReturn, Optional, Type, TypeVar

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import RETRYABLE_SQLITE_MESSAGES, RETRYABLE_SQLSTATES
from ..context.tenant_context import TenantContext
from ..exceptions import (
    BaseError,
    ConcurrentUpdateConflictError,
    ErrorCode,
    RepositoryError,
    duplicate,
)
from ..utils.logger import get_logger

T = TypeVar("T")


def is_retryable_db_error(e: Exception) -> bool:
    """
    Whether a database error means "another transaction got in the way".

    Postgres reports serialization failures, deadlocks and lock timeouts
    through SQLSTATE; SQLite only through the message text.
    """
    if not isinstance(e, DBAPIError):
        return False

    orig = getattr(e, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True

    message = str(orig if orig is not None else e).lower()
    return any(fragment in message for fragment in RETRYABLE_SQLITE_MESSAGES)


class BaseRepository(Generic[T]):
    """Base repository with common functionality for all repositories."""

    def __init__(self, session: Session, entity_class: Type[T], logger=None):
        """
        Initialize the base repository.

        Args:
            session: SQLAlchemy session for database operations
            entity_class: SQLAlchemy model class this repository handles
            logger: Optional logger instance
        """
        self.session = session
        self.entity_class = entity_class
        self.logger = logger or get_logger()
        self.entity_name = entity_class.__name__

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def _handle_db_error(
        self,
        e: Exception,
        operation_name: str,
        entity_id: Optional[str] = None,
        **context: Any,
    ) -> NoReturn:
        """
        Map database errors onto the library's exception hierarchy.

        Raises:
            ConcurrentUpdateConflictError: For lock/serialization/deadlock errors
            RepositoryError: With an appropriate error code otherwise
        """
        # Already mapped, keep the error code
        if isinstance(e, BaseError):
            raise e

        tenant_id = context.pop("tenant_id", None) or TenantContext.get_current_tenant_id()
        error_context = {
            "operation_name": operation_name,
            "entity_type": self.entity_name,
            "tenant_id": tenant_id,
            **context,
        }
        if entity_id:
            error_context["entity_id"] = entity_id

        if is_retryable_db_error(e):
            raise ConcurrentUpdateConflictError(
                f"Concurrent update conflict in {operation_name}",
                cause=e,
                **error_context,
            )

        if isinstance(e, IntegrityError):
            error_message = str(e.orig).lower() if hasattr(e, "orig") else str(e).lower()

            if "unique constraint" in error_message or "duplicate" in error_message:
                raise duplicate(resource_type=self.entity_name, cause=e, **error_context)

            raise RepositoryError(
                f"Database constraint violation for {self.entity_name}: {str(e)}",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                cause=e,
                **error_context,
            )

        if isinstance(e, SQLAlchemyError):
            raise RepositoryError(
                f"Database error for {self.entity_name}: {str(e)}",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                **error_context,
            )

        raise RepositoryError(
            f"Unexpected error for {self.entity_name}: {str(e)}",
            error_code=ErrorCode.INTERNAL_ERROR,
            cause=e,
            **error_context,
        )

    @contextmanager
    def _session_operation(self, operation_name: str, entity_id: Optional[str] = None):
        """
        Run repository work on the existing session with error mapping.

        No commit and no rollback here; that is handled by the service layer.
        """
        try:
            yield self.session
        except Exception as e:
            self._handle_db_error(e, operation_name, entity_id)

    def _insert_ignoring_conflicts(self, values: Dict[str, Any], index_elements=None) -> int:
        """
        INSERT ... ON CONFLICT DO NOTHING into this repository's table.

        Returns:
            Number of rows inserted (0 when a unique constraint already matched)
        """
        dialect = self.dialect_name
        if dialect == "postgresql":
            stmt = postgresql_insert(self.entity_class.__table__).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(self.entity_class.__table__).values(**values)
        else:
            raise RepositoryError(
                f"Unsupported database dialect for conflict-free insert: {dialect}",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                entity_type=self.entity_name,
            )

        stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
        return self.session.execute(stmt).rowcount

    @staticmethod
    def _apply_pagination(query, limit: int = 100, offset: int = 0):
        return query.offset(offset).limit(limit)
