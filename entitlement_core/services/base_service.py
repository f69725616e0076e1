"""
Base service implementation with common functionality for all services.

This module provides base classes with shared session handling and error
wrapping to reduce duplication across service implementations.
"""

from contextlib import contextmanager
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from ..exceptions import BaseError, ConcurrentUpdateConflictError, ErrorCode, ServiceError
from ..repositories.base_repository import is_retryable_db_error
from ..utils.logger import get_logger


class BaseService:
    """Base service with common functionality for all services."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger()

    def _handle_service_exception(
        self, operation: str, exception: Exception, entity_id: Optional[str] = None  # noqa
    ) -> NoReturn:
        """
        Handle and log service exceptions consistently.

        Library errors (already typed and logged) pass through untouched;
        anything else is wrapped in a ServiceError.

        Args:
            operation: Operation being performed
            exception: Exception that occurred
            entity_id: Optional ID of the entity involved (usually the tenant id)
        """
        if isinstance(exception, BaseError):
            raise exception

        # Commit-time lock or serialization failures never pass through a repository
        if is_retryable_db_error(exception):
            raise ConcurrentUpdateConflictError(
                f"Concurrent update conflict in {operation}",
                cause=exception,
                operation=operation,
                entity_id=entity_id,
            ) from exception

        error_msg = f"Error in {operation}: {str(exception)}"
        self.logger.error(
            error_msg,
            extra={
                "operation": operation,
                "entity_id": entity_id,
                "error_type": type(exception).__name__,
                "error_details": str(exception),
            },
            exc_info=True,
        )
        raise ServiceError(
            error_msg,
            error_code=ErrorCode.INTERNAL_ERROR,
            operation=operation,
            entity_id=entity_id,
            cause=exception,
        ) from exception


class SessionManagedService(BaseService):
    """
    Service that owns and manages its own database session.

    Without an injected session the service takes the calling thread's
    session from the global DatabaseManager and commits or rolls back each
    operation itself. With an injected session the caller owns the
    transaction and nothing is committed here.
    """

    def __init__(self, session: Optional[Session] = None, logger=None):
        """
        Initialize service with its own session.

        Args:
            session: Optional existing session (for testing or coordination)
            logger: Optional logger instance
        """
        super().__init__(logger)
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

    def _create_session(self) -> Session:
        """Get the calling thread's session from the global database manager."""
        from ..db.db_config import get_db_manager

        return get_db_manager().get_session()

    @property
    def owns_session(self) -> bool:
        return self._owns_session

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.create_something()
                service.update_something()
                # Auto-commits on success, rollback on exception
        """
        try:
            yield self.session
            if self._owns_session:
                self.session.commit()
        except Exception:
            if self._owns_session:
                self.session.rollback()
            raise

    def commit(self):
        """Manually commit the current transaction."""
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        """Manually rollback the current transaction."""
        if self._owns_session:
            self.session.rollback()

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        """Support for 'with' statement."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Auto-close session on exit."""
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
