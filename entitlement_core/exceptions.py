"""
Consolidated exception system with error codes, context, and correlation support.

This module provides a unified exception hierarchy for the entire library,
with automatic logging and correlation ID tracking. Quota and feature checks
never raise for a denial; these exceptions are reserved for genuine faults
and for the authoritative admission paths.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# Removed logger import to avoid circular dependency - calling code should handle logging

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"
    CONSTRAINT_VIOLATION = "2004"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"
    LOCKED = "3003"
    EXPIRED = "3004"
    LIMIT_EXCEEDED = "3005"

    # Business logic errors (4xxx)
    BUSINESS_RULE_VIOLATION = "4000"
    INVALID_STATE_TRANSITION = "4001"
    QUOTA_EXCEEDED = "4002"
    PERMISSION_DENIED = "4003"
    PRECONDITION_FAILED = "4004"

    # External service errors (5xxx)
    QUEUE_ERROR = "5001"
    DOWNSTREAM_ERROR = "5004"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Import logger here to avoid circular dependency at module load time
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "retryable": self.retryable,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Repository layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize repository error with database context."""
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize service error with operation context."""
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


# ==================== GOVERNANCE EXCEPTIONS ====================


class TenantNotFoundError(RepositoryError):
    """Raised when an operation names a tenant that does not exist."""

    def __init__(self, tenant_id: str, cause: Optional[Exception] = None, **context):
        super().__init__(
            f"Tenant not found: tenant_id={tenant_id}",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
            cause=cause,
            resource_type="Tenant",
            tenant_id=tenant_id,
            **context,
        )
        self.tenant_id = tenant_id


class TenantInactiveError(BaseError):
    """Raised by admission paths when the tenant is deactivated or expired."""

    def __init__(self, tenant_id: str, reason: str = "tenant_inactive", **context):
        super().__init__(
            f"Tenant is not active: tenant_id={tenant_id}",
            error_code=ErrorCode.PRECONDITION_FAILED,
            status_code=403,
            tenant_id=tenant_id,
            reason=reason,
            **context,
        )
        self.tenant_id = tenant_id
        self.reason = reason


class LimitExceededError(BaseError):
    """Raised by admission paths when a quota is exhausted."""

    def __init__(self, tenant_id: str, resource: str, current: int, maximum: int, **context):
        super().__init__(
            f"{resource} limit reached for tenant {tenant_id} ({current}/{maximum})",
            error_code=ErrorCode.QUOTA_EXCEEDED,
            status_code=429,
            tenant_id=tenant_id,
            resource=resource,
            current=current,
            max=maximum,
            **context,
        )
        self.tenant_id = tenant_id
        self.resource = resource
        self.current = current
        self.max = maximum


class FeatureNotAllowedError(BaseError):
    """Raised when a caller insists on a feature the tenant is not entitled to."""

    def __init__(self, tenant_id: str, feature: str, **context):
        super().__init__(
            f"Feature '{feature}' not allowed for tenant {tenant_id}",
            error_code=ErrorCode.PERMISSION_DENIED,
            status_code=403,
            tenant_id=tenant_id,
            feature=feature,
            **context,
        )
        self.tenant_id = tenant_id
        self.feature = feature


class InvalidTierError(ValidationError):
    """Raised when an admin names a tier the catalog does not know."""

    def __init__(self, tier: Any, **context):
        super().__init__(
            f"Unknown subscription tier: {tier}",
            field="tier",
            error_code=ErrorCode.VALIDATION_FAILED,
            value=str(tier),
            **context,
        )
        self.tier = tier


class ConcurrentUpdateConflictError(BaseError):
    """
    The storage layer detected contention on an atomic update.

    The transaction was rolled back; the caller may retry. Retrying
    ``record_usage`` with the same idempotency key cannot double count.
    """

    retryable = True

    def __init__(
        self,
        message: str = "Concurrent update conflict",
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(
            message,
            error_code=ErrorCode.CONFLICT,
            status_code=409,
            cause=cause,
            **context,
        )


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'UsageRecord', 'ResourceSlot')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., tenant_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    if resource_type == "Tenant" and "tenant_id" in identifiers:
        tenant_id = identifiers.pop("tenant_id")
        return TenantNotFoundError(tenant_id, cause=cause, **identifiers)

    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for duplicate resource errors.

    Args:
        resource_type: Type of resource (e.g., 'Tenant')
        cause: Original exception if any
        **identifiers: Resource identifiers

    Returns:
        Configured RepositoryError instance with 409 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """
    Factory for validation errors.

    Args:
        field: Field that failed validation
        value: The invalid value
        reason: Why validation failed
        cause: Original exception if any

    Returns:
        Configured ValidationError instance
    """
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
