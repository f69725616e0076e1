"""
Tenant context management for the governance library.

Every governance call runs inside ``tenant_context(tenant_id)`` so that log
records and errors raised on that thread carry the tenant they concern.
"""

import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, Optional, Union

from ..exceptions import ErrorCode, ValidationError


class TenantContext:
    """
    Manages tenant context throughout the application using thread-local storage.

    This class provides utilities for getting and setting the current tenant
    context for the executing thread.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Set the current tenant ID for the execution context.

        Args:
            tenant_id: ID of the tenant

        Raises:
            ValidationError: If tenant_id is empty or not a string
        """
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )

        cls._thread_local.tenant_id = tenant_id.strip()

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        """Get the current tenant ID, or None if not set."""
        return getattr(cls._thread_local, "tenant_id", None)

    @classmethod
    def clear_current_tenant(cls) -> None:
        if hasattr(cls._thread_local, "tenant_id"):
            delattr(cls._thread_local, "tenant_id")


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """
    Context manager for tenant operations.

    Sets the current tenant for the duration of the context and restores the
    previous tenant (if any) afterward.

    Args:
        tenant_id: ID of the tenant
    """
    previous_tenant = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear_current_tenant()


def tenant_aware(func: Callable) -> Callable:
    """
    Run a method inside ``tenant_context`` for its ``tenant_id`` argument.

    The tenant id is taken from the ``tenant_id`` keyword, or from the first
    positional argument after ``self``.
    """

    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        tenant_id: Union[str, None] = kwargs.get("tenant_id")
        if tenant_id is None and args:
            tenant_id = args[0]

        if not tenant_id or not isinstance(tenant_id, str):
            raise ValidationError(
                "No tenant ID provided for tenant-aware function",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                function=func.__name__,
            )

        with tenant_context(tenant_id):
            return func(self, *args, **kwargs)

    return wrapper
