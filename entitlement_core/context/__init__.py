"""Context management for operations and tenant isolation."""

from .operation_context import OperationContext, OperationHandler, operation
from .tenant_context import TenantContext, tenant_aware, tenant_context

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
    "TenantContext",
    "tenant_aware",
    "tenant_context",
]
