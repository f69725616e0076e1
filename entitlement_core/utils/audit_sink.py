"""
Audit sinks for applied usage records.

The ledger table is the source of truth; a sink only mirrors applied
records to an external consumer (billing export, analytics). Publishing
happens after commit and a failing sink never fails the usage call.
"""

import json
from typing import Optional

from azure.storage.queue import QueueClient
from pydantic_core import to_jsonable_python

from ..config import AppConfig, get_config
from ..repositories.interfaces import AuditSink
from ..schemas.entitlement_schema import UsageRecordRead
from .logger import get_logger


class NoOpAuditSink(AuditSink):
    """Discards records."""

    def publish(self, record: UsageRecordRead) -> None:
        return None


class LoggingAuditSink(AuditSink):
    """Writes one structured log line per applied record."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger()

    def publish(self, record: UsageRecordRead) -> None:
        self.logger.info(
            "Usage recorded",
            extra={
                "tenant_id": record.tenant_id,
                "sequence": record.sequence,
                "minutes_delta": record.minutes_delta,
                "idempotency_key": record.idempotency_key,
                "source": record.source,
            },
        )


class QueueAuditSink(AuditSink):
    """Sends each applied record as a JSON message to an Azure Storage Queue."""

    def __init__(self, connection_string: str, queue_name: str, queue_client: Optional[QueueClient] = None):
        """
        Args:
            connection_string: Azure Storage connection string
            queue_name: Target queue; created on first use if missing
            queue_client: Pre-built client (mainly for tests)
        """
        self.queue_name = queue_name
        self.logger = get_logger()
        self.queue_client = queue_client or QueueClient.from_connection_string(
            conn_str=connection_string, queue_name=queue_name
        )

    def publish(self, record: UsageRecordRead) -> None:
        json_data = json.dumps(to_jsonable_python(record.model_dump()))

        try:
            self.queue_client.send_message(json_data)
        except Exception as e:
            if "QueueNotFound" not in str(e) and "does not exist" not in str(e):
                raise
            self.logger.debug(f"Queue {self.queue_name} not found, creating it...")
            self.queue_client.create_queue()
            self.queue_client.send_message(json_data)

        self.logger.debug(
            f"Published usage record to queue: {self.queue_name}",
            extra={"sequence": record.sequence},
        )


def build_audit_sink(config: Optional[AppConfig] = None) -> AuditSink:
    """Pick the queue sink when the audit queue flag is on, otherwise a no-op."""
    config = config or get_config()
    if config.features.enable_audit_queue:
        if not config.queue.connection_string:
            get_logger().warning(
                "Audit queue enabled but no Azure Storage connection string configured; "
                "usage records will not be mirrored"
            )
            return NoOpAuditSink()
        return QueueAuditSink(config.queue.connection_string, config.queue.audit_queue_name)
    return NoOpAuditSink()
