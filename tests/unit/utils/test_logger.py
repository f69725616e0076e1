"""Tests for the logging utilities."""

import json
import logging
from unittest.mock import Mock, patch

import pytest

from entitlement_core.context import tenant_context
from entitlement_core.utils.logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


def make_record(msg="hello", **extra):
    record = logging.LogRecord(
        name="governance.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestContextAwareLogger:
    def test_no_extras(self):
        mock_logger = Mock()

        ContextAwareLogger(mock_logger).info("plain")

        mock_logger.info.assert_called_once_with("plain", extra={}, exc_info=None)

    def test_extras_are_appended_and_kept(self):
        mock_logger = Mock()

        ContextAwareLogger(mock_logger).warning("quota", extra={"tenant": "t1", "current": 3})

        mock_logger.warning.assert_called_once_with(
            "quota | tenant=t1 | current=3", extra={"tenant": "t1", "current": 3}, exc_info=None
        )

    def test_exception_logs_at_error_with_traceback(self):
        mock_logger = Mock()

        ContextAwareLogger(mock_logger).exception("boom")

        mock_logger.error.assert_called_once_with("boom", extra={}, exc_info=True)

    def test_set_level(self):
        mock_logger = Mock()
        ContextAwareLogger(mock_logger).set_level(logging.DEBUG)
        mock_logger.setLevel.assert_called_once_with(logging.DEBUG)


class TestTenantContextFilter:
    def test_adds_tenant(self):
        record = make_record()

        with tenant_context("tenant-7"):
            assert TenantContextFilter().filter(record)

        assert record.tenant_id == "tenant-7"

    def test_no_tenant(self):
        record = make_record()
        assert TenantContextFilter().filter(record)
        assert not hasattr(record, "tenant_id")


class TestAzureQueueHandler:
    def test_without_connection_string_buffers_only(self):
        handler = AzureQueueHandler(connection_string="")

        handler.emit(make_record())
        handler.flush()

        assert len(handler.log_buffer) == 1

    def test_format_entry(self):
        handler = AzureQueueHandler(connection_string="")
        record = make_record("usage recorded", tenant_id="t1", sequence=4)

        entry = handler.format_entry(record)

        assert entry["message"] == "usage recorded"
        assert entry["level"] == "INFO"
        assert entry["tenant_id"] == "t1"
        assert entry["context"] == {"sequence": 4}

    @patch("entitlement_core.utils.logger.QueueServiceClient")
    @patch("entitlement_core.utils.logger.QueueClient")
    def test_flush_sends_one_message_per_entry(self, mock_queue_client_class, mock_service_class):
        mock_service_class.from_connection_string.return_value.list_queues.return_value = []
        mock_client = Mock()
        mock_queue_client_class.from_connection_string.return_value = mock_client
        handler = AzureQueueHandler(connection_string="UseDevelopmentStorage=true", batch_size=2)

        handler.emit(make_record("one"))
        mock_client.send_message.assert_not_called()
        handler.emit(make_record("two"))

        assert mock_client.send_message.call_count == 2
        first = json.loads(mock_client.send_message.call_args_list[0].args[0])
        assert first["message"] == "one"
        assert handler.log_buffer == []
        mock_service_class.from_connection_string.return_value.create_queue.assert_called_once()

    @patch("entitlement_core.utils.logger.QueueServiceClient")
    @patch("entitlement_core.utils.logger.QueueClient")
    def test_close_flushes(self, mock_queue_client_class, mock_service_class):
        mock_client = Mock()
        mock_queue_client_class.from_connection_string.return_value = mock_client
        handler = AzureQueueHandler(connection_string="UseDevelopmentStorage=true", batch_size=50)

        handler.emit(make_record())
        handler.close()

        mock_client.send_message.assert_called_once()


class TestConfigureLogging:
    def test_configure_installs_library_logger(self):
        logger = configure_logging("billing-worker", log_level="DEBUG", enable_queue=False)

        assert logger.logger.name == "governance.billing-worker"
        assert logger.logger.level == logging.DEBUG
        assert get_logger() is logger

    def test_get_logger_default(self):
        logger = get_logger()

        assert isinstance(logger, ContextAwareLogger)
        assert logger.logger.name == "entitlement_core"

    @patch("entitlement_core.utils.logger.AzureQueueHandler")
    def test_queue_handler_added_when_enabled(self, mock_handler_class):
        mock_handler_class.return_value = Mock(spec=logging.Handler, level=logging.INFO)

        logger = configure_logging(
            "api", enable_queue=True, connection_string="UseDevelopmentStorage=true"
        )

        mock_handler_class.assert_called_once()
        assert mock_handler_class.return_value in logger.logger.handlers
