"""Tests for the audit logger."""

import asyncio
from uuid import uuid4

from fiado_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from fiado_ledger.models.audit import AuditEventBuilder, AuditEventType
from fiado_ledger.services.storage import InMemoryAuditStorage, StorageError


def run(coro):
    return asyncio.run(coro)


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_logs_to_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        sale_id = uuid4()
        correlation_id = create_correlation_id()

        run(logger.log_sale_recorded(sale_id, uuid4(), "80", "80", correlation_id=correlation_id))
        run(logger.log_receipt_signed(sale_id, correlation_id=correlation_id))

        events = run(storage.get_events_by_entity("sale", sale_id))
        assert [e.event_type for e in events] == [
            AuditEventType.SALE_RECORDED,
            AuditEventType.RECEIPT_SIGNED,
        ]
        assert {e.correlation_id for e in events} == {correlation_id}

    def test_without_storage(self):
        """Local-only logging always reports success."""
        logger = AuditLogger()
        assert run(logger.log(AuditEventBuilder.receipt_signed(uuid4()))) is True

    def test_storage_failure_does_not_raise(self):
        """A broken audit backend must not break the sale being audited."""
        logger = AuditLogger(BrokenAuditStorage())
        assert run(logger.log(AuditEventBuilder.receipt_signed(uuid4()))) is False

    def test_error_events(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        run(logger.log_error("KeyError", "missing", details={"where": "report"}))
        run(logger.log_external_service_error("storage", "timeout"))
        events = run(storage.get_recent_events())
        assert {e.event_type for e in events} == {
            AuditEventType.SYSTEM_ERROR,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
        }
        assert all(e.error_message for e in events)

    def test_configure_logging_is_repeatable(self):
        configure_logging()
        configure_logging(debug=True)
        run(AuditLogger().log_validation_failed("add_sale", "items", "empty"))
