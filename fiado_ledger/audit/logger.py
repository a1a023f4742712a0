"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when storage misbehaves
3. The shop owner can see history of sales and payments

The audit logger:
- Is async so it composes with the storage calls
- Gracefully handles failures (doesn't break a sale if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fiado_ledger.models.audit import AuditEvent, AuditEventBuilder
from fiado_ledger.services.storage import AuditStorageInterface


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog for local logging.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for persistence and owner visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("fiado_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_customer_registered(
        self,
        customer_id: UUID,
        name: str,
        credit_limit: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log customer registration."""
        event = AuditEventBuilder.customer_registered(
            customer_id=customer_id,
            name=name,
            credit_limit=credit_limit,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_sale_recorded(
        self,
        sale_id: UUID,
        customer_id: UUID,
        total: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a recorded credit sale."""
        event = AuditEventBuilder.sale_recorded(
            sale_id=sale_id,
            customer_id=customer_id,
            total=total,
            new_debt=new_debt,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_credit_limit_exceeded(
        self,
        customer_id: UUID,
        name: str,
        credit_limit: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log that a sale pushed a customer over the limit."""
        event = AuditEventBuilder.credit_limit_exceeded(
            customer_id=customer_id,
            name=name,
            credit_limit=credit_limit,
            new_debt=new_debt,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_signed(
        self,
        sale_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.receipt_signed(
            sale_id=sale_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_payment_recorded(
        self,
        payment_id: UUID,
        customer_id: UUID,
        amount: str,
        payment_method: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a debt repayment."""
        event = AuditEventBuilder.payment_recorded(
            payment_id=payment_id,
            customer_id=customer_id,
            amount=amount,
            payment_method=payment_method,
            new_debt=new_debt,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        operation: str,
        field: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            field=field,
            message=message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a sale).
    Pass it through all subsequent operations.
    """
    return uuid4()
