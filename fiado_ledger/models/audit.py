"""
Audit Models for Fiado Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of every change to a customer's balance
2. Debugging information when storage fails
3. A history the shop owner can consult

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Customers
    CUSTOMER_REGISTERED = "customer_registered"

    # Sales
    SALE_RECORDED = "sale_recorded"
    CREDIT_LIMIT_EXCEEDED = "credit_limit_exceeded"
    RECEIPT_SIGNED = "receipt_signed"

    # Payments
    PAYMENT_RECORDED = "payment_recorded"

    # Rejections
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'customer', 'sale', 'payment')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a sale and its limit warning)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sale_recorded(sale_id, customer_id, "80.00", correlation_id)
        event = AuditEventBuilder.payment_recorded(payment_id, customer_id, "80.00", "cash", correlation_id)
    """

    @staticmethod
    def customer_registered(
        customer_id: UUID,
        name: str,
        credit_limit: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CUSTOMER_REGISTERED,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"Customer registered: {name}",
            details={
                "name": name,
                "credit_limit": credit_limit,
            },
            is_user_action=True,
        )

    @staticmethod
    def sale_recorded(
        sale_id: UUID,
        customer_id: UUID,
        total: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_RECORDED,
            entity_type="sale",
            entity_id=sale_id,
            correlation_id=correlation_id,
            description=f"Credit sale recorded: {total}",
            details={
                "customer_id": str(customer_id),
                "total_value": total,
                "new_debt": new_debt,
            },
            is_user_action=True,
        )

    @staticmethod
    def credit_limit_exceeded(
        customer_id: UUID,
        name: str,
        credit_limit: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_LIMIT_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="customer",
            entity_id=customer_id,
            correlation_id=correlation_id,
            description=f"{name} exceeded the credit limit of {credit_limit}",
            details={
                "credit_limit": credit_limit,
                "new_debt": new_debt,
            },
        )

    @staticmethod
    def receipt_signed(
        sale_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SIGNED,
            entity_type="sale",
            entity_id=sale_id,
            correlation_id=correlation_id,
            description="Receipt signed by customer",
            is_user_action=True,
        )

    @staticmethod
    def payment_recorded(
        payment_id: UUID,
        customer_id: UUID,
        amount: str,
        payment_method: str,
        new_debt: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} received via {payment_method}",
            details={
                "customer_id": str(customer_id),
                "amount": amount,
                "payment_method": payment_method,
                "new_debt": new_debt,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        field: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {message}",
            details={
                "operation": operation,
                "field": field,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
