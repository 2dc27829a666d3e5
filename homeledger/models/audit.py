"""
Audit Models for homeledger

Every flow that changes stored collections is logged for audit purposes.
This provides:
1. Traceability of every schedule change and archive
2. Debugging information when a collaborator fails
3. Ability to reconstruct why a record disappeared (archived)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Recurring obligations
    OBLIGATION_SCHEDULED = "obligation_scheduled"
    OBLIGATION_FIRED = "obligation_fired"

    # Records
    RECORD_ADDED = "record_added"

    # Archiving
    ARCHIVE_COMPLETED = "archive_completed"
    ARCHIVE_EMPTY = "archive_empty"

    # Debts
    DEBT_PAYMENT_RECORDED = "debt_payment_recorded"

    # Goals
    GOAL_FUNDS_ADDED = "goal_funds_added"

    # AI suggestions
    SUGGESTION_REQUESTED = "suggestion_requested"
    SUGGESTION_FAILED = "suggestion_failed"

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
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'record', 'obligation', 'debt')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one archive run)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

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
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.obligation_fired(obligation_id, record_id, ...)
        event = AuditEventBuilder.archive_completed(start, end, 12, 3, ...)
    """

    @staticmethod
    def obligation_scheduled(
        obligation_id: str,
        frequency: str,
        next_due_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBLIGATION_SCHEDULED,
            entity_type="obligation",
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"Obligation scheduled ({frequency}), next due {next_due_date.isoformat()}",
            details={
                "frequency": frequency,
                "next_due_date": next_due_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def obligation_fired(
        obligation_id: str,
        record_id: str,
        previous_due_date: date,
        next_due_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OBLIGATION_FIRED,
            entity_type="obligation",
            entity_id=obligation_id,
            correlation_id=correlation_id,
            description=f"Obligation fired, next due {next_due_date.isoformat()}",
            details={
                "record_id": record_id,
                "previous_due_date": previous_due_date.isoformat(),
                "next_due_date": next_due_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def record_added(
        record_id: str,
        kind: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record added: {kind} {amount}",
            details={
                "kind": kind,
                "amount": amount,
            },
        )

    @staticmethod
    def archive_completed(
        start_date: date,
        end_date: date,
        consumed_count: int,
        summary_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVE_COMPLETED,
            entity_type="archive",
            correlation_id=correlation_id,
            description=(
                f"Archived {consumed_count} records into {summary_count} summaries "
                f"({start_date.isoformat()} to {end_date.isoformat()})"
            ),
            details={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "consumed_count": consumed_count,
                "summary_count": summary_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def archive_empty(
        start_date: date,
        end_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVE_EMPTY,
            entity_type="archive",
            correlation_id=correlation_id,
            description="Nothing to archive in the selected range",
            details={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def debt_payment_recorded(
        debt_id: str,
        amount: str,
        remaining: str,
        next_payment_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAYMENT_RECORDED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt payment of {amount}, remaining {remaining}",
            details={
                "amount": amount,
                "remaining": remaining,
                "next_payment_date": next_payment_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_funds_added(
        goal_id: str,
        amount: str,
        current_amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_FUNDS_ADDED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Added {amount} to goal, now at {current_amount}",
            details={
                "amount": amount,
                "current_amount": current_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def suggestion_requested(
        suggestion_type: str,
        record_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUGGESTION_REQUESTED,
            entity_type="suggestion",
            correlation_id=correlation_id,
            description=f"AI {suggestion_type} requested over {record_count} records",
            details={
                "suggestion_type": suggestion_type,
                "record_count": record_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def suggestion_failed(
        suggestion_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUGGESTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="suggestion",
            correlation_id=correlation_id,
            description=f"AI {suggestion_type} failed",
            error_message=error_message,
            details={
                "suggestion_type": suggestion_type,
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
        correlation_id: UUID
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
