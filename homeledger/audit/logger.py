"""
Audit Logger

DESIGN DECISION: Every flow that changes stored collections is logged.
This provides:
1. Traceability (why did these 40 records turn into 3 summaries?)
2. Debugging capability when a collaborator fails
3. A history the user can inspect

The audit logger:
- Is async so it composes with the async storage adapters
- Gracefully handles storage failures (doesn't break the flow if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from homeledger.models.audit import AuditEvent, AuditEventBuilder
from homeledger.services.storage import AuditStorageInterface, StorageError


# Configure structlog for local logging
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
    2. Audit storage, when one is configured
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
        self._logger = structlog.get_logger("homeledger.audit")

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
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_obligation_scheduled(
        self,
        obligation_id: str,
        frequency: str,
        next_due_date,
        correlation_id: UUID,
    ) -> None:
        """Log creation or edit of a recurring obligation."""
        await self.log(AuditEventBuilder.obligation_scheduled(
            obligation_id=obligation_id,
            frequency=frequency,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    async def log_obligation_fired(
        self,
        obligation_id: str,
        record_id: str,
        previous_due_date,
        next_due_date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.obligation_fired(
            obligation_id=obligation_id,
            record_id=record_id,
            previous_due_date=previous_due_date,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    async def log_record_added(
        self,
        record_id: str,
        kind: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_added(
            record_id=record_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_archive_completed(
        self,
        start_date,
        end_date,
        consumed_count: int,
        summary_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.archive_completed(
            start_date=start_date,
            end_date=end_date,
            consumed_count=consumed_count,
            summary_count=summary_count,
            correlation_id=correlation_id,
        ))

    async def log_archive_empty(
        self,
        start_date,
        end_date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.archive_empty(
            start_date=start_date,
            end_date=end_date,
            correlation_id=correlation_id,
        ))

    async def log_debt_payment(
        self,
        debt_id: str,
        amount: str,
        remaining: str,
        next_payment_date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.debt_payment_recorded(
            debt_id=debt_id,
            amount=amount,
            remaining=remaining,
            next_payment_date=next_payment_date,
            correlation_id=correlation_id,
        ))

    async def log_goal_funds_added(
        self,
        goal_id: str,
        amount: str,
        current_amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_funds_added(
            goal_id=goal_id,
            amount=amount,
            current_amount=current_amount,
            correlation_id=correlation_id,
        ))

    async def log_suggestion_requested(
        self,
        suggestion_type: str,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.suggestion_requested(
            suggestion_type=suggestion_type,
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_suggestion_failed(
        self,
        suggestion_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.suggestion_failed(
            suggestion_type=suggestion_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., an archive run).
    Pass it through all subsequent operations.
    """
    return uuid4()
