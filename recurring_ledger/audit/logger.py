"""
Audit Logger

DESIGN DECISION: Every mutating engine action is logged.
This provides:
1. Complete traceability of how each realized transaction came to exist
2. Debugging capability for past-due and projection questions
3. A user-visible history when an audit storage backend is configured

The audit logger:
- Is async so it can share the engine's execution model
- Gracefully handles storage failures (never breaks the main flow)
- Supports correlation IDs to trace related events
"""

import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from recurring_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from recurring_ledger.services.storage import AuditStorageInterface


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


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Route structlog output through stdlib logging at the given level.

    Defaults to AppSettings.log_level.
    """
    if log_level is None:
        from recurring_ledger.config import get_settings
        log_level = get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), when configured
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
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must not break the main flow
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_instance_realized(
        self,
        rule_id: UUID,
        instance_date: date,
        transaction_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log realization of a recurring transaction occurrence."""
        event = AuditEventBuilder.instance_realized(
            rule_id=rule_id,
            instance_date=instance_date,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_realized(
        self,
        rule_id: UUID,
        instance_date: date,
        transfer_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log realization of a recurring transfer occurrence."""
        event = AuditEventBuilder.transfer_realized(
            rule_id=rule_id,
            instance_date=instance_date,
            transfer_id=transfer_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_realization_rejected(
        self,
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.realization_rejected(
            entity_type=entity_type,
            rule_id=rule_id,
            instance_date=instance_date,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_instance_skipped(
        self,
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.instance_skipped(
            entity_type=entity_type,
            rule_id=rule_id,
            instance_date=instance_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_instance_modified(
        self,
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.instance_modified(
            entity_type=entity_type,
            rule_id=rule_id,
            instance_date=instance_date,
            changes=changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_past_due_scanned(
        self,
        today: date,
        item_count: int,
        account_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.past_due_scanned(
            today=today,
            item_count=item_count,
            account_id=account_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_auto_realize_completed(
        self,
        today: date,
        realized_count: int,
        failure_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.auto_realize_completed(
            today=today,
            realized_count=realized_count,
            failure_count=failure_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_name_unresolved(
        self,
        account_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.account_name_unresolved(
            account_id=account_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure (the error itself still propagates)."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a batch realization)
    and pass it through all subsequent operations.
    """
    return uuid4()
