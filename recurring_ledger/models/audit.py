"""
Audit Models for Recurring Ledger

Every significant engine action is logged for audit purposes:
realizations, rejected realizations, skips, modifications and scans.
This gives a complete trail of why a ledger row exists and who asked
for it.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from recurring_ledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutating engine operation has its own event type.
    """
    # Realization
    INSTANCE_REALIZED = "instance_realized"
    TRANSFER_REALIZED = "transfer_realized"
    REALIZATION_REJECTED = "realization_rejected"

    # Instance overlay
    INSTANCE_SKIPPED = "instance_skipped"
    INSTANCE_MODIFIED = "instance_modified"

    # Scans
    PAST_DUE_SCANNED = "past_due_scanned"
    AUTO_REALIZE_COMPLETED = "auto_realize_completed"
    ACCOUNT_NAME_UNRESOLVED = "account_name_unresolved"

    # System events
    STORAGE_ERROR = "storage_error"


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
        default_factory=utc_now,
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
        description="Type of entity (e.g., 'recurring-transaction', 'account')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one batch realization)"
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
    error_code: Optional[str] = None
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
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message,
        is_user_action]
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
        event = AuditEventBuilder.instance_realized(rule_id, instance_date, txn_id)
        event = AuditEventBuilder.instance_skipped(kind, rule_id, instance_date)
    """

    @staticmethod
    def instance_realized(
        rule_id: UUID,
        instance_date: date,
        transaction_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCE_REALIZED,
            entity_type="recurring-transaction",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring instance {instance_date.isoformat()} realized: {amount}",
            details={
                "instance_date": instance_date.isoformat(),
                "transaction_id": str(transaction_id),
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transfer_realized(
        rule_id: UUID,
        instance_date: date,
        transfer_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REALIZED,
            entity_type="recurring-transfer",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring transfer {instance_date.isoformat()} realized: {amount}",
            details={
                "instance_date": instance_date.isoformat(),
                "transfer_id": str(transfer_id),
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def realization_rejected(
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REALIZATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Realization of {instance_date.isoformat()} rejected",
            details={
                "instance_date": instance_date.isoformat(),
            },
            error_message=reason,
        )

    @staticmethod
    def instance_skipped(
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCE_SKIPPED,
            entity_type=entity_type,
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Instance {instance_date.isoformat()} skipped",
            details={"instance_date": instance_date.isoformat()},
            is_user_action=True,
        )

    @staticmethod
    def instance_modified(
        entity_type: str,
        rule_id: UUID,
        instance_date: date,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTANCE_MODIFIED,
            entity_type=entity_type,
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Instance {instance_date.isoformat()} modified",
            details={
                "instance_date": instance_date.isoformat(),
                "changes": changes,
            },
            is_user_action=True,
        )

    @staticmethod
    def past_due_scanned(
        today: date,
        item_count: int,
        account_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAST_DUE_SCANNED,
            severity=AuditSeverity.DEBUG,
            entity_type="account" if account_id else None,
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Past-due scan found {item_count} items",
            details={
                "today": today.isoformat(),
                "item_count": item_count,
            },
        )

    @staticmethod
    def auto_realize_completed(
        today: date,
        realized_count: int,
        failure_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_REALIZE_COMPLETED,
            severity=AuditSeverity.WARNING if failure_count else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Auto-realized {realized_count} past-due instances",
            details={
                "today": today.isoformat(),
                "realized_count": realized_count,
                "failure_count": failure_count,
            },
        )

    @staticmethod
    def account_name_unresolved(
        account_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_NAME_UNRESOLVED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Account name could not be resolved",
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
