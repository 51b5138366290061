"""
Data Models Package

This package contains all Pydantic models used by the recurring ledger
engine. All data flowing through the engine conforms to these schemas.
"""

from recurring_ledger.models.ledger import (
    Account,
    DailyTotal,
    ExceptionType,
    Money,
    OccurrenceSequence,
    RecurrenceFrequency,
    RecurrencePattern,
    RecurringException,
    RecurringRule,
    RecurringTransaction,
    RecurringTransfer,
    RuleKind,
    Transaction,
    TodayProvider,
    TransferDirection,
    utc_now,
    utc_today,
)
from recurring_ledger.models.views import (
    AutoRealizeResult,
    BatchRealizeFailure,
    BatchRealizeItem,
    BatchRealizeResult,
    CalendarDay,
    CalendarGrid,
    CalendarMonthSummary,
    DailyBalanceSummary,
    DayDetail,
    DayDetailItem,
    DayDetailSummary,
    InstanceView,
    ItemType,
    PastDueItem,
    PastDueSummary,
    ProjectedOccurrence,
    TransactionList,
    TransactionListItem,
    TransactionListSummary,
    TransferSummary,
)
from recurring_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "DailyTotal",
    "ExceptionType",
    "Money",
    "OccurrenceSequence",
    "RecurrenceFrequency",
    "RecurrencePattern",
    "RecurringException",
    "RecurringRule",
    "RecurringTransaction",
    "RecurringTransfer",
    "RuleKind",
    "Transaction",
    "TodayProvider",
    "TransferDirection",
    "utc_now",
    "utc_today",
    # View models
    "AutoRealizeResult",
    "BatchRealizeFailure",
    "BatchRealizeItem",
    "BatchRealizeResult",
    "CalendarDay",
    "CalendarGrid",
    "CalendarMonthSummary",
    "DailyBalanceSummary",
    "DayDetail",
    "DayDetailItem",
    "DayDetailSummary",
    "InstanceView",
    "ItemType",
    "PastDueItem",
    "PastDueSummary",
    "ProjectedOccurrence",
    "TransactionList",
    "TransactionListItem",
    "TransactionListSummary",
    "TransferSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
