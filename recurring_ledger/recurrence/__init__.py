"""Occurrence overlay resolution and per-variant rule handlers."""

from recurring_ledger.recurrence.overlay import (
    OverlayOutcome,
    RealizationRequest,
    ResolvedOccurrence,
    resolve_overlay,
)
from recurring_ledger.recurrence.handlers import (
    RecurringTransactionHandler,
    RecurringTransferHandler,
    RuleHandler,
)

__all__ = [
    "OverlayOutcome",
    "RealizationRequest",
    "RecurringTransactionHandler",
    "RecurringTransferHandler",
    "ResolvedOccurrence",
    "RuleHandler",
    "resolve_overlay",
]
