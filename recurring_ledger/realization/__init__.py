"""Realization of recurring occurrences into ledger transactions."""

from recurring_ledger.realization.realize import (
    RecurringTransactionRealizationService,
    RecurringTransferRealizationService,
)
from recurring_ledger.realization.instances import RecurringInstanceService
from recurring_ledger.realization.batch import (
    AutoRealizeService,
    BatchRealizationService,
)

__all__ = [
    "AutoRealizeService",
    "BatchRealizationService",
    "RecurringInstanceService",
    "RecurringTransactionRealizationService",
    "RecurringTransferRealizationService",
]
