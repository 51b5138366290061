"""Projection of occurrences into balances, calendar and account views."""

from recurring_ledger.projection.projector import OccurrenceProjector
from recurring_ledger.projection.balance import BalanceCalculationService
from recurring_ledger.projection.calendar_grid import GRID_DAYS, CalendarGridService
from recurring_ledger.projection.day_detail import DayDetailService
from recurring_ledger.projection.transaction_list import TransactionListService

__all__ = [
    "BalanceCalculationService",
    "CalendarGridService",
    "DayDetailService",
    "GRID_DAYS",
    "OccurrenceProjector",
    "TransactionListService",
]
