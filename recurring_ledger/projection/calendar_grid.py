"""
Calendar Grid

A month view of exactly 42 consecutive days (6 weeks x 7 days) starting
on the configured weekday. Each cell merges realized daily totals with
projected occurrences and carries a running end-of-day balance.

Month summary figures only cover cells inside the target month.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.models.ledger import DailyTotal, Money, TodayProvider, utc_today
from recurring_ledger.models.views import (
    CalendarDay,
    CalendarGrid,
    CalendarMonthSummary,
    ProjectedOccurrence,
    sum_amounts,
)
from recurring_ledger.projection.balance import BalanceCalculationService
from recurring_ledger.projection.projector import OccurrenceProjector
from recurring_ledger.realization.batch import AutoRealizeService
from recurring_ledger.services.storage import TransactionStore

logger = structlog.get_logger(__name__)

GRID_DAYS = 42


def months_between(first: date, last: date) -> list[tuple[int, int]]:
    """(year, month) pairs touched by [first, last], ascending."""
    months = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        months.append((year, month))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


class CalendarGridService:
    """Builds the 42-day calendar grid for a month."""

    def __init__(
        self,
        transactions: TransactionStore,
        projector: OccurrenceProjector,
        balances: BalanceCalculationService,
        auto_realize: Optional[AutoRealizeService] = None,
        today_provider: Optional[TodayProvider] = None,
        week_start: Optional[int] = None,
        default_currency: Optional[str] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        self._transactions = transactions
        self._projector = projector
        self._balances = balances
        self._auto_realize = auto_realize
        self._today = today_provider or utc_today
        self._week_start = settings.calendar_week_start if week_start is None else week_start
        self._currency = default_currency or settings.default_currency
        self._logger = logger.bind(component="calendar_grid")

    def grid_start(self, year: int, month: int) -> date:
        """First cell: the week-start day on or before the 1st of the month."""
        first = date(year, month, 1)
        offset = (first.weekday() - self._week_start) % 7
        return first - timedelta(days=offset)

    async def get_calendar_grid(
        self,
        year: int,
        month: int,
        account_id: Optional[UUID] = None,
    ) -> CalendarGrid:
        """
        Build the grid for a month.

        Args:
            year: Target year
            month: Target month (1-12)
            account_id: Restrict actuals, projections and balances to one account

        Returns:
            CalendarGrid with 42 days, month summary and starting balance
        """
        start = self.grid_start(year, month)
        end = start + timedelta(days=GRID_DAYS - 1)
        today = self._today()

        if self._auto_realize is not None:
            await self._auto_realize.auto_realize_if_enabled(account_id)

        daily_totals: dict[date, DailyTotal] = {}
        for total_year, total_month in months_between(start, end):
            for total in await self._transactions.get_daily_totals(total_year, total_month, account_id):
                daily_totals[total.date] = total

        projected = await self._projector.project_by_date(start, end, account_id)

        days = [
            self._build_day(
                start + timedelta(days=offset),
                year,
                month,
                today,
                daily_totals,
                projected,
            )
            for offset in range(GRID_DAYS)
        ]

        starting_balance = await self._balances.get_opening_balance_for_date(start, account_id)
        initial_balances = await self._balances.get_initial_balances_by_date_range(start, end, account_id)
        self._apply_running_balances(days, starting_balance.amount, initial_balances)

        self._logger.debug(
            "calendar_grid_built",
            year=year,
            month=month,
            account_id=str(account_id) if account_id else None,
            grid_start=start.isoformat(),
        )
        return CalendarGrid(
            year=year,
            month=month,
            days=days,
            month_summary=self._summarize(days),
            starting_balance=starting_balance,
        )

    def _build_day(
        self,
        day: date,
        year: int,
        month: int,
        today: date,
        daily_totals: dict[date, DailyTotal],
        projected: dict[date, list[ProjectedOccurrence]],
    ) -> CalendarDay:
        total = daily_totals.get(day)
        entries = projected.get(day, [])

        actual = total.total.amount if total else Decimal("0")
        projected_amount = sum((p.amount.amount for p in entries), Decimal("0"))

        return CalendarDay(
            date=day,
            is_current_month=(day.year == year and day.month == month),
            is_today=(day == today),
            actual_total=Money(currency=self._currency, amount=actual),
            projected_total=Money(currency=self._currency, amount=projected_amount),
            combined_total=Money(currency=self._currency, amount=actual + projected_amount),
            transaction_count=total.transaction_count if total else 0,
            recurring_count=len(entries),
        )

    def _apply_running_balances(
        self,
        days: list[CalendarDay],
        starting_balance: Decimal,
        initial_balances: dict[date, Decimal],
    ) -> None:
        running = starting_balance
        for day in days:
            running += initial_balances.get(day.date, Decimal("0"))
            running += day.combined_total.amount
            day.end_of_day_balance = Money(currency=self._currency, amount=running)
            day.is_balance_negative = running < 0

    def _summarize(self, days: list[CalendarDay]) -> CalendarMonthSummary:
        in_month = [d for d in days if d.is_current_month]
        actual = [d.actual_total.amount for d in in_month]
        projected = [d.projected_total.amount for d in in_month]

        income = sum_amounts((a for a in actual if a > 0), self._currency)
        expenses = sum_amounts((a for a in actual if a < 0), self._currency)
        return CalendarMonthSummary(
            total_income=income,
            total_expenses=expenses,
            net_change=Money(currency=self._currency, amount=income.amount + expenses.amount),
            projected_income=sum_amounts((p for p in projected if p > 0), self._currency),
            projected_expenses=sum_amounts((p for p in projected if p < 0), self._currency),
        )
