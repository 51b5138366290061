"""
View Models for Recurring Ledger

Read-side shapes returned by the engine: past-due reports, realization
results, instance listings, calendar grids, day details and account
transaction lists. None of these are persisted; they are recomputed on
every query.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from recurring_ledger.models.ledger import Money, RuleKind, TransferDirection


class ItemType(str, Enum):
    """Kind of entry in a merged actual/projected listing."""
    TRANSACTION = "transaction"
    RECURRING = "recurring"
    RECURRING_TRANSFER = "recurring-transfer"


# =============================================================================
# PROJECTION
# =============================================================================

class ProjectedOccurrence(BaseModel):
    """
    One not-yet-realized occurrence as it lands on a single account.

    A projected transfer yields one of these per leg.
    """
    rule_id: UUID
    kind: RuleKind
    instance_date: dt.date = Field(..., description="Original occurrence date")
    date: dt.date = Field(..., description="Effective date after overlay")
    account_id: UUID
    account_name: str = ""
    description: str
    amount: Money = Field(..., description="Signed amount for this account")
    category_id: Optional[UUID] = None
    is_modified: bool = False
    transfer_direction: Optional[TransferDirection] = None

    @property
    def item_type(self) -> ItemType:
        if self.kind == RuleKind.RECURRING_TRANSFER:
            return ItemType.RECURRING_TRANSFER
        return ItemType.RECURRING


# =============================================================================
# PAST DUE
# =============================================================================

class PastDueItem(BaseModel):
    """An occurrence whose date has passed without being realized or skipped."""
    id: UUID = Field(..., description="Rule ID")
    type: RuleKind
    instance_date: dt.date
    days_past_due: int = Field(..., ge=1)
    description: str
    amount: Money
    account_id: UUID = Field(..., description="Account (source account for transfers)")
    account_name: Optional[str] = None
    destination_account_id: Optional[UUID] = None
    destination_account_name: Optional[str] = None


class PastDueSummary(BaseModel):
    """Past-due items (earliest first) with aggregates."""
    items: list[PastDueItem] = Field(default_factory=list)
    total_count: int = 0
    oldest_date: Optional[dt.date] = None
    total_amount: Optional[Money] = None


# =============================================================================
# REALIZATION
# =============================================================================

class TransferSummary(BaseModel):
    """Result of realizing one recurring transfer occurrence."""
    transfer_id: UUID
    source_account_id: UUID
    source_account_name: Optional[str] = None
    destination_account_id: UUID
    destination_account_name: Optional[str] = None
    amount: Money = Field(..., description="Positive transferred amount")
    date: dt.date
    description: str
    source_transaction_id: UUID
    destination_transaction_id: UUID


class InstanceView(BaseModel):
    """One occurrence of a rule with its overlay and realization state."""
    rule_id: UUID
    kind: RuleKind
    scheduled_date: dt.date
    effective_date: dt.date
    amount: Money
    description: str
    is_modified: bool = False
    is_skipped: bool = False
    exception_id: Optional[UUID] = None
    realized_transaction_ids: list[UUID] = Field(default_factory=list)

    @property
    def is_realized(self) -> bool:
        return bool(self.realized_transaction_ids)


class BatchRealizeItem(BaseModel):
    """One requested realization in a batch."""
    type: RuleKind
    id: UUID
    instance_date: dt.date


class BatchRealizeFailure(BaseModel):
    id: UUID
    type: RuleKind
    instance_date: dt.date
    error: str


class BatchRealizeResult(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    failures: list[BatchRealizeFailure] = Field(default_factory=list)


class AutoRealizeResult(BaseModel):
    """Outcome of realizing every past-due occurrence."""
    realized_count: int = 0
    already_realized_count: int = 0
    failures: list[BatchRealizeFailure] = Field(default_factory=list)


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarDay(BaseModel):
    """One cell of the calendar grid."""
    date: dt.date
    is_current_month: bool
    is_today: bool = False
    actual_total: Money
    projected_total: Money
    combined_total: Money
    transaction_count: int = 0
    recurring_count: int = 0
    end_of_day_balance: Optional[Money] = None
    is_balance_negative: bool = False

    @property
    def has_recurring(self) -> bool:
        return self.recurring_count > 0


class CalendarMonthSummary(BaseModel):
    """Totals over the target month's cells only."""
    total_income: Money
    total_expenses: Money
    net_change: Money
    projected_income: Money
    projected_expenses: Money


class CalendarGrid(BaseModel):
    """42 consecutive days (6 weeks) covering a target month."""
    year: int
    month: int = Field(..., ge=1, le=12)
    days: list[CalendarDay]
    month_summary: CalendarMonthSummary
    starting_balance: Money


# =============================================================================
# DAY DETAIL
# =============================================================================

class DayDetailItem(BaseModel):
    """An actual or projected entry on one date."""
    id: Optional[UUID] = Field(
        default=None,
        description="Transaction ID for actual items, None for projections"
    )
    type: ItemType
    description: str
    amount: Money
    account_id: UUID
    account_name: str = ""
    category_id: Optional[UUID] = None
    created_at: Optional[dt.datetime] = None
    is_modified: bool = False
    rule_id: Optional[UUID] = None
    instance_date: Optional[dt.date] = None
    is_transfer: bool = False
    transfer_id: Optional[UUID] = None
    transfer_direction: Optional[TransferDirection] = None


class DayDetailSummary(BaseModel):
    total_actual: Money
    total_projected: Money
    combined_total: Money
    item_count: int = 0


class DayDetail(BaseModel):
    date: dt.date
    items: list[DayDetailItem] = Field(default_factory=list)
    summary: DayDetailSummary


# =============================================================================
# ACCOUNT TRANSACTION LIST
# =============================================================================

class TransactionListItem(BaseModel):
    """A row in an account's merged transaction list."""
    id: UUID = Field(..., description="Transaction ID, or rule ID for projections")
    type: ItemType
    date: dt.date
    description: str
    amount: Money
    category_id: Optional[UUID] = None
    created_at: Optional[dt.datetime] = None
    is_modified: bool = False
    rule_id: Optional[UUID] = None
    instance_date: Optional[dt.date] = None
    is_transfer: bool = False
    transfer_id: Optional[UUID] = None
    transfer_direction: Optional[TransferDirection] = None
    running_balance: Optional[Money] = None


class DailyBalanceSummary(BaseModel):
    date: dt.date
    starting_balance: Money
    ending_balance: Money
    day_total: Money
    transaction_count: int = 0


class TransactionListSummary(BaseModel):
    total_amount: Money
    total_income: Money
    total_expenses: Money
    transaction_count: int = 0
    recurring_count: int = 0
    current_balance: Money = Field(
        ...,
        description="Initial balance plus realized transactions up to today"
    )


class TransactionList(BaseModel):
    account_id: UUID
    account_name: str
    start_date: dt.date
    end_date: dt.date
    initial_balance: Money
    initial_balance_date: dt.date
    starting_balance: Money
    items: list[TransactionListItem] = Field(default_factory=list)
    daily_balances: list[DailyBalanceSummary] = Field(default_factory=list)
    summary: TransactionListSummary


def sum_amounts(amounts, currency: str) -> Money:
    """Sum decimal amounts into a Money of the given currency."""
    return Money(currency=currency, amount=sum(amounts, Decimal("0")))
