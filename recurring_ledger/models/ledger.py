"""
Core Ledger Models for Recurring Ledger

These models define the schemas for accounts, recurring rules, per-instance
exceptions and realized ledger transactions.

DESIGN DECISION: We use Pydantic v2. Domain-rule violations raised from
model validators are DomainValidationError, which pydantic lets through
unchanged, so callers see one error type regardless of whether the
failure came from a factory method or from direct construction.
"""

import calendar
import datetime as dt
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Callable, Iterator, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from recurring_ledger.errors import DomainValidationError


def utc_now() -> datetime:
    """Current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Default "today" provider: the current UTC calendar date."""
    return datetime.now(timezone.utc).date()


# Injectable source of the reference "today"
TodayProvider = Callable[[], date]


# =============================================================================
# ENUMS
# =============================================================================

class RecurrenceFrequency(str, Enum):
    """
    Supported recurrence frequencies.

    Only a fixed monthly-interval pattern is supported.
    """
    MONTHLY = "monthly"


class RuleKind(str, Enum):
    """Discriminator for the two recurring rule variants."""
    RECURRING_TRANSACTION = "recurring-transaction"
    RECURRING_TRANSFER = "recurring-transfer"


class ExceptionType(str, Enum):
    """How a single occurrence deviates from its rule."""
    SKIPPED = "skipped"
    MODIFIED = "modified"


class TransferDirection(str, Enum):
    """Which leg of a transfer a transaction represents."""
    SOURCE = "source"            # money leaving (negative)
    DESTINATION = "destination"  # money entering (positive)


# =============================================================================
# MONEY
# =============================================================================

class Money(BaseModel):
    """
    Currency plus decimal magnitude.

    No currency conversion is ever performed.
    """
    model_config = ConfigDict(frozen=True)

    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount (negative = outflow)"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(currency=currency, amount=Decimal("0"))

    def negate(self) -> "Money":
        return Money(currency=self.currency, amount=-self.amount)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


# =============================================================================
# RECURRENCE PATTERN
# =============================================================================

class OccurrenceSequence:
    """
    Lazy, finite, restartable ascending sequence of occurrence dates.

    Every iteration re-expands the pattern from scratch, so the same
    sequence object can be walked any number of times.
    """

    __slots__ = ("_pattern", "_range_start", "_range_end", "_start_date", "_end_date")

    def __init__(
        self,
        pattern: "RecurrencePattern",
        range_start: date,
        range_end: date,
        start_date: date,
        end_date: Optional[date] = None,
    ):
        self._pattern = pattern
        self._range_start = range_start
        self._range_end = range_end
        self._start_date = start_date
        self._end_date = end_date

    def __iter__(self) -> Iterator[date]:
        lower = max(self._start_date, self._range_start)
        upper = self._range_end if self._end_date is None else min(self._end_date, self._range_end)
        if lower > upper:
            return

        interval = self._pattern.interval
        start_index = self._start_date.year * 12 + self._start_date.month - 1
        lower_index = lower.year * 12 + lower.month - 1

        # First month on the pattern's grid that is not before the lower bound's month
        steps = max(0, -(-(lower_index - start_index) // interval))
        index = start_index + steps * interval

        while True:
            year, month_zero = divmod(index, 12)
            candidate = self._pattern.occurrence_in_month(year, month_zero + 1)
            if candidate > upper:
                return
            if candidate >= lower:
                yield candidate
            index += interval

    def __repr__(self) -> str:
        return (
            f"OccurrenceSequence({self._pattern}, "
            f"{self._range_start.isoformat()}..{self._range_end.isoformat()})"
        )


class RecurrencePattern(BaseModel):
    """
    Immutable recurrence rule: every `interval` months on `day_of_month`.

    When `day_of_month` exceeds the length of a generated month, that
    occurrence falls on the month's last day (it never rolls over into
    the next month).
    """
    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    interval: int = 1
    day_of_month: int

    @model_validator(mode='after')
    def validate_pattern(self) -> 'RecurrencePattern':
        if self.interval < 1:
            raise DomainValidationError("Interval must be at least 1.")
        if self.day_of_month < 1 or self.day_of_month > 31:
            raise DomainValidationError("Day of month must be between 1 and 31.")
        return self

    @classmethod
    def monthly(cls, interval: int = 1, day_of_month: int = 1) -> "RecurrencePattern":
        """Create a monthly pattern."""
        return cls(
            frequency=RecurrenceFrequency.MONTHLY,
            interval=interval,
            day_of_month=day_of_month,
        )

    def occurrence_in_month(self, year: int, month: int) -> date:
        """The anchor day in the given month, clamped to the month's last day."""
        days_in_month = calendar.monthrange(year, month)[1]
        return date(year, month, min(self.day_of_month, days_in_month))

    def occurrences_between(
        self,
        range_start: date,
        range_end: date,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> OccurrenceSequence:
        """
        Occurrence dates inside [range_start, range_end].

        Months advance by `interval` from `start_date`'s month; dates before
        `start_date` or after `end_date` (both inclusive bounds) are excluded.
        """
        return OccurrenceSequence(self, range_start, range_end, start_date, end_date)

    def __str__(self) -> str:
        if self.interval == 1:
            return f"Monthly on day {self.day_of_month}"
        return f"Every {self.interval} months on day {self.day_of_month}"


# =============================================================================
# RECURRING RULES
# =============================================================================

def _require_description(value: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        raise DomainValidationError("Description is required.")
    return trimmed


class RecurringTransaction(BaseModel):
    """
    A recurring single-account transaction.

    Amount and pattern are never mutated after creation; a single
    instance is changed through a RecurringException instead.
    """

    kind: Literal[RuleKind.RECURRING_TRANSACTION] = RuleKind.RECURRING_TRANSACTION

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    description: str
    amount: Money
    pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    category_id: Optional[UUID] = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_rule(self) -> 'RecurringTransaction':
        self.description = _require_description(self.description)
        if self.end_date is not None and self.end_date < self.start_date:
            raise DomainValidationError("End date must be on or after start date.")
        return self

    def occurrences_between(self, range_start: date, range_end: date) -> Union[OccurrenceSequence, tuple]:
        """Occurrences in the window; an inactive rule has none."""
        if not self.is_active:
            return ()
        return self.pattern.occurrences_between(
            range_start, range_end, self.start_date, self.end_date
        )

    def involves_account(self, account_id: UUID) -> bool:
        return self.account_id == account_id

    def pause(self) -> None:
        self.is_active = False
        self.updated_at = utc_now()

    def resume(self) -> None:
        self.is_active = True
        self.updated_at = utc_now()


class RecurringTransfer(BaseModel):
    """
    A recurring transfer between two accounts.

    Amount is stored positive; realization debits the source and
    credits the destination.
    """

    kind: Literal[RuleKind.RECURRING_TRANSFER] = RuleKind.RECURRING_TRANSFER

    id: UUID = Field(default_factory=uuid4)
    source_account_id: UUID
    destination_account_id: UUID
    description: str
    amount: Money
    pattern: RecurrencePattern
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_rule(self) -> 'RecurringTransfer':
        if self.source_account_id == self.destination_account_id:
            raise DomainValidationError("Source and destination accounts must be different.")
        self.description = _require_description(self.description)
        if self.amount.amount <= 0:
            raise DomainValidationError("Transfer amount must be positive.")
        if self.end_date is not None and self.end_date < self.start_date:
            raise DomainValidationError("End date must be on or after start date.")
        return self

    def occurrences_between(self, range_start: date, range_end: date) -> Union[OccurrenceSequence, tuple]:
        """Occurrences in the window; an inactive rule has none."""
        if not self.is_active:
            return ()
        return self.pattern.occurrences_between(
            range_start, range_end, self.start_date, self.end_date
        )

    def involves_account(self, account_id: UUID) -> bool:
        return account_id in (self.source_account_id, self.destination_account_id)

    def pause(self) -> None:
        self.is_active = False
        self.updated_at = utc_now()

    def resume(self) -> None:
        self.is_active = True
        self.updated_at = utc_now()


RecurringRule = Annotated[
    Union[RecurringTransaction, RecurringTransfer],
    Field(discriminator="kind"),
]


# =============================================================================
# PER-INSTANCE EXCEPTIONS
# =============================================================================

class RecurringException(BaseModel):
    """
    Overlay for one occurrence of a rule, keyed by (rule_id, original_date).

    Exceptions are created by user action and never auto-expire.
    At most one exists per (rule_id, original_date).
    """

    id: UUID = Field(default_factory=uuid4)
    rule_id: UUID
    original_date: date
    exception_type: ExceptionType

    # None = use the rule's own value
    modified_amount: Optional[Money] = None
    modified_description: Optional[str] = None
    modified_date: Optional[date] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @staticmethod
    def _clean_description(description: Optional[str]) -> Optional[str]:
        trimmed = description.strip() if description is not None else None
        return trimmed or None

    @classmethod
    def skipped(cls, rule_id: UUID, original_date: date) -> "RecurringException":
        """Create a skip for a single occurrence."""
        return cls(
            rule_id=rule_id,
            original_date=original_date,
            exception_type=ExceptionType.SKIPPED,
        )

    @classmethod
    def modified(
        cls,
        rule_id: UUID,
        original_date: date,
        amount: Optional[Money] = None,
        description: Optional[str] = None,
        modified_date: Optional[date] = None,
    ) -> "RecurringException":
        """Create a modification for a single occurrence."""
        description = cls._clean_description(description)
        if amount is None and description is None and modified_date is None:
            raise DomainValidationError(
                "At least one modification is required (amount, description, or date)."
            )
        return cls(
            rule_id=rule_id,
            original_date=original_date,
            exception_type=ExceptionType.MODIFIED,
            modified_amount=amount,
            modified_description=description,
            modified_date=modified_date,
        )

    def update(
        self,
        amount: Optional[Money] = None,
        description: Optional[str] = None,
        modified_date: Optional[date] = None,
    ) -> None:
        """Replace the overrides of a modified exception."""
        description = self._clean_description(description)
        if amount is None and description is None and modified_date is None:
            raise DomainValidationError(
                "At least one modification is required (amount, description, or date)."
            )
        self.exception_type = ExceptionType.MODIFIED
        self.modified_amount = amount
        self.modified_description = description
        self.modified_date = modified_date
        self.updated_at = utc_now()

    @property
    def is_skipped(self) -> bool:
        return self.exception_type == ExceptionType.SKIPPED

    @property
    def effective_date(self) -> date:
        return self.modified_date or self.original_date


# =============================================================================
# LEDGER
# =============================================================================

class Account(BaseModel):
    """A ledger account (only what the engine reads)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    initial_balance: Money
    initial_balance_date: date
    created_at: datetime = Field(default_factory=utc_now)


class Transaction(BaseModel):
    """
    A permanent ledger row.

    Realized rows carry `recurring_rule_id` and `recurring_instance_date`.
    The instance date is the ORIGINAL occurrence date, even when the posted
    `date` was overridden, so the idempotency key stays stable.
    """

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    amount: Money
    date: dt.date
    description: str
    category_id: Optional[UUID] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Recurring linkage
    recurring_rule_id: Optional[UUID] = None
    recurring_instance_date: Optional[dt.date] = None

    # Transfer linkage (both legs share transfer_id)
    transfer_id: Optional[UUID] = None
    transfer_direction: Optional[TransferDirection] = None

    @model_validator(mode='after')
    def validate_transaction(self) -> 'Transaction':
        self.description = _require_description(self.description)
        if (self.recurring_rule_id is None) != (self.recurring_instance_date is None):
            raise DomainValidationError(
                "Recurring rule ID and instance date must be set together."
            )
        return self

    @classmethod
    def from_recurring(
        cls,
        account_id: UUID,
        amount: Money,
        posted_date: dt.date,
        description: str,
        rule_id: UUID,
        instance_date: dt.date,
        category_id: Optional[UUID] = None,
    ) -> "Transaction":
        return cls(
            account_id=account_id,
            amount=amount,
            date=posted_date,
            description=description,
            category_id=category_id,
            recurring_rule_id=rule_id,
            recurring_instance_date=instance_date,
        )

    @classmethod
    def from_recurring_transfer(
        cls,
        account_id: UUID,
        amount: Money,
        posted_date: dt.date,
        description: str,
        transfer_id: UUID,
        direction: TransferDirection,
        rule_id: UUID,
        instance_date: dt.date,
    ) -> "Transaction":
        return cls(
            account_id=account_id,
            amount=amount,
            date=posted_date,
            description=description,
            transfer_id=transfer_id,
            transfer_direction=direction,
            recurring_rule_id=rule_id,
            recurring_instance_date=instance_date,
        )

    @property
    def is_transfer(self) -> bool:
        return self.transfer_direction is not None

    @property
    def is_realized_instance(self) -> bool:
        return self.recurring_rule_id is not None

    @property
    def idempotency_key(self) -> Optional[tuple]:
        """(rule id, original instance date, transfer leg) for realized rows."""
        if self.recurring_rule_id is None:
            return None
        return (self.recurring_rule_id, self.recurring_instance_date, self.transfer_direction)


class DailyTotal(BaseModel):
    """Sum and count of realized transactions posted on one date."""

    date: dt.date
    total: Money
    transaction_count: int = Field(ge=0)
