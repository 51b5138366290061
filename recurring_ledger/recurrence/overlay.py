"""
Exception Overlay Resolution

Decides the fate of a single occurrence from the rule's defaults, the
stored exception (if any) and an optional realization request.

Precedence per field: request > exception > rule default.

This module performs no I/O. Every caller that holds the same inputs
gets the same answer, which is what keeps the calendar, the past-due
scan and realization consistent with each other.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from recurring_ledger.models.ledger import Money, RecurringException


class OverlayOutcome(str, Enum):
    """How an occurrence resolves."""
    SKIP = "skip"
    REALIZE = "realize"          # at least one field overridden
    UNMODIFIED = "unmodified"    # rule defaults verbatim


class RealizationRequest(BaseModel):
    """Optional per-call overrides supplied when realizing an occurrence."""
    model_config = ConfigDict(frozen=True)

    date: Optional[dt.date] = None
    amount: Optional[Money] = None
    description: Optional[str] = None

    @field_validator('description')
    @classmethod
    def blank_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @property
    def is_empty(self) -> bool:
        return self.date is None and self.amount is None and self.description is None


class ResolvedOccurrence(BaseModel):
    """Effective values for one occurrence after applying the overlay."""
    model_config = ConfigDict(frozen=True)

    outcome: OverlayOutcome
    original_date: dt.date
    effective_date: dt.date
    amount: Money
    description: str

    @property
    def is_skipped(self) -> bool:
        return self.outcome == OverlayOutcome.SKIP

    @property
    def is_modified(self) -> bool:
        return self.outcome == OverlayOutcome.REALIZE


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_overlay(
    original_date: dt.date,
    default_amount: Money,
    default_description: str,
    exception: Optional[RecurringException] = None,
    request: Optional[RealizationRequest] = None,
) -> ResolvedOccurrence:
    """
    Resolve one occurrence.

    A skip exception wins over everything, including a request: the
    occurrence is excluded and realization must be refused by the caller.
    """
    if exception is not None and exception.is_skipped:
        return ResolvedOccurrence(
            outcome=OverlayOutcome.SKIP,
            original_date=original_date,
            effective_date=original_date,
            amount=default_amount,
            description=default_description,
        )

    request = request or RealizationRequest()
    modified = exception is not None or not request.is_empty
    if not modified:
        return ResolvedOccurrence(
            outcome=OverlayOutcome.UNMODIFIED,
            original_date=original_date,
            effective_date=original_date,
            amount=default_amount,
            description=default_description,
        )

    return ResolvedOccurrence(
        outcome=OverlayOutcome.REALIZE,
        original_date=original_date,
        effective_date=_first(request.date, exception and exception.modified_date, original_date),
        amount=_first(request.amount, exception and exception.modified_amount, default_amount),
        description=_first(
            request.description,
            exception and exception.modified_description,
            default_description,
        ),
    )
