"""
Tests for recurrence pattern expansion.

Expansion is pure, so these tests need no stores.
"""

from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError

from conftest import monthly_rule
from recurring_ledger.errors import DomainValidationError
from recurring_ledger.models import RecurrencePattern


class TestPatternConstruction:
    """Tests for pattern validation."""

    def test_interval_below_one_rejected(self):
        """Interval 0 fails construction with a domain validation error."""
        with pytest.raises(DomainValidationError) as exc:
            RecurrencePattern.monthly(interval=0, day_of_month=5)
        assert exc.value.message == "Interval must be at least 1."

    @pytest.mark.parametrize("day", [0, 32])
    def test_day_of_month_out_of_range_rejected(self, day):
        """Day of month must be within 1-31."""
        with pytest.raises(DomainValidationError) as exc:
            RecurrencePattern.monthly(day_of_month=day)
        assert exc.value.message == "Day of month must be between 1 and 31."

    def test_pattern_is_immutable(self):
        """Patterns are frozen value objects."""
        pattern = RecurrencePattern.monthly(day_of_month=5)
        with pytest.raises(ValidationError):
            pattern.day_of_month = 6

    def test_str(self):
        """Human readable description."""
        assert str(RecurrencePattern.monthly(day_of_month=5)) == "Monthly on day 5"
        assert str(RecurrencePattern.monthly(interval=3, day_of_month=1)) == "Every 3 months on day 1"


class TestOccurrencesBetween:
    """Tests for occurrence expansion."""

    def test_monthly_occurrences_ascending_within_range(self):
        """Dates are ascending and inside the window."""
        pattern = RecurrencePattern.monthly(day_of_month=15)
        dates = list(pattern.occurrences_between(
            date(2026, 1, 1), date(2026, 6, 30), start_date=date(2025, 11, 15)
        ))
        assert dates == [date(2026, m, 15) for m in range(1, 7)]

    def test_range_before_start_date_excluded(self):
        """Nothing is produced before the rule's start date."""
        pattern = RecurrencePattern.monthly(day_of_month=10)
        dates = list(pattern.occurrences_between(
            date(2025, 1, 1), date(2026, 3, 31), start_date=date(2026, 2, 1)
        ))
        assert dates == [date(2026, 2, 10), date(2026, 3, 10)]

    def test_end_date_is_inclusive(self):
        """An occurrence exactly on the end date is produced; later ones are not."""
        pattern = RecurrencePattern.monthly(day_of_month=10)
        dates = list(pattern.occurrences_between(
            date(2026, 1, 1), date(2026, 12, 31),
            start_date=date(2026, 1, 10),
            end_date=date(2026, 3, 10),
        ))
        assert dates == [date(2026, 1, 10), date(2026, 2, 10), date(2026, 3, 10)]

    def test_day_31_clamps_to_month_end(self):
        """Anchor 31 yields the last day of shorter months exactly once."""
        pattern = RecurrencePattern.monthly(day_of_month=31)
        dates = list(pattern.occurrences_between(
            date(2026, 1, 1), date(2026, 5, 31), start_date=date(2026, 1, 31)
        ))
        assert dates == [
            date(2026, 1, 31),
            date(2026, 2, 28),
            date(2026, 3, 31),
            date(2026, 4, 30),
            date(2026, 5, 31),
        ]

    def test_leap_year_february(self):
        """February of a leap year clamps to the 29th."""
        pattern = RecurrencePattern.monthly(day_of_month=30)
        dates = list(pattern.occurrences_between(
            date(2028, 2, 1), date(2028, 2, 29), start_date=date(2028, 1, 30)
        ))
        assert dates == [date(2028, 2, 29)]

    def test_interval_steps_from_start_month(self):
        """Quarterly pattern keeps the start month's phase."""
        pattern = RecurrencePattern.monthly(interval=3, day_of_month=1)
        dates = list(pattern.occurrences_between(
            date(2026, 2, 1), date(2026, 12, 31), start_date=date(2025, 11, 1)
        ))
        assert dates == [date(2026, 2, 1), date(2026, 5, 1), date(2026, 8, 1), date(2026, 11, 1)]

    def test_empty_when_window_inverted(self):
        """An empty window yields nothing."""
        pattern = RecurrencePattern.monthly(day_of_month=5)
        assert list(pattern.occurrences_between(
            date(2026, 3, 1), date(2026, 2, 1), start_date=date(2026, 1, 1)
        )) == []

    def test_empty_when_window_misses_anchor(self):
        """A window inside one month but before its anchor day yields nothing."""
        pattern = RecurrencePattern.monthly(day_of_month=20)
        assert list(pattern.occurrences_between(
            date(2026, 3, 1), date(2026, 3, 19), start_date=date(2026, 1, 20)
        )) == []

    def test_sequence_is_restartable(self):
        """Iterating twice yields the same dates."""
        pattern = RecurrencePattern.monthly(day_of_month=5)
        sequence = pattern.occurrences_between(
            date(2026, 1, 1), date(2026, 4, 30), start_date=date(2026, 1, 5)
        )
        assert list(sequence) == list(sequence)
        assert len(list(sequence)) == 4


class TestRuleOccurrences:
    """Tests for occurrence expansion through a rule."""

    def test_inactive_rule_has_no_occurrences(self):
        """A paused rule produces nothing."""
        rule = monthly_rule(uuid4())
        rule.pause()
        assert list(rule.occurrences_between(date(2026, 1, 1), date(2026, 12, 31))) == []

    def test_resumed_rule_produces_again(self):
        """Resuming restores occurrence generation."""
        rule = monthly_rule(uuid4())
        rule.pause()
        rule.resume()
        assert list(rule.occurrences_between(date(2026, 1, 1), date(2026, 2, 28))) == [
            date(2026, 1, 5),
            date(2026, 2, 5),
        ]
