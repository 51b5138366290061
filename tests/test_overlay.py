"""Tests for exception overlay resolution."""

from datetime import date
from uuid import uuid4

from conftest import usd
from recurring_ledger.models import RecurringException
from recurring_ledger.recurrence import (
    OverlayOutcome,
    RealizationRequest,
    resolve_overlay,
)

ORIGINAL = date(2026, 2, 5)


class TestResolveOverlay:
    """Tests for request > exception > rule default precedence."""

    def test_no_exception_no_request_is_unmodified(self):
        """Rule defaults are used verbatim."""
        resolved = resolve_overlay(ORIGINAL, usd("-15.99"), "Netflix")
        assert resolved.outcome == OverlayOutcome.UNMODIFIED
        assert resolved.effective_date == ORIGINAL
        assert resolved.amount == usd("-15.99")
        assert resolved.description == "Netflix"
        assert not resolved.is_modified

    def test_skip_exception_wins(self):
        """A skip excludes the occurrence even with a request."""
        exception = RecurringException.skipped(uuid4(), ORIGINAL)
        resolved = resolve_overlay(
            ORIGINAL,
            usd("-15.99"),
            "Netflix",
            exception,
            RealizationRequest(amount=usd("-20.00")),
        )
        assert resolved.is_skipped

    def test_exception_overrides_rule(self):
        """Exception values beat rule defaults."""
        exception = RecurringException.modified(uuid4(), ORIGINAL, amount=usd("-19.99"))
        resolved = resolve_overlay(ORIGINAL, usd("-15.99"), "Netflix", exception)
        assert resolved.outcome == OverlayOutcome.REALIZE
        assert resolved.amount == usd("-19.99")
        assert resolved.description == "Netflix"
        assert resolved.effective_date == ORIGINAL

    def test_request_overrides_exception(self):
        """Request values beat exception values field by field."""
        exception = RecurringException.modified(
            uuid4(),
            ORIGINAL,
            amount=usd("-19.99"),
            description="Netflix (price rise)",
            modified_date=date(2026, 2, 7),
        )
        resolved = resolve_overlay(
            ORIGINAL,
            usd("-15.99"),
            "Netflix",
            exception,
            RealizationRequest(amount=usd("-25.00")),
        )
        assert resolved.amount == usd("-25.00")
        assert resolved.description == "Netflix (price rise)"
        assert resolved.effective_date == date(2026, 2, 7)

    def test_request_only(self):
        """A request without an exception still counts as modified."""
        resolved = resolve_overlay(
            ORIGINAL,
            usd("-15.99"),
            "Netflix",
            request=RealizationRequest(date=date(2026, 2, 6)),
        )
        assert resolved.is_modified
        assert resolved.effective_date == date(2026, 2, 6)
        assert resolved.original_date == ORIGINAL
        assert resolved.amount == usd("-15.99")

    def test_blank_request_description_ignored(self):
        """Whitespace-only descriptions fall through to the next tier."""
        request = RealizationRequest(description="   ")
        assert request.is_empty
        resolved = resolve_overlay(ORIGINAL, usd("-15.99"), "Netflix", request=request)
        assert resolved.outcome == OverlayOutcome.UNMODIFIED
        assert resolved.description == "Netflix"

    def test_resolution_is_repeatable(self):
        """Same inputs always resolve the same way."""
        exception = RecurringException.modified(uuid4(), ORIGINAL, description="Gym")
        first = resolve_overlay(ORIGINAL, usd("-40.00"), "Fitness", exception)
        second = resolve_overlay(ORIGINAL, usd("-40.00"), "Fitness", exception)
        assert first == second
