"""
Tests for Recurring Ledger models

Test strategy:
1. Unit tests for individual models (validation, factories)
2. Integration tests for services on the in-memory backend
3. No real API calls in tests (Google Sheets is faked in-process)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import monthly_rule, monthly_transfer, usd
from recurring_ledger.errors import DomainValidationError
from recurring_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ExceptionType,
    Money,
    RecurringException,
    Transaction,
    TransferDirection,
)


class TestMoney:
    """Tests for the Money value object."""

    def test_currency_upper_cased(self):
        """Currency codes are normalized to upper case."""
        assert Money(currency="usd", amount=Decimal("1.00")).currency == "USD"

    def test_zero_and_negate(self):
        """Helpers build zero and negated amounts."""
        assert Money.zero("EUR").amount == Decimal("0")
        assert usd("12.50").negate() == usd("-12.50")

    def test_str(self):
        """String form is amount then currency."""
        assert str(usd("-15.99")) == "-15.99 USD"


class TestRecurringRules:
    """Tests for rule validation."""

    def test_description_required(self):
        """Blank descriptions are rejected."""
        with pytest.raises(DomainValidationError) as exc:
            monthly_rule(uuid4(), description="   ")
        assert exc.value.message == "Description is required."

    def test_description_trimmed(self):
        """Descriptions are stored trimmed."""
        assert monthly_rule(uuid4(), description="  Rent  ").description == "Rent"

    def test_end_before_start_rejected(self):
        """End date must not precede start date."""
        with pytest.raises(DomainValidationError) as exc:
            monthly_rule(uuid4(), start=date(2026, 3, 5), end_date=date(2026, 2, 5))
        assert exc.value.message == "End date must be on or after start date."

    def test_transfer_accounts_must_differ(self):
        """A transfer needs two distinct accounts."""
        account = uuid4()
        with pytest.raises(DomainValidationError) as exc:
            monthly_transfer(account, account)
        assert exc.value.message == "Source and destination accounts must be different."

    def test_transfer_amount_positive(self):
        """Transfer amounts are stored positive."""
        with pytest.raises(DomainValidationError) as exc:
            monthly_transfer(uuid4(), uuid4(), amount="-50.00")
        assert exc.value.message == "Transfer amount must be positive."

    def test_involves_account(self):
        """Transfers involve both sides."""
        source, destination = uuid4(), uuid4()
        transfer = monthly_transfer(source, destination)
        assert transfer.involves_account(source)
        assert transfer.involves_account(destination)
        assert not transfer.involves_account(uuid4())


class TestRecurringException:
    """Tests for per-instance exceptions."""

    def test_skipped_factory(self):
        """Skipped exceptions carry no overrides."""
        exception = RecurringException.skipped(uuid4(), date(2026, 2, 5))
        assert exception.is_skipped
        assert exception.exception_type == ExceptionType.SKIPPED
        assert exception.effective_date == date(2026, 2, 5)

    def test_modified_requires_a_change(self):
        """At least one override is required."""
        with pytest.raises(DomainValidationError) as exc:
            RecurringException.modified(uuid4(), date(2026, 2, 5), description="  ")
        assert exc.value.message == (
            "At least one modification is required (amount, description, or date)."
        )

    def test_modified_effective_date(self):
        """A modified date becomes the effective date."""
        exception = RecurringException.modified(
            uuid4(), date(2026, 2, 5), modified_date=date(2026, 2, 9)
        )
        assert exception.effective_date == date(2026, 2, 9)
        assert not exception.is_skipped

    def test_update_turns_skip_into_modification(self):
        """Updating a skip makes it a modification."""
        exception = RecurringException.skipped(uuid4(), date(2026, 2, 5))
        exception.update(amount=usd("-9.99"))
        assert exception.exception_type == ExceptionType.MODIFIED
        assert exception.modified_amount == usd("-9.99")


class TestTransaction:
    """Tests for ledger transactions."""

    def test_realized_linkage_must_be_complete(self):
        """Rule id and instance date come as a pair."""
        with pytest.raises(DomainValidationError):
            Transaction(
                account_id=uuid4(),
                amount=usd("-1.00"),
                date=date(2026, 1, 5),
                description="Coffee",
                recurring_rule_id=uuid4(),
            )

    def test_from_recurring_keeps_original_instance_date(self):
        """Posted date may differ; instance date stays original."""
        rule_id = uuid4()
        txn = Transaction.from_recurring(
            account_id=uuid4(),
            amount=usd("-15.99"),
            posted_date=date(2026, 1, 7),
            description="Netflix",
            rule_id=rule_id,
            instance_date=date(2026, 1, 5),
        )
        assert txn.date == date(2026, 1, 7)
        assert txn.idempotency_key == (rule_id, date(2026, 1, 5), None)
        assert txn.is_realized_instance
        assert not txn.is_transfer

    def test_transfer_leg_key_includes_direction(self):
        """Each transfer leg has its own idempotency key."""
        rule_id, transfer_id = uuid4(), uuid4()
        leg = Transaction.from_recurring_transfer(
            account_id=uuid4(),
            amount=usd("-200.00"),
            posted_date=date(2026, 1, 5),
            description="Savings",
            transfer_id=transfer_id,
            direction=TransferDirection.SOURCE,
            rule_id=rule_id,
            instance_date=date(2026, 1, 5),
        )
        assert leg.is_transfer
        assert leg.idempotency_key == (rule_id, date(2026, 1, 5), TransferDirection.SOURCE)

    def test_plain_transaction_has_no_key(self):
        """Manual transactions are not idempotency-checked."""
        txn = Transaction(
            account_id=uuid4(),
            amount=usd("-4.50"),
            date=date(2026, 1, 5),
            description="Coffee",
        )
        assert txn.idempotency_key is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.INSTANCE_REALIZED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_instance_realized_builder(self):
        """Builder fills entity and details."""
        rule_id, txn_id = uuid4(), uuid4()
        event = AuditEventBuilder.instance_realized(
            rule_id=rule_id,
            instance_date=date(2026, 1, 5),
            transaction_id=txn_id,
            amount="-15.99 USD",
        )
        assert event.event_type == AuditEventType.INSTANCE_REALIZED
        assert event.entity_id == rule_id
        assert event.details["transaction_id"] == str(txn_id)
        assert event.is_user_action

    def test_realization_rejected_is_warning(self):
        """Rejections are logged at warning severity with the reason."""
        event = AuditEventBuilder.realization_rejected(
            entity_type="recurring-transfer",
            rule_id=uuid4(),
            instance_date=date(2026, 1, 5),
            reason="This instance has already been realized.",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "This instance has already been realized."

    def test_audit_event_to_sheets_row(self):
        """Test AuditEvent conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.PAST_DUE_SCANNED,
            description="Scan",
            details={"item_count": 2},
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == AuditEventType.PAST_DUE_SCANNED.value
        assert row[8] == '{"item_count": 2}'
