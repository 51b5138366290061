"""
Tests for realization of recurring occurrences.

All tests run on the in-memory backend; commit-time uniqueness is
exercised by staging a conflicting row behind the service's back.
"""

from datetime import date
from uuid import uuid4

import pytest

from conftest import monthly_rule, monthly_transfer, usd
from recurring_ledger.errors import (
    AlreadyRealizedError,
    DomainValidationError,
    InstanceSkippedError,
    NotFoundError,
    StorageError,
)
from recurring_ledger.models import (
    AuditEventType,
    RecurringException,
    RuleKind,
    Transaction,
    TransferDirection,
)
from recurring_ledger.recurrence import RealizationRequest
from recurring_ledger.services.storage.memory import ADD, TRANSACTIONS, exceptions_table

JAN_5 = date(2026, 1, 5)


def realized_rows(database):
    return [t for t in database.rows(TRANSACTIONS) if t.is_realized_instance]


class TestTransactionRealization:
    """Tests for realizing recurring transactions."""

    @pytest.mark.asyncio
    async def test_realize_uses_rule_defaults(self, engine, seed, checking, database):
        """Unmodified occurrence becomes one ledger row."""
        rule = seed(monthly_rule(checking.id))

        txn = await engine.realize_transaction(rule.id, JAN_5)

        assert txn.amount == usd("-15.99")
        assert txn.date == JAN_5
        assert txn.description == "Streaming subscription"
        assert txn.recurring_rule_id == rule.id
        assert txn.recurring_instance_date == JAN_5
        assert [t.id for t in realized_rows(database)] == [txn.id]

    @pytest.mark.asyncio
    async def test_second_realization_rejected(self, engine, seed, checking, database):
        """Realizing the same occurrence twice fails and persists nothing new."""
        rule = seed(monthly_rule(checking.id))
        await engine.realize_transaction(rule.id, JAN_5)

        with pytest.raises(AlreadyRealizedError) as exc:
            await engine.realize_transaction(rule.id, JAN_5)

        assert exc.value.message == "This instance has already been realized."
        assert len(realized_rows(database)) == 1

    @pytest.mark.asyncio
    async def test_date_override_keeps_original_instance_date(self, engine, seed, checking):
        """Posting on another day still blocks a second realization of the original."""
        rule = seed(monthly_rule(checking.id))

        txn = await engine.realize_transaction(
            rule.id, JAN_5, RealizationRequest(date=date(2026, 1, 8))
        )
        assert txn.date == date(2026, 1, 8)
        assert txn.recurring_instance_date == JAN_5

        with pytest.raises(AlreadyRealizedError):
            await engine.realize_transaction(rule.id, JAN_5)

    @pytest.mark.asyncio
    async def test_request_beats_exception(self, engine, seed, checking):
        """Request overrides the stored modification; untouched fields keep exception values."""
        rule = seed(monthly_rule(checking.id))
        await engine.modify_instance(
            RuleKind.RECURRING_TRANSACTION,
            rule.id,
            JAN_5,
            amount=usd("-19.99"),
            description="Price rise",
        )

        txn = await engine.realize_transaction(
            rule.id, JAN_5, RealizationRequest(amount=usd("-21.00"))
        )

        assert txn.amount == usd("-21.00")
        assert txn.description == "Price rise"

    @pytest.mark.asyncio
    async def test_unknown_rule(self, engine):
        """Unknown rule id raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc:
            await engine.realize_transaction(uuid4(), JAN_5)
        assert exc.value.message == "Recurring transaction not found."

    @pytest.mark.asyncio
    async def test_skipped_occurrence_refused(self, engine, seed, checking, database):
        """A skipped occurrence cannot be realized."""
        rule = seed(monthly_rule(checking.id))
        await engine.skip_instance(RuleKind.RECURRING_TRANSACTION, rule.id, JAN_5)

        with pytest.raises(InstanceSkippedError):
            await engine.realize_transaction(rule.id, JAN_5)
        assert realized_rows(database) == []

    @pytest.mark.asyncio
    async def test_commit_conflict_reported_as_already_realized(self, engine, seed, checking, database):
        """A row committed by a racing caller surfaces as AlreadyRealizedError."""
        rule = seed(monthly_rule(checking.id))
        racer = Transaction.from_recurring(
            account_id=checking.id,
            amount=usd("-15.99"),
            posted_date=JAN_5,
            description="Streaming subscription",
            rule_id=rule.id,
            instance_date=JAN_5,
        )

        original_check = engine.transaction_realization._handler.is_realized
        calls = []

        async def racing_check(rule_id, instance_date):
            # Passes the pre-check, then the racer commits first
            result = await original_check(rule_id, instance_date)
            if not calls:
                seed(racer)
            calls.append(rule_id)
            return result

        engine.transaction_realization._handler.is_realized = racing_check

        with pytest.raises(AlreadyRealizedError):
            await engine.realize_transaction(rule.id, JAN_5)
        assert [t.id for t in realized_rows(database)] == [racer.id]
        assert database.pending == []

    @pytest.mark.asyncio
    async def test_audit_events_recorded(self, engine, seed, checking, audit_storage):
        """Realization and rejection are audited."""
        rule = seed(monthly_rule(checking.id))
        await engine.realize_transaction(rule.id, JAN_5)
        with pytest.raises(AlreadyRealizedError):
            await engine.realize_transaction(rule.id, JAN_5)

        types = [e.event_type for e in audit_storage.events]
        assert types == [AuditEventType.INSTANCE_REALIZED, AuditEventType.REALIZATION_REJECTED]


class TestTransferRealization:
    """Tests for realizing recurring transfers."""

    @pytest.mark.asyncio
    async def test_two_linked_legs_in_one_commit(self, engine, seed, checking, savings, database):
        """Source debit and destination credit share a transfer id."""
        rule = seed(monthly_transfer(checking.id, savings.id))
        commits_before = database.commit_count

        summary = await engine.realize_transfer(rule.id, JAN_5)

        assert database.commit_count == commits_before + 1
        legs = {t.transfer_direction: t for t in realized_rows(database)}
        assert set(legs) == {TransferDirection.SOURCE, TransferDirection.DESTINATION}
        source, destination = legs[TransferDirection.SOURCE], legs[TransferDirection.DESTINATION]
        assert source.amount == usd("-200.00")
        assert source.account_id == checking.id
        assert destination.amount == usd("200.00")
        assert destination.account_id == savings.id
        assert source.transfer_id == destination.transfer_id == summary.transfer_id
        assert summary.source_transaction_id == source.id
        assert summary.destination_transaction_id == destination.id
        assert summary.source_account_name == "Checking"
        assert summary.destination_account_name == "Savings"
        assert summary.amount == usd("200.00")

    @pytest.mark.asyncio
    async def test_retry_does_not_create_third_leg(self, engine, seed, checking, savings, database):
        """Retrying a realized transfer fails without writing."""
        rule = seed(monthly_transfer(checking.id, savings.id))
        await engine.realize_transfer(rule.id, JAN_5)

        with pytest.raises(AlreadyRealizedError):
            await engine.realize_transfer(rule.id, JAN_5)
        assert len(realized_rows(database)) == 2

    @pytest.mark.asyncio
    async def test_non_positive_request_amount_rejected(self, engine, seed, checking, savings):
        """Override amounts for transfers must be positive."""
        rule = seed(monthly_transfer(checking.id, savings.id))
        with pytest.raises(DomainValidationError):
            await engine.realize_transfer(
                rule.id, JAN_5, RealizationRequest(amount=usd("-5.00"))
            )

    @pytest.mark.asyncio
    async def test_stored_non_positive_override_rejected(self, engine, seed, checking, savings, database):
        """A negative stored override never flips the legs."""
        rule = seed(monthly_transfer(checking.id, savings.id))
        database.stage(
            ADD,
            exceptions_table(RuleKind.RECURRING_TRANSFER),
            RecurringException.modified(rule.id, JAN_5, amount=usd("-50.00")),
        )
        database.commit()

        with pytest.raises(DomainValidationError):
            await engine.realize_transfer(rule.id, JAN_5)
        assert realized_rows(database) == []

    @pytest.mark.asyncio
    async def test_unknown_transfer(self, engine):
        """Unknown transfer id raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc:
            await engine.realize_transfer(uuid4(), JAN_5)
        assert exc.value.message == "Recurring transfer not found."

    @pytest.mark.asyncio
    async def test_storage_failure_persists_nothing(self, engine, seed, checking, savings, database, audit_storage):
        """A failing commit leaves neither leg behind and is audited."""
        rule = seed(monthly_transfer(checking.id, savings.id))

        async def failing_save():
            database.discard()
            raise StorageError("disk full")

        engine.unit_of_work.save_changes = failing_save

        with pytest.raises(StorageError):
            await engine.realize_transfer(rule.id, JAN_5)
        assert realized_rows(database) == []
        assert [e.event_type for e in audit_storage.events] == [AuditEventType.STORAGE_ERROR]
