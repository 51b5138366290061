"""Tests for instance listing, skip/modify, batch and auto realization."""

from datetime import date
from uuid import uuid4

import pytest

from conftest import TODAY, monthly_rule, monthly_transfer, usd
from recurring_ledger.errors import DomainValidationError, NotFoundError
from recurring_ledger.models import (
    AuditEventType,
    BatchRealizeItem,
    ExceptionType,
    RuleKind,
)
from recurring_ledger.realization import AutoRealizeService
from recurring_ledger.services.storage.memory import exceptions_table

TXN = RuleKind.RECURRING_TRANSACTION
TRANSFER = RuleKind.RECURRING_TRANSFER


class TestGetInstances:
    """Tests for listing a rule's occurrences."""

    @pytest.mark.asyncio
    async def test_flags_skipped_modified_and_realized(self, engine, seed, checking):
        """Each occurrence reports its overlay and realization state."""
        rule = seed(monthly_rule(checking.id))
        await engine.skip_instance(TXN, rule.id, date(2026, 2, 5))
        await engine.modify_instance(TXN, rule.id, date(2026, 3, 5), amount=usd("-17.99"))
        txn = await engine.realize_transaction(rule.id, date(2026, 1, 5))

        instances = await engine.get_instances(TXN, rule.id, date(2026, 1, 1), date(2026, 4, 30))

        assert [i.scheduled_date for i in instances] == [
            date(2026, 1, 5), date(2026, 2, 5), date(2026, 3, 5), date(2026, 4, 5)
        ]
        january, february, march, april = instances
        assert january.realized_transaction_ids == [txn.id]
        assert february.is_skipped
        assert march.is_modified
        assert march.amount == usd("-17.99")
        assert march.exception_id is not None
        assert not april.is_modified and not april.is_skipped
        assert april.realized_transaction_ids == []

    @pytest.mark.asyncio
    async def test_unknown_rule(self, engine):
        """Listing an unknown rule raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await engine.get_instances(TRANSFER, uuid4(), date(2026, 1, 1), date(2026, 2, 1))

    @pytest.mark.asyncio
    async def test_projected_instances_exclude_skips(self, engine, seed, checking):
        """Projected instances omit skips and are ordered by effective date."""
        early = seed(monthly_rule(checking.id, day=3, start=date(2026, 1, 3)))
        late = seed(monthly_rule(checking.id, day=20, start=date(2026, 1, 20)))
        await engine.skip_instance(TXN, early.id, date(2026, 2, 3))
        await engine.modify_instance(TXN, late.id, date(2026, 1, 20), modified_date=date(2026, 1, 2))

        listed = await engine.instances[TXN].get_projected_instances(date(2026, 1, 1), date(2026, 2, 28))

        assert [(i.rule_id, i.effective_date) for i in listed] == [
            (late.id, date(2026, 1, 2)),
            (early.id, date(2026, 1, 3)),
            (late.id, date(2026, 2, 20)),
        ]


class TestModifyAndSkip:
    """Tests for per-occurrence exceptions."""

    @pytest.mark.asyncio
    async def test_modify_creates_then_updates(self, engine, seed, checking, database):
        """A second modification replaces the overrides of the same exception."""
        rule = seed(monthly_rule(checking.id))
        first = await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), amount=usd("-18.00"))
        second = await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), description="Family plan")

        assert second.exception_id == first.exception_id
        assert second.amount == usd("-15.99")
        assert second.description == "Family plan"
        assert len(database.rows(exceptions_table(TXN))) == 1

    @pytest.mark.asyncio
    async def test_modify_requires_a_change(self, engine, seed, checking, database):
        """An empty modification is rejected and nothing is stored."""
        rule = seed(monthly_rule(checking.id))
        with pytest.raises(DomainValidationError):
            await engine.modify_instance(TXN, rule.id, date(2026, 2, 5))
        assert database.rows(exceptions_table(TXN)) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["-50.00", "0.00"])
    async def test_transfer_modification_must_be_positive(self, engine, seed, checking, savings, database, amount):
        """A transfer occurrence cannot be modified to a non-positive amount."""
        rule = seed(monthly_transfer(checking.id, savings.id))

        with pytest.raises(DomainValidationError) as exc:
            await engine.modify_instance(TRANSFER, rule.id, date(2026, 2, 5), amount=usd(amount))

        assert exc.value.message == "Modified amount must be positive."
        assert database.rows(exceptions_table(TRANSFER)) == []

    @pytest.mark.asyncio
    async def test_transaction_modification_may_be_negative(self, engine, seed, checking):
        """Single-account occurrences keep signed amounts."""
        rule = seed(monthly_rule(checking.id))
        view = await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), amount=usd("-50.00"))
        assert view.amount == usd("-50.00")

    @pytest.mark.asyncio
    async def test_skip_replaces_modification(self, engine, seed, checking, database):
        """Skipping a modified occurrence leaves only the skip."""
        rule = seed(monthly_rule(checking.id))
        await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), amount=usd("-18.00"))

        skipped = await engine.skip_instance(TXN, rule.id, date(2026, 2, 5))

        stored = database.rows(exceptions_table(TXN))
        assert [e.id for e in stored] == [skipped.id]
        assert stored[0].exception_type == ExceptionType.SKIPPED

    @pytest.mark.asyncio
    async def test_modify_after_skip_unskips(self, engine, seed, checking):
        """Modifying a skipped occurrence turns it back into a modification."""
        rule = seed(monthly_rule(checking.id))
        await engine.skip_instance(TXN, rule.id, date(2026, 2, 5))

        view = await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), amount=usd("-9.99"))

        assert not view.is_skipped
        assert view.amount == usd("-9.99")

    @pytest.mark.asyncio
    async def test_skip_unknown_rule(self, engine):
        """Skipping an occurrence of an unknown rule raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc:
            await engine.skip_instance(TRANSFER, uuid4(), date(2026, 2, 5))
        assert exc.value.message == "Recurring transfer not found."

    @pytest.mark.asyncio
    async def test_skip_and_modify_are_audited(self, engine, seed, checking, audit_storage):
        """Both mutations write an audit event."""
        rule = seed(monthly_rule(checking.id))
        await engine.modify_instance(TXN, rule.id, date(2026, 2, 5), amount=usd("-18.00"))
        await engine.skip_instance(TXN, rule.id, date(2026, 3, 5))

        types = [e.event_type for e in audit_storage.events]
        assert types == [AuditEventType.INSTANCE_MODIFIED, AuditEventType.INSTANCE_SKIPPED]


class TestPauseResume:
    """Tests for toggling rules through the engine."""

    @pytest.mark.asyncio
    async def test_pause_then_resume(self, engine, seed, checking, savings):
        """Paused rules list no occurrences until resumed."""
        rule = seed(monthly_transfer(checking.id, savings.id))

        paused = await engine.pause_rule(TRANSFER, rule.id)
        assert not paused.is_active
        assert await engine.get_instances(TRANSFER, rule.id, date(2026, 1, 1), date(2026, 3, 31)) == []

        await engine.resume_rule(TRANSFER, rule.id)
        listed = await engine.get_instances(TRANSFER, rule.id, date(2026, 1, 1), date(2026, 3, 31))
        assert len(listed) == 3

    @pytest.mark.asyncio
    async def test_pause_unknown_rule(self, engine):
        """Pausing an unknown rule raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await engine.pause_rule(TXN, uuid4())


class TestBatchRealization:
    """Tests for realizing a list of occurrences."""

    @pytest.mark.asyncio
    async def test_counts_successes_and_failures(self, engine, seed, checking, savings):
        """Failures are reported per item without stopping the batch."""
        rule = seed(monthly_rule(checking.id))
        transfer = seed(monthly_transfer(checking.id, savings.id))
        await engine.realize_transaction(rule.id, date(2026, 1, 5))
        missing = uuid4()

        result = await engine.realize_batch([
            BatchRealizeItem(type=TXN, id=rule.id, instance_date=date(2026, 1, 5)),
            BatchRealizeItem(type=TRANSFER, id=transfer.id, instance_date=date(2026, 1, 5)),
            BatchRealizeItem(type=TXN, id=missing, instance_date=date(2026, 1, 5)),
        ])

        assert result.success_count == 1
        assert result.failure_count == 2
        assert [(f.id, f.error) for f in result.failures] == [
            (rule.id, "This instance has already been realized."),
            (missing, "Recurring transaction not found."),
        ]

    @pytest.mark.asyncio
    async def test_empty_batch(self, engine):
        """An empty batch does nothing."""
        result = await engine.realize_batch([])
        assert result.success_count == 0
        assert result.failures == []


class TestAutoRealize:
    """Tests for automatic realization of past-due occurrences."""

    @pytest.mark.asyncio
    async def test_disabled_returns_none(self, engine, seed, checking):
        """With the setting off nothing is realized."""
        seed(monthly_rule(checking.id))
        assert not engine.auto_realize.enabled
        assert await engine.auto_realize.auto_realize_if_enabled() is None
        assert (await engine.get_past_due_items()).total_count == 1

    @pytest.mark.asyncio
    async def test_enabled_realizes_everything_past_due(self, engine, seed, checking, savings, audit_storage):
        """Every past-due occurrence is realized once."""
        seed(
            monthly_rule(checking.id, day=3, start=date(2026, 1, 3)),
            monthly_transfer(checking.id, savings.id),
        )
        service = AutoRealizeService(
            engine.past_due,
            engine.batch,
            enabled=True,
            today_provider=lambda: TODAY,
            audit_logger=engine.audit_logger,
            settings=engine.settings,
        )

        result = await service.auto_realize_if_enabled()

        assert result.realized_count == 2
        assert result.already_realized_count == 0
        assert result.failures == []
        assert (await engine.get_past_due_items()).total_count == 0
        assert AuditEventType.AUTO_REALIZE_COMPLETED in [e.event_type for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_second_run_finds_nothing(self, engine, seed, checking):
        """Running again after a full pass realizes nothing."""
        seed(monthly_rule(checking.id))
        first = await engine.auto_realize_past_due()
        second = await engine.auto_realize_past_due()
        assert first.realized_count == 1
        assert second.realized_count == 0
