"""
Recurring Instance Service

Per-occurrence operations on a rule: list occurrences with their overlay
and realization state, modify a single occurrence, skip a single
occurrence. Each mutation commits exactly one unit of work.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from recurring_ledger.audit import AuditLogger
from recurring_ledger.errors import NotFoundError
from recurring_ledger.models.ledger import Money, RecurringException
from recurring_ledger.models.views import InstanceView
from recurring_ledger.recurrence.handlers import RuleHandler
from recurring_ledger.services.storage import UnitOfWork

logger = structlog.get_logger(__name__)


class RecurringInstanceService:
    """Instance listing, skip and modify for one rule variant."""

    def __init__(
        self,
        handler: RuleHandler,
        unit_of_work: UnitOfWork,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._handler = handler
        self._uow = unit_of_work
        self._audit_logger = audit_logger
        self._logger = logger.bind(component=f"{handler.kind.value}_instances")

    async def get_rule(self, rule_id: UUID):
        rule = await self._handler.rules.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError(self._handler.not_found_message, rule_id)
        return rule

    async def get_instances(
        self,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[InstanceView]:
        """
        List the rule's occurrences in [date_from, date_to].

        Skipped occurrences are included and flagged; realized ones carry
        the ids of their ledger rows.
        """
        rule = await self.get_rule(rule_id)
        exceptions = await self._handler.rules.get_exceptions_in_range(rule_id, date_from, date_to)
        by_date = {e.original_date: e for e in exceptions}

        instances = []
        for occurrence in rule.occurrences_between(date_from, date_to):
            exception = by_date.get(occurrence)
            resolved = self._handler.resolve(rule, occurrence, exception)
            realized = await self._handler.realized_transactions(rule_id, occurrence)
            instances.append(InstanceView(
                rule_id=rule.id,
                kind=self._handler.kind,
                scheduled_date=occurrence,
                effective_date=resolved.effective_date,
                amount=resolved.amount,
                description=resolved.description,
                is_modified=resolved.is_modified,
                is_skipped=resolved.is_skipped,
                exception_id=exception.id if exception else None,
                realized_transaction_ids=[t.id for t in realized],
            ))
        return instances

    async def get_projected_instances(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> list[InstanceView]:
        """Non-skipped occurrences of every active rule, ordered by effective date."""
        if account_id is not None:
            rules = await self._handler.rules.get_by_account_id(account_id)
        else:
            rules = await self._handler.rules.get_active()

        instances = []
        for rule in rules:
            if not rule.is_active:
                continue
            listed = await self.get_instances(rule.id, date_from, date_to)
            instances.extend(i for i in listed if not i.is_skipped)
        return sorted(instances, key=lambda i: i.effective_date)

    async def modify_instance(
        self,
        rule_id: UUID,
        instance_date: date,
        amount: Optional[Money] = None,
        description: Optional[str] = None,
        modified_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> InstanceView:
        """
        Create or replace the modification of one occurrence.

        An existing exception (including a skip) is turned into a
        modification carrying the new overrides.

        Raises:
            NotFoundError: Unknown rule
            DomainValidationError: No override supplied, or an override the
                rule variant does not accept
        """
        rule = await self.get_rule(rule_id)
        self._handler.validate_overrides(amount)
        exception = await self._handler.rules.get_exception(rule_id, instance_date)

        async with self._uow.transaction():
            if exception is None:
                exception = RecurringException.modified(
                    rule_id=rule_id,
                    original_date=instance_date,
                    amount=amount,
                    description=description,
                    modified_date=modified_date,
                )
                await self._handler.rules.add_exception(exception)
            else:
                exception.update(amount=amount, description=description, modified_date=modified_date)
                await self._handler.rules.update_exception(exception)

        changes = {
            "amount": str(exception.modified_amount) if exception.modified_amount else None,
            "description": exception.modified_description,
            "date": exception.modified_date.isoformat() if exception.modified_date else None,
        }
        self._logger.info(
            "instance_modified",
            rule_id=str(rule_id),
            instance_date=instance_date.isoformat(),
            **changes,
        )
        if self._audit_logger:
            await self._audit_logger.log_instance_modified(
                entity_type=self._handler.kind.value,
                rule_id=rule_id,
                instance_date=instance_date,
                changes=changes,
                correlation_id=correlation_id,
            )

        resolved = self._handler.resolve(rule, instance_date, exception)
        realized = await self._handler.realized_transactions(rule_id, instance_date)
        return InstanceView(
            rule_id=rule.id,
            kind=self._handler.kind,
            scheduled_date=instance_date,
            effective_date=resolved.effective_date,
            amount=resolved.amount,
            description=resolved.description,
            is_modified=True,
            exception_id=exception.id,
            realized_transaction_ids=[t.id for t in realized],
        )

    async def skip_instance(
        self,
        rule_id: UUID,
        instance_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringException:
        """Skip one occurrence, replacing any existing exception for it."""
        await self.get_rule(rule_id)
        existing = await self._handler.rules.get_exception(rule_id, instance_date)

        skipped = RecurringException.skipped(rule_id, instance_date)
        async with self._uow.transaction():
            if existing is not None:
                await self._handler.rules.remove_exception(existing)
            await self._handler.rules.add_exception(skipped)

        self._logger.info(
            "instance_skipped",
            rule_id=str(rule_id),
            instance_date=instance_date.isoformat(),
        )
        if self._audit_logger:
            await self._audit_logger.log_instance_skipped(
                entity_type=self._handler.kind.value,
                rule_id=rule_id,
                instance_date=instance_date,
                correlation_id=correlation_id,
            )
        return skipped
