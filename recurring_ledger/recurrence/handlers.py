"""
Rule Variant Handlers

The engine works over two rule variants, recurring transactions and
recurring transfers. Rather than branching on type everywhere, each
variant gets a handler behind one RuleHandler protocol that supplies:

- the rule store for that variant
- its idempotency predicate (single leg vs. transfer legs)
- validation of per-occurrence overrides
- past-due item construction
- projection into per-account entries (one per transfer leg)

Past-due detection, projection and instance listing all use the same
`is_realized` predicate as realization itself.
"""

from datetime import date
from typing import Optional, Protocol
from uuid import UUID

from recurring_ledger.errors import DomainValidationError
from recurring_ledger.models.ledger import (
    Money,
    RecurringException,
    RecurringTransaction,
    RecurringTransfer,
    RuleKind,
    Transaction,
    TransferDirection,
)
from recurring_ledger.models.views import PastDueItem, ProjectedOccurrence
from recurring_ledger.recurrence.overlay import (
    RealizationRequest,
    ResolvedOccurrence,
    resolve_overlay,
)
from recurring_ledger.services.storage import (
    RecurringRuleStore,
    RecurringTransactionStore,
    RecurringTransferStore,
    TransactionStore,
)

AccountNames = dict[UUID, Optional[str]]


class RuleHandler(Protocol):
    """Per-variant behaviour shared by every engine component."""

    kind: RuleKind
    not_found_message: str
    rules: RecurringRuleStore

    async def realized_transactions(self, rule_id: UUID, instance_date: date) -> list[Transaction]:
        ...

    async def is_realized(self, rule_id: UUID, instance_date: date) -> bool:
        ...

    def validate_overrides(self, amount: Optional[Money]) -> None:
        ...

    def resolve(
        self,
        rule,
        instance_date: date,
        exception: Optional[RecurringException],
        request: Optional[RealizationRequest] = None,
    ) -> ResolvedOccurrence:
        ...

    def account_ids(self, rule) -> list[UUID]:
        ...

    def past_due_item(
        self,
        rule,
        resolved: ResolvedOccurrence,
        today: date,
        names: AccountNames,
    ) -> PastDueItem:
        ...

    def project(
        self,
        rule,
        resolved: ResolvedOccurrence,
        names: AccountNames,
        account_id: Optional[UUID] = None,
    ) -> list[ProjectedOccurrence]:
        ...


class RecurringTransactionHandler:
    """Single-account variant: one realized leg per occurrence."""

    kind = RuleKind.RECURRING_TRANSACTION
    not_found_message = "Recurring transaction not found."

    def __init__(self, rules: RecurringTransactionStore, transactions: TransactionStore):
        self.rules = rules
        self.transactions = transactions

    async def realized_transactions(self, rule_id: UUID, instance_date: date) -> list[Transaction]:
        existing = await self.transactions.get_by_recurring_instance(rule_id, instance_date)
        return [existing] if existing is not None else []

    async def is_realized(self, rule_id: UUID, instance_date: date) -> bool:
        return await self.transactions.get_by_recurring_instance(rule_id, instance_date) is not None

    def validate_overrides(self, amount: Optional[Money]) -> None:
        pass

    def resolve(
        self,
        rule: RecurringTransaction,
        instance_date: date,
        exception: Optional[RecurringException],
        request: Optional[RealizationRequest] = None,
    ) -> ResolvedOccurrence:
        return resolve_overlay(instance_date, rule.amount, rule.description, exception, request)

    def account_ids(self, rule: RecurringTransaction) -> list[UUID]:
        return [rule.account_id]

    def past_due_item(
        self,
        rule: RecurringTransaction,
        resolved: ResolvedOccurrence,
        today: date,
        names: AccountNames,
    ) -> PastDueItem:
        return PastDueItem(
            id=rule.id,
            type=self.kind,
            instance_date=resolved.original_date,
            days_past_due=(today - resolved.original_date).days,
            description=resolved.description,
            amount=resolved.amount,
            account_id=rule.account_id,
            account_name=names.get(rule.account_id),
        )

    def project(
        self,
        rule: RecurringTransaction,
        resolved: ResolvedOccurrence,
        names: AccountNames,
        account_id: Optional[UUID] = None,
    ) -> list[ProjectedOccurrence]:
        if account_id is not None and account_id != rule.account_id:
            return []
        return [ProjectedOccurrence(
            rule_id=rule.id,
            kind=self.kind,
            instance_date=resolved.original_date,
            date=resolved.effective_date,
            account_id=rule.account_id,
            account_name=names.get(rule.account_id) or "",
            description=resolved.description,
            amount=resolved.amount,
            category_id=rule.category_id,
            is_modified=resolved.is_modified,
        )]


class RecurringTransferHandler:
    """
    Two-account variant.

    Both legs commit in one unit of work, so an occurrence counts as
    realized as soon as any leg exists.
    """

    kind = RuleKind.RECURRING_TRANSFER
    not_found_message = "Recurring transfer not found."

    def __init__(self, rules: RecurringTransferStore, transactions: TransactionStore):
        self.rules = rules
        self.transactions = transactions

    async def realized_transactions(self, rule_id: UUID, instance_date: date) -> list[Transaction]:
        return await self.transactions.get_by_recurring_transfer_instance(rule_id, instance_date)

    async def is_realized(self, rule_id: UUID, instance_date: date) -> bool:
        legs = await self.transactions.get_by_recurring_transfer_instance(rule_id, instance_date)
        return len(legs) > 0

    def validate_overrides(self, amount: Optional[Money]) -> None:
        """Transfer amounts are stored positive; direction comes from the legs."""
        if amount is not None and amount.amount <= 0:
            raise DomainValidationError("Modified amount must be positive.")

    def resolve(
        self,
        rule: RecurringTransfer,
        instance_date: date,
        exception: Optional[RecurringException],
        request: Optional[RealizationRequest] = None,
    ) -> ResolvedOccurrence:
        return resolve_overlay(instance_date, rule.amount, rule.description, exception, request)

    def account_ids(self, rule: RecurringTransfer) -> list[UUID]:
        return [rule.source_account_id, rule.destination_account_id]

    def past_due_item(
        self,
        rule: RecurringTransfer,
        resolved: ResolvedOccurrence,
        today: date,
        names: AccountNames,
    ) -> PastDueItem:
        # Counted once at the transferred amount, not once per leg
        return PastDueItem(
            id=rule.id,
            type=self.kind,
            instance_date=resolved.original_date,
            days_past_due=(today - resolved.original_date).days,
            description=resolved.description,
            amount=resolved.amount,
            account_id=rule.source_account_id,
            account_name=names.get(rule.source_account_id),
            destination_account_id=rule.destination_account_id,
            destination_account_name=names.get(rule.destination_account_id),
        )

    def project(
        self,
        rule: RecurringTransfer,
        resolved: ResolvedOccurrence,
        names: AccountNames,
        account_id: Optional[UUID] = None,
    ) -> list[ProjectedOccurrence]:
        source_name = names.get(rule.source_account_id) or ""
        destination_name = names.get(rule.destination_account_id) or ""
        legs = [
            (
                rule.source_account_id,
                source_name,
                f"Transfer to {destination_name}: {resolved.description}",
                resolved.amount.negate(),
                TransferDirection.SOURCE,
            ),
            (
                rule.destination_account_id,
                destination_name,
                f"Transfer from {source_name}: {resolved.description}",
                resolved.amount,
                TransferDirection.DESTINATION,
            ),
        ]
        return [
            ProjectedOccurrence(
                rule_id=rule.id,
                kind=self.kind,
                instance_date=resolved.original_date,
                date=resolved.effective_date,
                account_id=leg_account,
                account_name=leg_name,
                description=description,
                amount=amount,
                is_modified=resolved.is_modified,
                transfer_direction=direction,
            )
            for leg_account, leg_name, description, amount, direction in legs
            if account_id is None or account_id == leg_account
        ]
