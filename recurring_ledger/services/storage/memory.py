"""
In-Memory Storage Implementation

Default backend for tests and for embedding the engine without any
external service. All stores share one InMemoryLedgerDatabase, which
holds committed rows plus the batch of staged writes.

Commit applies the staged batch to copies of the committed tables,
checks uniqueness of realized transactions and exceptions, and only
then swaps the copies in. A violation discards the whole batch.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from recurring_ledger.models.audit import AuditEvent
from recurring_ledger.models.ledger import (
    Account,
    DailyTotal,
    Money,
    RecurringException,
    RecurringTransaction,
    RecurringTransfer,
    RuleKind,
    Transaction,
)
from recurring_ledger.services.storage.interface import (
    AccountStore,
    AuditStorageInterface,
    DuplicateError,
    RecurringTransactionStore,
    RecurringTransferStore,
    TransactionStore,
    UnitOfWork,
    moved_into_range,
)

ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"

# Staged operation verbs
ADD = "add"
UPDATE = "update"
REMOVE = "remove"


def rules_table(kind: RuleKind) -> str:
    return f"rules:{kind.value}"


def exceptions_table(kind: RuleKind) -> str:
    return f"exceptions:{kind.value}"


class InMemoryLedgerDatabase:
    """
    Committed tables keyed by entity id, plus the pending batch.

    Readers always receive deep copies so that mutating a returned model
    never leaks into committed state before a commit.
    """

    def __init__(self):
        self.tables: dict[str, dict[UUID, object]] = defaultdict(dict)
        self.pending: list[tuple[str, str, object]] = []
        self.commit_count = 0

    def rows(self, table: str) -> list:
        return [row.model_copy(deep=True) for row in self.tables[table].values()]

    def get(self, table: str, entity_id: UUID):
        row = self.tables[table].get(entity_id)
        return row.model_copy(deep=True) if row is not None else None

    def stage(self, verb: str, table: str, entity) -> None:
        self.pending.append((verb, table, entity.model_copy(deep=True)))

    def discard(self) -> None:
        self.pending.clear()

    def commit(self) -> int:
        """Apply the pending batch atomically; returns affected row count."""
        batch, self.pending = self.pending, []
        if not batch:
            return 0

        staged = {name: dict(table) for name, table in self.tables.items()}
        for verb, table, entity in batch:
            rows = staged.setdefault(table, {})
            if verb == ADD:
                if entity.id in rows:
                    raise DuplicateError(f"{table} row {entity.id} already exists")
                rows[entity.id] = entity
            elif verb == UPDATE:
                rows[entity.id] = entity
            elif verb == REMOVE:
                rows.pop(entity.id, None)

        self._check_unique(staged)

        self.tables = defaultdict(dict, staged)
        self.commit_count += 1
        return len(batch)

    @staticmethod
    def _check_unique(staged: dict[str, dict]) -> None:
        seen: set = set()
        for txn in staged.get(TRANSACTIONS, {}).values():
            key = txn.idempotency_key
            if key is None:
                continue
            if key in seen:
                raise DuplicateError(
                    f"Realized transaction already exists for rule {key[0]} on {key[1]}"
                )
            seen.add(key)

        for kind in RuleKind:
            seen = set()
            for exception in staged.get(exceptions_table(kind), {}).values():
                key = (exception.rule_id, exception.original_date)
                if key in seen:
                    raise DuplicateError(
                        f"Exception already exists for rule {key[0]} on {key[1]}"
                    )
                seen.add(key)


class _InMemoryRuleStore:
    """Shared implementation for both rule kinds."""

    kind: RuleKind

    def __init__(self, database: InMemoryLedgerDatabase):
        self._db = database

    async def get_active(self) -> list:
        return [r for r in self._db.rows(rules_table(self.kind)) if r.is_active]

    async def get_by_account_id(self, account_id: UUID) -> list:
        return [
            r for r in self._db.rows(rules_table(self.kind))
            if r.involves_account(account_id)
        ]

    async def get_by_id(self, rule_id: UUID):
        return self._db.get(rules_table(self.kind), rule_id)

    async def get_exceptions_in_range(
        self,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[RecurringException]:
        exceptions = [
            e for e in self._db.rows(exceptions_table(self.kind))
            if e.rule_id == rule_id and date_from <= e.original_date <= date_to
        ]
        return sorted(exceptions, key=lambda e: e.original_date)

    async def get_exceptions_moved_into_range(
        self,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[RecurringException]:
        return sorted(
            (
                e for e in self._db.rows(exceptions_table(self.kind))
                if e.rule_id == rule_id and moved_into_range(e, date_from, date_to)
            ),
            key=lambda e: e.original_date,
        )

    async def get_exception(
        self,
        rule_id: UUID,
        original_date: date,
    ) -> Optional[RecurringException]:
        for exception in self._db.rows(exceptions_table(self.kind)):
            if exception.rule_id == rule_id and exception.original_date == original_date:
                return exception
        return None

    async def add_exception(self, exception: RecurringException) -> None:
        self._db.stage(ADD, exceptions_table(self.kind), exception)

    async def update_exception(self, exception: RecurringException) -> None:
        self._db.stage(UPDATE, exceptions_table(self.kind), exception)

    async def remove_exception(self, exception: RecurringException) -> None:
        self._db.stage(REMOVE, exceptions_table(self.kind), exception)

    async def add(self, rule: Union[RecurringTransaction, RecurringTransfer]) -> None:
        self._db.stage(ADD, rules_table(self.kind), rule)

    async def update(self, rule: Union[RecurringTransaction, RecurringTransfer]) -> None:
        self._db.stage(UPDATE, rules_table(self.kind), rule)


class InMemoryRecurringTransactionStore(_InMemoryRuleStore, RecurringTransactionStore):
    kind = RuleKind.RECURRING_TRANSACTION


class InMemoryRecurringTransferStore(_InMemoryRuleStore, RecurringTransferStore):
    kind = RuleKind.RECURRING_TRANSFER


class InMemoryTransactionStore(TransactionStore):

    def __init__(self, database: InMemoryLedgerDatabase):
        self._db = database

    async def get_by_date_range(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        rows = [
            t for t in self._db.rows(TRANSACTIONS)
            if date_from <= t.date <= date_to
            and (account_id is None or t.account_id == account_id)
        ]
        return sorted(rows, key=lambda t: (t.date, t.created_at))

    async def get_daily_totals(
        self,
        year: int,
        month: int,
        account_id: Optional[UUID] = None,
    ) -> list[DailyTotal]:
        by_date: dict[date, list[Transaction]] = defaultdict(list)
        for txn in self._db.rows(TRANSACTIONS):
            if txn.date.year != year or txn.date.month != month:
                continue
            if account_id is not None and txn.account_id != account_id:
                continue
            by_date[txn.date].append(txn)

        totals = []
        for day in sorted(by_date):
            txns = by_date[day]
            totals.append(DailyTotal(
                date=day,
                total=Money(
                    currency=txns[0].amount.currency,
                    amount=sum((t.amount.amount for t in txns), Decimal("0")),
                ),
                transaction_count=len(txns),
            ))
        return totals

    async def get_by_recurring_instance(
        self,
        rule_id: UUID,
        instance_date: date,
    ) -> Optional[Transaction]:
        for txn in self._db.rows(TRANSACTIONS):
            if (
                txn.recurring_rule_id == rule_id
                and txn.recurring_instance_date == instance_date
                and not txn.is_transfer
            ):
                return txn
        return None

    async def get_by_recurring_transfer_instance(
        self,
        rule_id: UUID,
        instance_date: date,
    ) -> list[Transaction]:
        return [
            txn for txn in self._db.rows(TRANSACTIONS)
            if txn.recurring_rule_id == rule_id
            and txn.recurring_instance_date == instance_date
            and txn.is_transfer
        ]

    async def add(self, transaction: Transaction) -> None:
        self._db.stage(ADD, TRANSACTIONS, transaction)


class InMemoryAccountStore(AccountStore):

    def __init__(self, database: InMemoryLedgerDatabase):
        self._db = database

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        return self._db.get(ACCOUNTS, account_id)

    async def get_all(self) -> list[Account]:
        return sorted(self._db.rows(ACCOUNTS), key=lambda a: a.name)

    async def add(self, account: Account) -> None:
        self._db.stage(ADD, ACCOUNTS, account)


class InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, database: InMemoryLedgerDatabase):
        self._db = database

    async def save_changes(self) -> int:
        return self._db.commit()

    async def rollback(self) -> None:
        self._db.discard()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
