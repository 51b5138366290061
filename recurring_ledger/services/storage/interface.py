"""
Abstract Storage Interface

DESIGN DECISION: The engine talks to storage only through these
interfaces. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the recurrence logic decoupled from storage implementation

Writes are never applied directly. Stores stage them and the
UnitOfWork commits the staged batch atomically, so a transfer's two
legs (or an exception replacement) land together or not at all.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional, Union
from uuid import UUID

from recurring_ledger.errors import (
    ConnectionError,
    DuplicateError,
    StorageError,
)
from recurring_ledger.models.audit import AuditEvent
from recurring_ledger.models.ledger import (
    Account,
    DailyTotal,
    RecurringException,
    RecurringTransaction,
    RecurringTransfer,
    Transaction,
)


def moved_into_range(exception: RecurringException, date_from: date, date_to: date) -> bool:
    """True when a date override places the occurrence in the range from outside it."""
    if exception.is_skipped or exception.modified_date is None:
        return False
    if date_from <= exception.original_date <= date_to:
        return False
    return date_from <= exception.modified_date <= date_to


class RecurringRuleStore(ABC):
    """
    Abstract interface for one kind of recurring rule and its exceptions.

    Reads return committed state only; add/update/remove calls are
    staged until the unit of work commits.
    """

    @abstractmethod
    async def get_active(self) -> list[Union[RecurringTransaction, RecurringTransfer]]:
        """All rules with is_active set."""
        pass

    @abstractmethod
    async def get_by_account_id(
        self,
        account_id: UUID,
    ) -> list[Union[RecurringTransaction, RecurringTransfer]]:
        """
        Rules involving an account, active or not.

        For transfers the account may be either the source or the
        destination.
        """
        pass

    @abstractmethod
    async def get_by_id(
        self,
        rule_id: UUID,
    ) -> Optional[Union[RecurringTransaction, RecurringTransfer]]:
        """
        Retrieve a rule by its ID.

        Returns:
            The rule if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_exceptions_in_range(
        self,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[RecurringException]:
        """
        Exceptions for a rule whose ORIGINAL date lies in [date_from, date_to].
        """
        pass

    @abstractmethod
    async def get_exceptions_moved_into_range(
        self,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[RecurringException]:
        """
        Modified exceptions for a rule whose overridden date lies in
        [date_from, date_to] while the original date lies outside it.
        """
        pass

    @abstractmethod
    async def get_exception(
        self,
        rule_id: UUID,
        original_date: date,
    ) -> Optional[RecurringException]:
        """The exception keyed by (rule_id, original_date), if any."""
        pass

    @abstractmethod
    async def add_exception(self, exception: RecurringException) -> None:
        """
        Stage a new exception.

        Raises:
            DuplicateError: At commit, if one already exists for
                (rule_id, original_date)
        """
        pass

    @abstractmethod
    async def update_exception(self, exception: RecurringException) -> None:
        pass

    @abstractmethod
    async def remove_exception(self, exception: RecurringException) -> None:
        pass

    @abstractmethod
    async def add(self, rule: Union[RecurringTransaction, RecurringTransfer]) -> None:
        pass

    @abstractmethod
    async def update(self, rule: Union[RecurringTransaction, RecurringTransfer]) -> None:
        """Stage a rule change (pause/resume)."""
        pass


class RecurringTransactionStore(RecurringRuleStore):
    """Store for RecurringTransaction rules."""


class RecurringTransferStore(RecurringRuleStore):
    """Store for RecurringTransfer rules."""


class TransactionStore(ABC):
    """
    Abstract interface for ledger transactions.

    Realized transactions are unique per
    (recurring_rule_id, recurring_instance_date, transfer_direction);
    the backend enforces this at commit time.
    """

    @abstractmethod
    async def get_by_date_range(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Transactions posted in [date_from, date_to], ordered by date.

        Args:
            date_from: First posted date (inclusive)
            date_to: Last posted date (inclusive)
            account_id: Restrict to one account

        Returns:
            List of matching transactions
        """
        pass

    @abstractmethod
    async def get_daily_totals(
        self,
        year: int,
        month: int,
        account_id: Optional[UUID] = None,
    ) -> list[DailyTotal]:
        """Per-date sums and counts for one calendar month."""
        pass

    @abstractmethod
    async def get_by_recurring_instance(
        self,
        rule_id: UUID,
        instance_date: date,
    ) -> Optional[Transaction]:
        """The realized transaction for a recurring transaction occurrence."""
        pass

    @abstractmethod
    async def get_by_recurring_transfer_instance(
        self,
        rule_id: UUID,
        instance_date: date,
    ) -> list[Transaction]:
        """The realized legs (zero, one or two) of a recurring transfer occurrence."""
        pass

    @abstractmethod
    async def add(self, transaction: Transaction) -> None:
        pass


class AccountStore(ABC):
    """Abstract interface for account lookups."""

    @abstractmethod
    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        pass

    @abstractmethod
    async def get_all(self) -> list[Account]:
        pass

    @abstractmethod
    async def add(self, account: Account) -> None:
        pass


class UnitOfWork(ABC):
    """
    Atomic commit boundary over all staged store writes.

    Usage:
        async with uow.transaction():
            await transactions.add(source_leg)
            await transactions.add(destination_leg)
    """

    @abstractmethod
    async def save_changes(self) -> int:
        """
        Commit every staged write atomically.

        Returns:
            Number of affected rows

        Raises:
            DuplicateError: A uniqueness constraint was violated; the whole
                batch is discarded
            StorageError: The backend failed; nothing was committed
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every staged write."""
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["UnitOfWork"]:
        """Commit on normal exit, roll back on any exception."""
        try:
            yield self
        except BaseException:
            await self.rollback()
            raise
        await self.save_changes()


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Related events in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'recurring-transfer')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass

