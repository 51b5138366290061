"""Services package."""

from recurring_ledger.services.storage import (
    AccountStore,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryLedgerDatabase,
    RecurringTransactionStore,
    RecurringTransferStore,
    StorageError,
    TransactionStore,
    UnitOfWork,
)

__all__ = [
    # Storage services
    "AccountStore",
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryLedgerDatabase",
    "RecurringTransactionStore",
    "RecurringTransferStore",
    "StorageError",
    "TransactionStore",
    "UnitOfWork",
]
