"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is the default; Google Sheets is the persistent one.
Both are swappable behind the same interfaces.
"""

from recurring_ledger.services.storage.interface import (
    AccountStore,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    RecurringRuleStore,
    RecurringTransactionStore,
    RecurringTransferStore,
    StorageError,
    TransactionStore,
    UnitOfWork,
)
from recurring_ledger.services.storage.memory import (
    InMemoryAccountStore,
    InMemoryAuditStorage,
    InMemoryLedgerDatabase,
    InMemoryRecurringTransactionStore,
    InMemoryRecurringTransferStore,
    InMemoryTransactionStore,
    InMemoryUnitOfWork,
)
from recurring_ledger.services.storage.google_sheets import (
    GoogleSheetsAccountStore,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecurringTransactionStore,
    GoogleSheetsRecurringTransferStore,
    GoogleSheetsSession,
    GoogleSheetsTransactionStore,
    GoogleSheetsUnitOfWork,
)

__all__ = [
    # Interfaces
    "AccountStore",
    "AuditStorageInterface",
    "RecurringRuleStore",
    "RecurringTransactionStore",
    "RecurringTransferStore",
    "TransactionStore",
    "UnitOfWork",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStore",
    "InMemoryAuditStorage",
    "InMemoryLedgerDatabase",
    "InMemoryRecurringTransactionStore",
    "InMemoryRecurringTransferStore",
    "InMemoryTransactionStore",
    "InMemoryUnitOfWork",
    # Google Sheets implementation
    "GoogleSheetsAccountStore",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecurringTransactionStore",
    "GoogleSheetsRecurringTransferStore",
    "GoogleSheetsSession",
    "GoogleSheetsTransactionStore",
    "GoogleSheetsUnitOfWork",
]
