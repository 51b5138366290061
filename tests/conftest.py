"""
Shared fixtures.

Every engine under test runs on the in-memory backend with a fixed
"today" of 2026-01-11 and default engine settings.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from recurring_ledger.config import EngineSettings
from recurring_ledger.engine import LedgerEngine
from recurring_ledger.models import (
    Account,
    Money,
    RecurrencePattern,
    RecurringTransaction,
    RecurringTransfer,
    Transaction,
)
from recurring_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerDatabase
from recurring_ledger.services.storage.memory import ACCOUNTS, ADD, TRANSACTIONS, rules_table

TODAY = date(2026, 1, 11)


def usd(amount: str) -> Money:
    return Money(currency="USD", amount=Decimal(amount))


def monthly_rule(
    account_id: UUID,
    amount: str = "-15.99",
    day: int = 5,
    start: date = date(2026, 1, 5),
    description: str = "Streaming subscription",
    **kwargs,
) -> RecurringTransaction:
    return RecurringTransaction(
        account_id=account_id,
        description=description,
        amount=usd(amount),
        pattern=RecurrencePattern.monthly(day_of_month=day),
        start_date=start,
        **kwargs,
    )


def monthly_transfer(
    source_id: UUID,
    destination_id: UUID,
    amount: str = "200.00",
    day: int = 5,
    start: date = date(2026, 1, 5),
    description: str = "Savings",
    **kwargs,
) -> RecurringTransfer:
    return RecurringTransfer(
        source_account_id=source_id,
        destination_account_id=destination_id,
        description=description,
        amount=usd(amount),
        pattern=RecurrencePattern.monthly(day_of_month=day),
        start_date=start,
        **kwargs,
    )


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        past_due_lookback_days=30,
        default_currency="USD",
        calendar_week_start=6,
        auto_realize_past_due=False,
    )


@pytest.fixture
def database() -> InMemoryLedgerDatabase:
    return InMemoryLedgerDatabase()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def engine(database, settings, audit_storage) -> LedgerEngine:
    return LedgerEngine.in_memory(
        today_provider=lambda: TODAY,
        settings=settings,
        audit_storage=audit_storage,
        database=database,
    )


@pytest.fixture
def seed(database):
    """Commit entities straight into the in-memory database."""

    def _seed(*entities):
        for entity in entities:
            if isinstance(entity, Account):
                table = ACCOUNTS
            elif isinstance(entity, Transaction):
                table = TRANSACTIONS
            else:
                table = rules_table(entity.kind)
            database.stage(ADD, table, entity)
        database.commit()
        return entities[0] if len(entities) == 1 else entities

    return _seed


@pytest.fixture
def checking(seed) -> Account:
    return seed(Account(
        name="Checking",
        initial_balance=usd("1000.00"),
        initial_balance_date=date(2025, 12, 1),
    ))


@pytest.fixture
def savings(seed) -> Account:
    return seed(Account(
        name="Savings",
        initial_balance=usd("500.00"),
        initial_balance_date=date(2025, 12, 1),
    ))
