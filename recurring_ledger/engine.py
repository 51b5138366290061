"""
Ledger Engine

Ties all services together over one set of stores and exposes the
engine's operations:

1. Realization (single occurrence, batch, auto-realize)
2. Instance management (list, skip, modify)
3. Past-due detection
4. Projection (calendar grid, day detail, account transaction list)

DESIGN DECISION: The engine is a composition root, not a service. It
holds no logic of its own beyond choosing which variant service an
operation routes to. Every store, the unit of work, the audit logger
and the today-provider are created once and shared, so all services
see the same staged writes and the same notion of "today".
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from recurring_ledger.audit import AuditLogger, configure_logging
from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.errors import StorageError
from recurring_ledger.models.ledger import (
    Account,
    Money,
    RecurringException,
    RuleKind,
    TodayProvider,
    Transaction,
    utc_today,
)
from recurring_ledger.models.views import (
    AutoRealizeResult,
    BatchRealizeItem,
    BatchRealizeResult,
    CalendarGrid,
    DayDetail,
    InstanceView,
    PastDueSummary,
    TransactionList,
    TransferSummary,
)
from recurring_ledger.past_due import PastDueDetector
from recurring_ledger.projection import (
    BalanceCalculationService,
    CalendarGridService,
    DayDetailService,
    OccurrenceProjector,
    TransactionListService,
)
from recurring_ledger.realization import (
    AutoRealizeService,
    BatchRealizationService,
    RecurringInstanceService,
    RecurringTransactionRealizationService,
    RecurringTransferRealizationService,
)
from recurring_ledger.recurrence import (
    RealizationRequest,
    RecurringTransactionHandler,
    RecurringTransferHandler,
)
from recurring_ledger.services.storage import (
    AccountStore,
    AuditStorageInterface,
    GoogleSheetsAccountStore,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecurringTransactionStore,
    GoogleSheetsRecurringTransferStore,
    GoogleSheetsSession,
    GoogleSheetsTransactionStore,
    GoogleSheetsUnitOfWork,
    InMemoryAccountStore,
    InMemoryAuditStorage,
    InMemoryLedgerDatabase,
    InMemoryRecurringTransactionStore,
    InMemoryRecurringTransferStore,
    InMemoryTransactionStore,
    InMemoryUnitOfWork,
    RecurringTransactionStore,
    RecurringTransferStore,
    TransactionStore,
    UnitOfWork,
)

logger = structlog.get_logger(__name__)


class LedgerEngine:
    """Recurrence and realization engine over a single storage backend."""

    def __init__(
        self,
        recurring_transactions: RecurringTransactionStore,
        recurring_transfers: RecurringTransferStore,
        transactions: TransactionStore,
        accounts: AccountStore,
        unit_of_work: UnitOfWork,
        audit_logger: Optional[AuditLogger] = None,
        today_provider: Optional[TodayProvider] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        today_provider = today_provider or utc_today

        self.recurring_transactions = recurring_transactions
        self.recurring_transfers = recurring_transfers
        self.transactions = transactions
        self.accounts = accounts
        self.unit_of_work = unit_of_work
        self.audit_logger = audit_logger
        self.settings = settings
        self.today_provider = today_provider

        transaction_handler = RecurringTransactionHandler(recurring_transactions, transactions)
        transfer_handler = RecurringTransferHandler(recurring_transfers, transactions)

        self.transaction_realization = RecurringTransactionRealizationService(
            transaction_handler, transactions, unit_of_work, audit_logger
        )
        self.transfer_realization = RecurringTransferRealizationService(
            transfer_handler, accounts, transactions, unit_of_work, audit_logger
        )
        self.instances = {
            RuleKind.RECURRING_TRANSACTION: RecurringInstanceService(
                transaction_handler, unit_of_work, audit_logger
            ),
            RuleKind.RECURRING_TRANSFER: RecurringInstanceService(
                transfer_handler, unit_of_work, audit_logger
            ),
        }
        self.batch = BatchRealizationService(self.transaction_realization, self.transfer_realization)

        self.past_due = PastDueDetector(
            transaction_handler,
            transfer_handler,
            accounts,
            today_provider=today_provider,
            audit_logger=audit_logger,
            settings=settings,
        )
        self.auto_realize = AutoRealizeService(
            self.past_due,
            self.batch,
            today_provider=today_provider,
            audit_logger=audit_logger,
            settings=settings,
        )

        self.projector = OccurrenceProjector(transaction_handler, transfer_handler, accounts)
        self.balances = BalanceCalculationService(accounts, transactions, settings=settings)
        self.calendar = CalendarGridService(
            transactions,
            self.projector,
            self.balances,
            auto_realize=self.auto_realize,
            today_provider=today_provider,
            settings=settings,
        )
        self.day_detail = DayDetailService(transactions, self.projector, settings=settings)
        self.transaction_list = TransactionListService(
            accounts,
            transactions,
            self.projector,
            self.balances,
            today_provider=today_provider,
        )

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def in_memory(
        cls,
        today_provider: Optional[TodayProvider] = None,
        settings: Optional[EngineSettings] = None,
        audit_storage: Optional[AuditStorageInterface] = None,
        database: Optional[InMemoryLedgerDatabase] = None,
    ) -> "LedgerEngine":
        """Engine over a fresh (or supplied) in-memory database."""
        database = database or InMemoryLedgerDatabase()
        return cls(
            recurring_transactions=InMemoryRecurringTransactionStore(database),
            recurring_transfers=InMemoryRecurringTransferStore(database),
            transactions=InMemoryTransactionStore(database),
            accounts=InMemoryAccountStore(database),
            unit_of_work=InMemoryUnitOfWork(database),
            audit_logger=AuditLogger(audit_storage or InMemoryAuditStorage()),
            today_provider=today_provider,
            settings=settings,
        )

    @classmethod
    def google_sheets(
        cls,
        client: Optional[GoogleSheetsClient] = None,
        today_provider: Optional[TodayProvider] = None,
        settings: Optional[EngineSettings] = None,
    ) -> "LedgerEngine":
        """Engine persisting to the configured Google Sheets spreadsheet."""
        client = client or GoogleSheetsClient()
        session = GoogleSheetsSession(client)
        return cls(
            recurring_transactions=GoogleSheetsRecurringTransactionStore(session),
            recurring_transfers=GoogleSheetsRecurringTransferStore(session),
            transactions=GoogleSheetsTransactionStore(session),
            accounts=GoogleSheetsAccountStore(session),
            unit_of_work=GoogleSheetsUnitOfWork(session),
            audit_logger=AuditLogger(GoogleSheetsAuditStorage(client)),
            today_provider=today_provider,
            settings=settings,
        )

    # =========================================================================
    # SETUP
    # =========================================================================

    async def add_account(self, account: Account) -> Account:
        async with self.unit_of_work.transaction():
            await self.accounts.add(account)
        return account

    async def add_rule(self, rule):
        """Persist a new recurring transaction or transfer."""
        async with self.unit_of_work.transaction():
            await self._rule_store(rule.kind).add(rule)
        return rule

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """Record a plain (non-recurring) ledger transaction."""
        async with self.unit_of_work.transaction():
            await self.transactions.add(transaction)
        return transaction

    async def pause_rule(self, kind: RuleKind, rule_id: UUID):
        return await self._set_active(kind, rule_id, active=False)

    async def resume_rule(self, kind: RuleKind, rule_id: UUID):
        return await self._set_active(kind, rule_id, active=True)

    async def _set_active(self, kind: RuleKind, rule_id: UUID, active: bool):
        service = self.instances[kind]
        rule = await service.get_rule(rule_id)
        if active:
            rule.resume()
        else:
            rule.pause()
        async with self.unit_of_work.transaction():
            await self._rule_store(kind).update(rule)
        return rule

    def _rule_store(self, kind: RuleKind):
        if kind == RuleKind.RECURRING_TRANSFER:
            return self.recurring_transfers
        return self.recurring_transactions

    # =========================================================================
    # REALIZATION
    # =========================================================================

    async def realize_transaction(
        self,
        rule_id: UUID,
        instance_date: date,
        request: Optional[RealizationRequest] = None,
    ) -> Transaction:
        return await self.transaction_realization.realize_instance(rule_id, instance_date, request)

    async def realize_transfer(
        self,
        rule_id: UUID,
        instance_date: date,
        request: Optional[RealizationRequest] = None,
    ) -> TransferSummary:
        return await self.transfer_realization.realize_instance(rule_id, instance_date, request)

    async def realize_batch(self, items: list[BatchRealizeItem]) -> BatchRealizeResult:
        return await self.batch.realize_batch(items)

    async def auto_realize_past_due(self, account_id: Optional[UUID] = None) -> AutoRealizeResult:
        """Realize every past-due occurrence regardless of the setting."""
        return await self.auto_realize.auto_realize(account_id)

    # =========================================================================
    # INSTANCES
    # =========================================================================

    async def get_instances(
        self,
        kind: RuleKind,
        rule_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[InstanceView]:
        return await self.instances[kind].get_instances(rule_id, date_from, date_to)

    async def skip_instance(self, kind: RuleKind, rule_id: UUID, instance_date: date) -> RecurringException:
        return await self.instances[kind].skip_instance(rule_id, instance_date)

    async def modify_instance(
        self,
        kind: RuleKind,
        rule_id: UUID,
        instance_date: date,
        amount: Optional[Money] = None,
        description: Optional[str] = None,
        modified_date: Optional[date] = None,
    ) -> InstanceView:
        return await self.instances[kind].modify_instance(
            rule_id,
            instance_date,
            amount=amount,
            description=description,
            modified_date=modified_date,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_past_due_items(self, account_id: Optional[UUID] = None) -> PastDueSummary:
        return await self.past_due.get_past_due_items(account_id)

    async def get_calendar_grid(self, year: int, month: int, account_id: Optional[UUID] = None) -> CalendarGrid:
        return await self.calendar.get_calendar_grid(year, month, account_id)

    async def get_day_detail(self, on: date, account_id: Optional[UUID] = None) -> DayDetail:
        return await self.day_detail.get_day_detail(on, account_id)

    async def get_account_transaction_list(
        self,
        account_id: UUID,
        start_date: date,
        end_date: date,
        include_recurring: bool = True,
    ) -> TransactionList:
        return await self.transaction_list.get_account_transaction_list(
            account_id, start_date, end_date, include_recurring
        )


def create_engine(use_storage: bool = True) -> LedgerEngine:
    """
    Factory for the application engine.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Falls back to in-memory storage when Sheets is not
                    configured or unreachable.
    """
    configure_logging()
    if use_storage:
        try:
            client = GoogleSheetsClient()
            client.get_spreadsheet()
            return LedgerEngine.google_sheets(client)
        except (StorageError, ValidationError) as e:
            logger.warning("storage_not_configured", error=str(e), fallback="in_memory")
    return LedgerEngine.in_memory()
