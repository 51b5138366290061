"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No native transactions. Staged writes are grouped per worksheet and
  appended with a single append_rows call, so both legs of a transfer
  land in one API request.
- Uniqueness is not enforced by Sheets. Idempotency keys are re-read
  and checked immediately before every write.
- Limited query capabilities (we filter in Python)
"""

import json
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recurring_ledger.config import GoogleSheetsSettings, get_settings
from recurring_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from recurring_ledger.models.ledger import (
    Account,
    DailyTotal,
    ExceptionType,
    Money,
    RecurrencePattern,
    RecurringException,
    RecurringTransaction,
    RecurringTransfer,
    RuleKind,
    Transaction,
    TransferDirection,
)
from recurring_ledger.services.storage.interface import (
    AccountStore,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    RecurringTransactionStore,
    RecurringTransferStore,
    StorageError,
    TransactionStore,
    UnitOfWork,
    moved_into_range,
)

logger = structlog.get_logger(__name__)


# Column mappings, one list per worksheet
ACCOUNT_COLUMNS = [
    "id",
    "name",
    "currency",
    "initial_balance",
    "initial_balance_date",
    "created_at",
]

RECURRING_TRANSACTION_COLUMNS = [
    "id",
    "account_id",
    "description",
    "currency",
    "amount",
    "interval",
    "day_of_month",
    "start_date",
    "end_date",
    "category_id",
    "is_active",
    "created_at",
    "updated_at",
]

RECURRING_TRANSFER_COLUMNS = [
    "id",
    "source_account_id",
    "destination_account_id",
    "description",
    "currency",
    "amount",
    "interval",
    "day_of_month",
    "start_date",
    "end_date",
    "is_active",
    "created_at",
    "updated_at",
]

EXCEPTION_COLUMNS = [
    "id",
    "rule_kind",
    "rule_id",
    "original_date",
    "exception_type",
    "modified_currency",
    "modified_amount",
    "modified_description",
    "modified_date",
    "created_at",
    "updated_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "account_id",
    "date",
    "currency",
    "amount",
    "description",
    "category_id",
    "recurring_rule_id",
    "recurring_instance_date",
    "transfer_id",
    "transfer_direction",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Logical table names used by the staging session
ACCOUNTS = "accounts"
RECURRING_TRANSACTIONS = "recurring_transactions"
RECURRING_TRANSFERS = "recurring_transfers"
EXCEPTIONS = "exceptions"
TRANSACTIONS = "transactions"

TABLE_COLUMNS = {
    ACCOUNTS: ACCOUNT_COLUMNS,
    RECURRING_TRANSACTIONS: RECURRING_TRANSACTION_COLUMNS,
    RECURRING_TRANSFERS: RECURRING_TRANSFER_COLUMNS,
    EXCEPTIONS: EXCEPTION_COLUMNS,
    TRANSACTIONS: TRANSACTION_COLUMNS,
}

sheets_retry = retry(
    retry=retry_if_not_exception_type(DuplicateError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    A pre-opened spreadsheet may be injected (used by tests).
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        titles = {
            ACCOUNTS: self._settings.accounts_sheet_name,
            RECURRING_TRANSACTIONS: self._settings.recurring_transactions_sheet_name,
            RECURRING_TRANSFERS: self._settings.recurring_transfers_sheet_name,
            EXCEPTIONS: self._settings.exceptions_sheet_name,
            TRANSACTIONS: self._settings.transactions_sheet_name,
        }
        return self.get_worksheet(titles[table], TABLE_COLUMNS[table])

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def read_rows(self, table: str) -> list[tuple[int, list]]:
        """Data rows with their 1-based sheet row numbers (header excluded)."""
        sheet = self.get_table_sheet(table)
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and row[0]
        ]


# =============================================================================
# ROW MAPPERS
# =============================================================================

def _cell(row: list, index: int) -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] or ""
    except IndexError:
        return ""


def _opt_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _opt_uuid(value: str) -> Optional[UUID]:
    return UUID(value) if value else None


def _iso(value) -> str:
    return value.isoformat() if value is not None else ""


def account_to_row(account: Account) -> list:
    return [
        str(account.id),
        account.name,
        account.initial_balance.currency,
        str(account.initial_balance.amount),
        account.initial_balance_date.isoformat(),
        account.created_at.isoformat(),
    ]


def row_to_account(row: list) -> Account:
    return Account(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        initial_balance=Money(currency=_cell(row, 2), amount=Decimal(_cell(row, 3))),
        initial_balance_date=date.fromisoformat(_cell(row, 4)),
        created_at=datetime.fromisoformat(_cell(row, 5)),
    )


def recurring_transaction_to_row(rule: RecurringTransaction) -> list:
    return [
        str(rule.id),
        str(rule.account_id),
        rule.description,
        rule.amount.currency,
        str(rule.amount.amount),
        str(rule.pattern.interval),
        str(rule.pattern.day_of_month),
        rule.start_date.isoformat(),
        _iso(rule.end_date),
        str(rule.category_id) if rule.category_id else "",
        str(rule.is_active),
        rule.created_at.isoformat(),
        rule.updated_at.isoformat(),
    ]


def row_to_recurring_transaction(row: list) -> RecurringTransaction:
    return RecurringTransaction(
        id=UUID(_cell(row, 0)),
        account_id=UUID(_cell(row, 1)),
        description=_cell(row, 2),
        amount=Money(currency=_cell(row, 3), amount=Decimal(_cell(row, 4))),
        pattern=RecurrencePattern.monthly(
            interval=int(_cell(row, 5)),
            day_of_month=int(_cell(row, 6)),
        ),
        start_date=date.fromisoformat(_cell(row, 7)),
        end_date=_opt_date(_cell(row, 8)),
        category_id=_opt_uuid(_cell(row, 9)),
        is_active=_cell(row, 10).lower() == "true",
        created_at=datetime.fromisoformat(_cell(row, 11)),
        updated_at=datetime.fromisoformat(_cell(row, 12)),
    )


def recurring_transfer_to_row(rule: RecurringTransfer) -> list:
    return [
        str(rule.id),
        str(rule.source_account_id),
        str(rule.destination_account_id),
        rule.description,
        rule.amount.currency,
        str(rule.amount.amount),
        str(rule.pattern.interval),
        str(rule.pattern.day_of_month),
        rule.start_date.isoformat(),
        _iso(rule.end_date),
        str(rule.is_active),
        rule.created_at.isoformat(),
        rule.updated_at.isoformat(),
    ]


def row_to_recurring_transfer(row: list) -> RecurringTransfer:
    return RecurringTransfer(
        id=UUID(_cell(row, 0)),
        source_account_id=UUID(_cell(row, 1)),
        destination_account_id=UUID(_cell(row, 2)),
        description=_cell(row, 3),
        amount=Money(currency=_cell(row, 4), amount=Decimal(_cell(row, 5))),
        pattern=RecurrencePattern.monthly(
            interval=int(_cell(row, 6)),
            day_of_month=int(_cell(row, 7)),
        ),
        start_date=date.fromisoformat(_cell(row, 8)),
        end_date=_opt_date(_cell(row, 9)),
        is_active=_cell(row, 10).lower() == "true",
        created_at=datetime.fromisoformat(_cell(row, 11)),
        updated_at=datetime.fromisoformat(_cell(row, 12)),
    )


def exception_to_row(kind: RuleKind, exception: RecurringException) -> list:
    amount = exception.modified_amount
    return [
        str(exception.id),
        kind.value,
        str(exception.rule_id),
        exception.original_date.isoformat(),
        exception.exception_type.value,
        amount.currency if amount else "",
        str(amount.amount) if amount else "",
        exception.modified_description or "",
        _iso(exception.modified_date),
        exception.created_at.isoformat(),
        exception.updated_at.isoformat(),
    ]


def row_to_exception(row: list) -> RecurringException:
    amount = None
    if _cell(row, 6):
        amount = Money(currency=_cell(row, 5), amount=Decimal(_cell(row, 6)))
    return RecurringException(
        id=UUID(_cell(row, 0)),
        rule_id=UUID(_cell(row, 2)),
        original_date=date.fromisoformat(_cell(row, 3)),
        exception_type=ExceptionType(_cell(row, 4)),
        modified_amount=amount,
        modified_description=_cell(row, 7) or None,
        modified_date=_opt_date(_cell(row, 8)),
        created_at=datetime.fromisoformat(_cell(row, 9)),
        updated_at=datetime.fromisoformat(_cell(row, 10)),
    )


def transaction_to_row(txn: Transaction) -> list:
    return [
        str(txn.id),
        str(txn.account_id),
        txn.date.isoformat(),
        txn.amount.currency,
        str(txn.amount.amount),
        txn.description,
        str(txn.category_id) if txn.category_id else "",
        str(txn.recurring_rule_id) if txn.recurring_rule_id else "",
        _iso(txn.recurring_instance_date),
        str(txn.transfer_id) if txn.transfer_id else "",
        txn.transfer_direction.value if txn.transfer_direction else "",
        txn.created_at.isoformat(),
        txn.updated_at.isoformat(),
    ]


def row_to_transaction(row: list) -> Transaction:
    direction = _cell(row, 10)
    return Transaction(
        id=UUID(_cell(row, 0)),
        account_id=UUID(_cell(row, 1)),
        date=date.fromisoformat(_cell(row, 2)),
        amount=Money(currency=_cell(row, 3), amount=Decimal(_cell(row, 4))),
        description=_cell(row, 5),
        category_id=_opt_uuid(_cell(row, 6)),
        recurring_rule_id=_opt_uuid(_cell(row, 7)),
        recurring_instance_date=_opt_date(_cell(row, 8)),
        transfer_id=_opt_uuid(_cell(row, 9)),
        transfer_direction=TransferDirection(direction) if direction else None,
        created_at=datetime.fromisoformat(_cell(row, 11)),
        updated_at=datetime.fromisoformat(_cell(row, 12)),
    )


def _transaction_key_from_row(row: list) -> Optional[tuple]:
    """Idempotency key read straight from sheet cells."""
    rule_id = _cell(row, 7)
    if not rule_id:
        return None
    direction = _cell(row, 10)
    return (
        UUID(rule_id),
        date.fromisoformat(_cell(row, 8)),
        TransferDirection(direction) if direction else None,
    )


def _exception_key_from_row(row: list) -> tuple:
    return (_cell(row, 1), UUID(_cell(row, 2)), date.fromisoformat(_cell(row, 3)))


# =============================================================================
# STAGING SESSION AND UNIT OF WORK
# =============================================================================

class GoogleSheetsSession:
    """Writes staged by the stores until the unit of work commits."""

    def __init__(self, client: GoogleSheetsClient):
        self.client = client
        # (verb, table, entity id, row, uniqueness key)
        self.pending: list[tuple[str, str, UUID, list, Optional[tuple]]] = []

    def stage(self, verb: str, table: str, entity_id: UUID, row: list, key: Optional[tuple] = None) -> None:
        self.pending.append((verb, table, entity_id, row, key))

    def discard(self) -> None:
        self.pending.clear()


class GoogleSheetsUnitOfWork(UnitOfWork):
    """
    Commits a staged batch: removals, then updates, then one append_rows
    call per worksheet. Uniqueness is checked against the live sheet
    before anything is written.

    The batch is retried as a whole. Rows already on the sheet under a
    staged row id were written by an earlier attempt whose response was
    lost; they are not appended again and do not count as duplicates.
    """

    def __init__(self, session: GoogleSheetsSession):
        self._session = session

    async def save_changes(self) -> int:
        batch, self._session.pending = self._session.pending, []
        if not batch:
            return 0
        try:
            return self._write_batch(batch)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to commit changes: {e}") from e

    async def rollback(self) -> None:
        self._session.discard()

    @sheets_retry
    def _write_batch(self, batch: list) -> int:
        client = self._session.client
        by_table: dict[str, list] = defaultdict(list)
        for entry in batch:
            by_table[entry[1]].append(entry)

        for table, entries in by_table.items():
            written = {row[0] for _, row in client.read_rows(table)}
            by_table[table] = [
                e for e in entries if not (e[0] == "add" and str(e[2]) in written)
            ]

        self._check_unique(by_table)

        for table, entries in by_table.items():
            sheet = client.get_table_sheet(table)
            row_numbers = {UUID(row[0]): idx for idx, row in client.read_rows(table)}

            removals = sorted(
                (row_numbers[e[2]] for e in entries if e[0] == "remove" and e[2] in row_numbers),
                reverse=True,
            )
            for idx in removals:
                sheet.delete_rows(idx)
            if removals:
                row_numbers = {UUID(row[0]): idx for idx, row in client.read_rows(table)}

            appends = []
            for verb, _, entity_id, row, _ in entries:
                if verb == "update" and entity_id in row_numbers:
                    sheet.update(range_name=f"A{row_numbers[entity_id]}", values=[row])
                elif verb in ("add", "update"):
                    appends.append(row)
            if appends:
                sheet.append_rows(appends, value_input_option="RAW")

        return len(batch)

    def _check_unique(self, by_table: dict[str, list]) -> None:
        client = self._session.client

        if TRANSACTIONS in by_table:
            existing = {
                _transaction_key_from_row(row)
                for _, row in client.read_rows(TRANSACTIONS)
            }
            existing.discard(None)
            for verb, _, _, _, key in by_table[TRANSACTIONS]:
                if verb != "add" or key is None:
                    continue
                if key in existing:
                    raise DuplicateError(
                        f"Realized transaction already exists for rule {key[0]} on {key[1]}"
                    )
                existing.add(key)

        if EXCEPTIONS in by_table:
            entries = by_table[EXCEPTIONS]
            removed = {e[2] for e in entries if e[0] == "remove"}
            existing = {
                _exception_key_from_row(row)
                for _, row in client.read_rows(EXCEPTIONS)
                if UUID(row[0]) not in removed
            }
            for verb, _, _, _, key in entries:
                if verb != "add":
                    continue
                if key in existing:
                    raise DuplicateError(
                        f"Exception already exists for rule {key[1]} on {key[2]}"
                    )
                existing.add(key)


# =============================================================================
# STORES
# =============================================================================

class _SheetsReader:
    """Row parsing shared by the stores; malformed rows are logged and skipped."""

    def __init__(self, session: GoogleSheetsSession):
        self._session = session

    @property
    def _client(self) -> GoogleSheetsClient:
        return self._session.client

    def _load(self, table: str, mapper, where=None) -> list:
        try:
            rows = self._client.read_rows(table)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {table}: {e}") from e

        entities = []
        for idx, row in rows:
            if where is not None and not where(row):
                continue
            try:
                entities.append(mapper(row))
            except (ValueError, IndexError) as e:
                logger.warning("sheets_row_skipped", table=table, row=idx, error=str(e))
        return entities


class _GoogleSheetsRuleStore(_SheetsReader):

    kind: RuleKind
    table: str

    def _to_row(self, rule) -> list:
        raise NotImplementedError

    def _from_row(self, row: list):
        raise NotImplementedError

    def _rules(self) -> list:
        return self._load(self.table, self._from_row)

    def _exceptions(self) -> list[RecurringException]:
        return self._load(
            EXCEPTIONS,
            row_to_exception,
            where=lambda row: _cell(row, 1) == self.kind.value,
        )

    async def get_active(self) -> list:
        return [r for r in self._rules() if r.is_active]

    async def get_by_account_id(self, account_id: UUID) -> list:
        return [r for r in self._rules() if r.involves_account(account_id)]

    async def get_by_id(self, rule_id: UUID):
        for rule in self._rules():
            if rule.id == rule_id:
                return rule
        return None

    async def get_exceptions_in_range(self, rule_id: UUID, date_from: date, date_to: date) -> list[RecurringException]:
        exceptions = [
            e for e in self._exceptions()
            if e.rule_id == rule_id and date_from <= e.original_date <= date_to
        ]
        return sorted(exceptions, key=lambda e: e.original_date)

    async def get_exceptions_moved_into_range(self, rule_id: UUID, date_from: date, date_to: date) -> list[RecurringException]:
        exceptions = [
            e for e in self._exceptions()
            if e.rule_id == rule_id and moved_into_range(e, date_from, date_to)
        ]
        return sorted(exceptions, key=lambda e: e.original_date)

    async def get_exception(self, rule_id: UUID, original_date: date) -> Optional[RecurringException]:
        for exception in self._exceptions():
            if exception.rule_id == rule_id and exception.original_date == original_date:
                return exception
        return None

    def _stage_exception(self, verb: str, exception: RecurringException) -> None:
        self._session.stage(
            verb,
            EXCEPTIONS,
            exception.id,
            exception_to_row(self.kind, exception),
            (self.kind.value, exception.rule_id, exception.original_date),
        )

    async def add_exception(self, exception: RecurringException) -> None:
        self._stage_exception("add", exception)

    async def update_exception(self, exception: RecurringException) -> None:
        self._stage_exception("update", exception)

    async def remove_exception(self, exception: RecurringException) -> None:
        self._stage_exception("remove", exception)

    async def add(self, rule) -> None:
        self._session.stage("add", self.table, rule.id, self._to_row(rule))

    async def update(self, rule) -> None:
        self._session.stage("update", self.table, rule.id, self._to_row(rule))


class GoogleSheetsRecurringTransactionStore(_GoogleSheetsRuleStore, RecurringTransactionStore):
    kind = RuleKind.RECURRING_TRANSACTION
    table = RECURRING_TRANSACTIONS

    def _to_row(self, rule) -> list:
        return recurring_transaction_to_row(rule)

    def _from_row(self, row: list):
        return row_to_recurring_transaction(row)


class GoogleSheetsRecurringTransferStore(_GoogleSheetsRuleStore, RecurringTransferStore):
    kind = RuleKind.RECURRING_TRANSFER
    table = RECURRING_TRANSFERS

    def _to_row(self, rule) -> list:
        return recurring_transfer_to_row(rule)

    def _from_row(self, row: list):
        return row_to_recurring_transfer(row)


class GoogleSheetsTransactionStore(_SheetsReader, TransactionStore):

    def _transactions(self) -> list[Transaction]:
        return self._load(TRANSACTIONS, row_to_transaction)

    async def get_by_date_range(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        rows = [
            t for t in self._transactions()
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
        for txn in self._transactions():
            if (txn.date.year, txn.date.month) != (year, month):
                continue
            if account_id is None or txn.account_id == account_id:
                by_date[txn.date].append(txn)

        return [
            DailyTotal(
                date=day,
                total=Money(
                    currency=by_date[day][0].amount.currency,
                    amount=sum((t.amount.amount for t in by_date[day]), Decimal("0")),
                ),
                transaction_count=len(by_date[day]),
            )
            for day in sorted(by_date)
        ]

    async def get_by_recurring_instance(self, rule_id: UUID, instance_date: date) -> Optional[Transaction]:
        for txn in self._transactions():
            if (
                txn.recurring_rule_id == rule_id
                and txn.recurring_instance_date == instance_date
                and not txn.is_transfer
            ):
                return txn
        return None

    async def get_by_recurring_transfer_instance(self, rule_id: UUID, instance_date: date) -> list[Transaction]:
        return [
            txn for txn in self._transactions()
            if txn.recurring_rule_id == rule_id
            and txn.recurring_instance_date == instance_date
            and txn.is_transfer
        ]

    async def add(self, transaction: Transaction) -> None:
        self._session.stage(
            "add",
            TRANSACTIONS,
            transaction.id,
            transaction_to_row(transaction),
            transaction.idempotency_key,
        )


class GoogleSheetsAccountStore(_SheetsReader, AccountStore):

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        for account in self._load(ACCOUNTS, row_to_account):
            if account.id == account_id:
                return account
        return None

    async def get_all(self) -> list[Account]:
        return sorted(self._load(ACCOUNTS, row_to_account), key=lambda a: a.name)

    async def add(self, account: Account) -> None:
        self._session.stage("add", ACCOUNTS, account.id, account_to_row(account))


# =============================================================================
# AUDIT
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_opt_uuid(_cell(row, 5)),
            correlation_id=_opt_uuid(_cell(row, 6)),
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    def _events(self, predicate) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, IndexError) as e:
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
        return events

    @sheets_retry
    def _append(self, event: AuditEvent) -> None:
        self._client.get_audit_sheet().append_row(
            event.to_sheets_row(), value_input_option="RAW"
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; failures are logged, never raised."""
        try:
            self._append(event)
            return True
        except Exception as e:
            logger.error("audit_event_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = self._events(lambda row: _cell(row, 6) == str(correlation_id))
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = self._events(
            lambda row: _cell(row, 4) == entity_type and _cell(row, 5) == str(entity_id)
        )
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._events(lambda row: True)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
