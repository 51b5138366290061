"""
Past-Due Detection

Finds occurrences that are due but have been neither realized nor
skipped, within a bounded lookback window ending yesterday:

    [today - lookback_days, today - 1]

An occurrence dated exactly today is not past due yet.

DESIGN DECISION: "today" comes from an injectable provider rather than
the system clock so scans are deterministic under test. Account names
are display-only; a failing lookup is logged and the item is still
reported with no name.
"""

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

import structlog

from recurring_ledger.audit import AuditLogger
from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.errors import StorageError
from recurring_ledger.models.ledger import TodayProvider, utc_today
from recurring_ledger.models.views import PastDueItem, PastDueSummary, sum_amounts
from recurring_ledger.recurrence.handlers import (
    AccountNames,
    RecurringTransactionHandler,
    RecurringTransferHandler,
    RuleHandler,
)
from recurring_ledger.services.storage import AccountStore

logger = structlog.get_logger(__name__)


class PastDueDetector:
    """Scans recurring transactions and transfers for unrealized past occurrences."""

    def __init__(
        self,
        transaction_handler: RecurringTransactionHandler,
        transfer_handler: RecurringTransferHandler,
        accounts: AccountStore,
        today_provider: Optional[TodayProvider] = None,
        lookback_days: Optional[int] = None,
        default_currency: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        self._handlers: list[RuleHandler] = [transaction_handler, transfer_handler]
        self._accounts = accounts
        self._today = today_provider or utc_today
        self._lookback_days = lookback_days or settings.past_due_lookback_days
        self._currency = default_currency or settings.default_currency
        self._audit_logger = audit_logger
        self._logger = logger.bind(component="past_due_detector")

    @property
    def lookback_days(self) -> int:
        return self._lookback_days

    def window(self, today: date) -> tuple[date, date]:
        """Inclusive scan window for a reference date."""
        return today - timedelta(days=self._lookback_days), today - timedelta(days=1)

    async def get_past_due_items(
        self,
        account_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PastDueSummary:
        """
        List past-due occurrences, earliest first.

        Args:
            account_id: Only rules touching this account (either side of
                a transfer)

        Returns:
            PastDueSummary with total count, oldest date and signed total
            amount (None when there are no items)

        Raises:
            StorageError: Rule or transaction store failure
        """
        today = self._today()
        window_start, window_end = self.window(today)
        names: AccountNames = {}

        items: list[PastDueItem] = []
        for handler in self._handlers:
            items.extend(
                await self._scan(handler, today, window_start, window_end, account_id, names, correlation_id)
            )

        items.sort(key=lambda item: item.instance_date)
        summary = PastDueSummary(
            items=items,
            total_count=len(items),
            oldest_date=items[0].instance_date if items else None,
            total_amount=(
                sum_amounts((item.amount.amount for item in items), self._currency)
                if items else None
            ),
        )

        self._logger.info(
            "past_due_scanned",
            today=today.isoformat(),
            item_count=summary.total_count,
            account_id=str(account_id) if account_id else None,
        )
        if self._audit_logger:
            await self._audit_logger.log_past_due_scanned(
                today=today,
                item_count=summary.total_count,
                account_id=account_id,
                correlation_id=correlation_id,
            )
        return summary

    async def _scan(
        self,
        handler: RuleHandler,
        today: date,
        window_start: date,
        window_end: date,
        account_id: Optional[UUID],
        names: AccountNames,
        correlation_id: Optional[UUID],
    ) -> list[PastDueItem]:
        if account_id is not None:
            rules = await handler.rules.get_by_account_id(account_id)
        else:
            rules = await handler.rules.get_active()

        items = []
        for rule in rules:
            occurrences = list(rule.occurrences_between(window_start, window_end))
            if not occurrences:
                continue

            exceptions = await handler.rules.get_exceptions_in_range(rule.id, window_start, window_end)
            by_date = {e.original_date: e for e in exceptions}

            for occurrence in occurrences:
                resolved = handler.resolve(rule, occurrence, by_date.get(occurrence))
                if resolved.is_skipped:
                    continue
                if await handler.is_realized(rule.id, occurrence):
                    continue
                for needed in handler.account_ids(rule):
                    await self._resolve_name(needed, names, correlation_id)
                items.append(handler.past_due_item(rule, resolved, today, names))
        return items

    async def _resolve_name(
        self,
        account_id: UUID,
        names: AccountNames,
        correlation_id: Optional[UUID],
    ) -> None:
        if account_id in names:
            return
        try:
            account = await self._accounts.get_by_id(account_id)
        except StorageError as e:
            self._logger.warning(
                "account_name_unresolved",
                account_id=str(account_id),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_account_name_unresolved(
                    account_id=account_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            names[account_id] = None
            return
        names[account_id] = account.name if account else None
