"""
Occurrence Projection

Turns active rules into ProjectedOccurrence entries for a date range,
one per affected account (so a transfer projects two legs unless an
account filter keeps only one).

Skipped occurrences are dropped. Realized occurrences are dropped as
well, using the same predicate as realization, so views never count an
occurrence both as actual and as projected.

Occurrences are placed on their effective date. A date override moves
an occurrence out of any range that excludes the new date and into any
range that includes it, wherever the original date falls.
"""

from collections import defaultdict
from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from recurring_ledger.models.views import ProjectedOccurrence
from recurring_ledger.recurrence.handlers import (
    AccountNames,
    RecurringTransactionHandler,
    RecurringTransferHandler,
    RuleHandler,
)
from recurring_ledger.services.storage import AccountStore

logger = structlog.get_logger(__name__)


class OccurrenceProjector:
    """Projects not-yet-realized occurrences of both rule variants."""

    def __init__(
        self,
        transaction_handler: RecurringTransactionHandler,
        transfer_handler: RecurringTransferHandler,
        accounts: AccountStore,
    ):
        self._handlers: list[RuleHandler] = [transaction_handler, transfer_handler]
        self._accounts = accounts

    async def account_names(self) -> AccountNames:
        return {account.id: account.name for account in await self._accounts.get_all()}

    async def project(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> list[ProjectedOccurrence]:
        """Projected entries whose effective date is in [date_from, date_to], by date."""
        names = await self.account_names()
        projected: list[ProjectedOccurrence] = []
        for handler in self._handlers:
            projected.extend(await self._project_rules(handler, date_from, date_to, account_id, names))

        projected.sort(key=lambda p: p.date)
        logger.debug(
            "occurrences_projected",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
            count=len(projected),
        )
        return projected

    async def project_by_date(
        self,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID] = None,
    ) -> dict[date, list[ProjectedOccurrence]]:
        by_date: dict[date, list[ProjectedOccurrence]] = defaultdict(list)
        for entry in await self.project(date_from, date_to, account_id):
            by_date[entry.date].append(entry)
        return dict(by_date)

    @staticmethod
    async def _project_rules(
        handler: RuleHandler,
        date_from: date,
        date_to: date,
        account_id: Optional[UUID],
        names: AccountNames,
    ) -> list[ProjectedOccurrence]:
        if account_id is not None:
            rules = await handler.rules.get_by_account_id(account_id)
        else:
            rules = await handler.rules.get_active()

        projected = []
        for rule in rules:
            if not rule.is_active:
                continue

            exceptions = await handler.rules.get_exceptions_in_range(rule.id, date_from, date_to)
            by_date = {e.original_date: e for e in exceptions}
            occurrences = list(rule.occurrences_between(date_from, date_to))

            # Occurrences generated outside the range but moved into it
            for moved in await handler.rules.get_exceptions_moved_into_range(rule.id, date_from, date_to):
                if list(rule.occurrences_between(moved.original_date, moved.original_date)):
                    by_date[moved.original_date] = moved
                    occurrences.append(moved.original_date)

            for occurrence in occurrences:
                resolved = handler.resolve(rule, occurrence, by_date.get(occurrence))
                if resolved.is_skipped:
                    continue
                if not date_from <= resolved.effective_date <= date_to:
                    continue
                if await handler.is_realized(rule.id, occurrence):
                    continue
                projected.extend(handler.project(rule, resolved, names, account_id))
        return projected
