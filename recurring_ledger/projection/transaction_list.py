"""
Account Transaction List

One account's realized transactions in a date range, optionally merged
with projected occurrences, with running and daily balances.

Running balances start from the balance before the range and include
projected entries, so they show where the account is heading. The
summary's current balance is realized-only: initial balance plus every
realized transaction up to today.
"""

from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from recurring_ledger.errors import NotFoundError
from recurring_ledger.models.ledger import Money, TodayProvider, utc_today
from recurring_ledger.models.views import (
    DailyBalanceSummary,
    ItemType,
    TransactionList,
    TransactionListItem,
    TransactionListSummary,
    sum_amounts,
)
from recurring_ledger.projection.balance import BalanceCalculationService
from recurring_ledger.projection.projector import OccurrenceProjector
from recurring_ledger.services.storage import AccountStore, TransactionStore

# Projected items have no created_at; they sort before actual ones on the same day
_NO_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


def _posting_order(item: TransactionListItem) -> tuple:
    return (item.date, item.created_at or _NO_TIMESTAMP)


class TransactionListService:
    """Builds the merged transaction list for one account."""

    def __init__(
        self,
        accounts: AccountStore,
        transactions: TransactionStore,
        projector: OccurrenceProjector,
        balances: BalanceCalculationService,
        today_provider: Optional[TodayProvider] = None,
    ):
        self._accounts = accounts
        self._transactions = transactions
        self._projector = projector
        self._balances = balances
        self._today = today_provider or utc_today

    async def get_account_transaction_list(
        self,
        account_id: UUID,
        start_date: date,
        end_date: date,
        include_recurring: bool = True,
    ) -> TransactionList:
        """
        Build the list, newest first.

        Raises:
            NotFoundError: Account does not exist
        """
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found.", account_id)
        currency = account.initial_balance.currency

        transactions = await self._transactions.get_by_date_range(start_date, end_date, account_id)
        items = [
            TransactionListItem(
                id=t.id,
                type=ItemType.TRANSACTION,
                date=t.date,
                description=t.description,
                amount=t.amount,
                category_id=t.category_id,
                created_at=t.created_at,
                rule_id=t.recurring_rule_id,
                instance_date=t.recurring_instance_date,
                is_transfer=t.is_transfer,
                transfer_id=t.transfer_id,
                transfer_direction=t.transfer_direction,
            )
            for t in transactions
        ]

        if include_recurring:
            for p in await self._projector.project(start_date, end_date, account_id):
                items.append(TransactionListItem(
                    id=p.rule_id,
                    type=p.item_type,
                    date=p.date,
                    description=p.description,
                    amount=p.amount,
                    category_id=p.category_id,
                    is_modified=p.is_modified,
                    rule_id=p.rule_id,
                    instance_date=p.instance_date,
                    is_transfer=p.transfer_direction is not None,
                    transfer_direction=p.transfer_direction,
                ))

        starting_balance = await self._balances.get_balance_before_date(start_date, account_id)
        ascending = sorted(items, key=_posting_order)

        running = starting_balance.amount
        for item in ascending:
            running += item.amount.amount
            item.running_balance = Money(currency=currency, amount=running)

        amounts = [item.amount.amount for item in items]
        current_balance = await self._balances.get_balance_as_of_date(self._today(), account_id)
        summary = TransactionListSummary(
            total_amount=sum_amounts(amounts, currency),
            total_income=sum_amounts((a for a in amounts if a > 0), currency),
            total_expenses=sum_amounts((a for a in amounts if a < 0), currency),
            transaction_count=sum(1 for i in items if i.type == ItemType.TRANSACTION),
            recurring_count=sum(1 for i in items if i.type != ItemType.TRANSACTION),
            current_balance=Money(currency=currency, amount=current_balance.amount),
        )

        return TransactionList(
            account_id=account.id,
            account_name=account.name,
            start_date=start_date,
            end_date=end_date,
            initial_balance=account.initial_balance,
            initial_balance_date=account.initial_balance_date,
            starting_balance=Money(currency=currency, amount=starting_balance.amount),
            items=list(reversed(ascending)),
            daily_balances=self._daily_balances(ascending, starting_balance.amount, currency),
            summary=summary,
        )

    @staticmethod
    def _daily_balances(
        ascending: list[TransactionListItem],
        starting_balance: Decimal,
        currency: str,
    ) -> list[DailyBalanceSummary]:
        """Per-day start/end balances, newest day first."""
        by_day: dict[date, list[TransactionListItem]] = defaultdict(list)
        for item in ascending:
            by_day[item.date].append(item)

        balances = []
        balance = starting_balance
        for day in sorted(by_day):
            day_total = sum((i.amount.amount for i in by_day[day]), Decimal("0"))
            balances.append(DailyBalanceSummary(
                date=day,
                starting_balance=Money(currency=currency, amount=balance),
                ending_balance=Money(currency=currency, amount=balance + day_total),
                day_total=Money(currency=currency, amount=day_total),
                transaction_count=len(by_day[day]),
            ))
            balance += day_total
        balances.reverse()
        return balances
