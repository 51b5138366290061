"""
Balance Calculation

Account balances derived from initial balances plus realized
transactions. Projected occurrences never contribute here.

An account only counts from its initial_balance_date on; transactions
dated before that are ignored.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.models.ledger import Account, Money
from recurring_ledger.services.storage import AccountStore, TransactionStore


class BalanceCalculationService:
    """Balance queries over one account or all accounts."""

    def __init__(
        self,
        accounts: AccountStore,
        transactions: TransactionStore,
        default_currency: Optional[str] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        self._accounts = accounts
        self._transactions = transactions
        self._currency = default_currency or settings.default_currency

    async def _get_accounts(self, account_id: Optional[UUID]) -> list[Account]:
        if account_id is not None:
            account = await self._accounts.get_by_id(account_id)
            return [account] if account is not None else []
        return await self._accounts.get_all()

    async def _balance_through(self, last_day: date, account_id: Optional[UUID]) -> Money:
        """Initial balances plus transactions up to and including last_day."""
        accounts = await self._get_accounts(account_id)
        if not accounts:
            return Money.zero(self._currency)

        total = Decimal("0")
        for account in accounts:
            if account.initial_balance_date > last_day:
                continue
            total += account.initial_balance.amount
            transactions = await self._transactions.get_by_date_range(
                account.initial_balance_date,
                last_day,
                account.id,
            )
            total += sum((t.amount.amount for t in transactions), Decimal("0"))

        return Money(currency=self._currency, amount=total)

    async def get_balance_before_date(self, on: date, account_id: Optional[UUID] = None) -> Money:
        """Balance at the start of `on` (its transactions excluded)."""
        return await self._balance_through(on - timedelta(days=1), account_id)

    async def get_balance_as_of_date(self, on: date, account_id: Optional[UUID] = None) -> Money:
        """Balance at the end of `on` (its transactions included)."""
        return await self._balance_through(on, account_id)

    async def get_opening_balance_for_date(self, on: date, account_id: Optional[UUID] = None) -> Money:
        """
        Opening balance for a view starting on `on`.

        Accounts starting on or after `on` are excluded; the caller adds
        them on their start day via get_initial_balances_by_date_range.
        """
        return await self.get_balance_before_date(on, account_id)

    async def get_initial_balances_by_date_range(
        self,
        start: date,
        end: date,
        account_id: Optional[UUID] = None,
    ) -> dict[date, Decimal]:
        """Initial balances of accounts starting within [start, end], summed per date."""
        by_date: dict[date, Decimal] = {}
        for account in await self._get_accounts(account_id):
            if start <= account.initial_balance_date <= end:
                by_date[account.initial_balance_date] = (
                    by_date.get(account.initial_balance_date, Decimal("0"))
                    + account.initial_balance.amount
                )
        return by_date
