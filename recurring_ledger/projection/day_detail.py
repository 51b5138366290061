"""Day detail: realized transactions and projected occurrences on one date."""

from datetime import date
from typing import Optional
from uuid import UUID

from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.models.views import (
    DayDetail,
    DayDetailItem,
    DayDetailSummary,
    ItemType,
    sum_amounts,
)
from recurring_ledger.projection.projector import OccurrenceProjector
from recurring_ledger.services.storage import TransactionStore


class DayDetailService:
    """Builds the combined actual and projected view of a single day."""

    def __init__(
        self,
        transactions: TransactionStore,
        projector: OccurrenceProjector,
        default_currency: Optional[str] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        self._transactions = transactions
        self._projector = projector
        self._currency = default_currency or settings.default_currency

    async def get_day_detail(self, on: date, account_id: Optional[UUID] = None) -> DayDetail:
        """
        Merge actual and projected entries for one date.

        Actual items come first in posting order, followed by projected
        ones. Account names are resolved for both.
        """
        transactions = await self._transactions.get_by_date_range(on, on, account_id)
        names = await self._projector.account_names()
        projected = await self._projector.project(on, on, account_id)

        items = [
            DayDetailItem(
                id=t.id,
                type=ItemType.TRANSACTION,
                description=t.description,
                amount=t.amount,
                account_id=t.account_id,
                account_name=names.get(t.account_id) or "",
                category_id=t.category_id,
                created_at=t.created_at,
                rule_id=t.recurring_rule_id,
                instance_date=t.recurring_instance_date,
                is_transfer=t.is_transfer,
                transfer_id=t.transfer_id,
                transfer_direction=t.transfer_direction,
            )
            for t in sorted(transactions, key=lambda t: t.created_at)
        ]
        items.extend(
            DayDetailItem(
                type=p.item_type,
                description=p.description,
                amount=p.amount,
                account_id=p.account_id,
                account_name=p.account_name,
                category_id=p.category_id,
                is_modified=p.is_modified,
                rule_id=p.rule_id,
                instance_date=p.instance_date,
                is_transfer=p.transfer_direction is not None,
                transfer_direction=p.transfer_direction,
            )
            for p in projected
        )

        total_actual = sum_amounts((t.amount.amount for t in transactions), self._currency)
        total_projected = sum_amounts((p.amount.amount for p in projected), self._currency)
        return DayDetail(
            date=on,
            items=items,
            summary=DayDetailSummary(
                total_actual=total_actual,
                total_projected=total_projected,
                combined_total=sum_amounts(
                    (total_actual.amount, total_projected.amount), self._currency
                ),
                item_count=len(items),
            ),
        )
