"""
Batch and Auto Realization

Both run many single-occurrence realizations in sequence. Each item
commits on its own, so one failing item never rolls back another.

Domain errors (not found, already realized, skipped, validation) are
collected per item. Storage errors are not: a failing store aborts the
whole run and propagates to the caller.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from recurring_ledger.audit import AuditLogger, create_correlation_id
from recurring_ledger.config import EngineSettings, get_settings
from recurring_ledger.errors import AlreadyRealizedError, DomainError
from recurring_ledger.models.ledger import RuleKind, TodayProvider, utc_today
from recurring_ledger.models.views import (
    AutoRealizeResult,
    BatchRealizeFailure,
    BatchRealizeItem,
    BatchRealizeResult,
)
from recurring_ledger.past_due import PastDueDetector
from recurring_ledger.realization.realize import (
    RecurringTransactionRealizationService,
    RecurringTransferRealizationService,
)

logger = structlog.get_logger(__name__)


class BatchRealizationService:
    """Realizes a caller-supplied list of occurrences."""

    def __init__(
        self,
        transaction_realization: RecurringTransactionRealizationService,
        transfer_realization: RecurringTransferRealizationService,
    ):
        self._services = {
            RuleKind.RECURRING_TRANSACTION: transaction_realization,
            RuleKind.RECURRING_TRANSFER: transfer_realization,
        }
        self._logger = logger.bind(component="batch_realization")

    async def realize_one(
        self,
        item: BatchRealizeItem,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._services[item.type].realize_instance(
            item.id,
            item.instance_date,
            correlation_id=correlation_id,
        )

    async def realize_batch(
        self,
        items: list[BatchRealizeItem],
        correlation_id: Optional[UUID] = None,
    ) -> BatchRealizeResult:
        """
        Realize every item with rule defaults.

        Returns:
            Success count, failure count and one failure entry per
            rejected item
        """
        correlation_id = correlation_id or create_correlation_id()
        result = BatchRealizeResult()

        for item in items:
            try:
                await self.realize_one(item, correlation_id)
                result.success_count += 1
            except DomainError as e:
                result.failure_count += 1
                result.failures.append(BatchRealizeFailure(
                    id=item.id,
                    type=item.type,
                    instance_date=item.instance_date,
                    error=e.message,
                ))

        self._logger.info(
            "batch_realized",
            requested=len(items),
            success_count=result.success_count,
            failure_count=result.failure_count,
            correlation_id=str(correlation_id),
        )
        return result


class AutoRealizeService:
    """
    Realizes every past-due occurrence in the lookback window.

    Runs only when the engine setting `auto_realize_past_due` is enabled
    (or when forced). Occurrences realized concurrently by someone else
    count as already realized, not as failures.
    """

    def __init__(
        self,
        detector: PastDueDetector,
        batch: BatchRealizationService,
        enabled: Optional[bool] = None,
        today_provider: Optional[TodayProvider] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings().engine
        self._detector = detector
        self._batch = batch
        self._enabled = settings.auto_realize_past_due if enabled is None else enabled
        self._today = today_provider or utc_today
        self._audit_logger = audit_logger
        self._logger = logger.bind(component="auto_realize")

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def auto_realize_if_enabled(
        self,
        account_id: Optional[UUID] = None,
    ) -> Optional[AutoRealizeResult]:
        """Run auto-realization when enabled; returns None when disabled."""
        if not self._enabled:
            return None
        return await self.auto_realize(account_id)

    async def auto_realize(
        self,
        account_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AutoRealizeResult:
        correlation_id = correlation_id or create_correlation_id()
        today: date = self._today()
        summary = await self._detector.get_past_due_items(account_id)

        result = AutoRealizeResult()
        for past_due in summary.items:
            item = BatchRealizeItem(type=past_due.type, id=past_due.id, instance_date=past_due.instance_date)
            try:
                await self._batch.realize_one(item, correlation_id)
                result.realized_count += 1
            except AlreadyRealizedError:
                result.already_realized_count += 1
            except DomainError as e:
                result.failures.append(BatchRealizeFailure(
                    id=item.id,
                    type=item.type,
                    instance_date=item.instance_date,
                    error=e.message,
                ))

        self._logger.info(
            "auto_realize_completed",
            today=today.isoformat(),
            realized_count=result.realized_count,
            already_realized_count=result.already_realized_count,
            failure_count=len(result.failures),
        )
        if self._audit_logger:
            await self._audit_logger.log_auto_realize_completed(
                today=today,
                realized_count=result.realized_count,
                failure_count=len(result.failures),
                correlation_id=correlation_id,
            )
        return result
