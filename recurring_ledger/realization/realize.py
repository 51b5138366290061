"""
Realization Services

Converts one occurrence of a recurring rule into permanent ledger
transactions, exactly once per (rule id, original instance date).

Flow (both variants):
1. Load the rule (NotFoundError if missing)
2. Refuse if the occurrence is already realized (AlreadyRealizedError)
3. Resolve the exception overlay; refuse a skipped occurrence
4. Stage the transaction(s) and commit in one unit of work
5. A uniqueness violation at commit means another caller won the race,
   and is reported as AlreadyRealizedError

DESIGN DECISION: The realized row always carries the ORIGINAL
occurrence date as recurring_instance_date, even when the posted date
is overridden. Changing that would let a date override open the door
to a second realization of the same occurrence.
"""

from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from recurring_ledger.audit import AuditLogger
from recurring_ledger.errors import (
    AlreadyRealizedError,
    DomainValidationError,
    DuplicateError,
    InstanceSkippedError,
    NotFoundError,
    StorageError,
)
from recurring_ledger.models.ledger import Transaction, TransferDirection
from recurring_ledger.models.views import TransferSummary
from recurring_ledger.recurrence.handlers import (
    RecurringTransactionHandler,
    RecurringTransferHandler,
    RuleHandler,
)
from recurring_ledger.recurrence.overlay import RealizationRequest, ResolvedOccurrence
from recurring_ledger.services.storage import AccountStore, TransactionStore, UnitOfWork

logger = structlog.get_logger(__name__)


class _RealizationBase:
    """Precondition checks and commit handling shared by both variants."""

    def __init__(
        self,
        handler: RuleHandler,
        transactions: TransactionStore,
        unit_of_work: UnitOfWork,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._handler = handler
        self._transactions = transactions
        self._uow = unit_of_work
        self._audit_logger = audit_logger
        self._logger = logger.bind(component=f"{handler.kind.value}_realization")

    async def _prepare(
        self,
        rule_id: UUID,
        instance_date: date,
        request: Optional[RealizationRequest],
        correlation_id: Optional[UUID],
    ):
        rule = await self._handler.rules.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError(self._handler.not_found_message, rule_id)

        if await self._handler.is_realized(rule_id, instance_date):
            await self._reject(rule_id, instance_date, AlreadyRealizedError.MESSAGE, correlation_id)
            raise AlreadyRealizedError(rule_id, instance_date)

        exception = await self._handler.rules.get_exception(rule_id, instance_date)
        resolved = self._handler.resolve(rule, instance_date, exception, request)
        if resolved.is_skipped:
            await self._reject(rule_id, instance_date, InstanceSkippedError.MESSAGE, correlation_id)
            raise InstanceSkippedError(rule_id, instance_date)

        return rule, resolved

    async def _commit(
        self,
        legs: list[Transaction],
        rule_id: UUID,
        instance_date: date,
        correlation_id: Optional[UUID],
    ) -> None:
        try:
            async with self._uow.transaction():
                for leg in legs:
                    await self._transactions.add(leg)
        except DuplicateError as e:
            self._logger.warning(
                "realization_race_lost",
                rule_id=str(rule_id),
                instance_date=instance_date.isoformat(),
            )
            await self._reject(rule_id, instance_date, AlreadyRealizedError.MESSAGE, correlation_id)
            raise AlreadyRealizedError(rule_id, instance_date) from e
        except StorageError as e:
            self._logger.error(
                "realization_commit_failed",
                rule_id=str(rule_id),
                instance_date=instance_date.isoformat(),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation=f"realize {self._handler.kind.value}",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _reject(
        self,
        rule_id: UUID,
        instance_date: date,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_realization_rejected(
                entity_type=self._handler.kind.value,
                rule_id=rule_id,
                instance_date=instance_date,
                reason=reason,
                correlation_id=correlation_id,
            )


class RecurringTransactionRealizationService(_RealizationBase):
    """Realizes recurring transaction occurrences as single ledger rows."""

    def __init__(
        self,
        handler: RecurringTransactionHandler,
        transactions: TransactionStore,
        unit_of_work: UnitOfWork,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(handler, transactions, unit_of_work, audit_logger)

    async def realize_instance(
        self,
        rule_id: UUID,
        instance_date: date,
        request: Optional[RealizationRequest] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Realize one occurrence.

        Args:
            rule_id: The recurring transaction
            instance_date: The ORIGINAL occurrence date
            request: Optional date/amount/description overrides

        Returns:
            The persisted transaction

        Raises:
            NotFoundError: Unknown rule
            AlreadyRealizedError: Occurrence already has a transaction
            InstanceSkippedError: Occurrence was skipped
            StorageError: Store failure, nothing persisted
        """
        rule, resolved = await self._prepare(rule_id, instance_date, request, correlation_id)

        transaction = Transaction.from_recurring(
            account_id=rule.account_id,
            amount=resolved.amount,
            posted_date=resolved.effective_date,
            description=resolved.description,
            rule_id=rule.id,
            instance_date=instance_date,
            category_id=rule.category_id,
        )
        await self._commit([transaction], rule_id, instance_date, correlation_id)

        self._logger.info(
            "instance_realized",
            rule_id=str(rule_id),
            instance_date=instance_date.isoformat(),
            transaction_id=str(transaction.id),
        )
        if self._audit_logger:
            await self._audit_logger.log_instance_realized(
                rule_id=rule_id,
                instance_date=instance_date,
                transaction_id=transaction.id,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction


class RecurringTransferRealizationService(_RealizationBase):
    """
    Realizes recurring transfer occurrences as two linked legs.

    The source leg is negative and the destination leg positive; both
    share one transfer_id and commit in the same unit of work.
    """

    def __init__(
        self,
        handler: RecurringTransferHandler,
        accounts: AccountStore,
        transactions: TransactionStore,
        unit_of_work: UnitOfWork,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(handler, transactions, unit_of_work, audit_logger)
        self._accounts = accounts

    async def realize_instance(
        self,
        rule_id: UUID,
        instance_date: date,
        request: Optional[RealizationRequest] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransferSummary:
        """Realize one transfer occurrence; same contract as the single-leg variant."""
        rule, resolved = await self._prepare(rule_id, instance_date, request, correlation_id)
        # Overridden amounts included
        if resolved.amount.amount <= 0:
            raise DomainValidationError("Transfer amount must be positive.")
        source_account = await self._accounts.get_by_id(rule.source_account_id)
        destination_account = await self._accounts.get_by_id(rule.destination_account_id)

        source_leg, destination_leg = self._build_legs(rule, resolved, instance_date)
        await self._commit([source_leg, destination_leg], rule_id, instance_date, correlation_id)

        self._logger.info(
            "transfer_realized",
            rule_id=str(rule_id),
            instance_date=instance_date.isoformat(),
            transfer_id=str(source_leg.transfer_id),
        )
        if self._audit_logger:
            await self._audit_logger.log_transfer_realized(
                rule_id=rule_id,
                instance_date=instance_date,
                transfer_id=source_leg.transfer_id,
                amount=str(resolved.amount),
                correlation_id=correlation_id,
            )

        return TransferSummary(
            transfer_id=source_leg.transfer_id,
            source_account_id=rule.source_account_id,
            source_account_name=source_account.name if source_account else None,
            destination_account_id=rule.destination_account_id,
            destination_account_name=destination_account.name if destination_account else None,
            amount=resolved.amount,
            date=resolved.effective_date,
            description=resolved.description,
            source_transaction_id=source_leg.id,
            destination_transaction_id=destination_leg.id,
        )

    @staticmethod
    def _build_legs(rule, resolved: ResolvedOccurrence, instance_date: date) -> tuple[Transaction, Transaction]:
        transfer_id = uuid4()
        source_leg = Transaction.from_recurring_transfer(
            account_id=rule.source_account_id,
            amount=resolved.amount.negate(),
            posted_date=resolved.effective_date,
            description=resolved.description,
            transfer_id=transfer_id,
            direction=TransferDirection.SOURCE,
            rule_id=rule.id,
            instance_date=instance_date,
        )
        destination_leg = Transaction.from_recurring_transfer(
            account_id=rule.destination_account_id,
            amount=resolved.amount,
            posted_date=resolved.effective_date,
            description=resolved.description,
            transfer_id=transfer_id,
            direction=TransferDirection.DESTINATION,
            rule_id=rule.id,
            instance_date=instance_date,
        )
        return source_leg, destination_leg
