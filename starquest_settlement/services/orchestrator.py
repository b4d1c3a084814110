"""Batch orchestrator - settles every family due on a given day"""

import asyncio
import logging
import time
from datetime import date
from typing import Optional, Sequence
from starquest_settlement.domain.models import (
    AuditStatus,
    BatchResult,
    Family,
    FamilySettlementOutcome,
    FamilyState,
    ReportType,
)
from starquest_settlement.domain.credit_policy import CreditLimitPolicy
from starquest_settlement.domain.exceptions import AlreadySettledError, DataAccessError
from starquest_settlement.domain.ports import LedgerGateway, NotificationSender, UnitOfWorkFactory
from starquest_settlement.domain.schedule import due_settlement_days
from starquest_settlement.services.settlement import SettlementProcessor
from starquest_settlement.services.notifications import SettlementNotifier
from starquest_settlement.infrastructure.observability.logging import log_batch_completed
from starquest_settlement.infrastructure.observability.metrics import (
    batch_duration_histogram,
    child_settlement_counter,
    family_settlement_counter,
)
from starquest_settlement.utils.date_utils import utc_now

_NOTIFICATION_STATES = {
    AuditStatus.SENT: FamilyState.NOTIFIED,
    AuditStatus.FAILED: FamilyState.NOTIFICATION_FAILED,
    AuditStatus.SKIPPED: FamilyState.NOTIFICATION_SKIPPED,
}


class BatchOrchestrator:
    """
    Runs the daily settlement batch.

    Families are independent: each is claimed in the audit store, settled
    child by child, then notified. Any failure is confined to its family
    (or child) and reported as an error string in the BatchResult.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: LedgerGateway,
        processor: SettlementProcessor,
        notifier: SettlementNotifier,
        max_parallel_families: int = 4,
        family_timeout_seconds: float = 60.0,
    ):
        self.uow_factory = uow_factory
        self.ledger = ledger
        self.processor = processor
        self.notifier = notifier
        self.max_parallel_families = max(1, max_parallel_families)
        self.family_timeout_seconds = family_timeout_seconds

    @classmethod
    def build(
        cls,
        uow_factory: UnitOfWorkFactory,
        ledger: LedgerGateway,
        sender: NotificationSender,
        settings,
    ) -> "BatchOrchestrator":
        """Wire an orchestrator from application settings"""
        processor = SettlementProcessor(
            uow_factory,
            ledger,
            policy=CreditLimitPolicy.from_settings(settings),
            excess_policy=settings.excess_debt_policy,
        )
        notifier = SettlementNotifier(sender, uow_factory, enabled=settings.notifications_enabled)
        return cls(
            uow_factory,
            ledger,
            processor,
            notifier,
            max_parallel_families=settings.max_parallel_families,
            family_timeout_seconds=settings.settlement_timeout_seconds,
        )

    async def run_due(self, today: date, family_ids: Optional[Sequence[str]] = None) -> BatchResult:
        """
        Settle every family due on `today`.

        Args:
            today: Settlement date (period key for idempotency)
            family_ids: Restrict a manual re-trigger to these families

        Returns:
            BatchResult; a failed due-family query is reported in errors,
            never as "no families due"
        """
        start_time = time.time()
        result = BatchResult(settlement_date=today)

        try:
            with self.uow_factory() as uow:
                families = uow.families.list_due(due_settlement_days(today))
        except Exception as e:
            message = str(e) if isinstance(e, DataAccessError) else f"Failed to fetch families: {e}"
            logging.error(message, extra={"settlement_date": today.isoformat()})
            result.errors.append(message)
            return result

        if family_ids is not None:
            wanted = set(family_ids)
            families = [family for family in families if family.id in wanted]

        semaphore = asyncio.Semaphore(self.max_parallel_families)

        async def run_one(family: Family) -> FamilySettlementOutcome:
            async with semaphore:
                return await self._settle_family_guarded(family, today)

        outcomes = await asyncio.gather(*(run_one(family) for family in families))

        for outcome in outcomes:
            family_settlement_counter.labels(state=outcome.state.value).inc()
            result.families.append(outcome)
            result.errors.extend(outcome.errors)
            if outcome.state == FamilyState.SKIPPED:
                result.skipped += 1
            elif outcome.state != FamilyState.SETTLEMENT_FAILED:
                result.processed += 1

        duration = time.time() - start_time
        batch_duration_histogram.observe(duration)
        log_batch_completed(today.isoformat(), result.processed, result.skipped, len(result.errors), duration * 1000)
        return result

    async def _settle_family_guarded(self, family: Family, today: date) -> FamilySettlementOutcome:
        """Timeout and catch-all around settle_family"""
        try:
            return await asyncio.wait_for(self.settle_family(family, today), timeout=self.family_timeout_seconds)
        except asyncio.TimeoutError:
            message = f"Settlement timed out for {family.name} after {self.family_timeout_seconds}s"
        except Exception as e:
            message = f"Settlement error for {family.name}: {e}"

        logging.error(message, extra={"family_id": family.id})
        return FamilySettlementOutcome(
            family_id=family.id,
            family_name=family.name,
            state=FamilyState.SETTLEMENT_FAILED,
            errors=[message],
        )

    async def settle_family(self, family: Family, today: date) -> FamilySettlementOutcome:
        """
        Settle one family: claim period, settle children, notify, audit.

        State: due -> skipped | settling -> settled -> notified |
        notification_failed | notification_skipped; or settlement_failed.
        """
        outcome = FamilySettlementOutcome(family_id=family.id, family_name=family.name, state=FamilyState.DUE)

        # Idempotency: existing entry check, then unique-constrained claim.
        # An incomplete period (some children failed) is reopened instead.
        try:
            with self.uow_factory() as uow:
                entry = uow.audit.get(family.id, ReportType.SETTLEMENT, today)
                if entry is None:
                    uow.audit.claim(family.id, ReportType.SETTLEMENT, today, today)
                elif entry.status != AuditStatus.INCOMPLETE or not uow.audit.reopen(
                    family.id, ReportType.SETTLEMENT, today
                ):
                    outcome.state = FamilyState.SKIPPED
                    return outcome
                uow.commit()
        except AlreadySettledError:
            outcome.state = FamilyState.SKIPPED
            return outcome

        outcome.state = FamilyState.SETTLING
        try:
            return await self._settle_claimed(family, today, outcome)
        except BaseException:
            # Covers cancellation by the family timeout too
            self._release_claim(family.id, today)
            raise

    async def _settle_claimed(
        self, family: Family, today: date, outcome: FamilySettlementOutcome
    ) -> FamilySettlementOutcome:
        # Family-wide inputs: tier table and children
        try:
            tiers = self.processor.load_tiers(family.id)
            children = await self.ledger.get_children_of(family.id)
        except Exception as e:
            return self._fail_family(outcome, today, f"Settlement failed for {family.name}: {e}")

        # Children, each isolated
        failed_children = []
        for child in children:
            try:
                record = await self.processor.settle_child(family.id, child.child_id, today, tiers=tiers)
            except Exception as e:
                failed_children.append(child.child_id)
                child_settlement_counter.labels(outcome="failed").inc()
                message = f"Settlement failed for {family.name} (child {child.child_id}): {e}"
                logging.error(message, extra={"family_id": family.id, "child_id": child.child_id})
                outcome.errors.append(message)
                continue

            if record is None:
                outcome.skipped_children.append(child.child_id)
            else:
                outcome.records.append(record)

        if children and len(failed_children) == len(children):
            return self._fail_family(outcome, today)

        outcome.state = FamilyState.SETTLED

        # Notification failures never unwind the committed settlement
        notification = await self.notifier.notify(
            family,
            outcome.records,
            today,
            {child.child_id: child for child in children},
        )
        outcome.notification = notification
        outcome.state = _NOTIFICATION_STATES[notification.status]

        audit_status = notification.status
        audit_message = notification.error or notification.skipped_reason
        if failed_children:
            audit_status = AuditStatus.INCOMPLETE
            audit_message = f"Unsettled children: {', '.join(failed_children)}"

        try:
            with self.uow_factory() as uow:
                uow.audit.mark(
                    family.id,
                    ReportType.SETTLEMENT,
                    today,
                    audit_status,
                    recipient=notification.recipient,
                    sent_at=utc_now() if notification.status == AuditStatus.SENT else None,
                    error_message=audit_message,
                )
                uow.commit()
        except Exception as e:
            message = f"Audit update failed for {family.name}: {e}"
            logging.error(message, extra={"family_id": family.id})
            outcome.errors.append(message)

        return outcome

    def _fail_family(
        self, outcome: FamilySettlementOutcome, today: date, message: Optional[str] = None
    ) -> FamilySettlementOutcome:
        if message:
            logging.error(message, extra={"family_id": outcome.family_id})
            outcome.errors.append(message)
        outcome.state = FamilyState.SETTLEMENT_FAILED
        self._release_claim(outcome.family_id, today)
        return outcome

    def _release_claim(self, family_id: str, today: date) -> None:
        """Drop the pending claim so an operator re-trigger can retry the family"""
        try:
            with self.uow_factory() as uow:
                uow.audit.release(family_id, ReportType.SETTLEMENT, today)
                uow.commit()
        except Exception as e:
            logging.error(f"Could not release settlement claim for {family_id}: {e}")
