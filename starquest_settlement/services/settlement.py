"""Settlement processor - settles one child for one period"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence
from starquest_settlement.domain.models import CreditSettings, InterestTier, SettlementRecord
from starquest_settlement.domain.interest import EXCESS_IGNORE, compute_interest, validate_tiers
from starquest_settlement.domain.credit_policy import CreditLimitPolicy, adjust_credit_limit
from starquest_settlement.domain.exceptions import AlreadySettledError
from starquest_settlement.domain.ports import LedgerGateway, UnitOfWorkFactory
from starquest_settlement.infrastructure.observability.logging import log_child_settlement
from starquest_settlement.infrastructure.observability.metrics import child_settlement_counter, record_child_settlement
from starquest_settlement.utils.date_utils import utc_now


def interest_idempotency_key(family_id: str, child_id: str, settlement_date: date) -> str:
    return f"settlement:{family_id}:{child_id}:{settlement_date.isoformat()}"


class ChildLockRegistry:
    """
    In-process lock per child, serializing settlements of the same child.

    A lock lives only while some task holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def for_child(self, family_id: str, child_id: str) -> AsyncIterator[None]:
        key = f"{family_id}:{child_id}"
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


# Shared by every processor in the process
child_locks = ChildLockRegistry()


def _credit_active(credit: Optional[CreditSettings], family_id: str, child_id: str) -> bool:
    if credit is not None and credit.enabled:
        return True
    child_settlement_counter.labels(outcome="skipped").inc()
    logging.info(
        "Child skipped: credit disabled",
        extra={"family_id": family_id, "child_id": child_id, "step": "child_skipped"},
    )
    return False


class SettlementProcessor:
    """
    Settles a single (family, child) pair.

    Children without credit settings, or with credit disabled, are skipped:
    no record is written and settle_child returns None.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: LedgerGateway,
        policy: CreditLimitPolicy | None = None,
        excess_policy: str = EXCESS_IGNORE,
        locks: ChildLockRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow_factory = uow_factory
        self.ledger = ledger
        self.policy = policy or CreditLimitPolicy()
        self.excess_policy = excess_policy
        self.locks = locks if locks is not None else child_locks
        self.clock = clock

    async def settle_child(
        self,
        family_id: str,
        child_id: str,
        as_of: date,
        tiers: Optional[Sequence[InterestTier]] = None,
    ) -> Optional[SettlementRecord]:
        """
        Charge interest and move the credit limit for one child.

        Flow:
        1. Read credit settings (skip if credit is off) and any existing record
        2. Read balance from the ledger, derive debt
        3. Compute interest and the new credit limit
        4. Persist the record and the new limit in one transaction
        5. Post the interest debit (idempotency-keyed)

        No transaction is open while the ledger is called. A debit that fails
        after step 4 leaves the record in place; the next call for the same
        period re-posts it under the same key.

        Raises:
            TierConfigurationError: Family tier table is invalid
            DataAccessError: Store failure
            LedgerAPIError: Ledger failure
        """
        async with self.locks.for_child(family_id, child_id):
            with self.uow_factory() as uow:
                if not _credit_active(uow.credit.get(family_id, child_id), family_id, child_id):
                    return None
                existing = uow.settlements.get(family_id, child_id, as_of)
                if existing is None and tiers is None:
                    tiers = validate_tiers(uow.tiers.list_for_family(family_id))

            if existing:
                await self._post_interest(existing)
                return existing

            balance = await self.ledger.get_balance(child_id)
            debt = -balance if balance < 0 else 0
            calculation = compute_interest(debt, tiers, self.excess_policy)

            with self.uow_factory() as uow:
                credit = uow.credit.get(family_id, child_id, for_update=True)
                if not _credit_active(credit, family_id, child_id):
                    return None

                new_limit = adjust_credit_limit(credit, debt, self.policy)
                record = SettlementRecord(
                    id=str(uuid.uuid4()),
                    family_id=family_id,
                    child_id=child_id,
                    settlement_date=as_of,
                    debt_amount=debt,
                    interest_calculated=calculation.total_interest,
                    balance_before=balance,
                    credit_limit_before=credit.credit_limit,
                    credit_limit_after=new_limit,
                    credit_limit_adjustment=new_limit - credit.credit_limit,
                    interest_breakdown=list(calculation.breakdown),
                    settled_at=self.clock(),
                )

                try:
                    uow.settlements.create(record)
                except AlreadySettledError:
                    record = None
                else:
                    uow.credit.update_limit(family_id, child_id, new_limit)
                    uow.commit()

            if record is None:
                # Another process committed this period first; its record is authoritative
                existing = self._existing_record(family_id, child_id, as_of)
                await self._post_interest(existing)
                return existing

            await self._post_interest(record)

        record_child_settlement(record.interest_calculated, record.credit_limit_adjustment)
        log_child_settlement(
            family_id,
            child_id,
            record.debt_amount,
            record.interest_calculated,
            record.credit_limit_before,
            record.credit_limit_after,
        )
        return record

    async def _post_interest(self, record: Optional[SettlementRecord]) -> None:
        if record is None or record.interest_calculated <= 0:
            return
        await self.ledger.post_interest_debit(
            record.child_id,
            record.interest_calculated,
            record.settled_at,
            interest_idempotency_key(record.family_id, record.child_id, record.settlement_date),
        )

    def _existing_record(self, family_id: str, child_id: str, as_of: date) -> Optional[SettlementRecord]:
        with self.uow_factory() as uow:
            return uow.settlements.get(family_id, child_id, as_of)

    def load_tiers(self, family_id: str) -> List[InterestTier]:
        """Read and validate a family's tier table"""
        with self.uow_factory() as uow:
            return validate_tiers(uow.tiers.list_for_family(family_id))
