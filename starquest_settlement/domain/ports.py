"""Gateway interfaces the settlement engine depends on"""

from datetime import datetime
from typing import Callable, List, Protocol
from starquest_settlement.domain.models import Child, DeliveryResult


class LedgerGateway(Protocol):
    """Points ledger owned by the main application"""

    async def get_balance(self, child_id: str) -> int: ...

    async def get_outstanding_debt(self, child_id: str) -> int: ...

    async def post_interest_debit(
        self, child_id: str, amount: int, timestamp: datetime, idempotency_key: str
    ) -> None: ...

    async def get_children_of(self, family_id: str) -> List[Child]: ...


class NotificationSender(Protocol):
    """Outbound message transport"""

    def is_available(self) -> bool: ...

    async def send(self, recipient: str, subject: str, body: str) -> DeliveryResult: ...


class UnitOfWork(Protocol):
    """
    Transaction scope over the settlement stores.

    Exposes families, tiers, credit, settlements and audit repositories.
    Leaving the context without commit() rolls back.
    """

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
