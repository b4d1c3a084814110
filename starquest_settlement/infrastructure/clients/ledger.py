"""Points ledger HTTP client with exponential backoff retry logic"""

import asyncio
import httpx
from datetime import datetime
from typing import Any, Dict, List, Optional
from starquest_settlement.config import settings
from starquest_settlement.domain.models import Child
from starquest_settlement.domain.exceptions import LedgerAPIError
from starquest_settlement.infrastructure.observability.metrics import ledger_latency_histogram, ledger_failure_counter


class LedgerClient:
    """Client for the StarQuest points ledger (balances and interest debits)"""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ledger_api_base).rstrip("/")
        self.token = token if token is not None else settings.ledger_api_token
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max(1, max_retries if max_retries is not None else settings.ledger_max_retries)
        self.backoff_base = backoff_base if backoff_base is not None else settings.ledger_backoff_base
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, json: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """
        Call the ledger, retrying transient failures within this call only.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ...
        - Retries on 5xx errors and network failures; 4xx fails immediately

        Raises:
            LedgerAPIError: After the last attempt, or on a non-retryable error
        """
        attempt = 0
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self.transport,
        ) as client:
            while True:
                try:
                    with ledger_latency_histogram.time():
                        response = await client.request(method, path, json=json)
                        response.raise_for_status()
                    return response.json() if response.content else {}

                except httpx.HTTPStatusError as e:
                    ledger_failure_counter.inc()
                    attempt += 1
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise LedgerAPIError(
                            f"Ledger API error: {e.response.status_code} on {method} {path}"
                        ) from e

                except httpx.TimeoutException as e:
                    ledger_failure_counter.inc()
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise LedgerAPIError(f"Ledger API timeout after {self.timeout}s on {path}") from e

                except httpx.RequestError as e:
                    ledger_failure_counter.inc()
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise LedgerAPIError(f"Ledger API unreachable: {e}") from e

                await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))

    async def get_balance(self, child_id: str) -> int:
        """Signed star balance; negative means the child is in debt"""
        data = await self._request("GET", f"/children/{child_id}/balance")
        try:
            return int(data["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerAPIError(f"Invalid balance payload for {child_id}: {e}") from e

    async def get_outstanding_debt(self, child_id: str) -> int:
        balance = await self.get_balance(child_id)
        return -balance if balance < 0 else 0

    async def post_interest_debit(
        self, child_id: str, amount: int, timestamp: datetime, idempotency_key: str
    ) -> None:
        """Record interest as a debit; the key makes retries safe"""
        await self._request(
            "POST",
            f"/children/{child_id}/interest-debits",
            json={
                "amount": amount,
                "timestamp": timestamp.isoformat(),
                "idempotency_key": idempotency_key,
            },
        )

    async def get_children_of(self, family_id: str) -> List[Child]:
        data = await self._request("GET", f"/families/{family_id}/children")
        try:
            return [
                Child(child_id=str(child["child_id"]), name=child.get("name"))
                for child in data["children"]
            ]
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid children payload for {family_id}: {e}") from e
