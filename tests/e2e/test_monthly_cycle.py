"""
E2E tests for a family's settlement cycle over two months.

The cron endpoint drives a real LedgerClient against the stub ledger app
(in-process, over httpx.ASGITransport); email goes to the fake sender.

Family "Rivera" settles on the 15th:
- kid_ana: 35 stars in debt, limit 40 of original 50
- kid_leo: 12 stars in credit, limit 40 of original 50
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from starquest_settlement.api.dependencies import get_ledger_client, get_orchestrator
from starquest_settlement.config import settings
from starquest_settlement.infrastructure.clients.ledger import LedgerClient
from starquest_settlement.services.orchestrator import BatchOrchestrator
from stubs.ledger_server import main as ledger_stub


@pytest.fixture
def stub_client(client: TestClient, seed, uow_factory, sender) -> TestClient:
    ledger_stub.load(
        {
            "families": {"fam_rivera": [{"child_id": "kid_ana", "name": "Ana"}, {"child_id": "kid_leo", "name": "Leo"}]},
            "balances": {"kid_ana": -35, "kid_leo": 12},
        }
    )
    seed.family("fam_rivera", "Rivera", settlement_day=15, parent_email="rivera@example.com")
    seed.credit("fam_rivera", "kid_ana", credit_limit=40, original_credit_limit=50)
    seed.credit("fam_rivera", "kid_leo", credit_limit=40, original_credit_limit=50)

    ledger = LedgerClient(
        base_url="http://ledger.test",
        backoff_base=0,
        transport=httpx.ASGITransport(app=ledger_stub.app),
    )
    orchestrator = BatchOrchestrator.build(uow_factory, ledger, sender, settings)
    client.app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    client.app.dependency_overrides[get_ledger_client] = lambda: ledger
    return client


def _run(client: TestClient, day: str, headers) -> dict:
    response = client.post(f"/v1/cron/daily-jobs?date={day}", headers=headers)
    assert response.status_code == 200
    return response.json()["results"]["settlement"]


def test_debt_charged_then_repaid(stub_client: TestClient, cron_headers, sender):
    """
    March: Ana pays 3 stars interest and her limit drops to 33.
    April: Ana has repaid, so no interest and her limit grows by 5.
    """
    march = _run(stub_client, "2025-03-15", cron_headers)

    assert march["processed"] == 1
    assert march["families"][0]["total_interest"] == 3
    assert ledger_stub.state["balances"]["kid_ana"] == -38
    assert sender.sent[0]["recipient"] == "rivera@example.com"
    assert "Total interest charged: 3 stars" in sender.sent[0]["body"]

    credit = stub_client.get("/v1/families/fam_rivera/children/kid_ana/credit").json()
    assert credit["credit_limit"] == 33
    assert credit["credit_used"] == 38
    assert credit["available_credit"] == 0

    # Ana earns her stars back before the next settlement
    ledger_stub.state["balances"]["kid_ana"] = 0

    april = _run(stub_client, "2025-04-15", cron_headers)

    assert april["processed"] == 1
    assert april["families"][0]["total_interest"] == 0
    assert len(sender.sent) == 2

    history = stub_client.get("/v1/families/fam_rivera/settlements", params={"child_id": "kid_ana"}).json()
    assert [item["settlement_date"] for item in history["settlements"]] == ["2025-04-15", "2025-03-15"]
    assert history["settlements"][0]["credit_limit_after"] == 38


def test_same_day_rerun_charges_once(stub_client: TestClient, cron_headers, sender):
    _run(stub_client, "2025-03-15", cron_headers)
    rerun = _run(stub_client, "2025-03-15", cron_headers)

    assert rerun["processed"] == 0
    assert rerun["skipped"] == 1
    assert ledger_stub.state["balances"]["kid_ana"] == -38
    assert len(sender.sent) == 1


def test_non_settlement_day_does_nothing(stub_client: TestClient, cron_headers, sender):
    result = _run(stub_client, "2025-03-16", cron_headers)

    assert result["families"] == []
    assert result["errors"] == []
    assert sender.sent == []
