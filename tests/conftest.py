"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import Dict, Generator, List, Optional, Sequence
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from starquest_settlement.api.main import create_app
from starquest_settlement.api.dependencies import get_ledger_client, get_orchestrator
from starquest_settlement.config import settings
from starquest_settlement.domain.credit_policy import CreditLimitPolicy
from starquest_settlement.domain.exceptions import LedgerAPIError
from starquest_settlement.domain.interest import DEFAULT_INTEREST_TIERS
from starquest_settlement.domain.models import Child, DeliveryResult, InterestTier
from starquest_settlement.infrastructure.database.models import (
    Base,
    ChildCreditSettingsRow,
    FamilyRow,
    InterestTierRow,
    ReportPreferencesRow,
)
from starquest_settlement.infrastructure.database.session import get_db
from starquest_settlement.infrastructure.database.unit_of_work import sql_unit_of_work_factory
from starquest_settlement.services.notifications import SettlementNotifier
from starquest_settlement.services.orchestrator import BatchOrchestrator
from starquest_settlement.services.settlement import SettlementProcessor


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CRON_SECRET = "test-cron-secret"


class FakeLedger:
    """In-memory points ledger with switchable failures"""

    def __init__(self):
        self.children: Dict[str, List[Child]] = {}
        self.balances: Dict[str, int] = {}
        self.debits: Dict[str, int] = {}
        self.failing_children: set = set()
        self.failing_families: set = set()
        self.failing_debits: set = set()

    def add_child(self, family_id: str, child_id: str, balance: int, name: Optional[str] = None) -> None:
        self.children.setdefault(family_id, []).append(Child(child_id=child_id, name=name))
        self.balances[child_id] = balance

    async def get_balance(self, child_id: str) -> int:
        if child_id in self.failing_children:
            raise LedgerAPIError(f"Ledger API error: 503 on GET /children/{child_id}/balance")
        return self.balances[child_id]

    async def get_outstanding_debt(self, child_id: str) -> int:
        balance = await self.get_balance(child_id)
        return -balance if balance < 0 else 0

    async def post_interest_debit(self, child_id: str, amount: int, timestamp: datetime, idempotency_key: str) -> None:
        if child_id in self.failing_debits:
            raise LedgerAPIError(f"Ledger API error: 503 on POST /transactions for {child_id}")
        if idempotency_key in self.debits:
            return
        self.debits[idempotency_key] = amount
        self.balances[child_id] -= amount

    async def get_children_of(self, family_id: str) -> List[Child]:
        if family_id in self.failing_families:
            raise LedgerAPIError(f"Ledger API unreachable for {family_id}")
        return list(self.children.get(family_id, []))


class FakeSender:
    """Captures outgoing notices instead of emailing them"""

    def __init__(self, available: bool = True, fail_with: Optional[str] = None):
        self.available = available
        self.fail_with = fail_with
        self.sent: List[dict] = []

    def is_available(self) -> bool:
        return self.available

    async def send(self, recipient: str, subject: str, body: str) -> DeliveryResult:
        if self.fail_with:
            return DeliveryResult(success=False, error=self.fail_with)
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})
        return DeliveryResult(success=True)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def uow_factory(db: Session):
    return sql_unit_of_work_factory(TestingSessionLocal)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def processor(uow_factory, ledger: FakeLedger) -> SettlementProcessor:
    return SettlementProcessor(uow_factory, ledger, policy=CreditLimitPolicy())


@pytest.fixture
def orchestrator(uow_factory, ledger: FakeLedger, sender: FakeSender, processor: SettlementProcessor) -> BatchOrchestrator:
    return BatchOrchestrator(
        uow_factory,
        ledger,
        processor,
        SettlementNotifier(sender, uow_factory),
        max_parallel_families=2,
        family_timeout_seconds=5.0,
    )


@pytest.fixture
def client(db: Session, orchestrator: BatchOrchestrator, ledger: FakeLedger, monkeypatch) -> TestClient:
    """Create FastAPI test client with test database and fake collaborators"""
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    return TestClient(app)



class Seeder:
    """Writes families, tier tables and credit lines into the test database"""

    def __init__(self, db: Session):
        self.db = db

    def family(
        self,
        family_id: str,
        name: str,
        settlement_day: int = 15,
        parent_email: Optional[str] = "parent@example.com",
        tiers: Optional[Sequence[InterestTier]] = DEFAULT_INTEREST_TIERS,
    ) -> None:
        self.db.add(FamilyRow(id=family_id, name=name, settlement_day=settlement_day, parent_email=parent_email))
        for tier in tiers or []:
            self.db.add(
                InterestTierRow(
                    family_id=family_id,
                    tier_order=tier.order,
                    min_debt=tier.min_debt,
                    max_debt=tier.max_debt,
                    interest_rate=tier.rate,
                )
            )
        self.db.commit()

    def credit(
        self,
        family_id: str,
        child_id: str,
        credit_limit: int = 40,
        original_credit_limit: int = 50,
        enabled: bool = True,
        max_credit_limit: Optional[int] = None,
    ) -> None:
        self.db.add(
            ChildCreditSettingsRow(
                family_id=family_id,
                child_id=child_id,
                credit_enabled=enabled,
                credit_limit=credit_limit,
                original_credit_limit=original_credit_limit,
                max_credit_limit=max_credit_limit,
            )
        )
        self.db.commit()

    def preferences(self, family_id: str, enabled: bool = True, report_email: Optional[str] = None) -> None:
        self.db.add(ReportPreferencesRow(family_id=family_id, settlement_email_enabled=enabled, report_email=report_email))
        self.db.commit()


@pytest.fixture
def seed(db: Session) -> Seeder:
    return Seeder(db)



@pytest.fixture
def cron_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
