"""Dependency injection for FastAPI endpoints"""

import hmac
from fastapi import Depends, Header, HTTPException, Request
from starquest_settlement.config import settings
from starquest_settlement.domain.ports import UnitOfWorkFactory
from starquest_settlement.infrastructure.clients.ledger import LedgerClient
from starquest_settlement.infrastructure.clients.mailer import MailerClient
from starquest_settlement.infrastructure.database.session import SessionLocal
from starquest_settlement.infrastructure.database.unit_of_work import sql_unit_of_work_factory
from starquest_settlement.services.orchestrator import BatchOrchestrator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_ledger_client() -> LedgerClient:
    """Provide points ledger client instance"""
    return LedgerClient()


def get_mailer_client() -> MailerClient:
    """Provide outbound email client instance"""
    return MailerClient()


def get_unit_of_work_factory() -> UnitOfWorkFactory:
    return sql_unit_of_work_factory(SessionLocal)


def get_orchestrator(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
    ledger: LedgerClient = Depends(get_ledger_client),
    mailer: MailerClient = Depends(get_mailer_client),
) -> BatchOrchestrator:
    """Provide a settlement orchestrator wired from settings"""
    return BatchOrchestrator.build(uow_factory, ledger, mailer, settings)


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Reject cron calls without `Authorization: Bearer <CRON_SECRET>`"""
    expected = f"Bearer {settings.cron_secret}" if settings.cron_secret else None
    if not expected or not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
