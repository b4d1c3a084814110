"""SQLAlchemy unit of work bundling the settlement repositories"""

from sqlalchemy.orm import Session, sessionmaker
from starquest_settlement.infrastructure.database.repositories import (
    FamilyRepository,
    InterestTierRepository,
    CreditSettingsRepository,
    SettlementRepository,
    ReportHistoryRepository,
)


class SqlUnitOfWork:
    """One session, one transaction; rolled back unless committed"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.db: Session | None = None

    def __enter__(self) -> "SqlUnitOfWork":
        self.db = self.session_factory()
        self.families = FamilyRepository(self.db)
        self.tiers = InterestTierRepository(self.db)
        self.credit = CreditSettingsRepository(self.db)
        self.settlements = SettlementRepository(self.db)
        self.audit = ReportHistoryRepository(self.db)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.db.rollback()
        finally:
            self.db.close()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


def sql_unit_of_work_factory(session_factory: sessionmaker):
    """Build a zero-arg factory the orchestrator can call per unit of work"""
    return lambda: SqlUnitOfWork(session_factory)
