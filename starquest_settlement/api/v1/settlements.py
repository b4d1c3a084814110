"""GET /v1/families/{family_id}/settlements - Settlement history"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from starquest_settlement.api.v1.schemas import SettlementHistoryResponse, settlement_schema
from starquest_settlement.infrastructure.database.session import get_db
from starquest_settlement.infrastructure.database.repositories import SettlementRepository

router = APIRouter()


@router.get("/families/{family_id}/settlements", response_model=SettlementHistoryResponse)
def get_settlement_history(
    family_id: str,
    child_id: Optional[str] = Query(None, description="Only this child's settlements"),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """
    Retrieve recent settlements for a family, newest first.

    Returns:
        Settlement snapshots including the tier breakdown used at the time
    """
    settlement_repo = SettlementRepository(db)
    records = settlement_repo.list_for_family(family_id, child_id=child_id, limit=limit)

    return SettlementHistoryResponse(
        family_id=family_id,
        settlements=[settlement_schema(record) for record in records],
    )
