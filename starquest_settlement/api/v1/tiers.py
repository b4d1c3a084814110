"""Interest tier table endpoints: read, replace, defaults, preview"""

from decimal import Decimal
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from starquest_settlement.api.v1.schemas import (
    InterestPreviewResponse,
    InterestTierSchema,
    InterestTierTableRequest,
    InterestTierTableResponse,
    breakdown_schema,
)
from starquest_settlement.config import settings
from starquest_settlement.domain.models import InterestTier
from starquest_settlement.domain.interest import compute_interest, validate_tiers
from starquest_settlement.domain.exceptions import TierConfigurationError
from starquest_settlement.infrastructure.database.session import get_db
from starquest_settlement.infrastructure.database.repositories import FamilyRepository, InterestTierRepository

router = APIRouter()


def _table_response(family_id: str, tiers: List[InterestTier]) -> InterestTierTableResponse:
    return InterestTierTableResponse(
        family_id=family_id,
        tiers=[
            InterestTierSchema(
                tier_order=tier.order,
                min_debt=tier.min_debt,
                max_debt=tier.max_debt,
                interest_rate=float(tier.rate),
            )
            for tier in tiers
        ],
    )


def _require_family(db: Session, family_id: str) -> None:
    if FamilyRepository(db).get(family_id) is None:
        raise HTTPException(status_code=404, detail="Family not found")


@router.get("/families/{family_id}/interest-tiers", response_model=InterestTierTableResponse)
def get_interest_tiers(family_id: str, db: Session = Depends(get_db)):
    """Current tier table, lowest bracket first (empty = no interest)"""
    _require_family(db, family_id)
    return _table_response(family_id, InterestTierRepository(db).list_for_family(family_id))


@router.put("/families/{family_id}/interest-tiers", response_model=InterestTierTableResponse)
def replace_interest_tiers(family_id: str, body: InterestTierTableRequest, db: Session = Depends(get_db)):
    """
    Replace the whole tier table.

    Settlements already computed keep their own breakdown snapshot and are
    never recalculated.
    """
    _require_family(db, family_id)
    tiers = [
        InterestTier(
            order=tier.tier_order,
            min_debt=tier.min_debt,
            max_debt=tier.max_debt,
            rate=Decimal(str(tier.interest_rate)),
        )
        for tier in body.tiers
    ]

    try:
        ordered = validate_tiers(tiers)
    except TierConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    saved = InterestTierRepository(db).replace(family_id, ordered)
    db.commit()
    return _table_response(family_id, saved)


@router.post("/families/{family_id}/interest-tiers/defaults", response_model=InterestTierTableResponse)
def initialize_default_tiers(family_id: str, db: Session = Depends(get_db)):
    """Install the default table when the family has none"""
    _require_family(db, family_id)
    tiers = InterestTierRepository(db).initialize_defaults(family_id)
    db.commit()
    return _table_response(family_id, tiers)


@router.get("/families/{family_id}/interest-tiers/preview", response_model=InterestPreviewResponse)
def preview_interest(
    family_id: str,
    debt: int = Query(..., ge=0, description="Debt in stars"),
    db: Session = Depends(get_db),
):
    """Interest the family's table would charge on `debt` today"""
    _require_family(db, family_id)
    tiers = InterestTierRepository(db).list_for_family(family_id)

    try:
        # Validated up front: compute_interest returns early on zero debt
        tiers = validate_tiers(tiers)
        calculation = compute_interest(debt, tiers, settings.excess_debt_policy)
    except TierConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return InterestPreviewResponse(
        family_id=family_id,
        debt=debt,
        total_interest=calculation.total_interest,
        breakdown=breakdown_schema(calculation.breakdown),
    )
