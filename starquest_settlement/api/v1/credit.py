"""GET /v1/families/{family_id}/children/{child_id}/credit - Child credit summary"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from starquest_settlement.api.v1.schemas import CreditSummaryResponse
from starquest_settlement.api.dependencies import get_ledger_client, get_request_id
from starquest_settlement.domain.credit_policy import (
    calculate_total_spendable,
    get_available_credit,
    get_credit_used,
)
from starquest_settlement.domain.exceptions import LedgerAPIError
from starquest_settlement.infrastructure.clients.ledger import LedgerClient
from starquest_settlement.infrastructure.database.session import get_db
from starquest_settlement.infrastructure.database.repositories import CreditSettingsRepository

router = APIRouter()


@router.get("/families/{family_id}/children/{child_id}/credit", response_model=CreditSummaryResponse)
async def get_credit_summary(
    family_id: str,
    child_id: str,
    request: Request,
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Credit line usage and spendable stars for one child"""
    credit = CreditSettingsRepository(db).get(family_id, child_id)
    if credit is None:
        raise HTTPException(status_code=404, detail="Credit settings not found")

    try:
        balance = await ledger_client.get_balance(child_id)
    except LedgerAPIError as e:
        logging.error(f"Ledger API error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger service unavailable")

    available = get_available_credit(balance, credit.credit_limit, credit.enabled)
    return CreditSummaryResponse(
        family_id=family_id,
        child_id=child_id,
        credit_enabled=credit.enabled,
        credit_limit=credit.credit_limit,
        original_credit_limit=credit.original_credit_limit,
        balance=balance,
        credit_used=get_credit_used(balance),
        available_credit=available,
        spendable_stars=calculate_total_spendable(balance, credit.enabled, available),
    )
