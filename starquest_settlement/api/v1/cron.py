"""GET|POST /v1/cron/daily-jobs - Scheduler entry point for the settlement batch"""

import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from starquest_settlement.api.v1.schemas import DailyJobsResponse, DailyJobsResults, batch_schema
from starquest_settlement.api.dependencies import get_orchestrator, get_request_id, verify_cron_secret
from starquest_settlement.services.orchestrator import BatchOrchestrator
from starquest_settlement.utils.date_utils import utc_now, utc_today

router = APIRouter()


@router.api_route(
    "/cron/daily-jobs",
    methods=["GET", "POST"],
    response_model=DailyJobsResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_daily_jobs(
    request: Request,
    settlement_date: Optional[date] = Query(None, alias="date", description="Re-run a specific date"),
    family_id: Optional[List[str]] = Query(None, description="Restrict to these families"),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """
    Run the daily settlement batch.

    Partial failures (some families erroring) still return 200 with the
    errors listed; only a crash of the orchestrator itself returns 500.
    """
    request_id = get_request_id(request)
    today = settlement_date or utc_today()

    try:
        result = await orchestrator.run_due(today, family_ids=family_id)
    except Exception as e:
        logging.error(f"Unexpected error in daily-jobs cron: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    logging.info(
        "Daily jobs completed",
        extra={"request_id": request_id, "processed": result.processed, "error_count": len(result.errors)},
    )

    return DailyJobsResponse(
        success=True,
        timestamp=utc_now().isoformat(),
        results=DailyJobsResults(settlement=batch_schema(result)),
    )
