"""
FastAPI router module for NPS survey results.

Endpoints:
- GET /nps - Overall and per-service NPS over a date range
- GET /nps/dates - Survey days available

Both return 404 when no survey data has been ingested.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from prospect_dashboard.api.sales import require_range
from prospect_dashboard.core.dependencies import SettingsDep
from prospect_dashboard.models.schemas import NPSAggregatedData, NPSDatesResponse, NPSDayData
from prospect_dashboard.services import repository
from prospect_dashboard.services.nps import aggregate_nps, list_nps_dates


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nps", tags=["nps"])


async def load_nps_days() -> Dict[str, NPSDayData]:
    """
    Stored survey days keyed as uploaded.

    Raises:
        HTTPException 404: If no survey data has been ingested.
    """
    document = await repository.get_document(repository.NPS_KEY)
    if not document:
        raise HTTPException(
            status_code=404,
            detail="NPS data not found"
        )
    return {key: NPSDayData.model_validate(day) for key, day in document.items()}


@router.get("", response_model=NPSAggregatedData)
async def get_nps(
    settings: SettingsDep,
    startDate: Optional[str] = Query(default=None, description="Inclusive start, YYYY-MM-DD"),
    endDate: Optional[str] = Query(default=None, description="Inclusive end, YYYY-MM-DD"),
) -> NPSAggregatedData:
    """
    NPS over the survey days inside a date range.

    Example Response:
        {
            "overall": {
                "total": 16, "promoters": 14, "detractors": 2, "passives": 0,
                "npsScore": 75.0, "promoterPercentage": 87.5,
                "detractorPercentage": 12.5, "passivePercentage": 0.0,
                "scoreDistribution": {"0": 0, ..., "10": 14}
            },
            "services": [{"service": "OEC", "metrics": {...}}],
            "dateRange": {"startDate": "2026-02-01", "endDate": "2026-02-28"}
        }
    """
    start, end = require_range(startDate, endDate)
    days = await load_nps_days()

    try:
        return aggregate_nps(days, start, end, settings.nps_year, settings.rate_decimals)
    except Exception as e:
        logger.error(f"Error aggregating NPS data: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to aggregate NPS data"
        )


@router.get("/dates", response_model=NPSDatesResponse)
async def get_nps_dates(settings: SettingsDep) -> NPSDatesResponse:
    """Survey days with data, ascending."""
    days = await load_nps_days()
    return NPSDatesResponse(dates=list_nps_dates(days, settings.nps_year))
