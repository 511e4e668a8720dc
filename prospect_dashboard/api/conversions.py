"""
FastAPI router module for clean conversion statistics.

Endpoint:
- GET /conversions-with-complaints/{date}

Loads the prospects and complaint batch stored for the date plus the
processed payment set, and hands them to the Clean Conversion Calculator.
A missing prospect or payment document yields a zero-filled response with
`error` set instead of a failure; a missing complaint batch means no
complaints.
"""

import logging

from fastapi import APIRouter, HTTPException

from prospect_dashboard.api.sales import require_date
from prospect_dashboard.core.dependencies import SettingsDep
from prospect_dashboard.models.schemas import (
    ConversionsWithComplaintsResponse,
    DailyComplaints,
    DailyProspects,
    PaymentData,
)
from prospect_dashboard.services import repository
from prospect_dashboard.services.conversions import (
    compute_conversions_for_date,
    empty_conversions_response,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversions"])


@router.get("/conversions-with-complaints/{date}", response_model=ConversionsWithComplaintsResponse)
async def get_conversions_with_complaints(
    date: str,
    settings: SettingsDep,
) -> ConversionsWithComplaintsResponse:
    """
    Conversion and clean conversion rates per service category for one date.

    Example Response:
        {
            "date": "2026-01-29",
            "totalProspects": 12,
            "totalConversions": 5,
            "totalCleanConversions": 4,
            "services": {
                "oec": {
                    "prospects": 8, "conversions": 4, "cleanConversions": 3,
                    "withComplaints": 2, "conversionRate": 50.0,
                    "cleanConversionRate": 37.5
                },
                ...
            },
            "conversions": [...]
        }
    """
    require_date(date, 'date')

    try:
        prospects_doc = await repository.get_document(repository.daily_prospects_key(date))
        if prospects_doc is None:
            return empty_conversions_response(date, error="No prospects data for this date")

        payments_doc = await repository.get_document(repository.PAYMENTS_KEY)
        if payments_doc is None:
            return empty_conversions_response(date, error="No payment data available")

        complaints_doc = await repository.get_document(repository.daily_complaints_key(date))

        prospects = DailyProspects.model_validate(prospects_doc).prospects
        payments = PaymentData.model_validate(payments_doc).payments
        complaints = (
            DailyComplaints.model_validate(complaints_doc).complaints
            if complaints_doc is not None
            else []
        )

        return compute_conversions_for_date(
            date,
            prospects,
            payments,
            complaints,
            rate_decimals=settings.rate_decimals,
        )
    except Exception as e:
        logger.error(f"Error computing conversions for {date}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to compute conversions"
        )
