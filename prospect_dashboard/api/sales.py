"""
FastAPI router module for deduplicated sales.

Endpoints:
- GET /sales/overseas - Overseas employment certificate sales from the to-do stream
- GET /sales/complaints - Per-service complaint sales
- DELETE /sales/complaints - Clear complaint events in a date range and recompute

Both sale streams are recomputed on every read from the persisted raw event
logs with the window setting in force. DELETE requires the ingestion key and
reads the event log strictly, so a storage error never empties the log.

Dependencies:
- prospect_dashboard/services/repository.py: document storage
- prospect_dashboard/services/deduplication.py: Sale Deduplicator
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from prospect_dashboard.core.dependencies import SettingsDep, verify_api_key
from prospect_dashboard.models.schemas import (
    ComplaintSalesData,
    OverseasSalesData,
    OverseasSalesSummary,
    RawEvent,
)
from prospect_dashboard.services import repository
from prospect_dashboard.services.deduplication import (
    clear_complaints_in_range,
    deduplicate_sales,
    get_sales_in_range,
    process_complaint_events,
)


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

DATE_FORMAT: str = '%Y-%m-%d'

router = APIRouter(prefix="/sales", tags=["sales"])


# =============================================================================
# Local Response Models
# =============================================================================


class ClearComplaintsResponse(BaseModel):
    """Response model for DELETE /sales/complaints."""
    success: bool = True
    removedEvents: int = Field(..., ge=0)
    remainingEvents: int = Field(..., ge=0)
    data: ComplaintSalesData


# =============================================================================
# Request Helpers
# =============================================================================


def require_date(value: Optional[str], field: str) -> Optional[str]:
    """
    Validate an optional YYYY-MM-DD parameter.

    Raises:
        HTTPException 400: If the value is not a calendar date.
    """
    if value is None:
        return None
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        logger.warning(f"Rejected {field}={value!r}: expected YYYY-MM-DD")
        raise HTTPException(
            status_code=400,
            detail=f"{field} must be a date in YYYY-MM-DD format"
        )
    return value


def require_range(
    start_date: Optional[str],
    end_date: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    """
    Validate an optional inclusive date range.

    Raises:
        HTTPException 400: If a bound is malformed or the range is inverted.
    """
    start = require_date(start_date, 'startDate')
    end = require_date(end_date, 'endDate')
    if start and end and end < start:
        logger.warning(f"Rejected inverted range {start}..{end}")
        raise HTTPException(
            status_code=400,
            detail="endDate must not be before startDate"
        )
    return start, end


# =============================================================================
# Document Loaders
# =============================================================================


async def load_overseas_sales(strict: bool = False) -> Optional[OverseasSalesData]:
    """
    Stored overseas sales document, or None when nothing has been ingested.

    With `strict`, storage errors propagate instead of reading as no data.
    """
    read = repository.load_document if strict else repository.get_document
    document = await read(repository.OVERSEAS_SALES_KEY)
    if document is None:
        return None
    return OverseasSalesData.model_validate(document)


async def load_complaint_events(strict: bool = False) -> List[RawEvent]:
    """Persisted complaint event log; empty when nothing has been ingested."""
    read = repository.load_document if strict else repository.get_document
    document = await read(repository.COMPLAINT_EVENTS_KEY, default=[])
    return [RawEvent.model_validate(event) for event in document]


# =============================================================================
# GET /sales/overseas
# =============================================================================


@router.get("/overseas", response_model=OverseasSalesSummary)
async def get_overseas_sales(
    settings: SettingsDep,
    startDate: Optional[str] = Query(default=None, description="Inclusive start, YYYY-MM-DD"),
    endDate: Optional[str] = Query(default=None, description="Inclusive end, YYYY-MM-DD"),
) -> OverseasSalesSummary:
    """
    Summary of deduplicated overseas sales.

    Sales are recomputed from the stored to-do event log with the current
    window setting.
    `salesInRange` is only filled when at least one bound is given and counts
    sale periods whose start falls inside the range.

    Example Request:
        GET /sales/overseas?startDate=2026-01-01&endDate=2026-01-31

    Example Response:
        {
            "totalSales": 42,
            "totalRawEvents": 57,
            "salesByMonth": {"2025-12": 20, "2026-01": 22},
            "salesInRange": 22,
            "lastUpdated": "2026-02-01T08:00:00"
        }
    """
    start, end = require_range(startDate, endDate)

    try:
        data = await load_overseas_sales()
        if data is not None:
            data = deduplicate_sales(data.events, settings.sale_window_months, updated_at=data.lastUpdated)
    except Exception as e:
        logger.error(f"Error loading overseas sales: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to load overseas sales"
        )

    sales_in_range = get_sales_in_range(data, start, end) if (start or end) else None

    if data is None:
        return OverseasSalesSummary(
            totalSales=0,
            totalRawEvents=0,
            salesInRange=sales_in_range,
        )

    return OverseasSalesSummary(
        totalSales=data.totalDedupedSales,
        totalRawEvents=data.totalRawEvents,
        salesByMonth=data.salesByMonth,
        salesInRange=sales_in_range,
        lastUpdated=data.lastUpdated,
    )


# =============================================================================
# GET /sales/complaints
# =============================================================================


@router.get("/complaints", response_model=ComplaintSalesData)
async def get_complaint_sales(settings: SettingsDep) -> ComplaintSalesData:
    """
    Deduplicated complaint sales for every service.

    Services without complaints are present with zeroed figures.
    """
    try:
        events = await load_complaint_events()
        return process_complaint_events(events, settings.sale_window_months)
    except Exception as e:
        logger.error(f"Error computing complaint sales: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to compute complaint sales"
        )


# =============================================================================
# DELETE /sales/complaints
# =============================================================================


@router.delete(
    "/complaints",
    response_model=ClearComplaintsResponse,
    dependencies=[Depends(verify_api_key)],
)
async def clear_complaint_sales(
    settings: SettingsDep,
    startDate: Optional[str] = Query(default=None, description="Inclusive start, YYYY-MM-DD"),
    endDate: Optional[str] = Query(default=None, description="Inclusive end, YYYY-MM-DD"),
) -> ClearComplaintsResponse:
    """
    Remove complaint events dated inside a range and recompute sales.

    At least one bound is required so a bare DELETE never wipes the log.
    Requires the ingestion key.

    Raises:
        HTTPException 400: If no bound is given or the range is invalid.
        HTTPException 401: If the ingestion key is missing or wrong.
        HTTPException 500: If the event log cannot be rewritten.
    """
    start, end = require_range(startDate, endDate)
    if not start and not end:
        logger.warning("DELETE /sales/complaints rejected: no date range")
        raise HTTPException(
            status_code=400,
            detail="startDate or endDate is required"
        )

    try:
        events = await load_complaint_events(strict=True)
        remaining, data = clear_complaints_in_range(
            events, start, end, settings.sale_window_months
        )
        await repository.put_document(
            repository.COMPLAINT_EVENTS_KEY,
            [event.model_dump(mode='json') for event in remaining],
        )
    except Exception as e:
        logger.error(f"Error clearing complaint events: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to clear complaint events"
        )

    return ClearComplaintsResponse(
        removedEvents=len(events) - len(remaining),
        remainingEvents=len(remaining),
        data=data,
    )
