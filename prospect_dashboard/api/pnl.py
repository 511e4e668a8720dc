"""
FastAPI router module for profit and loss.

Endpoints:
- GET /pnl - Aggregated P&L over complaint sales in a date range
- GET /pnl/config - Full configuration history
- GET /pnl/config/effective - Snapshot in force on a date
- POST /pnl/config - Add a configuration snapshot

Volumes come from deduplicated complaint sales. Prices come from the
configuration history held by the injected PnLConfigStore.
"""

import logging
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from prospect_dashboard.api.sales import load_complaint_events, require_date, require_range
from prospect_dashboard.core.dependencies import ConfigStoreDep, SettingsDep
from prospect_dashboard.models.enums import PnLSource
from prospect_dashboard.models.schemas import (
    PnLConfigHistory,
    PnLConfigSnapshot,
    PnLConfigUpdate,
    PnLResponse,
)
from prospect_dashboard.services.deduplication import process_complaint_events
from prospect_dashboard.services.pnl import compute_pnl


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pnl", tags=["pnl"])


# =============================================================================
# GET /pnl
# =============================================================================


@router.get("", response_model=PnLResponse)
async def get_pnl(
    store: ConfigStoreDep,
    settings: SettingsDep,
    startDate: Optional[str] = Query(default=None, description="Inclusive start, YYYY-MM-DD"),
    endDate: Optional[str] = Query(default=None, description="Inclusive end, YYYY-MM-DD"),
) -> PnLResponse:
    """
    Aggregated P&L for a date range.

    Returns source "none" with an error message when no complaint data has
    been ingested yet.
    """
    start, end = require_range(startDate, endDate)

    try:
        events = await load_complaint_events()
        if not events:
            return PnLResponse(
                source=PnLSource.NONE,
                startDate=start,
                endDate=end,
                error="No complaint data available",
            )

        complaint_sales = process_complaint_events(events, settings.sale_window_months)
        history = await store.get_history()
        aggregated, months = compute_pnl(complaint_sales, history, start, end)
    except Exception as e:
        logger.error(f"Error computing P&L: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to compute P&L"
        )

    return PnLResponse(
        source=PnLSource.COMPLAINTS,
        aggregated=aggregated,
        startDate=start,
        endDate=end,
        monthsInRange=months,
        totalComplaints=complaint_sales.rawComplaintsCount,
    )


# =============================================================================
# P&L Configuration
# =============================================================================


@router.get("/config", response_model=PnLConfigHistory)
async def get_pnl_config(store: ConfigStoreDep) -> PnLConfigHistory:
    """Configuration history ordered by effective date."""
    try:
        return await store.get_history()
    except Exception as e:
        logger.error(f"Error loading P&L configuration: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to load P&L configuration"
        )


@router.get("/config/effective", response_model=PnLConfigSnapshot)
async def get_effective_pnl_config(
    store: ConfigStoreDep,
    date: Optional[str] = Query(default=None, description="YYYY-MM-DD; defaults to today"),
) -> PnLConfigSnapshot:
    """Snapshot in force on a date."""
    day = require_date(date, 'date') or date_type.today().isoformat()
    try:
        return await store.get_config_for_date(day)
    except Exception as e:
        logger.error(f"Error loading P&L configuration for {day}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to load P&L configuration"
        )


@router.post("/config", response_model=PnLConfigHistory)
async def add_pnl_config(
    update: PnLConfigUpdate,
    store: ConfigStoreDep,
) -> PnLConfigHistory:
    """
    Add a configuration snapshot.

    Services and fixed costs left out of the body keep the values in force on
    the effective date.

    Example Request:
        POST /pnl/config
        {
            "services": {"ttj": {"unitCost": 320, "serviceFee": 120}},
            "effectiveDate": "2026-03-01",
            "updatedBy": "finance@agency.ae"
        }
    """
    require_date(update.effectiveDate, 'effectiveDate')

    try:
        return await store.add_snapshot(update)
    except Exception as e:
        logger.error(f"Error saving P&L configuration: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to save P&L configuration"
        )
