"""
FastAPI router module for upstream data ingestion.

Endpoints:
- POST /ingest/complaints/{date} - Store a daily complaint batch and replace its events in the complaint event log
- POST /ingest/payments - Replace the processed payment set
- POST /ingest/todos - Merge to-do rows into overseas sales
- POST /ingest/prospects/{date} - Store classified prospects for a date
- POST /ingest/nps - Replace the stored NPS survey results

Every endpoint requires the ingestion key in the Authorization header
("Bearer <key>" or the bare key) and returns an IngestionResult. Rows
rejected during normalization are reported in `errors` with their 1-based
row number; only an empty batch or a malformed date fails the request with
400. Read-modify-write endpoints read strictly: a storage error returns 500
and nothing is written.
"""

import logging
from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from prospect_dashboard.api.sales import load_complaint_events, load_overseas_sales, require_date
from prospect_dashboard.core.dependencies import SettingsDep, verify_api_key
from prospect_dashboard.models.schemas import (
    Complaint,
    DailyComplaints,
    IngestionResult,
    NPSDayData,
    Prospect,
    RawEvent,
    RawPayment,
)
from prospect_dashboard.services import repository
from prospect_dashboard.services.deduplication import complaints_to_events, merge_overseas_sales
from prospect_dashboard.services.ingestion import (
    build_daily_complaints,
    build_daily_prospects,
    build_payment_data,
    normalize_complaints,
    parse_todo_rows,
    process_payments,
)
from prospect_dashboard.services.nps import validate_nps_days


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ingest",
    tags=["ingest"],
    dependencies=[Depends(verify_api_key)],
)


def _reject_empty(rows: List[Any], what: str) -> None:
    if not rows:
        logger.warning(f"Ingestion rejected: empty {what} batch")
        raise HTTPException(
            status_code=400,
            detail=f"No {what} rows provided"
        )


# =============================================================================
# POST /ingest/complaints/{date}
# =============================================================================


@router.post("/complaints/{date}", response_model=IngestionResult)
async def ingest_complaints(
    date: str,
    complaints: List[Complaint] = Body(...),
    replaceAll: Annotated[bool, Query(description="Replace the whole complaint event log with this batch")] = False,
) -> IngestionResult:
    """
    Store the complaint batch of one date.

    The batch replaces any earlier batch for the same date, in the daily
    document and in the complaint event log: events of the earlier batch are
    removed from the log before the new ones are appended. Events already in
    the log (same contract, client, housemaid, type and creation time) are not
    duplicated. With `replaceAll` the log is replaced by this batch.

    Example Request:
        POST /ingest/complaints/2026-01-29
        [
            {
                "contractId": "1086364",
                "housemaidId": "12345",
                "clientId": "67890",
                "complaintType": "overseas employment certificate",
                "creationDate": "2026-01-29 21:00:35.000"
            }
        ]
    """
    require_date(date, 'date')
    _reject_empty(complaints, 'complaint')

    try:
        accepted, errors = normalize_complaints(complaints)
        new_events = complaints_to_events(accepted)

        if replaceAll:
            log: List[RawEvent] = []
            removed = len(await load_complaint_events(strict=True))
        else:
            previous = await repository.load_document(repository.daily_complaints_key(date))
            log = await load_complaint_events(strict=True)
            stale_ids = set()
            if previous is not None:
                previous_batch = DailyComplaints.model_validate(previous).complaints
                stale_ids = {event.id for event in complaints_to_events(previous_batch)}
                stale_ids -= {event.id for event in new_events}
            removed = sum(1 for event in log if event.id in stale_ids)
            log = [event for event in log if event.id not in stale_ids]

        known_ids = {event.id for event in log}
        appended = 0
        for event in new_events:
            if event.id in known_ids:
                continue
            known_ids.add(event.id)
            log.append(event)
            appended += 1

        await repository.put_document(
            repository.daily_complaints_key(date),
            build_daily_complaints(date, accepted).model_dump(mode='json'),
        )
        await repository.put_document(
            repository.COMPLAINT_EVENTS_KEY,
            [event.model_dump(mode='json') for event in log],
        )
    except Exception as e:
        logger.error(f"Error ingesting complaints for {date}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to ingest complaints"
        )

    logger.info(
        f"Ingested {len(accepted)} complaints for {date}, "
        f"{appended} new events, {removed} events removed, {len(errors)} rejected rows"
    )

    return IngestionResult(
        success=True,
        rows_processed=len(complaints),
        rows_affected=len(accepted),
        errors=errors,
    )


# =============================================================================
# POST /ingest/payments
# =============================================================================


@router.post("/payments", response_model=IngestionResult)
async def ingest_payments(
    raw_payments: List[RawPayment] = Body(...),
) -> IngestionResult:
    """
    Normalize a billing export and replace the stored payment set.

    Accepts both the upper-case export headers (CONTRACT_ID, DATE_OF_PAYMENT,
    ...) and camelCase field names.
    """
    _reject_empty(raw_payments, 'payment')

    try:
        payments, errors = process_payments(raw_payments)
        await repository.put_document(
            repository.PAYMENTS_KEY,
            build_payment_data(payments).model_dump(mode='json'),
        )
    except Exception as e:
        logger.error(f"Error ingesting payments: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to ingest payments"
        )

    return IngestionResult(
        success=True,
        rows_processed=len(raw_payments),
        rows_affected=len(payments),
        errors=errors,
    )


# =============================================================================
# POST /ingest/todos
# =============================================================================


@router.post("/todos", response_model=IngestionResult)
async def ingest_todos(
    settings: SettingsDep,
    rows: List[Dict[str, Any]] = Body(...),
    replaceAll: Annotated[bool, Query(description="Rebuild overseas sales from this batch alone")] = False,
) -> IngestionResult:
    """
    Merge to-do export rows into the overseas sales document.

    Only overseas employment certificate rows are kept. `rows_affected` is the
    number of events that were new to the event log. With `replaceAll` the
    stored event log is discarded and sales are rebuilt from this batch.
    """
    _reject_empty(rows, 'to-do')

    try:
        events = parse_todo_rows(rows)
        existing = None if replaceAll else await load_overseas_sales(strict=True)
        merged = merge_overseas_sales(existing, events, settings.sale_window_months)

        previous_total = existing.totalRawEvents if existing else 0
        added = merged.totalRawEvents - previous_total
        if merged is not existing:
            await repository.put_document(
                repository.OVERSEAS_SALES_KEY,
                merged.model_dump(mode='json'),
            )
    except Exception as e:
        logger.error(f"Error ingesting to-dos: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to ingest to-dos"
        )

    logger.info(f"Merged {added} new overseas to-dos; {merged.totalDedupedSales} sales in total")

    return IngestionResult(
        success=True,
        rows_processed=len(rows),
        rows_affected=added,
    )


# =============================================================================
# POST /ingest/prospects/{date}
# =============================================================================


@router.post("/prospects/{date}", response_model=IngestionResult)
async def ingest_prospects(
    date: str,
    prospects: List[Prospect] = Body(...),
) -> IngestionResult:
    """Store classified prospects for a date, replacing any earlier upload."""
    require_date(date, 'date')
    _reject_empty(prospects, 'prospect')

    try:
        await repository.put_document(
            repository.daily_prospects_key(date),
            build_daily_prospects(date, prospects).model_dump(mode='json'),
        )
    except Exception as e:
        logger.error(f"Error ingesting prospects for {date}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to ingest prospects"
        )

    return IngestionResult(
        success=True,
        rows_processed=len(prospects),
        rows_affected=len(prospects),
    )


# =============================================================================
# POST /ingest/nps
# =============================================================================


@router.post("/nps", response_model=IngestionResult)
async def ingest_nps(
    settings: SettingsDep,
    days: Dict[str, NPSDayData] = Body(...),
) -> IngestionResult:
    """
    Replace the stored NPS survey results.

    The body is the survey export keyed by day ("Feb 9" or "2026-02-09").
    Days whose key is not a date are reported in `errors` and not stored.

    Example Request:
        POST /ingest/nps
        {
            "Feb 9": {
                "date": "Feb 9",
                "scores": [
                    {"nps_score": 10, "services": {"TOTAL": 14, "OEC": 6}},
                    {"nps_score": 3, "services": {"TOTAL": 2, "OEC": 1}}
                ]
            }
        }
    """
    _reject_empty(list(days), 'NPS day')

    try:
        accepted, errors = validate_nps_days(days, settings.nps_year)
        await repository.put_document(
            repository.NPS_KEY,
            {key: day.model_dump(mode='json') for key, day in accepted.items()},
        )
    except Exception as e:
        logger.error(f"Error ingesting NPS data: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to ingest NPS data"
        )

    logger.info(f"Stored NPS data for {len(accepted)} days, {len(errors)} rejected")

    return IngestionResult(
        success=True,
        rows_processed=len(days),
        rows_affected=len(accepted),
        errors=errors,
    )
