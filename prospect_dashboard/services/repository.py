"""
JSON document repository over PostgreSQL.

Every persisted artifact of the dashboard is a JSON document stored under a
path-like key in the `json_document` table. Report reads (`get_document`)
degrade to the caller's default when the document is missing or the store is
unreachable. Read-modify-write paths use `load_document`, which raises on
storage errors, so a failed read is never written back as an empty document.
Writes propagate errors to the caller.

Document keys:
- complaints-daily/{YYYY-MM-DD}: DailyComplaints batch
- complaints/events: full complaint event log (list of RawEvent)
- payments/processed: PaymentData
- prospects-daily/{YYYY-MM-DD}: DailyProspects
- sales/overseas: OverseasSalesData (includes the to-do event log)
- config/pnl-history: PnLConfigHistory
- nps/scores: survey day key -> NPSDayData
"""

import json
import logging
from typing import Any

import asyncpg

from prospect_dashboard.core.database import (
    execute_command,
    execute_query_one,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Document Keys
# =============================================================================

COMPLAINTS_DAILY_PREFIX: str = 'complaints-daily/'
COMPLAINT_EVENTS_KEY: str = 'complaints/events'
PAYMENTS_KEY: str = 'payments/processed'
PROSPECTS_DAILY_PREFIX: str = 'prospects-daily/'
OVERSEAS_SALES_KEY: str = 'sales/overseas'
PNL_CONFIG_KEY: str = 'config/pnl-history'
NPS_KEY: str = 'nps/scores'


def daily_complaints_key(date_str: str) -> str:
    return f"{COMPLAINTS_DAILY_PREFIX}{date_str}"


def daily_prospects_key(date_str: str) -> str:
    return f"{PROSPECTS_DAILY_PREFIX}{date_str}"


# =============================================================================
# Reads
# =============================================================================

async def load_document(key: str, default: Any = None) -> Any:
    """
    Load a JSON document by key, propagating storage errors.

    Returns:
        The decoded JSON payload, or `default` when the document does not exist.

    Raises:
        asyncpg.PostgresError: If the read fails.
    """
    row = await execute_query_one(
        "SELECT payload FROM json_document WHERE key = $1",
        key,
    )

    if row is None:
        logger.warning(f"Document not found: {key}")
        return default

    payload = row['payload']
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(payload, str):
        return json.loads(payload)
    return payload


async def get_document(key: str, default: Any = None) -> Any:
    """
    Load a JSON document by key for reporting.

    Args:
        key: Document key.
        default: Value returned when the document does not exist or the
            store cannot be read.

    Returns:
        The decoded JSON payload, or `default`.
    """
    try:
        return await load_document(key, default)
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"Failed to read document {key}: {e}")
        return default


# =============================================================================
# Writes
# =============================================================================

async def put_document(key: str, payload: Any) -> None:
    """
    Insert or replace a JSON document.

    Raises:
        asyncpg.PostgresError: If the write fails.
    """
    await execute_command(
        """
        INSERT INTO json_document (key, payload, updated_at)
        VALUES ($1, $2::jsonb, now())
        ON CONFLICT (key) DO UPDATE
        SET payload = EXCLUDED.payload,
            updated_at = EXCLUDED.updated_at
        """,
        key,
        json.dumps(payload),
    )

    logger.info(f"Stored document {key}")
