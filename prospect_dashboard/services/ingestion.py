"""
Batch normalization for complaint, payment, to-do and prospect uploads.

Each upstream export is loaded into a pandas DataFrame, validated for required
columns and per-row completeness, de-duplicated on its natural grain, and
converted to the typed models used by the rest of the service. Rejected rows
are reported as ValidationError records (1-based row numbers) instead of
failing the whole batch.

Batches:
- Complaints: grain contract + client + housemaid + complaint type + creation date
- Payments: grain contract + payment type + payment date
- To-dos: filtered to Overseas Employment Certificate rows, column aliases resolved
- Prospects: stored as classified, keyed by date
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from prospect_dashboard.models import (
    Complaint,
    DailyComplaints,
    DailyProspects,
    EventSource,
    Payment,
    PaymentData,
    PaymentStatus,
    Prospect,
    RawEvent,
    RawPayment,
    ServiceKey,
    ValidationError,
)
from prospect_dashboard.services.dates import parse_timestamp, to_date_str
from prospect_dashboard.services.service_keys import (
    label_to_service_key,
    payment_type_to_service_key,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Required Columns and Grains
# =============================================================================

COMPLAINT_REQUIRED_COLUMNS: List[str] = ['complaintType', 'creationDate']

COMPLAINT_GRAIN: List[str] = [
    'contractId',
    'clientId',
    'housemaidId',
    'complaintType',
    'creationDate',
]

PAYMENT_REQUIRED_COLUMNS: List[str] = ['contractId', 'status', 'dateOfPayment']

PAYMENT_GRAIN: List[str] = ['contractId', 'paymentType', 'dateOfPayment']

# Accepted header spellings in to-do exports, first match wins
TODO_COLUMN_ALIASES: Dict[str, List[str]] = {
    'id': ['id', 'todo_id', 'todoId', 'ID', 'TODO_ID'],
    'todoName': [
        'COMPLAINT_TYPE', 'complaint_type', 'complaintType', 'Complaint Type',
        'name', 'todo_name', 'todoName', 'NAME', 'TODO_NAME', 'Todo Name',
        'type', 'TYPE', 'Type',
    ],
    'contractId': ['CONTRACT_ID', 'contract_id', 'contractId', 'Contract ID'],
    'clientId': ['CLIENT_ID', 'client_id', 'clientId', 'Client ID'],
    'housemaidId': [
        'HOUSEMAID_ID', 'housemaid_id', 'housemaidId',
        'MAID_ID', 'maid_id', 'maidId', 'Maid Id',
    ],
    'createdAt': [
        'CREATION_DATE', 'creation_date', 'creationDate',
        'created_at', 'createdAt', 'CREATED_AT', 'date', 'DATE',
    ],
}


# =============================================================================
# Helpers
# =============================================================================


def _clean_str(value: Any) -> str:
    """Render a cell as a trimmed string; NaN/None become ''."""
    if value is None:
        return ''
    if isinstance(value, float):
        if pd.isna(value):
            return ''
        # Numeric ids read from CSV come back as floats
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _to_frame(rows: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), dtype=object)


def validate_columns(df: pd.DataFrame, required_columns: List[str]) -> List[ValidationError]:
    """
    Validate that all required columns are present in the DataFrame.

    Matching is case-insensitive.
    """
    errors: List[ValidationError] = []
    df_columns = {str(col).lower() for col in df.columns}

    for col in required_columns:
        if col.lower() not in df_columns:
            errors.append(ValidationError(
                field=col,
                message=f"Required column '{col}' is missing",
                row_number=None,
            ))

    return errors


def _blank_mask(df: pd.DataFrame, column: str) -> pd.Series:
    return df[column].map(_clean_str) == ''


def _report_rows(mask: pd.Series, field: str, message: str) -> List[ValidationError]:
    # Convert 0-based DataFrame index to 1-based row number
    return [
        ValidationError(field=field, message=message, row_number=int(index) + 1)
        for index in mask[mask].index
    ]


# =============================================================================
# Complaints
# =============================================================================


def normalize_complaints(
    complaints: List[Complaint],
) -> Tuple[List[Complaint], List[ValidationError]]:
    """
    Validate and de-duplicate a complaint batch and resolve service keys.

    Rows with an empty or unparseable creation date are rejected. Rows whose
    complaint type is outside the taxonomy are kept with serviceKey=None so
    the daily batch still reflects everything received.

    Returns:
        (accepted complaints, validation errors)
    """
    if not complaints:
        return [], []

    df = _to_frame(c.model_dump() for c in complaints)
    errors: List[ValidationError] = []

    undated = df['creationDate'].map(lambda v: parse_timestamp(_clean_str(v)) is None)
    errors.extend(_report_rows(undated, 'creationDate', 'Missing or unparseable creation date'))
    df = df[~undated]

    duplicated = df.duplicated(subset=COMPLAINT_GRAIN, keep='first')
    if duplicated.any():
        logger.info(f"Dropped {int(duplicated.sum())} duplicate complaint rows")
    df = df[~duplicated]

    accepted = []
    for row in df.to_dict(orient='records'):
        row['serviceKey'] = row.get('serviceKey') or label_to_service_key(row['complaintType'])
        accepted.append(Complaint(**row))

    logger.info(f"Normalized {len(accepted)} of {len(complaints)} complaints")
    return accepted, errors


def build_daily_complaints(date_str: str, complaints: List[Complaint]) -> DailyComplaints:
    return DailyComplaints(
        date=date_str,
        lastUpdated=datetime.utcnow().isoformat(),
        complaints=complaints,
        totalComplaints=len(complaints),
    )


# =============================================================================
# Payments
# =============================================================================


def normalize_payment_status(status: Optional[str]) -> PaymentStatus:
    """
    Map a raw billing status to PaymentStatus.

    >>> normalize_payment_status("RECEIVED")
    <PaymentStatus.RECEIVED: 'received'>
    """
    normalized = (status or '').lower().strip()
    if normalized == 'received':
        return PaymentStatus.RECEIVED
    if normalized == 'pre_pdp':
        return PaymentStatus.PRE_PDP
    return PaymentStatus.OTHER


def parse_payment_amount(amount: Any) -> float:
    """
    Parse a payment amount, stripping currency symbols, commas and spaces.

    Missing or unparseable amounts are 0.
    """
    if amount is None or amount == '':
        return 0.0
    if isinstance(amount, (int, float)):
        return 0.0 if pd.isna(amount) else float(amount)

    cleaned = re.sub(r'[^0-9.\-]', '', str(amount))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def process_payments(
    raw_payments: List[RawPayment],
) -> Tuple[List[Payment], List[ValidationError]]:
    """
    Normalize a billing export.

    Steps:
    1. Reject rows missing contract id, status or payment date
    2. Reject rows whose payment date cannot be parsed
    3. Drop duplicates on contract + payment type + payment date
    4. Map payment type to ServiceKey, normalize status, parse amount

    Returns:
        (payments, validation errors)
    """
    if not raw_payments:
        return [], []

    df = _to_frame(p.model_dump() for p in raw_payments)
    errors: List[ValidationError] = []

    for column in PAYMENT_REQUIRED_COLUMNS:
        missing = _blank_mask(df, column)
        errors.extend(_report_rows(missing, column, f"Missing {column}"))
        df = df[~missing]

    payment_dates = df['dateOfPayment'].map(lambda v: parse_timestamp(_clean_str(v)))
    undated = payment_dates.isna()
    errors.extend(_report_rows(undated, 'dateOfPayment', 'Unparseable payment date'))
    df = df[~undated].copy()
    df['dateOfPayment'] = payment_dates[~undated].map(to_date_str)

    for column in ('contractId', 'paymentType'):
        df[column] = df[column].map(_clean_str)

    duplicated = df.duplicated(subset=PAYMENT_GRAIN, keep='first')
    if duplicated.any():
        logger.info(f"Dropped {int(duplicated.sum())} duplicate payment rows")
    df = df[~duplicated]

    payments = [
        Payment(
            paymentType=row['paymentType'],
            creationDate=_clean_str(row.get('creationDate')),
            contractId=row['contractId'],
            clientId=_clean_str(row.get('clientId')),
            status=normalize_payment_status(_clean_str(row['status'])),
            dateOfPayment=row['dateOfPayment'],
            service=payment_type_to_service_key(row['paymentType']),
            amountOfPayment=parse_payment_amount(row.get('amountOfPayment')),
        )
        for row in df.to_dict(orient='records')
    ]

    logger.info(f"Processed {len(payments)} of {len(raw_payments)} payment rows")
    return payments, errors


def build_payment_data(payments: List[Payment]) -> PaymentData:
    return PaymentData(
        uploadDate=datetime.utcnow().isoformat(),
        totalPayments=len(payments),
        receivedPayments=sum(1 for p in payments if p.status == PaymentStatus.RECEIVED),
        payments=payments,
    )


def filter_payments_by_date(
    payments: Iterable[Payment],
    date_str: str,
    status: Optional[PaymentStatus] = PaymentStatus.RECEIVED,
) -> List[Payment]:
    """
    Payments made on a calendar date, optionally restricted to one status.

    Pass status=None to keep every status.
    """
    return [
        payment
        for payment in payments
        if payment.dateOfPayment[:10] == date_str
        and (status is None or payment.status == status)
    ]


# =============================================================================
# To-dos
# =============================================================================


def is_overseas_sale(todo_name: Optional[str]) -> bool:
    """
    Whether a to-do names an Overseas Employment Certificate sale.

    Matches "Overseas Employment Certificate", anything containing
    "overseas employment", and the bare labels "overseas" and "oec".
    """
    name = (todo_name or '').lower().strip()
    return (
        name == 'overseas employment certificate'
        or 'overseas employment' in name
        or name == 'overseas'
        or name == 'oec'
    )


def _resolve_alias_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Project a to-do export onto canonical column names."""
    resolved = pd.DataFrame(index=df.index)
    for canonical, aliases in TODO_COLUMN_ALIASES.items():
        source = next((alias for alias in aliases if alias in df.columns), None)
        resolved[canonical] = df[source].map(_clean_str) if source else ''
    return resolved


def parse_todo_rows(rows: List[Dict[str, Any]]) -> List[RawEvent]:
    """
    Convert to-do export rows into OEC raw events.

    Header spellings are resolved through TODO_COLUMN_ALIASES. Rows that are
    not overseas-employment-certificate sales are dropped. Rows without an id
    get `todo_{row index}`.
    """
    if not rows:
        return []

    df = _resolve_alias_columns(_to_frame(rows))
    overseas = df['todoName'].map(is_overseas_sale)
    df = df[overseas]

    events = [
        RawEvent(
            id=row['id'] or f"todo_{index}",
            contractId=row['contractId'],
            clientId=row['clientId'],
            maidId=row['housemaidId'],
            serviceKey=ServiceKey.OEC,
            label=row['todoName'],
            occurredAt=row['createdAt'] or None,
            source=EventSource.TODO,
        )
        for index, row in df.iterrows()
    ]

    logger.info(f"Parsed {len(events)} overseas to-dos from {len(rows)} rows")
    return events


# =============================================================================
# Prospects
# =============================================================================


def build_daily_prospects(date_str: str, prospects: List[Prospect]) -> DailyProspects:
    return DailyProspects(
        date=date_str,
        lastUpdated=datetime.utcnow().isoformat(),
        prospects=prospects,
    )
