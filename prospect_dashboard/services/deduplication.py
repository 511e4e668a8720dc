"""
Sale Deduplicator.

Raw events (to-do rows, complaint rows) are grouped by identity key
(service + contract + client + maid). Within a group, events are walked in
chronological order and assigned to sale periods: an event joins the first
period whose start is less than `sale_window_months` calendar months before
it, otherwise it opens a new period. Each period is one sale.

Periods are never merged or re-evaluated once created, and the assignment is
a pure function of the event set, so re-running over the same events gives
the same result. Merges re-run the algorithm over the full persisted event log
plus the new batch.

Two consumers:
- Overseas sales (to-do stream): one OverseasSale per identity group.
- Complaint sales: one ComplaintSale per sale period, aggregated per service.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from prospect_dashboard.core.config import get_settings
from prospect_dashboard.models.enums import EventSource, ServiceKey
from prospect_dashboard.models.schemas import (
    Complaint,
    ComplaintSale,
    ComplaintSalesData,
    ComplaintSalesSummary,
    OverseasSale,
    OverseasSalesData,
    RawEvent,
    ServiceSales,
)
from prospect_dashboard.services.dates import (
    day_bounds,
    in_range,
    is_within_months,
    month_key,
    parse_timestamp,
    to_iso,
)
from prospect_dashboard.services.service_keys import (
    ALL_SERVICE_KEYS,
    SERVICE_NAMES,
    label_to_service_key,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Sale Periods
# =============================================================================


@dataclass
class SalePeriod:
    """
    A window of events counted as one sale.

    Attributes:
        start: Timestamp of the event that opened the period.
        end: Latest event timestamp absorbed so far.
        member_event_ids: Ids of absorbed events, in absorption order.
        member_dates: Timestamps of absorbed events, in absorption order.
    """
    start: pd.Timestamp
    end: pd.Timestamp
    member_event_ids: List[str] = field(default_factory=list)
    member_dates: List[pd.Timestamp] = field(default_factory=list)

    def absorb(self, event_id: str, ts: pd.Timestamp) -> None:
        self.member_event_ids.append(event_id)
        self.member_dates.append(ts)
        if ts > self.end:
            self.end = ts


def _window_months(window_months: Optional[int]) -> int:
    if window_months is None:
        return get_settings().sale_window_months
    return window_months


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def build_identity_key(event: RawEvent) -> str:
    """
    Composite grouping key: service + contract + client + maid.

    Missing parts are replaced by placeholders so that, for example, an empty
    contract id never collides with a contract literally named "".

    Example:
        >>> build_identity_key(RawEvent(id="1", contractId="1086364",
        ...     clientId="67890", maidId="12345", serviceKey=ServiceKey.OEC))
        'oec_1086364_67890_12345'
    """
    service = event.serviceKey.value if event.serviceKey else 'unknown'
    return (
        f"{service}_{event.contractId or 'no-contract'}"
        f"_{event.clientId or 'no-client'}_{event.maidId or 'no-housemaid'}"
    )


def group_events(events: Iterable[RawEvent]) -> Dict[str, List[RawEvent]]:
    """Partition events by identity key, keeping input order within a group."""
    groups: Dict[str, List[RawEvent]] = {}
    for event in events:
        groups.setdefault(build_identity_key(event), []).append(event)
    return groups


def sort_dated_events(events: Iterable[RawEvent]) -> List[Tuple[pd.Timestamp, RawEvent]]:
    """
    Parse timestamps and sort ascending.

    Events without a parseable `occurredAt` are dropped. Python's sort is
    stable, so events sharing a timestamp keep their input order.
    """
    dated = []
    for event in events:
        ts = parse_timestamp(event.occurredAt)
        if ts is None:
            logger.debug(f"Skipping event {event.id}: unparseable timestamp {event.occurredAt!r}")
            continue
        dated.append((ts, event))
    return sorted(dated, key=lambda pair: pair[0])


def assign_sale_periods(
    dated_events: List[Tuple[pd.Timestamp, RawEvent]],
    window_months: Optional[int] = None,
) -> List[SalePeriod]:
    """
    Walk chronologically sorted events and assign each to a sale period.

    An event joins the first period (in creation order) whose start lies less
    than `window_months` calendar months before it; otherwise it opens a new
    period.

    Args:
        dated_events: Output of sort_dated_events() for one identity group.
        window_months: Window length; defaults to settings.sale_window_months.

    Returns:
        Sale periods in creation order.
    """
    months = _window_months(window_months)
    periods: List[SalePeriod] = []

    for ts, event in dated_events:
        for period in periods:
            if is_within_months(period.start, ts, months):
                period.absorb(event.id, ts)
                break
        else:
            period = SalePeriod(start=ts, end=ts)
            period.absorb(event.id, ts)
            periods.append(period)

    return periods


# =============================================================================
# Overseas Sales (to-do stream)
# =============================================================================


def deduplicate_sales(
    events: List[RawEvent],
    window_months: Optional[int] = None,
    updated_at: Optional[str] = None,
) -> OverseasSalesData:
    """
    Collapse raw events into one OverseasSale per identity group.

    Args:
        events: Raw events; the list is persisted as-is in the result so later
            merges can re-run over it.
        window_months: Window length; defaults to settings.sale_window_months.
        updated_at: Value for `lastUpdated`; defaults to now (UTC).

    Returns:
        OverseasSalesData with sales in first-seen group order and a
        sales-by-month histogram keyed by the month of each period start.
    """
    months = _window_months(window_months)
    sales: List[OverseasSale] = []
    sales_by_month: Dict[str, int] = {}
    total_deduped = 0

    for identity_key, members in group_events(events).items():
        dated = sort_dated_events(members)
        if not dated:
            continue

        periods = assign_sale_periods(dated, months)
        total_deduped += len(periods)

        for period in periods:
            bucket = month_key(period.start)
            sales_by_month[bucket] = sales_by_month.get(bucket, 0) + 1

        head = members[0]
        sales.append(OverseasSale(
            id=f"sale_{identity_key}",
            identityKey=identity_key,
            serviceKey=head.serviceKey,
            contractId=head.contractId,
            clientId=head.clientId,
            maidId=head.maidId,
            firstSaleDate=to_iso(dated[0][0]),
            lastSaleDate=to_iso(dated[-1][0]),
            occurrenceCount=len(dated),
            deduplicatedCount=len(periods),
            periodStartDates=[to_iso(p.start) for p in periods],
            relatedEventIds=[event.id for _, event in dated],
        ))

    logger.info(
        f"Deduplicated {len(events)} events into {total_deduped} sales "
        f"across {len(sales)} identities"
    )

    return OverseasSalesData(
        lastUpdated=updated_at or _now_iso(),
        totalRawEvents=len(events),
        totalDedupedSales=total_deduped,
        sales=sales,
        salesByMonth=dict(sorted(sales_by_month.items())),
        events=list(events),
    )


def merge_overseas_sales(
    existing: Optional[OverseasSalesData],
    new_events: List[RawEvent],
    window_months: Optional[int] = None,
) -> OverseasSalesData:
    """
    Merge a new batch of events into persisted overseas sales.

    Events whose id is already in the persisted log are ignored. When nothing
    is new the existing data is returned unchanged; otherwise the full union
    is deduplicated again.
    """
    if existing is None:
        return deduplicate_sales(_unique_by_id(new_events), window_months)

    known_ids = {event.id for event in existing.events}
    fresh = [event for event in _unique_by_id(new_events) if event.id not in known_ids]

    if not fresh:
        logger.info("No new events to merge into overseas sales")
        return existing

    logger.info(f"Merging {len(fresh)} new events into {len(existing.events)} logged events")
    return deduplicate_sales(existing.events + fresh, window_months)


def _unique_by_id(events: Iterable[RawEvent]) -> List[RawEvent]:
    seen = set()
    unique = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def get_sales_in_range(
    data: Optional[OverseasSalesData],
    start_date: Optional[str],
    end_date: Optional[str],
) -> int:
    """
    Count sale periods that started inside an inclusive date range.

    A date-only end bound covers the whole day. A missing bound is open.
    """
    if data is None:
        return 0

    start, end = day_bounds(start_date, end_date)
    count = 0
    for sale in data.sales:
        for period_start in sale.periodStartDates:
            ts = parse_timestamp(period_start)
            if ts is not None and in_range(ts, start, end):
                count += 1
    return count


# =============================================================================
# Complaint Sales
# =============================================================================


def complaint_event_id(complaint: Complaint) -> str:
    """Deterministic id so re-ingesting a batch does not duplicate the log."""
    return (
        f"complaint_{complaint.contractId}_{complaint.clientId}_{complaint.housemaidId}"
        f"_{complaint.complaintType.lower()}_{complaint.creationDate}"
    )


def complaints_to_events(complaints: Iterable[Complaint]) -> List[RawEvent]:
    """Normalize complaint records into raw events, resolving the service key."""
    return [
        RawEvent(
            id=complaint_event_id(complaint),
            contractId=complaint.contractId,
            clientId=complaint.clientId,
            maidId=complaint.housemaidId,
            serviceKey=complaint.serviceKey or label_to_service_key(complaint.complaintType),
            label=complaint.complaintType,
            occurredAt=complaint.creationDate or None,
            source=EventSource.COMPLAINT,
        )
        for complaint in complaints
    ]


def _empty_service_sales(service_key: ServiceKey) -> ServiceSales:
    return ServiceSales(serviceKey=service_key, serviceName=SERVICE_NAMES[service_key])


def process_complaint_events(
    events: List[RawEvent],
    window_months: Optional[int] = None,
    updated_at: Optional[str] = None,
) -> ComplaintSalesData:
    """
    Deduplicate complaint events into per-service sales.

    Events without a ServiceKey are dropped; they only count towards
    `rawComplaintsCount`. Every ServiceKey is present in the result, with
    zeroed figures when it has no sales.
    """
    months = _window_months(window_months)
    services = {key: _empty_service_sales(key) for key in ALL_SERVICE_KEYS}
    all_clients = set()
    all_contracts = set()

    tracked = [event for event in events if event.serviceKey is not None]
    if len(tracked) < len(events):
        logger.info(f"Dropped {len(events) - len(tracked)} complaints with untracked types")

    for identity_key, members in group_events(tracked).items():
        dated = sort_dated_events(members)
        if not dated:
            continue

        head = members[0]
        service_sales = services[head.serviceKey]
        periods = assign_sale_periods(dated, months)

        service_sales.totalComplaints += len(dated)
        service_sales.uniqueSales += len(periods)
        if head.clientId:
            all_clients.add(head.clientId)
        if head.contractId:
            all_contracts.add(head.contractId)

        for period in periods:
            start_iso = to_iso(period.start)
            bucket = month_key(period.start)
            service_sales.byMonth[bucket] = service_sales.byMonth.get(bucket, 0) + 1
            service_sales.sales.append(ComplaintSale(
                id=f"sale_{identity_key}_{start_iso[:10]}",
                serviceKey=head.serviceKey,
                contractId=head.contractId,
                clientId=head.clientId,
                housemaidId=head.maidId,
                firstSaleDate=start_iso,
                lastSaleDate=to_iso(period.end),
                occurrenceCount=len(period.member_dates),
                complaintDates=[to_iso(ts) for ts in period.member_dates],
            ))

    for service_sales in services.values():
        service_sales.uniqueClients = len({s.clientId for s in service_sales.sales if s.clientId})
        service_sales.uniqueContracts = len({s.contractId for s in service_sales.sales if s.contractId})
        service_sales.byMonth = dict(sorted(service_sales.byMonth.items()))

    summary = ComplaintSalesSummary(
        totalUniqueSales=sum(s.uniqueSales for s in services.values()),
        totalUniqueClients=len(all_clients),
        totalUniqueContracts=len(all_contracts),
    )

    return ComplaintSalesData(
        lastUpdated=updated_at or _now_iso(),
        rawComplaintsCount=len(events),
        services={key.value: value for key, value in services.items()},
        summary=summary,
    )


def process_complaint_sales(
    complaints: List[Complaint],
    window_months: Optional[int] = None,
) -> ComplaintSalesData:
    """Deduplicate complaint records into per-service sales."""
    return process_complaint_events(complaints_to_events(complaints), window_months)


def clear_complaints_in_range(
    events: List[RawEvent],
    start_date: Optional[str],
    end_date: Optional[str],
    window_months: Optional[int] = None,
) -> Tuple[List[RawEvent], ComplaintSalesData]:
    """
    Remove complaint events dated inside a range and recompute sales.

    Events without a parseable timestamp are kept. With neither bound given
    nothing is removed.

    Returns:
        (remaining events, recomputed complaint sales)
    """
    if not start_date and not end_date:
        return list(events), process_complaint_events(events, window_months)

    start, end = day_bounds(start_date, end_date)
    remaining = []
    for event in events:
        ts = parse_timestamp(event.occurredAt)
        if ts is not None and in_range(ts, start, end):
            continue
        remaining.append(event)

    logger.info(f"Cleared {len(events) - len(remaining)} complaint events in range {start_date}..{end_date}")
    return remaining, process_complaint_events(remaining, window_months)
