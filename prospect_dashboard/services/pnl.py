"""
Profit-and-loss computation and configuration history.

Unit costs, service fees and monthly fixed costs are held in an
effective-dated history of configuration snapshots. A sale is priced with the
snapshot in force on its first sale date, so a price change never reprices
earlier sales.

Components:
- DEFAULT_CONFIG_HISTORY / default_config_history(): built-in snapshots
- get_config_for_date(): pure snapshot lookup
- PnLConfigStore: history persisted in the document repository, injected
  into request handlers
- create_service_pnl() / compute_pnl(): volume x price arithmetic

Formulas:
    totalCost    = volume * unitCost
    totalRevenue = volume * (unitCost + serviceFee)
    grossProfit  = totalRevenue - totalCost
    fixedCosts   = monthly fixed costs * calendar months in range
    netProfit    = sum(grossProfit) - fixedCosts.total
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from prospect_dashboard.models.enums import ServiceKey
from prospect_dashboard.models.schemas import (
    AggregatedPnL,
    ComplaintSalesData,
    FixedCosts,
    FixedCostsTotal,
    PnLConfigHistory,
    PnLConfigSnapshot,
    PnLConfigUpdate,
    PnLSummary,
    ServiceConfig,
    ServicePnL,
)
from prospect_dashboard.services import repository
from prospect_dashboard.services.dates import (
    day_bounds,
    in_range,
    months_in_range,
    parse_timestamp,
    to_date_str,
)
from prospect_dashboard.services.service_keys import ALL_SERVICE_KEYS, SERVICE_NAMES


logger = logging.getLogger(__name__)


# =============================================================================
# Built-in Configuration
# =============================================================================

PRICE_CHANGE_DATE: str = '2026-02-22'

DEFAULT_UNIT_COSTS: Dict[ServiceKey, float] = {
    ServiceKey.OEC: 61.5,
    ServiceKey.OWWA: 92,
    ServiceKey.TTL: 400,
    ServiceKey.TTL_SINGLE: 425,
    ServiceKey.TTL_DOUBLE: 565,
    ServiceKey.TTL_MULTIPLE: 745,
    ServiceKey.TTE: 400,
    ServiceKey.TTE_SINGLE: 370,
    ServiceKey.TTE_DOUBLE: 520,
    ServiceKey.TTE_MULTIPLE: 470,
    ServiceKey.TTJ: 320,
    ServiceKey.SCHENGEN: 0,
    ServiceKey.GCC: 220,
    ServiceKey.ETHIOPIAN_PP: 1330,
    ServiceKey.FILIPINA_PP: 0,
}

# Service fees introduced on PRICE_CHANGE_DATE; all fees were 0 before
PRICE_CHANGE_SERVICE_FEES: Dict[ServiceKey, float] = {
    ServiceKey.TTL_SINGLE: 100,
    ServiceKey.TTL_DOUBLE: 100,
    ServiceKey.TTL_MULTIPLE: 100,
    ServiceKey.TTE: 100,
    ServiceKey.TTE_SINGLE: 100,
    ServiceKey.TTE_MULTIPLE: 100,
    ServiceKey.TTJ: 100,
    ServiceKey.SCHENGEN: 100,
    ServiceKey.ETHIOPIAN_PP: 120,
}

DEFAULT_FIXED_COSTS = FixedCosts(laborCost=55000, llm=3650, proTransportation=2070)


def _snapshot(
    effective_date: str,
    fees: Dict[ServiceKey, float],
    updated_by: Optional[str] = None,
) -> PnLConfigSnapshot:
    return PnLConfigSnapshot(
        effectiveDate=effective_date,
        updatedAt=datetime.utcnow().isoformat(),
        updatedBy=updated_by,
        services={
            key.value: ServiceConfig(unitCost=DEFAULT_UNIT_COSTS[key], serviceFee=fees.get(key, 0))
            for key in ALL_SERVICE_KEYS
        },
        fixedCosts=DEFAULT_FIXED_COSTS.model_copy(),
    )


def default_config_history(default_effective_date: str = '2024-01-01') -> PnLConfigHistory:
    """
    Built-in history: baseline prices from `default_effective_date` so all
    historical data is priced, then the February 2026 fee change.
    """
    configurations = [_snapshot(default_effective_date, {}, updated_by='system')]
    if PRICE_CHANGE_DATE > default_effective_date:
        configurations.append(_snapshot(PRICE_CHANGE_DATE, PRICE_CHANGE_SERVICE_FEES, updated_by='system'))
    return PnLConfigHistory(configurations=configurations)


DEFAULT_CONFIG_HISTORY: PnLConfigHistory = default_config_history()


def get_config_for_date(history: PnLConfigHistory, date_str: str) -> PnLConfigSnapshot:
    """
    Snapshot in force on a date.

    Returns the newest snapshot with effectiveDate <= date; the oldest
    snapshot when the date precedes all of them; the built-in baseline when
    the history is empty.
    """
    ordered = sorted(history.configurations, key=lambda s: s.effectiveDate)
    if not ordered:
        return DEFAULT_CONFIG_HISTORY.configurations[0]

    day = date_str[:10]
    for snapshot in reversed(ordered):
        if snapshot.effectiveDate <= day:
            return snapshot
    return ordered[0]


# =============================================================================
# Configuration Store
# =============================================================================


class PnLConfigStore:
    """
    P&L configuration history backed by the document repository.

    Reads fall back to the built-in history when nothing is stored or the
    stored document is invalid. Adding a snapshot reads strictly, so a
    storage error fails the update instead of replacing the history with the
    defaults. Writes propagate storage errors.
    """

    def __init__(self, default_effective_date: str = '2024-01-01'):
        self.default_effective_date = default_effective_date

    async def get_history(self, strict: bool = False) -> PnLConfigHistory:
        """
        Stored history sorted by effective date.

        With `strict`, storage errors propagate instead of reading as the
        built-in defaults.
        """
        read = repository.load_document if strict else repository.get_document
        document = await read(repository.PNL_CONFIG_KEY)
        if document is None:
            return default_config_history(self.default_effective_date)

        try:
            history = PnLConfigHistory.model_validate(document)
        except PydanticValidationError as e:
            logger.error(f"Stored P&L configuration is invalid, using defaults: {e}")
            return default_config_history(self.default_effective_date)

        if not history.configurations:
            return default_config_history(self.default_effective_date)

        history.configurations.sort(key=lambda s: s.effectiveDate)
        return history

    async def get_config_for_date(self, date_str: str) -> PnLConfigSnapshot:
        return get_config_for_date(await self.get_history(), date_str)

    async def save_history(self, history: PnLConfigHistory) -> None:
        history.configurations.sort(key=lambda s: s.effectiveDate)
        await repository.put_document(repository.PNL_CONFIG_KEY, history.model_dump(mode='json'))

    async def add_snapshot(
        self,
        update: PnLConfigUpdate,
        today: Optional[str] = None,
    ) -> PnLConfigHistory:
        """
        Add a snapshot effective from `update.effectiveDate` (default today).

        Services and fixed costs not named in the update are carried over from
        the snapshot in force on that date. A snapshot already effective on the
        same date is replaced.
        """
        effective_date = update.effectiveDate or today or date.today().isoformat()
        history = await self.get_history(strict=True)
        base = get_config_for_date(history, effective_date)

        services = {key: config.model_copy() for key, config in base.services.items()}
        for key, config in update.services.items():
            services[key.value] = config

        snapshot = PnLConfigSnapshot(
            effectiveDate=effective_date,
            updatedAt=datetime.utcnow().isoformat(),
            updatedBy=update.updatedBy,
            services=services,
            fixedCosts=update.fixedCosts or base.fixedCosts.model_copy(),
        )

        history.configurations = [
            existing for existing in history.configurations
            if existing.effectiveDate != effective_date
        ]
        history.configurations.append(snapshot)
        await self.save_history(history)

        logger.info(f"Added P&L configuration effective {effective_date} by {update.updatedBy or 'unknown'}")
        return history


# =============================================================================
# P&L Arithmetic
# =============================================================================


def create_service_pnl(
    name: str,
    volume: int,
    unit_cost: float,
    service_fee: float,
) -> ServicePnL:
    """
    P&L line for one service at a single price point.

    Example:
        >>> create_service_pnl("GCC", 2, 220, 0).totalRevenue
        440
    """
    total_cost = volume * unit_cost
    total_revenue = volume * (unit_cost + service_fee)
    return ServicePnL(
        name=name,
        volume=volume,
        price=unit_cost + service_fee,
        serviceFees=service_fee,
        totalRevenue=total_revenue,
        totalCost=total_cost,
        grossProfit=total_revenue - total_cost,
    )


def _sales_in_range(
    complaint_sales: ComplaintSalesData,
    start_date: Optional[str],
    end_date: Optional[str],
) -> List[Tuple[ServiceKey, str]]:
    """(service, first sale day) of every complaint sale starting in range."""
    start, end = day_bounds(start_date, end_date)
    selected = []
    for service_sales in complaint_sales.services.values():
        for sale in service_sales.sales:
            ts = parse_timestamp(sale.firstSaleDate)
            if ts is None or not in_range(ts, start, end):
                continue
            selected.append((sale.serviceKey, to_date_str(ts)))
    return selected


def compute_pnl(
    complaint_sales: ComplaintSalesData,
    history: PnLConfigHistory,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Tuple[AggregatedPnL, int]:
    """
    Aggregate P&L over complaint sales whose first sale date is in range.

    Each sale is priced with the snapshot in force on its first sale date.
    Per-service price and serviceFees are volume-weighted averages. Fixed
    costs use the snapshot in force at the end of the range (or the latest
    sale when no end is given), multiplied by the calendar months spanned.

    Returns:
        (aggregated P&L, months in range)
    """
    sales = _sales_in_range(complaint_sales, start_date, end_date)

    services: Dict[ServiceKey, ServicePnL] = {
        key: create_service_pnl(SERVICE_NAMES[key], 0, 0, 0) for key in ALL_SERVICE_KEYS
    }

    for service_key, sale_day in sales:
        config = get_config_for_date(history, sale_day).services.get(service_key.value, ServiceConfig())
        unit = create_service_pnl(SERVICE_NAMES[service_key], 1, config.unitCost, config.serviceFee)
        line = services[service_key]
        line.volume += 1
        line.totalRevenue += unit.totalRevenue
        line.totalCost += unit.totalCost
        line.grossProfit += unit.grossProfit

    for line in services.values():
        if line.volume > 0:
            line.price = line.totalRevenue / line.volume
            line.serviceFees = line.grossProfit / line.volume

    sale_days = sorted(day for _, day in sales)
    range_start = start_date or (sale_days[0] if sale_days else None)
    range_end = end_date or (sale_days[-1] if sale_days else None)
    months = months_in_range(range_start, range_end)

    monthly = get_config_for_date(history, range_end or date.today().isoformat()).fixedCosts
    fixed_costs = FixedCostsTotal(
        laborCost=monthly.laborCost * months,
        llm=monthly.llm * months,
        proTransportation=monthly.proTransportation * months,
        total=(monthly.laborCost + monthly.llm + monthly.proTransportation) * months,
    )

    total_gross_profit = sum(line.grossProfit for line in services.values())
    summary = PnLSummary(
        totalRevenue=sum(line.totalRevenue for line in services.values()),
        totalCost=sum(line.totalCost for line in services.values()),
        totalGrossProfit=total_gross_profit,
        fixedCosts=fixed_costs,
        netProfit=total_gross_profit - fixed_costs.total,
    )

    logger.info(f"P&L over {len(sales)} sales, {months} months: net {summary.netProfit:.2f}")

    return AggregatedPnL(
        services={key.value: line for key, line in services.items()},
        summary=summary,
    ), months
