"""
Prospect Dashboard Services Module

Business logic for the dashboard. Every service except the repository and
the configuration store is a pure function over pydantic models; storage
reads and writes happen in the API layer.

Services:
- service_keys: closed service taxonomy and label mapping
- dates: timestamp parsing and calendar-month windows
- repository: JSON document storage over Postgres
- deduplication: Sale Deduplicator (overseas sales, complaint sales)
- ingestion: complaint / payment / to-do / prospect batch normalization
- conversions: Clean Conversion Calculator
- pnl: P&L configuration history and arithmetic
- nps: NPS survey aggregation
"""

# =============================================================================
# Service Taxonomy
# =============================================================================

from prospect_dashboard.services.service_keys import (
    SERVICE_NAMES,
    ALL_SERVICE_KEYS,
    TRAVEL_VISA_KEYS,
    label_to_service_key,
    payment_type_to_service_key,
    service_key_to_prospect_service,
    prospect_interests,
)

# =============================================================================
# Dates
# =============================================================================

from prospect_dashboard.services.dates import (
    parse_timestamp,
    is_within_months,
    is_within_three_months,
    months_in_range,
)

# =============================================================================
# Sale Deduplicator
# =============================================================================

from prospect_dashboard.services.deduplication import (
    SalePeriod,
    build_identity_key,
    assign_sale_periods,
    deduplicate_sales,
    merge_overseas_sales,
    get_sales_in_range,
    complaints_to_events,
    process_complaint_events,
    process_complaint_sales,
    clear_complaints_in_range,
)

# =============================================================================
# Ingestion
# =============================================================================

from prospect_dashboard.services.ingestion import (
    normalize_complaints,
    process_payments,
    filter_payments_by_date,
    parse_todo_rows,
    is_overseas_sale,
)

# =============================================================================
# Clean Conversion Calculator
# =============================================================================

from prospect_dashboard.services.conversions import (
    build_payment_lookup,
    get_conversions_with_complaint_check,
    calculate_clean_conversion_rates,
    compute_conversions_for_date,
)

# =============================================================================
# P&L
# =============================================================================

from prospect_dashboard.services.pnl import (
    PnLConfigStore,
    default_config_history,
    get_config_for_date,
    create_service_pnl,
    compute_pnl,
)
from prospect_dashboard.services.nps import (
    parse_nps_date,
    validate_nps_days,
    list_nps_dates,
    calculate_nps_metrics,
    aggregate_nps,
)


__all__ = [
    # Taxonomy
    'SERVICE_NAMES',
    'ALL_SERVICE_KEYS',
    'TRAVEL_VISA_KEYS',
    'label_to_service_key',
    'payment_type_to_service_key',
    'service_key_to_prospect_service',
    'prospect_interests',
    # Dates
    'parse_timestamp',
    'is_within_months',
    'is_within_three_months',
    'months_in_range',
    # Deduplication
    'SalePeriod',
    'build_identity_key',
    'assign_sale_periods',
    'deduplicate_sales',
    'merge_overseas_sales',
    'get_sales_in_range',
    'complaints_to_events',
    'process_complaint_events',
    'process_complaint_sales',
    'clear_complaints_in_range',
    # Ingestion
    'normalize_complaints',
    'process_payments',
    'filter_payments_by_date',
    'parse_todo_rows',
    'is_overseas_sale',
    # Conversions
    'build_payment_lookup',
    'get_conversions_with_complaint_check',
    'calculate_clean_conversion_rates',
    'compute_conversions_for_date',
    # P&L
    'PnLConfigStore',
    'default_config_history',
    'get_config_for_date',
    'create_service_pnl',
    'compute_pnl',
    # NPS
    'parse_nps_date',
    'validate_nps_days',
    'list_nps_dates',
    'calculate_nps_metrics',
    'aggregate_nps',
]
