"""
Package initialization file for backend models.

Re-exports every Pydantic schema and enumeration so other modules can write

    from prospect_dashboard.models import RawEvent, ServiceKey
"""

# =============================================================================
# Enums
# =============================================================================

from prospect_dashboard.models.enums import (
    ServiceKey,
    ProspectService,
    PaymentStatus,
    EventSource,
    PnLSource,
)

# =============================================================================
# Schemas
# =============================================================================

from prospect_dashboard.models.schemas import (
    # Raw events and deduplicated sales
    RawEvent,
    OverseasSale,
    OverseasSalesData,
    OverseasSalesSummary,
    # Complaints
    Complaint,
    DailyComplaints,
    ComplaintSale,
    ServiceSales,
    ComplaintSalesSummary,
    ComplaintSalesData,
    # Payments
    RawPayment,
    Payment,
    PaymentData,
    # Prospects and conversions
    Prospect,
    DailyProspects,
    ComplaintCheck,
    ServiceConversionCheck,
    ConversionCheck,
    ServiceConversionStats,
    ConversionRates,
    CleanConversionStats,
    ServiceConversionSummary,
    ConversionsWithComplaintsResponse,
    # P&L configuration
    ServiceConfig,
    FixedCosts,
    PnLConfigSnapshot,
    PnLConfigHistory,
    PnLConfigUpdate,
    # P&L results
    ServicePnL,
    FixedCostsTotal,
    PnLSummary,
    AggregatedPnL,
    PnLResponse,
    # NPS
    NPSScoreEntry,
    NPSDayData,
    NPSMetrics,
    NPSServiceMetrics,
    NPSDateRange,
    NPSAggregatedData,
    NPSDatesResponse,
    # Ingestion
    ValidationError,
    IngestionResult,
)


__all__ = [
    # Enums
    'ServiceKey',
    'ProspectService',
    'PaymentStatus',
    'EventSource',
    'PnLSource',
    # Raw events and deduplicated sales
    'RawEvent',
    'OverseasSale',
    'OverseasSalesData',
    'OverseasSalesSummary',
    # Complaints
    'Complaint',
    'DailyComplaints',
    'ComplaintSale',
    'ServiceSales',
    'ComplaintSalesSummary',
    'ComplaintSalesData',
    # Payments
    'RawPayment',
    'Payment',
    'PaymentData',
    # Prospects and conversions
    'Prospect',
    'DailyProspects',
    'ComplaintCheck',
    'ServiceConversionCheck',
    'ConversionCheck',
    'ServiceConversionStats',
    'ConversionRates',
    'CleanConversionStats',
    'ServiceConversionSummary',
    'ConversionsWithComplaintsResponse',
    # P&L configuration
    'ServiceConfig',
    'FixedCosts',
    'PnLConfigSnapshot',
    'PnLConfigHistory',
    'PnLConfigUpdate',
    # P&L results
    'ServicePnL',
    'FixedCostsTotal',
    'PnLSummary',
    'AggregatedPnL',
    'PnLResponse',
    # NPS
    'NPSScoreEntry',
    'NPSDayData',
    'NPSMetrics',
    'NPSServiceMetrics',
    'NPSDateRange',
    'NPSAggregatedData',
    'NPSDatesResponse',
    # Ingestion
    'ValidationError',
    'IngestionResult',
]
