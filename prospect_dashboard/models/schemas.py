"""
Pydantic request/response models for the Prospect Dashboard backend.

Field names are camelCase so the JSON documents and API payloads keep the
shape the dashboard UI already consumes. Timestamps on raw records are kept as
the strings received from upstream exports; they are parsed by
`services.dates.parse_timestamp` at the point of use so that an unparseable
value excludes a single record instead of rejecting a whole batch.

Groups:
- Raw events and deduplicated sales (to-do and complaint streams)
- Complaints and per-service complaint sales
- Payments
- Prospects and clean-conversion results
- P&L configuration and P&L results
- NPS survey data and aggregates
- Ingestion results
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from prospect_dashboard.models.enums import (
    EventSource,
    PaymentStatus,
    PnLSource,
    ServiceKey,
)


def _none_as_blank(value: Any) -> Any:
    return "" if value is None else value


# Upstream exports send null for missing identifiers and dates
BlankStr = Annotated[str, BeforeValidator(_none_as_blank)]


# =============================================================================
# Raw Events and Deduplicated Sales
# =============================================================================


class RawEvent(BaseModel):
    """
    A single dated occurrence of a service-related event.

    Complaint rows and to-do rows are both normalized into this shape before
    deduplication. `serviceKey` is resolved at ingestion time; when it is
    missing the event still forms a (degenerate) identity group.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        json_schema_extra={
            "example": {
                "id": "todo_8812",
                "contractId": "1086364",
                "clientId": "67890",
                "maidId": "12345",
                "serviceKey": "oec",
                "label": "Overseas Employment Certificate",
                "occurredAt": "2026-01-10 09:12:44.000",
                "source": "todo"
            }
        }
    )

    id: str = Field(..., description="Opaque identifier of the raw event")
    contractId: BlankStr = Field(default="", description="Contract identifier")
    clientId: BlankStr = Field(default="", description="Client identifier")
    maidId: BlankStr = Field(default="", description="Housemaid identifier")
    serviceKey: Optional[ServiceKey] = Field(
        default=None,
        description="Service line resolved from the event label"
    )
    label: Optional[str] = Field(
        default=None,
        description="Free-text service / complaint type as received"
    )
    occurredAt: Optional[str] = Field(
        default=None,
        description="Creation or payment timestamp as received"
    )
    source: EventSource = Field(
        default=EventSource.TODO,
        description="Stream the event was read from"
    )


class OverseasSale(BaseModel):
    """
    Deduplicated sale record for one identity group.

    `occurrenceCount` counts the dated raw events of the group while
    `deduplicatedCount` counts the distinct sale periods they collapse into.
    """
    id: str = Field(..., description="Stable sale identifier derived from the identity key")
    identityKey: str = Field(..., description="service + contract + client + maid key")
    serviceKey: Optional[ServiceKey] = Field(default=None)
    contractId: str = Field(default="")
    clientId: str = Field(default="")
    maidId: str = Field(default="")
    firstSaleDate: str = Field(..., description="ISO timestamp of the earliest event")
    lastSaleDate: str = Field(..., description="ISO timestamp of the latest event")
    occurrenceCount: int = Field(..., ge=0, description="Dated raw events in the group")
    deduplicatedCount: int = Field(..., ge=0, description="Distinct sale periods")
    periodStartDates: List[str] = Field(
        default_factory=list,
        description="ISO start timestamp of each sale period, in creation order"
    )
    relatedEventIds: List[str] = Field(
        default_factory=list,
        description="Ids of every raw event that contributed, oldest first"
    )


class OverseasSalesData(BaseModel):
    """
    Persisted overseas-sales document.

    `events` is the complete raw event log. Merges re-run the deduplicator
    over this log plus the new batch, so they are exact.
    """
    lastUpdated: str
    totalRawEvents: int = Field(default=0, ge=0)
    totalDedupedSales: int = Field(default=0, ge=0)
    sales: List[OverseasSale] = Field(default_factory=list)
    salesByMonth: Dict[str, int] = Field(
        default_factory=dict,
        description="YYYY-MM of each sale period start -> number of sales"
    )
    events: List[RawEvent] = Field(default_factory=list)


class OverseasSalesSummary(BaseModel):
    """Summary returned by GET /sales/overseas."""
    totalSales: int = Field(..., ge=0)
    totalRawEvents: int = Field(..., ge=0)
    salesByMonth: Dict[str, int] = Field(default_factory=dict)
    salesInRange: Optional[int] = Field(
        default=None,
        ge=0,
        description="Sales whose first date falls in the requested range"
    )
    lastUpdated: Optional[str] = None


# =============================================================================
# Complaints
# =============================================================================


class Complaint(BaseModel):
    """Complaint record as exported by the complaints system."""
    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)

    contractId: BlankStr = Field(default="")
    housemaidId: BlankStr = Field(default="")
    clientId: BlankStr = Field(default="")
    complaintType: BlankStr = Field(default="")
    creationDate: BlankStr = Field(default="", description="e.g. '2026-01-29 21:00:35.000'")
    serviceKey: Optional[ServiceKey] = Field(
        default=None,
        description="Derived from complaintType"
    )


class DailyComplaints(BaseModel):
    """Complaint batch stored per calendar date."""
    date: str = Field(..., description="YYYY-MM-DD")
    lastUpdated: str
    complaints: List[Complaint] = Field(default_factory=list)
    totalComplaints: int = Field(default=0, ge=0)


class ComplaintSale(BaseModel):
    """One sale period of a complaint identity group."""
    id: str
    serviceKey: ServiceKey
    contractId: str = ""
    clientId: str = ""
    housemaidId: str = ""
    firstSaleDate: str
    lastSaleDate: str
    occurrenceCount: int = Field(..., ge=1)
    complaintDates: List[str] = Field(default_factory=list)


class ServiceSales(BaseModel):
    """Per-service aggregate of deduplicated complaint sales."""
    serviceKey: ServiceKey
    serviceName: str
    uniqueSales: int = Field(default=0, ge=0)
    uniqueClients: int = Field(default=0, ge=0)
    uniqueContracts: int = Field(default=0, ge=0)
    totalComplaints: int = Field(default=0, ge=0, description="Complaints before dedup")
    byMonth: Dict[str, int] = Field(default_factory=dict)
    sales: List[ComplaintSale] = Field(default_factory=list)


class ComplaintSalesSummary(BaseModel):
    totalUniqueSales: int = Field(default=0, ge=0)
    totalUniqueClients: int = Field(default=0, ge=0)
    totalUniqueContracts: int = Field(default=0, ge=0)


class ComplaintSalesData(BaseModel):
    """Deduplicated complaint sales for every ServiceKey."""
    lastUpdated: str
    rawComplaintsCount: int = Field(default=0, ge=0)
    services: Dict[str, ServiceSales] = Field(
        default_factory=dict,
        description="ServiceKey value -> service aggregate"
    )
    summary: ComplaintSalesSummary = Field(default_factory=ComplaintSalesSummary)


# =============================================================================
# Payments
# =============================================================================


class RawPayment(BaseModel):
    """
    Payment row as exported by the billing system.

    Upstream exports use upper-case column names; both those and the
    camelCase field names are accepted.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    paymentType: BlankStr = Field(default="", alias="PAYMENT_TYPE")
    creationDate: BlankStr = Field(default="", alias="CREATION_DATE")
    contractId: BlankStr = Field(default="", alias="CONTRACT_ID")
    clientId: BlankStr = Field(default="", alias="CLIENT_ID")
    status: BlankStr = Field(default="", alias="STATUS")
    amountOfPayment: Optional[Union[str, float]] = Field(default=None, alias="AMOUNT_OF_PAYMENT")
    dateOfPayment: BlankStr = Field(default="", alias="DATE_OF_PAYMENT")


class Payment(BaseModel):
    """Normalized payment."""
    paymentType: str
    creationDate: str = ""
    contractId: str
    clientId: str = ""
    status: PaymentStatus
    dateOfPayment: str = Field(..., description="YYYY-MM-DD")
    service: Optional[ServiceKey] = Field(
        default=None,
        description="Service line the payment maps to; None for unrelated payments"
    )
    amountOfPayment: float = 0.0


class PaymentData(BaseModel):
    """Persisted payment document."""
    uploadDate: str
    totalPayments: int = Field(default=0, ge=0)
    receivedPayments: int = Field(default=0, ge=0)
    payments: List[Payment] = Field(default_factory=list)


# =============================================================================
# Prospects and Clean Conversions
# =============================================================================


class Prospect(BaseModel):
    """
    Conversation classified by the external classifier.

    Only the boolean interest flags drive the conversion computation.
    Confidence scores are carried through untouched.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = ""
    conversationId: str = ""
    chatStartDateTime: Optional[str] = None
    contractId: Optional[str] = None
    clientId: Optional[str] = None
    maidId: Optional[str] = None
    contractType: Optional[str] = None

    isOECProspect: bool = False
    isOECProspectConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    oecConverted: Optional[bool] = None
    oecConvertedConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    isOWWAProspect: bool = False
    isOWWAProspectConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    owwaConverted: Optional[bool] = None
    owwaConvertedConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    isTravelVisaProspect: bool = False
    isTravelVisaProspectConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    travelVisaCountries: List[str] = Field(default_factory=list)
    travelVisaConverted: Optional[bool] = None
    travelVisaConvertedConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    isFilipinaPassportRenewalProspect: bool = False
    isFilipinaPassportRenewalProspectConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    filipinaPassportRenewalConverted: Optional[bool] = None

    isEthiopianPassportRenewalProspect: bool = False
    isEthiopianPassportRenewalProspectConfidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    ethiopianPassportRenewalConverted: Optional[bool] = None


class DailyProspects(BaseModel):
    """Classified prospects stored per calendar date."""
    date: str
    lastUpdated: str
    prospects: List[Prospect] = Field(default_factory=list)


class ComplaintCheck(BaseModel):
    """Complaints found for one identity and one service category."""
    hasComplaint: bool = False
    complaintTypes: List[str] = Field(default_factory=list)
    complaintDates: List[str] = Field(default_factory=list)


class ServiceConversionCheck(BaseModel):
    """Conversion and complaint status of one prospect for one service category."""
    converted: bool = False
    hasComplaint: bool = False
    complaintTypes: List[str] = Field(default_factory=list)
    complaintDates: List[str] = Field(default_factory=list)
    paymentDates: List[str] = Field(default_factory=list)


class ConversionCheck(BaseModel):
    """
    Per-prospect conversion record.

    `services` only contains the categories the prospect was interested in,
    keyed by ProspectService value.
    """
    contractId: str
    clientId: Optional[str] = None
    maidId: Optional[str] = None
    services: Dict[str, ServiceConversionCheck] = Field(default_factory=dict)


class ServiceConversionStats(BaseModel):
    prospects: int = Field(default=0, ge=0)
    conversions: int = Field(default=0, ge=0)
    withComplaints: int = Field(default=0, ge=0)
    cleanConversions: int = Field(default=0, ge=0)


class ConversionRates(BaseModel):
    """Percentages in [0, 100]."""
    overall: float = 0.0
    clean: float = 0.0


class CleanConversionStats(BaseModel):
    """Aggregate of ConversionChecks keyed by ProspectService value."""
    stats: Dict[str, ServiceConversionStats] = Field(default_factory=dict)
    rates: Dict[str, ConversionRates] = Field(default_factory=dict)


class ServiceConversionSummary(BaseModel):
    """API-facing per-service figures with rounded rates."""
    prospects: int = 0
    conversions: int = 0
    cleanConversions: int = 0
    withComplaints: int = 0
    conversionRate: float = 0.0
    cleanConversionRate: float = 0.0


class ConversionsWithComplaintsResponse(BaseModel):
    """Response of GET /conversions-with-complaints/{date}."""
    date: str
    totalProspects: int = 0
    totalConversions: int = 0
    totalCleanConversions: int = 0
    services: Dict[str, ServiceConversionSummary] = Field(default_factory=dict)
    conversions: List[ConversionCheck] = Field(default_factory=list)
    error: Optional[str] = None


# =============================================================================
# P&L Configuration
# =============================================================================


class ServiceConfig(BaseModel):
    unitCost: float = Field(default=0.0, ge=0.0, description="Cost per unit to the agency")
    serviceFee: float = Field(default=0.0, ge=0.0, description="Markup charged on top of the cost")


class FixedCosts(BaseModel):
    """Monthly fixed costs."""
    laborCost: float = Field(default=0.0, ge=0.0)
    llm: float = Field(default=0.0, ge=0.0)
    proTransportation: float = Field(default=0.0, ge=0.0)


class PnLConfigSnapshot(BaseModel):
    """Configuration that applies from `effectiveDate` until the next snapshot."""
    effectiveDate: str = Field(..., description="YYYY-MM-DD")
    updatedAt: str
    updatedBy: Optional[str] = None
    services: Dict[str, ServiceConfig] = Field(
        default_factory=dict,
        description="ServiceKey value -> unit cost and service fee"
    )
    fixedCosts: FixedCosts = Field(default_factory=FixedCosts)


class PnLConfigHistory(BaseModel):
    configurations: List[PnLConfigSnapshot] = Field(default_factory=list)


class PnLConfigUpdate(BaseModel):
    """Request body of POST /pnl/config."""
    services: Dict[ServiceKey, ServiceConfig] = Field(default_factory=dict)
    fixedCosts: Optional[FixedCosts] = None
    effectiveDate: Optional[str] = Field(
        default=None,
        description="YYYY-MM-DD; defaults to today"
    )
    updatedBy: Optional[str] = None


# =============================================================================
# P&L Results
# =============================================================================


class ServicePnL(BaseModel):
    name: str
    volume: int = Field(default=0, ge=0)
    price: float = Field(default=0.0, description="Average price per unit")
    serviceFees: float = Field(default=0.0, description="Average service fee per unit")
    totalRevenue: float = 0.0
    totalCost: float = 0.0
    grossProfit: float = 0.0


class FixedCostsTotal(FixedCosts):
    total: float = 0.0


class PnLSummary(BaseModel):
    totalRevenue: float = 0.0
    totalCost: float = 0.0
    totalGrossProfit: float = 0.0
    fixedCosts: FixedCostsTotal = Field(default_factory=FixedCostsTotal)
    netProfit: float = 0.0


class AggregatedPnL(BaseModel):
    services: Dict[str, ServicePnL] = Field(default_factory=dict)
    summary: PnLSummary = Field(default_factory=PnLSummary)


class PnLResponse(BaseModel):
    """Response of GET /pnl."""
    source: PnLSource
    aggregated: Optional[AggregatedPnL] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    monthsInRange: int = Field(default=0, ge=0)
    totalComplaints: int = Field(default=0, ge=0)
    error: Optional[str] = None


# =============================================================================
# NPS
# =============================================================================


class NPSScoreEntry(BaseModel):
    """
    Respondent counts for one score on one day.

    `services` maps a service name to the number of respondents who gave
    `nps_score`; the `TOTAL` entry counts every respondent.
    """
    nps_score: int = Field(..., description="Score given, normally 0-10")
    services: Dict[str, int] = Field(default_factory=dict)


class NPSDayData(BaseModel):
    """Survey results of one day as exported by the survey tool."""
    date: str = ""
    scores: List[NPSScoreEntry] = Field(default_factory=list)


class NPSMetrics(BaseModel):
    """
    NPS over a set of responses.

    Promoters score 9-10, passives 7-8 and detractors 0-6. `npsScore` is the
    promoter percentage minus the detractor percentage. All percentages are 0
    when there are no responses.
    """
    total: int = Field(default=0, ge=0)
    promoters: int = Field(default=0, ge=0)
    detractors: int = Field(default=0, ge=0)
    passives: int = Field(default=0, ge=0)
    npsScore: float = 0.0
    promoterPercentage: float = 0.0
    detractorPercentage: float = 0.0
    passivePercentage: float = 0.0
    scoreDistribution: Dict[int, int] = Field(
        default_factory=dict,
        description="Score 0-10 -> respondents"
    )


class NPSServiceMetrics(BaseModel):
    service: str
    metrics: NPSMetrics


class NPSDateRange(BaseModel):
    startDate: str = ""
    endDate: str = ""


class NPSAggregatedData(BaseModel):
    """Response of GET /nps."""
    overall: NPSMetrics
    services: List[NPSServiceMetrics] = Field(default_factory=list)
    dateRange: NPSDateRange = Field(default_factory=NPSDateRange)


class NPSDatesResponse(BaseModel):
    """Response of GET /nps/dates."""
    dates: List[str] = Field(default_factory=list, description="YYYY-MM-DD, ascending")


# =============================================================================
# Ingestion
# =============================================================================


class ValidationError(BaseModel):
    """
    Validation error detail.

    Used for reporting rejected rows during ingestion.
    """
    field: str = Field(..., description="Field with validation error")
    message: str = Field(..., description="Error message")
    row_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Row number where error occurred"
    )


class IngestionResult(BaseModel):
    """
    Result of an ingestion operation.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "rows_processed": 120,
                "rows_affected": 118,
                "errors": []
            }
        }
    )

    success: bool = Field(..., description="Whether ingestion was successful")
    rows_processed: int = Field(..., ge=0, description="Number of rows received")
    rows_affected: int = Field(..., ge=0, description="Number of rows stored")
    errors: List[ValidationError] = Field(
        default_factory=list,
        description="Validation errors encountered"
    )
    processed_at: datetime = Field(default_factory=datetime.utcnow)
