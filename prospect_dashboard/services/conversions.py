"""
Clean Conversion Calculator.

For one evaluation date, every prospect interested in a service category is
checked against two independent streams:

- payments (received on that date): the prospect converted
- complaints (filed on that date): the prospect had a complaint

A clean conversion is a conversion without a complaint for the same category.
The two checks are not required to reference the same occurrence; any
complaint for the category on the date excludes the conversion from the
clean count.

All functions here are pure. Storage reads happen in the API layer, which
passes the loaded prospects, payments and complaints in.
"""

import logging
from typing import Dict, Iterable, List, Optional

from prospect_dashboard.models.enums import ProspectService
from prospect_dashboard.models.schemas import (
    CleanConversionStats,
    Complaint,
    ComplaintCheck,
    ConversionCheck,
    ConversionRates,
    ConversionsWithComplaintsResponse,
    Payment,
    Prospect,
    ServiceConversionCheck,
    ServiceConversionStats,
    ServiceConversionSummary,
)
from prospect_dashboard.services.ingestion import filter_payments_by_date
from prospect_dashboard.services.service_keys import (
    label_to_service_key,
    prospect_interests,
    service_key_to_prospect_service,
)


logger = logging.getLogger(__name__)

# contract id -> prospect category -> payment dates
PaymentLookup = Dict[str, Dict[ProspectService, List[str]]]

PROSPECT_SERVICES: List[ProspectService] = list(ProspectService)


# =============================================================================
# Lookups
# =============================================================================


def build_payment_lookup(payments: Iterable[Payment]) -> PaymentLookup:
    """
    Index payments by contract and prospect category.

    Payments that do not map to a ServiceKey are skipped. Travel payments of
    any destination land under the travelVisa category.
    """
    lookup: PaymentLookup = {}
    for payment in payments:
        if payment.service is None or not payment.contractId:
            continue
        category = service_key_to_prospect_service(payment.service)
        lookup.setdefault(payment.contractId, {}).setdefault(category, []).append(
            payment.dateOfPayment
        )
    return lookup


def _complaint_category(complaint: Complaint) -> Optional[ProspectService]:
    service_key = complaint.serviceKey or label_to_service_key(complaint.complaintType)
    if service_key is None:
        return None
    return service_key_to_prospect_service(service_key)


def _matches_identity(prospect: Prospect, complaint: Complaint) -> bool:
    return bool(
        (prospect.contractId and complaint.contractId == prospect.contractId)
        or (prospect.maidId and complaint.housemaidId == prospect.maidId)
        or (prospect.clientId and complaint.clientId == prospect.clientId)
    )


def check_complaints_for_prospect(
    prospect: Prospect,
    complaints: Iterable[Complaint],
    categories: Iterable[ProspectService],
) -> Dict[ProspectService, ComplaintCheck]:
    """
    Find complaints linked to a prospect for each requested category.

    A complaint is linked when its contract id, housemaid id or client id
    matches the prospect's. Travel complaints of any destination satisfy the
    travelVisa category.

    Returns:
        A ComplaintCheck for every requested category.
    """
    checks = {category: ComplaintCheck() for category in categories}

    for complaint in complaints:
        if not _matches_identity(prospect, complaint):
            continue
        category = _complaint_category(complaint)
        check = checks.get(category)
        if check is None:
            continue
        check.hasComplaint = True
        check.complaintTypes.append(complaint.complaintType)
        check.complaintDates.append(complaint.creationDate)

    return checks


# =============================================================================
# Per-Prospect Checks
# =============================================================================


def get_conversions_with_complaint_check(
    prospects: Iterable[Prospect],
    payment_lookup: PaymentLookup,
    complaints: List[Complaint],
) -> List[ConversionCheck]:
    """
    Build a ConversionCheck for every prospect with a contract and at least
    one interest flag.

    Prospects that did not convert are kept so rate denominators are right.
    Only the categories the prospect is interested in appear in `services`.
    """
    results: List[ConversionCheck] = []
    skipped = 0

    for prospect in prospects:
        if not prospect.contractId:
            skipped += 1
            continue

        interests = prospect_interests(prospect)
        if not interests:
            continue

        paid = payment_lookup.get(prospect.contractId, {})
        complaint_checks = check_complaints_for_prospect(prospect, complaints, interests)

        services: Dict[str, ServiceConversionCheck] = {}
        for category in interests:
            complaint_check = complaint_checks[category]
            payment_dates = paid.get(category, [])
            services[category.value] = ServiceConversionCheck(
                converted=bool(payment_dates),
                hasComplaint=complaint_check.hasComplaint,
                complaintTypes=complaint_check.complaintTypes,
                complaintDates=complaint_check.complaintDates,
                paymentDates=list(payment_dates),
            )

        results.append(ConversionCheck(
            contractId=prospect.contractId,
            clientId=prospect.clientId,
            maidId=prospect.maidId,
            services=services,
        ))

    if skipped:
        logger.info(f"Skipped {skipped} prospects without a contract id")

    return results


# =============================================================================
# Aggregation
# =============================================================================


def _rate(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def calculate_clean_conversion_rates(checks: Iterable[ConversionCheck]) -> CleanConversionStats:
    """
    Aggregate ConversionChecks into per-category counts and percentages.

    For every category, cleanConversions <= conversions <= prospects, and a
    category with no prospects has both rates at 0.
    """
    stats = {category.value: ServiceConversionStats() for category in PROSPECT_SERVICES}

    for check in checks:
        for category, service in check.services.items():
            stat = stats.get(category)
            if stat is None:
                continue
            stat.prospects += 1
            if service.converted:
                stat.conversions += 1
                if not service.hasComplaint:
                    stat.cleanConversions += 1
            if service.hasComplaint:
                stat.withComplaints += 1

    rates = {
        category: ConversionRates(
            overall=_rate(stat.conversions, stat.prospects),
            clean=_rate(stat.cleanConversions, stat.prospects),
        )
        for category, stat in stats.items()
    }

    return CleanConversionStats(stats=stats, rates=rates)


def empty_conversions_response(date: str, error: Optional[str] = None) -> ConversionsWithComplaintsResponse:
    """Zero-filled response used when an input stream is missing."""
    return ConversionsWithComplaintsResponse(
        date=date,
        services={category.value: ServiceConversionSummary() for category in PROSPECT_SERVICES},
        error=error,
    )


def summarize_conversions(
    date: str,
    checks: List[ConversionCheck],
    rate_decimals: int = 2,
) -> ConversionsWithComplaintsResponse:
    """Build the API response for a list of ConversionChecks."""
    clean_stats = calculate_clean_conversion_rates(checks)

    services = {}
    for category, stat in clean_stats.stats.items():
        rates = clean_stats.rates[category]
        services[category] = ServiceConversionSummary(
            prospects=stat.prospects,
            conversions=stat.conversions,
            cleanConversions=stat.cleanConversions,
            withComplaints=stat.withComplaints,
            conversionRate=round(rates.overall, rate_decimals),
            cleanConversionRate=round(rates.clean, rate_decimals),
        )

    return ConversionsWithComplaintsResponse(
        date=date,
        totalProspects=sum(s.prospects for s in clean_stats.stats.values()),
        totalConversions=sum(s.conversions for s in clean_stats.stats.values()),
        totalCleanConversions=sum(s.cleanConversions for s in clean_stats.stats.values()),
        services=services,
        conversions=checks,
    )


def compute_conversions_for_date(
    date: str,
    prospects: List[Prospect],
    payments: List[Payment],
    complaints: List[Complaint],
    rate_decimals: int = 2,
) -> ConversionsWithComplaintsResponse:
    """
    Clean conversion figures for one date.

    Only payments received on `date` count as conversions. `complaints` is
    expected to be the complaint batch of the same date.
    """
    date_payments = filter_payments_by_date(payments, date)
    lookup = build_payment_lookup(date_payments)
    checks = get_conversions_with_complaint_check(prospects, lookup, complaints)

    logger.info(
        f"Conversions for {date}: {len(checks)} prospects, "
        f"{len(date_payments)} received payments, {len(complaints)} complaints"
    )

    return summarize_conversions(date, checks, rate_decimals)
