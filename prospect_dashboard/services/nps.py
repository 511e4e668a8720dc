"""
NPS (Net Promoter Score) aggregation.

The survey tool exports one document keyed by day ("Feb 9" or
"2026-02-09"). Each day holds, per score, the number of respondents overall
(`TOTAL`) and per service. Scores of 9-10 are promoters, 7-8 passives and
0-6 detractors:

    NPS = promoter % - detractor %

Day keys without a year are read in the configured survey year.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from prospect_dashboard.models.schemas import (
    NPSAggregatedData,
    NPSDateRange,
    NPSDayData,
    NPSMetrics,
    NPSScoreEntry,
    NPSServiceMetrics,
    ValidationError,
)


logger = logging.getLogger(__name__)

TOTAL_KEY: str = 'TOTAL'

PROMOTER_MIN_SCORE: int = 9
DETRACTOR_MAX_SCORE: int = 6

SCORE_RANGE = range(0, 11)


# =============================================================================
# Day Keys
# =============================================================================


def parse_nps_date(date_key: str, year: int) -> Optional[str]:
    """
    YYYY-MM-DD for a survey day key, or None when it is not a date.

    Example:
        >>> parse_nps_date("Feb 9", 2026)
        '2026-02-09'
        >>> parse_nps_date("2026-02-09", 2026)
        '2026-02-09'
    """
    key = (date_key or '').strip()
    for text, fmt in ((key, '%Y-%m-%d'), (f"{key} {year}", '%b %d %Y')):
        try:
            return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
        except ValueError:
            continue
    return None


def validate_nps_days(
    data: Dict[str, NPSDayData],
    year: int,
) -> Tuple[Dict[str, NPSDayData], List[ValidationError]]:
    """
    Split an upload into days with a readable key and errors for the rest.

    Row numbers follow the order of the keys in the upload.
    """
    accepted: Dict[str, NPSDayData] = {}
    errors: List[ValidationError] = []
    for index, (date_key, day) in enumerate(data.items(), start=1):
        if parse_nps_date(date_key, year) is None:
            errors.append(ValidationError(
                field='date',
                message=f"Unrecognized survey day {date_key!r}",
                row_number=index,
            ))
            continue
        accepted[date_key] = day
    return accepted, errors


def list_nps_dates(data: Dict[str, NPSDayData], year: int) -> List[str]:
    """Distinct survey days as YYYY-MM-DD, ascending."""
    dates = {parse_nps_date(key, year) for key in data}
    return sorted(d for d in dates if d is not None)


# =============================================================================
# Metrics
# =============================================================================


def _percentage(part: int, total: int, decimals: int) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, decimals)


def calculate_nps_metrics(
    scores: Iterable[NPSScoreEntry],
    service: str = TOTAL_KEY,
    decimals: int = 2,
) -> NPSMetrics:
    """
    NPS metrics for one service over a set of score entries.

    Args:
        scores: Score entries of every day in scope.
        service: Service whose respondent counts are used; TOTAL for overall.
        decimals: Rounding applied to the score and the percentages.

    Returns:
        NPSMetrics with a zero-filled 0-10 distribution. Scores outside 0-10
        are bucketed but left out of the distribution.
    """
    distribution = {score: 0 for score in SCORE_RANGE}
    promoters = passives = detractors = 0

    for entry in scores:
        count = entry.services.get(service, 0)
        if entry.nps_score in distribution:
            distribution[entry.nps_score] += count

        if entry.nps_score >= PROMOTER_MIN_SCORE:
            promoters += count
        elif entry.nps_score <= DETRACTOR_MAX_SCORE:
            detractors += count
        else:
            passives += count

    total = promoters + passives + detractors
    promoter_pct = _percentage(promoters, total, decimals)
    detractor_pct = _percentage(detractors, total, decimals)

    return NPSMetrics(
        total=total,
        promoters=promoters,
        detractors=detractors,
        passives=passives,
        npsScore=round(promoter_pct - detractor_pct, decimals),
        promoterPercentage=promoter_pct,
        detractorPercentage=detractor_pct,
        passivePercentage=_percentage(passives, total, decimals),
        scoreDistribution=distribution,
    )


def aggregate_nps(
    data: Dict[str, NPSDayData],
    start_date: Optional[str],
    end_date: Optional[str],
    year: int,
    decimals: int = 2,
) -> NPSAggregatedData:
    """
    Overall and per-service NPS over the days inside an inclusive range.

    Days whose key is not a date are skipped. Services are listed by name
    and only when they have respondents in the range.
    """
    scores: List[NPSScoreEntry] = []
    service_names = set()

    for date_key, day in data.items():
        day_date = parse_nps_date(date_key, year)
        if day_date is None:
            logger.warning(f"Skipping NPS day with unrecognized key {date_key!r}")
            continue
        if start_date and day_date < start_date:
            continue
        if end_date and day_date > end_date:
            continue

        scores.extend(day.scores)
        for entry in day.scores:
            service_names.update(name for name in entry.services if name != TOTAL_KEY)

    services = []
    for name in sorted(service_names):
        metrics = calculate_nps_metrics(scores, name, decimals)
        if metrics.total > 0:
            services.append(NPSServiceMetrics(service=name, metrics=metrics))

    return NPSAggregatedData(
        overall=calculate_nps_metrics(scores, TOTAL_KEY, decimals),
        services=services,
        dateRange=NPSDateRange(
            startDate=start_date or '',
            endDate=end_date or start_date or '',
        ),
    )
