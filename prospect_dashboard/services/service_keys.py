"""
Service taxonomy and label mapping.

Upstream systems describe services with free-text labels: complaint types in
the complaints export, payment types in the billing export. This module is the
single place where those labels are resolved to the closed ServiceKey set.

Functions:
- label_to_service_key(): complaint / to-do label -> ServiceKey or None
- payment_type_to_service_key(): payment label -> ServiceKey or None
- service_key_to_prospect_service(): ServiceKey -> ProspectService category
- prospect_interests(): service categories a prospect is interested in
"""

import logging
from typing import Dict, FrozenSet, List, Optional

from prospect_dashboard.models.enums import ProspectService, ServiceKey
from prospect_dashboard.models.schemas import Prospect


logger = logging.getLogger(__name__)


# =============================================================================
# Display Names
# =============================================================================

SERVICE_NAMES: Dict[ServiceKey, str] = {
    ServiceKey.OEC: 'Overseas Employment Certificate',
    ServiceKey.OWWA: 'OWWA Registration',
    ServiceKey.TTL: 'Travel to Lebanon',
    ServiceKey.TTL_SINGLE: 'Tourist Visa to Lebanon - Single Entry',
    ServiceKey.TTL_DOUBLE: 'Tourist Visa to Lebanon - Double Entry',
    ServiceKey.TTL_MULTIPLE: 'Tourist Visa to Lebanon - Multiple Entry',
    ServiceKey.TTE: 'Travel to Egypt',
    ServiceKey.TTE_SINGLE: 'Tourist Visa to Egypt - Single Entry',
    ServiceKey.TTE_DOUBLE: 'Tourist Visa to Egypt - Double Entry',
    ServiceKey.TTE_MULTIPLE: 'Tourist Visa to Egypt - Multiple Entry',
    ServiceKey.TTJ: 'Travel to Jordan',
    ServiceKey.SCHENGEN: 'Schengen Countries',
    ServiceKey.GCC: 'GCC',
    ServiceKey.ETHIOPIAN_PP: 'Ethiopian Passport Renewal',
    ServiceKey.FILIPINA_PP: 'Filipina Passport Renewal',
}

ALL_SERVICE_KEYS: List[ServiceKey] = list(ServiceKey)


# =============================================================================
# Prospect Categories
# =============================================================================

TRAVEL_VISA_KEYS: FrozenSet[ServiceKey] = frozenset({
    ServiceKey.TTL,
    ServiceKey.TTL_SINGLE,
    ServiceKey.TTL_DOUBLE,
    ServiceKey.TTL_MULTIPLE,
    ServiceKey.TTE,
    ServiceKey.TTE_SINGLE,
    ServiceKey.TTE_DOUBLE,
    ServiceKey.TTE_MULTIPLE,
    ServiceKey.TTJ,
    ServiceKey.SCHENGEN,
    ServiceKey.GCC,
})

PROSPECT_SERVICE_KEYS: Dict[ProspectService, FrozenSet[ServiceKey]] = {
    ProspectService.OEC: frozenset({ServiceKey.OEC}),
    ProspectService.OWWA: frozenset({ServiceKey.OWWA}),
    ProspectService.TRAVEL_VISA: TRAVEL_VISA_KEYS,
    ProspectService.FILIPINA_PASSPORT_RENEWAL: frozenset({ServiceKey.FILIPINA_PP}),
    ProspectService.ETHIOPIAN_PASSPORT_RENEWAL: frozenset({ServiceKey.ETHIOPIAN_PP}),
}

# Prospect attribute holding the interest flag of each category
PROSPECT_INTEREST_FLAGS: Dict[ProspectService, str] = {
    ProspectService.OEC: 'isOECProspect',
    ProspectService.OWWA: 'isOWWAProspect',
    ProspectService.TRAVEL_VISA: 'isTravelVisaProspect',
    ProspectService.FILIPINA_PASSPORT_RENEWAL: 'isFilipinaPassportRenewalProspect',
    ProspectService.ETHIOPIAN_PASSPORT_RENEWAL: 'isEthiopianPassportRenewalProspect',
}


# =============================================================================
# Label Tables
# =============================================================================

COMPLAINT_TYPE_MAP: Dict[str, ServiceKey] = {
    # OEC
    'overseas employment certificate': ServiceKey.OEC,
    'overseas': ServiceKey.OEC,
    'oec': ServiceKey.OEC,
    # OWWA
    'client owwa registration': ServiceKey.OWWA,
    'owwa registration': ServiceKey.OWWA,
    'owwa': ServiceKey.OWWA,
    # Travel visas
    'tourist visa to lebanon': ServiceKey.TTL,
    'travel to lebanon': ServiceKey.TTL,
    'ttl': ServiceKey.TTL,
    'tourist visa to egypt': ServiceKey.TTE,
    'travel to egypt': ServiceKey.TTE,
    'tte': ServiceKey.TTE,
    'tourist visa to jordan': ServiceKey.TTJ,
    'travel to jordan': ServiceKey.TTJ,
    'ttj': ServiceKey.TTJ,
    # Passport renewals
    'ethiopian passport renewal': ServiceKey.ETHIOPIAN_PP,
    'ethiopian pp': ServiceKey.ETHIOPIAN_PP,
    'ethiopian pp renewal': ServiceKey.ETHIOPIAN_PP,
    'filipina passport renewal': ServiceKey.FILIPINA_PP,
    'filipina pp': ServiceKey.FILIPINA_PP,
    'filipina pp renewal': ServiceKey.FILIPINA_PP,
    # GCC
    'gcc travel': ServiceKey.GCC,
    'gcc': ServiceKey.GCC,
    # Schengen
    'schengen': ServiceKey.SCHENGEN,
    'schengen visa': ServiceKey.SCHENGEN,
}

PAYMENT_TYPE_MAP: Dict[str, ServiceKey] = {
    # Contract verification is billed as part of the OEC
    "the maid's overseas employment certificate": ServiceKey.OEC,
    'overseas employment certificate': ServiceKey.OEC,
    'oec': ServiceKey.OEC,
    "the maid's contract verification": ServiceKey.OEC,
    'contract verification': ServiceKey.OEC,
    'owwa registration': ServiceKey.OWWA,
    'owwa': ServiceKey.OWWA,
    'travel to lebanon visa': ServiceKey.TTL,
    'travel to lebanon': ServiceKey.TTL,
    'travel to egypt visa': ServiceKey.TTE,
    'travel to egypt': ServiceKey.TTE,
    'travel to jordan visa': ServiceKey.TTJ,
    'travel to jordan': ServiceKey.TTJ,
    'travel to morocco visa': ServiceKey.SCHENGEN,
    'travel to morocco': ServiceKey.SCHENGEN,
    'travel to turkey visa': ServiceKey.SCHENGEN,
    'travel to turkey': ServiceKey.SCHENGEN,
    'filipina passport renewal': ServiceKey.FILIPINA_PP,
    'filipino passport renewal': ServiceKey.FILIPINA_PP,
    'philippine passport renewal': ServiceKey.FILIPINA_PP,
    'philippines passport renewal': ServiceKey.FILIPINA_PP,
    'ethiopian passport renewal': ServiceKey.ETHIOPIAN_PP,
    'ethiopia passport renewal': ServiceKey.ETHIOPIAN_PP,
    # Generic passport renewal is Ethiopian
    'passport renewal': ServiceKey.ETHIOPIAN_PP,
    'good conduct certificate application': ServiceKey.GCC,
    'good conduct certificate': ServiceKey.GCC,
    'gcc': ServiceKey.GCC,
}

# Destination -> (generic, single, double, multiple)
_ENTRY_TYPE_VARIANTS: Dict[str, tuple] = {
    'lebanon': (
        ServiceKey.TTL,
        ServiceKey.TTL_SINGLE,
        ServiceKey.TTL_DOUBLE,
        ServiceKey.TTL_MULTIPLE,
    ),
    'egypt': (
        ServiceKey.TTE,
        ServiceKey.TTE_SINGLE,
        ServiceKey.TTE_DOUBLE,
        ServiceKey.TTE_MULTIPLE,
    ),
}

_FILIPINA_MARKERS = ('filipina', 'filipino', 'philippine', 'philippines')


def _normalize_label(label: Optional[str]) -> str:
    return (label or '').lower().strip()


def _has_entry_type(normalized: str, entry: str) -> bool:
    return f'{entry} entry' in normalized or f'{entry}-entry' in normalized


def _detect_entry_type(normalized: str) -> Optional[ServiceKey]:
    """
    Resolve Lebanon / Egypt labels to their entry-type variant.

    Returns the generic destination key when no entry type is named, or None
    when the label names neither destination.
    """
    for destination, (generic, single, double, multiple) in _ENTRY_TYPE_VARIANTS.items():
        if destination not in normalized:
            continue
        if _has_entry_type(normalized, 'single'):
            return single
        if _has_entry_type(normalized, 'double'):
            return double
        if _has_entry_type(normalized, 'multiple'):
            return multiple
        return generic
    return None


# =============================================================================
# Mapping Functions
# =============================================================================

def label_to_service_key(label: Optional[str]) -> Optional[ServiceKey]:
    """
    Map a complaint or to-do label to a ServiceKey.

    Matching is case-insensitive on the trimmed label: exact table lookup
    first, then Lebanon / Egypt entry-type detection.

    Args:
        label: Free-text complaint type, e.g. "Tourist Visa to Lebanon - Single Entry".

    Returns:
        The ServiceKey, or None for labels outside the taxonomy.

    Example:
        >>> label_to_service_key("OWWA Registration")
        <ServiceKey.OWWA: 'owwa'>
        >>> label_to_service_key("Maid Replacement") is None
        True
    """
    normalized = _normalize_label(label)
    if not normalized:
        return None

    if normalized in COMPLAINT_TYPE_MAP:
        return COMPLAINT_TYPE_MAP[normalized]

    return _detect_entry_type(normalized)


def payment_type_to_service_key(payment_type: Optional[str]) -> Optional[ServiceKey]:
    """
    Map a billing payment type to a ServiceKey.

    Exact table lookup, then substring rules in priority order. Payments
    that match nothing (salary, insurance, ...) return None.
    """
    normalized = _normalize_label(payment_type)
    if not normalized:
        return None

    if normalized in PAYMENT_TYPE_MAP:
        return PAYMENT_TYPE_MAP[normalized]

    if (
        'oec' in normalized
        or 'employment certificate' in normalized
        or 'contract verification' in normalized
    ):
        return ServiceKey.OEC

    if 'owwa' in normalized:
        return ServiceKey.OWWA

    if 'lebanon' in normalized:
        return ServiceKey.TTL

    if 'egypt' in normalized:
        return ServiceKey.TTE

    if 'jordan' in normalized:
        return ServiceKey.TTJ

    if any(marker in normalized for marker in ('morocco', 'turkey', 'schengen')):
        return ServiceKey.SCHENGEN

    if 'gcc' in normalized or 'good conduct' in normalized:
        return ServiceKey.GCC

    if 'passport' in normalized:
        if any(marker in normalized for marker in _FILIPINA_MARKERS):
            return ServiceKey.FILIPINA_PP
        # Ethiopian and unqualified passport renewals
        return ServiceKey.ETHIOPIAN_PP

    return None


def service_key_to_prospect_service(service_key: ServiceKey) -> ProspectService:
    """Return the prospect category a ServiceKey belongs to."""
    for category, keys in PROSPECT_SERVICE_KEYS.items():
        if service_key in keys:
            return category
    # Unreachable while PROSPECT_SERVICE_KEYS covers every ServiceKey
    raise ValueError(f"ServiceKey {service_key!r} has no prospect category")


def prospect_interests(prospect: Prospect) -> List[ProspectService]:
    """Return the service categories flagged on a prospect, in category order."""
    return [
        category
        for category, flag in PROSPECT_INTEREST_FLAGS.items()
        if getattr(prospect, flag, False)
    ]
