"""
Enumeration definitions for the Prospect Dashboard backend.

All enums inherit from both `str` and `Enum` so they serialize as their plain
string value inside Pydantic models and JSON documents.

- ServiceKey: closed taxonomy of billable service lines
- ProspectService: service categories a conversation can be interested in
- PaymentStatus: normalized payment status
- EventSource: which raw stream a deduplicated event came from
- PnLSource: where P&L volumes were taken from
"""

from enum import Enum


class ServiceKey(str, Enum):
    """
    Closed enumeration of service lines sold by the agency.

    Travel to Lebanon and Travel to Egypt carry entry-type variants
    (single / double / multiple). The generic `ttl` / `tte` keys are used
    when a label names the destination but not the entry type.
    """
    OEC = "oec"
    OWWA = "owwa"
    TTL = "ttl"
    TTL_SINGLE = "ttlSingle"
    TTL_DOUBLE = "ttlDouble"
    TTL_MULTIPLE = "ttlMultiple"
    TTE = "tte"
    TTE_SINGLE = "tteSingle"
    TTE_DOUBLE = "tteDouble"
    TTE_MULTIPLE = "tteMultiple"
    TTJ = "ttj"
    SCHENGEN = "schengen"
    GCC = "gcc"
    ETHIOPIAN_PP = "ethiopianPP"
    FILIPINA_PP = "filipinaPP"


class ProspectService(str, Enum):
    """
    Service categories carried by classified prospects.

    TRAVEL_VISA is a union category: any travel ServiceKey
    (ttl/tte/ttj/schengen/gcc and the entry-type variants) satisfies it.
    """
    OEC = "oec"
    OWWA = "owwa"
    TRAVEL_VISA = "travelVisa"
    FILIPINA_PASSPORT_RENEWAL = "filipinaPassportRenewal"
    ETHIOPIAN_PASSPORT_RENEWAL = "ethiopianPassportRenewal"


class PaymentStatus(str, Enum):
    """Normalized payment status. Only RECEIVED payments count as conversions."""
    RECEIVED = "received"
    PRE_PDP = "pre_pdp"
    OTHER = "other"


class EventSource(str, Enum):
    """Raw stream a deduplicated event belongs to."""
    COMPLAINT = "complaint"
    TODO = "todo"


class PnLSource(str, Enum):
    """Origin of the volumes used for a P&L response."""
    COMPLAINTS = "complaints"
    NONE = "none"
