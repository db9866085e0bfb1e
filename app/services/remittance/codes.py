"""
Static payer code tables.

Payer claim status codes (CLP02) and the claim adjustment reason codes used to
classify denials. Tables are read-only mappings; adding a code is a data
change, never a new branch.
"""
from types import MappingProxyType
from typing import Mapping, Tuple, FrozenSet

from app.models.enums import ClaimStatus, DenialCategory, DenialPriority

UNKNOWN_STATUS_DESCRIPTION = "Unknown Status"

CLAIM_STATUS_DESCRIPTIONS: Mapping[str, str] = MappingProxyType(
    {
        "1": "Processed as Primary",
        "2": "Processed as Secondary",
        "3": "Processed as Tertiary",
        "4": "Denied",
        "19": "Processed as Primary, Forwarded to Additional Payer(s)",
        "20": "Processed as Secondary, Forwarded to Additional Payer(s)",
        "21": "Processed as Tertiary, Forwarded to Additional Payer(s)",
        "22": "Reversal of Previous Payment",
        "23": "Not Our Claim, Forwarded to Additional Payer(s)",
        "25": "Predetermination Pricing Only - No Payment",
    }
)

# Unmapped codes leave the claim SUBMITTED until the payer says more
DEFAULT_CLAIM_STATUS = ClaimStatus.SUBMITTED

PAYER_STATUS_TO_CLAIM_STATUS: Mapping[str, ClaimStatus] = MappingProxyType(
    {
        "1": ClaimStatus.PAID,
        "2": ClaimStatus.PAID,
        "3": ClaimStatus.PAID,
        "19": ClaimStatus.PAID,
        "20": ClaimStatus.PAID,
        "21": ClaimStatus.PAID,
        "22": ClaimStatus.PAID,
        "4": ClaimStatus.DENIED,
        "23": ClaimStatus.REJECTED,
        "25": ClaimStatus.ACCEPTED,
    }
)

DENIAL_STATUS_CODES: FrozenSet[str] = frozenset({"4", "23"})

# Checked in order; the first list containing a code decides its category.
# "27" appears under both TECHNICAL and ELIGIBILITY and resolves to TECHNICAL.
DENIAL_CATEGORY_CODES: Tuple[Tuple[DenialCategory, FrozenSet[str]], ...] = (
    (DenialCategory.TECHNICAL, frozenset({"16", "18", "26", "27"})),
    (DenialCategory.CLINICAL, frozenset({"11", "12", "13", "14", "15"})),
    (DenialCategory.AUTHORIZATION, frozenset({"52", "53", "54", "55", "56"})),
    (DenialCategory.ELIGIBILITY, frozenset({"27", "29", "30", "31"})),
)
DEFAULT_DENIAL_CATEGORY = DenialCategory.OTHER

DENIAL_PRIORITY_CODES: Tuple[Tuple[DenialPriority, FrozenSet[str]], ...] = (
    (DenialPriority.URGENT, frozenset({"16", "18"})),
    (DenialPriority.HIGH, frozenset({"11", "12", "27", "29"})),
)
DEFAULT_DENIAL_PRIORITY = DenialPriority.MEDIUM


def describe_claim_status(code: str) -> str:
    """Human-readable description for a payer claim status code."""
    return CLAIM_STATUS_DESCRIPTIONS.get(code, UNKNOWN_STATUS_DESCRIPTION)


def claim_status_for(code: str) -> ClaimStatus:
    """Claim status a payer claim status code moves the claim to."""
    return PAYER_STATUS_TO_CLAIM_STATUS.get(code, DEFAULT_CLAIM_STATUS)


def is_denial_code(code: str) -> bool:
    return code in DENIAL_STATUS_CODES
