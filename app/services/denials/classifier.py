"""
Denial classification.

Category and priority come from the ordered code tables in
app.services.remittance.codes; deadlines are offsets from the denial date.
"""
from dataclasses import dataclass
from datetime import date, timedelta

from app.models.enums import DenialCategory, DenialPriority
from app.services.remittance.codes import (
    DEFAULT_DENIAL_CATEGORY,
    DEFAULT_DENIAL_PRIORITY,
    DENIAL_CATEGORY_CODES,
    DENIAL_PRIORITY_CODES,
)

APPEAL_WINDOW_DAYS = 90
FOLLOW_UP_DAYS = 14


def classify_category(reason_code: str) -> DenialCategory:
    for category, codes in DENIAL_CATEGORY_CODES:
        if reason_code in codes:
            return category
    return DEFAULT_DENIAL_CATEGORY


def classify_priority(reason_code: str) -> DenialPriority:
    for priority, codes in DENIAL_PRIORITY_CODES:
        if reason_code in codes:
            return priority
    return DEFAULT_DENIAL_PRIORITY


@dataclass(frozen=True)
class DenialTerms:
    category: DenialCategory
    priority: DenialPriority
    appeal_deadline: date
    follow_up_date: date


def derive_denial_terms(
    reason_code: str,
    denial_date: date,
    appeal_window_days: int = APPEAL_WINDOW_DAYS,
    follow_up_days: int = FOLLOW_UP_DAYS,
) -> DenialTerms:
    """
    >>> terms = derive_denial_terms("16", date(2024, 1, 1))
    >>> terms.category, terms.priority, terms.follow_up_date
    (<DenialCategory.TECHNICAL: 'TECHNICAL'>, <DenialPriority.URGENT: 'URGENT'>, datetime.date(2024, 1, 15))
    """
    return DenialTerms(
        category=classify_category(reason_code),
        priority=classify_priority(reason_code),
        appeal_deadline=denial_date + timedelta(days=appeal_window_days),
        follow_up_date=denial_date + timedelta(days=follow_up_days),
    )
