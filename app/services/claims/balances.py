"""
Claim money aggregates.

total_charges is the sum of the line item charges. total_paid sums INSURANCE
and PATIENT postings; adjustments sum ADJUSTMENT postings; REFUND postings do
not move either total.

    patient_responsibility = max(0, total_charges - total_paid - adjustments)

Callers recompute inside the same transaction that changed the postings or
line items, after locking the claim row with lock_claim().
"""
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.database import Claim, PaymentPosting, PaymentType
from app.utils.decimal_utils import ZERO, floor_at_zero, money_sum, to_money
from app.utils.errors import NotFoundError

PAID_TYPES = (PaymentType.INSURANCE, PaymentType.PATIENT)


def lock_claim(db: Session, claim_id: int) -> Claim:
    """
    Load a claim with its row locked for the rest of the transaction.

    Raises:
        NotFoundError: If the claim does not exist
    """
    claim = (
        db.query(Claim)
        .filter(Claim.id == claim_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not claim:
        raise NotFoundError("Claim", str(claim_id))
    return claim


def total_line_charges(line_items: Iterable) -> Decimal:
    return money_sum(item.charge_amount for item in line_items)


def posting_totals(db: Session, claim_id: int) -> dict:
    """Sum of posting amounts per payment type for one claim."""
    rows = (
        db.query(PaymentPosting.payment_type, func.sum(PaymentPosting.amount))
        .filter(PaymentPosting.claim_id == claim_id)
        .group_by(PaymentPosting.payment_type)
        .all()
    )
    return {payment_type: to_money(amount) for payment_type, amount in rows}


def recalculate_claim_balances(db: Session, claim: Claim) -> Claim:
    """Recompute total_paid and patient_responsibility from stored postings."""
    db.flush()
    totals = posting_totals(db, claim.id)

    total_paid = sum((totals.get(t, ZERO) for t in PAID_TYPES), ZERO)
    adjustments = totals.get(PaymentType.ADJUSTMENT, ZERO)

    claim.total_paid = to_money(total_paid)
    claim.patient_responsibility = floor_at_zero(
        to_money(claim.total_charges) - total_paid - adjustments
    )
    db.flush()
    return claim
