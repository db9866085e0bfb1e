"""
Payment reconciliation engine.

Every posting mutation runs in one transaction that locks the claim row,
changes the postings and recomputes the claim aggregates before commit:

    patient_responsibility = max(0, total_charges - total_paid - total_adjustments)

Postings on different claims never share a lock. Postings on the same claim
serialize on the claim row lock; there is no in-process lock, so the
database's isolation is the only barrier.

ERA postings recorded by the system are immutable.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.config.database import transaction
from app.models.database import (
    Claim,
    PaymentMethod,
    PaymentPosting,
    PaymentType,
    Remittance,
    RemittanceClaimDetail,
)
from app.schemas.base import parse_command
from app.schemas.payments import PaymentPostingCreate, PaymentPostingUpdate
from app.services.claims.balances import lock_claim, recalculate_claim_balances
from app.services.feature_flags import FeatureFlags
from app.services.payments.actors import SYSTEM, Actor, actor_columns, is_immutable
from app.utils.decimal_utils import ZERO, to_money
from app.utils.errors import AppError, NotFoundError, StateConflictError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class PaymentReconciler:
    """Records postings and keeps claim balances consistent with them."""

    def __init__(self, db: Session, flags: Optional[FeatureFlags] = None):
        self.db = db
        self.flags = flags or FeatureFlags(db)

    def list_payments(self, claim_id: int) -> List[PaymentPosting]:
        if not self.db.query(Claim.id).filter(Claim.id == claim_id).first():
            raise NotFoundError("Claim", str(claim_id))
        return (
            self.db.query(PaymentPosting)
            .filter(PaymentPosting.claim_id == claim_id)
            .order_by(PaymentPosting.payment_date.desc(), PaymentPosting.id.desc())
            .all()
        )

    def get_payment(self, posting_id: int) -> PaymentPosting:
        posting = self.db.query(PaymentPosting).filter(PaymentPosting.id == posting_id).first()
        if not posting:
            raise NotFoundError("Payment posting", str(posting_id))
        return posting

    def post_payment(self, claim_id: int, posting_data: Any, actor: Actor) -> PaymentPosting:
        """
        Record a payment against a claim.

        Raises:
            ValidationError: Negative amount or unknown type/method
            NotFoundError: Claim does not exist
        """
        data = parse_command(PaymentPostingCreate, posting_data)

        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            posting = PaymentPosting(claim_id=claim.id, **data.model_dump(), **actor_columns(actor))
            self.db.add(posting)
            recalculate_claim_balances(self.db, claim)

        logger.info(
            "Payment posted",
            posting_id=posting.id,
            claim_id=claim_id,
            payment_type=data.payment_type.value,
            amount=str(data.amount),
        )
        return posting

    def update_payment(self, posting_id: int, fields: Any) -> PaymentPosting:
        """
        Raises:
            NotFoundError: Posting does not exist
            StateConflictError: Posting is a system ERA posting
        """
        changes = parse_command(PaymentPostingUpdate, fields).model_dump(exclude_unset=True, exclude_none=True)

        with transaction(self.db):
            posting = self._get_mutable(posting_id, "update")
            claim = lock_claim(self.db, posting.claim_id)
            for key, value in changes.items():
                setattr(posting, key, value)
            recalculate_claim_balances(self.db, claim)

        logger.info("Payment updated", posting_id=posting_id, fields=sorted(changes))
        return posting

    def delete_payment(self, posting_id: int) -> None:
        """
        Raises:
            NotFoundError: Posting does not exist
            StateConflictError: Posting is a system ERA posting
        """
        with transaction(self.db):
            posting = self._get_mutable(posting_id, "delete")
            claim = lock_claim(self.db, posting.claim_id)
            self.db.delete(posting)
            recalculate_claim_balances(self.db, claim)

        logger.info("Payment deleted", posting_id=posting_id)

    def bulk_post(self, items: Sequence[Dict[str, Any]], actor: Actor) -> Dict[str, Any]:
        """
        Post each item in its own transaction.

        Each item is a posting plus ``claim_id``. A failed item is recorded and
        never rolls back or blocks the others.
        """
        results = []
        for index, item in enumerate(items):
            item = item.model_dump() if hasattr(item, "model_dump") else dict(item)
            claim_id = item.pop("claim_id", None)
            try:
                if claim_id is None:
                    raise NotFoundError("Claim")
                posting = self.post_payment(claim_id, item, actor)
                results.append({"index": index, "claim_id": claim_id, "success": True, "posting_id": posting.id})
            except AppError as e:
                results.append(
                    {"index": index, "claim_id": claim_id, "success": False, "error": e.code, "message": e.message}
                )
            except Exception as e:
                logger.error("Bulk payment item failed", index=index, claim_id=claim_id, error=str(e), exc_info=True)
                results.append(
                    {"index": index, "claim_id": claim_id, "success": False, "error": "INTERNAL_ERROR", "message": str(e)}
                )

        successful = sum(1 for r in results if r["success"])
        logger.info("Bulk payment posting finished", total=len(results), successful=successful)
        return {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    def auto_post_from_remittance(
        self, detail: RemittanceClaimDetail, claim_id: int, remittance: Optional[Remittance] = None
    ) -> Optional[PaymentPosting]:
        """
        Record the insurance payment a remittance reports for a matched claim.

        Runs inside the caller's transaction. Returns None when auto-posting is
        off or the payer paid nothing.
        """
        if not self.flags.auto_posting_enabled():
            logger.info("ERA auto-posting disabled, skipping posting", claim_id=claim_id)
            return None

        amount = to_money(detail.paid_amount)
        if amount <= ZERO:
            return None

        remittance = remittance or detail.remittance
        claim = lock_claim(self.db, claim_id)
        posting = PaymentPosting(
            claim_id=claim.id,
            remittance_id=remittance.id if remittance else None,
            payment_type=PaymentType.INSURANCE,
            payment_method=PaymentMethod.ERA,
            amount=amount,
            payment_date=(remittance.check_date if remittance else None) or date.today(),
            check_number=remittance.check_number if remittance else None,
            reference_number=remittance.remittance_number if remittance else None,
            notes=f"Auto-posted from ERA {remittance.remittance_number}" if remittance else "Auto-posted from ERA",
            **actor_columns(SYSTEM),
        )
        self.db.add(posting)
        recalculate_claim_balances(self.db, claim)

        logger.info("ERA payment auto-posted", claim_id=claim_id, amount=str(amount))
        return posting

    def _get_mutable(self, posting_id: int, action: str) -> PaymentPosting:
        posting = self.get_payment(posting_id)
        if is_immutable(posting):
            raise StateConflictError(
                f"Cannot {action} a system-posted ERA payment",
                details={"posting_id": posting_id},
            )
        return posting
