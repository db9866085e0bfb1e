"""Payment posting endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.middleware.auth import get_current_user, require_roles
from app.config.database import get_db
from app.models.database import User, UserRole
from app.schemas.payments import (
    BulkPaymentRequest,
    PaymentPostingRequest,
    PaymentPostingResponse,
    PaymentPostingUpdate,
)
from app.services.payments.actors import HumanActor
from app.services.payments.reconciliation import PaymentReconciler

router = APIRouter()

PAYMENT_POSTERS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER)
PAYMENT_REMOVERS = (UserRole.ADMIN, UserRole.MANAGER)


@router.post("/payments", response_model=PaymentPostingResponse, status_code=status.HTTP_201_CREATED)
async def post_payment(
    request: PaymentPostingRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*PAYMENT_POSTERS)),
):
    """Record a manual payment and refresh the claim's balances."""
    posting = request.model_dump(exclude={"claim_id"})
    return PaymentReconciler(db).post_payment(request.claim_id, posting, HumanActor(user.id))


@router.post("/payments/bulk")
async def bulk_post_payments(
    request: BulkPaymentRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*PAYMENT_POSTERS)),
):
    """
    Post many payments.

    Each payment is posted in its own transaction; the response reports every
    item's outcome and one failure never undoes the others.
    """
    return PaymentReconciler(db).bulk_post(request.payments, HumanActor(user.id))


@router.get("/payments/claim/{claim_id}")
async def get_claim_payments(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get a claim's postings, newest first."""
    postings = PaymentReconciler(db).list_payments(claim_id)
    return {
        "claim_id": claim_id,
        "payments": [PaymentPostingResponse.model_validate(p).model_dump(mode="json") for p in postings],
        "total": len(postings),
    }


@router.put("/payments/{posting_id}", response_model=PaymentPostingResponse)
async def update_payment(
    posting_id: int,
    request: PaymentPostingUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*PAYMENT_POSTERS)),
):
    """Update a manual posting. System ERA postings cannot be changed."""
    return PaymentReconciler(db).update_payment(posting_id, request)


@router.delete("/payments/{posting_id}")
async def delete_payment(
    posting_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*PAYMENT_REMOVERS)),
):
    """Delete a manual posting. System ERA postings cannot be deleted."""
    PaymentReconciler(db).delete_payment(posting_id)
    return {"message": "Payment deleted", "posting_id": posting_id}
