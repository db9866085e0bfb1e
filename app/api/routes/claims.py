"""
Claim endpoints.

Claims are created and edited as DRAFT/READY documents, then submitted to the
clearinghouse. Payer decisions arrive later through remittances
(see app/api/routes/remits.py).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.middleware.auth import get_current_user, require_roles
from app.config.database import get_db
from app.models.database import ClaimStatus, User, UserRole
from app.schemas.claims import ClaimCreateRequest, ClaimResponse, ClaimUpdateRequest
from app.services.claims.lifecycle import ClaimLifecycleManager
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

CLAIM_EDITORS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER)
CLAIM_REMOVERS = (UserRole.ADMIN, UserRole.MANAGER)


@router.post("/claims", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    request: ClaimCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_EDITORS)),
):
    """
    Create a DRAFT claim.

    total_charges is computed from the line items; a total sent by the client
    is ignored. A claim number is generated when none is given.
    """
    claim = ClaimLifecycleManager(db).create_claim(request, request.line_items, created_by=user.id)
    return claim


@router.get("/claims")
async def get_claims(
    claim_status: Optional[ClaimStatus] = Query(default=None, alias="status", description="Filter by claim status"),
    skip: int = Query(default=0, ge=0, description="Number of records to skip"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum number of records to return"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get list of claims, newest first."""
    claims = ClaimLifecycleManager(db).list_claims(status=claim_status, skip=skip, limit=limit)
    return {
        "claims": [
            {
                "id": claim.id,
                "claim_number": claim.claim_number,
                "patient_id": claim.patient_id,
                "status": claim.status.value,
                "service_date_from": claim.service_date_from.isoformat() if claim.service_date_from else None,
                "total_charges": str(claim.total_charges),
                "total_paid": str(claim.total_paid),
                "patient_responsibility": str(claim.patient_responsibility),
                "created_at": claim.created_at.isoformat() if claim.created_at else None,
            }
            for claim in claims
        ],
        "total": len(claims),
        "skip": skip,
        "limit": limit,
    }


@router.get("/claims/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get one claim with its line items."""
    return ClaimLifecycleManager(db).get_claim(claim_id)


@router.put("/claims/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    claim_id: int,
    request: ClaimUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_EDITORS)),
):
    """
    Update a DRAFT or READY claim.

    The request's line items replace every stored line item.
    """
    return ClaimLifecycleManager(db).update_claim(claim_id, request, request.line_items)


@router.post("/claims/{claim_id}/ready", response_model=ClaimResponse)
async def mark_claim_ready(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_EDITORS)),
):
    """Move a DRAFT claim to READY."""
    return ClaimLifecycleManager(db).mark_ready(claim_id)


@router.post("/claims/{claim_id}/submit", response_model=ClaimResponse)
def submit_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_EDITORS)),
):
    """
    Submit a claim to the clearinghouse.

    **Errors:**
    - 409 `STATE_CONFLICT`: claim is not DRAFT or READY
    - 400 `VALIDATION_ERROR`: required identifiers or line data missing
    - 502 `EXTERNAL_FAILURE`: clearinghouse rejected the call or timed out
    """
    logger.info("Claim submission requested", claim_id=claim_id, user_id=user.id)
    return ClaimLifecycleManager(db).submit_claim(claim_id)


@router.post("/claims/{claim_id}/check-status")
def check_claim_status(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_EDITORS)),
):
    """Poll the clearinghouse for a submitted claim's status."""
    return ClaimLifecycleManager(db).check_claim_status(claim_id)


@router.delete("/claims/{claim_id}")
async def delete_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLAIM_REMOVERS)),
):
    """Delete a DRAFT claim and its line items."""
    ClaimLifecycleManager(db).delete_claim(claim_id)
    return {"message": "Claim deleted", "claim_id": claim_id}
