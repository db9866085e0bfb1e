"""Denial work queue endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.middleware.auth import get_current_user, require_roles
from app.config.database import get_db
from app.models.database import DenialCategory, DenialPriority, ResolutionStatus, User, UserRole
from app.schemas.denials import BulkAssignRequest, DenialAssignRequest, DenialResponse, DenialUpdate
from app.services.denials.workflow import DenialWorkflow

router = APIRouter()

DENIAL_ASSIGNERS = (UserRole.ADMIN, UserRole.MANAGER)
DENIAL_WORKERS = (UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER, UserRole.COLLECTOR)


@router.get("/denials")
async def get_denials(
    resolution_status: Optional[ResolutionStatus] = Query(default=None),
    category: Optional[DenialCategory] = Query(default=None),
    priority: Optional[DenialPriority] = Query(default=None),
    assigned_to: Optional[int] = Query(default=None),
    skip: int = Query(default=0, ge=0, description="Number of records to skip"),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum number of records to return"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get denials ordered by follow-up date."""
    denials = DenialWorkflow(db).list_denials(
        resolution_status=resolution_status,
        category=category,
        priority=priority,
        assigned_to=assigned_to,
        skip=skip,
        limit=limit,
    )
    return {
        "denials": [DenialResponse.model_validate(d).model_dump(mode="json") for d in denials],
        "total": len(denials),
        "skip": skip,
        "limit": limit,
    }


@router.post("/denials/bulk-assign")
async def bulk_assign_denials(
    request: BulkAssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DENIAL_ASSIGNERS)),
):
    """
    Assign many denials to one user.

    Fails as a whole only when the assignee is missing or not allowed; each
    denial's outcome is otherwise reported separately.
    """
    return DenialWorkflow(db).bulk_assign(request.denial_ids, request.user_id)


@router.get("/denials/{denial_id}", response_model=DenialResponse)
async def get_denial(
    denial_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return DenialWorkflow(db).get_denial(denial_id)


@router.put("/denials/{denial_id}", response_model=DenialResponse)
async def update_denial(
    denial_id: int,
    request: DenialUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DENIAL_WORKERS)),
):
    """Record progress on a denial; resolution_date is set when it is first RESOLVED."""
    return DenialWorkflow(db).update(denial_id, request)


@router.post("/denials/{denial_id}/assign", response_model=DenialResponse)
async def assign_denial(
    denial_id: int,
    request: DenialAssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DENIAL_ASSIGNERS)),
):
    """Assign a denial and move it to IN_PROGRESS."""
    return DenialWorkflow(db).assign(denial_id, request.user_id)
