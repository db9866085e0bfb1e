"""
Denial resolution workflow.

    OPEN --assign--> IN_PROGRESS --update--> APPEALED | CORRECTED | WRITTEN_OFF | RESOLVED

resolution_date is stamped the first time a denial enters RESOLVED and never
changes afterwards. Only ADMIN, MANAGER, BILLER and COLLECTOR users can be
assignees.
"""
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.config.database import transaction
from app.models.database import (
    Denial,
    DenialCategory,
    DenialPriority,
    RemittanceClaimDetail,
    ResolutionStatus,
    User,
    UserRole,
)
from app.schemas.base import parse_command
from app.schemas.denials import DenialUpdate
from app.services.denials.classifier import derive_denial_terms
from app.services.feature_flags import FeatureFlags
from app.utils.errors import AppError, ForbiddenRoleError, NotFoundError, StateConflictError
from app.utils.logger import get_logger

logger = get_logger(__name__)

ASSIGNABLE_ROLES: FrozenSet[UserRole] = frozenset(
    {UserRole.ADMIN, UserRole.MANAGER, UserRole.BILLER, UserRole.COLLECTOR}
)
CLOSED_STATUSES: FrozenSet[ResolutionStatus] = frozenset(
    {ResolutionStatus.RESOLVED, ResolutionStatus.WRITTEN_OFF}
)


class DenialWorkflow:
    def __init__(self, db: Session, flags: Optional[FeatureFlags] = None):
        self.db = db
        self.flags = flags or FeatureFlags(db)

    def list_denials(
        self,
        resolution_status: Optional[ResolutionStatus] = None,
        category: Optional[DenialCategory] = None,
        priority: Optional[DenialPriority] = None,
        assigned_to: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Denial]:
        query = self.db.query(Denial)
        if resolution_status:
            query = query.filter(Denial.resolution_status == resolution_status)
        if category:
            query = query.filter(Denial.category == category)
        if priority:
            query = query.filter(Denial.priority == priority)
        if assigned_to is not None:
            query = query.filter(Denial.assigned_to == assigned_to)
        return query.order_by(Denial.follow_up_date.asc(), Denial.id.asc()).offset(skip).limit(limit).all()

    def get_denial(self, denial_id: int) -> Denial:
        denial = self.db.query(Denial).filter(Denial.id == denial_id).first()
        if not denial:
            raise NotFoundError("Denial", str(denial_id))
        return denial

    def create_from_remittance(
        self, claim_id: int, detail: RemittanceClaimDetail, denial_date: Optional[date] = None
    ) -> Denial:
        """
        Open a denial for a remittance claim detail.

        Runs inside the caller's transaction.
        """
        denial_date = denial_date or date.today()
        reason_code = detail.claim_status_code or ""
        terms = derive_denial_terms(
            reason_code,
            denial_date,
            appeal_window_days=self.flags.denial_appeal_window_days(),
            follow_up_days=self.flags.denial_follow_up_days(),
        )
        denial = Denial(
            claim_id=claim_id,
            remittance_claim_detail_id=detail.id,
            denial_date=denial_date,
            denial_reason_code=reason_code,
            denial_reason_description=detail.claim_status_description,
            category=terms.category,
            priority=terms.priority,
            resolution_status=ResolutionStatus.OPEN,
            appeal_deadline=terms.appeal_deadline,
            follow_up_date=terms.follow_up_date,
        )
        self.db.add(denial)
        self.db.flush()

        logger.info(
            "Denial created",
            denial_id=denial.id,
            claim_id=claim_id,
            reason_code=reason_code,
            category=terms.category.value,
            priority=terms.priority.value,
        )
        return denial

    def assign(self, denial_id: int, user_id: int) -> Denial:
        """
        Assign a denial and move it to IN_PROGRESS.

        Raises:
            NotFoundError: Denial or user does not exist
            ForbiddenRoleError: User's role cannot work denials
            StateConflictError: Denial is already resolved or written off
        """
        user = self._assignable_user(user_id)
        with transaction(self.db):
            denial = self._assign(denial_id, user)
        return denial

    def bulk_assign(self, denial_ids: Sequence[int], user_id: int) -> Dict[str, Any]:
        """
        Assign many denials to one user.

        The assignee is checked once for the whole batch; each denial is then
        assigned in its own transaction and reported separately.
        """
        user = self._assignable_user(user_id)
        results = []
        for denial_id in denial_ids:
            try:
                with transaction(self.db):
                    self._assign(denial_id, user)
                results.append({"denial_id": denial_id, "success": True})
            except AppError as e:
                results.append(
                    {"denial_id": denial_id, "success": False, "error": e.code, "message": e.message}
                )

        successful = sum(1 for r in results if r["success"])
        logger.info(
            "Bulk denial assignment finished",
            assigned_to=user_id,
            total=len(results),
            successful=successful,
        )
        return {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    def update(self, denial_id: int, fields: Any) -> Denial:
        """
        Update resolution fields. resolution_status may only move to APPEALED,
        CORRECTED, WRITTEN_OFF or RESOLVED.

        Raises:
            ValidationError: Unknown field value or a status outside those targets
            NotFoundError: Denial (or new assignee) does not exist
            ForbiddenRoleError: New assignee's role cannot work denials
        """
        changes = parse_command(DenialUpdate, fields).model_dump(exclude_unset=True, exclude_none=True)
        if "assigned_to" in changes:
            self._assignable_user(changes["assigned_to"])

        with transaction(self.db):
            denial = self.get_denial(denial_id)
            previous = denial.resolution_status
            for key, value in changes.items():
                setattr(denial, key, value)
            if denial.resolution_status == ResolutionStatus.RESOLVED and denial.resolution_date is None:
                denial.resolution_date = date.today()

        logger.info(
            "Denial updated",
            denial_id=denial_id,
            from_status=previous.value,
            to_status=denial.resolution_status.value,
        )
        return denial

    def _assign(self, denial_id: int, user: User) -> Denial:
        denial = self.get_denial(denial_id)
        if denial.resolution_status in CLOSED_STATUSES:
            raise StateConflictError(
                f"Cannot assign a {denial.resolution_status.value} denial",
                details={"denial_id": denial_id},
            )
        denial.assigned_to = user.id
        denial.resolution_status = ResolutionStatus.IN_PROGRESS
        logger.info("Denial assigned", denial_id=denial_id, assigned_to=user.id)
        return denial

    def _assignable_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise NotFoundError("User", str(user_id))
        if user.role not in ASSIGNABLE_ROLES:
            raise ForbiddenRoleError(user.role.value, sorted(r.value for r in ASSIGNABLE_ROLES))
        return user
