"""
Claims lifecycle manager.

Owns claim and line item state:

    DRAFT -> READY -> SUBMITTED -> {ACCEPTED, REJECTED} -> {PAID, DENIED} -> {APPEALED, CLOSED}

Claims are editable only in DRAFT/READY, submittable only from DRAFT/READY
and deletable only in DRAFT. Remittances may move a claim straight to the
status the payer reports (see apply_remittance_status); manual moves go
through LEGAL_TRANSITIONS.

total_charges is always recomputed from the stored line items.
"""
import random
import time
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from app.config.database import transaction
from app.models.database import (
    Claim,
    ClaimLineItem,
    ClaimStatus,
    LineItemStatus,
    Patient,
    PatientInsurance,
)
from app.schemas.base import parse_command
from app.schemas.claims import ClaimCreate, ClaimLineItemCreate, ClaimUpdate, LineItemSet
from app.services.claims.balances import lock_claim, recalculate_claim_balances, total_line_charges
from app.services.claims.payload import build_submission_payload
from app.services.claims.validation import validate_for_submission
from app.services.integrations.base_adapter import ClearinghouseAdapter
from app.services.remittance.codes import claim_status_for
from app.utils.errors import ExternalServiceError, NotFoundError, StateConflictError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_STATUSES: FrozenSet[ClaimStatus] = frozenset({ClaimStatus.DRAFT, ClaimStatus.READY})
SUBMITTABLE_STATUSES = EDITABLE_STATUSES
DELETABLE_STATUSES: FrozenSet[ClaimStatus] = frozenset({ClaimStatus.DRAFT})

LEGAL_TRANSITIONS: Mapping[ClaimStatus, FrozenSet[ClaimStatus]] = MappingProxyType(
    {
        ClaimStatus.DRAFT: frozenset({ClaimStatus.READY}),
        ClaimStatus.READY: frozenset({ClaimStatus.DRAFT}),
        ClaimStatus.SUBMITTED: frozenset(
            {ClaimStatus.ACCEPTED, ClaimStatus.REJECTED, ClaimStatus.PAID, ClaimStatus.DENIED}
        ),
        ClaimStatus.ACCEPTED: frozenset({ClaimStatus.PAID, ClaimStatus.DENIED}),
        ClaimStatus.REJECTED: frozenset({ClaimStatus.READY, ClaimStatus.CLOSED}),
        ClaimStatus.PAID: frozenset({ClaimStatus.CLOSED}),
        ClaimStatus.DENIED: frozenset({ClaimStatus.APPEALED, ClaimStatus.CLOSED}),
        ClaimStatus.APPEALED: frozenset({ClaimStatus.PAID, ClaimStatus.DENIED, ClaimStatus.CLOSED}),
        ClaimStatus.CLOSED: frozenset(),
    }
)

CLAIM_NUMBER_ATTEMPTS = 5


def generate_claim_number() -> str:
    """CLM + last 8 digits of the millisecond clock + 3 random digits."""
    millis = str(int(time.time() * 1000))[-8:]
    return f"CLM{millis}{random.randint(0, 999):03d}"


class ClaimLifecycleManager:
    """Create, edit, submit and retire claims."""

    def __init__(self, db: Session, gateway: Optional[ClearinghouseAdapter] = None):
        self.db = db
        self._gateway = gateway

    @property
    def gateway(self) -> ClearinghouseAdapter:
        """Entered as a context manager around each call so its connection is released."""
        if self._gateway is None:
            from app.services.integrations.clearinghouse import get_clearinghouse_adapter

            self._gateway = get_clearinghouse_adapter()
        return self._gateway

    # Queries

    def get_claim(self, claim_id: int) -> Claim:
        claim = self.db.query(Claim).filter(Claim.id == claim_id).first()
        if not claim:
            raise NotFoundError("Claim", str(claim_id))
        return claim

    def get_claim_by_number(self, claim_number: str) -> Optional[Claim]:
        return self.db.query(Claim).filter(Claim.claim_number == claim_number).first()

    def list_claims(
        self, status: Optional[ClaimStatus] = None, skip: int = 0, limit: int = 100
    ) -> List[Claim]:
        query = self.db.query(Claim)
        if status:
            query = query.filter(Claim.status == status)
        return query.order_by(Claim.created_at.desc(), Claim.id.desc()).offset(skip).limit(limit).all()

    # Commands

    def create_claim(
        self,
        claim_data: Any,
        line_items: Sequence[Any],
        created_by: Optional[int] = None,
    ) -> Claim:
        """
        Create a DRAFT claim with its line items.

        Raises:
            ValidationError: Bad header, no line items, or a non-positive charge
            NotFoundError: Patient or coverage does not exist
            StateConflictError: claim_number already used
        """
        fields = parse_command(ClaimCreate, claim_data)
        items = parse_command(LineItemSet, {"line_items": list(line_items)}).line_items
        self._check_references(fields.patient_id, fields.primary_insurance_id, fields.secondary_insurance_id)

        claim_number = fields.claim_number or self._unused_claim_number()
        if fields.claim_number and self.get_claim_by_number(claim_number):
            raise StateConflictError(
                f"Claim number {claim_number} already exists",
                details={"claim_number": claim_number},
            )

        header = fields.model_dump(exclude={"claim_number", "total_charges"}, exclude_none=True)
        with transaction(self.db):
            claim = Claim(
                claim_number=claim_number,
                status=ClaimStatus.DRAFT,
                created_by=created_by,
                **header,
            )
            self.db.add(claim)
            self.db.flush()
            self.replace_line_items(claim, items)
            recalculate_claim_balances(self.db, claim)

        logger.info(
            "Claim created",
            claim_id=claim.id,
            claim_number=claim.claim_number,
            line_count=len(items),
            total_charges=str(claim.total_charges),
        )
        return claim

    def update_claim(self, claim_id: int, claim_data: Any, line_items: Sequence[Any]) -> Claim:
        """
        Update header fields and replace all line items.

        Raises:
            StateConflictError: Claim is not DRAFT or READY
        """
        fields = parse_command(ClaimUpdate, claim_data)
        items = parse_command(LineItemSet, {"line_items": list(line_items)}).line_items
        changes = fields.model_dump(exclude_unset=True, exclude={"total_charges"})

        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            self._require_status(claim, EDITABLE_STATUSES, "update")

            if {"patient_id", "primary_insurance_id", "secondary_insurance_id"} & changes.keys():
                self._check_references(
                    changes.get("patient_id", claim.patient_id),
                    changes.get("primary_insurance_id", claim.primary_insurance_id),
                    changes.get("secondary_insurance_id", claim.secondary_insurance_id),
                )
            for key, value in changes.items():
                setattr(claim, key, value)
            if claim.service_date_to < claim.service_date_from:
                raise ValidationError("service_date_to must not be before service_date_from")

            self.replace_line_items(claim, items)
            recalculate_claim_balances(self.db, claim)

        logger.info("Claim updated", claim_id=claim.id, line_count=len(items))
        return claim

    def replace_line_items(self, claim: Claim, items: Sequence[ClaimLineItemCreate]) -> Claim:
        """
        Delete every line item of ``claim`` and insert ``items``.

        Runs inside the caller's transaction; total_charges is recomputed from
        the new set.
        """
        self.db.query(ClaimLineItem).filter(ClaimLineItem.claim_id == claim.id).delete(
            synchronize_session=False
        )
        self.db.expire(claim, ["line_items"])

        new_items = [
            ClaimLineItem(
                claim_id=claim.id,
                line_number=number,
                procedure_code=item.procedure_code,
                modifiers=list(item.modifiers),
                diagnosis_pointers=list(item.diagnosis_pointers),
                service_date=item.service_date,
                units=item.units,
                charge_amount=item.charge_amount,
                allowed_amount=item.allowed_amount,
                status=LineItemStatus.PENDING,
            )
            for number, item in enumerate(items, start=1)
        ]
        self.db.add_all(new_items)
        claim.total_charges = total_line_charges(new_items)
        self.db.flush()
        return claim

    def mark_ready(self, claim_id: int) -> Claim:
        return self.transition(claim_id, ClaimStatus.READY)

    def transition(self, claim_id: int, target: ClaimStatus) -> Claim:
        """
        Manually move a claim along LEGAL_TRANSITIONS.

        SUBMITTED is reachable only through submit_claim().
        """
        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            current = claim.status
            if target not in LEGAL_TRANSITIONS[current]:
                raise StateConflictError(
                    f"Cannot move claim from {current.value} to {target.value}",
                    details={"claim_id": claim_id, "status": current.value, "target": target.value},
                )
            claim.status = target

        logger.info("Claim status changed", claim_id=claim_id, from_status=current.value, to_status=target.value)
        return claim

    def submit_claim(self, claim_id: int) -> Claim:
        """
        Validate and send a claim to the clearinghouse.

        The claim becomes SUBMITTED only when the gateway accepts it.

        Raises:
            StateConflictError: Claim is not DRAFT or READY
            ValidationError: Required identifiers or line data missing
            ExternalServiceError: Gateway error or timeout; claim unchanged
        """
        claim = self.get_claim(claim_id)
        self._require_status(claim, SUBMITTABLE_STATUSES, "submit")
        validate_for_submission(claim)

        payload = build_submission_payload(claim)
        with self.gateway as gateway:
            result = gateway.submit_claim(payload)
        if not result.success:
            logger.warning(
                "Claim submission failed",
                claim_id=claim_id,
                claim_number=claim.claim_number,
                error=result.error,
            )
            raise ExternalServiceError(self.gateway.name, result.error or "submission failed")

        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            self._require_status(claim, SUBMITTABLE_STATUSES, "submit")
            claim.status = ClaimStatus.SUBMITTED
            claim.submission_date = datetime.utcnow()
            claim.clearinghouse_id = result.external_id
            claim.clearinghouse_status = result.status

        logger.info(
            "Claim submitted",
            claim_id=claim_id,
            claim_number=claim.claim_number,
            clearinghouse_id=result.external_id,
        )
        return claim

    def check_claim_status(self, claim_id: int) -> Dict[str, Any]:
        """
        Poll the clearinghouse and store the reported status.

        Raises:
            StateConflictError: Claim has no clearinghouse tracking id
            ExternalServiceError: Gateway error or timeout; claim unchanged
        """
        claim = self.get_claim(claim_id)
        if not claim.clearinghouse_id:
            raise StateConflictError(
                "Claim has not been submitted to the clearinghouse",
                details={"claim_id": claim_id, "status": claim.status.value},
            )

        with self.gateway as gateway:
            result = gateway.get_claim_status(claim.clearinghouse_id)
        if not result.success:
            raise ExternalServiceError(self.gateway.name, result.error or "status check failed")

        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            if result.status and result.status != claim.clearinghouse_status:
                logger.info(
                    "Clearinghouse status changed",
                    claim_id=claim_id,
                    from_status=claim.clearinghouse_status,
                    to_status=result.status,
                )
                claim.clearinghouse_status = result.status

        return {
            "claim_id": claim.id,
            "clearinghouse_id": claim.clearinghouse_id,
            "status": claim.clearinghouse_status,
            "details": result.details,
        }

    def apply_remittance_status(self, claim_id: int, payer_status_code: str) -> Claim:
        """
        Move a claim to the status a payer reported and refresh its balances.

        Runs inside the caller's transaction. The payer is authoritative, so
        LEGAL_TRANSITIONS is not consulted.
        """
        claim = lock_claim(self.db, claim_id)
        previous = claim.status
        claim.status = claim_status_for(payer_status_code)
        recalculate_claim_balances(self.db, claim)

        logger.info(
            "Claim status applied from remittance",
            claim_id=claim_id,
            payer_status_code=payer_status_code,
            from_status=previous.value,
            to_status=claim.status.value,
        )
        return claim

    def delete_claim(self, claim_id: int) -> None:
        """
        Raises:
            StateConflictError: Claim is not DRAFT
        """
        with transaction(self.db):
            claim = lock_claim(self.db, claim_id)
            self._require_status(claim, DELETABLE_STATUSES, "delete")
            self.db.delete(claim)

        logger.info("Claim deleted", claim_id=claim_id)

    # Helpers

    def _require_status(self, claim: Claim, allowed: FrozenSet[ClaimStatus], action: str) -> None:
        if claim.status not in allowed:
            raise StateConflictError(
                f"Cannot {action} claim in {claim.status.value} status",
                details={
                    "claim_id": claim.id,
                    "status": claim.status.value,
                    "allowed": sorted(s.value for s in allowed),
                },
            )

    def _check_references(
        self, patient_id: int, primary_insurance_id: int, secondary_insurance_id: Optional[int]
    ) -> None:
        if not self.db.query(Patient.id).filter(Patient.id == patient_id).first():
            raise NotFoundError("Patient", str(patient_id))
        for coverage_id in (primary_insurance_id, secondary_insurance_id):
            if coverage_id is None:
                continue
            coverage = self.db.query(PatientInsurance).filter(PatientInsurance.id == coverage_id).first()
            if not coverage:
                raise NotFoundError("Patient insurance", str(coverage_id))
            if coverage.patient_id != patient_id:
                raise ValidationError(
                    "Insurance coverage does not belong to the patient",
                    details={"patient_id": patient_id, "insurance_id": coverage_id},
                )

    def _unused_claim_number(self) -> str:
        for _ in range(CLAIM_NUMBER_ATTEMPTS):
            candidate = generate_claim_number()
            if not self.get_claim_by_number(candidate):
                return candidate
        raise StateConflictError("Could not allocate a unique claim number")
