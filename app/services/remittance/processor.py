"""
Remittance ingestion.

    RECEIVED --parse ok--> PROCESSING --all details ok--> POSTED
        |                      |
        +--parse failure-------+--any detail failed--> ERROR

A file is stored as a RECEIVED remittance before it is parsed so that every
upload leaves a row behind, including the ones that fail. Parse failures and
duplicate remittance numbers leave no claim details behind.

Each claim detail is processed in its own transaction: record the detail, and
when its claim number matches a stored claim, auto-post the payment, apply
the payer status and open a denial for denial codes. A failing detail is
rolled back alone and the remaining details still run.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from app.config.database import transaction
from app.models.database import (
    Claim,
    Remittance,
    RemittanceClaimDetail,
    RemittanceStatus,
)
from app.services.claims.lifecycle import ClaimLifecycleManager
from app.services.denials.workflow import DenialWorkflow
from app.services.feature_flags import FeatureFlags
from app.services.payments.reconciliation import PaymentReconciler
from app.services.remittance.codes import is_denial_code
from app.services.remittance.parser import ClaimPaymentDetail, ParsedRemittance, parse_remittance
from app.utils.errors import AppError, NotFoundError, StateConflictError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class RemittanceProcessor:
    """Ingests remittance files and drives the claim, payment and denial updates they imply."""

    def __init__(
        self,
        db: Session,
        flags: Optional[FeatureFlags] = None,
        lifecycle: Optional[ClaimLifecycleManager] = None,
        reconciler: Optional[PaymentReconciler] = None,
        denials: Optional[DenialWorkflow] = None,
    ):
        self.db = db
        self.flags = flags or FeatureFlags(db)
        self.lifecycle = lifecycle or ClaimLifecycleManager(db)
        self.reconciler = reconciler or PaymentReconciler(db, flags=self.flags)
        self.denials = denials or DenialWorkflow(db, flags=self.flags)

    def list_remittances(
        self, processing_status: Optional[RemittanceStatus] = None, skip: int = 0, limit: int = 100
    ) -> List[Remittance]:
        query = self.db.query(Remittance)
        if processing_status:
            query = query.filter(Remittance.processing_status == processing_status)
        return query.order_by(Remittance.created_at.desc(), Remittance.id.desc()).offset(skip).limit(limit).all()

    def get_remittance(self, remittance_id: int) -> Remittance:
        remittance = (
            self.db.query(Remittance)
            .options(selectinload(Remittance.claim_details))
            .filter(Remittance.id == remittance_id)
            .first()
        )
        if not remittance:
            raise NotFoundError("Remittance", str(remittance_id))
        return remittance

    def process_file(self, content: str, filename: str, file_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Ingest one remittance file.

        Args:
            content: Raw remittance text
            filename: Original file name, kept on the remittance row
            file_path: Where the raw file was stored, if anywhere

        Returns:
            ``{"success": True, "remittance_id", "claims_processed", "claims_failed": 0, ...}``
            or ``{"success": False, "remittance_id", "error", ...}``. Expected
            failures are reported in the result, never raised.
        """
        with transaction(self.db):
            remittance = Remittance(
                file_name=filename,
                file_path=file_path,
                processing_status=RemittanceStatus.RECEIVED,
            )
            self.db.add(remittance)
        remittance_id = remittance.id
        logger.info("Remittance received", remittance_id=remittance_id, filename=filename)

        try:
            parsed = parse_remittance(content)
            self._start_processing(remittance, parsed)
        except AppError as e:
            self._mark_error(remittance, e.message)
            logger.warning(
                "Remittance rejected",
                remittance_id=remittance_id,
                filename=filename,
                error=e.code,
                reason=e.message,
            )
            return {"success": False, "remittance_id": remittance_id, "code": e.code, "error": e.message}

        processed = 0
        matched = 0
        denials_created = 0
        failures = []
        for claim_detail in parsed.claims:
            try:
                with transaction(self.db):
                    outcome = self._process_claim_detail(remittance, claim_detail)
                processed += 1
                matched += int(outcome["matched"])
                denials_created += int(outcome["denial_created"])
            except AppError as e:
                failures.append(
                    {"claim_number": claim_detail.claim_number, "error": e.code, "message": e.message}
                )
                logger.error(
                    "Remittance claim detail failed",
                    remittance_id=remittance_id,
                    claim_number=claim_detail.claim_number,
                    error=e.code,
                    reason=e.message,
                )
            except Exception as e:
                failures.append(
                    {"claim_number": claim_detail.claim_number, "error": "INTERNAL_ERROR", "message": str(e)}
                )
                logger.error(
                    "Remittance claim detail failed",
                    remittance_id=remittance_id,
                    claim_number=claim_detail.claim_number,
                    error=str(e),
                    exc_info=True,
                )

        summary = {
            "remittance_id": remittance_id,
            "remittance_number": remittance.remittance_number,
            "claims_processed": processed,
            "claims_matched": matched,
            "claims_failed": len(failures),
            "denials_created": denials_created,
        }

        if failures:
            message = f"{len(failures)} of {len(parsed.claims)} claim details failed"
            self._mark_error(remittance, message)
            logger.warning("Remittance processed with errors", **summary)
            return {"success": False, "error": message, "failures": failures, **summary}

        with transaction(self.db):
            remittance.processing_status = RemittanceStatus.POSTED
            remittance.processed_date = datetime.now()
        logger.info("Remittance posted", **summary)
        return {"success": True, **summary}

    def _start_processing(self, remittance: Remittance, parsed: ParsedRemittance) -> None:
        header = parsed.header
        if header.number:
            existing = (
                self.db.query(Remittance.id)
                .filter(Remittance.remittance_number == header.number, Remittance.id != remittance.id)
                .first()
            )
            if existing:
                raise StateConflictError(
                    f"Remittance {header.number} was already received",
                    details={"remittance_number": header.number, "existing_remittance_id": existing[0]},
                )

        with transaction(self.db):
            remittance.remittance_number = header.number
            remittance.payer_id = header.payer_id
            remittance.payer_name = header.payer_name
            remittance.check_number = header.check_number
            remittance.check_date = header.check_date
            remittance.check_amount = header.check_amount
            remittance.processing_status = RemittanceStatus.PROCESSING

        logger.info(
            "Remittance parsed",
            remittance_id=remittance.id,
            remittance_number=header.number,
            payer_id=header.payer_id,
            claim_count=len(parsed.claims),
        )

    def _process_claim_detail(self, remittance: Remittance, claim_detail: ClaimPaymentDetail) -> Dict[str, bool]:
        claim = self.db.query(Claim).filter(Claim.claim_number == claim_detail.claim_number).first()

        detail = RemittanceClaimDetail(
            remittance_id=remittance.id,
            claim_id=claim.id if claim else None,
            claim_number=claim_detail.claim_number,
            patient_name=claim_detail.patient_name,
            service_date_from=claim_detail.service_date_from,
            service_date_to=claim_detail.service_date_to,
            charge_amount=claim_detail.charge_amount,
            paid_amount=claim_detail.paid_amount,
            patient_responsibility=claim_detail.patient_responsibility,
            claim_status_code=claim_detail.status_code,
            claim_status_description=claim_detail.status_description,
        )
        self.db.add(detail)
        self.db.flush()

        if claim is None:
            logger.warning(
                "No claim matches remittance detail",
                remittance_id=remittance.id,
                claim_number=claim_detail.claim_number,
            )
            return {"matched": False, "denial_created": False}

        self.reconciler.auto_post_from_remittance(detail, claim.id, remittance)
        self.lifecycle.apply_remittance_status(claim.id, claim_detail.status_code)

        denial_created = False
        if is_denial_code(claim_detail.status_code):
            self.denials.create_from_remittance(claim.id, detail)
            denial_created = True

        return {"matched": True, "denial_created": denial_created}

    def _mark_error(self, remittance: Remittance, message: str) -> None:
        with transaction(self.db):
            remittance.processing_status = RemittanceStatus.ERROR
            remittance.error_message = message
            remittance.processed_date = datetime.now()
