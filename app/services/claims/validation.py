"""Pre-submission claim checks."""
from typing import List

from app.models.database import Claim
from app.utils.decimal_utils import ZERO, to_money
from app.utils.errors import ValidationError

REQUIRED_CLAIM_FIELDS = (
    ("billing_provider_npi", "Billing provider NPI is required"),
    ("rendering_provider_npi", "Rendering provider NPI is required"),
    ("primary_diagnosis", "Primary diagnosis is required"),
    ("place_of_service", "Place of service is required"),
)

REQUIRED_PATIENT_FIELDS = (
    ("first_name", "Patient first name is required"),
    ("last_name", "Patient last name is required"),
    ("date_of_birth", "Patient date of birth is required"),
    ("gender", "Patient gender is required"),
)


def collect_submission_errors(claim: Claim) -> List[str]:
    """Every reason ``claim`` cannot be sent to the clearinghouse."""
    errors = [message for attr, message in REQUIRED_CLAIM_FIELDS if not getattr(claim, attr)]

    patient = claim.patient
    if patient is None:
        errors.append("Patient not found")
    else:
        errors.extend(message for attr, message in REQUIRED_PATIENT_FIELDS if not getattr(patient, attr))

    coverage = claim.primary_insurance
    if coverage is None:
        errors.append("Primary insurance not found")
    else:
        if not coverage.policy_number:
            errors.append("Insurance policy number is required")
        if coverage.insurance_provider is None or not coverage.insurance_provider.payer_id:
            errors.append("Insurance payer ID is required")

    if not claim.line_items:
        errors.append("At least one line item is required")

    for item in claim.line_items:
        if not item.procedure_code:
            errors.append(f"Line {item.line_number}: Procedure code is required")
        if to_money(item.charge_amount) <= ZERO:
            errors.append(f"Line {item.line_number}: Valid charge amount is required")
        if not item.service_date:
            errors.append(f"Line {item.line_number}: Service date is required")

    return errors


def validate_for_submission(claim: Claim) -> None:
    """
    Raises:
        ValidationError: Listing every missing identifier or invalid line
    """
    errors = collect_submission_errors(claim)
    if errors:
        raise ValidationError(
            "Claim validation failed",
            details={"claim_id": claim.id, "errors": errors},
        )
