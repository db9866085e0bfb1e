"""Clearinghouse submission payload.

Field names here are the clearinghouse contract; internal model names do not
leak into the payload.
"""
from typing import Any, Dict, Optional

from app.models.database import Claim, PatientInsurance


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _coverage(coverage: Optional[PatientInsurance]) -> Optional[Dict[str, Any]]:
    if coverage is None:
        return None
    return {
        "payer_id": coverage.insurance_provider.payer_id if coverage.insurance_provider else None,
        "policy_number": coverage.policy_number,
        "group_number": coverage.group_number,
        "subscriber_id": coverage.subscriber_id,
    }


def build_submission_payload(claim: Claim) -> Dict[str, Any]:
    """Nested patient / insurance / provider / claim / line item document."""
    patient = claim.patient
    diagnosis_codes = [claim.primary_diagnosis] + list(claim.secondary_diagnoses or [])

    return {
        "claim_number": claim.claim_number,
        "patient": {
            "id": patient.id,
            "first_name": patient.first_name,
            "last_name": patient.last_name,
            "date_of_birth": _iso(patient.date_of_birth),
            "gender": patient.gender,
            "address": {
                "line1": patient.address_line1,
                "line2": patient.address_line2,
                "city": patient.city,
                "state": patient.state,
                "zip": patient.zip_code,
            },
        },
        "insurance": {
            "primary": _coverage(claim.primary_insurance),
            "secondary": _coverage(claim.secondary_insurance),
        },
        "provider": {
            "billing_npi": claim.billing_provider_npi,
            "rendering_npi": claim.rendering_provider_npi,
            "facility_npi": claim.facility_npi,
        },
        "claim_details": {
            "type": claim.claim_type.value,
            "service_date_from": _iso(claim.service_date_from),
            "service_date_to": _iso(claim.service_date_to),
            "place_of_service": claim.place_of_service,
            "total_charges": str(claim.total_charges),
            "diagnosis_codes": [code for code in diagnosis_codes if code],
        },
        "line_items": [
            {
                "line_number": item.line_number,
                "procedure_code": item.procedure_code,
                "modifiers": list(item.modifiers or []),
                "diagnosis_pointers": list(item.diagnosis_pointers or []),
                "service_date": _iso(item.service_date),
                "units": item.units,
                "charge_amount": str(item.charge_amount),
            }
            for item in claim.line_items
        ],
    }
