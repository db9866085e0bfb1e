"""Pydantic schemas for claim commands and responses."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import ClaimStatus, ClaimType, LineItemStatus

# Header columns that are NOT NULL on the claim row
REQUIRED_HEADER_FIELDS = (
    "patient_id",
    "primary_insurance_id",
    "claim_type",
    "service_date_from",
    "service_date_to",
)


class ClaimLineItemCreate(BaseModel):
    """One billed procedure. Charges must be positive."""

    procedure_code: str = Field(..., min_length=1, max_length=10)
    modifiers: List[str] = Field(default_factory=list, max_length=4)
    diagnosis_pointers: List[int] = Field(default_factory=list)
    service_date: date
    units: int = Field(default=1, ge=1)
    charge_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    allowed_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class ClaimFields(BaseModel):
    """Claim header fields shared by create and update."""

    patient_id: Optional[int] = None
    primary_insurance_id: Optional[int] = None
    secondary_insurance_id: Optional[int] = None
    claim_type: Optional[ClaimType] = None
    service_date_from: Optional[date] = None
    service_date_to: Optional[date] = None
    place_of_service: Optional[str] = Field(None, max_length=2)
    billing_provider_npi: Optional[str] = Field(None, max_length=10)
    rendering_provider_npi: Optional[str] = Field(None, max_length=10)
    facility_npi: Optional[str] = Field(None, max_length=10)
    primary_diagnosis: Optional[str] = Field(None, max_length=10)
    secondary_diagnoses: Optional[List[str]] = None
    notes: Optional[str] = None
    # Accepted for compatibility, never trusted: totals are derived from line items
    total_charges: Optional[Decimal] = None

    @model_validator(mode="after")
    def check_service_dates(self):
        if self.service_date_from and self.service_date_to and self.service_date_to < self.service_date_from:
            raise ValueError("service_date_to must not be before service_date_from")
        return self


class ClaimCreate(ClaimFields):
    claim_number: Optional[str] = Field(None, min_length=1, max_length=50)
    patient_id: int
    primary_insurance_id: int
    claim_type: ClaimType = ClaimType.PROFESSIONAL
    service_date_from: date
    service_date_to: date


class ClaimUpdate(ClaimFields):
    """Partial header update; unset fields keep their stored values."""

    @model_validator(mode="after")
    def reject_cleared_required_fields(self):
        cleared = [
            name for name in REQUIRED_HEADER_FIELDS if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class LineItemSet(BaseModel):
    """Complete replacement set of line items."""

    line_items: List[ClaimLineItemCreate] = Field(..., min_length=1)


class ClaimCreateRequest(ClaimCreate):
    line_items: List[ClaimLineItemCreate] = Field(..., min_length=1)


class ClaimUpdateRequest(ClaimUpdate):
    line_items: List[ClaimLineItemCreate] = Field(..., min_length=1)


class ClaimLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    line_number: int
    procedure_code: str
    modifiers: Optional[List[str]] = None
    diagnosis_pointers: Optional[List[int]] = None
    service_date: date
    units: int
    charge_amount: Decimal
    allowed_amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    adjustment_amount: Optional[Decimal] = None
    status: LineItemStatus


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_number: str
    patient_id: int
    primary_insurance_id: int
    secondary_insurance_id: Optional[int] = None
    claim_type: ClaimType
    service_date_from: date
    service_date_to: date
    place_of_service: Optional[str] = None
    billing_provider_npi: Optional[str] = None
    rendering_provider_npi: Optional[str] = None
    facility_npi: Optional[str] = None
    primary_diagnosis: Optional[str] = None
    secondary_diagnoses: Optional[List[str]] = None
    total_charges: Decimal
    total_paid: Decimal
    patient_responsibility: Decimal
    status: ClaimStatus
    submission_date: Optional[datetime] = None
    clearinghouse_id: Optional[str] = None
    clearinghouse_status: Optional[str] = None
    line_items: List[ClaimLineItemResponse] = Field(default_factory=list)
