"""
SQLAlchemy database models for the revenue cycle core.

Core entities owned by this service:

Claims:
- Claim: A reimbursement request with derived money aggregates and lifecycle status
- ClaimLineItem: One billed procedure within a claim

Remittances:
- Remittance: A payer's electronic remittance advice (ERA) file
- RemittanceClaimDetail: One adjudicated claim reported inside a remittance

Money and work queues:
- PaymentPosting: A payment, adjustment or refund recorded against a claim
- Denial: A denied claim tracked through the resolution workflow

Money columns are Numeric(12, 2) and are always read and written as Decimal.

**Note:** Collaborator models (User, Patient, InsuranceProvider, PatientInsurance,
SystemSetting) and enums are re-exported from this module so callers can import
everything from one place.
"""
from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Date,
    DateTime,
    Text,
    ForeignKey,
    JSON,
    CheckConstraint,
    Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from app.config.database import Base, TimestampMixin
from app.models.enums import (
    ActorType,
    ClaimStatus,
    ClaimType,
    DenialCategory,
    DenialPriority,
    LineItemStatus,
    PaymentMethod,
    PaymentType,
    RemittanceStatus,
    ResolutionStatus,
    UserRole,
)
from app.models.core import User, Patient, InsuranceProvider, PatientInsurance, SystemSetting

MONEY = Numeric(12, 2)
ZERO = Decimal("0.00")


class Claim(Base, TimestampMixin):
    """
    Claim model.

    total_charges is derived from the line items and is authoritative; totals
    sent by callers are ignored. total_paid and patient_responsibility are
    recomputed from payment postings (see app.services.claims.balances).

    Relationships:
        line_items: Owned line items, replaced wholesale on update
        payments: Payment postings against this claim
        denials: Denials raised from remittances
    """

    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    claim_number = Column(String(50), unique=True, nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    primary_insurance_id = Column(Integer, ForeignKey("patient_insurance.id"), nullable=False)
    secondary_insurance_id = Column(Integer, ForeignKey("patient_insurance.id"))
    claim_type = Column(SQLEnum(ClaimType), nullable=False, default=ClaimType.PROFESSIONAL)

    service_date_from = Column(Date, nullable=False)
    service_date_to = Column(Date, nullable=False)
    place_of_service = Column(String(2))
    billing_provider_npi = Column(String(10))
    rendering_provider_npi = Column(String(10))
    facility_npi = Column(String(10))
    primary_diagnosis = Column(String(10))
    secondary_diagnoses = Column(JSON)

    total_charges = Column(MONEY, nullable=False, default=ZERO)
    total_paid = Column(MONEY, nullable=False, default=ZERO)
    patient_responsibility = Column(MONEY, nullable=False, default=ZERO)

    status = Column(SQLEnum(ClaimStatus), nullable=False, default=ClaimStatus.DRAFT, index=True)
    submission_date = Column(DateTime)
    clearinghouse_id = Column(String(100), index=True)
    clearinghouse_status = Column(String(50))
    notes = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))

    patient = relationship("Patient", back_populates="claims")
    primary_insurance = relationship("PatientInsurance", foreign_keys=[primary_insurance_id])
    secondary_insurance = relationship("PatientInsurance", foreign_keys=[secondary_insurance_id])
    line_items = relationship(
        "ClaimLineItem",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimLineItem.line_number",
    )
    payments = relationship("PaymentPosting", back_populates="claim", cascade="all, delete-orphan")
    denials = relationship("Denial", back_populates="claim", cascade="all, delete-orphan")


class ClaimLineItem(Base, TimestampMixin):
    """One billed procedure within a claim."""

    __tablename__ = "claim_line_items"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    procedure_code = Column(String(10), nullable=False)
    modifiers = Column(JSON)  # up to four two-character modifiers
    diagnosis_pointers = Column(JSON)  # 1-based indexes into the claim diagnoses
    service_date = Column(Date, nullable=False)
    units = Column(Integer, nullable=False, default=1)
    charge_amount = Column(MONEY, nullable=False)
    allowed_amount = Column(MONEY)
    paid_amount = Column(MONEY, default=ZERO)
    adjustment_amount = Column(MONEY, default=ZERO)
    status = Column(SQLEnum(LineItemStatus), nullable=False, default=LineItemStatus.PENDING)

    claim = relationship("Claim", back_populates="line_items")


class Remittance(Base, TimestampMixin):
    """
    Electronic remittance advice received from a payer.

    remittance_number stays NULL until the file parses; it is unique once set,
    which is what stops the same remittance from being posted twice.
    """

    __tablename__ = "remittances"

    id = Column(Integer, primary_key=True, index=True)
    remittance_number = Column(String(50), unique=True, index=True)
    payer_id = Column(String(50), index=True)
    payer_name = Column(String(255))
    check_number = Column(String(50))
    check_date = Column(Date)
    check_amount = Column(MONEY, default=ZERO)
    file_name = Column(String(255))
    file_path = Column(String(500))
    processing_status = Column(
        SQLEnum(RemittanceStatus), nullable=False, default=RemittanceStatus.RECEIVED, index=True
    )
    error_message = Column(Text)
    processed_date = Column(DateTime)

    claim_details = relationship(
        "RemittanceClaimDetail",
        back_populates="remittance",
        cascade="all, delete-orphan",
        order_by="RemittanceClaimDetail.id",
    )


class RemittanceClaimDetail(Base, TimestampMixin):
    """A claim reported inside a remittance. Written once, never updated."""

    __tablename__ = "remittance_claim_details"

    id = Column(Integer, primary_key=True, index=True)
    remittance_id = Column(Integer, ForeignKey("remittances.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), index=True)
    claim_number = Column(String(50), nullable=False, index=True)
    patient_name = Column(String(255))
    service_date_from = Column(Date)
    service_date_to = Column(Date)
    charge_amount = Column(MONEY, default=ZERO)
    paid_amount = Column(MONEY, default=ZERO)
    patient_responsibility = Column(MONEY, default=ZERO)
    claim_status_code = Column(String(10))
    claim_status_description = Column(String(255))

    remittance = relationship("Remittance", back_populates="claim_details")
    claim = relationship("Claim")


class PaymentPosting(Base, TimestampMixin):
    """
    Payment, adjustment or refund against a claim.

    The actor is stored as a tag plus an optional user id; the check constraint
    keeps the two columns consistent. Use app.services.payments.actors to read
    and write it.
    """

    __tablename__ = "payment_postings"
    __table_args__ = (
        CheckConstraint(
            "(actor_type = 'HUMAN' AND posted_by IS NOT NULL) "
            "OR (actor_type = 'SYSTEM' AND posted_by IS NULL)",
            name="ck_payment_postings_actor",
        ),
        CheckConstraint("amount >= 0", name="ck_payment_postings_amount"),
        Index("idx_payment_postings_claim_type", "claim_id", "payment_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    remittance_id = Column(Integer, ForeignKey("remittances.id"), index=True)
    payment_type = Column(SQLEnum(PaymentType), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    amount = Column(MONEY, nullable=False)
    payment_date = Column(Date, nullable=False)
    check_number = Column(String(50))
    reference_number = Column(String(100))
    notes = Column(Text)
    actor_type = Column(SQLEnum(ActorType), nullable=False)
    posted_by = Column(Integer, ForeignKey("users.id"))

    claim = relationship("Claim", back_populates="payments")
    remittance = relationship("Remittance")


class Denial(Base, TimestampMixin):
    """Denied claim tracked from OPEN through resolution."""

    __tablename__ = "denials"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    remittance_claim_detail_id = Column(Integer, ForeignKey("remittance_claim_details.id"))
    denial_date = Column(Date, nullable=False)
    denial_reason_code = Column(String(10), nullable=False)
    denial_reason_description = Column(Text)
    category = Column(SQLEnum(DenialCategory), nullable=False, default=DenialCategory.OTHER)
    priority = Column(SQLEnum(DenialPriority), nullable=False, default=DenialPriority.MEDIUM)
    assigned_to = Column(Integer, ForeignKey("users.id"), index=True)
    resolution_status = Column(
        SQLEnum(ResolutionStatus), nullable=False, default=ResolutionStatus.OPEN, index=True
    )
    resolution_notes = Column(Text)
    resolution_date = Column(Date)
    appeal_deadline = Column(Date)
    follow_up_date = Column(Date)

    claim = relationship("Claim", back_populates="denials")
    assignee = relationship("User")
    remittance_claim_detail = relationship("RemittanceClaimDetail")


__all__ = [
    "ActorType",
    "Claim",
    "ClaimLineItem",
    "ClaimStatus",
    "ClaimType",
    "Denial",
    "DenialCategory",
    "DenialPriority",
    "InsuranceProvider",
    "LineItemStatus",
    "Patient",
    "PatientInsurance",
    "PaymentMethod",
    "PaymentPosting",
    "PaymentType",
    "Remittance",
    "RemittanceClaimDetail",
    "RemittanceStatus",
    "ResolutionStatus",
    "SystemSetting",
    "User",
    "UserRole",
]
