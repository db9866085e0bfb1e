"""
Database models package.

Models can be imported from this package or from their defining modules:

    from app.models import Claim
    from app.models.core import Patient
    from app.models.enums import ClaimStatus
"""

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

from app.models.core import (
    User,
    Patient,
    InsuranceProvider,
    PatientInsurance,
    SystemSetting,
)

from app.models.database import (
    Claim,
    ClaimLineItem,
    Remittance,
    RemittanceClaimDetail,
    PaymentPosting,
    Denial,
)

__all__ = [
    # Enums
    "ActorType",
    "ClaimStatus",
    "ClaimType",
    "DenialCategory",
    "DenialPriority",
    "LineItemStatus",
    "PaymentMethod",
    "PaymentType",
    "RemittanceStatus",
    "ResolutionStatus",
    "UserRole",
    # Collaborators
    "User",
    "Patient",
    "InsuranceProvider",
    "PatientInsurance",
    "SystemSetting",
    # Claims and remittances
    "Claim",
    "ClaimLineItem",
    "Remittance",
    "RemittanceClaimDetail",
    # Money and work queues
    "PaymentPosting",
    "Denial",
]
