"""
Status and type enumerations for database models.

This module contains all enum definitions used by database models.
Enums are defined as string enums so they serialize cleanly to JSON and
store as readable values in the database.
"""
import enum


class UserRole(str, enum.Enum):
    """Staff role enumeration."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    BILLER = "BILLER"
    COLLECTOR = "COLLECTOR"
    VIEWER = "VIEWER"


class ClaimStatus(str, enum.Enum):
    """Claim lifecycle status enumeration."""

    DRAFT = "DRAFT"
    READY = "READY"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    PAID = "PAID"
    DENIED = "DENIED"
    APPEALED = "APPEALED"
    CLOSED = "CLOSED"


class ClaimType(str, enum.Enum):
    """Claim form type enumeration."""

    PROFESSIONAL = "PROFESSIONAL"
    INSTITUTIONAL = "INSTITUTIONAL"
    DENTAL = "DENTAL"
    VISION = "VISION"


class LineItemStatus(str, enum.Enum):
    """Claim line item status enumeration."""

    PENDING = "PENDING"
    PAID = "PAID"
    DENIED = "DENIED"
    ADJUSTED = "ADJUSTED"


class RemittanceStatus(str, enum.Enum):
    """Remittance processing status enumeration."""

    RECEIVED = "RECEIVED"
    PROCESSING = "PROCESSING"
    POSTED = "POSTED"
    ERROR = "ERROR"


class PaymentType(str, enum.Enum):
    """Payment posting type enumeration."""

    INSURANCE = "INSURANCE"
    PATIENT = "PATIENT"
    ADJUSTMENT = "ADJUSTMENT"
    REFUND = "REFUND"


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration."""

    CHECK = "CHECK"
    EFT = "EFT"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    ERA = "ERA"


class ActorType(str, enum.Enum):
    """Who recorded a payment posting."""

    HUMAN = "HUMAN"
    SYSTEM = "SYSTEM"


class DenialCategory(str, enum.Enum):
    """Denial category enumeration."""

    TECHNICAL = "TECHNICAL"
    CLINICAL = "CLINICAL"
    AUTHORIZATION = "AUTHORIZATION"
    ELIGIBILITY = "ELIGIBILITY"
    DUPLICATE = "DUPLICATE"
    OTHER = "OTHER"


class DenialPriority(str, enum.Enum):
    """Denial work priority enumeration."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ResolutionStatus(str, enum.Enum):
    """Denial resolution status enumeration."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    APPEALED = "APPEALED"
    CORRECTED = "CORRECTED"
    WRITTEN_OFF = "WRITTEN_OFF"
    RESOLVED = "RESOLVED"
