"""
Core database models for the entities the revenue cycle reads but does not own.

This module contains:
- User: Billing staff accounts (role drives assignment and mutation gates)
- Patient: Patient demographics referenced by claims
- InsuranceProvider: Payers that adjudicate claims and issue remittances
- PatientInsurance: A patient's coverage with one payer
- SystemSetting: Key/value runtime switches (e.g. ERA auto-posting)

Demographic CRUD lives outside this service; these models exist so claims can
be validated and assembled into submission payloads.

All models inherit from Base and TimestampMixin, providing automatic
created_at and updated_at timestamps.
"""
from sqlalchemy import Column, String, Integer, Boolean, Date, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.config.database import Base, TimestampMixin
from app.models.enums import UserRole


class User(Base, TimestampMixin):
    """
    Billing staff user.

    Attributes:
        username: Unique login name
        email: Contact email
        role: One of ADMIN, MANAGER, BILLER, COLLECTOR, VIEWER
        is_active: Inactive users cannot authenticate
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.VIEWER, index=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Patient(Base, TimestampMixin):
    """Patient demographics used for claim validation and submission."""

    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    mrn = Column(String(50), unique=True, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    date_of_birth = Column(Date)
    gender = Column(String(1))
    address_line1 = Column(String(255))
    address_line2 = Column(String(255))
    city = Column(String(100))
    state = Column(String(2))
    zip_code = Column(String(10))

    insurances = relationship("PatientInsurance", back_populates="patient")
    claims = relationship("Claim", back_populates="patient")


class InsuranceProvider(Base, TimestampMixin):
    """
    Insurance payer.

    Attributes:
        payer_id: Clearinghouse payer identifier (not the database id)
        name: Payer name (e.g., "Blue Cross Blue Shield")
    """

    __tablename__ = "insurance_providers"

    id = Column(Integer, primary_key=True, index=True)
    payer_id = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    coverages = relationship("PatientInsurance", back_populates="insurance_provider")


class PatientInsurance(Base, TimestampMixin):
    """A patient's coverage with one payer (primary, secondary, ...)."""

    __tablename__ = "patient_insurance"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    insurance_provider_id = Column(
        Integer, ForeignKey("insurance_providers.id"), nullable=False, index=True
    )
    policy_number = Column(String(50))
    group_number = Column(String(50))
    subscriber_id = Column(String(50))
    priority = Column(Integer, default=1, nullable=False)  # 1 = primary
    is_active = Column(Boolean, default=True, nullable=False)

    patient = relationship("Patient", back_populates="insurances")
    insurance_provider = relationship("InsuranceProvider", back_populates="coverages")


class SystemSetting(Base, TimestampMixin):
    """Runtime key/value switch, e.g. ``era_auto_posting_enabled = "true"``."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(String(255))
    description = Column(Text)
