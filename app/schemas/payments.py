"""Pydantic schemas for payment postings."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ActorType, PaymentMethod, PaymentType


class PaymentPostingCreate(BaseModel):
    payment_type: PaymentType
    payment_method: PaymentMethod
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    payment_date: date
    check_number: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentPostingUpdate(BaseModel):
    payment_type: Optional[PaymentType] = None
    payment_method: Optional[PaymentMethod] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    check_number: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentPostingRequest(PaymentPostingCreate):
    claim_id: int


class BulkPaymentRequest(BaseModel):
    payments: List[PaymentPostingRequest] = Field(..., min_length=1)


class PaymentPostingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_id: int
    remittance_id: Optional[int] = None
    payment_type: PaymentType
    payment_method: PaymentMethod
    amount: Decimal
    payment_date: date
    check_number: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    actor_type: ActorType
    posted_by: Optional[int] = None
    created_at: Optional[datetime] = None
