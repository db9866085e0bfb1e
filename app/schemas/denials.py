"""Pydantic schemas for the denial work queue."""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import DenialCategory, DenialPriority, ResolutionStatus


# OPEN and IN_PROGRESS are reached only through creation and assignment
UPDATE_TARGETS = frozenset(
    {
        ResolutionStatus.APPEALED,
        ResolutionStatus.CORRECTED,
        ResolutionStatus.WRITTEN_OFF,
        ResolutionStatus.RESOLVED,
    }
)


class DenialUpdate(BaseModel):
    resolution_status: Optional[ResolutionStatus] = None
    priority: Optional[DenialPriority] = None
    resolution_notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    assigned_to: Optional[int] = None

    @field_validator("resolution_status")
    @classmethod
    def check_update_target(cls, value):
        if value is not None and value not in UPDATE_TARGETS:
            raise ValueError(f"resolution_status cannot be set to {value.value}")
        return value


class DenialAssignRequest(BaseModel):
    user_id: int


class BulkAssignRequest(BaseModel):
    denial_ids: List[int] = Field(..., min_length=1)
    user_id: int


class DenialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_id: int
    denial_date: date
    denial_reason_code: str
    denial_reason_description: Optional[str] = None
    category: DenialCategory
    priority: DenialPriority
    assigned_to: Optional[int] = None
    resolution_status: ResolutionStatus
    resolution_notes: Optional[str] = None
    resolution_date: Optional[date] = None
    appeal_deadline: Optional[date] = None
    follow_up_date: Optional[date] = None
