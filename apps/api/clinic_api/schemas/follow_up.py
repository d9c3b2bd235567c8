"""Pydantic schemas for follow-up rules, executions and the processing trigger."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clinic_api.db.enums import FollowUpExecutionStatus, FollowUpTargetType, FollowUpTrigger


# =============================================================================
# Rules
# =============================================================================

class FollowUpBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    description: str | None = None
    trigger: FollowUpTrigger
    target_type: FollowUpTargetType
    delay_days: int = Field(0, ge=-365, le=365)
    message_template: str = Field(..., min_length=10)
    active: bool = True


class FollowUpCreate(FollowUpBase):
    pass


class FollowUpUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: str | None = Field(None, min_length=3, max_length=255)
    description: str | None = None
    trigger: FollowUpTrigger | None = None
    target_type: FollowUpTargetType | None = None
    delay_days: int | None = Field(None, ge=-365, le=365)
    message_template: str | None = Field(None, min_length=10)
    active: bool | None = None


class FollowUpRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    name: str
    description: str | None
    trigger: str
    target_type: str
    delay_days: int
    message_template: str
    active: bool
    created_at: datetime
    updated_at: datetime


class FollowUpStats(BaseModel):
    total: int = 0
    pending: int = 0
    claimed: int = 0
    sent: int = 0
    failed: int = 0
    cancelled: int = 0


class FollowUpWithStats(FollowUpRead):
    stats: FollowUpStats


# =============================================================================
# Executions
# =============================================================================

class FollowUpSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    trigger: str


class FollowUpExecutionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    follow_up_id: UUID
    clinic_id: UUID
    target_id: UUID
    target_type: str
    message: str
    scheduled_for: datetime
    status: FollowUpExecutionStatus
    error: str | None
    claimed_at: datetime | None
    executed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    follow_up: FollowUpSummary | None = None


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class FollowUpExecutionListResponse(BaseModel):
    executions: list[FollowUpExecutionRead]
    pagination: PaginationMeta


class ScheduleFollowUpRequest(BaseModel):
    """Event reported by a collaborator module (leads, appointments, patients)."""
    trigger: FollowUpTrigger
    target_type: FollowUpTargetType
    target_id: UUID
    reference_date: datetime | None = None
    date: str | None = None
    time: str | None = None
    professional: str | None = None


class CancelExecutionRequest(BaseModel):
    reason: str = Field("Cancelled by clinic staff", max_length=500)


# =============================================================================
# Trigger
# =============================================================================

class ProcessFollowUpsResponse(BaseModel):
    success: bool
    processed: int
    timestamp: str
