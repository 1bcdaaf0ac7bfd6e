"""Pydantic schemas for scheduled jobs and batch runs."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class FollowUpCheckRequest(BaseModel):
    manual_trigger: bool = False


class FollowUpCheckError(BaseModel):
    client_id: str
    error: str


class FollowUpCheckResponse(BaseModel):
    """Summary of a follow-up check run."""
    timestamp: datetime
    manual_trigger: bool
    clients_checked: int
    follow_ups_created: int
    messages_sent: int
    errors: list[FollowUpCheckError]


class AutomationRunEntry(BaseModel):
    client_id: str
    stage: str
    action: str | None = None
    status: str
    failed_steps: list[str] = []
    error: str | None = None


class AutomationRunResponse(BaseModel):
    timestamp: datetime
    processed: int
    results: list[AutomationRunEntry]


class ScheduledJobRead(BaseModel):
    """Scheduled job with last-run status for the admin dashboard."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_name: str
    description: str | None
    schedule: str
    job_key: str
    is_active: bool
    last_run_at: datetime | None
    last_run_status: str | None
    last_error: str | None


class JobRunResponse(BaseModel):
    job: ScheduledJobRead
    result: dict
