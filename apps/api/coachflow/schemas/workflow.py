"""Pydantic schemas for client workflows."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from coachflow.db.enums import DispatchStatus, StepStatus, WorkflowStage


class TriggerStageRequest(BaseModel):
    """Admin request to run a client's current stage action now."""
    client_id: UUID
    stage: WorkflowStage


class StepResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    status: StepStatus
    error: str | None = None


class DispatchResultRead(BaseModel):
    """Outcome of a stage trigger."""
    model_config = ConfigDict(from_attributes=True)

    status: DispatchStatus
    client_id: UUID
    stage: str
    current_stage: str | None = None
    new_stage: str | None = None
    next_action: str | None = None
    next_action_due_at: datetime | None = None
    steps: list[StepResultRead] = []


class WorkflowStateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    service_type: str
    current_stage: str
    next_action: str | None
    next_action_due_at: datetime | None
    stage_completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class WorkflowHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    stage: str
    action: str
    triggered_by: str
    triggered_at: datetime
    details: dict
