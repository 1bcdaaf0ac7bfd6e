"""Enum definitions for application constants."""

from coachflow.db.enums.clients import ClientStatus, ServiceType
from coachflow.db.enums.defaults import DEFAULT_CLIENT_STATUS, DEFAULT_FOLLOW_UP_STATUS
from coachflow.db.enums.follow_ups import (
    CalendarEventType,
    ContentKind,
    FollowUpStatus,
    MessageTrigger,
)
from coachflow.db.enums.jobs import JobKey, JobRunStatus
from coachflow.db.enums.workflows import (
    DispatchStatus,
    StageAction,
    StepStatus,
    TriggerSource,
    WorkflowStage,
)

__all__ = [
    "CalendarEventType",
    "ClientStatus",
    "ContentKind",
    "DEFAULT_CLIENT_STATUS",
    "DEFAULT_FOLLOW_UP_STATUS",
    "DispatchStatus",
    "FollowUpStatus",
    "JobKey",
    "JobRunStatus",
    "MessageTrigger",
    "ServiceType",
    "StageAction",
    "StepStatus",
    "TriggerSource",
    "WorkflowStage",
]
