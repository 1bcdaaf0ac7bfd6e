"""ORM models (importing this package registers every table on Base.metadata)."""

from coachflow.db.models.clients import Client
from coachflow.db.models.content import ContentDraft
from coachflow.db.models.follow_ups import CalendarEvent, FollowUp, SystemMessage
from coachflow.db.models.jobs import ScheduledJob
from coachflow.db.models.workflows import ClientWorkflowState, WorkflowHistory

__all__ = [
    "CalendarEvent",
    "Client",
    "ClientWorkflowState",
    "ContentDraft",
    "FollowUp",
    "ScheduledJob",
    "SystemMessage",
    "WorkflowHistory",
]
