"""Follow-up, message and calendar enums."""

from enum import Enum


class FollowUpStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MessageTrigger(str, Enum):
    """Value of messages.metadata['trigger']."""

    FOLLOW_UP_AUTOMATION = "follow_up_automation"
    FOLLOW_UP_REMINDER = "follow_up_reminder"
    WORKFLOW_STAGE = "workflow_stage"


class CalendarEventType(str, Enum):
    FOLLOW_UP = "follow_up"
    PROGRAM = "program"


class ContentKind(str, Enum):
    """Drafts produced by the AI content producer."""

    ACTION_PLAN = "action_plan"
    DIET_PLAN = "diet_plan"
    GROCERY_LIST = "grocery_list"
