"""Scheduled job enums."""

from enum import Enum


class JobKey(str, Enum):
    """Registry keys for scheduled jobs."""

    CHECK_FOLLOW_UPS = "check_follow_ups"
    WORKFLOW_AUTOMATION = "workflow_automation"


class JobRunStatus(str, Enum):
    """Last-run status shown on the admin dashboard."""

    SUCCESS = "success"
    FAILED = "failed"
