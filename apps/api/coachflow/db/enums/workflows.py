"""Workflow lifecycle enums."""

from enum import Enum


class WorkflowStage(str, Enum):
    """Named positions in a client's workflow (ordering lives in the stage table)."""

    CONSULTATION_SCHEDULED = "consultation_scheduled"
    HEALTH_ASSESSMENT_SENT = "health_assessment_sent"
    # Consultation track
    ACTION_PLAN_GENERATED = "action_plan_generated"
    DIET_PLAN_GENERATED = "diet_plan_generated"
    CONSULTATION_COMPLETE = "consultation_complete"
    SOFT_RETARGETING_ACTIVE = "soft_retargeting_active"
    # 100-day track
    STRESS_CARD_SENT = "stress_card_sent"
    SLEEP_CARD_SENT = "sleep_card_sent"
    ACTION_PLAN_SENT = "action_plan_sent"
    DIET_PLAN_SENT = "diet_plan_sent"
    GROCERY_LIST_SENT = "grocery_list_sent"
    PROGRAM_ACTIVE = "program_active"


class StageAction(str, Enum):
    """Work that completes a stage and moves the client to the next one."""

    SEND_HEALTH_ASSESSMENT = "send_health_assessment"
    SEND_STRESS_CARD = "send_stress_card"
    SEND_SLEEP_CARD = "send_sleep_card"
    PREPARE_ACTION_PLAN = "prepare_action_plan"
    PREPARE_DIET_PLAN = "prepare_diet_plan"
    SEND_GROCERY_LIST = "send_grocery_list"
    ACTIVATE_PROGRAM = "activate_program"
    COMPLETE_CONSULTATION = "complete_consultation"
    START_RETARGETING = "start_retargeting"


class DispatchStatus(str, Enum):
    """Outcome of a stage trigger."""

    ADVANCED = "advanced"
    STALE_STAGE = "stale_stage"  # requested stage is no longer current
    FINAL_STAGE = "final_stage"  # nothing left to advance to


class StepStatus(str, Enum):
    """Outcome of one best-effort side-effect step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class TriggerSource(str, Enum):
    """Who triggered a transition (admin triggers record the admin id instead)."""

    SYSTEM = "system"
    ADMIN = "admin"
