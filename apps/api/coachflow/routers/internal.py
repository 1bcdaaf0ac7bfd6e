"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron or the admin dashboard backend.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from coachflow.core.deps import get_db, get_dispatcher
from coachflow.core.security import verify_internal_secret
from coachflow.db.enums import JobRunStatus
from coachflow.schemas.scheduled import (
    AutomationRunResponse,
    FollowUpCheckRequest,
    FollowUpCheckResponse,
)
from coachflow.services import follow_up_evaluator, scheduled_job_service
from coachflow.services.stage_dispatcher import StageDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


def _failed(db: Session, job_name: str, exc: Exception) -> JSONResponse:
    db.rollback()
    scheduled_job_service.record_run_by_name(db, job_name, JobRunStatus.FAILED, str(exc))
    return JSONResponse(status_code=500, content={"error": str(exc)})


@router.post("/follow-ups", response_model=FollowUpCheckResponse)
def check_follow_ups(
    body: FollowUpCheckRequest | None = None,
    db: Session = Depends(get_db),
):
    """
    Daily sweep for milestone follow-ups.

    Creates due follow-ups with their message and calendar event, and sends
    reminders for check-ins coming up. Safe to call more than once a day.
    """
    manual_trigger = body.manual_trigger if body else False
    try:
        result = follow_up_evaluator.run_follow_up_check(db, manual_trigger=manual_trigger)
    except Exception as exc:
        logger.exception("Follow-up check failed")
        return _failed(db, scheduled_job_service.CHECK_FOLLOW_UPS_JOB, exc)

    scheduled_job_service.record_run_by_name(
        db, scheduled_job_service.CHECK_FOLLOW_UPS_JOB, JobRunStatus.SUCCESS
    )
    return result.to_dict()


@router.post("/workflow-automation", response_model=AutomationRunResponse)
def run_workflow_automation(
    db: Session = Depends(get_db),
    dispatcher: StageDispatcher = Depends(get_dispatcher),
):
    """Run every stage action whose due time has passed."""
    try:
        stats = follow_up_evaluator.run_workflow_automation(db, dispatcher)
    except Exception as exc:
        logger.exception("Workflow automation failed")
        return _failed(db, scheduled_job_service.WORKFLOW_AUTOMATION_JOB, exc)

    scheduled_job_service.record_run_by_name(
        db, scheduled_job_service.WORKFLOW_AUTOMATION_JOB, JobRunStatus.SUCCESS
    )
    return stats
