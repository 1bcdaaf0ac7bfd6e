"""Scheduled job registry."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Mapping

from sqlalchemy.orm import Session

from coachflow.core.structured_logging import build_log_context
from coachflow.db.enums import JobKey, JobRunStatus
from coachflow.db.models import ScheduledJob
from coachflow.jobs.handlers import follow_ups, workflows
from coachflow.services import scheduled_job_service

logger = logging.getLogger(__name__)

JobHandler = Callable[[Session, ScheduledJob | None], dict]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobKey.CHECK_FOLLOW_UPS.value: follow_ups.process_follow_up_check,
    JobKey.WORKFLOW_AUTOMATION.value: workflows.process_workflow_automation,
}


class UnknownJobError(ValueError):
    """No handler registered for a job key, or no job with that name."""


def resolve_job_handler(job_key: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_key)
    if not handler:
        raise UnknownJobError(f"Unknown job key: {job_key}")
    return handler


def run_scheduled_job(db: Session, job: ScheduledJob, *, now: datetime | None = None) -> dict:
    """
    Run a job definition through its handler and record the outcome on the row.

    Handler failures are recorded as failed and re-raised.
    """
    handler = resolve_job_handler(job.job_key)
    job_name = job.job_name
    log_context = build_log_context(job_name=job_name)
    try:
        stats = handler(db, job)
    except Exception as exc:
        db.rollback()
        logger.exception("Scheduled job %s failed", job_name, extra=log_context)
        scheduled_job_service.record_run(
            db, job, JobRunStatus.FAILED, str(exc) or type(exc).__name__, now=now
        )
        raise

    scheduled_job_service.record_run(db, job, JobRunStatus.SUCCESS, now=now)
    logger.info("Scheduled job %s succeeded", job_name, extra=log_context)
    return stats


def run_job_by_name(db: Session, job_name: str) -> dict:
    job = scheduled_job_service.get_job(db, job_name)
    if not job:
        raise UnknownJobError(f"Unknown scheduled job: {job_name}")
    return run_scheduled_job(db, job)
