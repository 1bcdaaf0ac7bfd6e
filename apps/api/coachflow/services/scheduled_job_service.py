"""Scheduled jobs - definitions, cron matching and last-run bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachflow.db.enums import JobKey, JobRunStatus
from coachflow.db.models import ScheduledJob

logger = logging.getLogger(__name__)

CHECK_FOLLOW_UPS_JOB = "check-follow-ups"
WORKFLOW_AUTOMATION_JOB = "workflow-automation"

DEFAULT_JOBS: tuple[dict, ...] = (
    {
        "job_name": CHECK_FOLLOW_UPS_JOB,
        "description": "Create milestone follow-ups and send upcoming check-in reminders",
        "schedule": "0 9 * * *",
        "job_key": JobKey.CHECK_FOLLOW_UPS.value,
    },
    {
        "job_name": WORKFLOW_AUTOMATION_JOB,
        "description": "Run stage actions whose due time has passed",
        "schedule": "*/15 * * * *",
        "job_key": JobKey.WORKFLOW_AUTOMATION.value,
    },
)


def list_jobs(db: Session, *, active_only: bool = False) -> list[ScheduledJob]:
    stmt = select(ScheduledJob)
    if active_only:
        stmt = stmt.where(ScheduledJob.is_active.is_(True))
    return list(db.execute(stmt.order_by(ScheduledJob.job_name)).scalars())


def get_job(db: Session, job_name: str) -> ScheduledJob | None:
    return db.execute(
        select(ScheduledJob).where(ScheduledJob.job_name == job_name)
    ).scalar_one_or_none()


def seed_default_jobs(db: Session) -> list[ScheduledJob]:
    """Insert the default job definitions that do not exist yet. Returns the new rows."""
    created = []
    for definition in DEFAULT_JOBS:
        if get_job(db, definition["job_name"]):
            continue
        job = ScheduledJob(**definition, is_active=True)
        db.add(job)
        created.append(job)
    db.commit()
    return created


def record_run(
    db: Session,
    job: ScheduledJob,
    status: JobRunStatus,
    error: str | None = None,
    *,
    now: datetime | None = None,
) -> ScheduledJob:
    job.last_run_at = now or datetime.now(timezone.utc)
    job.last_run_status = status.value
    job.last_error = error[:2000] if error else None
    db.commit()
    db.refresh(job)
    return job


def record_run_by_name(
    db: Session,
    job_name: str,
    status: JobRunStatus,
    error: str | None = None,
    *,
    now: datetime | None = None,
) -> ScheduledJob | None:
    """Record a run for a job definition if it is registered; no-op otherwise."""
    job = get_job(db, job_name)
    if not job:
        return None
    return record_run(db, job, status, error, now=now)


def _match_field(field: str, value: int) -> bool:
    if field == "*":
        return True
    if field.startswith("*/"):
        step = int(field[2:])
        return step > 0 and value % step == 0
    if "-" in field:
        start, end = map(int, field.split("-"))
        return start <= value <= end
    return int(field) == value


def should_run_cron(cron: str, now: datetime, tz: str = "UTC") -> bool:
    """
    Simple cron matching for the schedules the worker uses.

    Supports:
    - "0 9 * * *" = daily at 9am
    - "*/15 * * * *" = every 15 minutes
    - "0 9 * * 1" = Monday at 9am (0 = Sunday)
    - "0 9 * * 1-5" = weekdays at 9am

    Day-of-month and month fields are ignored.
    """
    parts = cron.split()
    if len(parts) != 5:
        return False
    minute, hour, _dom, _month, dow = parts
    local_now = now.astimezone(ZoneInfo(tz))

    try:
        return (
            _match_field(minute, local_now.minute)
            and _match_field(hour, local_now.hour)
            and _match_field(dow, local_now.isoweekday() % 7)
        )
    except ValueError:
        logger.warning("Unsupported cron expression %r", cron)
        return False


def ran_this_minute(job: ScheduledJob, now: datetime) -> bool:
    if not job.last_run_at:
        return False
    return job.last_run_at.replace(second=0, microsecond=0) == now.astimezone(timezone.utc).replace(
        second=0, microsecond=0
    )


def due_jobs(db: Session, now: datetime, tz: str = "UTC") -> list[ScheduledJob]:
    """Active jobs whose schedule matches `now` and that have not run this minute."""
    jobs = []
    for job in list_jobs(db, active_only=True):
        if should_run_cron(job.schedule, now, tz) and not ran_this_minute(job, now):
            jobs.append(job)
    return jobs
