"""
Scheduler worker for the lifecycle engine's scheduled jobs.

Usage:
    python -m coachflow.worker

Polls scheduled_jobs and runs active jobs whose cron schedule matches the
current minute. Run as a separate process next to the API.
"""

import asyncio
import logging
from datetime import datetime, timezone

from anyio import to_thread

from coachflow.core.config import settings
from coachflow.core.structured_logging import build_log_context
from coachflow.db.session import SessionLocal
from coachflow.jobs.registry import run_scheduled_job
from coachflow.services import scheduled_job_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_due_jobs(now: datetime | None = None) -> list[str]:
    """Run every due job once; returns the names of jobs that ran."""
    now = now or datetime.now(timezone.utc)
    ran = []
    with SessionLocal() as db:
        for job in scheduled_job_service.due_jobs(db, now, settings.PROGRAM_TIMEZONE):
            job_name = job.job_name
            try:
                run_scheduled_job(db, job, now=now)
            except Exception as exc:
                # Already recorded on the job row
                logger.error(
                    "Job %s failed: %s",
                    job_name,
                    type(exc).__name__,
                    extra=build_log_context(job_name=job_name),
                )
            ran.append(job_name)
    return ran


async def worker_loop() -> None:
    """Main worker loop - polls for due scheduled jobs."""
    logger.info("Worker starting (poll interval: %ss)", settings.WORKER_POLL_INTERVAL)

    while True:
        try:
            # Jobs use the sync service layer; a worker thread keeps run_async usable
            ran = await to_thread.run_sync(run_due_jobs)
            if ran:
                logger.info("Ran scheduled jobs: %s", ", ".join(ran))
        except Exception as e:
            logger.exception("Error in worker loop: %s", type(e).__name__)

        await asyncio.sleep(settings.WORKER_POLL_INTERVAL)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
