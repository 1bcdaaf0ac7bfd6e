"""Workflow automation job handlers."""

from __future__ import annotations

import logging

from coachflow.core.structured_logging import build_log_context
from coachflow.services import follow_up_evaluator
from coachflow.services.stage_dispatcher import get_stage_dispatcher

logger = logging.getLogger(__name__)


def process_workflow_automation(db, job) -> dict:
    """Fire due stage actions for every client."""
    job_name = job.job_name if job else None
    logger.info("Processing workflow automation job %s", job_name, extra=build_log_context(job_name=job_name))
    stats = follow_up_evaluator.run_workflow_automation(db, get_stage_dispatcher())
    failed = [r for r in stats["results"] if r.get("status") == "error"]
    logger.info(
        "Workflow automation complete (processed=%s errors=%s)",
        stats["processed"],
        len(failed),
    )
    return stats
