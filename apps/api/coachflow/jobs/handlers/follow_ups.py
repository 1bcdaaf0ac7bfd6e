"""Milestone follow-up job handlers."""

from __future__ import annotations

import logging

from coachflow.core.structured_logging import build_log_context
from coachflow.services import follow_up_evaluator

logger = logging.getLogger(__name__)


def process_follow_up_check(db, job) -> dict:
    """Daily follow-up check for all active program clients."""
    job_name = job.job_name if job else None
    logger.info("Processing follow-up check job %s", job_name, extra=build_log_context(job_name=job_name))
    result = follow_up_evaluator.run_follow_up_check(db)
    logger.info(
        "Follow-up check complete (clients=%s follow_ups=%s messages=%s errors=%s)",
        result.clients_checked,
        result.follow_ups_created,
        result.messages_sent,
        len(result.errors),
    )
    return result.to_dict()
