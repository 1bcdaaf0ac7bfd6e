"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    client_id: UUID | str | None = None,
    stage: str | None = None,
    milestone: str | None = None,
    actor: str | None = None,
    job_name: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (identifiers only, never content)."""
    context: dict[str, Any] = {}
    if client_id:
        context["client_id"] = str(client_id)
    if stage:
        context["stage"] = stage
    if milestone:
        context["milestone"] = milestone
    if actor:
        context["actor"] = actor
    if job_name:
        context["job_name"] = job_name
    return context
