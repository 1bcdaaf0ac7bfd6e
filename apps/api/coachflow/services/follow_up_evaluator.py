"""Batch evaluator - daily milestone follow-ups and the time-driven stage sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachflow.core.config import settings
from coachflow.core.milestones import (
    DEFAULT_MILESTONE_DAYS,
    REMINDER_LEAD_DAYS,
    tracked_service_types,
)
from coachflow.core.structured_logging import build_log_context
from coachflow.db.enums import CalendarEventType, ClientStatus, MessageTrigger, TriggerSource
from coachflow.db.models import Client
from coachflow.services import calendar_service, follow_up_service, message_service
from coachflow.services.milestone_calendar import (
    Milestone,
    MilestoneSchedule,
    elapsed_days,
    milestones_in_window,
    upcoming_reminder,
)
from coachflow.services.stage_dispatcher import StageDispatcher
from coachflow.services.workflow_state_service import WorkflowStateStore

logger = logging.getLogger(__name__)


@dataclass
class FollowUpCheckResult:
    timestamp: datetime
    manual_trigger: bool = False
    clients_checked: int = 0
    follow_ups_created: int = 0
    messages_sent: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "manual_trigger": self.manual_trigger,
            "clients_checked": self.clients_checked,
            "follow_ups_created": self.follow_ups_created,
            "messages_sent": self.messages_sent,
            "errors": self.errors,
        }


def check_in_message(milestone: Milestone) -> str:
    if milestone.is_final:
        return (
            f"🎉 Congratulations! You've completed your {milestone.day}-day wellness journey! "
            "Your final check-in is scheduled. Please complete the pre-call form to share "
            "your experience and achievements."
        )
    return (
        f"📞 Your {milestone.day}-day check-in is due! This is a great time to review your "
        "progress. Please complete the pre-call form before your scheduled consultation."
    )


def reminder_message(milestone: Milestone, lead_days: int) -> str:
    return (
        f"⏰ Reminder: Your {milestone.day}-day check-in is in {lead_days} days. "
        "Please complete the pre-call form when you have a moment."
    )


def reminder_dedupe_key(follow_up_id: UUID) -> str:
    return f"follow_up_reminder:{follow_up_id}"


def _load_clients(db: Session, schedule: MilestoneSchedule) -> list[Client]:
    service_types = [s.value for s in tracked_service_types(schedule)]
    if not service_types:
        return []
    return list(
        db.execute(
            select(Client)
            .where(
                Client.status == ClientStatus.ACTIVE.value,
                Client.service_type.in_(service_types),
                Client.program_started_at.is_not(None),
            )
            .order_by(Client.created_at)
        ).scalars()
    )


def _process_milestone(
    db: Session,
    client: Client,
    milestone: Milestone,
    result: FollowUpCheckResult,
    scheduled_date: date,
) -> None:
    log_context = build_log_context(client_id=client.id, milestone=milestone.follow_up_type)
    if follow_up_service.already_processed(db, client.id, milestone.follow_up_type):
        return

    try:
        follow_up = follow_up_service.create_follow_up(
            db,
            client_id=client.id,
            follow_up_type=milestone.follow_up_type,
            scheduled_date=scheduled_date,
        )
    except follow_up_service.DuplicateFollowUpError:
        # A concurrent run created it; its side effects belong to that run
        return

    result.follow_ups_created += 1
    follow_up_id = follow_up.id
    logger.info("Created %s follow-up for client=%s", milestone.follow_up_type, client.id, extra=log_context)

    try:
        message = message_service.send_system_message(
            db,
            client_id=client.id,
            content=check_in_message(milestone),
            metadata={
                "follow_up_id": str(follow_up_id),
                "milestone_day": milestone.day,
                "trigger": MessageTrigger.FOLLOW_UP_AUTOMATION.value,
            },
            dedupe_key=f"{MessageTrigger.FOLLOW_UP_AUTOMATION.value}:{follow_up_id}",
        )
        if message:
            result.messages_sent += 1
    except Exception:
        db.rollback()
        logger.exception("Failed to send check-in message for client=%s", client.id, extra=log_context)

    try:
        calendar_service.create_calendar_event(
            db,
            client_id=client.id,
            event_date=scheduled_date,
            event_type=CalendarEventType.FOLLOW_UP,
            title=milestone.title,
            description=f"Follow-up consultation for {milestone.day}-day milestone",
            metadata={"follow_up_id": str(follow_up_id), "milestone": milestone.day},
        )
    except Exception:
        db.rollback()
        logger.exception("Failed to create calendar event for client=%s", client.id, extra=log_context)


def _process_reminder(
    db: Session,
    client: Client,
    milestone: Milestone,
    lead_days: int,
    result: FollowUpCheckResult,
) -> None:
    follow_up = follow_up_service.get_pending_follow_up(db, client.id, milestone.follow_up_type)
    if not follow_up:
        return

    message = message_service.send_system_message(
        db,
        client_id=client.id,
        content=reminder_message(milestone, lead_days),
        metadata={
            "follow_up_id": str(follow_up.id),
            "milestone_day": milestone.day,
            "trigger": MessageTrigger.FOLLOW_UP_REMINDER.value,
        },
        dedupe_key=reminder_dedupe_key(follow_up.id),
    )
    if message:
        result.messages_sent += 1
        logger.info(
            "Sent %s reminder to client=%s",
            milestone.follow_up_type,
            client.id,
            extra=build_log_context(client_id=client.id, milestone=milestone.follow_up_type),
        )


def run_follow_up_check(
    db: Session,
    *,
    now: datetime | None = None,
    manual_trigger: bool = False,
    schedule: MilestoneSchedule = DEFAULT_MILESTONE_DAYS,
    lead_days: int | None = None,
    catch_up_days: int | None = None,
    reminder_lead_days: int = REMINDER_LEAD_DAYS,
) -> FollowUpCheckResult:
    """
    Create due milestone follow-ups and send upcoming reminders for all active clients.

    Each client is processed in isolation; a failure is logged, recorded in
    `errors`, and the loop moves on. Failing to load the client list is fatal
    and propagates to the caller.
    """
    now = now or datetime.now(timezone.utc)
    lead_days = settings.FOLLOW_UP_LEAD_DAYS if lead_days is None else lead_days
    catch_up_days = settings.FOLLOW_UP_CATCH_UP_DAYS if catch_up_days is None else catch_up_days
    tz = settings.PROGRAM_TIMEZONE
    today = now.astimezone(ZoneInfo(tz)).date()
    scheduled_date = today + timedelta(days=lead_days)

    result = FollowUpCheckResult(timestamp=now, manual_trigger=manual_trigger)
    clients = _load_clients(db, schedule)
    result.clients_checked = len(clients)
    logger.info("Follow-up check over %s clients (manual=%s)", len(clients), manual_trigger)

    for client in clients:
        client_id = client.id
        try:
            elapsed = elapsed_days(client.program_started_at, today, tz)
            for milestone in milestones_in_window(
                client.service_type, elapsed, catch_up_days, schedule
            ):
                _process_milestone(db, client, milestone, result, scheduled_date)

            reminder = upcoming_reminder(client.service_type, elapsed, schedule, reminder_lead_days)
            if reminder:
                _process_reminder(db, client, reminder, reminder_lead_days, result)
        except Exception as exc:
            db.rollback()
            logger.exception(
                "Follow-up check failed for client=%s",
                client_id,
                extra=build_log_context(client_id=client_id),
            )
            result.errors.append({"client_id": str(client_id), "error": str(exc)})

    logger.info(
        "Follow-up check done: %s follow-ups, %s messages, %s errors",
        result.follow_ups_created,
        result.messages_sent,
        len(result.errors),
    )
    return result


def run_workflow_automation(
    db: Session,
    dispatcher: StageDispatcher,
    *,
    now: datetime | None = None,
    state_store: WorkflowStateStore | None = None,
) -> dict[str, Any]:
    """
    Fire every stage action whose due time has passed.

    Returns {timestamp, processed, results: [{client_id, stage, status, action, error?}]}.
    """
    now = now or datetime.now(timezone.utc)
    store = state_store or dispatcher.state_store
    due = [(s.client_id, s.current_stage, s.next_action) for s in store.list_due(db, now)]

    results: list[dict[str, Any]] = []
    for client_id, stage, action in due:
        entry: dict[str, Any] = {
            "client_id": str(client_id),
            "stage": stage,
            "action": action,
        }
        try:
            dispatch = dispatcher.trigger(
                db, client_id, stage, TriggerSource.SYSTEM.value, now=now
            )
            entry["status"] = dispatch.status.value
            failed = dispatch.failed_steps
            if failed:
                entry["failed_steps"] = [s.name for s in failed]
        except Exception as exc:
            db.rollback()
            logger.exception(
                "Workflow automation failed for client=%s",
                client_id,
                extra=build_log_context(client_id=client_id, stage=stage),
            )
            entry["status"] = "error"
            entry["error"] = str(exc)
        results.append(entry)

    logger.info("Workflow automation processed %s due clients", len(results))
    return {
        "timestamp": now.isoformat(),
        "processed": len(results),
        "results": results,
    }
