"""Stage dispatcher - claims a stage transition, then runs its side effects.

The advance is a compare-and-set on the current stage and happens before any
side effect, so of two overlapping triggers only the winner fires anything.
Side-effect steps are best-effort and fail independently: a failed step is
logged, its session work rolled back, and recorded in the result and in the
history row's details. It never blocks the other steps.
There is no compensation for steps that keep failing after the stage moved on;
operators reconcile from the recorded step outcomes.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from coachflow.core.async_utils import run_async
from coachflow.core.config import settings
from coachflow.core.stage_definitions import StageTable
from coachflow.core.structured_logging import build_log_context
from coachflow.db.enums import (
    CalendarEventType,
    ContentKind,
    DispatchStatus,
    MessageTrigger,
    ServiceType,
    StageAction,
    StepStatus,
    TriggerSource,
)
from coachflow.db.models import Client
from coachflow.services import (
    calendar_service,
    content_draft_service,
    follow_up_service,
    message_service,
)
from coachflow.services.content_producer import (
    ContentProducer,
    ContentPrompt,
    get_content_producer,
)
from coachflow.services.workflow_state_service import (
    InvalidTransition,
    WorkflowStateStore,
)

logger = logging.getLogger(__name__)

POST_CONSULTATION_FOLLOW_UP = "post_consultation"
POST_CONSULTATION_DAYS = 7
PROGRAM_LENGTH_DAYS = 100


@dataclass
class StepResult:
    name: str
    status: StepStatus
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "status": self.status.value, "error": self.error}


@dataclass
class DispatchResult:
    """Summary of a stage trigger: what happened and which steps succeeded."""

    status: DispatchStatus
    client_id: UUID
    stage: str
    current_stage: str | None = None
    new_stage: str | None = None
    next_action: str | None = None
    next_action_due_at: datetime | None = None
    steps: list[StepResult] = field(default_factory=list)

    @property
    def advanced(self) -> bool:
        return self.status == DispatchStatus.ADVANCED

    @property
    def failed_steps(self) -> list[StepResult]:
        return [s for s in self.steps if s.status == StepStatus.FAILED]


@dataclass
class StageContext:
    """Everything a stage handler's steps need."""

    db: Session
    client: Client
    stage: str
    action: StageAction
    actor: str
    now: datetime
    producer: ContentProducer | None

    @property
    def today(self) -> date:
        return self.now.astimezone(ZoneInfo(settings.PROGRAM_TIMEZONE)).date()

    @property
    def is_hundred_days(self) -> bool:
        return self.client.service_type == ServiceType.HUNDRED_DAYS.value


StepFn = Callable[[StageContext], StepStatus | None]
Step = tuple[str, StepFn]
StageHandler = Callable[[StageContext], list[Step]]


# =============================================================================
# Step builders
# =============================================================================


def _message_step(build_content: Callable[[StageContext], str]) -> Step:
    def _run(ctx: StageContext) -> StepStatus:
        message = message_service.send_system_message(
            ctx.db,
            client_id=ctx.client.id,
            content=build_content(ctx),
            metadata={
                "trigger": MessageTrigger.WORKFLOW_STAGE.value,
                "stage": ctx.stage,
                "action": ctx.action.value,
            },
            dedupe_key=f"workflow_stage:{ctx.client.id}:{ctx.action.value}",
        )
        return StepStatus.SUCCEEDED if message else StepStatus.SKIPPED

    return ("message", _run)


def _draft_step(kind: ContentKind) -> Step:
    def _run(ctx: StageContext) -> StepStatus:
        if ctx.producer is None:
            return StepStatus.SKIPPED
        context: dict[str, Any] = {
            "stage": ctx.stage,
            "program_started_at": (
                ctx.client.program_started_at.isoformat()
                if ctx.client.program_started_at
                else None
            ),
        }
        if kind == ContentKind.GROCERY_LIST:
            diet_plan = content_draft_service.get_latest_draft(
                ctx.db, ctx.client.id, ContentKind.DIET_PLAN
            )
            if diet_plan:
                context["diet_plan"] = diet_plan.payload
        prompt = ContentPrompt(
            kind=kind,
            client_name=ctx.client.name,
            service_type=ctx.client.service_type,
            context=context,
        )
        generated = run_async(
            ctx.producer.generate(prompt), timeout=settings.CONTENT_TIMEOUT_SECONDS
        )
        content_draft_service.save_draft(ctx.db, ctx.client.id, generated)
        return StepStatus.SUCCEEDED

    return (f"generate_{kind.value}", _run)


def _calendar_step(
    title: str,
    event_type: CalendarEventType,
    offset_days: int = 0,
    description: str | None = None,
) -> Step:
    def _run(ctx: StageContext) -> StepStatus:
        calendar_service.create_calendar_event(
            ctx.db,
            client_id=ctx.client.id,
            event_date=ctx.today + timedelta(days=offset_days),
            event_type=event_type,
            title=title,
            description=description,
            metadata={"action": ctx.action.value},
        )
        return StepStatus.SUCCEEDED

    return ("calendar_event", _run)


def _follow_up_step(follow_up_type: str, offset_days: int) -> Step:
    def _run(ctx: StageContext) -> StepStatus:
        try:
            follow_up_service.create_follow_up(
                ctx.db,
                client_id=ctx.client.id,
                follow_up_type=follow_up_type,
                scheduled_date=ctx.today + timedelta(days=offset_days),
            )
        except follow_up_service.DuplicateFollowUpError:
            return StepStatus.SKIPPED
        return StepStatus.SUCCEEDED

    return ("follow_up", _run)


# =============================================================================
# Stage action handlers
# =============================================================================


def _handle_send_health_assessment(ctx: StageContext) -> list[Step]:
    def content(c: StageContext) -> str:
        if c.is_hundred_days:
            return (
                f"Hi {c.client.name}! Welcome to the 100-Day Program! "
                "Let's start with your health assessment."
            )
        return (
            f"Hi {c.client.name}! It's time to complete your health assessment. "
            "This will help us create your personalized wellness plan."
        )

    return [_message_step(content)]


def _handle_send_stress_card(ctx: StageContext) -> list[Step]:
    return [
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Time to complete your stress assessment. "
                "This helps us understand your stress patterns better."
            )
        )
    ]


def _handle_send_sleep_card(ctx: StageContext) -> list[Step]:
    return [
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Let's assess your sleep patterns. "
                "Good sleep is crucial for your wellness journey!"
            )
        )
    ]


def _handle_prepare_action_plan(ctx: StageContext) -> list[Step]:
    return [
        _draft_step(ContentKind.ACTION_PLAN),
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Your dietitian is preparing your personalized "
                "action plan. You'll see it here as soon as it's reviewed."
            )
        ),
    ]


def _handle_prepare_diet_plan(ctx: StageContext) -> list[Step]:
    return [
        _draft_step(ContentKind.DIET_PLAN),
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Your personalized diet plan is on its way. "
                "Your dietitian will share it once it's reviewed."
            )
        ),
    ]


def _handle_send_grocery_list(ctx: StageContext) -> list[Step]:
    return [
        _draft_step(ContentKind.GROCERY_LIST),
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! A grocery list matching your diet plan is being "
                "put together to make shopping easier."
            )
        ),
    ]


def _handle_activate_program(ctx: StageContext) -> list[Step]:
    return [
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Your 100-day program is now active. "
                "We'll check in with you every two weeks along the way."
            )
        ),
        _calendar_step("100-Day Program Start", CalendarEventType.PROGRAM),
    ]


def _handle_complete_consultation(ctx: StageContext) -> list[Step]:
    return [
        _follow_up_step(POST_CONSULTATION_FOLLOW_UP, POST_CONSULTATION_DAYS),
        _message_step(
            lambda c: (
                f"Thank you for your consultation, {c.client.name}! "
                "We've scheduled a follow-up to see how you're getting on."
            )
        ),
        _calendar_step(
            "Post-Consultation Follow-Up",
            CalendarEventType.FOLLOW_UP,
            offset_days=POST_CONSULTATION_DAYS,
            description="Follow-up after the initial consultation",
        ),
    ]


def _handle_start_retargeting(ctx: StageContext) -> list[Step]:
    return [
        _message_step(
            lambda c: (
                f"Hi {c.client.name}! Ready to take the next step? Our 100-Day Program "
                "builds on everything from your consultation."
            )
        )
    ]


STAGE_ACTION_HANDLERS: Mapping[StageAction, StageHandler] = {
    StageAction.SEND_HEALTH_ASSESSMENT: _handle_send_health_assessment,
    StageAction.SEND_STRESS_CARD: _handle_send_stress_card,
    StageAction.SEND_SLEEP_CARD: _handle_send_sleep_card,
    StageAction.PREPARE_ACTION_PLAN: _handle_prepare_action_plan,
    StageAction.PREPARE_DIET_PLAN: _handle_prepare_diet_plan,
    StageAction.SEND_GROCERY_LIST: _handle_send_grocery_list,
    StageAction.ACTIVATE_PROGRAM: _handle_activate_program,
    StageAction.COMPLETE_CONSULTATION: _handle_complete_consultation,
    StageAction.START_RETARGETING: _handle_start_retargeting,
}

_unhandled = set(StageAction) - set(STAGE_ACTION_HANDLERS)
if _unhandled:
    raise RuntimeError(
        f"Stage actions without handlers: {sorted(a.value for a in _unhandled)}"
    )


def resolve_stage_handler(action: StageAction) -> StageHandler:
    handler = STAGE_ACTION_HANDLERS.get(action)
    if not handler:
        raise ValueError(f"Unknown stage action: {action}")
    return handler


# =============================================================================
# Dispatcher
# =============================================================================


class StageDispatcher:
    """
    Executes stage triggers from the automation sweep and the admin "trigger stage" path.

    Both paths share trigger(): a request for a stage that is no longer
    current is a no-op, so slow retries never fire a stage twice.
    """

    def __init__(
        self,
        state_store: WorkflowStateStore,
        content_producer: ContentProducer | None = None,
        stage_table: StageTable | None = None,
    ) -> None:
        self.state_store = state_store
        self.stage_table = stage_table or state_store.stage_table
        self.content_producer = content_producer
        missing = self.stage_table.actions() - set(STAGE_ACTION_HANDLERS)
        if missing:
            raise ValueError(f"Stage table uses unhandled actions: {sorted(a.value for a in missing)}")

    def trigger(
        self,
        db: Session,
        client_id: UUID,
        stage_key: str,
        actor: str,
        *,
        now: datetime | None = None,
    ) -> DispatchResult:
        """
        Advance past the current stage and run its action.

        A stage_key that is not the client's current stage (including one from
        another service type's track) is a stale_stage no-op. The advance is
        claimed before any side effect runs; a trigger that loses the claim to
        a concurrent one returns stale_stage without running anything.

        Raises:
            WorkflowStateNotFound: the client has no workflow state
        """
        now = now or datetime.now(timezone.utc)
        stage_value = getattr(stage_key, "value", stage_key)
        log_context = build_log_context(client_id=client_id, stage=stage_value, actor=actor)

        state = self.state_store.get(db, client_id)
        service_type = state.service_type
        if state.current_stage != stage_value:
            logger.info(
                "Ignoring trigger for client=%s: requested %s but current stage is %s",
                client_id,
                stage_value,
                state.current_stage,
                extra=log_context,
            )
            return DispatchResult(
                status=DispatchStatus.STALE_STAGE,
                client_id=client_id,
                stage=stage_value,
                current_stage=state.current_stage,
            )

        definition = self.stage_table.get(service_type, stage_value)
        next_definition = self.stage_table.next_stage(service_type, stage_value)
        if definition is None or definition.action is None or next_definition is None:
            return DispatchResult(
                status=DispatchStatus.FINAL_STAGE,
                client_id=client_id,
                stage=stage_value,
                current_stage=state.current_stage,
            )

        due_at = None
        if next_definition.action is not None and next_definition.delay is not None:
            due_at = now + next_definition.delay

        history_id = uuid.uuid4()
        try:
            self.state_store.advance(
                db,
                client_id,
                next_definition.key,
                next_definition.action,
                due_at,
                action=definition.action.value,
                triggered_by=actor,
                details={
                    "from_stage": stage_value,
                    "manual": actor != TriggerSource.SYSTEM.value,
                    "steps": [],
                },
                history_id=history_id,
                now=now,
            )
        except InvalidTransition:
            current_stage = self.state_store.get(db, client_id).current_stage
            logger.info(
                "Client=%s was advanced concurrently; %s not run",
                client_id,
                definition.action.value,
                extra=log_context,
            )
            return DispatchResult(
                status=DispatchStatus.STALE_STAGE,
                client_id=client_id,
                stage=stage_value,
                current_stage=current_stage,
            )

        ctx = StageContext(
            db=db,
            client=db.get(Client, client_id),
            stage=stage_value,
            action=definition.action,
            actor=actor,
            now=now,
            producer=self.content_producer,
        )
        steps = resolve_stage_handler(definition.action)(ctx)
        results = [self._run_step(ctx, name, step) for name, step in steps]
        self.state_store.record_step_outcomes(db, history_id, [r.to_dict() for r in results])

        return DispatchResult(
            status=DispatchStatus.ADVANCED,
            client_id=client_id,
            stage=stage_value,
            current_stage=next_definition.key.value,
            new_stage=next_definition.key.value,
            next_action=next_definition.action.value if next_definition.action else None,
            next_action_due_at=due_at,
            steps=results,
        )

    def _run_step(self, ctx: StageContext, name: str, step: StepFn) -> StepResult:
        try:
            status = step(ctx) or StepStatus.SUCCEEDED
        except Exception as exc:
            ctx.db.rollback()
            logger.warning(
                "Stage step %s failed for client=%s (%s)",
                name,
                ctx.client.id,
                type(exc).__name__,
                exc_info=True,
                extra=build_log_context(client_id=ctx.client.id, stage=ctx.action.value, actor=ctx.actor),
            )
            return StepResult(name=name, status=StepStatus.FAILED, error=str(exc) or type(exc).__name__)
        return StepResult(name=name, status=status)


def get_stage_dispatcher() -> StageDispatcher:
    """Dispatcher over the default stage table and the configured content producer."""
    return StageDispatcher(WorkflowStateStore(), content_producer=get_content_producer())
