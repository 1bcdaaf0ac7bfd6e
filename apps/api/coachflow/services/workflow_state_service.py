"""Workflow state store - per-client stage, next action, and transition history."""

import logging
import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coachflow.core.stage_definitions import StageTable, get_default_stage_table
from coachflow.core.structured_logging import build_log_context
from coachflow.db.enums import StageAction, TriggerSource, WorkflowStage
from coachflow.db.models import Client, ClientWorkflowState, WorkflowHistory

logger = logging.getLogger(__name__)


class WorkflowStateNotFound(Exception):
    """Client has no workflow state (program not started)."""


class WorkflowStateExists(Exception):
    """Program already started for this client."""


class InvalidTransition(Exception):
    """Requested stage is not strictly after the current stage."""

    def __init__(self, client_id: UUID, current_stage: str, new_stage: str) -> None:
        super().__init__(
            f"Cannot move client {client_id} from {current_stage} to {new_stage}"
        )
        self.client_id = client_id
        self.current_stage = current_stage
        self.new_stage = new_stage


def _value(item: object | None) -> str | None:
    if item is None:
        return None
    return getattr(item, "value", item)


def _next_sequence(db: Session, client_id: UUID) -> int:
    current = db.execute(
        select(func.max(WorkflowHistory.sequence)).where(WorkflowHistory.client_id == client_id)
    ).scalar()
    return (current or 0) + 1


class WorkflowStateStore:
    """
    Holds each client's workflow position.

    Stage ordering comes from the injected StageTable; advance() is the only
    writer of current_stage and always appends a history row in the same
    transaction.
    """

    def __init__(self, stage_table: StageTable | None = None) -> None:
        self.stage_table = stage_table or get_default_stage_table()

    def get(self, db: Session, client_id: UUID) -> ClientWorkflowState:
        state = db.execute(
            select(ClientWorkflowState).where(ClientWorkflowState.client_id == client_id)
        ).scalar_one_or_none()
        if not state:
            raise WorkflowStateNotFound(f"No workflow state for client {client_id}")
        return state

    def start_program(
        self,
        db: Session,
        client: Client,
        *,
        triggered_by: str = TriggerSource.SYSTEM.value,
        now: datetime | None = None,
    ) -> ClientWorkflowState:
        """
        Create the client's workflow state at the first stage of its service type.

        Stamps client.program_started_at when unset.
        """
        now = now or datetime.now(timezone.utc)
        first = self.stage_table.first(client.service_type)

        state = ClientWorkflowState(
            client_id=client.id,
            service_type=client.service_type,
            current_stage=first.key.value,
            next_action=_value(first.action),
            next_action_due_at=now + first.delay if first.delay is not None else None,
        )
        if client.program_started_at is None:
            client.program_started_at = now
        db.add(state)
        db.add(
            WorkflowHistory(
                client_id=client.id,
                sequence=1,
                stage=first.key.value,
                action="program_started",
                triggered_by=triggered_by,
                triggered_at=now,
                details={"service_type": client.service_type},
            )
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise WorkflowStateExists(f"Program already started for client {client.id}") from None
        db.refresh(state)
        logger.info(
            "Program started for client=%s at stage=%s",
            client.id,
            first.key.value,
            extra=build_log_context(client_id=client.id, stage=first.key.value, actor=triggered_by),
        )
        return state

    def advance(
        self,
        db: Session,
        client_id: UUID,
        new_stage: WorkflowStage | str,
        next_action: StageAction | str | None,
        due_at: datetime | None,
        *,
        action: str,
        triggered_by: str,
        details: dict | None = None,
        history_id: UUID | None = None,
        now: datetime | None = None,
    ) -> ClientWorkflowState:
        """
        Move a client forward to new_stage and log the transition.

        history_id, when given, becomes the id of the new history row so the
        caller can attach step outcomes to it later.

        Raises:
            WorkflowStateNotFound: no state row for the client
            InvalidTransition: new_stage is unknown for the service type, not
                strictly after the current stage, or another writer advanced
                the client first
        """
        now = now or datetime.now(timezone.utc)
        new_stage_value = _value(new_stage)
        state = self.get(db, client_id)
        current_stage = state.current_stage

        current_index = self.stage_table.index_of(state.service_type, current_stage)
        new_index = self.stage_table.index_of(state.service_type, new_stage_value)
        if new_index < 0 or new_index <= current_index:
            raise InvalidTransition(client_id, current_stage, new_stage_value)

        try:
            # Compare-and-set on the stage we read; a concurrent advance wins once
            result = db.execute(
                update(ClientWorkflowState)
                .where(
                    ClientWorkflowState.id == state.id,
                    ClientWorkflowState.current_stage == current_stage,
                )
                .values(
                    current_stage=new_stage_value,
                    next_action=_value(next_action),
                    next_action_due_at=due_at,
                    stage_completed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise InvalidTransition(client_id, current_stage, new_stage_value)

            db.add(
                WorkflowHistory(
                    id=history_id or uuid.uuid4(),
                    client_id=client_id,
                    sequence=_next_sequence(db, client_id),
                    stage=new_stage_value,
                    action=action,
                    triggered_by=triggered_by,
                    triggered_at=now,
                    details=details or {},
                )
            )
            db.commit()
        except InvalidTransition:
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(state)
        logger.info(
            "Workflow advanced client=%s %s -> %s",
            client_id,
            current_stage,
            new_stage_value,
            extra=build_log_context(client_id=client_id, stage=new_stage_value, actor=triggered_by),
        )
        return state

    def record_step_outcomes(
        self, db: Session, history_id: UUID, steps: list[dict]
    ) -> WorkflowHistory | None:
        """Attach side-effect step outcomes to a transition's history row."""
        history = db.get(WorkflowHistory, history_id)
        if not history:
            return None
        history.details = {**(history.details or {}), "steps": steps}
        db.commit()
        return history

    def list_history(self, db: Session, client_id: UUID) -> list[WorkflowHistory]:
        """Transitions for a client, newest first."""
        return list(
            db.execute(
                select(WorkflowHistory)
                .where(WorkflowHistory.client_id == client_id)
                .order_by(WorkflowHistory.triggered_at.desc(), WorkflowHistory.sequence.desc())
            ).scalars()
        )

    def list_due(self, db: Session, now: datetime | None = None) -> list[ClientWorkflowState]:
        """States whose next action is due at or before now."""
        now = now or datetime.now(timezone.utc)
        return list(
            db.execute(
                select(ClientWorkflowState)
                .where(
                    ClientWorkflowState.next_action.is_not(None),
                    ClientWorkflowState.next_action_due_at.is_not(None),
                    ClientWorkflowState.next_action_due_at <= now,
                )
                .order_by(ClientWorkflowState.next_action_due_at)
            ).scalars()
        )


def get_client(db: Session, client_id: UUID) -> Client | None:
    return db.get(Client, client_id)
