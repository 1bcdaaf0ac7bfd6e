from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from coachflow.db.enums import ServiceType, StageAction, WorkflowStage
from coachflow.db.models import Client, WorkflowHistory
from coachflow.services.workflow_state_service import (
    InvalidTransition,
    WorkflowStateExists,
    WorkflowStateNotFound,
)

from conftest import NOW


def _history_count(db, client_id) -> int:
    return db.execute(
        select(func.count()).select_from(WorkflowHistory).where(WorkflowHistory.client_id == client_id)
    ).scalar_one()


def test_start_program_creates_first_stage(db, make_client, state_store):
    client = make_client(service_type=ServiceType.HUNDRED_DAYS)

    state = state_store.start_program(db, client, now=NOW)

    assert state.current_stage == WorkflowStage.CONSULTATION_SCHEDULED.value
    assert state.next_action == StageAction.SEND_HEALTH_ASSESSMENT.value
    assert state.next_action_due_at == NOW + timedelta(minutes=30)
    assert db.get(Client, client.id).program_started_at is not None

    history = state_store.list_history(db, client.id)
    assert [h.action for h in history] == ["program_started"]
    assert history[0].triggered_by == "system"


def test_start_program_twice_conflicts(db, make_client, state_store):
    client = make_client()
    state_store.start_program(db, client, now=NOW)

    with pytest.raises(WorkflowStateExists):
        state_store.start_program(db, db.get(Client, client.id), now=NOW)

    assert _history_count(db, client.id) == 1


def test_program_started_at_is_immutable(db, make_client):
    client = make_client(program_started_at=NOW)

    with pytest.raises(ValueError, match="immutable"):
        client.program_started_at = NOW + timedelta(days=1)


def test_get_without_state_raises(db, make_client, state_store):
    client = make_client()
    with pytest.raises(WorkflowStateNotFound):
        state_store.get(db, client.id)


def test_advance_moves_forward_and_logs(db, start_client, state_store):
    state = start_client()
    client_id = state.client_id
    due = NOW + timedelta(hours=3)

    updated = state_store.advance(
        db,
        client_id,
        WorkflowStage.HEALTH_ASSESSMENT_SENT,
        StageAction.SEND_STRESS_CARD,
        due,
        action="send_health_assessment",
        triggered_by="coach-7",
        details={"steps": []},
        now=NOW + timedelta(minutes=31),
    )

    assert updated.current_stage == WorkflowStage.HEALTH_ASSESSMENT_SENT.value
    assert updated.next_action == StageAction.SEND_STRESS_CARD.value
    assert updated.stage_completed_at is not None

    latest = state_store.list_history(db, client_id)[0]
    assert latest.stage == WorkflowStage.HEALTH_ASSESSMENT_SENT.value
    assert latest.action == "send_health_assessment"
    assert latest.triggered_by == "coach-7"
    assert latest.details == {"steps": []}


def test_advance_may_skip_ahead(db, start_client, state_store):
    state = start_client()

    updated = state_store.advance(
        db,
        state.client_id,
        WorkflowStage.SLEEP_CARD_SENT,
        StageAction.PREPARE_ACTION_PLAN,
        None,
        action="manual_skip",
        triggered_by="admin",
        now=NOW,
    )

    assert updated.current_stage == WorkflowStage.SLEEP_CARD_SENT.value


@pytest.mark.parametrize(
    "target",
    [
        WorkflowStage.CONSULTATION_SCHEDULED,  # same stage
        WorkflowStage.SOFT_RETARGETING_ACTIVE,  # not in the 100-day list
    ],
)
def test_advance_rejects_invalid_targets(db, start_client, state_store, target):
    state = start_client()
    client_id = state.client_id

    with pytest.raises(InvalidTransition):
        state_store.advance(
            db, client_id, target, None, None, action="x", triggered_by="system", now=NOW
        )

    assert state_store.get(db, client_id).current_stage == WorkflowStage.CONSULTATION_SCHEDULED.value
    assert _history_count(db, client_id) == 1


def test_advance_rejects_backwards(db, start_client, state_store):
    state = start_client()
    client_id = state.client_id
    state_store.advance(
        db, client_id, WorkflowStage.STRESS_CARD_SENT, StageAction.SEND_SLEEP_CARD, None,
        action="x", triggered_by="system", now=NOW,
    )

    with pytest.raises(InvalidTransition) as exc_info:
        state_store.advance(
            db, client_id, WorkflowStage.HEALTH_ASSESSMENT_SENT, None, None,
            action="x", triggered_by="system", now=NOW,
        )

    assert exc_info.value.current_stage == WorkflowStage.STRESS_CARD_SENT.value
    assert _history_count(db, client_id) == 2


def test_concurrent_advance_only_one_wins(session_factory, start_client, state_store):
    state = start_client()
    client_id = state.client_id
    first = session_factory()
    second = session_factory()
    try:
        # Both writers read the same current stage
        state_store.get(first, client_id)
        state_store.get(second, client_id)

        state_store.advance(
            first, client_id, WorkflowStage.HEALTH_ASSESSMENT_SENT, StageAction.SEND_STRESS_CARD, None,
            action="send_health_assessment", triggered_by="system", now=NOW,
        )
        with pytest.raises(InvalidTransition):
            state_store.advance(
                second, client_id, WorkflowStage.HEALTH_ASSESSMENT_SENT, StageAction.SEND_STRESS_CARD, None,
                action="send_health_assessment", triggered_by="admin", now=NOW,
            )

        assert _history_count(second, client_id) == 2
    finally:
        first.close()
        second.close()


def test_list_due(db, start_client, state_store):
    early = start_client(now=NOW)
    late = start_client(now=NOW + timedelta(hours=2))

    due = state_store.list_due(db, NOW + timedelta(minutes=45))

    assert [s.client_id for s in due] == [early.client_id]
    assert late.client_id not in [s.client_id for s in due]


def test_history_newest_first(db, start_client, state_store):
    state = start_client()
    client_id = state.client_id
    state_store.advance(
        db, client_id, WorkflowStage.HEALTH_ASSESSMENT_SENT, StageAction.SEND_STRESS_CARD, None,
        action="send_health_assessment", triggered_by="system", now=NOW + timedelta(hours=1),
    )

    history = state_store.list_history(db, client_id)

    assert [h.action for h in history] == ["send_health_assessment", "program_started"]


def test_history_same_timestamp_orders_by_sequence(db, start_client, state_store):
    state = start_client(now=NOW)
    client_id = state.client_id
    state_store.advance(
        db, client_id, WorkflowStage.HEALTH_ASSESSMENT_SENT, StageAction.SEND_STRESS_CARD, None,
        action="send_health_assessment", triggered_by="system", now=NOW,
    )
    state_store.advance(
        db, client_id, WorkflowStage.STRESS_CARD_SENT, StageAction.SEND_SLEEP_CARD, None,
        action="send_stress_card", triggered_by="system", now=NOW,
    )

    history = state_store.list_history(db, client_id)

    assert [h.action for h in history] == [
        "send_stress_card",
        "send_health_assessment",
        "program_started",
    ]
    assert [h.sequence for h in history] == [3, 2, 1]


def test_timestamps_read_back_as_utc(session_factory, start_client, state_store):
    client_id = start_client(now=NOW).client_id

    # Fresh session so values come from the database, not the identity map
    with session_factory() as other:
        state = state_store.get(other, client_id)
        history = state_store.list_history(other, client_id)

    assert state.next_action_due_at.utcoffset() == timedelta(0)
    assert state.next_action_due_at == NOW + timedelta(minutes=30)
    assert history[0].triggered_at == NOW
