from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from coachflow.db.enums import ServiceType
from coachflow.services import message_service

from conftest import NOW


async def test_start_program(client, make_client):
    client_id = make_client(service_type=ServiceType.CONSULTATION).id

    response = await client.post(f"/workflows/{client_id}/start", headers={"X-Admin-Id": "coach-1"})

    assert response.status_code == 201
    body = response.json()
    assert body["current_stage"] == "consultation_scheduled"
    assert body["next_action"] == "send_health_assessment"


async def test_start_program_twice_conflicts(client, make_client):
    client_id = make_client().id
    await client.post(f"/workflows/{client_id}/start")

    response = await client.post(f"/workflows/{client_id}/start")

    assert response.status_code == 409


async def test_start_program_unknown_client(client):
    response = await client.post(f"/workflows/{uuid.uuid4()}/start")
    assert response.status_code == 404


async def test_trigger_stage_advances(client, db, start_client):
    client_id = start_client().client_id

    response = await client.post(
        "/workflows/trigger-stage",
        json={"client_id": str(client_id), "stage": "consultation_scheduled"},
        headers={"X-Admin-Id": "coach-9"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "advanced"
    assert body["new_stage"] == "health_assessment_sent"
    assert body["next_action"] == "send_stress_card"
    assert body["steps"] == [{"name": "message", "status": "succeeded", "error": None}]

    history = (await client.get(f"/workflows/{client_id}/history")).json()
    assert history[0]["triggered_by"] == "coach-9"
    assert history[0]["action"] == "send_health_assessment"
    assert history[-1]["action"] == "program_started"


async def test_trigger_stage_default_admin_id(client, start_client):
    client_id = start_client().client_id

    await client.post(
        "/workflows/trigger-stage",
        json={"client_id": str(client_id), "stage": "consultation_scheduled"},
    )

    history = (await client.get(f"/workflows/{client_id}/history")).json()
    assert history[0]["triggered_by"] == "admin"


async def test_double_click_is_stale(client, db, start_client):
    client_id = start_client().client_id
    payload = {"client_id": str(client_id), "stage": "consultation_scheduled"}

    first = await client.post("/workflows/trigger-stage", json=payload)
    second = await client.post("/workflows/trigger-stage", json=payload)

    assert first.json()["status"] == "advanced"
    assert second.status_code == 200
    assert second.json()["status"] == "stale_stage"
    assert second.json()["current_stage"] == "health_assessment_sent"
    assert len(message_service.list_messages(db, client_id)) == 1


async def test_trigger_stage_without_state_returns_404(client, make_client):
    client_id = make_client().id

    response = await client.post(
        "/workflows/trigger-stage",
        json={"client_id": str(client_id), "stage": "consultation_scheduled"},
    )

    assert response.status_code == 404


async def test_trigger_unknown_stage_returns_422(client, start_client):
    client_id = start_client().client_id

    response = await client.post(
        "/workflows/trigger-stage",
        json={"client_id": str(client_id), "stage": "teleported"},
    )

    assert response.status_code == 422


async def test_trigger_stage_of_other_track_is_stale(client, db, start_client):
    client_id = start_client(service_type=ServiceType.CONSULTATION).client_id

    response = await client.post(
        "/workflows/trigger-stage",
        json={"client_id": str(client_id), "stage": "program_active"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "stale_stage"
    assert response.json()["current_stage"] == "consultation_scheduled"
    assert message_service.list_messages(db, client_id) == []


async def test_get_workflow_state(client, start_client):
    client_id = start_client().client_id

    response = await client.get(f"/workflows/{client_id}")

    assert response.status_code == 200
    assert response.json()["client_id"] == str(client_id)
    assert response.json()["service_type"] == "hundred_days"


async def test_workflow_state_timestamps_carry_utc_offset(client, start_client):
    client_id = start_client(now=NOW).client_id

    body = (await client.get(f"/workflows/{client_id}")).json()

    due_at = datetime.fromisoformat(body["next_action_due_at"].replace("Z", "+00:00"))
    assert due_at.utcoffset() == timedelta(0)
    assert due_at == NOW + timedelta(minutes=30)


async def test_get_workflow_state_missing(client):
    response = await client.get(f"/workflows/{uuid.uuid4()}")
    assert response.status_code == 404


async def test_workflow_routes_require_secret(client, start_client):
    client_id = start_client().client_id

    response = await client.get(f"/workflows/{client_id}", headers={"X-Internal-Secret": "wrong"})

    assert response.status_code == 403
