"""Workflows router - client stage tracking and the admin "trigger stage" action."""

from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from coachflow.core.deps import get_db, get_dispatcher
from coachflow.core.security import verify_internal_secret
from coachflow.schemas.workflow import (
    DispatchResultRead,
    TriggerStageRequest,
    WorkflowHistoryRead,
    WorkflowStateRead,
)
from coachflow.services.stage_dispatcher import StageDispatcher
from coachflow.services.workflow_state_service import (
    WorkflowStateExists,
    WorkflowStateNotFound,
    get_client,
)

router = APIRouter(
    prefix="/workflows",
    tags=["workflows"],
    dependencies=[Depends(verify_internal_secret)],
)


@router.post("/trigger-stage", response_model=DispatchResultRead)
def trigger_stage(
    data: TriggerStageRequest,
    x_admin_id: str = Header("admin"),
    db: Session = Depends(get_db),
    dispatcher: StageDispatcher = Depends(get_dispatcher),
):
    """
    Run the client's current stage action now and advance.

    A stage that is not current returns status "stale_stage" without side
    effects, so a repeated click or a stage from another track is harmless.
    """
    try:
        return dispatcher.trigger(db, data.client_id, data.stage.value, x_admin_id)
    except WorkflowStateNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{client_id}/start", response_model=WorkflowStateRead, status_code=201)
def start_program(
    client_id: UUID,
    x_admin_id: str = Header("admin"),
    db: Session = Depends(get_db),
    dispatcher: StageDispatcher = Depends(get_dispatcher),
):
    client = get_client(db, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    try:
        return dispatcher.state_store.start_program(db, client, triggered_by=x_admin_id)
    except WorkflowStateExists as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.get("/{client_id}", response_model=WorkflowStateRead)
def get_workflow_state(
    client_id: UUID,
    db: Session = Depends(get_db),
    dispatcher: StageDispatcher = Depends(get_dispatcher),
):
    try:
        return dispatcher.state_store.get(db, client_id)
    except WorkflowStateNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/{client_id}/history", response_model=list[WorkflowHistoryRead])
def get_workflow_history(
    client_id: UUID,
    db: Session = Depends(get_db),
    dispatcher: StageDispatcher = Depends(get_dispatcher),
):
    """Stage transitions for a client, newest first."""
    return dispatcher.state_store.list_history(db, client_id)
