"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coachflow.db.base import Base
from coachflow.db.types import UTCDateTime

if TYPE_CHECKING:
    from coachflow.db.models import Client


class ClientWorkflowState(Base):
    """
    Current workflow position for a client (1:1 with clients).

    Mutated only by the workflow state store; current_stage must be a stage of
    the row's service_type and only ever moves forward.
    """

    __tablename__ = "client_workflow_state"
    __table_args__ = (
        Index("idx_workflow_state_due", "next_action_due_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    service_type: Mapped[str] = mapped_column(String(30), nullable=False)
    current_stage: Mapped[str] = mapped_column(String(50), nullable=False)
    next_action: Mapped[str | None] = mapped_column(String(50), nullable=True)
    next_action_due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    stage_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    client: Mapped["Client"] = relationship(back_populates="workflow_state")


class WorkflowHistory(Base):
    """
    Audit log of stage transitions.

    triggered_by is 'system' or the admin id. details carries the outcome of
    each side-effect step, filled in once the steps have run. sequence counts
    a client's transitions from 1 in write order.
    """

    __tablename__ = "workflow_history"
    __table_args__ = (
        UniqueConstraint("client_id", "sequence", name="uq_workflow_history_client_sequence"),
        Index("idx_workflow_history_client", "client_id", "triggered_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    triggered_by: Mapped[str] = mapped_column(String(100), nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
