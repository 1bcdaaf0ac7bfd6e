"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from coachflow.db.base import Base
from coachflow.db.enums import DEFAULT_CLIENT_STATUS
from coachflow.db.types import UTCDateTime

if TYPE_CHECKING:
    from coachflow.db.models import ClientWorkflowState


class Client(Base):
    """
    A coaching client and their program metadata.

    One active program per client: the service type picks the stage list and
    the milestone set, and program_started_at is stamped once when the
    program starts.
    """

    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_service_status", "service_type", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    service_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_CLIENT_STATUS.value, nullable=False
    )
    program_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )

    workflow_state: Mapped["ClientWorkflowState | None"] = relationship(
        back_populates="client", uselist=False
    )

    @validates("program_started_at")
    def _validate_program_started_at(self, key: str, value: datetime | None) -> datetime | None:
        current = getattr(self, "program_started_at", None)
        if current is not None and value != current:
            raise ValueError("program_started_at is immutable once set")
        return value
