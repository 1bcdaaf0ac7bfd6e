"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from coachflow.db.base import Base
from coachflow.db.enums import DEFAULT_FOLLOW_UP_STATUS
from coachflow.db.types import UTCDateTime


class FollowUp(Base):
    """
    Milestone follow-up consultation.

    (client_id, follow_up_type) is the idempotency key: a row existing means
    the milestone has been processed. The unique constraint makes a racing
    second insert fail instead of duplicating side effects.
    """

    __tablename__ = "follow_ups"
    __table_args__ = (
        UniqueConstraint("client_id", "follow_up_type", name="uq_follow_ups_client_type"),
        Index("idx_follow_ups_status_date", "status", "scheduled_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    follow_up_type: Mapped[str] = mapped_column(String(50), nullable=False)  # "14_day", ...
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_FOLLOW_UP_STATUS.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class SystemMessage(Base):
    """
    Automated in-app message to a client.

    Refers to its follow-up through metadata['follow_up_id'] only; the engine
    never cascades deletes to messages.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_client_created", "client_id", "created_at"),
        UniqueConstraint("dedupe_key", name="uq_messages_dedupe_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    sender_type: Mapped[str] = mapped_column(String(20), default="system", nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), default="automated", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    dedupe_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )


class CalendarEvent(Base):
    """Calendar entry for a client (follow-up consultations, program markers)."""

    __tablename__ = "calendar_events"
    __table_args__ = (
        Index("idx_calendar_events_client_date", "client_id", "event_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, server_default=func.now(), nullable=False
    )
