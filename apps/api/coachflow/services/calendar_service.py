"""Calendar sink - client calendar entries produced by the lifecycle engine."""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachflow.db.enums import CalendarEventType
from coachflow.db.models import CalendarEvent


def create_calendar_event(
    db: Session,
    client_id: UUID,
    event_date: date,
    event_type: CalendarEventType,
    title: str,
    description: str | None = None,
    metadata: dict | None = None,
) -> CalendarEvent:
    """Insert and commit a calendar event."""
    event = CalendarEvent(
        client_id=client_id,
        event_type=event_type.value,
        event_date=event_date,
        title=title,
        description=description,
        metadata_=metadata or {},
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def list_events(
    db: Session,
    client_id: UUID,
    date_start: date | None = None,
    date_end: date | None = None,
) -> list[CalendarEvent]:
    """List a client's events, optionally bounded by date (inclusive)."""
    stmt = select(CalendarEvent).where(CalendarEvent.client_id == client_id)
    if date_start:
        stmt = stmt.where(CalendarEvent.event_date >= date_start)
    if date_end:
        stmt = stmt.where(CalendarEvent.event_date <= date_end)
    return list(db.execute(stmt.order_by(CalendarEvent.event_date)).scalars())
