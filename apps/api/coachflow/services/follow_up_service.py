"""Follow-up service - milestone idempotency guard and follow-up lifecycle."""

import logging
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coachflow.db.enums import FollowUpStatus
from coachflow.db.models import FollowUp

logger = logging.getLogger(__name__)


class DuplicateFollowUpError(Exception):
    """A follow-up already exists for this (client, follow_up_type)."""

    def __init__(self, client_id: UUID, follow_up_type: str) -> None:
        super().__init__(f"Follow-up {follow_up_type} already exists for client {client_id}")
        self.client_id = client_id
        self.follow_up_type = follow_up_type


def get_follow_up(db: Session, client_id: UUID, follow_up_type: str) -> FollowUp | None:
    return db.execute(
        select(FollowUp).where(
            FollowUp.client_id == client_id,
            FollowUp.follow_up_type == follow_up_type,
        )
    ).scalar_one_or_none()


def already_processed(db: Session, client_id: UUID, follow_up_type: str) -> bool:
    """True when the milestone's follow-up row exists, whatever its status."""
    return get_follow_up(db, client_id, follow_up_type) is not None


def get_pending_follow_up(db: Session, client_id: UUID, follow_up_type: str) -> FollowUp | None:
    follow_up = get_follow_up(db, client_id, follow_up_type)
    if follow_up and follow_up.status == FollowUpStatus.PENDING.value:
        return follow_up
    return None


def create_follow_up(
    db: Session,
    client_id: UUID,
    follow_up_type: str,
    scheduled_date: date,
) -> FollowUp:
    """
    Insert and commit a pending follow-up.

    The (client_id, follow_up_type) unique constraint decides races: the
    losing writer gets DuplicateFollowUpError (session rolled back).
    """
    follow_up = FollowUp(
        client_id=client_id,
        follow_up_type=follow_up_type,
        scheduled_date=scheduled_date,
        status=FollowUpStatus.PENDING.value,
    )
    db.add(follow_up)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "Skipping duplicate follow-up %s for client=%s", follow_up_type, client_id
        )
        raise DuplicateFollowUpError(client_id, follow_up_type) from None
    db.refresh(follow_up)
    return follow_up


def list_follow_ups(
    db: Session,
    client_id: UUID,
    status: FollowUpStatus | None = None,
) -> list[FollowUp]:
    stmt = select(FollowUp).where(FollowUp.client_id == client_id)
    if status:
        stmt = stmt.where(FollowUp.status == status.value)
    return list(db.execute(stmt.order_by(FollowUp.scheduled_date)).scalars())


def _close_follow_up(db: Session, follow_up: FollowUp, status: FollowUpStatus) -> FollowUp:
    if follow_up.status != FollowUpStatus.PENDING.value:
        raise ValueError(
            f"Follow-up {follow_up.id} is {follow_up.status}; only pending follow-ups can change"
        )
    follow_up.status = status.value
    if status == FollowUpStatus.COMPLETED:
        follow_up.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(follow_up)
    return follow_up


def complete_follow_up(db: Session, follow_up: FollowUp) -> FollowUp:
    """Mark a follow-up consultation as held."""
    return _close_follow_up(db, follow_up, FollowUpStatus.COMPLETED)


def cancel_follow_up(db: Session, follow_up: FollowUp) -> FollowUp:
    return _close_follow_up(db, follow_up, FollowUpStatus.CANCELLED)
