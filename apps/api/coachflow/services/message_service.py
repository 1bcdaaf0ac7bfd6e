"""Message sink - automated in-app messages to clients."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coachflow.db.models import SystemMessage

logger = logging.getLogger(__name__)


def send_system_message(
    db: Session,
    client_id: UUID,
    content: str,
    metadata: dict | None = None,
    dedupe_key: str | None = None,
) -> SystemMessage | None:
    """
    Insert and commit a system message for a client.

    With a dedupe_key, returns None (and sends nothing) when a message with
    that key already exists.
    """
    if dedupe_key and message_exists(db, dedupe_key):
        return None

    message = SystemMessage(
        client_id=client_id,
        sender_type="system",
        message_type="automated",
        content=content,
        is_read=False,
        metadata_=metadata or {},
        dedupe_key=dedupe_key,
    )
    db.add(message)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if dedupe_key:
            logger.info("Skipping duplicate message for dedupe_key=%s", dedupe_key)
            return None
        raise
    db.refresh(message)
    return message


def message_exists(db: Session, dedupe_key: str) -> bool:
    return (
        db.execute(
            select(SystemMessage.id).where(SystemMessage.dedupe_key == dedupe_key)
        ).first()
        is not None
    )


def list_messages(db: Session, client_id: UUID) -> list[SystemMessage]:
    return list(
        db.execute(
            select(SystemMessage)
            .where(SystemMessage.client_id == client_id)
            .order_by(SystemMessage.created_at)
        ).scalars()
    )
