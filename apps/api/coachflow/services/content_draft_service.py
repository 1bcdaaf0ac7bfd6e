"""Content drafts produced for dietitian review."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from coachflow.db.enums import ContentKind
from coachflow.db.models import ContentDraft
from coachflow.services.content_producer import GeneratedContent


def save_draft(db: Session, client_id: UUID, generated: GeneratedContent) -> ContentDraft:
    draft = ContentDraft(
        client_id=client_id,
        kind=generated.kind.value,
        payload=generated.payload,
        model=generated.model,
        status="draft",
    )
    db.add(draft)
    db.commit()
    db.refresh(draft)
    return draft


def get_latest_draft(db: Session, client_id: UUID, kind: ContentKind) -> ContentDraft | None:
    return db.execute(
        select(ContentDraft)
        .where(ContentDraft.client_id == client_id, ContentDraft.kind == kind.value)
        .order_by(ContentDraft.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()
