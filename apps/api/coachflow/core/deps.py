"""FastAPI dependencies for database access and collaborators."""

from typing import Generator

from sqlalchemy.orm import Session

from coachflow.db.session import SessionLocal
from coachflow.services.stage_dispatcher import StageDispatcher, get_stage_dispatcher


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_dispatcher() -> StageDispatcher:
    return get_stage_dispatcher()
