"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (so two sessions can race on constraints)
- Client / workflow factories
- A fake content producer
- HTTPX AsyncClient with the internal secret header
"""
import os
import tempfile
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Generator

import anyio
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

_DB_DIR = tempfile.mkdtemp(prefix="coachflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/app.db"
os.environ["INTERNAL_SECRET"] = "test-secret"
os.environ["CONTENT_API_KEY"] = ""
os.environ["ENV"] = "dev"

from coachflow.core.deps import get_db, get_dispatcher  # noqa: E402
from coachflow.db.base import Base  # noqa: E402
from coachflow.db.enums import ClientStatus, ServiceType  # noqa: E402
from coachflow.db.models import Client, ClientWorkflowState  # noqa: E402
from coachflow.main import app  # noqa: E402
from coachflow.services.content_producer import (  # noqa: E402
    ContentProducer,
    ContentPrompt,
    GeneratedContent,
)
from coachflow.services.stage_dispatcher import StageDispatcher  # noqa: E402
from coachflow.services.workflow_state_service import WorkflowStateStore  # noqa: E402

INTERNAL_HEADERS = {"X-Internal-Secret": "test-secret"}

# Fixed reference time; tests pass `now` explicitly
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures (file per test)
# =============================================================================

@pytest.fixture(scope="function")
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture
def make_client(db: Session) -> Callable[..., Client]:
    """Create a client; active by default."""

    def _make(
        service_type: ServiceType = ServiceType.HUNDRED_DAYS,
        program_started_at: datetime | None = None,
        status: ClientStatus = ClientStatus.ACTIVE,
        name: str = "Test Client",
    ) -> Client:
        client = Client(
            id=uuid.uuid4(),
            name=name,
            email=f"client-{uuid.uuid4().hex[:8]}@test.com",
            service_type=service_type.value,
            status=status.value,
            program_started_at=program_started_at,
        )
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    return _make


@pytest.fixture
def state_store() -> WorkflowStateStore:
    return WorkflowStateStore()


@pytest.fixture
def start_client(db: Session, make_client, state_store) -> Callable[..., ClientWorkflowState]:
    """Create a client and start its program at `now` (defaults to NOW)."""

    def _start(
        service_type: ServiceType = ServiceType.HUNDRED_DAYS,
        now: datetime = NOW,
    ) -> ClientWorkflowState:
        client = make_client(service_type=service_type)
        return state_store.start_program(db, client, now=now)

    return _start


class FakeContentProducer(ContentProducer):
    """Records prompts; returns a canned payload, raises, or stalls."""

    def __init__(self, payload: dict | None = None, error: Exception | None = None, delay: float = 0):
        self.payload = payload or {"summary": "Eat more greens", "items": ["spinach", "kale"]}
        self.error = error
        self.delay = delay
        self.prompts: list[ContentPrompt] = []

    async def generate(self, prompt: ContentPrompt) -> GeneratedContent:
        self.prompts.append(prompt)
        if self.delay:
            await anyio.sleep(self.delay)
        if self.error:
            raise self.error
        return GeneratedContent(kind=prompt.kind, payload=self.payload, model="fake-model")


@pytest.fixture
def fake_producer() -> FakeContentProducer:
    return FakeContentProducer()


@pytest.fixture
def dispatcher(state_store) -> StageDispatcher:
    return StageDispatcher(state_store)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, dispatcher: StageDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient with the internal secret header and the test database."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=INTERNAL_HEADERS,
    ) as c:
        yield c

    app.dependency_overrides.clear()
