"""
Pytest configuration and fixtures.

Every test gets its own SQLite file under tmp_path, so separate sessions
(and the TestClient's worker threads) see each other's commits.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  registers every table on Base.metadata
from app.config import Settings
from app.database import Base, get_db, make_engine
from app.main import app as fastapi_app
from app.schemas.content import EntityCreate
from app.services import content_store
from app.services.clock import FixedClock
from app.services.publishers import PublishReceipt, get_publishers

# a Monday evening, so the first free default slot is tomorrow 09:00
T0 = datetime(2026, 3, 2, 20, 0)


# ================================
# Database Fixtures
# ================================

@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'pipeline.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def settings():
    return Settings()


# ================================
# Entity Factories
# ================================

class Factory:
    """Builds a transcript -> insight -> post chain with sensible defaults."""

    def __init__(self, db, clock):
        self.db = db
        self.clock = clock

    def transcript(self, **kw):
        kw.setdefault("title", "Episode 12")
        kw.setdefault("raw_content", "um so today we talk about shipping small")
        return content_store.create(self.db, EntityCreate(content_type="transcript", **kw), self.clock)

    def insight(self, transcript=None, **kw):
        transcript = transcript or self.transcript()
        kw.setdefault("title", "Ship small")
        kw.setdefault("processed_content", "Small releases reduce risk.")
        return content_store.create(
            self.db, EntityCreate(content_type="insight", parent_id=transcript.id, **kw), self.clock
        )

    def post(self, insight=None, platform="linkedin", **kw):
        insight = insight or self.insight()
        kw.setdefault("title", "Why we ship small")
        kw.setdefault("processed_content", "Small releases reduce risk. Here is how we do it.")
        return content_store.create(
            self.db,
            EntityCreate(content_type="post", parent_id=insight.id, platform=platform, **kw),
            self.clock,
        )


@pytest.fixture
def factory(db, clock):
    return Factory(db, clock)


# ================================
# Platform Publishers
# ================================

class FakePublisher:
    """Records every publish call; raises when told to."""

    def __init__(self, fail: bool = False, error: str = "platform unavailable"):
        self.fail = fail
        self.error = error
        self.calls = []

    def publish(self, post):
        self.calls.append(post.id)
        if self.fail:
            raise RuntimeError(self.error)
        return PublishReceipt(external_post_id=f"ext-{post.id.hex[:8]}-{len(self.calls)}")


@pytest.fixture
def linkedin():
    return FakePublisher()


@pytest.fixture
def publishers(linkedin):
    return {"linkedin": linkedin}


# ================================
# API Client
# ================================

@pytest.fixture
def client(session_factory, publishers):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_publishers] = lambda: publishers
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
