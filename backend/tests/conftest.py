import os

# Must be set before any application module reads config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "0"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["COOKIE_SECURE"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from auth import create_token, hash_password
from database import Base, get_session_factory
from services.errors import UploadFailed
from services.event_router import EventRouter, get_event_router
from services.store import ChatStore
from services.upload_service import get_uploader

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


class RecordingConnection:
    """Stands in for a live socket; keeps every frame it is sent."""

    def __init__(self, user_id):
        self.user_id = user_id
        self.frames = []

    async def send(self, frame):
        self.frames.append(frame)
        return True

    def events(self, name=None):
        return [f for f in self.frames if name is None or f["event"] == name]


class FakeUploader:
    def __init__(self):
        self.calls = []
        self.fail = False

    def upload_image(self, raw_payload, folder="messages"):
        self.calls.append((raw_payload, folder))
        if self.fail:
            raise UploadFailed()
        return {"url": f"https://cdn.test/{folder}/{len(self.calls)}.png"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return ChatStore(db)


@pytest.fixture
def router():
    return EventRouter()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def make_user(store):
    def _make(name):
        return store.create_user(name.title(), f"{name}@example.com", PASSWORD_HASH)
    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
def befriend(store):
    def _befriend(a, b):
        store.push_to_user_set(a.id, "friends", b.id)
        store.push_to_user_set(b.id, "friends", a.id)
    return _befriend


@pytest.fixture
def online(router):
    """Register a RecordingConnection for a user and return it."""
    async def _online(user):
        connection = RecordingConnection(user.id)
        await router.connect(user.id, connection)
        connection.frames.clear()
        return connection
    return _online


def token_for(user):
    return create_token({"user_id": user.id})


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def client(session_factory, router, uploader):
    from main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_event_router] = lambda: router
    app.dependency_overrides[get_uploader] = lambda: uploader
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
