"""
Shared fixtures: a fresh SQLite file per test and in-memory fakes for the
text-completion and email capabilities.
"""
import os

# Must be set before src.api.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("USER_TIMEZONE", "America/Toronto")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from src.api import config
from src.api.auth import create_session_token
from src.api.classifier import Intent
from src.api.database import build_engine, get_db, init_db
from src.api.errors import NotificationError
from src.api.main import app, get_classifier, get_mailer
from src.api.schemas import ExtractedNote
from src.api.store import NoteStore, TokenStore


class FakeClassifier:
    """Scriptable stand-in for OpenAIClassifier."""

    def __init__(self):
        self.intent = Intent.NOTE
        self.answer = "From your notes: call mom on Sunday."
        self.extractor = None
        self.error = None
        self.calls = []

    def _check(self, name, *args):
        self.calls.append((name,) + args)
        if self.error is not None:
            raise self.error

    def classify_intent(self, text):
        self._check("classify_intent", text)
        return self.intent

    def answer_from_context(self, context, question):
        self._check("answer_from_context", context, question)
        return self.answer

    def extract_note(self, text, reference, timezone_name):
        self._check("extract_note", text, reference, timezone_name)
        if self.extractor is not None:
            return self.extractor(text, reference)
        return ExtractedNote(title="Note", content=text, reminder=None)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_login_link(self, to_email, link, ttl_minutes):
        if self.fail:
            raise NotificationError()
        self.sent.append((to_email, link, ttl_minutes))


class FrozenClock:
    def __init__(self, now):
        self.current = now

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def note_store(db_session):
    return NoteStore(db_session)


@pytest.fixture
def token_store(db_session):
    return TokenStore(db_session)


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def fake_mailer():
    return FakeMailer()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 2, 18, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def client(session_factory, fake_classifier, fake_mailer):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_classifier] = lambda: fake_classifier
    app.dependency_overrides[get_mailer] = lambda: fake_mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def logged_in(client, note_store):
    """Client carrying a session cookie for an existing user."""
    user = note_store.upsert_user("a@b.com")
    client.cookies.set(config.SESSION_COOKIE_NAME, create_session_token(user.email))
    return user
