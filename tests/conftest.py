import os
import tempfile
import uuid
from datetime import datetime, timedelta

import pytest

# Point the app at a throwaway database before anything imports it.
_tmpdir = tempfile.mkdtemp(prefix="flashquest-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient  # noqa: E402

from flashquest.main import app  # noqa: E402
from flashquest.db.session import SessionLocal  # noqa: E402
from flashquest.auth.models import User, Subject, UserSubject  # noqa: E402
from flashquest.core.security import hash_password  # noqa: E402
from flashquest.flashcards.models import Flashcard  # noqa: E402

PASSWORD = "password123"
CHEMISTRY_ID = 2


class FakeClock:
    """Stands in for datetime.now; move it with advance()."""

    def __init__(self, now=None):
        self.now = now or datetime(2026, 3, 2, 9, 30)

    def __call__(self):
        return self.now

    def advance(self, days=0, hours=0):
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture(scope="session", autouse=True)
def chemistry_subject():
    """A database-backed subject with three cards in one topic."""
    db = SessionLocal()
    try:
        db.add(Subject(id=CHEMISTRY_ID, code="CH", name="Chemistry"))
        for i in range(3):
            db.add(Flashcard(
                subject_id=CHEMISTRY_ID,
                topic="organic",
                card_index=i,
                question_text=f"Question {i}",
                answer_path=f"./organic/{i}-answer.jpg",
            ))
        db.commit()
    finally:
        db.close()
    return CHEMISTRY_ID


def make_user(is_admin=False, subject_ids=()):
    db = SessionLocal()
    try:
        username = f"user-{uuid.uuid4().hex[:10]}"
        user = User(
            name=username.title(),
            username=username,
            password_hash=hash_password(PASSWORD),
            is_admin=is_admin,
        )
        db.add(user)
        db.flush()
        for subject_id in subject_ids:
            db.add(UserSubject(user_id=user.id, subject_id=subject_id))
        db.commit()
        return user.id, username
    finally:
        db.close()


def login(client, username, password=PASSWORD):
    resp = client.post("/api/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def student(client):
    _, username = make_user()
    body = login(client, username)
    return {"username": username, "body": body, "headers": {"Authorization": f"Bearer {body['token']}"}}
