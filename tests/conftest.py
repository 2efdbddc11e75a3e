import mongomock
import pytest

import database
from auth import create_token, hash_password
from database import create_document
from presence import hub

PASSWORD_HASH = hash_password("password123")


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture(autouse=True)
def clean_presence():
    hub._channels.clear()
    yield
    hub._channels.clear()


@pytest.fixture
def make_user():
    def _make(username, **extra):
        doc = {
            "first_name": username.capitalize(),
            "last_name": "Tester",
            "username": username,
            "email": f"{username}@example.com",
            "password_hash": PASSWORD_HASH,
            "headline": "",
            "skills": [],
            "connections": [],
        }
        doc.update(extra)
        return create_document("user", doc)
    return _make


@pytest.fixture
def headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_token(user_id)}"}
    return _headers


class FakeChannel:
    """Stands in for a WebSocket: records what was sent to it."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name=None):
        return [m for m in self.sent if name is None or m["event"] == name]


@pytest.fixture
def channel():
    return FakeChannel


@pytest.fixture
def anyio_backend():
    return "asyncio"
