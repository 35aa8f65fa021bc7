"""
Streamify API - Test Infrastructure (conftest.py)
=================================================
Provides:
  - Test environment variables (set before the app is imported)
  - mongomock database, fresh for every test
  - In-memory fakes for the Stream and OpenAI clients
  - FastAPI TestClient and user/auth helpers
"""

import os
import sys
import itertools

import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# ============================================================================
# TEST MODE: settings are read once, so they must be in place before import
# ============================================================================
os.environ.update({
    "ENVIRONMENT": "development",
    "JWT_SECRET_KEY": "test-secret-key",
    "BCRYPT_ROUNDS": "4",
    "MONGODB_DB": "streamify_test",
    "STREAM_API_KEY": "",
    "STREAM_API_SECRET": "",
    "CLOUDINARY_CLOUD_NAME": "",
    "CLOUDINARY_API_KEY": "",
    "CLOUDINARY_API_SECRET": "",
    "OPENAI_API_KEY": "",
    "FRONTEND_URL": "http://localhost:5173",
    "DISABLE_RATE_LIMIT": "false",
})

import mongomock
from starlette.testclient import TestClient

from app.main import app as fastapi_app
from app.core.auth import create_access_token
from app.core.rate_limit import limiter
from app.db import mongodb
from app.services import stream_client, storage_client, openai_client
from app.services.openai_client import AnalysisNotConfiguredError


# ============================================================================
# Fakes for external services
# ============================================================================

class FakeStream:
    """Stands in for StreamChatService; records every call."""

    def __init__(self, configured=True):
        self.configured = configured
        self.upserted = []
        self.sent = []
        self.fail_for = set()
        self.channel_messages = {}
        self.partners = {}
        self.partners_error = None
        self.query_error = None
        self._ids = itertools.count(1)

    def upsert_user(self, user):
        self.upserted.append(str(user["_id"]))

    def create_token(self, user_id):
        return f"stream-token-{user_id}"

    def send_direct_message(self, sender_id, recipient_id, text, attachments=None):
        if str(recipient_id) in self.fail_for:
            raise RuntimeError("channel create failed")
        message_id = f"stream-msg-{next(self._ids)}"
        self.sent.append({
            "id": message_id,
            "sender": str(sender_id),
            "recipient": str(recipient_id),
            "text": text,
            "attachments": attachments or [],
        })
        return message_id

    def fetch_direct_messages(self, user_a, user_b, limit=200):
        if self.query_error:
            raise self.query_error
        key = "-".join(sorted([str(user_a), str(user_b)]))
        return self.channel_messages.get(key, [])[:limit]

    def direct_chat_partners(self, user_id):
        if self.partners_error:
            raise self.partners_error
        return self.partners.get(str(user_id), {})

    def verify_webhook(self, body, signature):
        return signature == "valid-signature"


class FakeAnalysisClient:
    """Stands in for ChatAnalysisClient."""

    def __init__(self, result="The child seems to be doing well.", error=None):
        self.result = result
        self.error = error
        self.transcripts = []

    def analyze_conversation(self, transcript):
        if self.error:
            raise self.error
        self.transcripts.append(transcript)
        return self.result


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def mongo_db():
    """Fresh in-memory MongoDB for every test."""
    mongodb._client = mongomock.MongoClient()
    mongodb._db = None
    mongodb.init_mongo_indexes()
    yield mongodb.get_mongo_db()
    mongodb._client = None
    mongodb._db = None


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture(autouse=True)
def fake_stream():
    fake = FakeStream()
    stream_client._stream_client = fake
    yield fake
    stream_client._stream_client = None


@pytest.fixture(autouse=True)
def storage():
    storage_client._storage_client = None
    yield
    storage_client._storage_client = None


@pytest.fixture
def fake_ai():
    fake = FakeAnalysisClient()
    openai_client._analysis_client = fake
    yield fake
    openai_client._analysis_client = None


@pytest.fixture
def unconfigured_ai():
    fake = FakeAnalysisClient(error=AnalysisNotConfiguredError("OpenAI API key is missing"))
    openai_client._analysis_client = fake
    yield fake
    openai_client._analysis_client = None


@pytest.fixture
def client():
    """FastAPI TestClient (startup hooks are not run; indexes come from mongo_db)."""
    return TestClient(fastapi_app, raise_server_exceptions=False)


# ============================================================================
# Helpers
# ============================================================================

def auth_headers(user: dict) -> dict:
    token = create_access_token({"userId": user["_id"]})
    return {"Authorization": f"Bearer {token}"}


_emails = itertools.count(1)


@pytest.fixture
def make_user(client):
    """
    Sign a user up through the API.
    Returns the user JSON with an extra "headers" key for authenticated calls.
    """

    def _make(role="student", full_name="Test User", email=None, password="secret123"):
        email = email or f"{role}{next(_emails)}@example.com"
        resp = client.post("/api/auth/signup", json={
            "email": email, "password": password, "fullName": full_name, "role": role
        })
        assert resp.status_code == 201, resp.text
        client.cookies.clear()
        user = resp.json()["user"]
        user["headers"] = auth_headers(user)
        user["password"] = password
        return user

    return _make


@pytest.fixture
def linked_family(client, make_user):
    """A parent with one linked student child."""
    parent = make_user("parent", "Pat Parent")
    child = make_user("student", "Casey Child")
    resp = client.post("/api/users/link-child", json={"childEmail": child["email"]}, headers=parent["headers"])
    assert resp.status_code == 200, resp.text
    return parent, child


@pytest.fixture
def faculty_room(client, make_user):
    """A faculty member with a room joined by two students."""
    faculty = make_user("faculty", "Frank Faculty")
    resp = client.post("/api/rooms/create", json={"roomName": "Math 101"}, headers=faculty["headers"])
    assert resp.status_code == 201, resp.text
    room = resp.json()["room"]
    students = []
    for name in ("Sam Student", "Alex Student"):
        student = make_user("student", name)
        joined = client.post("/api/rooms/join", json={"inviteCode": room["inviteCode"]}, headers=student["headers"])
        assert joined.status_code == 200, joined.text
        students.append(student)
    return faculty, room, students
