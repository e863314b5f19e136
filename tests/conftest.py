"""Shared pytest fixtures for diary_sync tests."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from dev_tools.mock_backend import create_app
from diary_sync.core.errors import NotFound, Result
from diary_sync.models.auth import UserProfile
from diary_sync.models.note import Note, NotesPage, PageCursor
from diary_sync.services.api_client import ApiClient
from diary_sync.services.session_store import MemoryStorage, SessionStore

PROFILE_ID = "64f1c2a9e4b0a1b2c3d4e5f6"
TOKEN = "token-123"

# Wednesday noon, UTC
NOW = datetime(2025, 8, 20, 12, 0, tzinfo=timezone.utc)


def millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def hours_ago(hours: float) -> int:
    return millis(NOW - timedelta(hours=hours))


def make_note(note_id: str, created_at: int, title: str = "") -> Note:
    return Note(id=note_id, title=title or f"note {note_id}", description="", createdAt=created_at)


def envelope(data=None, success=True, message=None) -> dict:
    body = {"success": success, "data": data}
    if message is not None:
        body["message"] = message
    return body


class RecordingHandler:
    """httpx.MockTransport handler replaying canned responses in order.

    An exception in the queue is raised instead of answering, which is how
    transport failures are simulated.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeNotesClient:
    """In-memory NotesClient double with call recording and injectable failures."""

    def __init__(self, notes=None, page_size=20):
        self.notes = list(notes or [])
        self.page_size = page_size
        self.calls = []
        self.fail_next = None

    def _failure(self):
        error, self.fail_next = self.fail_next, None
        return Result.failure(error) if error is not None else None

    async def list(self, limit=20, start=0):
        self.calls.append(("list", limit, start))
        failed = self._failure()
        if failed:
            return failed
        ordered = sorted(self.notes, key=lambda n: n.createdAt, reverse=True)
        page = ordered[start:start + min(limit, self.page_size)]
        cursor = PageCursor(limit=limit, start=start, total=len(ordered), size=len(page))
        return Result.success(NotesPage(notes=page, cursor=cursor))

    async def create(self, title, description, image_id=""):
        self.calls.append(("create", title, description, image_id))
        failed = self._failure()
        if failed:
            return failed
        note = Note(id=f"new-{len(self.notes)}", title=title, description=description,
                    imageId=image_id, createdAt=millis(NOW))
        self.notes.append(note)
        return Result.success(note)

    async def update(self, note_id, title, description, image_id=""):
        self.calls.append(("update", note_id, title, description, image_id))
        failed = self._failure()
        if failed:
            return failed
        return Result.success(None)

    async def get(self, note_id):
        self.calls.append(("get", note_id))
        failed = self._failure()
        if failed:
            return failed
        for note in self.notes:
            if note.id == note_id:
                return Result.success(note)
        return Result.failure(NotFound("Medical profile or note not found", status_code=404))

    async def delete(self, note_id):
        self.calls.append(("delete", note_id))
        failed = self._failure()
        if failed:
            return failed
        self.notes = [n for n in self.notes if n.id != note_id]
        return Result.success(None)


@pytest.fixture
def user():
    return UserProfile.model_validate({
        "_id": PROFILE_ID,
        "fullName": "Pat Example",
        "email": "patient@example.com",
        "roleName": "Patient",
    })


@pytest.fixture
def store():
    return SessionStore(MemoryStorage())


@pytest.fixture
def logged_in_store(store, user):
    store.save(TOKEN, user)
    return store


@pytest.fixture
def make_api():
    """Build an ApiClient whose requests are answered by ``handler``."""
    def _make(handler):
        return ApiClient(base_url="https://diary.test", transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def backend_app():
    return create_app()


@pytest.fixture
def backend_api(backend_app):
    """Build an ApiClient talking to the in-memory mock backend."""
    def _make():
        return ApiClient(base_url="http://mock-backend", transport=httpx.ASGITransport(app=backend_app))
    return _make
