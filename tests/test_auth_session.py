import asyncio
import json

import httpx
import pytest

from diary_sync.core.errors import ErrorKind
from diary_sync.services.auth_session import AuthSession, can_submit
from diary_sync.services.session_store import SessionStore
from conftest import PROFILE_ID, RecordingHandler, envelope

LOGIN_OK = envelope({
    "authorization": "fresh-token",
    "user": {"_id": PROFILE_ID, "fullName": "Pat Example", "email": "patient@example.com"},
})


def run_auth(make_api, store, handler, call):
    async def scenario():
        async with make_api(handler) as api:
            auth = AuthSession(api, store)
            result = await call(auth)
            return auth, result
    return asyncio.run(scenario())


@pytest.mark.parametrize("code,pin", [("Ab12", "1234"), ("ZZZZ", "0000"), ("a1b2", "9876"), ("1234", "4321")])
def test_valid_code_login_sends_exactly_one_request(make_api, store, code, pin):
    handler = RecordingHandler(httpx.Response(200, json=LOGIN_OK))
    auth, result = run_auth(make_api, store, handler, lambda a: a.login_with_code(code, pin))

    assert result.ok
    assert len(handler.requests) == 1
    request = handler.requests[0]
    assert request.url.path == "/v1/authenticate-by-signup-code-or-email"
    assert "authorization-token" not in request.headers
    # case is preserved
    assert json.loads(request.content) == {"password": pin, "signUpCode": code}


@pytest.mark.parametrize("code,pin", [
    ("", "1234"),
    ("Ab1", "1234"),
    ("Ab123", "1234"),
    ("Ab-1", "1234"),
    ("Ab 1", "1234"),
    ("Ab12", ""),
    ("Ab12", "123"),
    ("Ab12", "12345"),
    ("Ab12", "12a4"),
])
def test_malformed_code_login_sends_nothing(make_api, store, code, pin):
    handler = RecordingHandler()
    auth, result = run_auth(make_api, store, handler, lambda a: a.login_with_code(code, pin))

    assert result.error.kind == ErrorKind.VALIDATION
    assert handler.requests == []
    assert auth.state.error_message == result.message
    assert store.is_logged_in() is False


@pytest.mark.parametrize("email,pin", [
    ("not-an-email", "1234"),
    ("a@b", "1234"),
    ("", "1234"),
    ("patient@example.com", "12"),
    ("patient@example.com", "abcd"),
])
def test_malformed_email_login_sends_nothing(make_api, store, email, pin):
    handler = RecordingHandler()
    _, result = run_auth(make_api, store, handler, lambda a: a.login_with_email(email, pin))

    assert result.error.kind == ErrorKind.VALIDATION
    assert handler.requests == []


def test_email_login_writes_session(make_api, store):
    handler = RecordingHandler(httpx.Response(200, json=LOGIN_OK))
    auth, result = run_auth(make_api, store, handler, lambda a: a.login_with_email("patient@example.com", "1234"))

    assert result.ok
    assert json.loads(handler.requests[0].content) == {"email": "patient@example.com", "password": "1234"}
    assert auth.state.is_authenticated is True
    assert auth.state.user.fullName == "Pat Example"
    assert store.get_token() == "fresh-token"
    assert store.get_profile_id() == PROFILE_ID
    assert store.auth_headers() == {"authorization-token": "fresh-token"}


@pytest.mark.parametrize("response,kind,message", [
    (httpx.Response(401), ErrorKind.UNAUTHORIZED, "Invalid signup code or password"),
    (httpx.Response(404), ErrorKind.NOT_FOUND, "Signup code not found"),
    (httpx.Response(503), ErrorKind.UNAVAILABLE, "Service unavailable. Please try again later"),
    (httpx.Response(200, json=envelope(success=False, message="Account disabled")),
     ErrorKind.API_LEVEL_ERROR, "Account disabled"),
    (httpx.Response(200, json=envelope(None)), ErrorKind.API_LEVEL_ERROR, "Login failed"),
    (httpx.Response(200, json=envelope({"authorization": "t"})), ErrorKind.PARSE_ERROR, None),
    (httpx.ConnectError("offline"), ErrorKind.CONNECTION_ERROR, None),
])
def test_failed_login_leaves_session_unauthenticated(make_api, store, response, kind, message):
    handler = RecordingHandler(response)
    auth, result = run_auth(make_api, store, handler, lambda a: a.login_with_code("Ab12", "1234"))

    assert result.error.kind == kind
    if message is not None:
        assert result.message == message
    assert auth.state.is_authenticated is False
    assert auth.state.is_loading is False
    assert store.is_logged_in() is False


def test_email_login_uses_its_own_401_message(make_api, store):
    handler = RecordingHandler(httpx.Response(401))
    _, result = run_auth(make_api, store, handler, lambda a: a.login_with_email("patient@example.com", "1234"))
    assert result.message == "Invalid credentials"


def test_logout_is_idempotent(make_api, logged_in_store):
    handler = RecordingHandler()

    async def scenario():
        async with make_api(handler) as api:
            auth = AuthSession(api, logged_in_store)
            assert auth.state.is_authenticated is True
            auth.logout()
            auth.logout()
            return auth

    auth = asyncio.run(scenario())
    assert auth.state.is_authenticated is False
    assert auth.is_logged_in() is False
    assert logged_in_store.get_token() is None
    assert handler.requests == []


def test_clear_error_is_one_shot(make_api, store):
    handler = RecordingHandler()
    auth, _ = run_auth(make_api, store, handler, lambda a: a.login_with_code("x", "1"))
    assert auth.state.error_message is not None
    auth.clear_error()
    assert auth.state.error_message is None


def test_can_submit_requires_both_fields_complete():
    assert can_submit("Ab12", "1234") is True
    assert can_submit("Ab1", "1234") is False
    assert can_submit("Ab12", "123") is False


def test_login_against_mock_backend(backend_api, store):
    async def scenario():
        async with backend_api() as api:
            auth = AuthSession(api, store)
            wrong = await auth.login_with_code("Ab12", "9999")
            right = await auth.login_with_code("Ab12", "1234")
            lowercase = await AuthSession(api, store).login_with_code("ab12", "1234")
            return wrong, right, lowercase

    wrong, right, lowercase = asyncio.run(scenario())
    assert wrong.error.kind == ErrorKind.UNAUTHORIZED
    assert right.ok
    assert right.value.user.fullName == "Pat Example"
    assert lowercase.error.kind == ErrorKind.UNAUTHORIZED
    assert store.get_profile_id() == "64f1c2a9e4b0a1b2c3d4e5f6"


class BrokenStorage:
    def read(self):
        return {}

    def replace(self, mapping):
        raise OSError("disk full")


def test_session_write_failure_is_a_failed_login(make_api):
    store = SessionStore(BrokenStorage())
    handler = RecordingHandler(httpx.Response(200, json=LOGIN_OK))
    auth, result = run_auth(make_api, store, handler, lambda a: a.login_with_code("Ab12", "1234"))

    assert result.error.kind == ErrorKind.STORAGE_ERROR
    assert auth.state.is_loading is False
    assert auth.state.is_authenticated is False
    assert auth.state.error_message == result.message
