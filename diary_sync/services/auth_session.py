import logging
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from diary_sync.core.config import LOGIN_PATH
from diary_sync.core.errors import ApiError, ApiLevelError, Result, StorageError, ValidationError
from diary_sync.models.auth import LoginData, LoginRequest, UserProfile
from diary_sync.services.api_client import ApiClient
from diary_sync.services.decoder import decode_login
from diary_sync.services.session_store import SessionStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9+._%\-]{1,256}@[a-zA-Z0-9][a-zA-Z0-9\-]{0,64}(\.[a-zA-Z0-9][a-zA-Z0-9\-]{0,25})+"
)
SIGNUP_CODE_PATTERN = re.compile(r"[A-Za-z0-9]{4}")
PIN_PATTERN = re.compile(r"[0-9]{4}")

CREDENTIAL_LENGTH = 4

EMAIL_LOGIN_MESSAGES = {
    401: "Invalid credentials",
    404: "User not found",
    500: "Server error. Please try again later",
}
CODE_LOGIN_MESSAGES = {
    401: "Invalid signup code or password",
    404: "Signup code not found",
    500: "Server error. Please try again later",
}


class AuthState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    is_authenticated: bool = False
    error_message: Optional[str] = None
    user: Optional[UserProfile] = None


def can_submit(code: str, pin: str) -> bool:
    """Both fields must reach the full length before a login may be attempted."""
    return len(code) >= CREDENTIAL_LENGTH and len(pin) >= CREDENTIAL_LENGTH


def validate_email_login(email: str, pin: str):
    if not email or not email.strip() or not pin:
        raise ValidationError("Please enter both email and PIN")
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Please enter a valid email address")
    if not PIN_PATTERN.fullmatch(pin):
        raise ValidationError("PIN must be 4 digits")


def validate_code_login(code: str, pin: str):
    if not code or not pin:
        raise ValidationError("Please enter both signup code and PIN")
    if len(code) != CREDENTIAL_LENGTH:
        raise ValidationError("Signup code must be 4 characters")
    if not SIGNUP_CODE_PATTERN.fullmatch(code):
        raise ValidationError("Signup code must contain only letters and numbers")
    if not PIN_PATTERN.fullmatch(pin):
        raise ValidationError("PIN must be 4 digits")


class AuthSession:
    """Login by email or signup code; a successful login is written to the store."""

    def __init__(self, api: ApiClient, store: SessionStore):
        self.api = api
        self.store = store
        self.state = AuthState(
            is_authenticated=store.is_logged_in(),
            user=store.get_user(),
        )

    def _set(self, **changes):
        self.state = self.state.model_copy(update=changes)

    async def _login(self, request: LoginRequest, status_messages: dict) -> Result[LoginData]:
        self._set(is_loading=True, error_message=None)
        try:
            data = await self.api.request(
                "POST",
                LOGIN_PATH,
                json_body=request.body(),
                fallback_message="Login failed",
                status_messages=status_messages,
            )
            if data is None:
                raise ApiLevelError("Login failed")
            login = decode_login(data)
            try:
                self.store.save(login.authorization, login.user)
            except OSError as e:
                raise StorageError() from e
        except ApiError as e:
            logger.error(f"❌ Login failed: {e.message}")
            self._set(is_loading=False, is_authenticated=False, error_message=e.message)
            return Result.failure(e)

        self._set(is_loading=False, is_authenticated=True, user=login.user)
        logger.info(f"✅ Logged in as profile {login.user.id}")
        return Result.success(login)

    async def login_with_email(self, email: str, pin: str) -> Result[LoginData]:
        try:
            validate_email_login(email, pin)
        except ValidationError as e:
            self._set(error_message=e.message)
            return Result.failure(e)
        return await self._login(LoginRequest.for_email(email, pin), EMAIL_LOGIN_MESSAGES)

    async def login_with_code(self, code: str, pin: str) -> Result[LoginData]:
        # signup codes are case sensitive and sent as typed
        try:
            validate_code_login(code, pin)
        except ValidationError as e:
            self._set(error_message=e.message)
            return Result.failure(e)
        return await self._login(LoginRequest.for_code(code, pin), CODE_LOGIN_MESSAGES)

    def logout(self):
        self.store.clear()
        self.state = AuthState()

    def is_logged_in(self) -> bool:
        return self.store.is_logged_in()

    def clear_error(self):
        self._set(error_message=None)
