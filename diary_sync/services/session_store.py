import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError as SchemaError

from diary_sync.core.config import AUTH_TOKEN_HEADER, SESSION_FILE_PATH
from diary_sync.models.auth import UserProfile

logger = logging.getLogger(__name__)

KEY_AUTHORIZATION = "authorization"
KEY_USER_DATA = "user_data"
KEY_IS_LOGGED_IN = "is_logged_in"
KEY_MEDICAL_PROFILE_ID = "medical_profile_id"


class MemoryStorage:
    """Key-value storage that lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def read(self) -> Dict[str, Any]:
        return dict(self._data)

    def replace(self, mapping: Dict[str, Any]):
        self._data = dict(mapping)


class JsonFileStorage:
    """Key-value storage persisted as one JSON object on disk.

    Writes go to a temp file in the same directory and are moved into place,
    so readers see either the previous session or the new one.
    """

    def __init__(self, path: Path = SESSION_FILE_PATH):
        self.path = Path(path)

    def read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def replace(self, mapping: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(mapping, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class SessionStore:
    """Owns the auth token, cached user profile and medical profile id.

    Absence is reported as None or an empty dict, never as an exception.
    """

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else MemoryStorage()

    def save(self, token: str, user: UserProfile):
        """Overwrite any previous session with a new one in a single write."""
        self.storage.replace({
            KEY_AUTHORIZATION: token,
            KEY_USER_DATA: user.model_dump_json(by_alias=True),
            # the login user id is the profile id used by every notes endpoint
            KEY_MEDICAL_PROFILE_ID: user.id,
            KEY_IS_LOGGED_IN: True,
        })
        logger.info(f"✅ Session saved for profile {user.id}")

    def _get_str(self, key: str) -> Optional[str]:
        value = self.storage.read().get(key)
        return value if isinstance(value, str) and value else None

    def get_token(self) -> Optional[str]:
        return self._get_str(KEY_AUTHORIZATION)

    def get_profile_id(self) -> Optional[str]:
        return self._get_str(KEY_MEDICAL_PROFILE_ID)

    def get_user(self) -> Optional[UserProfile]:
        raw = self._get_str(KEY_USER_DATA)
        if raw is None:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except SchemaError:
            logger.warning("Cached user profile is unreadable")
            return None

    def is_logged_in(self) -> bool:
        return self.storage.read().get(KEY_IS_LOGGED_IN) is True and self.get_token() is not None

    def clear(self):
        self.storage.replace({})
        logger.info("Session cleared")

    def auth_headers(self) -> Dict[str, str]:
        """Headers for authenticated calls; empty means "do not send"."""
        token = self.get_token()
        return {AUTH_TOKEN_HEADER: token} if token else {}
