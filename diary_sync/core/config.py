"""Configuration for diary_sync.

Every value can be overridden through an environment variable.
"""
import os
from pathlib import Path

APP_TITLE = "Diary Mock Backend"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "In-memory stand-in for the diary notes API"

API_BASE_URL_QA = "https://api-staging.restoreme.care"
API_BASE_URL_PROD = "https://api.restoreme.care"
API_BASE_URL = os.getenv("DIARY_API_BASE_URL", API_BASE_URL_QA)

REQUEST_TIMEOUT_SECONDS = float(os.getenv("DIARY_REQUEST_TIMEOUT", "30"))

DEFAULT_PAGE_LIMIT = int(os.getenv("DIARY_PAGE_LIMIT", "20"))

SESSION_FILE_PATH = Path(
    os.getenv("DIARY_SESSION_FILE", str(Path.home() / ".diary_sync" / "session.json"))
)

# Off by default: malformed list payloads become an empty page
STRICT_PAYLOAD_PARSING = os.getenv("DIARY_STRICT_PARSING", "").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("DIARY_LOG_LEVEL", "INFO").upper()

AUTH_TOKEN_HEADER = "authorization-token"

LOGIN_PATH = "/v1/authenticate-by-signup-code-or-email"
NOTES_PATH_TEMPLATE = "/v1/medical-profiles/{profile_id}/notes"
