"""Error kinds and the tagged result type shared by the clients and sessions."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    SERVER_ERROR = "server_error"
    UNAVAILABLE = "unavailable"
    REQUEST_FAILED = "request_failed"
    CONNECTION_ERROR = "connection_error"
    API_LEVEL_ERROR = "api_level_error"
    PARSE_ERROR = "parse_error"
    STORAGE_ERROR = "storage_error"


class ApiError(Exception):
    kind = ErrorKind.REQUEST_FAILED
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code!r})"


class ValidationError(ApiError):
    """Local input check failed; no request was sent."""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input"


class Unauthenticated(ApiError):
    """No usable session (missing token or profile id)."""
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "User not authenticated. Please login again."


class Unauthorized(ApiError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized. Please login again"


class Forbidden(ApiError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Access forbidden"


class NotFound(ApiError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class InvalidInput(ApiError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid data. Please check your input"


class ServerError(ApiError):
    kind = ErrorKind.SERVER_ERROR
    default_message = "Server error. Please try again later"


class Unavailable(ApiError):
    kind = ErrorKind.UNAVAILABLE
    default_message = "Service unavailable. Please try again later"


class RequestFailed(ApiError):
    kind = ErrorKind.REQUEST_FAILED

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        if message is None and status_code is not None:
            message = f"Request failed with code: {status_code}"
        super().__init__(message, status_code)


class ApiConnectionError(ApiError):
    """Transport-level failure: no connectivity, DNS, TLS or timeout."""
    kind = ErrorKind.CONNECTION_ERROR
    default_message = "Connection error. Please check your internet connection"


class ApiLevelError(ApiError):
    """2xx response whose envelope reported success=false."""
    kind = ErrorKind.API_LEVEL_ERROR


class ParseError(ApiError):
    kind = ErrorKind.PARSE_ERROR
    default_message = "Unexpected response from server"


class StorageError(ApiError):
    """The session could not be written to local storage."""
    kind = ErrorKind.STORAGE_ERROR
    default_message = "Could not save your session. Please try again"


_STATUS_ERRORS = {
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    422: InvalidInput,
    500: ServerError,
    502: Unavailable,
    503: Unavailable,
}


def error_for_status(status_code: int, messages: Optional[Dict[int, str]] = None) -> ApiError:
    """Map a non-2xx HTTP status to its error kind.

    ``messages`` lets a caller replace the default user-facing text for
    specific codes without changing the kind.
    """
    message = (messages or {}).get(status_code)
    error_cls = _STATUS_ERRORS.get(status_code, RequestFailed)
    return error_cls(message, status_code=status_code)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged outcome of a client or session operation."""

    value: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ApiError) -> "Result[T]":
        return cls(error=error)
