"""Error types and classification for remote, cache, and authorization failures."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class ProductivityError(Exception):
    """Base class for errors raised by routinely collaborators."""


class RemoteServiceError(ProductivityError):
    """A remote fetch/create/update/delete call was rejected or could not be made."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(RemoteServiceError, KeyError):
    """The remote store has no record with the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class AuthorizationError(ProductivityError, PermissionError):
    """The current identity is not allowed to perform the operation."""


class CacheCorruptedError(ProductivityError, ValueError):
    """Local cache contents could not be parsed."""


class ErrorCategory(Enum):
    """Categories of failures the reconciliation layer can observe."""

    TRANSIENT_REMOTE = "transient_remote"
    NOT_FOUND = "not_found"
    MALFORMED_CACHE = "malformed_cache"
    PARTIAL_BATCH = "partial_batch"
    AUTHORIZATION = "authorization"
    NETWORK_ERROR = "network_error"
    LOCAL_STORAGE = "local_storage"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Remote errors
    ERR_REMOTE_UNAVAILABLE = "ERR_REMOTE_UNAVAILABLE"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_RECORD_NOT_FOUND = "ERR_RECORD_NOT_FOUND"

    # Identity errors
    ERR_NOT_AUTHORIZED = "ERR_NOT_AUTHORIZED"

    # Local storage errors
    ERR_CACHE_CORRUPTED = "ERR_CACHE_CORRUPTED"
    ERR_LOCAL_STORAGE = "ERR_LOCAL_STORAGE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    category: ErrorCategory
    message: str
    suggestion: str
    severity: ErrorSeverity


_ERROR_PATTERNS: dict[Literal["auth", "network", "storage"], dict[str, list[str] | set[str]]] = {
    "auth": {
        "phrases": [
            "not authorized",
            "unauthorized",
            "forbidden",
            "invalid token",
            "401",
            "403",
        ],
        "exception_types": {"AuthorizationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "timed out",
            "network",
            "502",
            "503",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout"},
    },
    "storage": {
        "phrases": [
            "no space left",
            "read-only file system",
            "quota exceeded",
        ],
        "exception_types": {"OSError", "IsADirectoryError"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["auth", "network", "storage"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_error(exception: BaseException) -> ErrorResponse:  # noqa: PLR0911
    """Classify a failure and return a structured response with a recovery suggestion.

    Typed errors from the collaborator layer are classified by type; anything
    else falls back to message and exception-name heuristics.

    Args:
        exception: The exception raised by a collaborator call

    Returns:
        ErrorResponse with code, category, message, suggestion, and severity
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, AuthorizationError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_AUTHORIZED,
            category=ErrorCategory.AUTHORIZATION,
            message="You are not allowed to change this item.",
            suggestion="Sign in again with the account that owns it.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_RECORD_NOT_FOUND,
            category=ErrorCategory.NOT_FOUND,
            message="That item no longer exists on the server.",
            suggestion="Refresh to see the latest state.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, CacheCorruptedError):
        return ErrorResponse(
            code=ErrorCode.ERR_CACHE_CORRUPTED,
            category=ErrorCategory.MALFORMED_CACHE,
            message="Saved local history could not be read and was ignored.",
            suggestion="Local-only completions may need to be marked again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RemoteServiceError) and not _match_error_pattern(
        error_str=error_str, exception_type=exception_type, pattern_type="network"
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_REMOTE_UNAVAILABLE,
            category=ErrorCategory.TRANSIENT_REMOTE,
            message="The server could not complete the request.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.MEDIUM,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            category=ErrorCategory.NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_AUTHORIZED,
            category=ErrorCategory.AUTHORIZATION,
            message="You are not allowed to change this item.",
            suggestion="Sign in again with the account that owns it.",
            severity=ErrorSeverity.HIGH,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="storage"):
        return ErrorResponse(
            code=ErrorCode.ERR_LOCAL_STORAGE,
            category=ErrorCategory.LOCAL_STORAGE,
            message="Local storage is not available.",
            suggestion="Free up space or check file permissions, then try again.",
            severity=ErrorSeverity.HIGH,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        category=ErrorCategory.UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.MEDIUM,
    )
