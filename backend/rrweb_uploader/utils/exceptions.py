"""Custom exceptions and error handling utilities."""
from fastapi import HTTPException, status
from typing import Optional


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AppException):
    """Raised when required fields are missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"
    default_message = "Bad request"


class InvalidArtifact(BadRequest):
    """Raised when a stored artifact cannot be read back as an event chunk."""

    code = "invalid_artifact"
    default_message = "Artifact does not contain an event list"


class Unauthorized(AppException):
    """Raised when the shared secret or the session token does not match."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class UnknownSession(AppException):
    """Raised when a session is absent from the registry (finalized or expired)."""

    code = "unknown_session"
    default_message = "Unknown session"

    def __init__(self, session_id: Optional[str] = None):
        message = "Unknown session"
        if session_id:
            message += f": {session_id}"
        self.session_id = session_id
        super().__init__(message)


class StorageUnavailable(AppException):
    """Raised when the artifact store is misconfigured or a storage call fails."""

    code = "storage_unavailable"
    default_message = "Storage unavailable"


def to_http_exception(error: AppException) -> HTTPException:
    """
    Convert a domain error to an HTTP exception.

    Args:
        error: The domain error

    Returns:
        HTTPException carrying the error code and message
    """
    return HTTPException(
        status_code=error.status_code,
        detail={"code": error.code, "message": error.message},
    )


def authentication_error() -> HTTPException:
    """
    Create a standardized 401 authentication error.

    The message is identical for every credential so callers cannot tell
    which check failed.

    Returns:
        HTTPException with 401 status
    """
    return to_http_exception(Unauthorized())


def internal_error(operation: str, error: Exception) -> HTTPException:
    """
    Create a 500 error for an unexpected failure.

    Args:
        operation: Description of the operation that failed
        error: The underlying exception

    Returns:
        HTTPException with 500 status
    """
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "internal_error", "message": f"Failed to {operation}: {error}"},
    )
