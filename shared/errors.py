"""
Shared error handling for the IdeaSpark Access Layer.

Identity errors are absorbed by the classifier, storage errors abort the
gate decision, and downstream errors surface with their own message.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class IdeaSparkException(Exception):
    """Base exception for IdeaSpark services and clients."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class StorageUnavailable(IdeaSparkException):
    """Backing counter store unreachable or replied with garbage."""

    def __init__(self, message: str = "Counter store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_UNAVAILABLE", message, details)


class InvalidIdentity(IdeaSparkException):
    """Malformed device identifier."""

    def __init__(self, message: str = "Invalid device identifier", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_IDENTITY", message, details)


class LocalStorageUnavailable(IdeaSparkException):
    """Client-side persistent storage cannot be read or written."""

    def __init__(self, message: str = "Local storage unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("LOCAL_STORAGE_UNAVAILABLE", message, details)


class DownstreamFailure(IdeaSparkException):
    """The protected generation service failed or returned nothing."""

    def __init__(self, service: str, message: str = "Downstream service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("DOWNSTREAM_FAILURE", f"{service}: {message}", details)


class RateLimitError(IdeaSparkException):
    """Rate limiting errors."""

    def __init__(self, remaining_minutes: int, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        self.remaining_minutes = remaining_minutes
        details = dict(details or {})
        details.setdefault("remaining", remaining_minutes)
        super().__init__("RATE_LIMIT_ERROR", message, details)
