"""
Custom Exceptions for Room Chat AI

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class RoomChatError(Exception):
    """Base exception for all Room Chat AI errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(RoomChatError):
    """Raised when input validation fails."""
    pass


class MalformedJobError(ValidationError):
    """Raised when a queue payload cannot be decoded into a job."""

    def __init__(
        self,
        message: str,
        raw_payload: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if raw_payload is not None:
            details["raw_payload"] = raw_payload[:500]
        super().__init__(message, details, original_error)


class NotFoundError(RoomChatError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details, original_error)


class UnauthorizedError(RoomChatError):
    """Raised on authentication or ownership failures."""
    pass


class QuotaExceededError(RoomChatError):
    """Raised when a BASIC user has used up the daily prompt allowance."""

    def __init__(
        self,
        limit: int,
        message: Optional[str] = None,
    ):
        message = message or (
            f"Daily prompt limit ({limit}) reached for Basic tier. "
            "Please upgrade to Pro for more usage."
        )
        super().__init__(message, {"limit": limit, "upgrade_available": True})
        self.limit = limit


class InfrastructureError(RoomChatError):
    """Raised when a backing service cannot be reached."""
    pass


class QueueUnavailableError(InfrastructureError):
    """Raised when the job queue backing store is unreachable."""

    def __init__(
        self,
        message: str = "Job queue is unavailable",
        queue_name: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if queue_name:
            details["queue"] = queue_name
        super().__init__(message, details, original_error)


class StoreUnavailableError(InfrastructureError):
    """Raised when the database cannot be reached."""

    def __init__(
        self,
        message: str = "Database is unavailable",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class ProviderError(RoomChatError):
    """Raised when an external provider (AI or billing) fails."""
    pass


class AIServiceError(ProviderError):
    """Raised when Gemini generation fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if model:
            details["model"] = model
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class BillingProviderError(ProviderError):
    """Raised when a Stripe call fails."""
    pass


class ConfigurationError(RoomChatError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
