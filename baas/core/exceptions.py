"""
Error taxonomy for the key-authenticated API and the dashboard endpoints.

Every error renders as ``{"error": <tag>, "message": <text>, **details}``.
"""

from typing import Any, Dict, Iterable, Optional


class BaaSError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            details: Additional fields merged into the error body
        """
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def error(self) -> str:
        """Machine-readable error tag."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.details}


class AuthenticationError(BaaSError):
    """Raised when an API key cannot be resolved to a live key record."""

    status_code = 401
    default_message = "Authentication failed"


class MissingKey(AuthenticationError):
    default_message = "API key required"


class InvalidKey(AuthenticationError):
    default_message = "Invalid or inactive API key"


class OrphanedKey(AuthenticationError):
    default_message = "API key is not attached to an existing project"


class InsufficientPermissions(BaaSError):
    """Raised when a key lacks one of the capabilities a route requires."""

    status_code = 403
    default_message = "API key does not have the required permissions"

    def __init__(self, required: Iterable[str], current: Iterable[str], message: Optional[str] = None):
        self.required = list(required)
        self.current = list(current)
        super().__init__(
            message=message,
            details={"required": self.required, "current": self.current},
        )


class Forbidden(BaaSError):
    status_code = 403
    default_message = "Access denied"


class MalformedIdentifier(BaaSError):
    status_code = 400
    default_message = "The provided identifier is not valid"


class NotFound(BaaSError):
    status_code = 404
    default_message = "Resource not found"


class DuplicateSecret(BaaSError):
    status_code = 409
    default_message = "A key with this identifier already exists. Please try again."


class InternalError(BaaSError):
    status_code = 500
    default_message = "Internal server error"
