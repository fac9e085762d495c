"""
Error taxonomy for Content Hub.

Every error raised by the content engine derives from ContentHubError and
carries the HTTP status it maps to. The API layer turns them into the
failure envelope; nothing below it knows about HTTP.
"""

from datetime import datetime, timezone
from typing import Any, Dict


class ContentHubError(Exception):
    """Base class for all content engine errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def public_message(self) -> str:
        """Message that is safe to return to API clients."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.public_message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ValidationError(ContentHubError):
    """Malformed or missing input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(ContentHubError):
    """Duplicate table or field name."""

    status_code = 409
    code = "CONFLICT"


class NotFoundError(ContentHubError):
    """Unknown table, record or language."""

    status_code = 404
    code = "NOT_FOUND"


class StorageError(ContentHubError):
    """The underlying DDL/DML operation failed.

    The original driver message is kept on the exception for logging but is
    never sent to clients.
    """

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str, detail: str = ""):
        self.detail = detail
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return "A storage error occurred"
