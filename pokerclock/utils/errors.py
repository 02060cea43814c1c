"""Clock errors.

One hierarchy serves both surfaces: WebSocket handlers turn a ClockError
into an ERROR envelope, the webhook router into an HTTP error with the
same body.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorCode(str, Enum):
    # frame level
    INVALID_MESSAGE = "INVALID_MESSAGE"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"
    INVALID_EVENT_DIRECTION = "INVALID_EVENT_DIRECTION"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    MISSING_FIELD = "MISSING_FIELD"

    # clock level
    INVALID_COMMAND = "INVALID_COMMAND"
    DISPLAY_NOT_FOUND = "DISPLAY_NOT_FOUND"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ClockError(Exception):
    """Error reported back to the client that caused it.

    recoverable=True means the same request may succeed later or with
    corrected input.
    """

    http_status: ClassVar[int] = 400

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        return {
            "errorCode": self.code,
            "errorMessage": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class MissingFieldError(ClockError):
    def __init__(self, field_name: str):
        super().__init__(
            ErrorCode.MISSING_FIELD,
            f"Missing required field: {field_name}",
            {"field": field_name},
        )


class InvalidCommandError(ClockError):
    """Control command that cannot be applied as given (unknown type,
    bad level, no running clock, incomplete timing data)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.INVALID_COMMAND, message, details)


class DisplayNotFoundError(ClockError):
    http_status = 404

    def __init__(self, display_id: str):
        super().__init__(
            ErrorCode.DISPLAY_NOT_FOUND,
            f"Display not found: {display_id}",
            {"displayId": display_id},
        )


class BackendUnavailableError(ClockError):
    """The backend refused or failed a start/resume; nothing was seeded."""

    http_status = 503

    def __init__(self, tournament_id: str, operation: str):
        super().__init__(
            ErrorCode.BACKEND_UNAVAILABLE,
            f"Backend could not {operation} tournament {tournament_id}",
            {"tournamentId": tournament_id, "operation": operation},
        )
