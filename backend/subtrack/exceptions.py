"""
Engine error taxonomy.

Every error carries the user and operation it was raised for so the HTTP
layer and the logs can report them without re-deriving context.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for errors raised by the detection and scheduling engine."""

    status_code = 500

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        operation: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "operation": self.operation,
            "user_id": self.user_id,
        }


class ValidationError(EngineError):
    """Invalid caller input, e.g. a negative due-soon window."""

    status_code = 400


class NotFoundError(EngineError):
    """Entity missing or not owned by the requesting user."""

    status_code = 404


class StoreUnavailableError(EngineError):
    """Transaction Store or Subscription Repository I/O failure."""

    status_code = 503
