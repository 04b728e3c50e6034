"""Typed errors raised by the relay services.

The HTTP layer maps each class to a status code:
- NotFoundError -> 404
- ValidationError -> 400
- InvalidTransitionError -> 409
- DispatchError, StoreError -> 500
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(RelayError):
    """Task or report is missing, or the id is not a valid identifier."""

    status_code = 404


class ValidationError(RelayError):
    """Request body or callback payload is malformed."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """Requested status change is not an edge of the task state machine."""

    status_code = 409

    def __init__(self, task_id: str, current: str, target: str) -> None:
        super().__init__(f"Task {task_id} cannot move from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target


class DispatchError(RelayError):
    """Agent was unreachable, timed out, or refused the generation request."""


class StoreError(RelayError):
    """Record store failed to read or write."""
