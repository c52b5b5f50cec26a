"""Errors raised by the scheduling and billing core.

Services raise these; each public operation translates them into an
``OperationResult`` failure at its boundary.
"""

from __future__ import annotations


class PracticeError(Exception):
    """Base class for all core errors."""

    message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class InputValidationError(PracticeError):
    message = "Invalid input"


class NotFoundError(PracticeError):
    message = "Not found"


class PersistenceError(PracticeError):
    message = "Could not save changes"


class UnauthenticatedError(PracticeError):
    message = "Not authenticated"


class FlowStateError(PracticeError):
    """An action was attempted from a booking-flow state that does not allow it."""

    message = "Action not allowed in the current state"
