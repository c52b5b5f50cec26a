"""Boundary helpers turning raised core errors into uniform results."""

from __future__ import annotations

from typing import Callable, TypeVar

import structlog
from pydantic import ValidationError

from physio_practice.domain.errors import (
    InputValidationError,
    PersistenceError,
    PracticeError,
    UnauthenticatedError,
)
from physio_practice.domain.models import OperationResult

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PERSISTENCE_FAILURE_MESSAGE = "Could not save changes, please try again"


def require_identity(practitioner_id: str | None) -> str:
    if not practitioner_id:
        raise UnauthenticatedError()
    return practitioner_id


def validation_message(exc: ValidationError) -> str:
    """First human-readable problem reported by pydantic."""
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid input")
    return f"{location}: {message}" if location else message


def run_operation(
    operation: str, action: Callable[[], OperationResult[T]]
) -> OperationResult[T]:
    """Run ``action``, translating core errors into a failed result.

    Persistence failures are logged with their traceback and reported with an
    opaque message; everything else carries its own message back to the caller.
    """
    try:
        return action()
    except PersistenceError:
        logger.exception("operation_persistence_failed", operation=operation)
        return OperationResult.fail(PERSISTENCE_FAILURE_MESSAGE, PersistenceError.__name__)
    except ValidationError as exc:
        message = validation_message(exc)
        logger.info("operation_rejected", operation=operation, error=message)
        return OperationResult.fail(message, InputValidationError.__name__)
    except PracticeError as exc:
        logger.info(
            "operation_rejected",
            operation=operation,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return OperationResult.fail(exc.message, type(exc).__name__)
