"""Courier exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from CourierError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from courier.models import FailureKind


class CourierError(Exception):
    """Base exception for all Courier errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "courier_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class NotFoundError(CourierError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "webhook", "event").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(CourierError):
    """Storage operation failed.

    Raised when the persistence collaborator fails to read or write.
    """

    code: str = "storage_error"


class FilterEvaluationError(CourierError):
    """A filter rule could not be evaluated.

    Raised for malformed filter input: an invalid regex, an operand of the
    wrong type, or an unknown operator. Never raised for a missing field.

    Attributes:
        operator: Operator being evaluated when the error occurred.
    """

    code: str = "filter_evaluation_error"

    def __init__(self, operator: str, message: str) -> None:
        self.operator = operator
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "operator": self.operator,
                "message": self.message,
            }
        }


class DeliveryError(CourierError):
    """A webhook delivery attempt failed.

    Attributes:
        kind: Failure classification, or None for an unclassified failure.
        status_code: HTTP status returned by the target (0 if none).
    """

    code: str = "delivery_error"

    def __init__(
        self,
        message: str,
        kind: FailureKind | None = None,
        status_code: int = 0,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "kind": self.kind.value if self.kind else None,
                "status_code": self.status_code,
                "message": self.message,
            }
        }


class MaxAttemptsExceededError(CourierError):
    """All bounded retry attempts failed.

    Attributes:
        attempts: Number of attempts made.
        last_error: The failure observed on the final attempt.
    """

    code: str = "max_attempts_exceeded"

    def __init__(self, attempts: int, last_error: DeliveryError) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"max attempts exceeded after {attempts} attempts: {last_error}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "attempts": self.attempts,
                "last_error": self.last_error.to_dict()["error"],
                "message": self.message,
            }
        }


class DeliveryCancelledError(CourierError):
    """A retry loop was cancelled before it finished."""

    code: str = "delivery_cancelled"
