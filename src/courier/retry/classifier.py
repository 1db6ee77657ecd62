"""Retry/no-retry decisions for delivery failures."""

from __future__ import annotations

from courier.exceptions import DeliveryError
from courier.models import FailureKind

RETRYABLE_KINDS: frozenset[FailureKind] = frozenset(
    {
        FailureKind.TIMEOUT,
        FailureKind.RATE_LIMITED,
        FailureKind.CONNECTION_FAILED,
        FailureKind.SERVER_ERROR,
    }
)


def is_retryable(kind: FailureKind | None) -> bool:
    """Whether a classified failure is transient.

    Timeouts, rate limits, connection failures and server errors are worth
    retrying; validation and auth failures are not. No failure means there is
    nothing to retry.
    """
    if kind is None:
        return False
    return kind in RETRYABLE_KINDS


def classify(kind: FailureKind | None, status_code: int, failed: bool | None = None) -> bool:
    """Decide whether a delivery result should be retried.

    Args:
        kind: Failure classification, None for success or an unclassified
            failure.
        status_code: HTTP status of the response (0 if none was received).
        failed: Whether the attempt failed. Defaults to ``kind is not None``;
            pass True for failures that carry no kind.

    Returns:
        True if the delivery should be retried.
    """
    if failed is None:
        failed = kind is not None

    if not failed:
        return False
    if kind is not None:
        return is_retryable(kind)

    if status_code >= 500 or status_code == 429:
        return True
    if 400 <= status_code < 500:
        return False
    # Failed without a response: transport-level error
    if status_code == 0:
        return True
    return False



def is_retryable_error(error: BaseException) -> bool:
    """Whether an exception raised by a delivery attempt is worth retrying.

    Only DeliveryErrors qualify; they are classified as failures by kind and
    status code.
    """
    if not isinstance(error, DeliveryError):
        return False
    return classify(error.kind, error.status_code, failed=True)

def kind_for_status(status_code: int) -> FailureKind | None:
    """Map an HTTP status to a FailureKind; None for 2xx."""
    if 200 <= status_code < 300:
        return None
    if status_code >= 500:
        return FailureKind.SERVER_ERROR
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    if status_code in (401, 403):
        return FailureKind.AUTH_FAILED
    return FailureKind.VALIDATION_FAILED
