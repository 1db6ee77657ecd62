"""Tests for retry classification of delivery failures."""

import pytest

from courier.exceptions import DeliveryError, StorageError
from courier.models import FailureKind
from courier.retry.classifier import classify, is_retryable, is_retryable_error, kind_for_status


class TestIsRetryable:
    """Tests for is_retryable."""

    @pytest.mark.parametrize(
        "kind",
        [
            FailureKind.TIMEOUT,
            FailureKind.RATE_LIMITED,
            FailureKind.CONNECTION_FAILED,
            FailureKind.SERVER_ERROR,
        ],
    )
    def test_transient_kinds_retryable(self, kind):
        """Transient failures should be retried."""
        assert is_retryable(kind)

    @pytest.mark.parametrize("kind", [FailureKind.VALIDATION_FAILED, FailureKind.AUTH_FAILED])
    def test_permanent_kinds_not_retryable(self, kind):
        """Client-side failures should not be retried."""
        assert not is_retryable(kind)

    def test_no_failure_not_retryable(self):
        """Nothing to retry without a failure."""
        assert not is_retryable(None)


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        ("kind", "status_code", "failed", "expected"),
        [
            (None, 200, None, False),
            (FailureKind.SERVER_ERROR, 500, None, True),
            (FailureKind.RATE_LIMITED, 429, None, True),
            (FailureKind.AUTH_FAILED, 401, None, False),
            (FailureKind.TIMEOUT, 0, None, True),
            (None, 404, True, False),
            (None, 503, True, True),
            (None, 429, True, True),
            (None, 0, True, True),
            (None, 302, True, False),
        ],
    )
    def test_classification_table(self, kind, status_code, failed, expected):
        """Classification should follow kind first, then status code."""
        assert classify(kind, status_code, failed=failed) is expected

    def test_kind_overrides_status(self):
        """A known kind should win over a retryable-looking status."""
        assert not classify(FailureKind.VALIDATION_FAILED, 503)



class TestIsRetryableError:
    """Tests for classifying exceptions raised by delivery attempts."""

    def test_kind_decides(self):
        """Transient kinds are retried and auth failures are not."""
        assert is_retryable_error(DeliveryError("timeout", kind=FailureKind.TIMEOUT))
        assert not is_retryable_error(
            DeliveryError("denied", kind=FailureKind.AUTH_FAILED, status_code=401)
        )

    def test_unclassified_uses_status(self):
        """Without a kind, the status code decides."""
        assert is_retryable_error(DeliveryError("bad gateway", status_code=502))
        assert not is_retryable_error(DeliveryError("not found", status_code=404))
        assert is_retryable_error(DeliveryError("connection reset"))

    def test_other_exceptions_not_retried(self):
        """Only delivery errors are retried."""
        assert not is_retryable_error(StorageError("db down"))
        assert not is_retryable_error(RuntimeError("bug"))

class TestKindForStatus:
    """Tests for mapping HTTP statuses to failure kinds."""

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [
            (200, None),
            (204, None),
            (500, FailureKind.SERVER_ERROR),
            (503, FailureKind.SERVER_ERROR),
            (429, FailureKind.RATE_LIMITED),
            (401, FailureKind.AUTH_FAILED),
            (403, FailureKind.AUTH_FAILED),
            (400, FailureKind.VALIDATION_FAILED),
            (404, FailureKind.VALIDATION_FAILED),
        ],
    )
    def test_mapping(self, status_code, expected):
        """Each status should map to its failure kind."""
        assert kind_for_status(status_code) == expected
