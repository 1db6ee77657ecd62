"""Unit tests for Courier configuration."""

import os
from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from courier.config import RetrySettings, Settings, get_settings
from courier.models import RetryPolicy


class TestRetrySettings:
    """Tests for RetrySettings model."""

    def test_defaults(self):
        """Defaults match RetryPolicy.default()."""
        assert RetrySettings().to_policy() == RetryPolicy.default()

    def test_custom_values(self):
        """Custom values should flow into the policy."""
        policy = RetrySettings(
            max_attempts=3,
            base_delay_seconds=0.5,
            max_delay_seconds=10,
            multiplier=3.0,
            jitter_fraction=0.0,
        ).to_policy()

        assert policy.max_attempts == 3
        assert policy.base_delay == timedelta(milliseconds=500)
        assert policy.max_delay == timedelta(seconds=10)
        assert policy.multiplier == 3.0
        assert policy.jitter_fraction == 0.0

    def test_bounds(self):
        """Out-of-range values should be rejected."""
        with pytest.raises(ValidationError):
            RetrySettings(max_attempts=0)
        with pytest.raises(ValidationError):
            RetrySettings(multiplier=1.0)
        with pytest.raises(ValidationError):
            RetrySettings(jitter_fraction=1.5)
        with pytest.raises(ValidationError):
            RetrySettings(base_delay_seconds=0)

    def test_inverted_delays_clamped(self):
        """A max delay below the base delay is clamped with a warning."""
        with pytest.warns(UserWarning, match="max_delay_seconds"):
            retry = RetrySettings(base_delay_seconds=10, max_delay_seconds=5)

        assert retry.max_delay_seconds == 10
        assert retry.to_policy().max_delay == timedelta(seconds=10)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Default settings should be sensible."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.retry_batch_size == 10
        assert settings.default_max_retries == 3
        assert settings.delivery_timeout_seconds == 10.0
        assert settings.poll_interval == timedelta(seconds=30)
        assert settings.retry_policy == RetryPolicy.default()
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"

    def test_env_override(self):
        """Environment variables with the COURIER_ prefix override defaults."""
        env = {
            "COURIER_RETRY_BATCH_SIZE": "50",
            "COURIER_RETRY_POLL_INTERVAL_SECONDS": "5",
            "COURIER_LOG_FORMAT": "text",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.retry_batch_size == 50
        assert settings.poll_interval == timedelta(seconds=5)
        assert settings.log_format == "text"

    def test_nested_retry_override(self):
        """Nested retry settings use the __ delimiter."""
        env = {
            "COURIER_RETRY__MAX_ATTEMPTS": "2",
            "COURIER_RETRY__BASE_DELAY_SECONDS": "0.25",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.retry_policy.max_attempts == 2
        assert settings.retry_policy.base_delay == timedelta(milliseconds=250)

    def test_invalid_batch_size(self):
        """Batch size must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, retry_batch_size=0)

    def test_invalid_default_max_retries(self):
        """The default retry allowance cannot be negative."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_max_retries=-1)

    def test_invalid_log_format(self):
        """Only json and text formats are supported."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_get_settings(self):
        """get_settings reads the environment."""
        with patch.dict(os.environ, {"COURIER_DEFAULT_MAX_RETRIES": "8"}, clear=True):
            assert get_settings().default_max_retries == 8
