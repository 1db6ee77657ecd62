"""Configuration management for Courier."""

import logging
import warnings
from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from courier.models import RetryPolicy

logger = logging.getLogger(__name__)


class RetrySettings(BaseModel):
    """Backoff configuration shared by the bounded executor and retry worker.

    Delay before attempt ``n`` (zero-based) is::

        min(base_delay_seconds * multiplier ** n, max_delay_seconds)

    perturbed by up to ``jitter_fraction`` in either direction.

    Attributes:
        max_attempts: Attempts made by the in-request executor (>= 1).
        base_delay_seconds: Delay before the first retry.
        max_delay_seconds: Upper bound on any single delay.
        multiplier: Growth factor per attempt (> 1.0).
        jitter_fraction: Relative jitter, 0.0 disables it.
    """

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum in-request delivery attempts",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Delay before the first retry",
    )
    max_delay_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Maximum delay between attempts",
    )
    multiplier: float = Field(
        default=2.0,
        gt=1.0,
        description="Exponential growth factor",
    )
    jitter_fraction: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of the delay to randomize (+/-)",
    )

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetrySettings":
        """Clamp an inverted base/max pair to the base delay, with a warning."""
        if self.max_delay_seconds < self.base_delay_seconds:
            warnings.warn(
                f"RetrySettings max_delay_seconds={self.max_delay_seconds} is below "
                f"base_delay_seconds={self.base_delay_seconds}; using the base delay as cap.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning(
                "max_delay_seconds %.3f below base_delay_seconds %.3f, clamping",
                self.max_delay_seconds,
                self.base_delay_seconds,
            )
            self.max_delay_seconds = self.base_delay_seconds
        return self

    def to_policy(self) -> RetryPolicy:
        """Build the immutable RetryPolicy these settings describe."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=timedelta(seconds=self.base_delay_seconds),
            max_delay=timedelta(seconds=self.max_delay_seconds),
            multiplier=self.multiplier,
            jitter_fraction=self.jitter_fraction,
        )


class Settings(BaseSettings):
    """Courier configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the COURIER_ prefix. Nested retry settings use ``__``:
        COURIER_RETRY_BATCH_SIZE=50
        COURIER_RETRY__MAX_ATTEMPTS=3
    """

    # Retry
    retry: RetrySettings = Field(
        default_factory=RetrySettings,
        description="Backoff configuration",
    )
    retry_batch_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum due events claimed per worker poll",
    )
    retry_poll_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds between retry worker polls",
    )
    default_max_retries: int = Field(
        default=3,
        ge=0,
        le=50,
        description="Persisted retries for webhooks that do not set their own",
    )

    # Delivery
    delivery_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="HTTP timeout for a single delivery attempt",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "COURIER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @property
    def retry_policy(self) -> RetryPolicy:
        """RetryPolicy derived from the nested retry settings."""
        return self.retry.to_policy()

    @property
    def poll_interval(self) -> timedelta:
        """Retry worker poll interval as a timedelta."""
        return timedelta(seconds=self.retry_poll_interval_seconds)


def get_settings() -> Settings:
    """Load settings from the environment."""
    return Settings()
