"""
Retry policy for remote invocations.

The policy decides how many attempts a call gets and how long to wait between
them. Which responses are worth retrying is a separate, pluggable predicate.
"""

from typing import Callable

import requests
from pydantic import BaseModel, Field, model_validator

from ..config import HTTPClientConfig

RetryPredicate = Callable[[requests.Response], bool]
BackoffFunction = Callable[[int, float, float], float]


def is_error_response(response: requests.Response) -> bool:
    """Default predicate: every 4xx and 5xx response is retried."""
    return response.status_code >= 400


def calculate_backoff(attempt: int, min_backoff: float, max_backoff: float) -> float:
    """
    Exponential backoff clamped to ``[min_backoff, max_backoff]``.

    Args:
        attempt: Attempt that just failed (1-based)
        min_backoff: Lower bound in seconds
        max_backoff: Upper bound in seconds

    Returns:
        Delay in seconds before the next attempt

    Example (min=1, max=60):
        attempt=1: 2s
        attempt=2: 4s
        attempt=5: 32s
        attempt=6: 60s (capped)
    """
    delay = float(2**attempt)
    if delay < min_backoff:
        return float(min_backoff)
    if delay > max_backoff:
        return float(max_backoff)
    return delay


class RetryPolicy(BaseModel):
    """How many attempts a call gets and the backoff bounds between them."""

    max_retries: int = Field(default=3, ge=1, description="Maximum number of attempts")
    min_backoff: float = Field(default=1, ge=0, description="Minimum backoff in seconds")
    max_backoff: float = Field(default=60, ge=0, description="Maximum backoff in seconds")

    @model_validator(mode="after")
    def validate_bounds(self) -> "RetryPolicy":
        if self.min_backoff > self.max_backoff:
            raise ValueError("min_backoff cannot exceed max_backoff")
        return self

    @classmethod
    def from_config(cls, config: HTTPClientConfig) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            min_backoff=config.min_backoff,
            max_backoff=config.max_backoff,
        )
