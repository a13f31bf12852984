"""Retry timing for POS calls.

Pattern: tenacity retry loop with a custom wait strategy.

Delays grow exponentially (1s, 2s, 4s... capped at 30s) with up to one
second of jitter so concurrent clients don't retry in lockstep. A 429
response carries Retry-After; the wait is the larger of that and the
computed backoff.
"""
import random
from typing import Callable

import requests
from tenacity import RetryCallState, retry_if_exception_type
from tenacity.wait import wait_base

from pawbook.errors import RateLimited

BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 30.0
MAX_JITTER_SECONDS = 1.0


class TransientPosError(Exception):
    """Retryable POS failure (5xx). Wrapped as ExternalServiceError on exhaustion."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


RETRYABLE_EXCEPTIONS = (
    RateLimited,
    TransientPosError,
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def compute_backoff(
    attempt: int,
    rng: Callable[[], float] = random.random,
    base: float = BASE_DELAY_SECONDS,
    max_delay: float = MAX_DELAY_SECONDS,
    max_jitter: float = MAX_JITTER_SECONDS
) -> float:
    """
    Delay in seconds before retry number ``attempt`` (0-based).

    Args:
        attempt: How many retries have already happened
        rng: Returns a float in [0, 1); pass a constant for deterministic tests
        base: Delay for the first retry
        max_delay: Cap on the exponential part
        max_jitter: Upper bound of the random addition

    Returns:
        min(base * 2**attempt, max_delay) + rng() * max_jitter
    """
    exponential = min(base * (2 ** attempt), max_delay)
    return exponential + rng() * max_jitter


class wait_backoff_or_retry_after(wait_base):
    """tenacity wait strategy honouring server Retry-After on 429s."""

    def __init__(self, rng: Callable[[], float] = random.random, **backoff_kwargs):
        self.rng = rng
        self.backoff_kwargs = backoff_kwargs

    def __call__(self, retry_state: RetryCallState) -> float:
        computed = compute_backoff(
            retry_state.attempt_number - 1, self.rng, **self.backoff_kwargs
        )

        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None and outcome.failed else None
        if isinstance(exc, RateLimited):
            return max(float(exc.retry_after), computed)

        return computed


retry_if_transient = retry_if_exception_type(RETRYABLE_EXCEPTIONS)
