"""Bounded retry loop and request throttling."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt
from tenacity.wait import wait_base

from placekeeper.core.errors import NetworkFailure, ProviderQuotaExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], object]


def call_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int,
    wait: wait_base,
    sleep: Sleep = time.sleep,
    network_retries: int = 1,
    network_wait: wait_base | None = None,
    before_attempt: Callable[[int], None] | None = None,
    label: str = "request",
) -> T:
    """Run ``fn`` until it succeeds or the retry allowance is spent.

    ``ProviderQuotaExceeded`` is retried up to ``max_attempts`` total attempts,
    ``NetworkFailure`` up to ``network_retries`` extra attempts. Anything else
    propagates immediately. ``before_attempt`` is called with the attempt
    number before every call (including the first) so callers can charge a
    budget or abort.
    """
    quota_stop = stop_after_attempt(max_attempts)
    network_wait = network_wait or wait
    network_failures = 0

    def is_network(retry_state: RetryCallState) -> bool:
        return isinstance(retry_state.outcome.exception(), NetworkFailure)

    def stop(retry_state: RetryCallState) -> bool:
        nonlocal network_failures
        if is_network(retry_state):
            network_failures += 1
            return network_failures > network_retries
        return quota_stop(retry_state)

    def pick_wait(retry_state: RetryCallState) -> float:
        return network_wait(retry_state) if is_network(retry_state) else wait(retry_state)

    def before(retry_state: RetryCallState) -> None:
        if before_attempt is not None:
            before_attempt(retry_state.attempt_number)

    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep
        if isinstance(exc, ProviderQuotaExceeded):
            logger.warning(
                "%s rate limited (attempt %d/%d), waiting %.1fs",
                label, retry_state.attempt_number, max_attempts, delay,
            )
        else:
            logger.warning("%s network failure: %s, retrying in %.1fs", label, exc, delay)

    retrying = Retrying(
        stop=stop,
        wait=pick_wait,
        retry=retry_if_exception_type((ProviderQuotaExceeded, NetworkFailure)),
        before=before,
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=True,
    )
    return retrying(fn)


class RateLimiter:
    """Thread-safe minimum interval between calls."""

    def __init__(self, min_interval: float, sleep: Sleep = time.sleep) -> None:
        self.min_interval = max(float(min_interval), 0.0)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last = 0.0

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            lag = self.min_interval - (now - self._last)
            if lag > 0 and self._last:
                self._sleep(lag)
            self._last = time.monotonic()
