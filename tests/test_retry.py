import pytest
from tenacity import wait_fixed

from placekeeper.core.errors import (
    BudgetExhausted,
    NetworkFailure,
    ProviderInvalidRequest,
    ProviderQuotaExceeded,
)
from placekeeper.core.retry import RateLimiter, call_with_retry


def flaky(*errors, result="ok"):
    """Raise each error in turn, then return ``result``."""
    pending = list(errors)
    calls = []

    def fn():
        calls.append(1)
        if pending:
            raise pending.pop(0)
        return result

    fn.calls = calls
    return fn


def test_quota_errors_are_retried_until_success(sleeper):
    fn = flaky(ProviderQuotaExceeded("429"), ProviderQuotaExceeded("429"))
    assert call_with_retry(fn, max_attempts=3, wait=wait_fixed(60), sleep=sleeper) == "ok"
    assert sleeper.calls == [60, 60]


def test_quota_retries_are_bounded(sleeper):
    fn = flaky(*[ProviderQuotaExceeded("429")] * 5)
    with pytest.raises(ProviderQuotaExceeded):
        call_with_retry(fn, max_attempts=3, wait=wait_fixed(1), sleep=sleeper)
    assert len(fn.calls) == 3


def test_network_failure_gets_a_single_retry(sleeper):
    fn = flaky(NetworkFailure("reset"), NetworkFailure("reset"))
    with pytest.raises(NetworkFailure):
        call_with_retry(fn, max_attempts=3, wait=wait_fixed(60),
                        network_wait=wait_fixed(2), sleep=sleeper)
    assert len(fn.calls) == 2
    assert sleeper.calls == [2]


def test_invalid_request_is_not_retried(sleeper):
    fn = flaky(ProviderInvalidRequest("INVALID_REQUEST"))
    with pytest.raises(ProviderInvalidRequest):
        call_with_retry(fn, max_attempts=3, wait=wait_fixed(60), sleep=sleeper)
    assert len(fn.calls) == 1
    assert sleeper.calls == []


def test_before_attempt_sees_every_attempt(sleeper):
    seen = []
    fn = flaky(ProviderQuotaExceeded("429"))
    call_with_retry(fn, max_attempts=3, wait=wait_fixed(0), sleep=sleeper, before_attempt=seen.append)
    assert seen == [1, 2]


def test_rate_limiter_waits_between_calls(sleeper):
    limiter = RateLimiter(1.0, sleep=sleeper)
    limiter.wait()
    assert sleeper.calls == []
    limiter.wait()
    assert len(sleeper.calls) == 1
    assert 0 < sleeper.calls[0] <= 1.0


def test_abort_from_before_attempt_is_not_retried(sleeper):
    def charge(attempt):
        if attempt > 1:
            raise BudgetExhausted("1/1 calls used")

    fn = flaky(ProviderQuotaExceeded("429"))
    with pytest.raises(BudgetExhausted):
        call_with_retry(fn, max_attempts=3, wait=wait_fixed(5), sleep=sleeper, before_attempt=charge)
    assert len(fn.calls) == 1
    assert sleeper.calls == [5]
