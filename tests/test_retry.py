import pytest

from dhcourt.utils.retry import RetryPolicy, exponential_backoff, linear_backoff


def test_linear_backoff_scales_with_attempt():
    wait = linear_backoff(2.0)
    assert [wait(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]


def test_exponential_backoff_with_cap():
    assert [exponential_backoff(2)(n) for n in (1, 2, 3)] == [2, 4, 8]
    assert exponential_backoff(2, max_delay=5)(3) == 5


async def test_run_returns_first_success(recording_sleep):
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise RuntimeError("not yet")
        return "done"

    policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(1.5), sleep=recording_sleep)
    outcome = await policy.run(flaky)

    assert outcome.ok
    assert outcome.result == "done"
    assert outcome.attempts == 2
    assert recording_sleep.delays == [1.5]


async def test_run_reports_last_error_after_cap(recording_sleep):
    attempts = []

    async def always_fails():
        attempts.append(1)
        raise ConnectionError(f"failure {len(attempts)}")

    policy = RetryPolicy(max_attempts=3, backoff=exponential_backoff(2), sleep=recording_sleep)
    outcome = await policy.run(always_fails)

    assert not outcome.ok
    assert outcome.attempts == 3
    assert str(outcome.error) == "failure 3"
    assert recording_sleep.delays == [2, 4]


async def test_unlisted_errors_propagate_immediately(recording_sleep):
    async def broken():
        raise KeyError("bug")

    policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(1), retry_on=(ConnectionError,),
                         sleep=recording_sleep)
    with pytest.raises(KeyError):
        await policy.run(broken)
    assert recording_sleep.delays == []
