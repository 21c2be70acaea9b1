"""
Test suite for RetryExecutor.
Tests: 1) Attempt counts 2) Backoff schedule 3) Final error propagation
"""
import pytest
from structlog.testing import capture_logs

from pregen_mint.engine.retry import RetryExecutor


def flaky(failures: int, result="ok"):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise RuntimeError(f"failure {calls['count']}")
        return result

    return operation, calls


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures(fake_sleep):
    """Fails k times with max > k: k + 1 invocations and the result is returned."""
    operation, calls = flaky(failures=2)
    executor = RetryExecutor(max_retries=3, base_delay_ms=1000, sleep=fake_sleep)

    assert await executor.run(operation) == "ok"
    assert calls["count"] == 3
    assert fake_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_budget_raises_last_error(fake_sleep):
    """Always failing with max n: n invocations, the final error propagates unchanged."""
    operation, calls = flaky(failures=10)
    executor = RetryExecutor(max_retries=4, base_delay_ms=1000, sleep=fake_sleep)

    with pytest.raises(RuntimeError, match="failure 4"):
        await executor.run(operation, label="always_failing")

    assert calls["count"] == 4
    # no wait after the final attempt
    assert fake_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_first_success_does_not_sleep(fake_sleep):
    operation, calls = flaky(failures=0, result=42)
    executor = RetryExecutor(sleep=fake_sleep)

    assert await executor.run(operation) == 42
    assert calls["count"] == 1
    assert fake_sleep.delays == []


def test_delay_schedule_is_exponential():
    executor = RetryExecutor(max_retries=5, base_delay_ms=250)
    assert [executor.delay_for(n) for n in range(4)] == [250, 500, 1000, 2000]


def test_rejects_empty_budget():
    with pytest.raises(ValueError):
        RetryExecutor(max_retries=0)


@pytest.mark.asyncio
async def test_each_retry_is_logged_with_its_backoff(fake_sleep):
    operation, _ = flaky(failures=2)
    executor = RetryExecutor(max_retries=3, base_delay_ms=500, sleep=fake_sleep)

    with capture_logs() as logs:
        await executor.run(operation, label="share_store.get", identifier="user@example.com")

    retries = [entry for entry in logs if entry["event"] == "retrying_after_failure"]
    assert [entry["attempt"] for entry in retries] == [1, 2]
    assert [entry["delay_ms"] for entry in retries] == [500, 1000]
    assert retries[0]["label"] == "share_store.get"
    assert retries[0]["identifier"] == "user@example.com"
    assert retries[0]["error"] == "failure 1"
    assert retries[0]["log_level"] == "warning"
    assert fake_sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_zero_base_delay_retries_without_waiting(fake_sleep):
    operation, calls = flaky(failures=2)
    executor = RetryExecutor(max_retries=3, base_delay_ms=0, sleep=fake_sleep)

    assert await executor.run(operation) == "ok"
    assert calls["count"] == 3
    assert fake_sleep.delays == [0, 0]
