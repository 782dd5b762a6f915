"""Unit tests for talebloom.services.retry: bounded retry with backoff."""

import pytest

from talebloom.services.retry import RetryExhaustedError, RetryPolicy, retry_async


class Recorder:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self.sleeps = []

    async def operation(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def sleep(self, delay):
        self.sleeps.append(delay)


class TestRetryPolicy:
    def test_exponential_backoff(self):
        policy = RetryPolicy(max_attempts=4, base_delay=1.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


class TestRetryAsync:
    async def test_first_attempt_success(self):
        rec = Recorder(["ok"])
        assert await retry_async(rec.operation, RetryPolicy(), sleep=rec.sleep) == "ok"
        assert rec.calls == 1
        assert rec.sleeps == []

    async def test_succeeds_on_third_attempt(self):
        """Two failures then success: three attempts, two backoffs."""
        rec = Recorder([RuntimeError("boom"), None, {"url": "x"}])
        result = await retry_async(rec.operation, RetryPolicy(max_attempts=3, base_delay=0.5), sleep=rec.sleep)
        assert result == {"url": "x"}
        assert rec.calls == 3
        assert rec.sleeps == [0.5, 1.0]

    async def test_gives_up_after_max_attempts(self):
        rec = Recorder([RuntimeError("1"), RuntimeError("2"), RuntimeError("3"), "never"])
        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(rec.operation, RetryPolicy(max_attempts=3, base_delay=1.0), sleep=rec.sleep)
        assert rec.calls == 3
        assert exc_info.value.attempts == 3
        assert str(exc_info.value.last_error) == "3"
        assert "failed after 3 attempts" in str(exc_info.value)
        assert rec.sleeps == [1.0, 2.0]

    async def test_empty_result_counts_as_failure(self):
        rec = Recorder([None, {}, None])
        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(rec.operation, RetryPolicy(max_attempts=3, base_delay=0), sleep=rec.sleep)
        assert rec.calls == 3
        assert exc_info.value.last_error is None

    async def test_custom_failure_predicate(self):
        rec = Recorder([{"status": "pending"}, {"status": "done"}])
        result = await retry_async(
            rec.operation,
            RetryPolicy(max_attempts=3, base_delay=0),
            is_failure=lambda r: r["status"] != "done",
            sleep=rec.sleep,
        )
        assert result == {"status": "done"}
        assert rec.calls == 2
