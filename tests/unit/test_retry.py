"""Unit tests for the retry executor."""

import pytest
from unittest.mock import AsyncMock, call

from document_actions.utils.errors import RemoteAPIError
from document_actions.utils.retry import RetryExecutor, RetryPolicy, status_code_of


class TestRetryPolicy:
    """Test cases for RetryPolicy."""

    def test_max_attempts_when_enabled(self):
        assert RetryPolicy(enabled=True, max_retries=5).max_attempts == 6

    def test_single_attempt_when_disabled(self):
        assert RetryPolicy(enabled=False, max_retries=5).max_attempts == 1

    def test_delays_are_whole_seconds(self):
        policy = RetryPolicy(enabled=True, base_delay=1.5)
        assert [policy.delay_for_attempt(n) for n in range(4)] == [1, 1, 2, 3]

    def test_status_code_of(self):
        assert status_code_of(RemoteAPIError("boom", status_code=503)) == 503
        assert status_code_of(ValueError("no code")) is None


@pytest.mark.asyncio
class TestRetryExecutor:
    """Test cases for RetryExecutor."""

    @pytest.fixture
    def sleep(self):
        return AsyncMock()

    async def test_retriable_failure_uses_ceiling_plus_one_attempts(self, sleep):
        """A call failing with 503 every time is tried ceiling + 1 times."""
        executor = RetryExecutor(RetryPolicy(enabled=True, max_retries=5, base_delay=3), sleep=sleep)
        failing = AsyncMock(side_effect=RemoteAPIError("unavailable", status_code=503))

        with pytest.raises(RemoteAPIError):
            await executor.execute(failing)

        assert failing.await_count == 6
        assert sleep.await_args_list == [call(1), call(3), call(9), call(27), call(81)]

    async def test_disabled_retry_makes_one_attempt(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=False), sleep=sleep)
        failing = AsyncMock(side_effect=RemoteAPIError("rate limited", status_code=429))

        with pytest.raises(RemoteAPIError):
            await executor.execute(failing)

        assert failing.await_count == 1
        sleep.assert_not_awaited()

    async def test_non_retriable_code_is_not_retried(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=True), sleep=sleep)
        error = RemoteAPIError("not found", status_code=404)
        failing = AsyncMock(side_effect=error)

        with pytest.raises(RemoteAPIError) as exc_info:
            await executor.execute(failing)

        assert exc_info.value is error
        assert failing.await_count == 1

    async def test_error_without_status_code_is_not_retried(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=True), sleep=sleep)
        failing = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(ConnectionError):
            await executor.execute(failing)

        assert failing.await_count == 1

    async def test_recovers_after_transient_failures(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=True, max_retries=5, base_delay=2), sleep=sleep)
        flaky = AsyncMock(
            side_effect=[
                RemoteAPIError("conflict", status_code=409),
                RemoteAPIError("timeout", status_code=504),
                {"ok": True},
            ]
        )

        result = await executor.execute(flaky)

        assert result == {"ok": True}
        assert flaky.await_count == 3
        assert sleep.await_args_list == [call(1), call(2)]

    async def test_each_call_gets_its_own_attempt_counter(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=True, max_retries=1, base_delay=3), sleep=sleep)
        first = AsyncMock(side_effect=[RemoteAPIError("busy", status_code=500), "one"])
        second = AsyncMock(side_effect=[RemoteAPIError("busy", status_code=500), "two"])

        assert await executor.execute(first) == "one"
        assert await executor.execute(second) == "two"
        assert sleep.await_args_list == [call(1), call(1)]

    async def test_propagated_error_is_sanitized(self, sleep):
        executor = RetryExecutor(RetryPolicy(enabled=False), sleep=sleep)
        failing = AsyncMock(
            side_effect=RemoteAPIError(
                "Upstream rejected Authorization: Bearer ya29.secret-token",
                status_code=400,
            )
        )

        with pytest.raises(RemoteAPIError) as exc_info:
            await executor.execute(failing)

        assert "ya29.secret-token" not in str(exc_info.value)
        assert "[REDACTED]" in str(exc_info.value)
