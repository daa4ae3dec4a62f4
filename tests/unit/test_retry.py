"""Tests for retry utilities."""

from unittest.mock import AsyncMock

import pytest

from bittrex_connector.utils.retry import backoff_delay, exponential_backoff


@pytest.mark.unit
class TestExponentialBackoff:
    """Test exponential backoff retry logic."""

    async def test_success_on_first_attempt(self):
        func = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await exponential_backoff(func, sleep=sleep) == "ok"
        assert func.await_count == 1
        sleep.assert_not_awaited()

    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        sleep = AsyncMock()

        result = await exponential_backoff(
            func, max_attempts=3, initial_delay=1.0, backoff_factor=2.0, jitter=False, sleep=sleep
        )

        assert result == "ok"
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    async def test_raises_after_last_attempt(self):
        func = AsyncMock(side_effect=ConnectionError("down"))

        with pytest.raises(ConnectionError, match="down"):
            await exponential_backoff(func, max_attempts=2, jitter=False, sleep=AsyncMock())

        assert func.await_count == 2

    async def test_unlisted_exceptions_are_not_retried(self):
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await exponential_backoff(func, exceptions=(ConnectionError,), sleep=AsyncMock())

        assert func.await_count == 1

    async def test_zero_attempts_rejected(self):
        with pytest.raises(ValueError, match="at least 1"):
            await exponential_backoff(AsyncMock(), max_attempts=0)


@pytest.mark.unit
class TestBackoffDelay:

    def test_capped(self):
        assert backoff_delay(10, 1.0, 30.0, 2.0, jitter=False) == 30.0

    def test_jitter_within_bounds(self):
        for _ in range(50):
            delay = backoff_delay(2, 1.0, 60.0, 2.0, jitter=True)
            assert 3.0 <= delay <= 5.0
