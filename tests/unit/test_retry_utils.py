# SPDX-License-Identifier: MIT
"""Tests for retry utilities."""

from unittest.mock import AsyncMock, patch

import pytest

from offline_sync.exceptions import ClientError, NetworkError, ServerError
from offline_sync.retry_utils import async_retry_with_backoff


def _no_delay(attempt: int) -> float:
    return 0.0


class TestAsyncRetryWithBackoff:
    """Test cases for the async_retry_with_backoff decorator."""

    @pytest.mark.asyncio
    async def test_async_successful_call_no_retry(self):
        """Test that successful async calls don't trigger retries."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3, delay_millis=_no_delay)
        async def async_successful_func():
            nonlocal call_count
            call_count += 1
            return "async_success"

        result = await async_successful_func()
        assert result == "async_success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_async_failure_then_success(self):
        """Test that transient failures are retried until success."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3, delay_millis=_no_delay)
        async def async_flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise NetworkError("Temporary network error")
            return "async_success"

        result = await async_flaky_func()
        assert result == "async_success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_async_max_retries_exceeded(self):
        """Test that the last error propagates after max retries."""
        call_count = 0

        @async_retry_with_backoff(max_retries=2, delay_millis=_no_delay)
        async def async_always_fails():
            nonlocal call_count
            call_count += 1
            raise ServerError("Always fails", 503)

        with pytest.raises(ServerError, match="HTTP 503"):
            await async_always_fails()

        assert call_count == 3  # Initial call + 2 retries

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        """Test that non-retryable errors propagate immediately."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3, delay_millis=_no_delay)
        async def rejected():
            nonlocal call_count
            call_count += 1
            raise ClientError("Rejected", 422)

        with pytest.raises(ClientError):
            await rejected()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_default_backoff_delays(self):
        """Test that the default delays follow the backoff schedule."""

        @async_retry_with_backoff(max_retries=3)
        async def always_fails():
            raise NetworkError("down")

        with patch(
            "offline_sync.retry_utils.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(NetworkError):
                await always_fails()

        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_preserves_function_metadata(self):
        """Test that the decorator keeps the wrapped function's name."""

        @async_retry_with_backoff()
        async def send_action():
            return None

        assert send_action.__name__ == "send_action"
