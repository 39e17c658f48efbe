"""Retry and timeout behaviour of the per-item call wrapper."""
import asyncio
from unittest.mock import AsyncMock
import pytest
from prompt_builder.core.errors import GenerationTimeoutError, PermissionDeniedError, TransientError
from prompt_builder.core.retry import retry_with_backoff, with_timeout


def _recording_sleep():
    delays = []

    async def sleep(delay):
        delays.append(delay)

    return sleep, delays


def test_retry_succeeds_on_third_attempt_with_exponential_delays():
    fn = AsyncMock(side_effect=[TransientError("boom"), TransientError("boom again"), "ok"])
    sleep, delays = _recording_sleep()

    result = asyncio.run(retry_with_backoff(fn, attempts=3, base_delay=1.0, sleep=sleep))

    assert result == "ok"
    assert fn.await_count == 3
    assert delays == [1.0, 2.0]


def test_retry_gives_up_after_last_attempt():
    fn = AsyncMock(side_effect=TransientError("still down"))
    sleep, delays = _recording_sleep()

    with pytest.raises(TransientError, match="still down"):
        asyncio.run(retry_with_backoff(fn, attempts=3, base_delay=1.0, sleep=sleep))

    assert fn.await_count == 3
    assert delays == [1.0, 2.0]


def test_permission_message_is_not_retried():
    fn = AsyncMock(side_effect=RuntimeError("Invalid API key: permission denied"))
    sleep, delays = _recording_sleep()

    with pytest.raises(RuntimeError, match="permission denied"):
        asyncio.run(retry_with_backoff(fn, sleep=sleep))

    assert fn.await_count == 1
    assert delays == []


def test_typed_permission_error_is_not_retried():
    fn = AsyncMock(side_effect=PermissionDeniedError("nope"))
    sleep, delays = _recording_sleep()

    with pytest.raises(PermissionDeniedError):
        asyncio.run(retry_with_backoff(fn, sleep=sleep))

    assert fn.await_count == 1


def test_untyped_network_error_is_retried():
    fn = AsyncMock(side_effect=[ConnectionError("reset by peer"), "done"])
    sleep, delays = _recording_sleep()

    assert asyncio.run(retry_with_backoff(fn, sleep=sleep)) == "done"
    assert delays == [1.0]


def test_invalid_attempts():
    with pytest.raises(ValueError):
        asyncio.run(retry_with_backoff(AsyncMock(), attempts=0))


def test_with_timeout_raises_typed_error():
    async def slow():
        await asyncio.sleep(1)
        return "late"

    with pytest.raises(GenerationTimeoutError, match="Item timed out after 0.01s"):
        asyncio.run(with_timeout(slow(), 0.01, what="Item"))


def test_with_timeout_passes_result_through():
    async def fast():
        return "quick"

    assert asyncio.run(with_timeout(fast(), 1)) == "quick"


def test_timeout_is_retryable():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise GenerationTimeoutError("Item timed out after 60s")
        return "second time lucky"

    sleep, delays = _recording_sleep()
    assert asyncio.run(retry_with_backoff(flaky, sleep=sleep)) == "second time lucky"
    assert delays == [1.0]
