from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar
from prompt_builder.core.errors import GenerationTimeoutError, is_retryable

log = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], seconds: float, what: str = "Request") -> T:
    """Await ``awaitable`` but give up after ``seconds`` with a typed timeout error."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise GenerationTimeoutError(f"{what} timed out after {seconds:g}s") from e


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
    extra: dict | None = None,
) -> T:
    """
    Call ``fn`` until it succeeds, at most ``attempts`` times.

    The delay after the n-th failure is ``base_delay * 2 ** (n - 1)``.
    Errors classified as validation, quota or permission failures are
    re-raised on the first occurrence.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e):
                log.warning("%s failed with non-retryable error: %s", label, e, extra=extra)
                raise
            if attempt >= attempts:
                log.error("%s failed after %d attempts: %s", label, attempts, e, extra=extra)
                raise
            delay = base_delay * (2 ** (attempt - 1))
            log.warning("%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        label, attempt, attempts, delay, e, extra=extra)
            await sleep(delay)

    raise AssertionError("unreachable")
