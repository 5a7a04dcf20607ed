"""Retry with exponential backoff for transient connection failures.

Usage:
    config = RetryConfig(max_attempts=3, base_delay=1.0)
    response = await with_retry_async(
        send_request, config, retry_on=(httpx.TransportError,), cancel_event=event
    )

Delays are ``base_delay * 2 ** attempt`` after failed attempt ``attempt``
(1-indexed): 2s, 4s, 8s with the default base. A delay is only waited when
another attempt follows.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .config import AppConfig
from .errors import RequestAborted, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "RetryConfig":
        return cls(max_attempts=max(1, config.max_retries), base_delay=config.retry_base_delay)


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """Delay in seconds after failed attempt ``attempt`` (1-indexed)."""
    return config.base_delay * (2**attempt)


async def sleep_or_abort(delay: float, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for ``delay`` seconds, waking early if ``cancel_event`` is set.

    Raises:
        RequestAborted: If the event is set before the delay elapses.
    """
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    if cancel_event.is_set():
        raise RequestAborted()
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise RequestAborted()


async def await_or_abort(
    awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event] = None
) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises:
        RequestAborted: If the event is set before the awaitable completes.
            The awaitable is cancelled.
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestAborted()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)

    if work.cancelled():
        raise RequestAborted()
    return work.result()


async def with_retry_async(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig,
    retry_on: Tuple[Type[BaseException], ...],
    context: str = "Request",
    cancel_event: Optional[asyncio.Event] = None,
) -> T:
    """Await ``fn()`` and retry it on the given exception types.

    Exceptions not listed in ``retry_on`` propagate immediately.

    Raises:
        TransportError: When every attempt failed with a retryable error.
        RequestAborted: When ``cancel_event`` fires during a backoff delay.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            last_error = e
            reason = "Request timeout" if isinstance(e, asyncio.TimeoutError) else str(e)
            logger.warning(
                "%s attempt %d/%d failed: %s",
                context,
                attempt,
                config.max_attempts,
                reason or type(e).__name__,
            )
            if attempt < config.max_attempts:
                delay = calculate_backoff(attempt, config)
                logger.info("Retrying in %.1fs...", delay)
                await sleep_or_abort(delay, cancel_event)

    detail = "Request timeout" if isinstance(last_error, asyncio.TimeoutError) else str(last_error)
    raise TransportError(
        f"{context} failed after {config.max_attempts} attempts: "
        f"{detail or 'Unknown error'}",
        attempts=config.max_attempts,
        last_error=last_error,
    )
