"""
Retry with caller-provided backoff.

The delay before attempt k (k >= 2) is delays[min(k - 2, len(delays) - 1)],
so a short schedule keeps repeating its last entry.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

import aiohttp
import discord

from arc_countdown import config

T = TypeVar("T")

DEFAULT_DELAYS = (1.0, 2.0, 4.0)

DISCORD_MISSING_PERMISSIONS = 50013


def _always(_error: BaseException) -> bool:
    return True


async def execute(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    delays: Sequence[float] = DEFAULT_DELAYS,
    is_retryable: Callable[[BaseException], bool] = _always,
    label: str = "operation",
) -> T:
    attempts = max(1, int(max_attempts or 1))

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            if attempt >= attempts or not is_retryable(e):
                print(f"[RETRY] {label} failed after {attempt} attempt(s): {type(e).__name__}: {e}")
                raise

            delay = delays[min(attempt - 1, len(delays) - 1)] if delays else 0
            print(
                f"[RETRY] {label} failed on attempt {attempt}/{attempts}, "
                f"retrying in {delay}s: {type(e).__name__}: {e}"
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            print(f"[RETRY] {label} succeeded on attempt {attempt}")
        return result

    raise AssertionError("unreachable")


def is_retryable_discord_error(error: BaseException) -> bool:
    """Rate limits and the permission-check race Discord reports as 50013."""
    if isinstance(error, asyncio.TimeoutError):
        return True
    if isinstance(error, discord.HTTPException):
        return error.status == 429 or error.code == DISCORD_MISSING_PERMISSIONS
    return False


def is_retryable_reddit_error(error: BaseException) -> bool:
    """Connection resets, DNS failures, timeouts and 5xx responses."""
    if isinstance(error, asyncio.TimeoutError):
        return True
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status >= 500
    return isinstance(error, aiohttp.ClientConnectionError)


async def send_discord_message(
    channel,
    *,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
    **kwargs,
) -> discord.Message:
    """Each attempt is bounded by the HTTP timeout; a timed-out attempt counts as retryable."""
    if timeout is None:
        timeout = config.HTTP_TIMEOUT_SECONDS
    return await execute(
        lambda: asyncio.wait_for(channel.send(**kwargs), timeout=timeout),
        max_attempts=config.DISCORD_RETRY_ATTEMPTS if max_attempts is None else max_attempts,
        delays=config.DISCORD_RETRY_DELAYS,
        is_retryable=is_retryable_discord_error,
        label=f"Discord message send to channel {getattr(channel, 'id', '?')}",
    )
