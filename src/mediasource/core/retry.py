import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from .errors import TransientUpstreamError

T = TypeVar("T")


def backoff_delay(attempt: int, *, base: float, cap: float, jitter: float = 0.0) -> float:
    """Exponential delay for the given 1-based attempt, capped, plus optional jitter."""
    if base <= 0:
        return 0.0
    delay = min(base * (2 ** (max(attempt, 1) - 1)), cap)
    if jitter > 0:
        delay += random.uniform(0, jitter)
    return delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base: float = 0.5,
    cap: float = 5.0,
    jitter: float = 0.25,
    retry_on: Tuple[Type[BaseException], ...] = (TransientUpstreamError,),
) -> T:
    """Await a coroutine factory with exponential backoff and jitter.

    Args:
        func: Callable without args returning a fresh awaitable per attempt.
        attempts: Total attempts, including the first.
        base: Base delay seconds.
        cap: Maximum backoff seconds.
        jitter: Random jitter added up to this many seconds.
        retry_on: Exception types that trigger another attempt.

    Returns:
        The awaited value.

    Raises:
        The last exception if all attempts are exhausted.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on:
            attempt += 1
            if attempt >= attempts:
                raise
            await asyncio.sleep(backoff_delay(attempt, base=base, cap=cap, jitter=jitter))
