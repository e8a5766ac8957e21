import time

import pytest

from conftest import FakeHttp, ok
from mediasource.core.caller import ResilientCaller
from mediasource.core.config import MediaSourceSettings
from mediasource.core.context import SourceContext
from mediasource.core.ratelimit import AsyncRateLimiter


class CountingLimiter:
    def __init__(self):
        self.acquired = 0

    async def acquire(self):
        self.acquired += 1


@pytest.mark.asyncio
async def test_limiter_waits_once_the_bucket_is_empty():
    limiter = AsyncRateLimiter(2, per=0.05)

    start = time.monotonic()
    await limiter.acquire()
    await limiter.acquire()
    burst = time.monotonic() - start
    await limiter.acquire()
    total = time.monotonic() - start

    assert burst < 0.02
    assert total >= 0.02


def test_limiter_rate_is_at_least_one():
    assert AsyncRateLimiter(0).rate == 1


def test_from_settings_wires_limiter_only_when_configured():
    http = FakeHttp()

    unlimited = ResilientCaller.from_settings(http, "", MediaSourceSettings())
    limited = ResilientCaller.from_settings(http, "", MediaSourceSettings(requests_per_second=5))

    assert unlimited.limiter is None
    assert isinstance(limited.limiter, AsyncRateLimiter)
    assert limited.limiter.rate == 5


@pytest.mark.asyncio
async def test_every_request_acquires_a_token():
    http = FakeHttp().add("/tracks", ok({"results": []}))
    limiter = CountingLimiter()
    caller = ResilientCaller.from_settings(
        http, "https://api.example.com", MediaSourceSettings(retry_delay=0), limiter=limiter
    )

    await caller.call("/tracks", context=SourceContext())
    await caller.call("/tracks", context=SourceContext())

    assert limiter.acquired == 2
