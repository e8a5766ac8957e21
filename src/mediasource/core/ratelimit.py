import asyncio
import time


class AsyncRateLimiter:
    """A simple async rate limiter using a token bucket approach.

    Allows up to `rate` upstream requests per `per` seconds.
    """

    def __init__(self, rate: int, per: float = 1.0) -> None:
        self.rate = max(1, int(rate))
        self.per = float(per)
        self._tokens = self.rate
        self._updated = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                now = time.monotonic()
                refill = int((now - self._updated) * (self.rate / self.per))
                if refill > 0:
                    self._tokens = min(self.rate, self._tokens + refill)
                    self._updated = now
                if self._tokens > 0:
                    self._tokens -= 1
                    return
            # Sleep long enough for 1 token
            await asyncio.sleep(self.per / self.rate)
