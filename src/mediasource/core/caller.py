"""
Resilient caller: one logical upstream request with retry and credential rotation.

Outcome classification per attempt:

- 2xx: parse JSON and classify (see `core.payload`). A payload-level error
  is retried like an auth/rate-limit failure.
- 401/403/429: rotate to the next credential of the pool (when it holds more
  than one) and wait an escalating backoff.
- 404: `NotFoundError` straight away.
- anything else, or a transport failure: wait the fixed delay and retry.
- malformed JSON: `InvalidResponse` straight away.

The attempt budget counts every request, including the first one. The
rotation pointer is read from and written back to the `SourceContext`, so a
failure in one call shifts the starting credential of the next call made
with the same context.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from .context import SourceContext
from .errors import ApiError, ConnectionFailed, NotFoundError, RequestFailed, TransientUpstreamError
from .http import HttpClient
from .payload import ErrorProbe, Payload, classify_payload, parse_json
from .ratelimit import AsyncRateLimiter
from .retry import backoff_delay

logger = logging.getLogger(__name__)

ROTATE_STATUSES = frozenset({401, 403, 429})


def next_credential_index(index: int, pool_size: int) -> int:
    """Index of the credential to use after ``index`` in a pool of ``pool_size``."""
    if pool_size <= 0:
        return 0
    return (index + 1) % pool_size


class ResilientCaller:
    def __init__(
        self,
        http: HttpClient,
        base_url: str = "",
        *,
        credentials: Sequence[str] = (),
        credential_param: Optional[str] = None,
        fixed_params: Optional[Mapping[str, Any]] = None,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        backoff_cap: float = 8.0,
        error_probe: ErrorProbe | None = None,
        limiter: AsyncRateLimiter | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "caller",
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.credentials = list(credentials)
        self.credential_param = credential_param
        self.fixed_params = dict(fixed_params or {})
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = retry_delay
        self.backoff_cap = backoff_cap
        self.error_probe = error_probe
        self.limiter = limiter
        self._sleep = sleep
        self.name = name

    @classmethod
    def from_settings(cls, http: HttpClient, base_url: str, settings, **kwargs) -> "ResilientCaller":
        kwargs.setdefault("max_attempts", settings.max_attempts)
        kwargs.setdefault("retry_delay", settings.retry_delay)
        kwargs.setdefault("backoff_cap", settings.backoff_cap)
        if settings.requests_per_second and "limiter" not in kwargs:
            kwargs["limiter"] = AsyncRateLimiter(settings.requests_per_second)
        return cls(http, base_url, **kwargs)

    def current_credential(self, context: SourceContext) -> Optional[str]:
        if not self.credentials:
            return None
        return self.credentials[context.credential_index % len(self.credentials)]

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def call(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        context: SourceContext,
        results_path: Sequence[str] = ("results",),
        headers: Optional[Mapping[str, str]] = None,
    ) -> Payload:
        """Run the request until it yields a payload or the budget is spent.

        Raises:
            NotFoundError: upstream answered 404.
            InvalidResponse: the body is not JSON.
            RequestFailed: last attempt ended with a non-2xx status.
            ApiError: last attempt carried an application-level error.
            ConnectionFailed: last attempt never got a response.
        """
        url = self._url(endpoint)
        attempt = 0
        while True:
            attempt += 1
            request_params = {**self.fixed_params, **(params or {})}
            credential = self.current_credential(context)
            if credential is not None and self.credential_param:
                request_params[self.credential_param] = credential
            if self.limiter:
                await self.limiter.acquire()

            logger.debug(
                f"{self.name}.request",
                extra={"url": url, "params": request_params, "attempt": attempt},
            )
            failure: TransientUpstreamError
            rotate = False
            try:
                response = await self.http.get(url, request_params, headers)
            except ConnectionFailed as e:
                failure = e
            else:
                logger.debug(
                    f"{self.name}.response",
                    extra={"url": url, "code": response.code, "status": response.status},
                )
                if response.is_ok:
                    outcome = classify_payload(
                        parse_json(response.body), results_path, self.error_probe
                    )
                    if isinstance(outcome, Payload):
                        return outcome
                    failure = ApiError(outcome.message)
                    rotate = True
                elif response.code == 404:
                    raise NotFoundError(f"Not found: {url}")
                else:
                    failure = RequestFailed(response.code, response.status)
                    rotate = response.code in ROTATE_STATUSES

            if attempt >= self.max_attempts:
                logger.error(
                    f"{self.name}.exhausted",
                    extra={"url": url, "attempts": attempt, "error": str(failure)},
                )
                raise failure

            logger.warning(
                f"{self.name}.retry",
                extra={"url": url, "attempt": attempt, "error": str(failure)},
            )
            await self._wait(attempt, context, rotate)

    async def _wait(self, attempt: int, context: SourceContext, rotate: bool) -> None:
        if rotate and len(self.credentials) > 1:
            context.credential_index = next_credential_index(
                context.credential_index, len(self.credentials)
            )
            logger.info(
                f"{self.name}.rotate_credential",
                extra={"credential_index": context.credential_index},
            )
            delay = backoff_delay(attempt, base=self.retry_delay, cap=self.backoff_cap)
        else:
            delay = self.retry_delay
        await self._sleep(delay)
