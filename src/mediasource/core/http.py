"""
Thin async HTTP transport used by every plugin.

Plugins never talk to aiohttp directly; they go through an object exposing
``get(url, params=None, headers=None) -> HttpResponse``. The production
implementation, `AiohttpClient`, owns one `aiohttp.ClientSession`. Tests
substitute a scripted fake with the same method.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import aiohttp

from .errors import ConnectionFailed

logger = logging.getLogger(__name__)

USER_AGENT = "mediasource/0.1 (+https://github.com/mediasource/mediasource)"


@dataclass(frozen=True)
class HttpResponse:
    code: int
    status: str
    body: str
    url: str = ""

    @property
    def is_ok(self) -> bool:
        return 200 <= self.code < 300


class HttpClient(Protocol):
    async def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse: ...


def _stringify(params: Mapping[str, Any]) -> dict[str, str]:
    # aiohttp rejects bools and None in query strings
    out: dict[str, str] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            v = "true" if v else "false"
        out[str(k)] = str(v)
    return out


class AiohttpClient:
    """`HttpClient` backed by a shared aiohttp session.

    Use as an async context manager, or pass an existing session that the
    caller keeps ownership of.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        timeout: float = 20.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.user_agent = user_agent

    async def __aenter__(self) -> "AiohttpClient":
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    async def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        if self.session is None:
            raise RuntimeError("HTTP client must be used within an active session.")
        try:
            async with self.session.get(
                url, params=_stringify(params or {}), headers=dict(headers or {})
            ) as response:
                body = await response.text()
                return HttpResponse(
                    code=response.status,
                    status=response.reason or "",
                    body=body,
                    url=str(response.url),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("http.get.failed", extra={"url": url, "error": repr(e)})
            raise ConnectionFailed(f"Request to {url} failed: {e}") from e
