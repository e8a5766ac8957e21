"""
Defines the abstract base class for all source plugins.

This module provides the `BasePlugin` ABC, which establishes the operation
set every source plugin (Jamendo, Archive.org, Pluto TV, Suno) exposes to
the host. Plugins stay independent of each other; this class only fixes the
seams: the listing operations, the lookup operations, the session state
round trip and the HTTP session lifecycle.

Listing operations (home, search and its typed variants) never raise: they
degrade to an empty `ResultPage` carrying a message. Lookup operations
(channel, playlist, content details) raise typed `MediaSourceError`s so the
host can tell "not found" from "empty".
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional

from ..core.config import MediaSourceSettings, get_settings
from ..core.context import SourceContext
from ..core.errors import MediaSourceError
from ..core.http import AiohttpClient, HttpClient
from ..core.models import ChannelRecord, CollectionRecord, MediaRecord, ResultPage

logger = logging.getLogger(__name__)


class BasePlugin(ABC):
    """An abstract base class that all source plugins must inherit from."""

    name: str = ""
    platform: str = ""

    def __init__(
        self,
        *,
        http: HttpClient | None = None,
        settings: MediaSourceSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.http: HttpClient | None = http
        self._owned_http: AiohttpClient | None = None

    async def __aenter__(self):
        if self.http is None:
            self._owned_http = AiohttpClient(timeout=self.settings.http_timeout)
            await self._owned_http.__aenter__()
            self.http = self._owned_http
        self._setup()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._owned_http is not None:
            await self._owned_http.close()
            self._owned_http = None
            self.http = None

    def _setup(self) -> None:
        """Build per-session helpers once `self.http` is available."""

    # ---- session state ---------------------------------------------------

    def enable(self, saved_state: Optional[str] = None) -> SourceContext:
        """Start a host session, restoring the opaque state blob if any."""
        return SourceContext.restore(saved_state)

    def save_state(self, context: SourceContext) -> str:
        return context.dump()

    # ---- listing ---------------------------------------------------------

    async def _degrade(self, op: str, coro: Awaitable[ResultPage], message: str) -> ResultPage:
        """Await a listing coroutine, turning failures into an empty page."""
        try:
            return await coro
        except MediaSourceError as e:
            logger.error(f"{self.name}.{op}.failed", extra={"error": str(e)})
            return ResultPage.failed(f"{message} {e}".strip())
        except Exception:
            # The host must never see a listing crash
            logger.exception(f"{self.name}.{op}.crashed")
            return ResultPage.failed(message)

    @abstractmethod
    async def get_home(self, context: SourceContext) -> ResultPage:
        """Landing feed for the source."""

    @abstractmethod
    async def search(self, query: str, context: SourceContext) -> ResultPage:
        """Search playable content."""

    async def search_channels(self, query: str, context: SourceContext) -> ResultPage:
        return ResultPage()

    async def search_playlists(self, query: str, context: SourceContext) -> ResultPage:
        return ResultPage()

    # ---- lookup ----------------------------------------------------------

    @abstractmethod
    async def get_channel(self, channel_id: str, context: SourceContext) -> ChannelRecord:
        """Channel/artist with its first page of content embedded."""

    async def get_playlist(self, playlist_id: str, context: SourceContext) -> CollectionRecord:
        raise MediaSourceError(f"{self.platform} has no playlists")

    @abstractmethod
    async def get_content_details(self, url: str, context: SourceContext) -> MediaRecord:
        """Full record for one item, with playable streams resolved."""
