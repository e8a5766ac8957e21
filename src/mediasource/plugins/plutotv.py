"""
Pluto TV plugin: free live channels and on-demand titles (https://pluto.tv).

Live channels come from the public channel list and play through the
channel stitcher. On-demand titles are scraped from the web pages and only
shown when a bearer token is configured (``msrc config set-token plutotv``
or ``MSRC_PLUTOTV_BEARER_TOKEN``); the token is passed through untouched as
an ``authorization`` header.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

from ..core.auth import get_credentials
from ..core.caller import ResilientCaller
from ..core.context import SourceContext
from ..core.errors import (
    MalformedResponseError,
    MediaSourceError,
    NotFoundError,
    TransientUpstreamError,
)
from ..core.mapping import (
    dig,
    map_batch,
    now_ms,
    parse_timestamp_ms,
    require_id,
    seconds_to_ms,
    text,
    tolerant_mapper,
)
from ..core.models import (
    AuthorLink,
    ChannelRecord,
    MediaRecord,
    ResultPage,
    StreamSource,
    Thumbnail,
)
from ..core.scrape import ScrapedLink, extract_links, fetch_html, page_meta
from .base import BasePlugin

logger = logging.getLogger(__name__)

PLUTO_URL = "https://pluto.tv"
CHANNELS_URL = "https://api.pluto.tv/v2/channels.json"
VOD_ITEMS_URL = "https://service-vod.clusters.pluto.tv/v4/vod/items"
BOOT_URL = "https://boot.pluto.tv/v4/start"
STITCHER_URL = (
    "https://cfd-v4-service-channel-stitcher-use1-1.prd.pluto.tv/v2/stitch/hls/channel/{id}/master.m3u8"
    "?advertisingId=&appName=web&appVersion=9.18.0&clientDeviceType=0&deviceDNT=false"
    "&deviceMake=web&deviceType=web&serverSideAds=false"
)

LIVE_LIMIT = 50
TOTAL_LIMIT = 100

HLS = "application/x-mpegURL"
DASH = "application/dash+xml"

_CHANNEL_ID = re.compile(r"/live-tv/([a-f0-9]{24})")
_CHANNEL_SLUG = re.compile(r"/live-tv/([^/?]+)")
_VOD_SLUG = re.compile(r"/on-demand/(?:movies|series)/([^/?]+)")

PLUTO_AUTHOR = AuthorLink(name="Pluto TV")


def _is_vod_href(href: str) -> bool:
    return "/movies/" in href or "/series/" in href


class PlutoTVPlugin(BasePlugin):
    name = "plutotv"
    platform = "Pluto TV"

    def _setup(self) -> None:
        self.api = ResilientCaller.from_settings(self.http, "", self.settings, name="plutotv.api")
        self.region = self.settings.plutotv_region
        self.content = self.settings.plutotv_content

    @property
    def wants_live(self) -> bool:
        return self.content in ("live", "both")

    @property
    def wants_ondemand(self) -> bool:
        return self.content in ("ondemand", "both")

    def auth_token(self, context: SourceContext) -> Optional[str]:
        return context.state.get("auth_token") or get_credentials("plutotv", "bearer_token")

    def _auth_headers(self, context: SourceContext) -> dict[str, str]:
        token = self.auth_token(context)
        return {"authorization": f"Bearer {token}"} if token else {}

    # ---- mapping ---------------------------------------------------------

    def live_url(self, slug: str) -> str:
        return f"{PLUTO_URL}/{self.region}/live-tv/{slug}"

    @tolerant_mapper
    def _channel_to_video(self, channel: dict) -> MediaRecord:
        url = self.live_url(require_id(channel, "slug"))
        thumb = text(dig(channel, "thumbnail", "path"))
        return MediaRecord(
            id=url,
            name=text(channel.get("name"), "Unknown Channel"),
            author=PLUTO_AUTHOR,
            url=url,
            share_url=url,
            thumbnails=[Thumbnail(url=thumb)] if thumb else [],
            is_live=True,
            datetime_ms=now_ms(),
            description=text(channel.get("summary")),
        )

    def _link_to_video(self, link: ScrapedLink) -> MediaRecord:
        return MediaRecord(
            id=link.url,
            name=link.title,
            author=PLUTO_AUTHOR,
            url=link.url,
            share_url=link.url,
            thumbnails=[Thumbnail(url=link.thumbnail)] if link.thumbnail else [],
        )

    def _placeholder(self, url: str, name: str, description: str = "") -> MediaRecord:
        return MediaRecord(id=url, name=name, author=PLUTO_AUTHOR, url=url, share_url=url, description=description)

    # ---- upstream --------------------------------------------------------

    async def _channels(self, context: SourceContext) -> list[dict]:
        payload = await self.api.call(CHANNELS_URL, context=context)
        return [c for c in payload.results if isinstance(c, dict)]

    async def _live(self, context: SourceContext, query: str = "") -> list[MediaRecord]:
        channels = await self._channels(context)
        if query:
            q = query.lower()
            channels = [
                c
                for c in channels
                if q in text(c.get("name")).lower() or q in text(c.get("summary")).lower()
            ]
        return map_batch(channels, self._channel_to_video)[:LIVE_LIMIT]

    async def _ondemand(self, url: str, taken: list[MediaRecord]) -> list[MediaRecord]:
        """Scraped on-demand titles, skipping URLs already in ``taken``."""
        try:
            html = await fetch_html(self.http, url, self.settings)
        except MediaSourceError as e:
            logger.warning("plutotv.ondemand.failed", extra={"url": url, "error": str(e)})
            return []
        seen = {v.url for v in taken}
        links = extract_links(
            html,
            'a[href*="/on-demand/"]',
            PLUTO_URL,
            accept=_is_vod_href,
            title_selector="h3, .title, .video-title",
        )
        videos = [self._link_to_video(link) for link in links if link.url not in seen]
        return videos[: max(TOTAL_LIMIT - len(taken), 0)]

    async def _feed(self, context: SourceContext, query: str = "") -> ResultPage:
        videos: list[MediaRecord] = []
        if self.wants_live:
            videos.extend(await self._live(context, query))
        if self.wants_ondemand and self.auth_token(context):
            if query:
                url = f"{PLUTO_URL}/{self.region}/search?q={quote(query)}"
            else:
                url = f"{PLUTO_URL}/{self.region}/on-demand"
            videos.extend(await self._ondemand(url, videos))
        logger.info("plutotv.feed", extra={"query": query, "count": len(videos)})
        return ResultPage(items=videos, has_more=False)

    # ---- listing ---------------------------------------------------------

    async def get_home(self, context: SourceContext) -> ResultPage:
        return await self._degrade("get_home", self._feed(context), "Could not load the home feed.")

    async def search(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search", self._feed(context, query), "Failed to perform search. Please try again."
        )

    async def get_live_streams(self, context: SourceContext) -> ResultPage:
        if not self.wants_live:
            return ResultPage()

        async def live() -> ResultPage:
            return ResultPage(items=await self._live(context), has_more=False)

        return await self._degrade("get_live_streams", live(), "Could not load live channels.")

    # ---- lookup ----------------------------------------------------------

    async def get_channel(self, channel_id: str, context: SourceContext) -> ChannelRecord:
        # Channels are surfaced as live videos; there is no channel page to resolve
        return ChannelRecord(
            id=channel_id,
            name="Unknown Channel",
            url=channel_id,
            subscribers=0,
            videos=ResultPage(),
        )

    async def get_content_details(self, url: str, context: SourceContext) -> MediaRecord:
        if "/live-tv/" in url:
            return await self._live_details(url, context)
        if "/on-demand/" in url:
            return await self._ondemand_details(url, context)
        return self._placeholder(url, "Unknown Content")

    async def _live_details(self, url: str, context: SourceContext) -> MediaRecord:
        channels = await self._channels(context)
        match = _CHANNEL_ID.search(url)
        if match:
            wanted = match.group(1)
            channel = next((c for c in channels if wanted in (c.get("_id"), c.get("id"))), None)
        else:
            slug_match = _CHANNEL_SLUG.search(url)
            slug = slug_match.group(1) if slug_match else ""
            channel = next((c for c in channels if c.get("slug") == slug), None)
        if channel is None:
            raise NotFoundError(f"Pluto TV channel not found: {url}")

        channel_id = text(channel.get("_id")) or text(channel.get("id"))
        thumb = text(dig(channel, "thumbnail", "path"))
        logger.info("plutotv.live_details", extra={"channel_id": channel_id})
        return MediaRecord(
            id=url,
            name=text(channel.get("name"), "Unknown Channel"),
            author=PLUTO_AUTHOR,
            url=url,
            share_url=url,
            thumbnails=[Thumbnail(url=thumb)] if thumb else [],
            is_live=True,
            datetime_ms=now_ms(),
            description=text(channel.get("summary")) or text(channel.get("description")),
            streams=[
                StreamSource(
                    url=STITCHER_URL.format(id=channel_id),
                    kind="video",
                    container=HLS,
                    codec="h264",
                    name="Live Stream",
                    width=1920,
                    height=1080,
                )
            ],
        )

    async def _ondemand_streams(self, slug: str, headers: dict, context: SourceContext) -> list[StreamSource]:
        """Resolve HLS and DASH sources for a title. A failed lookup yields no streams."""
        try:
            start = await self.api.call(
                BOOT_URL,
                {
                    "appName": "web",
                    "appVersion": "9",
                    "clientID": "9",
                    "clientModelNumber": "9",
                    "drmCapabilities": "widevine:L3",
                    "episodeSlugs": slug,
                },
                context=context,
                results_path=("sources",),
                headers=headers,
            )
        except (NotFoundError, TransientUpstreamError, MalformedResponseError) as e:
            logger.warning("plutotv.boot.failed", extra={"slug": slug, "error": str(e)})
            return []
        return [
            StreamSource(
                url=text(source.get("url")),
                kind="video",
                container=HLS if source.get("type") == "hls" else DASH,
                codec="h264",
                name=text(source.get("type")).upper(),
                width=1920,
                height=1080,
            )
            for source in start.results
            if isinstance(source, dict) and source.get("type") in ("hls", "dash") and source.get("url")
        ]

    async def _ondemand_details(self, url: str, context: SourceContext) -> MediaRecord:
        if not self.auth_token(context):
            return self._placeholder(
                url,
                "Authentication Required",
                "Please provide a Pluto TV Bearer token in settings to access on-demand content.",
            )
        match = _VOD_SLUG.search(url)
        if not match:
            return self._placeholder(url, "Unknown Content")
        slug = match.group(1)
        headers = self._auth_headers(context)

        try:
            items = await self.api.call(VOD_ITEMS_URL, {"ids": slug}, context=context, headers=headers)
            results = items.results
        except (NotFoundError, TransientUpstreamError, MalformedResponseError) as e:
            logger.warning("plutotv.vod_items.failed", extra={"slug": slug, "error": str(e)})
            results = []
        if results and isinstance(results[0], dict):
            item = results[0]
            streams = await self._ondemand_streams(slug, headers, context)
            thumb = text(item.get("thumbnail"))
            logger.info("plutotv.ondemand_details", extra={"slug": slug, "streams": len(streams)})
            return MediaRecord(
                id=url,
                name=text(item.get("name")) or text(item.get("title"), "Unknown Title"),
                author=PLUTO_AUTHOR,
                url=url,
                share_url=url,
                thumbnails=[Thumbnail(url=thumb)] if thumb else [],
                duration_ms=seconds_to_ms(item.get("duration")),
                datetime_ms=parse_timestamp_ms(item.get("created"), self.settings.missing_timestamp),
                description=text(item.get("description")) or text(item.get("summary")),
                streams=streams,
            )

        logger.info("plutotv.ondemand_details.scrape_fallback", extra={"slug": slug})
        meta = page_meta(await fetch_html(self.http, url, self.settings))
        return MediaRecord(
            id=url,
            name=meta.title or "Unknown Title",
            author=PLUTO_AUTHOR,
            url=url,
            share_url=url,
            thumbnails=[Thumbnail(url=meta.image)] if meta.image else [],
            description=meta.description,
        )
