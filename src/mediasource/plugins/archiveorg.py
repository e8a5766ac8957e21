"""
Internet Archive plugin (https://archive.org).

Home and search go through the advanced search JSON API, content details
through the item metadata API. Channel (collection) pages have no JSON
counterpart and are scraped.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlparse

from ..core.caller import ResilientCaller
from ..core.context import SourceContext
from ..core.errors import InvalidUrlError, NoPlayableStreamError, NotFoundError
from ..core.mapping import (
    map_batch,
    parse_timestamp_ms,
    require_id,
    text,
    to_int,
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

ARCHIVE_URL = "https://archive.org"
SEARCH_ROWS = 20

VIDEO_FORMATS = ("MPEG4", "MP4", "H.264", "h.264", "Ogg Video", "WebM", "Matroska", "AVI", "MPEG2", "MPEG1")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogv", ".avi", ".mkv", ".mpeg", ".mpg", ".m4v")


def _first(value: Any) -> Any:
    # metadata fields may be repeated
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _joined(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(text(v) for v in value if text(v))
    return text(value)


def identifier_from_url(url: str) -> str:
    """``https://archive.org/details/foo/`` -> ``foo``; a bare identifier passes through."""
    path = urlparse(url).path if "://" in url else url
    identifier = path.rstrip("/").split("/")[-1]
    if not identifier:
        raise InvalidUrlError("Invalid Archive.org URL: missing identifier")
    return identifier


def _is_video_file(f: dict) -> bool:
    fmt = text(f.get("format"))
    if fmt and any(v in fmt for v in VIDEO_FORMATS):
        return True
    name = text(f.get("name")).lower()
    return bool(name) and name.endswith(VIDEO_EXTENSIONS)


def _file_priority(f: dict) -> int:
    fmt = text(f.get("format"))
    if "h.264" in fmt or "MP4" in fmt:
        return 1
    if "MPEG4" in fmt:
        return 2
    return 3


def _length_seconds(value: Any) -> int:
    """File ``length`` is either seconds ("1234.5") or a clock ("01:02:03")."""
    s = text(value)
    if ":" in s:
        total = 0
        for part in s.split(":"):
            total = total * 60 + to_int(part)
        return total
    return to_int(s)


def _container(name: str) -> str:
    lower = name.lower()
    if lower.endswith((".mp4", ".m4v")):
        return "video/mp4"
    if lower.endswith(".webm"):
        return "video/webm"
    if lower.endswith(".ogv"):
        return "video/ogg"
    return "video/mp4"


class ArchiveOrgPlugin(BasePlugin):
    name = "archiveorg"
    platform = "Archive.org"

    def _setup(self) -> None:
        self.api = ResilientCaller.from_settings(
            self.http, ARCHIVE_URL, self.settings, name="archiveorg.api"
        )
        self.missing_timestamp = self.settings.missing_timestamp

    @tolerant_mapper
    def _doc_to_video(self, doc: dict, thumbnail: str = "") -> MediaRecord:
        identifier = require_id(doc, "identifier")
        creator = _joined(doc.get("creator"))
        return MediaRecord(
            id=identifier,
            name=text(_first(doc.get("title")), "Unknown Title"),
            author=AuthorLink(id=creator, name=creator or "Archive.org"),
            url=f"{ARCHIVE_URL}/details/{identifier}",
            share_url=f"{ARCHIVE_URL}/details/{identifier}",
            thumbnails=[
                Thumbnail(url=thumbnail or f"{ARCHIVE_URL}/services/img/{quote(identifier)}")
            ],
            view_count=to_int(doc.get("downloads")),
            datetime_ms=parse_timestamp_ms(
                _first(doc.get("publicdate")) or _first(doc.get("date")), self.missing_timestamp
            ),
            description=_joined(doc.get("description")),
        )

    def _link_to_video(self, link: ScrapedLink) -> MediaRecord:
        return MediaRecord(
            id=link.url,
            name=link.title,
            author=AuthorLink(name="Internet Archive"),
            url=link.url,
            share_url=link.url,
            thumbnails=[Thumbnail(url=link.thumbnail)] if link.thumbnail else [],
        )

    async def _advanced_search(self, q: str, sort: str, context: SourceContext) -> ResultPage:
        payload = await self.api.call(
            "/advancedsearch.php",
            {"q": q, "sort[]": sort, "rows": SEARCH_ROWS, "output": "json"},
            context=context,
            results_path=("response", "docs"),
        )
        videos = map_batch(payload.results, self._doc_to_video)
        return ResultPage(items=videos, has_more=False)

    # ---- listing ---------------------------------------------------------

    async def get_home(self, context: SourceContext) -> ResultPage:
        logger.info("archiveorg.get_home")
        return await self._degrade(
            "get_home",
            self._advanced_search("mediatype:(movies)", "-week", context),
            "Could not load the home feed.",
        )

    async def search(self, query: str, context: SourceContext) -> ResultPage:
        query = (query or "").strip()
        if not query:
            return ResultPage()
        logger.info("archiveorg.search", extra={"query": query})
        return await self._degrade(
            "search",
            self._advanced_search(f"{query} mediatype:(movies OR video)", "downloads desc", context),
            "Failed to perform search. Please try again.",
        )

    # ---- lookup ----------------------------------------------------------

    async def get_channel(self, channel_id: str, context: SourceContext) -> ChannelRecord:
        url = channel_id if "://" in channel_id else f"{ARCHIVE_URL}/details/{channel_id}"
        html = await fetch_html(self.http, url, self.settings)
        meta = page_meta(html)
        links = extract_links(
            html,
            'a[href*="/details/"]',
            ARCHIVE_URL,
            accept=lambda href: "/details/" in href and href.rstrip("/") != urlparse(url).path.rstrip("/"),
            title_selector="h3, .title, .item-title",
        )
        videos = [self._link_to_video(link) for link in links]
        logger.info("archiveorg.get_channel", extra={"url": url, "videos": len(videos)})
        return ChannelRecord(
            id=url,
            name=meta.title or "Unknown Channel",
            url=url,
            thumbnail=meta.image,
            description=meta.description,
            subscribers=0,
            videos=ResultPage(items=videos, has_more=False),
        )

    async def get_content_details(self, url: str, context: SourceContext) -> MediaRecord:
        identifier = identifier_from_url(url)
        payload = await self.api.call(
            f"/metadata/{quote(identifier)}", context=context, results_path=("files",)
        )
        metadata = payload.body
        if not metadata.get("metadata"):
            # unknown identifiers come back as {}
            raise NotFoundError(f"Archive.org item not found: {identifier}")

        video_files = [f for f in payload.results if isinstance(f, dict) and _is_video_file(f)]
        if not video_files:
            raise NoPlayableStreamError(
                "No video file found in Archive.org item. "
                "This item may be audio-only or a different media type."
            )
        video_files.sort(key=_file_priority)

        host = text(metadata.get("d1"))
        directory = text(metadata.get("dir"))
        streams = []
        for f in video_files:
            name = text(f.get("name"))
            container = _container(name)
            streams.append(
                StreamSource(
                    url=f"https://{host}{directory}/{quote(name)}",
                    kind="video",
                    container=container,
                    codec="h264" if container == "video/mp4" else "vp8",
                    name=text(f.get("format")) or name.rsplit(".", 1)[-1].upper(),
                    width=to_int(f.get("width")) or 1920,
                    height=to_int(f.get("height")) or 1080,
                    bitrate=0,
                )
            )

        info = metadata.get("metadata") or {}
        doc = {
            "identifier": identifier,
            "title": info.get("title"),
            "creator": info.get("creator"),
            "description": info.get("description"),
            "publicdate": info.get("publicdate"),
            "downloads": (metadata.get("item") or {}).get("downloads", 0),
        }
        thumb = f"https://{host}{directory}/__ia_thumb.jpg" if host and directory else ""
        video = self._doc_to_video(doc, thumb)
        if video is None:
            raise NotFoundError(f"Archive.org item not found: {identifier}")
        logger.info(
            "archiveorg.get_content_details",
            extra={"identifier": identifier, "streams": len(streams)},
        )
        return video.model_copy(
            update={
                "streams": streams,
                "duration_ms": _length_seconds(video_files[0].get("length")) * 1000,
            }
        )
