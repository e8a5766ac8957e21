"""
Suno plugin: AI-generated music from the Suno studio API (https://suno.com).

Typed search maps songs to media records, users to channels and playlists
to collections. An untyped search merges all three into one page.
Besides the regular operations the plugin hands out `Pager` objects for
hosts that scroll incrementally.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..core.caller import ResilientCaller
from ..core.context import SourceContext
from ..core.errors import InvalidUrlError, MediaSourceError, NotFoundError
from ..core.mapping import (
    dig,
    map_batch,
    parse_timestamp_ms,
    require_id,
    seconds_to_ms,
    text,
    to_int,
    tolerant_mapper,
)
from ..core.models import (
    AuthorLink,
    ChannelRecord,
    CollectionRecord,
    MediaRecord,
    Record,
    ResultPage,
    StreamSource,
    Thumbnail,
)
from ..core.pager import Batch, Pager
from .base import BasePlugin

logger = logging.getLogger(__name__)

SEARCH_URL = "https://studio-api.suno.ai/api/search/"
STUDIO_API_URL = "https://studio-api.prod.suno.com/api"
SUNO_URL = "https://suno.com"

SEARCH_LIMIT = 30

# search type -> key of the result list in the response
SEARCH_KEYS = {"song": "clips", "user": "users", "playlist": "playlists"}

_SONG_URL = re.compile(r"/song/([0-9A-Za-z-]+)")
_CLIP_ID = re.compile(r"^[0-9A-Za-z-]+$")


def _profile_url(handle: str) -> str:
    return f"{SUNO_URL}/@{handle}" if handle else ""


def _user_link(user: Optional[dict]) -> AuthorLink:
    user = user or {}
    handle = text(user.get("handle"))
    return AuthorLink(
        id=text(user.get("id")) or handle,
        name=text(user.get("display_name"), "Unknown"),
        url=_profile_url(handle),
        thumbnail=text(user.get("avatar_url")),
    )


class SunoMapper:
    def __init__(self, *, missing_timestamp: str) -> None:
        self.missing_timestamp = missing_timestamp

    @tolerant_mapper
    def clip(self, clip: dict) -> MediaRecord:
        clip_id = require_id(clip, "id")
        image = text(clip.get("image_url")) or f"https://cdn2.suno.ai/image_{clip_id}.jpeg?width=360"
        url = f"{SUNO_URL}/song/{clip_id}"
        return MediaRecord(
            id=clip_id,
            name=text(clip.get("title"), "Untitled"),
            author=_user_link(clip.get("user")),
            url=url,
            share_url=url,
            thumbnails=[Thumbnail(url=image)],
            duration_ms=seconds_to_ms(clip.get("duration") or dig(clip, "metadata", "duration")),
            view_count=to_int(clip.get("play_count")),
            likes=to_int(clip.get("upvote_count")),
            datetime_ms=parse_timestamp_ms(clip.get("created_at"), self.missing_timestamp),
            description=text(dig(clip, "metadata", "prompt")) or text(clip.get("gpt_description_prompt")),
        )

    @tolerant_mapper
    def user(self, user: dict) -> ChannelRecord:
        user_id = require_id(user, "id")
        return ChannelRecord(
            id=user_id,
            name=text(user.get("display_name")) or text(user.get("handle"), "Unknown"),
            url=_profile_url(text(user.get("handle"))),
            thumbnail=text(user.get("avatar_url")),
            description=text(user.get("bio")),
            subscribers=-1,
        )

    @tolerant_mapper
    def playlist(self, playlist: dict) -> CollectionRecord:
        playlist_id = require_id(playlist, "id")
        return CollectionRecord(
            id=playlist_id,
            name=text(playlist.get("name"), "Untitled"),
            author=_user_link(playlist.get("user")),
            url=f"{SUNO_URL}/playlist/{playlist_id}",
            thumbnail=text(playlist.get("image_url")),
            item_count=to_int(playlist.get("clip_count")),
            description=text(playlist.get("description")),
        )


def clip_id_from_url(url: str) -> str:
    match = _SONG_URL.search(url)
    if match:
        return match.group(1)
    if _CLIP_ID.match(url.strip()):
        return url.strip()
    raise InvalidUrlError("Invalid song URL. Expected format: .../song/<id>")


class SunoPlugin(BasePlugin):
    name = "suno"
    platform = "Suno"

    def _setup(self) -> None:
        self.api = ResilientCaller.from_settings(self.http, "", self.settings, name="suno.api")
        self.mapper = SunoMapper(missing_timestamp=self.settings.missing_timestamp)
        self._mappers = {"song": self.mapper.clip, "user": self.mapper.user, "playlist": self.mapper.playlist}

    async def _search_items(
        self, query: str, kind: Optional[str], offset: int, context: SourceContext
    ) -> Batch:
        """Run one search page. Without ``kind`` clips, users and playlists are merged.

        ``received`` is the largest raw list the upstream sent, before any
        record was dropped by a mapper.
        """
        params = {"q": query, "limit": SEARCH_LIMIT, "offset": offset}
        if kind:
            params["type"] = kind
        primary = kind or "song"
        payload = await self.api.call(
            SEARCH_URL, params, context=context, results_path=(SEARCH_KEYS[primary],)
        )
        items: list[Record] = []
        received = 0
        for k in [kind] if kind else list(SEARCH_KEYS):
            raw = payload.results if k == primary else payload.body.get(SEARCH_KEYS[k])
            if not isinstance(raw, list):
                continue
            received = max(received, len(raw))
            items.extend(map_batch(raw, self._mappers[k]))
        logger.info(
            "suno.search",
            extra={"query": query, "type": kind or "all", "received": received, "mapped": len(items)},
        )
        return Batch(items, received)

    async def _search_page(self, query: str, kind: Optional[str], context: SourceContext) -> ResultPage:
        offset = context.offset(SEARCH_LIMIT)
        batch = await self._search_items(query, kind, offset, context)
        return ResultPage.paged(batch.items, batch.received >= SEARCH_LIMIT, context.page)

    # ---- listing ---------------------------------------------------------

    async def _popular(self, context: SourceContext) -> CollectionRecord:
        clips = (await self._search_items("", "song", 0, context)).items
        return CollectionRecord(
            id="popular_songs",
            name="Popular Songs",
            author=AuthorLink(id="suno", name="Suno", url=SUNO_URL),
            url=f"{SUNO_URL}/search?type=song",
            thumbnail="https://cdn2.suno.ai/image_placeholder.jpeg",
            item_count=len(clips),
            items=clips,
        )

    async def _home(self, context: SourceContext) -> ResultPage:
        return ResultPage(items=[await self._popular(context)], has_more=False)

    async def get_home(self, context: SourceContext) -> ResultPage:
        return await self._degrade("get_home", self._home(context), "Could not load the home feed.")

    async def search(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search",
            self._search_page(query, None, context),
            "Failed to perform search. Please try again.",
        )

    async def search_channels(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search_channels",
            self._search_page(query, "user", context),
            "Failed to search for channels. Please try again.",
        )

    async def search_playlists(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search_playlists",
            self._search_page(query, "playlist", context),
            "Failed to search for playlists. Please try again.",
        )

    # ---- lookup ----------------------------------------------------------

    async def get_channel(self, channel_id: str, context: SourceContext) -> ChannelRecord:
        payload = await self.api.call(
            f"{STUDIO_API_URL}/profiles/{channel_id}/recent_clips", context=context
        )
        videos = map_batch(payload.results, self.mapper.clip)
        logger.info("suno.get_channel", extra={"channel_id": channel_id, "clips": len(videos)})
        return ChannelRecord(
            id=channel_id,
            name=channel_id,
            url=_profile_url(channel_id),
            subscribers=-1,
            videos=ResultPage(items=videos, has_more=False),
        )

    async def get_playlist(self, playlist_id: str, context: SourceContext) -> CollectionRecord:
        payload = await self.api.call(
            f"{STUDIO_API_URL}/playlists/{playlist_id}/", context=context, results_path=("clips",)
        )
        data = payload.body
        if not data.get("id"):
            raise NotFoundError(f"Playlist not found: {playlist_id}")
        videos = map_batch(payload.results, self.mapper.clip)
        logger.info("suno.get_playlist", extra={"playlist_id": playlist_id, "clips": len(videos)})
        return CollectionRecord(
            id=text(data.get("id")),
            name=text(data.get("name"), "Untitled"),
            author=_user_link(data.get("user")),
            url=f"{SUNO_URL}/playlist/{data.get('id')}",
            thumbnail=text(data.get("image_url")),
            item_count=len(videos),
            items=videos,
            description=text(data.get("description")),
        )

    async def get_content_details(self, url: str, context: SourceContext) -> MediaRecord:
        clip_id = clip_id_from_url(url)
        payload = await self.api.call(f"{STUDIO_API_URL}/clips/{clip_id}/", context=context)
        clip = payload.body
        video = self.mapper.clip(clip)
        if video is None:
            raise NotFoundError(f"Song not found: {clip_id}")
        audio = text(clip.get("audio_url"))
        streams = (
            [StreamSource(url=audio, kind="audio", container="audio/mpeg", codec="mp3", name="MP3")]
            if audio
            else []
        )
        return video.model_copy(update={"streams": streams})

    # ---- pagers ----------------------------------------------------------

    def search_pager(self, query: str, context: SourceContext, kind: Optional[str] = "song") -> Pager[Record]:
        if kind is not None and kind not in SEARCH_KEYS:
            raise ValueError(f"Unknown search type: {kind}")

        async def fetch(offset: int) -> Batch:
            return await self._search_items(query, kind, offset, context)

        return Pager(fetch, SEARCH_LIMIT)

    def home_pager(self, context: SourceContext) -> Pager[CollectionRecord]:
        async def fetch(offset: int) -> list[CollectionRecord]:
            try:
                return [await self._popular(context)]
            except MediaSourceError as e:
                logger.warning("suno.home_pager.failed", extra={"error": str(e)})
                return []

        return Pager(fetch, SEARCH_LIMIT, paginates=False)

    def playlist_pager(self, playlist_id: str, context: SourceContext) -> Pager[MediaRecord]:
        async def fetch(offset: int) -> list[MediaRecord]:
            try:
                return (await self.get_playlist(playlist_id, context)).items
            except MediaSourceError as e:
                logger.warning("suno.playlist_pager.failed", extra={"playlist_id": playlist_id, "error": str(e)})
                return []

        return Pager(fetch, SEARCH_LIMIT, paginates=False)

    def channel_pager(self, channel_id: str, context: SourceContext) -> Pager[Record]:
        async def fetch(offset: int) -> list[Record]:
            try:
                channel = await self.get_channel(channel_id, context)
            except MediaSourceError as e:
                logger.warning("suno.channel_pager.failed", extra={"channel_id": channel_id, "error": str(e)})
                return []
            return channel.videos.items if channel.videos else []

        return Pager(fetch, SEARCH_LIMIT, paginates=False)
