"""
Jamendo plugin: royalty-free music catalog (https://developer.jamendo.com/v3.0).

Features:
- Rotating pool of public client ids; a 401/403/429 or a payload reporting
  ``headers.status == "failed"`` moves to the next id
- Tracks map to media records, artists to channels, albums to collections
- Home feed falls back to a bare popularity query when the full one is empty
- Content details resolve the mp3 stream
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from ..core.caller import ResilientCaller
from ..core.context import SourceContext
from ..core.errors import InvalidUrlError, NotFoundError
from ..core.mapping import (
    dig,
    map_batch,
    parse_timestamp_ms,
    popularity,
    proxied_image,
    require_id,
    seconds_to_ms,
    text,
    to_int,
    tolerant_mapper,
    top_tags,
)
from ..core.models import (
    AuthorLink,
    ChannelRecord,
    CollectionRecord,
    MediaRecord,
    ResultPage,
    StreamSource,
    Thumbnail,
)
from .base import BasePlugin

logger = logging.getLogger(__name__)

JAMENDO_API_URL = "https://api.jamendo.com/v3.0"
JAMENDO_WEB_URL = "https://www.jamendo.com"

TRACK_FIELDS = (
    "id,name,duration,artist_id,artist_name,artist_idstr,album_name,album_id,releasedate,"
    "album_image,audio,audiodownload,shareurl,musicinfo,likes,downloads,listens"
)
DETAIL_FIELDS = TRACK_FIELDS + ",artist_image,tags,lyrics"
HOME_FIELDS = "id,name,duration,artist_id,artist_name,album_image,audio,shareurl,listens"
ARTIST_FIELDS = "id,name,image,website,fans"
ALBUM_FIELDS = "id,name,artist_id,artist_name,releasedate,image,tracks_count"

_TRACK_URL = re.compile(r"track/(\d+)")
_SHORT_SECONDS = 60


def _api_error(data: Any) -> Optional[str]:
    headers = data.get("headers") if isinstance(data, dict) else None
    if isinstance(headers, dict) and headers.get("status") == "failed":
        return headers.get("error_message") or "Unknown API error"
    return None


def _artist_url(artist_id: Any) -> str:
    return f"{JAMENDO_WEB_URL}/artist/{artist_id or 'unknown'}"


class JamendoMapper:
    """Upstream dict -> canonical record. Every method returns None on a bad record."""

    def __init__(self, *, image_proxy: str, missing_timestamp: str) -> None:
        self.image_proxy = image_proxy
        self.missing_timestamp = missing_timestamp

    def _thumbnails(self, track: dict) -> list[Thumbnail]:
        image = proxied_image(track.get("album_image") or track.get("image"), self.image_proxy)
        return [Thumbnail(url=image, width=300, height=300)] if image else []

    @tolerant_mapper
    def track(self, track: dict) -> MediaRecord:
        track_id = require_id(track, "id")
        share = text(track.get("shareurl")) or f"{JAMENDO_WEB_URL}/track/{track_id}"
        return MediaRecord(
            id=track_id,
            name=text(track.get("name"), "Unknown Track"),
            author=AuthorLink(
                id=text(track.get("artist_id"), "unknown"),
                name=text(track.get("artist_name"), "Unknown Artist"),
                url=_artist_url(track.get("artist_id")),
                thumbnail=text(track.get("artist_image")),
            ),
            url=share,
            share_url=share,
            thumbnails=self._thumbnails(track),
            duration_ms=seconds_to_ms(track.get("duration")),
            view_count=popularity(track.get("downloads"), track.get("listens")),
            likes=to_int(track.get("likes")),
            is_live=False,
            datetime_ms=parse_timestamp_ms(track.get("releasedate"), self.missing_timestamp),
            description=text(dig(track, "musicinfo", "description")),
        )

    @tolerant_mapper
    def artist(self, artist: dict) -> ChannelRecord:
        artist_id = require_id(artist, "id")
        return ChannelRecord(
            id=artist_id,
            name=text(artist.get("name"), "Unknown Artist"),
            url=_artist_url(artist_id),
            thumbnail=text(artist.get("image")),
            description=text(artist.get("website")),
            subscribers=to_int(artist.get("fans")),
        )

    @tolerant_mapper
    def album(self, album: dict) -> CollectionRecord:
        album_id = require_id(album, "id")
        release = text(album.get("releasedate"))
        return CollectionRecord(
            id=album_id,
            name=text(album.get("name"), "Unknown Album"),
            author=AuthorLink(
                id=text(album.get("artist_id")),
                name=text(album.get("artist_name"), "Unknown Artist"),
                url=_artist_url(album.get("artist_idstr") or album.get("artist_id")),
            ),
            url=f"{JAMENDO_WEB_URL}/album/{album_id}",
            thumbnail=text(album.get("image")),
            item_count=to_int(album.get("tracks_count")),
            description=f"Released: {release}" if release else "",
        )


class JamendoPlugin(BasePlugin):
    name = "jamendo"
    platform = "Jamendo"

    def _setup(self) -> None:
        s = self.settings
        self.page_size = s.page_size
        self.api = ResilientCaller.from_settings(
            self.http,
            JAMENDO_API_URL,
            s,
            credentials=s.jamendo_client_ids,
            credential_param="client_id",
            fixed_params={"format": "json", "limit": s.page_size},
            error_probe=_api_error,
            name="jamendo.api",
        )
        self.mapper = JamendoMapper(
            image_proxy=s.image_proxy_template, missing_timestamp=s.missing_timestamp
        )

    def _has_more(self, payload, offset: int) -> bool:
        total = to_int(payload.header("results_count"))
        return total > offset + len(payload.results)

    # ---- listing ---------------------------------------------------------

    async def get_home(self, context: SourceContext) -> ResultPage:
        return await self._degrade("get_home", self._home(context), "Could not load the home feed.")

    async def _home(self, context: SourceContext) -> ResultPage:
        offset = context.offset(self.page_size)
        logger.info("jamendo.get_home", extra={"page": context.page, "offset": offset})
        payload = await self.api.call(
            "/tracks",
            {
                "order": "popularity_total",
                "offset": offset,
                "limit": self.page_size,
                "audioformat": "mp32",
                "fields": HOME_FIELDS,
            },
            context=context,
        )
        if not payload.results:
            logger.info("jamendo.get_home.basic_fallback")
            payload = await self.api.call(
                "/tracks", {"order": "popularity_total", "limit": self.page_size}, context=context
            )
        videos = map_batch(payload.results, self.mapper.track)
        if not videos:
            logger.warning("jamendo.get_home.empty")
            return ResultPage(title="Popular Tracks")
        has_more = len(payload.results) >= self.page_size
        return ResultPage.paged(videos, has_more, context.page, title="Popular Tracks")

    async def search(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search", self._search(query, context), "Failed to perform search. Please try again."
        )

    async def _search(self, query: str, context: SourceContext) -> ResultPage:
        offset = context.offset(self.page_size)
        payload = await self.api.call(
            "/tracks",
            {
                "search": query,
                "offset": offset,
                "limit": self.page_size,
                "include": "musicinfo",
                "fields": TRACK_FIELDS,
                "audioformat": "mp32",
            },
            context=context,
        )
        videos = map_batch(payload.results, self.mapper.track)
        has_more = self._has_more(payload, offset)
        logger.info(
            "jamendo.search",
            extra={"query": query, "received": len(payload.results), "mapped": len(videos)},
        )
        return ResultPage.paged(videos, has_more, context.page)

    async def search_channels(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search_channels",
            self._search_typed("/artists", query, context, ARTIST_FIELDS, self.mapper.artist),
            "Failed to search for channels. Please try again.",
        )

    async def search_playlists(self, query: str, context: SourceContext) -> ResultPage:
        return await self._degrade(
            "search_playlists",
            self._search_typed(
                "/albums",
                query,
                context,
                ALBUM_FIELDS,
                self.mapper.album,
                order="releasedate_desc",
            ),
            "Failed to search for playlists. Please try again.",
        )

    async def _search_typed(self, endpoint, query, context, fields, mapper, **extra) -> ResultPage:
        offset = context.offset(self.page_size)
        payload = await self.api.call(
            endpoint,
            {
                "name": query,
                "offset": offset,
                "limit": self.page_size,
                "fields": fields,
                "hasimage": "1",
                **extra,
            },
            context=context,
        )
        items = map_batch(payload.results, mapper)
        return ResultPage.paged(items, self._has_more(payload, offset), context.page)

    # ---- lookup ----------------------------------------------------------

    async def get_channel(self, channel_id: str, context: SourceContext) -> ChannelRecord:
        offset = context.offset(self.page_size)
        artist_data = await self.api.call(
            "/artists",
            {
                "id": channel_id,
                "fields": "id,name,image,website,fans,joindate,track_count,album_count",
                "include": "stats",
            },
            context=context,
        )
        if not artist_data.results:
            raise NotFoundError(f"Artist not found: {channel_id}")
        artist = artist_data.results[0]
        logger.info("jamendo.get_channel", extra={"artist_id": channel_id, "artist": artist.get("name")})

        tracks = await self.api.call(
            "/artists/tracks",
            {
                "id": channel_id,
                "offset": offset,
                "limit": self.page_size,
                "fields": TRACK_FIELDS,
                "order": "popularity_total",
                "audioformat": "mp32",
            },
            context=context,
        )
        # /artists/tracks nests the tracks under each artist entry
        raw_tracks = tracks.results
        if raw_tracks and isinstance(raw_tracks[0], dict) and "tracks" in raw_tracks[0]:
            raw_tracks = raw_tracks[0].get("tracks") or []
        videos = map_batch(raw_tracks, self.mapper.track)
        total = to_int(tracks.header("results_count"))
        has_more = total > offset + len(raw_tracks)

        website = text(artist.get("website"))
        return ChannelRecord(
            id=text(artist.get("id"), channel_id),
            name=text(artist.get("name"), "Unknown Artist"),
            url=_artist_url(artist.get("id") or channel_id),
            thumbnail=text(artist.get("image")),
            description=(
                f"Joined {artist.get('joindate') or 'N/A'} • "
                f"{to_int(artist.get('track_count'))} tracks • "
                f"{to_int(artist.get('album_count'))} albums"
            ),
            subscribers=to_int(artist.get("fans")),
            links={"Website": website} if website else {},
            videos=ResultPage.paged(videos, has_more, context.page),
        )

    async def get_playlist(self, playlist_id: str, context: SourceContext) -> CollectionRecord:
        offset = context.offset(self.page_size)
        album_data = await self.api.call(
            "/albums",
            {
                "id": playlist_id,
                "fields": "id,name,artist_id,artist_name,releasedate,image,tracks_count,genre,tags,upc,artist_idstr",
                "include": "musicinfo,stats",
            },
            context=context,
        )
        if not album_data.results:
            raise NotFoundError(f"Album not found: {playlist_id}")
        album = album_data.results[0]

        tracks = await self.api.call(
            "/albums/tracks",
            {
                "id": playlist_id,
                "offset": offset,
                "limit": self.page_size,
                "fields": TRACK_FIELDS,
                "audioformat": "mp32",
                "order": "track_num",
            },
            context=context,
        )
        raw_tracks = tracks.results
        if raw_tracks and isinstance(raw_tracks[0], dict) and "tracks" in raw_tracks[0]:
            raw_tracks = raw_tracks[0].get("tracks") or []
        videos = map_batch(raw_tracks, self.mapper.track)
        total = to_int(album.get("tracks_count")) or to_int(tracks.header("results_count"))
        has_more = total > offset + len(raw_tracks)

        lines = []
        if album.get("releasedate"):
            lines.append(f"Released: {album['releasedate']}")
        if album.get("genre"):
            lines.append(f"Genre: {album['genre']}")
        tags = top_tags(album.get("tags"))
        if tags:
            lines.append(f"Tags: {tags}")

        logger.info(
            "jamendo.get_playlist",
            extra={"album_id": playlist_id, "tracks": len(videos), "has_more": has_more},
        )
        return CollectionRecord(
            id=text(album.get("id"), playlist_id),
            name=text(album.get("name"), "Unknown Album"),
            author=AuthorLink(
                id=text(album.get("artist_id")),
                name=text(album.get("artist_name"), "Unknown Artist"),
                url=_artist_url(album.get("artist_idstr") or album.get("artist_id")),
            ),
            url=f"{JAMENDO_WEB_URL}/album/{album.get('id') or playlist_id}",
            thumbnail=text(album.get("image")),
            item_count=to_int(album.get("tracks_count")),
            items=videos,
            description="\n".join(lines),
            has_more=has_more,
            next_page=context.page + 1 if has_more else None,
            extra={
                "release_date": album.get("releasedate"),
                "genre": album.get("genre"),
                "upc": album.get("upc"),
            },
        )

    async def get_content_details(self, url: str, context: SourceContext) -> MediaRecord:
        match = _TRACK_URL.search(url)
        if match:
            track_id = match.group(1)
        elif url.strip().isdigit():
            track_id = url.strip()
        else:
            raise InvalidUrlError("Invalid track URL. Expected format: .../track/123")

        data = await self.api.call(
            "/tracks",
            {
                "id": track_id,
                "include": "musicinfo,stats",
                "fields": DETAIL_FIELDS,
                "audioformat": "mp32",
            },
            context=context,
        )
        if not data.results:
            raise NotFoundError(f"Track not found: {track_id}")
        track = data.results[0]
        base = self.mapper.track(track)
        if base is None:
            raise NotFoundError(f"Track not found: {track_id}")

        parts = []
        info = text(dig(track, "musicinfo", "description"))
        if info:
            parts.append(info + "\n")
        if track.get("releasedate"):
            parts.append(f"Released: {track['releasedate']}")
        tags = top_tags(track.get("tags"))
        if tags:
            parts.append(f"Tags: {tags}")
        has_lyrics = bool(dig(track, "lyrics", "lyrics"))
        if has_lyrics:
            parts.append("\nLyrics available")

        streams = []
        audio = text(track.get("audio")) or text(track.get("audiodownload"))
        if audio:
            streams.append(
                StreamSource(
                    url=audio,
                    kind="audio",
                    container="audio/mpeg",
                    codec="mp3",
                    name="MP3",
                    bitrate=192000,
                )
            )

        album = None
        if track.get("album_name"):
            album_id = text(track.get("album_id"))
            album = {
                "id": album_id,
                "name": track.get("album_name"),
                "url": f"{JAMENDO_WEB_URL}/album/{album_id}" if album_id else None,
            }

        logger.info("jamendo.get_content_details", extra={"track_id": track_id, "streams": len(streams)})
        return base.model_copy(
            update={
                "description": "\n".join(parts).strip(),
                "author": base.author.model_copy(
                    update={"url": _artist_url(track.get("artist_idstr") or track.get("artist_id"))}
                ),
                "streams": streams,
                "extra": {
                    "album": album,
                    "is_short": 0 < to_int(track.get("duration")) <= _SHORT_SECONDS,
                    "has_lyrics": has_lyrics,
                },
            }
        )
