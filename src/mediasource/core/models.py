"""
Canonical records handed to the host.

Every plugin maps its upstream payloads to these models. They are created
fresh on each mapping call and frozen once constructed.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Thumbnail(_Record):
    url: str
    width: int = 0
    height: int = 0


class AuthorLink(_Record):
    id: str = ""
    name: str = ""
    url: str = ""
    thumbnail: str = ""


class StreamSource(_Record):
    """A playable stream descriptor."""

    url: str
    kind: Literal["video", "audio"] = "video"
    container: str = ""
    codec: str = ""
    name: str = ""
    width: int = 0
    height: int = 0
    bitrate: int = 0


class MediaRecord(_Record):
    id: str
    name: str
    author: AuthorLink = Field(default_factory=AuthorLink)
    url: str = ""
    share_url: str = ""
    thumbnails: list[Thumbnail] = Field(default_factory=list)
    duration_ms: int = 0
    view_count: int = 0
    likes: int = 0
    is_live: bool = False
    datetime_ms: int = 0
    description: str = ""
    streams: list[StreamSource] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)


class ChannelRecord(_Record):
    id: str
    name: str
    url: str = ""
    thumbnail: str = ""
    banner: str = ""
    description: str = ""
    # -1 or 0: unknown, not "zero followers"
    subscribers: int = -1
    links: dict[str, str] = Field(default_factory=dict)
    videos: Optional["ResultPage"] = None


class CollectionRecord(_Record):
    id: str
    name: str
    author: AuthorLink = Field(default_factory=AuthorLink)
    url: str = ""
    thumbnail: str = ""
    item_count: int = 0
    items: list[MediaRecord] = Field(default_factory=list)
    has_more: bool = False
    next_page: Optional[int] = None
    description: str = ""
    extra: dict[str, Any] = Field(default_factory=dict)


Record = Union[MediaRecord, ChannelRecord, CollectionRecord]


class ResultPage(_Record):
    items: list[Record] = Field(default_factory=list)
    has_more: bool = False
    next_page: Optional[int] = None
    title: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def paged(cls, items: list, has_more: bool, page: int, **kwargs: Any) -> "ResultPage":
        return cls(items=items, has_more=has_more, next_page=page + 1 if has_more else None, **kwargs)

    @classmethod
    def failed(cls, message: str, **kwargs: Any) -> "ResultPage":
        return cls(items=[], has_more=False, error=message, **kwargs)


ChannelRecord.model_rebuild()
