"""
Field-mapping helpers shared by the plugins.

Upstream payloads are loosely typed: numbers arrive as strings, fields go
missing, dates come in several shapes. These helpers coerce each field to a
safe default instead of failing. Only a missing identifier is fatal, and only
for the single record being mapped (`PartialMappingError`, absorbed by
`tolerant_mapper`).
"""

from __future__ import annotations

import functools
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar
from urllib.parse import quote

from .errors import PartialMappingError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_IMAGE_PROXY = "https://imgproxy.ra.co/_/quality:75/plain/{token}"

MISSING_NOW = "now"
MISSING_EPOCH = "epoch"

_LEADING_NUMBER = re.compile(r"^\s*[-+]?\d+")


def to_int(value: Any, default: int = 0) -> int:
    """Lenient integer coercion: 12, 12.9, "12", "12.9", "12 tracks" all give 12."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else default
    m = _LEADING_NUMBER.match(str(value))
    return int(m.group(0)) if m else default


def text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s or default


def seconds_to_ms(value: Any) -> int:
    return to_int(value) * 1000


def popularity(*counters: Any) -> int:
    return sum(to_int(c) for c in counters)


def is_absolute(url: Any) -> bool:
    return isinstance(url, str) and url.startswith(("http://", "https://"))


def proxied_image(value: Any, template: str = DEFAULT_IMAGE_PROXY) -> str:
    """Absolute URLs pass through; anything else is an opaque proxy token."""
    if not value:
        return ""
    if is_absolute(value):
        return value
    return template.format(token=quote(str(value), safe="!*'()"))


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp_ms(value: Any, missing: str = MISSING_NOW) -> int:
    """Epoch milliseconds for an upstream date.

    ``missing`` decides what an absent or unparseable date becomes: ``"now"``
    keeps the item at the top of recency-sorted views, ``"epoch"`` gives 0.
    Naive dates are taken as UTC.
    """
    parsed = _parse_datetime(value)
    if parsed is None:
        return now_ms() if missing == MISSING_NOW else 0
    return int(parsed.timestamp() * 1000)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # seconds vs milliseconds
        secs = value / 1000 if value > 10**11 else value
        return datetime.fromtimestamp(secs, tz=timezone.utc)
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def top_tags(tags: Any, limit: int = 5) -> str:
    """``{"rock": 3, "pop": 7}`` -> ``"#pop #rock"``; heaviest first."""
    if not isinstance(tags, Mapping):
        return ""
    ranked = sorted(tags.items(), key=lambda kv: to_int(kv[1]), reverse=True)
    return " ".join(f"#{tag}" for tag, _ in ranked[:limit])


def require_id(record: Any, *keys: str) -> str:
    """First non-empty identifier among ``keys``; `PartialMappingError` if none."""
    if isinstance(record, Mapping):
        for key in keys:
            value = record.get(key)
            if value is not None and str(value).strip() != "":
                return str(value)
    raise PartialMappingError(f"record has no identifier ({'/'.join(keys)})")


def dig(record: Any, *path: str, default: Any = None) -> Any:
    cur = record
    for key in path:
        if not isinstance(cur, Mapping):
            return default
        cur = cur.get(key)
    return default if cur is None else cur


def tolerant_mapper(func: Callable[..., T]) -> Callable[..., Optional[T]]:
    """Turn any mapping failure into ``None`` so one bad record never sinks a batch."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return func(*args, **kwargs)
        except PartialMappingError as e:
            logger.warning("mapping.skipped", extra={"mapper": func.__name__, "reason": str(e)})
        except Exception:
            logger.exception("mapping.failed", extra={"mapper": func.__name__})
        return None

    return wrapper


def map_batch(records: Iterable[Any], mapper: Callable[[Any], Optional[T]]) -> list[T]:
    out: list[T] = []
    for record in records or []:
        mapped = mapper(record)
        if mapped is not None:
            out.append(mapped)
    return out
