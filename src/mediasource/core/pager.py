"""
Incremental loading helper for the host's scrolling UI.

A `Pager` holds a query (captured in ``fetch``) and an offset. It keeps no
results: every call re-issues the query.

``fetch`` returns either the mapped records or a `Batch` that also carries
how many entries the upstream sent. Records dropped by a mapper then do not
end pagination early.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, NamedTuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Batch(NamedTuple):
    items: list
    received: int


Fetch = Callable[[int], Awaitable[Union[list[T], Batch]]]


class Pager(Generic[T]):
    def __init__(self, fetch: Fetch, page_size: int, *, paginates: bool = True, offset: int = 0) -> None:
        self._fetch = fetch
        self.page_size = page_size
        self.paginates = paginates
        self.offset = offset
        self._last_count: int | None = None

    async def get_results(self) -> list[T]:
        """Fetch the page at the current offset."""
        result = await self._fetch(self.offset)
        if isinstance(result, Batch):
            self._last_count = result.received
            return result.items
        self._last_count = len(result)
        return result

    async def next_page(self) -> list[T]:
        """Advance one page and fetch it. Non-paginating pagers return nothing."""
        if not self.paginates:
            return []
        self.offset += self.page_size
        logger.debug("pager.next_page", extra={"offset": self.offset})
        return await self.get_results()

    def has_more(self) -> bool:
        if not self.paginates:
            return False
        if self._last_count is None:
            return True
        return self._last_count >= self.page_size
