"""
HTML helpers for upstreams that expose no JSON for a given page.

Uses BeautifulSoup with the stdlib ``html.parser`` backend. Link extraction
follows the same heuristics for every site: the anchor's heading text, else
its image ``alt``, else its own text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .errors import NotFoundError, RequestFailed
from .http import HttpClient
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapedLink:
    url: str
    title: str
    thumbnail: str = ""


@dataclass(frozen=True)
class PageMeta:
    title: str = ""
    description: str = ""
    image: str = ""


async def fetch_html(
    http: HttpClient,
    url: str,
    settings,
    *,
    headers: Optional[Mapping[str, str]] = None,
) -> str:
    """GET a page body, retrying transient failures. 404 raises `NotFoundError`."""

    async def _once() -> str:
        response = await http.get(url, None, headers)
        if response.code == 404:
            raise NotFoundError(f"Page not found: {url}")
        if not response.is_ok:
            raise RequestFailed(response.code, response.status)
        return response.body

    return await retry_with_backoff(
        _once,
        attempts=settings.max_attempts,
        base=settings.retry_delay,
        cap=settings.backoff_cap,
        jitter=0.0,
    )


def soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _anchor_title(el: Tag, title_selector: str) -> str:
    heading = el.select_one(title_selector)
    if heading is not None and heading.get_text(strip=True):
        return heading.get_text(strip=True)
    img = el.find("img")
    if isinstance(img, Tag) and img.get("alt"):
        return str(img.get("alt")).strip()
    return el.get_text(" ", strip=True)


def extract_links(
    html: str,
    selector: str,
    base_url: str,
    *,
    accept: Callable[[str], bool],
    title_selector: str = "h3, .title",
    limit: Optional[int] = None,
) -> list[ScrapedLink]:
    """Anchors matching ``selector`` whose href passes ``accept``, de-duplicated by URL."""
    doc = soup(html)
    seen: set[str] = set()
    links: list[ScrapedLink] = []
    for el in doc.select(selector):
        href = el.get("href")
        if not href or not accept(str(href)):
            continue
        url = urljoin(base_url, str(href))
        title = _anchor_title(el, title_selector)
        if not title or url in seen:
            continue
        img = el.find("img")
        thumb = str(img.get("src") or "") if isinstance(img, Tag) else ""
        seen.add(url)
        links.append(ScrapedLink(url=url, title=title, thumbnail=thumb))
        if limit is not None and len(links) >= limit:
            break
    logger.debug("scrape.links", extra={"selector": selector, "count": len(links)})
    return links


def page_meta(html: str) -> PageMeta:
    doc = soup(html)
    title_el = doc.select_one("h1, .title")
    desc_el = doc.select_one(".description, .summary")
    og_title = doc.select_one('meta[property="og:title"]')
    og_image = doc.select_one('meta[property="og:image"]')
    title = title_el.get_text(strip=True) if title_el else ""
    if not title and og_title is not None:
        title = str(og_title.get("content") or "").strip()
    return PageMeta(
        title=title,
        description=desc_el.get_text(strip=True) if desc_el else "",
        image=str(og_image.get("content") or "") if og_image is not None else "",
    )
