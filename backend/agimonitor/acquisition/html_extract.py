"""Article extraction from listing pages (fetched or rendered)."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from agimonitor.acquisition.sitemap import slug_to_title
from agimonitor.acquisition.sources import SourceConfig
from agimonitor.acquisition.url_safety import check_url
from agimonitor.evidence.language import normalize_date
from agimonitor.models.documents import Document, build_document

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"(\d{4}[./-]\d{1,2}[./-]\d{1,2}|\d{4}\s*年\s*\d{1,2}\s*月\s*\d{1,2}\s*日?)")
MIN_BLOCK_CHARS = 40
MIN_TITLE_CHARS = 6
CONTENT_PREVIEW_CHARS = 500


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _resolve_link(href: str, base_url: str) -> str | None:
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:")):
        return None
    url = href if href.startswith("http") else urljoin(base_url, href)
    if not check_url(url).safe:
        return None
    return url


def _element_link(element: Tag, link_selector: str) -> str:
    if link_selector:
        link = element.select_one(link_selector)
        return str(link.get("href", "")) if link is not None else ""
    if element.name == "a":
        return str(element.get("href", ""))
    return ""


def extract_with_selectors(html: str, source: SourceConfig, page_url: str | None = None) -> list[Document]:
    """Apply the source's selector triple to a listing page."""
    base_url = page_url or source.url
    soup = BeautifulSoup(html, "html.parser")
    documents: list[Document] = []
    seen: set[str] = set()

    for element in soup.select(source.selector):
        title_el = element.select_one(source.title_selector) if source.title_selector else None
        content_el = element.select_one(source.content_selector) if source.content_selector else None
        title = _squash(title_el.get_text(" ")) if title_el is not None else ""
        content = _squash(content_el.get_text(" ")) if content_el is not None else ""
        url = _resolve_link(_element_link(element, source.link_selector), base_url) or ""

        if source.slug_title_fallback:
            if not title and url:
                title = slug_to_title(url)
            if not content:
                content = _squash(element.get_text(" "))[:CONTENT_PREVIEW_CHARS]

        if not title or not content or not url:
            continue
        key = f"{url}\n{title}"
        if key in seen:
            continue
        seen.add(key)
        documents.append(build_document(source=source.name, url=url, title=title, content=content))
    return documents


def discover_articles(
    html: str,
    base_url: str,
    source_name: str,
    *,
    max_results: int = 20,
) -> list[Document]:
    """Find article-like blocks on a page with no configured selectors.

    A block qualifies when its text is long enough and its first link has a
    meaningful label. A date in the block text becomes the published date.
    """
    soup = BeautifulSoup(html, "html.parser")
    by_url: dict[str, Document] = {}

    for element in soup.select("article, li, div"):
        text = _squash(element.get_text(" "))
        if len(text) < MIN_BLOCK_CHARS:
            continue
        link = element.select_one("a[href]")
        if link is None:
            continue
        title = _squash(link.get_text(" "))
        if len(title) < MIN_TITLE_CHARS:
            continue
        url = _resolve_link(str(link.get("href", "")), base_url)
        if url is None or url in by_url:
            continue
        date_match = DATE_PATTERN.search(text)
        by_url[url] = build_document(
            source=source_name,
            url=url,
            title=title,
            content=text[:CONTENT_PREVIEW_CHARS],
            published_at=normalize_date(date_match.group(0)) if date_match else None,
        )
        if len(by_url) >= max_results:
            break

    return list(by_url.values())
