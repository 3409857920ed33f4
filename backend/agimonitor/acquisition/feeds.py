"""RSS / Atom feed acquisition via feedparser."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import feedparser
from bs4 import BeautifulSoup

from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.url_safety import check_url
from agimonitor.evidence.language import normalize_date
from agimonitor.models.documents import Document, build_document

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"


def _entry_text(entry: Any) -> str:
    raw = ""
    if entry.get("content"):
        raw = entry["content"][0].get("value", "") or ""
    if not raw:
        raw = entry.get("summary", "") or entry.get("description", "") or ""
    if not raw:
        return ""
    return BeautifulSoup(raw, "html.parser").get_text(separator=" ", strip=True)


def _entry_published(entry: Any) -> str | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime(*parsed[:6], tzinfo=UTC).isoformat()
    return normalize_date(entry.get("published") or entry.get("updated"))


def parse_feed(content: bytes | str, source_name: str) -> list[Document]:
    """Turn a feed payload into documents. Entries need a title, body, and safe link."""
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        logger.info("[%s] Feed did not parse: %s", source_name, feed.get("bozo_exception"))
        return []

    documents: list[Document] = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        body = _entry_text(entry)
        link = (entry.get("link") or entry.get("id") or "").strip()
        if not title or not body or not link:
            continue
        verdict = check_url(link)
        if not verdict.safe:
            logger.warning("[%s] Dropping feed entry with unsafe link %s: %s", source_name, link, verdict.reason)
            continue
        documents.append(
            build_document(
                source=source_name,
                url=link,
                title=title,
                content=body,
                published_at=_entry_published(entry),
            )
        )
    return documents


async def fetch_feed(http: SafeHttpClient, feed_url: str, source_name: str, *, timeout_s: float = 30.0) -> list[Document]:
    resp = await http.get(feed_url, accept=FEED_ACCEPT, timeout_s=timeout_s)
    return parse_feed(resp.content, source_name)
