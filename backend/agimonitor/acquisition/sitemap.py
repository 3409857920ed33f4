"""Sitemap discovery for sources without feeds or usable listing pages."""

from __future__ import annotations

import logging
import re
from urllib.parse import unquote, urljoin, urlsplit
from xml.etree import ElementTree as ET

import httpx

from agimonitor.acquisition.fetcher import AcquisitionError, SafeHttpClient
from agimonitor.acquisition.url_safety import UnsafeUrlError
from agimonitor.models.documents import Document, build_document

logger = logging.getLogger(__name__)

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/sitemap-index.xml")
MAX_CHILD_SITEMAPS = 2
ARTICLE_PATH_PATTERN = re.compile(r"(research|publication|paper|news|blog|report|announcement|release|project)")


def extract_locs(xml_bytes: bytes) -> list[str]:
    """Return <loc> values from a urlset or sitemapindex document."""
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError:
        return []
    return [el.text.strip() for el in root.iter("{*}loc") if el.text and el.text.strip()]


def slug_to_title(link: str) -> str:
    """``/blog/new-reasoning_model.html`` becomes ``New Reasoning Model``."""
    segments = [s for s in urlsplit(link).path.split("/") if s]
    slug = unquote(segments[-1]) if segments else link
    slug = re.sub(r"\.\w+$", "", slug)
    slug = re.sub(r"[-_]", " ", slug)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug).strip()


async def _fetch_locs(http: SafeHttpClient, sitemap_url: str) -> list[str]:
    try:
        resp = await http.get(sitemap_url, accept="application/xml, text/xml")
    except (AcquisitionError, UnsafeUrlError, httpx.HTTPError) as e:
        logger.info("Sitemap %s unavailable: %s", sitemap_url, e)
        return []
    return extract_locs(resp.content)


async def discover_from_sitemap(
    http: SafeHttpClient,
    base_url: str,
    source_name: str,
    *,
    max_urls: int = 8,
) -> list[Document]:
    base_host = urlsplit(base_url).netloc.lower()
    seen: set[str] = set()
    urls: list[str] = []

    for path in SITEMAP_PATHS:
        locs = await _fetch_locs(http, urljoin(base_url, path))
        if not locs:
            continue

        children = [loc for loc in locs if "sitemap" in loc.lower()][:MAX_CHILD_SITEMAPS]
        resolved = locs
        if children:
            resolved = []
            for child in children:
                resolved.extend(await _fetch_locs(http, child))
                if len(resolved) >= max_urls * 2:
                    break

        for loc in resolved:
            if len(urls) >= max_urls:
                break
            if loc in seen or not loc.startswith("http"):
                continue
            if urlsplit(loc).netloc.lower() != base_host:
                continue
            if not ARTICLE_PATH_PATTERN.search(loc.lower()):
                continue
            seen.add(loc)
            urls.append(loc)

        if urls:
            break

    content = f"Discovered via sitemap for {source_name}."
    return [
        build_document(source=source_name, url=loc, title=slug_to_title(loc), content=content)
        for loc in urls
    ]
