"""Crawled documents."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from agimonitor.acquisition.provenance import canonicalize_url, hash_content
from agimonitor.evidence.language import detect_language
from agimonitor.models.evidence import EvidenceBundle

_DOCUMENT_NAMESPACE = uuid.UUID("8a3f3c0e-5b1d-4f0e-9d62-3c1b7a9e4d21")


def document_id(source: str, url: str, title: str) -> str:
    """Stable identity for a document: source-scoped URL plus title."""
    return str(uuid.uuid5(_DOCUMENT_NAMESPACE, f"{source}\n{url}\n{title}"))


class Document(BaseModel):
    """An immutable crawled item.

    A re-fetch of the same source/url/title that yields different content is
    stored as new content under the same id, with a new ``content_hash``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    url: str
    canonical_url: str
    title: str
    content: str
    content_hash: str
    language: str = "en"
    published_at: str | None = None
    fetched_at: str = Field(default_factory=lambda: datetime.now(UTC).replace(microsecond=0).isoformat())
    evidence: EvidenceBundle | None = None


def build_document(
    *,
    source: str,
    url: str,
    title: str,
    content: str,
    published_at: str | None = None,
    evidence: EvidenceBundle | None = None,
) -> Document:
    title = " ".join(title.split())
    content = content.strip()
    return Document(
        id=document_id(source, url, title),
        source=source,
        url=url,
        canonical_url=canonicalize_url(url),
        title=title,
        content=content,
        content_hash=hash_content(content),
        language=detect_language(f"{title}\n{content}"),
        published_at=published_at,
        evidence=evidence,
    )
