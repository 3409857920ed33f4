"""Tests for URL canonicalization, hashing and document identity."""
from __future__ import annotations

from agimonitor.acquisition.provenance import canonicalize_url, hash_content
from agimonitor.models.documents import build_document, document_id


def test_canonicalize_strips_tracking_and_fragment() -> None:
    url = "HTTPS://Example.com/post?utm_source=x&b=2&a=1&fbclid=abc#section"
    assert canonicalize_url(url) == "https://example.com/post?a=1&b=2"


def test_canonicalize_leaves_relative_input_alone() -> None:
    assert canonicalize_url("/just/a/path") == "/just/a/path"


def test_hash_content_is_sha256_hex() -> None:
    digest = hash_content("hello")
    assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_document_id_is_stable_per_source_url_title() -> None:
    a = document_id("OpenAI Blog", "https://openai.com/x", "Title")
    b = document_id("OpenAI Blog", "https://openai.com/x", "Title")
    c = document_id("OpenAI Blog", "https://openai.com/x", "Other title")
    assert a == b
    assert a != c


def test_build_document_normalizes_and_detects_language() -> None:
    doc = build_document(
        source="Qwen",
        url="https://qwen.ai/blog?utm_medium=rss",
        title="  通义千问   发布  ",
        content="通义千问新模型在多项基准测试中取得领先成绩。",
    )
    assert doc.title == "通义千问 发布"
    assert doc.canonical_url == "https://qwen.ai/blog"
    assert doc.language == "zh"
    assert doc.content_hash == hash_content(doc.content)
