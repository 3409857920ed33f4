"""Language detection and date normalization for multilingual sources."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

CJK_PATTERN = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")
SAMPLE_CHARS = 4000
TRANSLATE_RATIO = 0.08

_CJK_DATE = re.compile(r"(\d{4})\s*年\s*(\d{1,2})\s*月(?:\s*(\d{1,2})\s*日?)?")
_NUMERIC_DATE = re.compile(r"(\d{4})[./-](\d{1,2})[./-](\d{1,2})")


def cjk_ratio(text: str) -> float:
    sample = text[:SAMPLE_CHARS]
    if not sample:
        return 0.0
    return len(CJK_PATTERN.findall(sample)) / len(sample)


def detect_language(text: str) -> str:
    ratio = cjk_ratio(text)
    if ratio > 0.15:
        return "zh"
    if ratio > 0.03:
        return "mixed"
    return "en"


def should_translate(text: str) -> bool:
    return cjk_ratio(text) >= TRANSLATE_RATIO


def normalize_date(value: str | None) -> str | None:
    """Normalize ISO, RFC 822, dotted and CJK dates to ISO-8601 UTC."""
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None

    match = _CJK_DATE.search(raw)
    if match:
        year, month, day = match.group(1), match.group(2), match.group(3) or "1"
        return _iso(int(year), int(month), int(day))

    match = _NUMERIC_DATE.fullmatch(raw)
    if match:
        return _iso(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is None:
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).replace(microsecond=0).isoformat()


def _iso(year: int, month: int, day: int) -> str | None:
    try:
        return datetime(year, month, day, tzinfo=UTC).isoformat()
    except ValueError:
        return None
