"""Translate CJK titles and evidence snippets before scoring."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from agimonitor.evidence.language import should_translate
from agimonitor.llm.json_utils import parse_json_object
from agimonitor.llm.providers import LLMProvider

logger = logging.getLogger(__name__)

TRANSLATION_PROMPT = (
    "Translate the following title and evidence snippets to concise English. "
    "Preserve numbers, symbols, and benchmark names. Output JSON with keys: "
    "translatedTitle (string) and translatedSnippets (array of strings)."
)


@dataclass
class Translation:
    title: str
    snippets: list[str] = field(default_factory=list)
    translated: bool = False


class Translator:
    def __init__(self, provider: LLMProvider, *, model: str) -> None:
        self.provider = provider
        self.model = model

    def translate(self, title: str, snippets: list[str], *, timeout: float = 15.0) -> Translation:
        reply = self.provider.complete_json(
            TRANSLATION_PROMPT,
            json.dumps({"title": title, "snippets": snippets}, ensure_ascii=False),
            model=self.model,
            max_tokens=1200,
            timeout=timeout,
        )
        data = parse_json_object(reply.text) or {}
        translated_title = data.get("translatedTitle")
        translated_snippets = data.get("translatedSnippets")
        return Translation(
            title=translated_title if isinstance(translated_title, str) and translated_title.strip() else title,
            snippets=[str(s) for s in translated_snippets if s] if isinstance(translated_snippets, list) else [],
            translated=bool(data),
        )

    def translate_if_non_english(
        self,
        title: str,
        content: str,
        snippets: list[str],
        *,
        timeout: float = 15.0,
    ) -> Translation:
        """Translate only when the text is substantially CJK; failures fall back to the original."""
        if not should_translate(f"{title}\n{content}"):
            return Translation(title=title)
        try:
            return self.translate(title, snippets, timeout=timeout)
        except Exception as e:  # noqa: BLE001
            logger.warning("Translation failed for %r: %s", title[:80], e)
            return Translation(title=title)
