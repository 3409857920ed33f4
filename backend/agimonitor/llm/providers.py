"""
Model backends for JSON-only scoring calls.

Every call the oracle and translator make is one system prompt plus one user
message that must come back as a single JSON object, under a deadline of a
few seconds. Backends differ only in how they ask for JSON and where the
system prompt goes. The backend is chosen by Settings.llm_provider
(AGIMONITOR_LLM_PROVIDER); keys come from the environment only.

Usage:
    from agimonitor.llm import get_llm_client

    client = get_llm_client("openai")
    reply = client.complete_json(system, user, model="gpt-5-mini", timeout=15.0)
    data = parse_json_object(reply.text)
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from agimonitor.settings import LLMProviderEnum

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
JSON_ONLY_SUFFIX = "Respond with a single JSON object and nothing else."


@dataclass(frozen=True)
class Reply:
    text: str
    model: str


class LLMProvider(ABC):
    """A backend that turns (system, user) into a JSON reply."""

    kind: LLMProviderEnum

    def complete_json(
        self,
        system: str,
        user: str,
        *,
        model: str,
        timeout: float,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> Reply:
        """Ask for one JSON object. The caller parses and validates it.

        Provider retries are disabled; the caller's deadline is the only
        retry budget.
        """
        started = time.monotonic()
        reply = self._send(
            system, user, model=model, timeout=timeout, max_tokens=max_tokens, temperature=temperature
        )
        logger.debug("%s/%s replied in %.2fs", self.kind.value, reply.model, time.monotonic() - started)
        return reply

    @abstractmethod
    def _send(
        self, system: str, user: str, *, model: str, timeout: float, max_tokens: int, temperature: float
    ) -> Reply: ...


def _is_reasoning_model(model: str) -> bool:
    name = model.lower()
    return name.startswith(("gpt-5", "o1", "o3", "o4"))


class OpenAIProvider(LLMProvider):
    kind = LLMProviderEnum.OPENAI

    def __init__(self, api_key: str, *, base_url: str | None = None) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key, base_url=self._base_url, max_retries=0)
        return self._client

    def _send(self, system, user, *, model, timeout, max_tokens, temperature):
        request: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "system", "content": system}, {"role": "user", "content": user}],
            "response_format": {"type": "json_object"},
            "timeout": timeout,
        }
        # Reasoning models reject temperature and max_tokens.
        if _is_reasoning_model(model):
            request["max_completion_tokens"] = max_tokens
        else:
            request["max_tokens"] = max_tokens
            request["temperature"] = temperature
        response = self.client.chat.completions.create(**request)
        return Reply(text=response.choices[0].message.content or "", model=response.model)


class AnthropicProvider(LLMProvider):
    """JSON is requested in the system prompt and primed with an opening brace."""

    kind = LLMProviderEnum.ANTHROPIC

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            from anthropic import Anthropic

            self._client = Anthropic(api_key=self._api_key, max_retries=0)
        return self._client

    def _send(self, system, user, *, model, timeout, max_tokens, temperature):
        response = self.client.messages.create(
            model=model,
            system=f"{system}\n\n{JSON_ONLY_SUFFIX}",
            messages=[{"role": "user", "content": user}, {"role": "assistant", "content": "{"}],
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
        )
        body = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        return Reply(text="{" + body, model=response.model)


class OllamaProvider(LLMProvider):
    kind = LLMProviderEnum.OLLAMA

    def __init__(self, base_url: str = DEFAULT_OLLAMA_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def ping(self) -> bool:
        try:
            return httpx.get(f"{self.base_url}/api/tags", timeout=5.0).status_code == 200
        except httpx.HTTPError:
            return False

    def _send(self, system, user, *, model, timeout, max_tokens, temperature):
        response = httpx.post(
            f"{self.base_url}/api/chat",
            json={
                "model": model,
                "messages": [{"role": "system", "content": system}, {"role": "user", "content": user}],
                "format": "json",
                "stream": False,
                "options": {"temperature": temperature, "num_predict": max_tokens},
            },
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
        return Reply(text=(data.get("message") or {}).get("content", ""), model=data.get("model", model))


def get_llm_client(
    provider: LLMProviderEnum | str | None = None,
    *,
    ollama_base_url: str | None = None,
) -> LLMProvider:
    """Build the configured backend.

    Raises:
        ValueError: unknown provider, missing API key, or unreachable Ollama server.
    """
    kind = LLMProviderEnum((provider or os.environ.get("AGIMONITOR_LLM_PROVIDER", "openai")).lower())

    if kind is LLMProviderEnum.OPENAI:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OpenAI provider requires OPENAI_API_KEY")
        return OpenAIProvider(api_key, base_url=os.environ.get("OPENAI_BASE_URL"))

    if kind is LLMProviderEnum.ANTHROPIC:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("Anthropic provider requires ANTHROPIC_API_KEY")
        return AnthropicProvider(api_key)

    base_url = ollama_base_url or os.environ.get("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL)
    client = OllamaProvider(base_url)
    if not client.ping():
        raise ValueError(f"Ollama server not available at {base_url}")
    return client
