"""
LLM Module

Provider abstraction (OpenAI, Anthropic, Ollama), the scoring oracle, and
the CJK translation helper.
"""

from agimonitor.llm.oracle import (
    AGI_DETECTION_PROMPT,
    ModelOracle,
    OracleRequest,
    parse_oracle_response,
    parse_validation_response,
)
from agimonitor.llm.providers import (
    AnthropicProvider,
    LLMProvider,
    OllamaProvider,
    OpenAIProvider,
    Reply,
    get_llm_client,
)
from agimonitor.llm.translation import Translation, Translator

__all__ = [
    "AGI_DETECTION_PROMPT",
    "AnthropicProvider",
    "LLMProvider",
    "ModelOracle",
    "OllamaProvider",
    "OpenAIProvider",
    "OracleRequest",
    "Reply",
    "Translation",
    "Translator",
    "get_llm_client",
    "parse_oracle_response",
    "parse_validation_response",
]
