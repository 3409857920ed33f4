"""Tests for the oracle prompt, response parsing, and translation."""
from __future__ import annotations

import json

from agimonitor.llm.json_utils import parse_json_object
from agimonitor.llm.oracle import (
    AGI_DETECTION_PROMPT,
    MAX_CONTENT_CHARS,
    ModelOracle,
    OracleRequest,
    build_user_message,
    parse_oracle_response,
    parse_validation_response,
)
from agimonitor.llm.translation import Translator
from agimonitor.models.analysis import Recommendation, Severity
from tests.factories import FakeProvider, make_analysis


class TestParseJson:
    def test_fenced_block(self) -> None:
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self) -> None:
        assert parse_json_object('Here you go: {"a": 1} hope that helps') == {"a": 1}

    def test_unusable(self) -> None:
        assert parse_json_object("no json here") is None
        assert parse_json_object("[1, 2]") is None
        assert parse_json_object(None) is None


class TestOracleParsing:
    def test_malformed_output_defaults_to_investigate(self) -> None:
        verdict = parse_oracle_response("I cannot answer that")
        assert verdict.score == 0.0
        assert verdict.severity is Severity.NONE
        assert verdict.recommendation is Recommendation.INVESTIGATE

    def test_values_are_clamped_and_coerced(self) -> None:
        verdict = parse_oracle_response(
            json.dumps({
                "score": 1.7,
                "confidence": "0.4",
                "severity": "HIGH",
                "recommendation": "escalate",
                "indicators": "self-improvement",
                "cross_references": None,
            })
        )
        assert verdict.score == 1.0
        assert verdict.confidence == 0.4
        assert verdict.severity is Severity.HIGH
        assert verdict.recommendation is Recommendation.INVESTIGATE
        assert verdict.indicators == ["self-improvement"]
        assert verdict.cross_references == []

    def test_oracle_camel_case_keys(self) -> None:
        verdict = parse_oracle_response(
            json.dumps({
                "score": 0.6,
                "severityHint": "high",
                "evidenceQuality": "direct",
                "requiresVerification": True,
                "crossReferences": ["DeepMind"],
                "secrecyFlags": ["NDA departures"],
            })
        )
        assert verdict.severity is Severity.HIGH
        assert verdict.evidence_quality == "direct"
        assert verdict.requires_verification is True
        assert verdict.cross_references == ["DeepMind"]
        assert verdict.secrecy_flags == ["NDA departures"]

    def test_validation_camel_case_keys(self) -> None:
        verdict = parse_validation_response(
            '{"agrees": true, "validatedScore": 0.65, "reasoning": "ok", '
            '"additionalIndicators": ["transfer"], "recommendation": "confirm"}'
        )
        assert verdict.agrees is True
        assert verdict.validated_score == 0.65
        assert verdict.additional_indicators == ["transfer"]
        assert verdict.recommendation is Recommendation.CONFIRM

    def test_validation_unparseable(self) -> None:
        verdict = parse_validation_response("nope")
        assert verdict.agrees is False
        assert verdict.recommendation is Recommendation.INVESTIGATE


class TestModelOracle:
    def test_user_message_includes_translation_and_truncates(self) -> None:
        request = OracleRequest(
            title="新模型",
            content="x" * (MAX_CONTENT_CHARS + 100),
            snippets=["原文"],
            translated_title="New model",
            translated_snippets=["Original text"],
        )
        message = build_user_message(request)
        assert "Translated Title: New model" in message
        assert "- Original text" in message
        assert message.endswith("x" * MAX_CONTENT_CHARS)
        assert "x" * (MAX_CONTENT_CHARS + 1) not in message

    def test_score_sends_detection_prompt(self) -> None:
        provider = FakeProvider('{"score": 0.3, "severity": "medium"}')
        oracle = ModelOracle(provider, model="gpt-5-mini")

        verdict = oracle.score(OracleRequest(title="t", content="c"), timeout=3.0)

        assert verdict.score == 0.3
        assert provider.calls[0]["timeout"] == 3.0
        assert provider.calls[0]["system"] == AGI_DETECTION_PROMPT
        assert provider.calls[0]["user"].startswith("Title: t")

    def test_validate_embeds_prior_analysis(self) -> None:
        provider = FakeProvider('{"agrees": false, "validatedScore": 0.2, "recommendation": "dismiss"}')
        oracle = ModelOracle(provider, model="gpt-5-mini")
        analysis = make_analysis(document_id="doc", score=0.42, indicators=["transfer"])

        verdict = oracle.validate(analysis, title="t", content="c")

        system = provider.calls[0]["system"]
        assert "Score: 0.420" in system
        assert '["transfer"]' in system
        assert verdict.recommendation is Recommendation.DISMISS


class TestTranslator:
    def test_english_text_is_not_translated(self) -> None:
        provider = FakeProvider("{}")
        result = Translator(provider, model="m").translate_if_non_english("Title", "English body text.", [])
        assert result.translated is False
        assert provider.calls == []

    def test_cjk_text_is_translated(self) -> None:
        provider = FakeProvider('{"translatedTitle": "New model", "translatedSnippets": ["Accuracy 90%"]}')
        result = Translator(provider, model="m").translate_if_non_english(
            "新模型发布", "我们的新模型在基准测试中准确率达到百分之九十。", ["准确率 90%"]
        )
        assert result.translated is True
        assert result.title == "New model"
        assert result.snippets == ["Accuracy 90%"]

    def test_provider_failure_falls_back_to_original(self) -> None:
        class BrokenProvider(FakeProvider):
            def _send(self, *args, **kwargs):
                raise RuntimeError("provider down")

        result = Translator(BrokenProvider(), model="m").translate_if_non_english(
            "新模型发布", "我们的新模型在基准测试中准确率达到百分之九十。", []
        )
        assert result.translated is False
        assert result.title == "新模型发布"
