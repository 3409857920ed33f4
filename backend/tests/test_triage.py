"""Tests for the pre-oracle triage filter."""
from __future__ import annotations

from agimonitor.scoring.triage import run_triage
from tests.factories import CAPABILITY_TEXT


def test_capability_content_passes() -> None:
    result = run_triage("A new reasoning model", CAPABILITY_TEXT)
    assert result.skip is False


def test_short_update_without_capability_is_skipped() -> None:
    result = run_triage("We are hiring", "Join our team in Zurich.")
    assert result.skip is True
    assert result.reason == "Short update without capability signals"


def test_long_noise_content_is_skipped() -> None:
    content = "Join our team for the annual summit. " * 30
    result = run_triage("Save the date", content)
    assert result.skip is True
    assert result.reason == "Noise keywords: summit"
    assert result.matches == ["summit"]


def test_long_neutral_content_passes() -> None:
    content = "The weather in the city was pleasant this week. " * 20
    result = run_triage("Notes", content)
    assert result.skip is False


def test_chinese_noise_keywords() -> None:
    content = "公司宣布完成新一轮融资 " + "欢迎 " * 130
    result = run_triage("公告", content)
    assert result.skip is True
