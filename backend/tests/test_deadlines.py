"""Tests for operation deadlines."""
from __future__ import annotations

import asyncio

import pytest

from agimonitor.jobs.deadlines import OperationTimeoutError, with_deadline


@pytest.mark.asyncio
async def test_returns_value_within_deadline() -> None:
    async def quick() -> str:
        return "done"

    assert await with_deadline(quick(), 1.0, "quick") == "done"


@pytest.mark.asyncio
async def test_expiry_raises_labelled_timeout() -> None:
    with pytest.raises(OperationTimeoutError) as exc_info:
        await with_deadline(asyncio.sleep(5), 0.05, "oracle")
    assert exc_info.value.label == "oracle"
    assert exc_info.value.timeout_s == 0.05
    assert "oracle timed out" in str(exc_info.value)
    assert isinstance(exc_info.value, TimeoutError)


@pytest.mark.asyncio
async def test_inner_deadline_label_is_preserved() -> None:
    async def nested() -> None:
        await with_deadline(asyncio.sleep(5), 0.05, "inner")

    with pytest.raises(OperationTimeoutError) as exc_info:
        await with_deadline(nested(), 1.0, "outer")
    assert exc_info.value.label == "inner"


@pytest.mark.asyncio
async def test_other_errors_propagate() -> None:
    async def boom() -> None:
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        await with_deadline(boom(), 1.0, "boom")
