"""Per-operation and per-batch deadlines."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationTimeoutError(TimeoutError):
    """An awaited operation exceeded its deadline."""

    def __init__(self, label: str, timeout_s: float) -> None:
        super().__init__(f"{label} timed out after {timeout_s:g}s")
        self.label = label
        self.timeout_s = timeout_s


async def with_deadline(awaitable: Awaitable[T], timeout_s: float, label: str) -> T:
    """Await ``awaitable``; on expiry cancel it and raise OperationTimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except OperationTimeoutError:
        raise
    except TimeoutError as e:
        raise OperationTimeoutError(label, timeout_s) from e
