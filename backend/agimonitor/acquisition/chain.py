"""Ordered fallback over acquisition strategies for a single source."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from agimonitor.acquisition.sources import SourceConfig
from agimonitor.acquisition.strategies import (
    STRATEGY_TYPES,
    AcquisitionContext,
    Strategy,
    StrategyKind,
    plan_strategies,
)
from agimonitor.acquisition.url_safety import check_url, check_url_with_dns
from agimonitor.models.documents import Document

logger = logging.getLogger(__name__)


@dataclass
class AcquisitionOutcome:
    source: str
    documents: list[Document] = field(default_factory=list)
    strategy: StrategyKind | None = None
    attempted: list[StrategyKind] = field(default_factory=list)
    refused_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return bool(self.documents)


class AcquisitionChain:
    """Runs a source's strategies in order and stops at the first non-empty result.

    A strategy that raises is logged and treated as having found nothing.
    """

    def __init__(
        self,
        ctx: AcquisitionContext,
        *,
        strategies: Mapping[StrategyKind, Strategy] | None = None,
        resolve_dns: bool = True,
    ) -> None:
        self.ctx = ctx
        self._strategies = dict(strategies) if strategies is not None else {
            kind: cls(ctx) for kind, cls in STRATEGY_TYPES.items()
        }
        self._resolve_dns = resolve_dns

    def plan(self, source: SourceConfig) -> list[StrategyKind]:
        search_enabled = self.ctx.search is not None and self.ctx.search.enabled
        return [k for k in plan_strategies(source, search_enabled=search_enabled) if k in self._strategies]

    async def acquire(self, source: SourceConfig) -> AcquisitionOutcome:
        outcome = AcquisitionOutcome(source=source.name)
        verdict = await check_url_with_dns(source.url) if self._resolve_dns else check_url(source.url)
        if not verdict.safe:
            logger.warning("[%s] Blocked unsafe URL %s: %s", source.name, source.url, verdict.reason)
            outcome.refused_reason = verdict.reason
            return outcome

        for kind in self.plan(source):
            outcome.attempted.append(kind)
            logger.info("[%s] Trying %s", source.name, kind.value)
            try:
                documents = await self._strategies[kind].execute(source)
            except Exception as e:  # noqa: BLE001
                logger.warning("[%s] Strategy %s failed: %s", source.name, kind.value, e)
                continue
            if documents:
                logger.info("[%s] %s found %s documents", source.name, kind.value, len(documents))
                outcome.documents = documents
                outcome.strategy = kind
                return outcome

        logger.info("[%s] All strategies returned nothing", source.name)
        return outcome
