"""
Registry of extraction strategies and the escalation order between them.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from app.scraping.errors import ConfigError
from app.scraping.strategies.base import ExtractionStrategy
from app.scraping.types import ESCALATION_ORDER, StrategyKind


class StrategyRegistry:
    """
    Maps every required `StrategyKind` to a strategy instance.
    """

    def __init__(
        self,
        strategies: Mapping[StrategyKind, ExtractionStrategy],
        *,
        required: Iterable[StrategyKind] = ESCALATION_ORDER,
    ) -> None:
        missing = [kind.value for kind in required if kind not in strategies]
        if missing:
            raise ConfigError(f"Strategy registry is missing variants: {', '.join(missing)}")
        for kind, strategy in strategies.items():
            if strategy.kind is not kind:
                raise ConfigError(
                    f"Strategy registered as '{kind.value}' reports kind '{strategy.kind.value}'."
                )
        self._strategies = dict(strategies)

    def get(self, kind: StrategyKind) -> ExtractionStrategy:
        strategy = self._strategies.get(kind)
        if strategy is None:
            raise ConfigError(f"Unsupported strategy: {kind.value}")
        return strategy

    def kinds(self) -> list[StrategyKind]:
        return list(self._strategies)

    def escalation_chain(self, start: StrategyKind, *, strict: bool = False) -> list[StrategyKind]:
        """
        Strategies to try in order, starting at `start` and never stepping back.
        """

        if start not in self._strategies:
            raise ConfigError(f"Unsupported strategy: {start.value}")
        if strict or start not in ESCALATION_ORDER:
            return [start]
        index = ESCALATION_ORDER.index(start)
        return [kind for kind in ESCALATION_ORDER[index:] if kind in self._strategies]

    async def aclose(self) -> None:
        for strategy in self._strategies.values():
            await strategy.aclose()
