"""
Per-run mutable state shared by the requests of one batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from app.scraping.compliance import DomainRules
from app.scraping.config.models import ExtractionRules, SourceConfig
from app.scraping.types import HealedSelector


@dataclass
class RunContext:
    """
    Created by the scheduler for one run and discarded afterwards.

    `compliance_cache` is written once per domain. `selector_overrides` maps
    source to field name to a validated replacement selector.
    """

    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    compliance_cache: dict[str, asyncio.Future[DomainRules]] = field(default_factory=dict)
    selector_overrides: dict[str, dict[str, str]] = field(default_factory=dict)
    healed_selectors: list[HealedSelector] = field(default_factory=list)
    in_flight: int = 0
    peak_in_flight: int = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def rules_for(self, config: SourceConfig) -> ExtractionRules:
        rules = config.rules
        for field_name, selector in self.selector_overrides.get(config.name, {}).items():
            rules = rules.with_selector(field_name, selector)
        return rules

    def accept_healed(self, healed: HealedSelector) -> None:
        self.selector_overrides.setdefault(healed.source, {})[healed.field_name] = healed.new_selector
        self.healed_selectors.append(healed)

    def enter(self) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

    def leave(self) -> None:
        self.in_flight -= 1
