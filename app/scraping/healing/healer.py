"""Selector healer: score generator suggestions against the page snapshot.

The healer never trusts a suggestion on its own. It probes each candidate
against the snapshot, adjusts the confidence, and ranks the results. The
caller must still re-run extraction with the chosen selector before using it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, List

import soupsieve
from bs4 import BeautifulSoup, Tag

from app.scraping.healing.generators import SuggestionGenerationError, SuggestionGenerator
from app.scraping.healing.models import (
    HealingResult,
    HealingSuggestion,
    Reliability,
    SelectorHealingRequest,
)
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

FOUND_BONUS = 10
TYPE_MATCH_BONUS = 10
MISSING_PENALTY = 30


def matches_data_type(node: Tag, expected_type: str) -> bool:
    """Check whether a located element looks like the expected data type."""
    text = node.get_text(" ", strip=True)
    if expected_type == "number":
        return bool(re.search(r"\d", text))
    if expected_type == "date":
        return bool(re.search(r"\d{4}", text) or re.search(r"\d{1,2}/\d{1,2}", text))
    if expected_type == "link":
        href = node.get("href")
        if href is None:
            anchor = node.find("a")
            href = anchor.get("href") if isinstance(anchor, Tag) else None
        return isinstance(href, str) and bool(href.strip())
    if expected_type == "list":
        return True
    return len(text) > 0


class SelectorHealer:
    """Turns a selector miss into ranked, scored replacement candidates."""

    def __init__(self, generator: SuggestionGenerator, min_confidence: int = 80) -> None:
        self._generator = generator
        self._min_confidence = min_confidence
        self._history: Dict[str, List[str]] = {}

    @property
    def min_confidence(self) -> int:
        return self._min_confidence

    async def heal(self, request: SelectorHealingRequest) -> HealingResult:
        """Ask the generator for suggestions and score them against the snapshot.

        Args:
            request: Healing request for one broken selector.

        Returns:
            Ranked suggestions and the best one above the confidence threshold.
        """
        try:
            suggestions = await self._generator.suggest(request)
        except SuggestionGenerationError as exc:
            log_event(
                logger,
                logging.WARNING,
                "selector_healing_generator_failed",
                site=request.site,
                field=request.field_name,
                stage=exc.stage,
                errors=exc.errors,
            )
            return HealingResult(success=False, error=str(exc))

        if not suggestions:
            return HealingResult(success=False, error="No selector suggestions returned")

        soup = BeautifulSoup(request.html_snapshot, "html.parser")
        scored = [self._score(soup, suggestion, request.expected_data_type) for suggestion in suggestions]
        ranked = tuple(sorted(scored, key=lambda item: item.confidence_score, reverse=True))
        best = next(
            (
                item
                for item in ranked
                if item.confidence_score >= self._min_confidence
                and item.candidate_selector != request.broken_selector
            ),
            None,
        )

        log_event(
            logger,
            logging.INFO,
            "selector_healing_scored",
            site=request.site,
            field=request.field_name,
            broken_selector=request.broken_selector,
            candidates=[(item.candidate_selector, item.confidence_score) for item in ranked],
            best=best.candidate_selector if best else None,
        )
        if best is None:
            return HealingResult(
                success=False,
                suggestions=ranked,
                error="No high-confidence selectors found",
            )
        return HealingResult(success=True, suggestions=ranked, best=best)

    def record_success(self, request: SelectorHealingRequest, new_selector: str) -> None:
        """Remember a selector that passed validation for this site."""
        self._history.setdefault(request.site, []).append(new_selector)
        log_event(
            logger,
            logging.INFO,
            "selector_healing_recorded",
            site=request.site,
            field=request.field_name,
            broken_selector=request.broken_selector,
            new_selector=new_selector,
        )

    def healing_stats(self, site: str) -> Dict[str, object]:
        selectors = list(self._history.get(site, []))
        return {"healing_count": len(selectors), "selectors": selectors}

    @staticmethod
    def _score(soup: BeautifulSoup, suggestion: HealingSuggestion, expected_type: str) -> HealingSuggestion:
        try:
            node = soup.select_one(suggestion.candidate_selector)
        except soupsieve.SelectorSyntaxError:
            return replace(suggestion, confidence_score=0, reliability=Reliability.LOW)

        confidence = suggestion.confidence_score
        if node is not None:
            confidence = min(100, confidence + FOUND_BONUS)
            if matches_data_type(node, expected_type):
                confidence = min(100, confidence + TYPE_MATCH_BONUS)
        else:
            confidence = max(0, confidence - MISSING_PENALTY)
        return replace(suggestion, confidence_score=confidence)
