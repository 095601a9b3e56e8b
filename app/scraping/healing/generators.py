"""Suggestion generators for selector healing.

Generators are untrusted: they only propose selectors. Scoring and
validation against the snapshot happen in the healer and the pipeline.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from bs4 import BeautifulSoup
from pydantic import ValidationError

from app.scraping.healing.models import (
    HealingSuggestion,
    Reliability,
    SelectorHealingRequest,
    SuggestionEnvelope,
)

SNAPSHOT_PROMPT_CHARS = 5000
_CSS_IDENT = re.compile(r"^-?[A-Za-z_][\w-]*$")
_STOPWORDS = frozenset({"a", "an", "as", "at", "by", "for", "in", "of", "on", "or", "the", "to", "with", "such"})


class SuggestionGenerationError(Exception):
    """Raised when a generator cannot produce parseable suggestions.

    Attributes:
        stage: Which step failed ("request", "json_parse" or "schema").
        errors: Human-readable error descriptions.
        raw_response: Raw generator output, when there was one.
    """

    def __init__(self, stage: str, errors: List[str], raw_response: str = "") -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        super().__init__(
            f"Selector suggestion generation failed at stage '{stage}': " + "; ".join(errors)
        )


class SuggestionGenerator(ABC):
    """Abstract base for selector suggestion sources."""

    @abstractmethod
    async def suggest(self, request: SelectorHealingRequest) -> List[HealingSuggestion]:
        """Propose replacement selectors for a broken one.

        Args:
            request: The healing request with snapshot and intent.

        Returns:
            Unscored suggestions, most promising first.
        """


def build_healing_prompt(request: SelectorHealingRequest) -> str:
    lines = [
        "You are a web scraping expert. A CSS selector has stopped working due to website changes.",
        "",
        "Task: find a new CSS selector that extracts the same data.",
        "",
        "Context:",
        f"- Intent: {request.intent}",
        f"- Broken Selector: {request.broken_selector}",
        f"- Expected Data Type: {request.expected_data_type}",
    ]
    if request.sample_data:
        lines.append(f"- Sample Expected Output: {request.sample_data}")
    if request.context_description:
        lines.append(f"- Element Description: {request.context_description}")
    lines.extend(
        [
            "",
            f"HTML Snapshot (first {SNAPSHOT_PROMPT_CHARS} chars):",
            "```html",
            request.html_snapshot[:SNAPSHOT_PROMPT_CHARS],
            "```",
            "",
            "Instructions:",
            "1. Analyze the HTML structure.",
            f'2. Find the element that contains: "{request.intent}".',
            "3. Suggest 3-5 CSS selectors, ordered by reliability.",
            "4. Explain your reasoning for each selector.",
            "5. Prefer semantic HTML5 tags and stable attributes (id, data-* attributes).",
            "6. Avoid fragile selectors (nth-child, long class chains).",
            "",
            "Respond with JSON only:",
            '{"suggestions": [{"selector": "article.news h2", "confidence": 90,',
            ' "reasoning": "Uses semantic article tag + heading",',
            ' "fallbackSelectors": [".news-title", "h2.headline"],',
            ' "estimatedReliability": "high"}]}',
        ]
    )
    return "\n".join(lines)


def _strip_markdown_fences(text: str) -> str:
    stripped = text.strip()
    match = re.match(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", stripped, re.DOTALL)
    if match:
        return match.group(1).strip()
    return stripped


def parse_suggestions(raw_response: str) -> List[HealingSuggestion]:
    """Parse and validate a raw generator response.

    Args:
        raw_response: JSON text, optionally wrapped in markdown fences.

    Returns:
        Suggestions in the order the generator gave them.

    Raises:
        SuggestionGenerationError: If the text is not JSON or fails the schema.
    """
    cleaned = _strip_markdown_fences(raw_response)
    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SuggestionGenerationError("json_parse", [str(exc)], raw_response) from exc

    if isinstance(data, list):
        data = {"suggestions": data}
    try:
        envelope = SuggestionEnvelope.model_validate(data)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise SuggestionGenerationError("schema", errors, raw_response) from exc

    return [
        HealingSuggestion(
            candidate_selector=item.selector,
            confidence_score=item.confidence,
            reliability=item.estimated_reliability,
            fallback_selectors=tuple(selector.strip() for selector in item.fallback_selectors if selector.strip()),
            reasoning=item.reasoning,
        )
        for item in envelope.suggestions
    ]


class OpenAISuggestionGenerator(SuggestionGenerator):
    """Ask an OpenAI chat model for replacement selectors."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        """Initialise the generator.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            client: Pre-built client exposing `chat.completions.create`.
        """
        if client is None:
            try:
                from openai import OpenAI  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError(
                    "openai package is required for OpenAISuggestionGenerator. "
                    "Install it with: pip install openai"
                ) from exc

            client_kwargs: dict = {"api_key": api_key or os.environ.get("OPENAI_API_KEY", "")}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)

        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    async def suggest(self, request: SelectorHealingRequest) -> List[HealingSuggestion]:
        raw = await asyncio.to_thread(self._complete, build_healing_prompt(request))
        return parse_suggestions(raw)

    def _complete(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a web scraping expert specializing in robust CSS selector design.",
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
                stream=False,
                seed=42,
            )
        except Exception as exc:
            raise SuggestionGenerationError("request", [f"{type(exc).__name__}: {exc}"]) from exc
        return response.choices[0].message.content or ""


def build_fallback_chain(primary_selector: str) -> List[str]:
    """Derive progressively looser variants of a selector.

    Drops ancestor steps one at a time, then strips ids and pseudo-classes
    from the last step, then falls back to its bare tag name.
    """
    chain: List[str] = [primary_selector]
    steps = primary_selector.split()
    for index in range(1, len(steps)):
        chain.append(" ".join(steps[index:]))

    last = steps[-1] if steps else primary_selector
    without_id = re.sub(r"#[\w-]+", "", last)
    without_pseudo = re.sub(r":[\w-]+(\([^)]*\))?", "", without_id)
    if without_pseudo and without_pseudo != last:
        chain.append(without_pseudo)
    tag_match = re.match(r"^([A-Za-z][\w-]*)", last)
    if tag_match and tag_match.group(1) != last:
        chain.append(tag_match.group(1))

    deduped: List[str] = []
    for selector in chain:
        if selector and selector not in deduped:
            deduped.append(selector)
    return deduped


def _tokens(text: str) -> set[str]:
    return {token for token in re.findall(r"[a-z0-9]+", text.lower()) if token not in _STOPWORDS}


class HeuristicSuggestionGenerator(SuggestionGenerator):
    """Deterministic generator used in test mode and when no LLM is configured.

    Combines the fallback chain of the broken selector with a scan of the
    snapshot for class and id names sharing words with the broken selector
    and the field intent.
    """

    def __init__(self, max_suggestions: int = 5) -> None:
        self._max_suggestions = max_suggestions

    async def suggest(self, request: SelectorHealingRequest) -> List[HealingSuggestion]:
        suggestions: List[HealingSuggestion] = []
        seen = {request.broken_selector}

        for candidate in self._scan_snapshot(request):
            if candidate.candidate_selector not in seen:
                seen.add(candidate.candidate_selector)
                suggestions.append(candidate)

        for selector in build_fallback_chain(request.broken_selector)[1:]:
            if selector in seen:
                continue
            seen.add(selector)
            suggestions.append(
                HealingSuggestion(
                    candidate_selector=selector,
                    confidence_score=40,
                    reliability=Reliability.LOW,
                    reasoning="Looser variant of the broken selector.",
                )
            )

        if suggestions:
            primary, rest = suggestions[0], suggestions[1:]
            suggestions[0] = HealingSuggestion(
                candidate_selector=primary.candidate_selector,
                confidence_score=primary.confidence_score,
                reliability=primary.reliability,
                fallback_selectors=tuple(item.candidate_selector for item in rest[:3]),
                reasoning=primary.reasoning,
            )
        return suggestions[: self._max_suggestions]

    def _scan_snapshot(self, request: SelectorHealingRequest) -> List[HealingSuggestion]:
        steps = request.broken_selector.split()
        wanted = _tokens(steps[-1] if steps else request.broken_selector) | _tokens(request.intent)
        if not wanted:
            return []

        soup = BeautifulSoup(request.html_snapshot, "html.parser")
        scored: dict[str, int] = {}
        for node in soup.find_all(True):
            names: list[tuple[str, str]] = [("." + value, value) for value in node.get("class", [])]
            node_id = node.get("id")
            if isinstance(node_id, str):
                names.append(("#" + node_id, node_id))
            for selector, name in names:
                if not _CSS_IDENT.match(name):
                    continue
                overlap = len(_tokens(name) & wanted)
                if overlap and overlap > scored.get(selector, 0):
                    scored[selector] = overlap

        ranked = sorted(scored.items(), key=lambda item: (-item[1], item[0]))
        return [
            HealingSuggestion(
                candidate_selector=selector,
                confidence_score=min(75, 40 + 15 * overlap),
                reliability=Reliability.HIGH if overlap >= 3 else Reliability.MEDIUM,
                reasoning=f"Shares {overlap} word(s) with the broken selector and field intent.",
            )
            for selector, overlap in ranked
        ]
