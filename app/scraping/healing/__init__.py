"""
Selector healing: suggestion generation, scoring and history.
"""

from app.scraping.healing.generators import (
    HeuristicSuggestionGenerator,
    OpenAISuggestionGenerator,
    SuggestionGenerationError,
    SuggestionGenerator,
    build_fallback_chain,
    build_healing_prompt,
    parse_suggestions,
)
from app.scraping.healing.healer import SelectorHealer, matches_data_type
from app.scraping.healing.models import (
    HealingResult,
    HealingSuggestion,
    Reliability,
    SelectorHealingRequest,
)

__all__ = [
    "HealingResult",
    "HealingSuggestion",
    "HeuristicSuggestionGenerator",
    "OpenAISuggestionGenerator",
    "Reliability",
    "SelectorHealer",
    "SelectorHealingRequest",
    "SuggestionGenerationError",
    "SuggestionGenerator",
    "build_fallback_chain",
    "build_healing_prompt",
    "matches_data_type",
    "parse_suggestions",
]
