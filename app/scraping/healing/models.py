"""Data models for selector healing.

Dataclasses describe healing requests and ranked suggestions. The pydantic
models validate untrusted generator output before it becomes a suggestion.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reliability(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SelectorHealingRequest:
    """Everything a generator needs to propose a replacement selector.

    Attributes:
        html_snapshot: Page content the broken selector was run against.
        intent: Plain-language description of the data the selector targets.
        broken_selector: The selector that located nothing.
        expected_data_type: One of text, number, date, link, list.
        site: Domain the snapshot came from, used for healing history.
        field_name: Rule name the selector belongs to.
        sample_data: Optional example of the expected value.
        context_description: Optional description of the surrounding element.
    """

    html_snapshot: str
    intent: str
    broken_selector: str
    expected_data_type: str
    site: str
    field_name: str
    sample_data: Optional[str] = None
    context_description: Optional[str] = None


@dataclass(frozen=True)
class HealingSuggestion:
    """One candidate selector with its confidence score."""

    candidate_selector: str
    confidence_score: int
    reliability: Reliability = Reliability.MEDIUM
    fallback_selectors: tuple[str, ...] = ()
    reasoning: str = ""


@dataclass(frozen=True)
class HealingResult:
    """Outcome of one healing call.

    `suggestions` is ranked by confidence, highest first. `best` is the top
    suggestion that cleared the confidence threshold, if any. It is still
    unvalidated: callers must re-run extraction before trusting it.
    """

    success: bool
    suggestions: tuple[HealingSuggestion, ...] = ()
    best: Optional[HealingSuggestion] = None
    error: Optional[str] = None


class SuggestionPayload(BaseModel):
    """One suggestion object as returned by an LLM."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    selector: str = Field(..., min_length=1)
    confidence: int = Field(50, ge=0, le=100)
    reasoning: str = ""
    fallback_selectors: List[str] = Field(default_factory=list, alias="fallbackSelectors")
    estimated_reliability: Reliability = Field(Reliability.MEDIUM, alias="estimatedReliability")

    @field_validator("selector")
    @classmethod
    def selector_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("selector must not be blank")
        return stripped

    @field_validator("estimated_reliability", mode="before")
    @classmethod
    def normalise_reliability(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SuggestionEnvelope(BaseModel):
    """Top-level LLM response object."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    suggestions: List[SuggestionPayload] = Field(default_factory=list)
