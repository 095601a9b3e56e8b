"""
Environment + JSON config loader for regulatory scraping.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

from app.scraping.config.models import (
    DATA_TYPES,
    ExtractionRules,
    FieldRule,
    ScrapeSettings,
    SourceConfig,
)
from app.scraping.errors import ConfigError
from app.scraping.types import StrategyKind

DEFAULT_SOURCES_CONFIG_PATH = "app/scraping/config/sources.json"


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_scrape_settings() -> ScrapeSettings:
    """
    Return cached scrape settings from environment variables.
    """

    load_env_files()
    config_path = _get_str_env("SCRAPE_SOURCES_CONFIG_PATH", DEFAULT_SOURCES_CONFIG_PATH)
    robots_policy = _get_str_env("SCRAPE_ROBOTS_FAILURE_POLICY", "open").lower()
    if robots_policy not in {"open", "closed"}:
        robots_policy = "open"
    return ScrapeSettings(
        sources_config_path=str(_resolve_config_path(config_path)),
        user_agent=_get_str_env(
            "SCRAPE_USER_AGENT",
            "RegulatoryScrapeBot/1.0 (+https://example.com/bot)",
        ),
        concurrency=max(1, _get_int_env("SCRAPE_CONCURRENCY", 3)),
        inter_request_delay_ms=max(0, _get_int_env("SCRAPE_INTER_REQUEST_DELAY_MS", 2000)),
        max_retries=max(0, _get_int_env("SCRAPE_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(
            0.1,
            _get_float_env("SCRAPE_BACKOFF_INITIAL_SECONDS", 1.0),
        ),
        backoff_multiplier=max(
            1.0,
            _get_float_env("SCRAPE_BACKOFF_MULTIPLIER", 2.0),
        ),
        timeout_seconds=max(1.0, _get_float_env("SCRAPE_TIMEOUT_SECONDS", 30.0)),
        render_timeout_seconds=max(
            1.0,
            _get_float_env("SCRAPE_RENDER_TIMEOUT_SECONDS", 30.0),
        ),
        robots_failure_policy=robots_policy,
        healing_enabled=_get_bool_env("SCRAPE_HEALING_ENABLED", True),
        healing_min_confidence=min(
            100,
            max(0, _get_int_env("SCRAPE_HEALING_MIN_CONFIDENCE", 80)),
        ),
        healing_adapter=_get_str_env("SCRAPE_HEALING_ADAPTER", "heuristic").lower(),
        firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY") or None,
        firecrawl_base_url=_get_str_env("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev"),
        llm_model=_get_str_env("LLM_MODEL", "gpt-4o-mini"),
    )


def load_source_configs(*, config_path: str) -> dict[str, SourceConfig]:
    """
    Load regulatory source definitions from a JSON file, keyed by source name.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Source config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    sources = raw_data.get("sources", [])
    if not isinstance(sources, list):
        raise ConfigError("Invalid source config: 'sources' must be a list.")

    parsed: dict[str, SourceConfig] = {}
    for entry in sources:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip().lower()
        url_template = str(entry.get("url_template", "")).strip()
        if not name or not url_template:
            continue
        if name in parsed:
            raise ConfigError(f"Duplicate source definition: {name}")

        parsed[name] = SourceConfig(
            name=name,
            url_template=url_template,
            rules=_parse_rules(name, entry.get("rules")),
            default_strategy=_parse_strategy(name, entry.get("default_strategy")),
            date_format=_optional_str(entry.get("date_format")) or "%Y/%m/%d",
            min_content_length=max(0, _optional_int(entry.get("min_content_length"), 200)),
            wait_for_selector=_optional_str(entry.get("wait_for_selector")),
            advisories=_normalize_advisories(entry.get("advisories", [])),
            adapter_class=_optional_str(entry.get("adapter_class")),
            headers=_normalize_headers(entry.get("headers", {})),
        )

    return parsed


def _parse_strategy(source: str, value: object) -> StrategyKind:
    if value is None:
        return StrategyKind.HTTP_FETCH
    try:
        return StrategyKind(str(value).strip().lower())
    except ValueError as exc:
        raise ConfigError(f"{source}: unknown default strategy '{value}'.") from exc


def _parse_rules(source: str, rules: object) -> ExtractionRules:
    if not isinstance(rules, dict):
        raise ConfigError(f"{source}: 'rules' must be an object.")

    rows_rule = _parse_field_rule(source, "rows", rules.get("rows"))
    if rows_rule is None:
        raise ConfigError(f"{source}: a 'rows' selector is required.")

    return ExtractionRules(
        rows=rows_rule,
        fields=_parse_field_rules(source, rules.get("fields", {})),
        page_fields=_parse_field_rules(source, rules.get("page_fields", {})),
    )


def _parse_field_rules(source: str, raw: object) -> tuple[FieldRule, ...]:
    if not isinstance(raw, dict):
        return ()
    parsed: list[FieldRule] = []
    for name, value in raw.items():
        if not isinstance(name, str) or not name.strip():
            continue
        rule = _parse_field_rule(source, name.strip().lower(), value)
        if rule is not None:
            parsed.append(rule)
    return tuple(parsed)


def _parse_field_rule(source: str, name: str, raw: object) -> FieldRule | None:
    if isinstance(raw, str):
        raw = {"selector": raw}
    if not isinstance(raw, dict):
        return None

    selector = _optional_str(raw.get("selector"))
    if selector is None:
        return None

    data_type = (_optional_str(raw.get("data_type")) or "text").lower()
    if data_type not in DATA_TYPES:
        raise ConfigError(f"{source}: field '{name}' has unknown data_type '{data_type}'.")

    return FieldRule(
        name=name,
        selector=selector,
        intent=_optional_str(raw.get("intent")) or name.replace("_", " "),
        data_type=data_type,
        required=_optional_bool(raw.get("required"), True),
        attribute=_optional_str(raw.get("attribute")),
    )


def _normalize_advisories(advisories: object) -> tuple[str, ...]:
    if isinstance(advisories, str):
        advisories = [advisories]
    if not isinstance(advisories, list):
        return ()
    return tuple(item.strip() for item in advisories if isinstance(item, str) and item.strip())


def _normalize_headers(headers: object) -> dict[str, str]:
    if not isinstance(headers, dict):
        return {}

    normalized: dict[str, str] = {}
    for key, value in headers.items():
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        if key.strip() and value.strip():
            normalized[key.strip()] = value.strip()
    return normalized


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_int(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
