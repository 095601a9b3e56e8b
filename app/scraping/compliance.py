"""
robots.txt compliance gate for scrape requests.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from urllib.robotparser import RobotFileParser

import requests

from app.scraping.logging_utils import log_event
from app.scraping.types import ComplianceDecision

logger = logging.getLogger(__name__)

PERMISSIVE_ROBOTS = "User-agent: *\nAllow: /\n"
ROBOTS_UNAVAILABLE = "robots-unavailable"
NO_CRAWL_DELAY_ADVISORY = (
    "No crawl-delay published; keep at least 2-3 seconds between requests to this domain."
)


class ComplianceFailurePolicy(str, Enum):
    """
    What to do when a domain's robots.txt cannot be retrieved.
    """

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class RobotsFetchResult:
    """
    Retrieved robots.txt body, or why it could not be used.

    `status_code` in the 4xx range means the site publishes no rules;
    `available=False` means the document could not be retrieved at all.
    """

    robots_url: str
    text: str | None = None
    status_code: int | None = None
    available: bool = True
    error: str | None = None


class RobotsFetcher(ABC):
    """
    Capability that retrieves a robots.txt document.
    """

    @abstractmethod
    async def fetch(self, robots_url: str, *, user_agent: str) -> RobotsFetchResult:
        raise NotImplementedError


class HTTPRobotsFetcher(RobotsFetcher):
    """
    Fetch robots.txt with `requests`, off the event loop.
    """

    def __init__(self, *, session: requests.Session | None = None, timeout_seconds: float = 10.0) -> None:
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds

    async def fetch(self, robots_url: str, *, user_agent: str) -> RobotsFetchResult:
        return await asyncio.to_thread(self._fetch_sync, robots_url, user_agent)

    def _fetch_sync(self, robots_url: str, user_agent: str) -> RobotsFetchResult:
        try:
            response = self._session.get(
                robots_url,
                timeout=self._timeout_seconds,
                headers={"User-Agent": user_agent},
            )
        except requests.RequestException as exc:
            return RobotsFetchResult(robots_url=robots_url, available=False, error=str(exc))

        status = response.status_code
        if response.ok:
            return RobotsFetchResult(robots_url=robots_url, text=response.text or "", status_code=status)
        if 400 <= status < 500 and status != 429:
            return RobotsFetchResult(robots_url=robots_url, status_code=status)
        return RobotsFetchResult(
            robots_url=robots_url,
            status_code=status,
            available=False,
            error=f"HTTP {status}",
        )


class StaticRobotsFetcher(RobotsFetcher):
    """
    Serve robots.txt bodies from memory, keyed by domain.

    A domain mapped to `None` behaves as unreachable.
    """

    def __init__(
        self,
        documents: dict[str, str | None] | None = None,
        *,
        default: str | None = PERMISSIVE_ROBOTS,
    ) -> None:
        self._documents = {key.lower(): value for key, value in (documents or {}).items()}
        self._default = default
        self.calls: list[str] = []

    async def fetch(self, robots_url: str, *, user_agent: str) -> RobotsFetchResult:
        self.calls.append(robots_url)
        await asyncio.sleep(0)
        domain = robots_url.split("://", 1)[-1].split("/", 1)[0].lower()
        text = self._documents.get(domain, self._default)
        if text is None:
            return RobotsFetchResult(robots_url=robots_url, available=False, error="unreachable")
        return RobotsFetchResult(robots_url=robots_url, text=text, status_code=200)


@dataclass(frozen=True)
class DomainRules:
    """
    Parsed robots rules for one domain, or the reason none are usable.
    """

    domain: str
    parser: RobotFileParser | None
    available: bool
    detail: str | None = None

    def disallowed_paths(self, user_agent: str) -> frozenset[str]:
        if self.parser is None:
            return frozenset()
        if self.parser.disallow_all:
            return frozenset({"/"})
        entry = None
        for candidate in self.parser.entries:
            if candidate.applies_to(user_agent):
                entry = candidate
                break
        if entry is None:
            entry = self.parser.default_entry
        if entry is None:
            return frozenset()
        return frozenset(line.path for line in entry.rulelines if not line.allowance and line.path)

    def crawl_delay(self, user_agent: str) -> float | None:
        if self.parser is None:
            return None
        delay = self.parser.crawl_delay(user_agent)
        if delay is None:
            delay = self.parser.crawl_delay("*")
        return float(delay) if delay is not None else None


class ComplianceGate:
    """
    Decides whether a path may be fetched and how slowly.

    Rules are loaded once per domain into `cache`, which belongs to a single
    batch run. Concurrent callers for one domain share the in-flight load.
    """

    def __init__(
        self,
        *,
        fetcher: RobotsFetcher,
        failure_policy: ComplianceFailurePolicy = ComplianceFailurePolicy.OPEN,
        cache: dict[str, asyncio.Future[DomainRules]] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._failure_policy = failure_policy
        self._cache: dict[str, asyncio.Future[DomainRules]] = cache if cache is not None else {}

    async def evaluate(
        self,
        domain: str,
        path: str,
        user_agent: str,
        *,
        scheme: str = "https",
        advisories: tuple[str, ...] = (),
    ) -> ComplianceDecision:
        """
        Return the compliance decision for `path` on `domain`.
        """

        rules = await self.rules_for(domain, user_agent=user_agent, scheme=scheme)
        warnings = list(advisories)

        if not rules.available:
            if self._failure_policy is ComplianceFailurePolicy.CLOSED:
                return ComplianceDecision(
                    allowed=False,
                    crawl_delay_seconds=0.0,
                    reasons=(ROBOTS_UNAVAILABLE, f"robots.txt for {domain} unavailable: {rules.detail}"),
                    warnings=tuple(warnings),
                )
            warnings.append(f"robots.txt for {domain} unavailable; proceeding under open failure policy.")
            return ComplianceDecision(
                allowed=True,
                crawl_delay_seconds=0.0,
                warnings=tuple(warnings),
            )

        disallowed = rules.disallowed_paths(user_agent)
        delay = rules.crawl_delay(user_agent)
        if delay is None:
            warnings.append(NO_CRAWL_DELAY_ADVISORY)

        url = f"{scheme}://{domain}{path or '/'}"
        allowed = rules.parser.can_fetch(user_agent, url) if rules.parser is not None else True
        reasons: list[str] = []
        if not allowed:
            reasons.append(f"robots.txt disallows {path or '/'} for {user_agent}")
            matching = sorted(prefix for prefix in disallowed if (path or "/").startswith(prefix))
            reasons.extend(f"matched rule: Disallow: {prefix}" for prefix in matching)
            log_event(
                logger,
                logging.INFO,
                "compliance_disallowed",
                domain=domain,
                path=path,
                user_agent=user_agent,
            )

        return ComplianceDecision(
            allowed=allowed,
            crawl_delay_seconds=delay or 0.0,
            disallowed_paths=disallowed,
            reasons=tuple(reasons),
            warnings=tuple(warnings),
        )

    async def rules_for(self, domain: str, *, user_agent: str, scheme: str = "https") -> DomainRules:
        key = domain.lower()
        pending = self._cache.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._load_rules(key, user_agent=user_agent, scheme=scheme))
            self._cache[key] = pending
        return await asyncio.shield(pending)

    async def _load_rules(self, domain: str, *, user_agent: str, scheme: str) -> DomainRules:
        robots_url = f"{scheme}://{domain}/robots.txt"
        result = await self._fetcher.fetch(robots_url, user_agent=user_agent)

        if not result.available:
            log_event(
                logger,
                logging.WARNING,
                "robots_unavailable",
                domain=domain,
                robots_url=robots_url,
                status_code=result.status_code,
                failure_policy=self._failure_policy.value,
                error=result.error,
            )
            return DomainRules(domain=domain, parser=None, available=False, detail=result.error)

        parser = RobotFileParser()
        parser.set_url(robots_url)
        if result.text is None:
            # Same reading of 4xx answers as RobotFileParser.read().
            if result.status_code in (401, 403):
                parser.disallow_all = True
            else:
                parser.allow_all = True
        else:
            parser.parse(result.text.splitlines())

        log_event(
            logger,
            logging.INFO,
            "robots_loaded",
            domain=domain,
            robots_url=robots_url,
            status_code=result.status_code,
        )
        return DomainRules(domain=domain, parser=parser, available=True)
