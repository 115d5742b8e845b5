"""
External collaborators used by the engine.

The engine only depends on the protocols below. Static implementations are
deterministic (tests, offline use); the HTTP implementations read a generic
JSON feed so a real provider can be wired in by configuration:

- Reputation:   GET {endpoint}?domain=<domain>  ->  {"score": 0.0-1.0}
- Intelligence: GET {feed_url}                  ->  {"phishing": [...], "legitimate": [...]}
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Iterable, Mapping, Optional, Protocol, TypeVar

import aiohttp

from ..constants import AgeCategory, ReputationSourceKind, ReputationStatus
from ..errors import ExternalSourceError, ExternalSourceTimeoutError
from ..utils.domains import normalize_domain, registered_domain
from .models import NEUTRAL_AGE, NEUTRAL_REPUTATION, DomainAge, RedirectCheck, ReputationEntry
from .patterns import url_host
from .signals import REDIRECT_POINTS

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_source(awaitable: Awaitable[T], source: str, timeout: float) -> T:
    """Await a collaborator call, mapping every failure to ExternalSourceError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ExternalSourceTimeoutError(source, timeout) from exc
    except ExternalSourceError:
        raise
    except Exception as exc:
        raise ExternalSourceError(source, f"{type(exc).__name__}: {exc}") from exc


@dataclass
class IntelUpdate:
    """One batch of threat-intelligence additions."""

    phishing: list[str] = field(default_factory=list)
    legitimate: list[str] = field(default_factory=list)


class ReputationSource(Protocol):
    async def lookup(self, domain: str) -> ReputationEntry:  # pragma: no cover - interface
        ...


class IntelligenceSource(Protocol):
    async def fetch_updates(self) -> IntelUpdate:  # pragma: no cover - interface
        ...


class DomainAgeSource(Protocol):
    async def estimate(self, domain: str) -> DomainAge:  # pragma: no cover - interface
        ...


class RedirectInspector(Protocol):
    async def inspect(self, url: str) -> RedirectCheck:  # pragma: no cover - interface
        ...


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------


def classify_reputation_score(score: float) -> ReputationEntry:
    """Map a provider score (0 = bad, 1 = good) to a reputation entry."""
    if score > 0.8:
        return ReputationEntry(ReputationStatus.LEGITIMATE, 0.85, ReputationSourceKind.EXTERNAL)
    if score < 0.2:
        return ReputationEntry(ReputationStatus.PHISHING, 0.75, ReputationSourceKind.EXTERNAL)
    return NEUTRAL_REPUTATION


class NullReputationSource:
    """Knows nothing; every domain is unknown."""

    async def lookup(self, domain: str) -> ReputationEntry:
        return NEUTRAL_REPUTATION


class StaticReputationSource:
    """Fixed provider scores per domain."""

    def __init__(self, scores: Mapping[str, float]):
        self.scores = {d.lower(): float(s) for d, s in scores.items()}

    async def lookup(self, domain: str) -> ReputationEntry:
        score = self.scores.get(domain.lower())
        if score is None:
            return NEUTRAL_REPUTATION
        return classify_reputation_score(score)


class HttpReputationSource:
    """Queries a JSON reputation endpoint."""

    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: float = 5.0):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    async def lookup(self, domain: str) -> ReputationEntry:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.endpoint,
                    params={"domain": domain},
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise ExternalSourceError("reputation", f"HTTP {resp.status}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise ExternalSourceError("reputation", str(exc)) from exc

        try:
            score = float(data["score"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalSourceError("reputation", f"malformed response: {exc}") from exc
        return classify_reputation_score(score)


# ---------------------------------------------------------------------------
# Threat intelligence
# ---------------------------------------------------------------------------


class StaticIntelligenceSource:
    """Returns the same batch on every fetch."""

    def __init__(self, phishing: Iterable[str] = (), legitimate: Iterable[str] = ()):
        self.update = IntelUpdate(list(phishing), list(legitimate))

    async def fetch_updates(self) -> IntelUpdate:
        return IntelUpdate(list(self.update.phishing), list(self.update.legitimate))


class HttpIntelligenceSource:
    """Pulls additions from a JSON feed."""

    def __init__(self, feed_url: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.feed_url = feed_url
        self.api_key = api_key
        self.timeout = timeout

    async def fetch_updates(self) -> IntelUpdate:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.feed_url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise ExternalSourceError("intelligence", f"HTTP {resp.status}")
                    data = await resp.json()
        except aiohttp.ClientError as exc:
            raise ExternalSourceError("intelligence", str(exc)) from exc

        if not isinstance(data, dict):
            raise ExternalSourceError("intelligence", "feed is not a JSON object")
        phishing = data.get("phishing") or []
        legitimate = data.get("legitimate") or []
        if not isinstance(phishing, list) or not isinstance(legitimate, list):
            raise ExternalSourceError("intelligence", "feed lists are malformed")
        return IntelUpdate(phishing, legitimate)


# ---------------------------------------------------------------------------
# Domain age
# ---------------------------------------------------------------------------


def categorize_age(days: int) -> AgeCategory:
    if days < 30:
        return AgeCategory.VERY_NEW
    if days < 90:
        return AgeCategory.NEW
    if days < 365:
        return AgeCategory.RECENT
    return AgeCategory.ESTABLISHED


DEFAULT_KNOWN_AGES: dict[str, int] = {
    # Recently registered
    "new-site.com": 12,
    "fresh-domain.net": 12,
    "recent-site.org": 12,
    "just-created.com": 12,
    "brand-new.net": 12,
    # Long-established
    "google.com": 9000,
    "microsoft.com": 11000,
    "amazon.com": 10500,
    "apple.com": 12000,
    "github.com": 6000,
    "stackoverflow.com": 6000,
}


class StaticDomainAgeSource:
    """Looks ages up in a fixed table; unknown domains get no age signal."""

    def __init__(self, known_ages: Optional[Mapping[str, int]] = None):
        ages = DEFAULT_KNOWN_AGES if known_ages is None else known_ages
        self.known_ages = {d.lower(): int(days) for d, days in ages.items()}

    async def estimate(self, domain: str) -> DomainAge:
        days = self.known_ages.get(domain)
        if days is None:
            days = self.known_ages.get(registered_domain(domain))
        if days is None:
            return NEUTRAL_AGE
        return DomainAge(days=days, category=categorize_age(days))


# ---------------------------------------------------------------------------
# Redirects
# ---------------------------------------------------------------------------


DEFAULT_REDIRECTORS = frozenset({"bit.ly", "tinyurl.com", "t.co"})


class ShortenerRedirectInspector:
    """Flags URLs hosted on link shorteners without following them."""

    def __init__(self, shorteners: Iterable[str] = DEFAULT_REDIRECTORS):
        self.shorteners = frozenset(s.lower() for s in shorteners)

    async def inspect(self, url: str) -> RedirectCheck:
        host = normalize_domain(url_host(url))
        if not host:
            return RedirectCheck()
        if host in self.shorteners or registered_domain(host) in self.shorteners:
            return RedirectCheck(suspicious=True, score=REDIRECT_POINTS, chain=(url,))
        return RedirectCheck()
