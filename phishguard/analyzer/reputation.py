"""Domain reputation: block/allow lists and the cached resolver."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Iterable, Optional

from ..cache import CacheManager, create_reputation_cache
from ..constants import DEFAULT_SOURCE_TIMEOUT, ReputationSourceKind, ReputationStatus
from ..errors import ExternalSourceError
from ..utils.domains import normalize_domain
from .models import NEUTRAL_REPUTATION, ReputationEntry
from .patterns import DEFAULT_REGISTRY, PatternRegistry
from .sources import NullReputationSource, ReputationSource, call_source

logger = logging.getLogger(__name__)


DEFAULT_PHISHING_DOMAINS: set[str] = {
    "phishing-example.com",
    "fake-bank.net",
    "suspicious-site.org",
    "scam-paypal.com",
    "fake-amazon.net",
    "phish-apple.com",
    "bogus-microsoft.org",
    "fraudulent-bank.com",
    "fake-security.net",
}

DEFAULT_LEGITIMATE_DOMAINS: set[str] = {
    "google.com", "www.google.com", "mail.google.com", "drive.google.com",
    "github.com", "www.github.com", "gist.github.com",
    "stackoverflow.com", "www.stackoverflow.com",
    "mozilla.org", "www.mozilla.org", "developer.mozilla.org",
    "microsoft.com", "www.microsoft.com", "office.microsoft.com",
    "amazon.com", "www.amazon.com", "aws.amazon.com",
    "paypal.com", "www.paypal.com",
    "apple.com", "www.apple.com", "support.apple.com",
    "facebook.com", "www.facebook.com",
    "twitter.com", "www.twitter.com",
    "linkedin.com", "www.linkedin.com",
    "youtube.com", "www.youtube.com",
}

BLACKLIST_ENTRY = ReputationEntry(ReputationStatus.PHISHING, 0.95, ReputationSourceKind.BLACKLIST)
WHITELIST_ENTRY = ReputationEntry(ReputationStatus.LEGITIMATE, 0.98, ReputationSourceKind.WHITELIST)
PATTERN_ENTRY = ReputationEntry(ReputationStatus.LEGITIMATE, 0.90, ReputationSourceKind.PATTERN)


class DomainLists:
    """Mutable blacklist/whitelist sets.

    Membership is exact on the normalized hostname. A single lock guards
    both sets; merges hold it for the whole batch.
    """

    def __init__(self, phishing: Iterable[str] = (), legitimate: Iterable[str] = ()):
        self._phishing: set[str] = set()
        self._legitimate: set[str] = set()
        self._lock = threading.Lock()
        self.merge(phishing, legitimate)

    @classmethod
    def with_defaults(
        cls,
        extra_phishing: Iterable[str] = (),
        extra_legitimate: Iterable[str] = (),
    ) -> "DomainLists":
        return cls(
            list(DEFAULT_PHISHING_DOMAINS) + list(extra_phishing),
            list(DEFAULT_LEGITIMATE_DOMAINS) + list(extra_legitimate),
        )

    def is_phishing(self, domain: str) -> bool:
        with self._lock:
            return domain in self._phishing

    def is_legitimate(self, domain: str) -> bool:
        with self._lock:
            return domain in self._legitimate

    def add_phishing(self, domain: str) -> bool:
        return self._add(self._phishing, domain)

    def add_legitimate(self, domain: str) -> bool:
        return self._add(self._legitimate, domain)

    def discard_phishing(self, domain: str) -> bool:
        return self._discard(self._phishing, domain)

    def discard_legitimate(self, domain: str) -> bool:
        return self._discard(self._legitimate, domain)

    def merge(
        self,
        phishing: Iterable[str],
        legitimate: Iterable[str],
    ) -> tuple[list[str], list[str]]:
        """Union both batches in; return the domains that were new."""
        phishing = [d for d in (normalize_domain(x) for x in phishing) if d]
        legitimate = [d for d in (normalize_domain(x) for x in legitimate) if d]
        added_phishing: list[str] = []
        added_legitimate: list[str] = []
        with self._lock:
            for domain in phishing:
                if domain not in self._phishing:
                    self._phishing.add(domain)
                    added_phishing.append(domain)
            for domain in legitimate:
                if domain not in self._legitimate:
                    self._legitimate.add(domain)
                    added_legitimate.append(domain)
        return added_phishing, added_legitimate

    def snapshot(self) -> dict[str, list[str]]:
        with self._lock:
            return {
                "blacklist": sorted(self._phishing),
                "whitelist": sorted(self._legitimate),
            }

    def counts(self) -> tuple[int, int]:
        with self._lock:
            return len(self._phishing), len(self._legitimate)

    def _add(self, target: set[str], domain: str) -> bool:
        value = normalize_domain(domain)
        if not value:
            return False
        with self._lock:
            if value in target:
                return False
            target.add(value)
            return True

    def _discard(self, target: set[str], domain: str) -> bool:
        value = normalize_domain(domain)
        with self._lock:
            if value not in target:
                return False
            target.discard(value)
            return True


class ReputationResolver:
    """Resolves a domain's reputation with strict precedence.

    1. blacklist            -> phishing (0.95)
    2. whitelist            -> legitimate (0.98)
    3. legitimate pattern   -> legitimate (0.90)
    4. external source      -> its answer; unknown (0.5) on timeout/error

    Every resolution is written through to the cache, unless the domain
    was invalidated while it was being resolved.
    """

    def __init__(
        self,
        lists: DomainLists,
        registry: PatternRegistry = DEFAULT_REGISTRY,
        source: Optional[ReputationSource] = None,
        cache: Optional[CacheManager] = None,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
    ):
        self.lists = lists
        self.registry = registry
        self.source = source or NullReputationSource()
        self.cache = cache if cache is not None else create_reputation_cache()
        self.timeout = timeout
        self.fallbacks = 0
        self._generations: dict[str, int] = {}
        self._generation_lock = threading.Lock()

    async def resolve_reputation(self, domain: str) -> ReputationEntry:
        cached = self.cache.get(domain)
        if cached is not None:
            return cached

        generation = self.generation(domain)
        entry = await self._resolve(domain)
        # A list change while the lookup was in flight makes the answer stale
        if self.generation(domain) == generation:
            self.cache.set(domain, entry)
        else:
            logger.debug("Not caching stale reputation for %s", domain)
        return entry

    def generation(self, domain: str) -> int:
        """Number of times domain has been invalidated."""
        with self._generation_lock:
            return self._generations.get(domain, 0)

    def invalidate(self, domain: str) -> bool:
        with self._generation_lock:
            self._generations[domain] = self._generations.get(domain, 0) + 1
        return self.cache.delete(domain)

    async def _resolve(self, domain: str) -> ReputationEntry:
        if self.lists.is_phishing(domain):
            return BLACKLIST_ENTRY
        if self.lists.is_legitimate(domain):
            return WHITELIST_ENTRY
        if self.registry.is_known_legitimate_pattern(domain):
            return PATTERN_ENTRY
        return await self._lookup_external(domain)

    async def _lookup_external(self, domain: str) -> ReputationEntry:
        try:
            entry = await call_source(self.source.lookup(domain), "reputation", self.timeout)
        except ExternalSourceError as exc:
            self.fallbacks += 1
            logger.warning("Reputation lookup for %s fell back to unknown: %s", domain, exc)
            return NEUTRAL_REPUTATION

        if entry.source is not ReputationSourceKind.EXTERNAL:
            entry = replace(entry, source=ReputationSourceKind.EXTERNAL)
        return entry
