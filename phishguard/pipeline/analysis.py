"""Analysis engine for PhishGuard."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Optional

from ..analyzer.aggregator import aggregate
from ..analyzer.metrics import Statistics, StatisticsAccumulator
from ..analyzer.models import (
    NEUTRAL_AGE,
    NEUTRAL_REPUTATION,
    AnalysisResult,
    DomainAge,
    ErrorResult,
    HomographCheck,
    KeywordCheck,
    PatternCheck,
    PhishingReport,
    RedirectCheck,
    ReputationEntry,
    SignalChecks,
    StructureCheck,
    TlsCheck,
)
from ..analyzer.patterns import DEFAULT_REGISTRY, PatternRegistry
from ..analyzer.reputation import DomainLists, ReputationResolver
from ..analyzer.signals import analyze_structure, check_tls, detect_homographs, match_keywords
from ..analyzer.sources import (
    DomainAgeSource,
    IntelligenceSource,
    RedirectInspector,
    ReputationSource,
    ShortenerRedirectInspector,
    StaticDomainAgeSource,
    StaticIntelligenceSource,
    call_source,
)
from ..analyzer.threat_intel_updater import ThreatIntelUpdater, UpdateResult
from ..cache import create_analysis_cache, create_reputation_cache
from ..constants import (
    ANALYSIS_TTL_SECONDS,
    CACHE_MAX_AGE_SECONDS,
    DEFAULT_SOURCE_TIMEOUT,
    HOUSEKEEPING_INTERVAL_SECONDS,
    INTEL_UPDATE_INTERVAL_SECONDS,
    REPUTATION_TTL_SECONDS,
)
from ..errors import ExternalSourceError, InvalidUrlError, PersistenceError
from ..storage import DocumentStore, MemoryDocumentStore
from ..utils.domains import extract_domain, normalize_domain

logger = logging.getLogger(__name__)

MAX_REPORTS = 100
# Analyses only touch statistics and caches; their saves are batched.
SAVE_DELAY_SECONDS = 5.0


async def _run(fn: Callable, *args):
    return fn(*args)


class AnalysisEngine:
    """Scores URLs and owns the state behind the scores.

    The engine holds the domain lists, both caches, the statistics and the
    user reports. Everything that changes that state is persisted through
    the document store. User actions save at once; analyses only schedule
    a save after save_delay. A failed save leaves the engine running in
    memory and the next mutation saves again.
    """

    def __init__(
        self,
        *,
        registry: PatternRegistry = DEFAULT_REGISTRY,
        lists: Optional[DomainLists] = None,
        reputation_source: Optional[ReputationSource] = None,
        intel_source: Optional[IntelligenceSource] = None,
        age_source: Optional[DomainAgeSource] = None,
        redirect_inspector: Optional[RedirectInspector] = None,
        store: Optional[DocumentStore] = None,
        clock: Callable[[], float] = time.time,
        reputation_ttl: float = REPUTATION_TTL_SECONDS,
        analysis_ttl: float = ANALYSIS_TTL_SECONDS,
        cache_max_age: float = CACHE_MAX_AGE_SECONDS,
        intel_interval: float = INTEL_UPDATE_INTERVAL_SECONDS,
        housekeeping_interval: float = HOUSEKEEPING_INTERVAL_SECONDS,
        source_timeout: float = DEFAULT_SOURCE_TIMEOUT,
        intel_timeout: float = 10.0,
        save_delay: float = SAVE_DELAY_SECONDS,
    ):
        self.registry = registry
        self.lists = lists if lists is not None else DomainLists.with_defaults()
        self.age_source = age_source or StaticDomainAgeSource()
        self.redirect_inspector = redirect_inspector or ShortenerRedirectInspector()
        self.store = store if store is not None else MemoryDocumentStore()
        self._clock = clock

        self.cache_max_age = cache_max_age
        self.intel_interval = intel_interval
        self.housekeeping_interval = housekeeping_interval
        self.source_timeout = source_timeout
        self.save_delay = save_delay

        self.reputation_cache = create_reputation_cache(reputation_ttl, clock=clock)
        self.analysis_cache = create_analysis_cache(analysis_ttl, clock=clock)
        self.reputation = ReputationResolver(
            self.lists,
            registry=registry,
            source=reputation_source,
            cache=self.reputation_cache,
            timeout=source_timeout,
        )
        self.statistics = StatisticsAccumulator(clock=clock)
        self.threat_intel_updater = ThreatIntelUpdater(
            self.lists,
            intel_source or StaticIntelligenceSource(),
            timeout=intel_timeout,
            on_added=self._on_intel_added,
            clock=clock,
        )
        self.reports: deque[PhishingReport] = deque(maxlen=MAX_REPORTS)

        self._loaded = False
        self._dirty = False
        self._save_lock = asyncio.Lock()
        self._flush_task: Optional[asyncio.Task] = None
        self._save_failing = False
        self.save_failures = 0

        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._started_at = clock()

    # ------------------------------------------------------------------
    # Request path
    # ------------------------------------------------------------------

    async def analyze(self, url: str) -> AnalysisResult | ErrorResult:
        """Score one URL. Cached verdicts are returned unchanged."""
        started = time.perf_counter()
        try:
            domain = extract_domain(url)
        except InvalidUrlError as e:
            logger.debug(f"Rejected URL {url!r}: {e}")
            return ErrorResult("Invalid URL")

        key = self._analysis_key(domain, url)
        cached = self.analysis_cache.get(key)
        if cached is not None:
            logger.debug(f"Analysis cache hit: {key}")
            return cached

        generation = self.reputation.generation(domain)
        try:
            checks = await self._collect_signals(domain, url)
            result = aggregate(
                domain,
                url,
                checks,
                elapsed_ms=int((time.perf_counter() - started) * 1000),
                analyzed_at=self._clock(),
            )
        except Exception as e:
            logger.error(f"Analysis failed for {url}: {e}")
            return ErrorResult("Analysis failed")

        if self.reputation.generation(domain) == generation:
            self.analysis_cache.set(key, result)
        else:
            logger.debug(f"{domain} changed lists during analysis, not caching the verdict")
        self.statistics.record(result.status, result.risk_score)
        logger.debug(f"Analyzed {domain}: {result.status} ({result.risk_score})")

        self._schedule_flush()
        return result

    async def _collect_signals(self, domain: str, url: str) -> SignalChecks:
        reputation, tls, age, patterns, keywords, homograph, structure, redirects = await asyncio.gather(
            self._guarded("reputation", self.reputation.resolve_reputation(domain), NEUTRAL_REPUTATION),
            self._guarded("tls", _run(check_tls, url), TlsCheck()),
            self._guarded("age", self._estimate_age(domain), NEUTRAL_AGE),
            self._guarded("patterns", _run(self.registry.match_patterns, url), PatternCheck()),
            self._guarded("keywords", _run(match_keywords, domain, url, self.registry), KeywordCheck()),
            self._guarded("homograph", _run(detect_homographs, domain), HomographCheck()),
            self._guarded("structure", _run(analyze_structure, domain), StructureCheck()),
            self._guarded("redirects", self._inspect_redirects(url), RedirectCheck()),
        )
        return SignalChecks(
            reputation=reputation,
            tls=tls,
            age=age,
            patterns=patterns,
            keywords=keywords,
            homograph=homograph,
            structure=structure,
            redirects=redirects,
        )

    @staticmethod
    async def _guarded(name: str, awaitable, fallback):
        try:
            return await awaitable
        except Exception as e:
            logger.warning(f"{name} check failed, using neutral result: {e}")
            return fallback

    async def _estimate_age(self, domain: str) -> DomainAge:
        try:
            return await call_source(self.age_source.estimate(domain), "domain_age", self.source_timeout)
        except ExternalSourceError as e:
            logger.warning(f"Domain age lookup for {domain} fell back to neutral: {e}")
            return NEUTRAL_AGE

    async def _inspect_redirects(self, url: str) -> RedirectCheck:
        try:
            return await call_source(self.redirect_inspector.inspect(url), "redirects", self.source_timeout)
        except ExternalSourceError as e:
            logger.warning(f"Redirect inspection fell back to neutral: {e}")
            return RedirectCheck()

    @staticmethod
    def _analysis_key(domain: str, url: str) -> str:
        return f"{domain}|{url}"

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def block(self, domain: str) -> bool:
        """Add a domain to the blacklist (and drop it from the whitelist)."""
        value = normalize_domain(domain)
        if not value:
            return False
        added = self.lists.add_phishing(value)
        removed = self.lists.discard_legitimate(value)
        self._invalidate_domain(value)
        logger.info(f"Blocked domain: {value}")
        await self._flush()
        return added or removed

    async def trust(self, domain: str) -> bool:
        """Add a domain to the whitelist (and drop it from the blacklist)."""
        value = normalize_domain(domain)
        if not value:
            return False
        added = self.lists.add_legitimate(value)
        removed = self.lists.discard_phishing(value)
        self._invalidate_domain(value)
        logger.info(f"Trusted domain: {value}")
        await self._flush()
        return added or removed

    async def unblock(self, domain: str) -> bool:
        value = normalize_domain(domain)
        if not value or not self.lists.discard_phishing(value):
            return False
        self._invalidate_domain(value)
        logger.info(f"Unblocked domain: {value}")
        await self._flush()
        return True

    async def untrust(self, domain: str) -> bool:
        value = normalize_domain(domain)
        if not value or not self.lists.discard_legitimate(value):
            return False
        self._invalidate_domain(value)
        logger.info(f"Untrusted domain: {value}")
        await self._flush()
        return True

    def blocked_domains(self) -> list[str]:
        return self.lists.snapshot()["blacklist"]

    def trusted_domains(self) -> list[str]:
        return self.lists.snapshot()["whitelist"]

    async def report(self, result: AnalysisResult, note: str = "") -> PhishingReport:
        """Record a user report about an analyzed URL."""
        entry = PhishingReport(
            domain=result.domain,
            url=result.url,
            risk_score=result.risk_score,
            status=str(result.status),
            reasons=list(result.reasons),
            reported_at=self._clock(),
            note=note,
        )
        self.reports.append(entry)
        logger.info(f"Phishing report recorded for {result.domain} (score {result.risk_score})")
        await self._flush()
        return entry

    def get_statistics(self) -> Statistics:
        return self.statistics.snapshot()

    async def reset_statistics(self) -> Statistics:
        self.statistics.reset()
        await self._flush()
        return self.statistics.snapshot()

    def _invalidate_domain(self, domain: str) -> None:
        self.reputation.invalidate(domain)
        prefix = f"{domain}|"
        self.analysis_cache.invalidate(lambda key: key.startswith(prefix))

    def _on_intel_added(self, domains: list[str]) -> None:
        for domain in domains:
            self._invalidate_domain(domain)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def refresh_threat_intelligence(self) -> UpdateResult:
        """Pull one intelligence batch now."""
        result = await self.threat_intel_updater.refresh()
        if result.last_update is not None:
            await self._flush()
        return result

    async def sweep_caches(self) -> int:
        """Evict cache entries older than the max age, whatever their TTL."""
        evicted = self.reputation_cache.sweep(self.cache_max_age)
        evicted += self.analysis_cache.sweep(self.cache_max_age)
        if evicted:
            logger.info(f"Cache housekeeping evicted {evicted} entries")
            await self._flush()
        return evicted

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Restore the persisted document. Only the first call has an effect."""
        if self._loaded:
            return
        self._loaded = True

        try:
            document = await self.store.load()
        except PersistenceError as e:
            logger.error(f"Failed to load saved state, starting fresh: {e}")
            return

        blacklist = document.get("blacklist")
        whitelist = document.get("whitelist")
        self.lists.merge(
            blacklist if isinstance(blacklist, list) else [],
            whitelist if isinstance(whitelist, list) else [],
        )

        restored = self.reputation_cache.restore(
            document.get("reputation_cache") or [],
            ReputationEntry.from_dict,
        )

        stats = document.get("statistics")
        if isinstance(stats, dict):
            self.statistics = StatisticsAccumulator(Statistics.from_dict(stats), clock=self._clock)

        intel = document.get("threat_intelligence")
        if isinstance(intel, dict):
            self.threat_intel_updater.last_summary = dict(intel)

        for item in document.get("reports") or []:
            try:
                self.reports.append(PhishingReport(**item))
            except TypeError:
                logger.warning(f"Skipping malformed saved report: {item!r}")

        phishing_count, legitimate_count = self.lists.counts()
        logger.info(
            f"State loaded: {phishing_count} blocked, {legitimate_count} trusted, "
            f"{restored} cached reputations, {len(self.reports)} reports"
        )

    def _document(self) -> dict:
        document = dict(self.lists.snapshot())
        document["reputation_cache"] = self.reputation_cache.snapshot(lambda entry: entry.to_dict())
        document["statistics"] = self.statistics.snapshot().to_dict()
        document["threat_intelligence"] = dict(self.threat_intel_updater.last_summary)
        document["reports"] = [r.to_dict() for r in self.reports]
        return document

    async def _flush(self) -> bool:
        """Save the whole document; on failure stay dirty for the next attempt."""
        self._dirty = True
        async with self._save_lock:
            if not self._dirty:
                return True
            try:
                await self.store.save(self._document())
            except PersistenceError as e:
                self.save_failures += 1
                self._save_failing = True
                logger.error(f"Failed to persist state: {e}")
                return False
            self._dirty = False
            self._save_failing = False
            return True

    def _schedule_flush(self) -> None:
        """Mark state dirty and save it once after save_delay."""
        self._dirty = True
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self.save_delay)
        # Shielded so stop() never interrupts a write in progress
        await asyncio.shield(self._flush())

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load state and start the periodic workers."""
        if self._running:
            return
        await self.load()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._threat_intel_worker()),
            asyncio.create_task(self._housekeeping_worker()),
        ]
        logger.info("Analysis engine started")

    async def stop(self) -> None:
        self._running = False
        if self._flush_task is not None:
            self._tasks.append(self._flush_task)
            self._flush_task = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._dirty:
            await self._flush()
        await self.store.close()
        logger.info("Analysis engine stopped")

    async def _threat_intel_worker(self):
        """Refresh threat intelligence on a fixed interval."""
        logger.info("Threat intel worker started")

        while self._running:
            try:
                await asyncio.sleep(self.intel_interval)
                await self.refresh_threat_intelligence()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Threat intel worker error: {e}")
                await asyncio.sleep(60)

        logger.info("Threat intel worker stopped")

    async def _housekeeping_worker(self):
        """Sweep stale cache entries on a fixed interval."""
        logger.info("Cache housekeeping worker started")

        while self._running:
            try:
                await asyncio.sleep(self.housekeeping_interval)
                await self.sweep_caches()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Cache housekeeping error: {e}")
                await asyncio.sleep(60)

        logger.info("Cache housekeeping worker stopped")

    def status_snapshot(self) -> dict:
        """Status snapshot for the health and metrics endpoints."""
        stats = self.statistics.snapshot()
        phishing_count, legitimate_count = self.lists.counts()
        now = self._clock()
        last_intel = self.threat_intel_updater.last_summary.get("last_update")
        if not isinstance(last_intel, (int, float)):
            last_intel = None

        if not self._running:
            status = "stopped"
        elif self._save_failing:
            status = "degraded"
        else:
            status = "ok"

        return {
            "status": status,
            "storage": type(self.store).__name__,
            "uptime_seconds": round(now - self._started_at, 1),
            "sites_analyzed": stats.sites_analyzed,
            "threats_blocked": stats.threats_blocked,
            "suspicious_sites": stats.suspicious_sites,
            "legitimate_sites": stats.legitimate_sites,
            "protection_rate": round(stats.protection_rate, 2),
            "blacklist_size": phishing_count,
            "whitelist_size": legitimate_count,
            "reputation_cache_entries": len(self.reputation_cache),
            "analysis_cache_entries": len(self.analysis_cache),
            "reputation_fallbacks": self.reputation.fallbacks,
            "intel_failures": self.threat_intel_updater.failures,
            "last_intel_update": last_intel,
            "intel_age_seconds": round(now - last_intel, 1) if last_intel is not None else None,
            "save_failures": self.save_failures,
            "state_saved": not self._dirty,
            "reports": len(self.reports),
        }
