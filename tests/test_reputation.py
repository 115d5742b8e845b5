"""Tests for domain lists and reputation resolution."""

import asyncio

import pytest

from phishguard.analyzer.models import NEUTRAL_REPUTATION, ReputationEntry
from phishguard.analyzer.reputation import DomainLists, ReputationResolver
from phishguard.analyzer.sources import StaticReputationSource
from phishguard.cache import create_reputation_cache
from phishguard.constants import ReputationSourceKind, ReputationStatus


class _CountingSource:
    def __init__(self, entry=NEUTRAL_REPUTATION, delay: float = 0.0, error: Exception | None = None):
        self.entry = entry
        self.delay = delay
        self.error = error
        self.calls: list[str] = []

    async def lookup(self, domain: str) -> ReputationEntry:
        self.calls.append(domain)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.entry


class TestDomainLists:
    def test_entries_are_normalized(self):
        lists = DomainLists(["WWW.Evil-Site.COM."], ["https://Good.example/login"])
        assert lists.is_phishing("www.evil-site.com")
        assert lists.is_legitimate("good.example")

    def test_membership_is_exact(self):
        lists = DomainLists(["evil.com"], [])
        assert not lists.is_phishing("sub.evil.com")

    def test_merge_reports_only_new_domains(self):
        lists = DomainLists(["a.com"], ["b.com"])
        added_phishing, added_legitimate = lists.merge(["a.com", "c.com"], ["b.com", "", "d.com"])
        assert added_phishing == ["c.com"]
        assert added_legitimate == ["d.com"]
        assert lists.counts() == (2, 2)

    def test_add_and_discard(self):
        lists = DomainLists()
        assert lists.add_phishing("evil.com")
        assert not lists.add_phishing("evil.com")
        assert lists.discard_phishing("evil.com")
        assert not lists.discard_phishing("evil.com")

    def test_defaults_are_seeded(self):
        lists = DomainLists.with_defaults(["extra-bad.com"], ["extra-good.com"])
        assert lists.is_phishing("scam-paypal.com")
        assert lists.is_phishing("extra-bad.com")
        assert lists.is_legitimate("www.github.com")
        assert lists.is_legitimate("extra-good.com")


class TestReputationResolver:
    @pytest.mark.asyncio
    async def test_blacklist_wins_over_everything(self):
        lists = DomainLists(["github.com"], ["github.com"])
        source = _CountingSource(ReputationEntry(ReputationStatus.LEGITIMATE, 0.85, ReputationSourceKind.EXTERNAL))
        resolver = ReputationResolver(lists, source=source)

        entry = await resolver.resolve_reputation("github.com")

        assert entry.status is ReputationStatus.PHISHING
        assert entry.confidence == 0.95
        assert entry.source is ReputationSourceKind.BLACKLIST
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_whitelist(self):
        resolver = ReputationResolver(DomainLists([], ["example.org"]))
        entry = await resolver.resolve_reputation("example.org")
        assert entry.status is ReputationStatus.LEGITIMATE
        assert entry.confidence == 0.98
        assert entry.source is ReputationSourceKind.WHITELIST

    @pytest.mark.asyncio
    async def test_legitimate_pattern(self):
        resolver = ReputationResolver(DomainLists())
        entry = await resolver.resolve_reputation("google.de")
        assert entry.status is ReputationStatus.LEGITIMATE
        assert entry.confidence == 0.90
        assert entry.source is ReputationSourceKind.PATTERN

    @pytest.mark.asyncio
    async def test_external_source_scores(self):
        source = StaticReputationSource({"good.example": 0.95, "bad.example": 0.05, "meh.example": 0.5})
        resolver = ReputationResolver(DomainLists(), source=source)

        good = await resolver.resolve_reputation("good.example")
        bad = await resolver.resolve_reputation("bad.example")
        meh = await resolver.resolve_reputation("meh.example")

        assert (good.status, good.confidence) == (ReputationStatus.LEGITIMATE, 0.85)
        assert (bad.status, bad.confidence) == (ReputationStatus.PHISHING, 0.75)
        assert meh == NEUTRAL_REPUTATION
        assert good.source is ReputationSourceKind.EXTERNAL

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_unknown_and_is_cached(self):
        source = _CountingSource(delay=1.0)
        resolver = ReputationResolver(DomainLists(), source=source, timeout=0.01)

        first = await resolver.resolve_reputation("slow.example")
        second = await resolver.resolve_reputation("slow.example")

        assert first == NEUTRAL_REPUTATION
        assert second == NEUTRAL_REPUTATION
        assert source.calls == ["slow.example"]
        assert resolver.fallbacks == 1

    @pytest.mark.asyncio
    async def test_source_error_falls_back_to_unknown(self):
        source = _CountingSource(error=RuntimeError("boom"))
        resolver = ReputationResolver(DomainLists(), source=source)

        entry = await resolver.resolve_reputation("broken.example")

        assert entry.status is ReputationStatus.UNKNOWN
        assert entry.confidence == 0.5
        assert resolver.fallbacks == 1

    @pytest.mark.asyncio
    async def test_source_kind_is_forced_to_external(self):
        source = _CountingSource(ReputationEntry(ReputationStatus.PHISHING, 0.75, ReputationSourceKind.BLACKLIST))
        resolver = ReputationResolver(DomainLists(), source=source)
        entry = await resolver.resolve_reputation("odd.example")
        assert entry.source is ReputationSourceKind.EXTERNAL

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, clock):
        source = _CountingSource()
        cache = create_reputation_cache(ttl_seconds=3600, clock=clock)
        resolver = ReputationResolver(DomainLists(), source=source, cache=cache)

        await resolver.resolve_reputation("example.net")
        clock.advance(3599)
        await resolver.resolve_reputation("example.net")
        assert len(source.calls) == 1

        clock.advance(1)
        await resolver.resolve_reputation("example.net")
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_a_fresh_resolution(self):
        lists = DomainLists()
        resolver = ReputationResolver(lists)

        before = await resolver.resolve_reputation("later-bad.example")
        lists.add_phishing("later-bad.example")
        cached = await resolver.resolve_reputation("later-bad.example")
        assert cached == before

        assert resolver.invalidate("later-bad.example")
        after = await resolver.resolve_reputation("later-bad.example")
        assert after.status is ReputationStatus.PHISHING

    @pytest.mark.asyncio
    async def test_answer_is_not_cached_if_invalidated_in_flight(self):
        lists = DomainLists()
        source = _CountingSource(delay=0.05)
        resolver = ReputationResolver(lists, source=source, timeout=1.0)

        lookup = asyncio.create_task(resolver.resolve_reputation("racy.example"))
        await asyncio.sleep(0.01)
        lists.add_phishing("racy.example")
        resolver.invalidate("racy.example")

        assert (await lookup) == NEUTRAL_REPUTATION
        assert resolver.generation("racy.example") == 1
        assert resolver.cache.get("racy.example") is None
        assert (await resolver.resolve_reputation("racy.example")).status is ReputationStatus.PHISHING
