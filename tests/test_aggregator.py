"""Tests for score aggregation."""

import pytest

from phishguard.analyzer.aggregator import aggregate, classify_risk
from phishguard.analyzer.models import (
    NEUTRAL_REPUTATION,
    DomainAge,
    HomographCheck,
    KeywordCheck,
    KeywordMatch,
    PatternCheck,
    PatternMatch,
    RedirectCheck,
    SignalChecks,
    StructureCheck,
    TlsCheck,
)
from phishguard.analyzer.reputation import BLACKLIST_ENTRY, WHITELIST_ENTRY
from phishguard.constants import AgeCategory, Status, Threat

HTTPS = TlsCheck(has_tls=True)
NO_TLS = TlsCheck(has_tls=False, score=25, issues=("No SSL certificate",))


def _checks(**overrides) -> SignalChecks:
    values = {"tls": HTTPS}
    values.update(overrides)
    return SignalChecks(**values)


class TestClassifyRisk:
    def test_every_score_maps_to_exactly_one_verdict(self):
        for score in range(0, 101):
            status, threat = classify_risk(score)
            if score >= 70:
                assert (status, threat) == (Status.PHISHING, Threat.HIGH)
            elif score >= 45:
                assert (status, threat) == (Status.SUSPICIOUS, Threat.MEDIUM)
            elif score >= 25:
                assert (status, threat) == (Status.QUESTIONABLE, Threat.LOW)
            else:
                assert (status, threat) == (Status.LEGITIMATE, Threat.MINIMAL)

    @pytest.mark.parametrize(
        "score,status",
        [(24, Status.LEGITIMATE), (25, Status.QUESTIONABLE), (44, Status.QUESTIONABLE),
         (45, Status.SUSPICIOUS), (69, Status.SUSPICIOUS), (70, Status.PHISHING)],
    )
    def test_boundaries(self, score, status):
        assert classify_risk(score)[0] is status

    def test_verdicts_rank_by_severity_and_render_lowercase(self):
        statuses = [classify_risk(score)[0] for score in (0, 25, 45, 70)]
        assert statuses == sorted(statuses)
        assert [str(s) for s in statuses] == ["legitimate", "questionable", "suspicious", "phishing"]
        assert str(classify_risk(70)[1]) == "high"


class TestAggregate:
    def test_neutral_https_site_scores_zero(self):
        result = aggregate("example.com", "https://example.com", _checks())
        assert result.risk_score == 0
        assert result.status is Status.LEGITIMATE
        assert result.confidence == 50
        assert result.reasons == ()

    def test_blacklisted_domain(self):
        result = aggregate("evil.example", "https://evil.example", _checks(reputation=BLACKLIST_ENTRY))
        assert result.risk_score == 70
        assert result.status is Status.PHISHING
        assert result.threat is Threat.HIGH
        assert result.confidence == 95
        assert result.reasons == ("Domain found in phishing database (blacklist)",)
        assert result.color == "#ef4444"
        assert result.badge == "⚠"

    def test_score_is_clamped_at_zero(self):
        result = aggregate(
            "www.github.com",
            "https://www.github.com",
            _checks(reputation=WHITELIST_ENTRY, age=DomainAge(6000, AgeCategory.ESTABLISHED)),
        )
        assert result.risk_score == 0
        assert result.status is Status.LEGITIMATE
        assert result.detail["raw_risk"] == -50
        assert result.confidence == 98
        # Established age lowers the score without producing a reason
        assert result.reasons == ("Domain verified as legitimate (whitelist)",)

    def test_score_is_clamped_at_one_hundred(self):
        result = aggregate(
            "bad.tk",
            "http://bad.tk",
            _checks(
                reputation=BLACKLIST_ENTRY,
                tls=NO_TLS,
                age=DomainAge(3, AgeCategory.VERY_NEW),
            ),
        )
        assert result.detail["raw_risk"] == 130
        assert result.risk_score == 100

    def test_pattern_and_keyword_contributions_are_capped(self):
        patterns = PatternCheck(
            total_weight=115,
            matches=(
                PatternMatch("secure_update", "Fake security update", 25),
                PatternMatch("verify_account", "Account verification scam", 30),
                PatternMatch("tld_tk", "High-risk TLD (.tk)", 40),
                PatternMatch("multi_hyphen", "Multiple hyphens in domain", 20),
            ),
        )
        keywords = KeywordCheck(score=80.0, matches=(KeywordMatch("paypal", 2, 80.0),))
        result = aggregate("x.tk", "https://x.tk", _checks(patterns=patterns, keywords=keywords))

        assert result.detail["contributions"]["patterns"] == 50
        assert result.detail["contributions"]["keywords"] == 40
        assert result.risk_score == 90
        # One reason per matched pattern, with its own weight
        assert "Account verification scam (weight: 30)" in result.reasons
        assert 'Phishing keyword "paypal" with context (score: 80.0)' in result.reasons

    def test_half_points_round_up(self):
        patterns = PatternCheck(total_weight=7, matches=(PatternMatch("p", "Custom", 7),))
        keywords = KeywordCheck(score=37.5, matches=(KeywordMatch("security", 1, 37.5),))
        result = aggregate("x.com", "https://x.com", _checks(patterns=patterns, keywords=keywords))
        assert result.detail["raw_risk"] == pytest.approx(44.5)
        assert result.risk_score == 45
        assert result.status is Status.SUSPICIOUS

    def test_reasons_follow_check_order_and_are_truncated(self):
        patterns = PatternCheck(
            total_weight=60,
            matches=tuple(PatternMatch(f"p{i}", f"Pattern {i}", 10) for i in range(6)),
        )
        result = aggregate(
            "a.b.c.d.xy.io",
            "http://a.b.c.d.xy.io",
            _checks(
                tls=NO_TLS,
                age=DomainAge(45, AgeCategory.NEW),
                patterns=patterns,
                homograph=HomographCheck(True, 15, ("а",)),
                structure=StructureCheck(35, ("Excessive subdomains", "Suspicious domain structure")),
                redirects=RedirectCheck(True, 20, ("http://a.b.c.d.xy.io",)),
            ),
        )
        assert len(result.reasons) == 8
        assert result.reasons[0] == "No SSL certificate"
        assert result.reasons[1] == "New domain (45 days old)"
        assert result.reasons[2] == "Pattern 0 (weight: 10)"
        assert result.reasons[-1] == "Pattern 5 (weight: 10)"
        assert len(result.findings) == 8
        # Every signal still counts towards the score
        assert result.detail["contributions"]["redirects"] == 20
        assert result.risk_score == 100

    def test_very_new_domain_reason(self):
        result = aggregate(
            "new-site.com", "https://new-site.com", _checks(age=DomainAge(12, AgeCategory.VERY_NEW))
        )
        assert result.risk_score == 35
        assert result.status is Status.QUESTIONABLE
        assert result.reasons == ("Very new domain (12 days old)",)
        assert result.domain_age_days == 12

    def test_unknown_reputation_adds_nothing(self):
        result = aggregate("x.com", "http://x.com", _checks(reputation=NEUTRAL_REPUTATION, tls=NO_TLS))
        assert result.risk_score == 25
        assert result.detail["contributions"]["reputation"] == 0

    def test_to_dict_shape(self):
        result = aggregate("x.com", "http://x.com", _checks(tls=NO_TLS), elapsed_ms=3, analyzed_at=10.0)
        data = result.to_dict()
        assert data["status"] == "questionable"
        assert data["threat"] == "low"
        assert data["has_ssl"] is False
        assert data["domain_category"] == "recent"
        assert data["analysis_time"] == 3
        assert data["reasons"] == ["No SSL certificate"]
