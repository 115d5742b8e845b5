"""Tests for the pattern registry."""

import pytest

from phishguard.analyzer.patterns import (
    DEFAULT_REGISTRY,
    is_known_legitimate_pattern,
    match_patterns,
)


def _ids(check):
    return [m.pattern_id for m in check.matches]


class TestSuspiciousPatterns:
    def test_every_pattern_is_evaluated_and_total_is_uncapped(self):
        check = match_patterns("http://secure-update-verify-account.tk/")
        assert _ids(check) == ["secure_update", "verify_account", "tld_tk", "multi_hyphen"]
        assert check.total_weight == 115

    def test_ip_literal_with_lure_path(self):
        check = match_patterns("http://192.168.1.1/secure-update")
        assert _ids(check) == ["secure_update", "ip_literal"]
        assert check.total_weight == 75

    def test_lure_phrases_are_case_insensitive(self):
        check = match_patterns("https://example.com/Verify.Account")
        assert _ids(check) == ["verify_account"]

    def test_tld_patterns_only_look_at_the_hostname(self):
        assert "tld_tk" not in _ids(match_patterns("https://example.com/page.tk"))
        assert "tld_tk" in _ids(match_patterns("http://login.example.tk/"))
        assert "tld_pw" in _ids(match_patterns("http://example.pw"))

    def test_shortener_needs_a_label_boundary(self):
        assert "shortener" not in _ids(match_patterns("https://microsoft.com/"))
        assert "shortener" in _ids(match_patterns("https://t.co/abc"))
        assert "shortener" in _ids(match_patterns("https://bit.ly/xyz"))

    def test_cyrillic_characters_match(self):
        check = match_patterns("https://аpple.com/")
        assert "cyrillic" in _ids(check)

    def test_clean_url_matches_nothing(self):
        check = match_patterns("https://www.github.com/")
        assert check.matches == ()
        assert check.total_weight == 0


class TestLegitimatePatterns:
    @pytest.mark.parametrize(
        "domain",
        ["github.com", "www.github.com", "google.co.uk", "google.de", "www.amazon.com", "wikipedia.org"],
    )
    def test_known_hosts(self, domain):
        assert is_known_legitimate_pattern(domain)

    @pytest.mark.parametrize(
        "domain",
        ["github.com.evil.com", "login-github.com", "mail.google.com", "amazon-verify.com"],
    )
    def test_patterns_are_anchored(self, domain):
        assert not is_known_legitimate_pattern(domain)


class TestExtendedRegistry:
    def test_extra_patterns_are_appended(self):
        registry = DEFAULT_REGISTRY.extended(
            [{"id": "wallet", "pattern": r"wallet", "weight": 10, "description": "Wallet lure"}]
        )
        check = registry.match_patterns("https://wallet-connect.example.com/")
        assert check.matches[-1].pattern_id == "wallet"
        assert check.matches[-1].description == "Wallet lure"
        # The default registry is untouched
        assert "wallet" not in _ids(DEFAULT_REGISTRY.match_patterns("https://wallet-connect.example.com/"))

    def test_invalid_extra_patterns_are_skipped(self):
        registry = DEFAULT_REGISTRY.extended(
            [
                {"id": "broken", "pattern": "(", "weight": 5},
                {"id": "negative", "pattern": "x", "weight": -1},
                {"pattern": "missing-id", "weight": 5},
            ]
        )
        assert len(registry.suspicious) == len(DEFAULT_REGISTRY.suspicious)

    def test_host_target_patterns(self):
        registry = DEFAULT_REGISTRY.extended(
            [{"id": "tld_zip", "pattern": r"\.zip$", "weight": 30, "target": "host"}]
        )
        assert "tld_zip" in _ids(registry.match_patterns("https://files.example.zip/"))
        assert "tld_zip" not in _ids(registry.match_patterns("https://example.com/archive.zip"))

    def test_keyword_rules_are_appended(self):
        registry = DEFAULT_REGISTRY.extended(
            keyword_rules=[
                {"word": "wallet", "context": ["seed", "restore"], "weight": 20},
                {"word": "lonely", "context": [], "weight": 5},
                {"word": "broken", "context": ["x"], "weight": "heavy"},
            ]
        )
        assert len(registry.keywords) == len(DEFAULT_REGISTRY.keywords) + 1
        assert registry.keywords[-1].word == "wallet"
        assert registry.keywords[-1].context_terms == frozenset({"seed", "restore"})
