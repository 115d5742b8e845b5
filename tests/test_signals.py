"""Tests for the signal extractors."""

import pytest

from phishguard.analyzer.signals import (
    EXCESSIVE_SUBDOMAINS,
    MIXED_CHARACTERS,
    SHORT_SLD,
    analyze_structure,
    check_tls,
    detect_homographs,
    match_keywords,
)


class TestKeywords:
    def test_word_with_context_terms(self):
        check = match_keywords("paypal-secure.com", "https://paypal-secure.com/verify")
        assert [m.word for m in check.matches] == ["paypal"]
        assert check.matches[0].context_hits == 2
        assert check.score == pytest.approx(80.0)

    def test_word_alone_scores_nothing(self):
        check = match_keywords("paypal.com", "https://paypal.com/")
        assert check.score == 0
        assert check.matches == ()

    def test_matching_is_case_insensitive(self):
        check = match_keywords("paypal.example.com", "https://PayPal.example.com/VERIFY")
        assert check.matches[0].context_hits == 1
        assert check.score == pytest.approx(60.0)

    def test_scores_add_up_across_rules(self):
        check = match_keywords("bank-account-security-alert.com", "https://bank-account-security-alert.com/")
        words = {m.word: m.score for m in check.matches}
        assert words["bank"] == pytest.approx(67.5)
        assert words["security"] == pytest.approx(37.5)
        assert check.score == pytest.approx(105.0)


class TestHomographs:
    def test_single_cyrillic_letter(self):
        check = detect_homographs("аpple.com")
        assert check.detected
        assert check.score == 15
        assert check.characters == ("а",)

    def test_counts_distinct_characters(self):
        check = detect_homographs("раураl.com")
        assert check.characters == ("р", "а", "у")
        assert check.score == 45

    def test_punycode_is_decoded(self):
        encoded = "xn--" + "аpple".encode("punycode").decode("ascii")
        check = detect_homographs(f"{encoded}.com")
        assert check.detected
        assert check.score == 15

    def test_greek_and_accented_latin(self):
        assert detect_homographs("οpen.com").detected
        assert detect_homographs("café.com").detected

    def test_ascii_domain_is_clean(self):
        check = detect_homographs("apple.com")
        assert not check.detected
        assert check.score == 0


class TestStructure:
    def test_excessive_subdomains(self):
        check = analyze_structure("a.b.c.d.example.com")
        assert check.issues == (EXCESSIVE_SUBDOMAINS,)
        assert check.score == 20

    def test_short_second_level_domain(self):
        check = analyze_structure("ab.io")
        assert check.issues == (SHORT_SLD,)
        assert check.score == 15

    def test_mixed_characters_with_hyphen(self):
        check = analyze_structure("login-2fa.example.com")
        assert check.issues == (MIXED_CHARACTERS,)
        assert check.score == 10

    def test_issues_are_additive(self):
        check = analyze_structure("a1-b.c.d.e.xy.io")
        assert check.issues == (EXCESSIVE_SUBDOMAINS, SHORT_SLD, MIXED_CHARACTERS)
        assert check.score == 45

    def test_ordinary_domain(self):
        check = analyze_structure("www.example.com")
        assert check.issues == ()
        assert check.score == 0


class TestTls:
    def test_https(self):
        check = check_tls("https://example.com")
        assert check.has_tls
        assert check.issues == ()

    def test_plain_http(self):
        check = check_tls("http://example.com")
        assert not check.has_tls
        assert check.score == 25
        assert check.issues == ("No SSL certificate",)

    def test_scheme_is_case_insensitive(self):
        assert check_tls("HTTPS://example.com").has_tls

    def test_missing_scheme(self):
        check = check_tls("example.com")
        assert not check.has_tls
        assert check.issues == ("Invalid URL",)
