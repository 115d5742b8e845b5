"""Pattern registry: weighted suspicious patterns, legitimate hostnames and
phishing keyword rules.

The tables are loaded once and treated as read-only. Extra patterns and
keyword rules can be layered on top from heuristics.yaml (see config.py),
which produces a new registry rather than mutating the default one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

from .models import PatternCheck, PatternMatch, PhishingKeywordRule, SignalWeight

logger = logging.getLogger(__name__)

# Where a pattern is applied: the full URL or just its hostname.
TARGET_URL = "url"
TARGET_HOST = "host"


@dataclass(frozen=True)
class SuspiciousPattern:
    """A compiled registry entry."""

    signal: SignalWeight
    regex: re.Pattern
    target: str = TARGET_URL

    def matches(self, url: str, host: str) -> bool:
        subject = host if self.target == TARGET_HOST else url
        return bool(subject) and self.regex.search(subject) is not None


def _pattern(
    pattern_id: str,
    regex: str,
    weight: int,
    description: str,
    target: str = TARGET_URL,
    flags: int = re.IGNORECASE,
) -> SuspiciousPattern:
    return SuspiciousPattern(
        signal=SignalWeight(pattern_id=pattern_id, weight=weight, description=description),
        regex=re.compile(regex, flags),
        target=target,
    )


GREEK_LOWER = "αβγδεζηθικλμνξοπρστυφχψω"

DEFAULT_SUSPICIOUS_PATTERNS: tuple[SuspiciousPattern, ...] = (
    # Lure phrases
    _pattern("secure_update", r"secure[.-]?update", 25, "Fake security update"),
    _pattern("verify_account", r"verify[.-]?account", 30, "Account verification scam"),
    _pattern("suspended_account", r"suspended[.-]?account", 35, "Account suspension threat"),
    _pattern("urgent_action", r"urgent[.-]?action", 20, "Urgency manipulation"),
    _pattern("click_here", r"click[.-]?here", 15, "Generic click bait"),
    _pattern("limited_time", r"limited[.-]?time", 20, "Time pressure tactic"),
    _pattern("confirm_identity", r"confirm[.-]?identity", 25, "Identity confirmation scam"),
    _pattern("billing_problem", r"billing[.-]?problem", 25, "Fake billing issue"),
    _pattern("payment_failed", r"payment[.-]?failed", 30, "Payment failure scam"),
    _pattern("security_alert", r"security[.-]?alert", 25, "Fake security alert"),
    # High-risk TLDs (anchored to the end of the hostname)
    _pattern("tld_tk", r"\.tk$", 40, "High-risk TLD (.tk)", TARGET_HOST),
    _pattern("tld_ml", r"\.ml$", 40, "High-risk TLD (.ml)", TARGET_HOST),
    _pattern("tld_ga", r"\.ga$", 40, "High-risk TLD (.ga)", TARGET_HOST),
    _pattern("tld_cf", r"\.cf$", 40, "High-risk TLD (.cf)", TARGET_HOST),
    _pattern("tld_pw", r"\.pw$", 35, "Suspicious TLD (.pw)", TARGET_HOST),
    # IP literal
    _pattern("ip_literal", r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}", 50, "Direct IP access", flags=0),
    # Domain structure
    _pattern("multi_hyphen", r"[a-z0-9]+-[a-z0-9]+-[a-z0-9]+\.", 20, "Multiple hyphens in domain"),
    _pattern("long_digits", r"[0-9]{4,}", 25, "Long number sequences"),
    _pattern("long_label", r"[a-z]{20,}", 15, "Unusually long domain parts"),
    # Homograph scripts
    _pattern("cyrillic", r"[а-я]", 45, "Cyrillic characters (homograph)"),
    _pattern("greek", f"[{GREEK_LOWER}]", 45, "Greek characters (homograph)"),
    # Shorteners, bounded so "microsoft.com" does not contain "t.co"
    _pattern(
        "shortener",
        r"(?<![a-z0-9-])(?:bit\.ly|tinyurl|t\.co|goo\.gl|ow\.ly|short\.link)(?![a-z0-9-])",
        15,
        "URL shortener",
    ),
)

DEFAULT_LEGITIMATE_PATTERNS: tuple[re.Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(www\.)?google\.(com|co\.[a-z]{2}|[a-z]{2})$",
        r"^(www\.)?github\.com$",
        r"^(www\.)?stackoverflow\.com$",
        r"^(www\.)?microsoft\.(com|co\.[a-z]{2})$",
        r"^(www\.)?amazon\.(com|co\.[a-z]{2}|[a-z]{2})$",
        r"^(www\.)?facebook\.com$",
        r"^(www\.)?twitter\.com$",
        r"^(www\.)?linkedin\.com$",
        r"^(www\.)?youtube\.com$",
        r"^(www\.)?wikipedia\.org$",
    )
)

DEFAULT_KEYWORD_RULES: tuple[PhishingKeywordRule, ...] = (
    PhishingKeywordRule("paypal", frozenset({"secure", "verify", "suspended"}), 40),
    PhishingKeywordRule("amazon", frozenset({"account", "suspended", "verify"}), 35),
    PhishingKeywordRule("apple", frozenset({"id", "locked", "verify"}), 35),
    PhishingKeywordRule("microsoft", frozenset({"account", "security", "verify"}), 30),
    PhishingKeywordRule("google", frozenset({"account", "suspended", "verify"}), 30),
    PhishingKeywordRule("bank", frozenset({"account", "suspended", "verify"}), 45),
    PhishingKeywordRule("security", frozenset({"alert", "warning", "breach"}), 25),
)


def url_host(url: str) -> str:
    """Hostname of url, or "" if it has none or does not parse."""
    try:
        return (urlparse(url).hostname or "").rstrip(".")
    except ValueError:
        return ""


class PatternRegistry:
    """Static weighted pattern tables."""

    def __init__(
        self,
        suspicious: Iterable[SuspiciousPattern] = DEFAULT_SUSPICIOUS_PATTERNS,
        legitimate: Iterable[re.Pattern] = DEFAULT_LEGITIMATE_PATTERNS,
        keywords: Iterable[PhishingKeywordRule] = DEFAULT_KEYWORD_RULES,
    ):
        self.suspicious = tuple(suspicious)
        self.legitimate = tuple(legitimate)
        self.keywords = tuple(keywords)

    def match_patterns(self, url: str) -> PatternCheck:
        """Evaluate every suspicious pattern against url.

        All patterns run (no early exit); matches keep declaration order and
        the total is the plain, uncapped sum of their weights.
        """
        host = url_host(url)
        total = 0
        matches: list[PatternMatch] = []
        for entry in self.suspicious:
            if entry.matches(url, host):
                signal = entry.signal
                total += signal.weight
                matches.append(PatternMatch(signal.pattern_id, signal.description, signal.weight))
        return PatternCheck(total_weight=total, matches=tuple(matches))

    def is_known_legitimate_pattern(self, domain: str) -> bool:
        """Whether domain matches a legitimate hostname pattern."""
        return any(p.match(domain) for p in self.legitimate)

    def extended(
        self,
        extra_patterns: Optional[list[dict]] = None,
        keyword_rules: Optional[list[dict]] = None,
    ) -> "PatternRegistry":
        """Return a registry with config-supplied patterns appended.

        Keyword rules are appended to the keyword table the same way.
        """
        suspicious = list(self.suspicious)
        for item in extra_patterns or []:
            try:
                weight = int(item["weight"])
                if weight < 0:
                    raise ValueError("weight must be non-negative")
                suspicious.append(
                    _pattern(
                        str(item["id"]),
                        str(item["pattern"]),
                        weight,
                        str(item.get("description") or item["id"]),
                        TARGET_HOST if item.get("target") == TARGET_HOST else TARGET_URL,
                    )
                )
            except (KeyError, TypeError, ValueError, re.error) as exc:
                logger.warning("Skipping invalid pattern %r: %s", item, exc)

        keywords = list(self.keywords)
        for item in keyword_rules or []:
            try:
                word = str(item["word"]).strip().lower()
                context = frozenset(str(c).strip().lower() for c in item.get("context") or [])
                weight = int(item["weight"])
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid keyword rule %r: %s", item, exc)
                continue
            if word and context and weight >= 0:
                keywords.append(PhishingKeywordRule(word, context, weight))

        return PatternRegistry(suspicious, self.legitimate, keywords)


DEFAULT_REGISTRY = PatternRegistry()


def match_patterns(url: str, registry: PatternRegistry = DEFAULT_REGISTRY) -> PatternCheck:
    return registry.match_patterns(url)


def is_known_legitimate_pattern(domain: str, registry: PatternRegistry = DEFAULT_REGISTRY) -> bool:
    return registry.is_known_legitimate_pattern(domain)
