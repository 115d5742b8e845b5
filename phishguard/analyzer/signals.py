"""Signal extractors.

Each extractor is a pure function of the URL and/or domain and returns a
typed partial result. None of them depend on each other, which lets the
engine run them concurrently.
"""

import re
from urllib.parse import urlparse

from ..utils.domains import decode_punycode
from .models import HomographCheck, KeywordCheck, KeywordMatch, StructureCheck, TlsCheck
from .patterns import DEFAULT_REGISTRY, GREEK_LOWER, PatternRegistry

HOMOGRAPH_POINTS = 15
NO_TLS_POINTS = 25
REDIRECT_POINTS = 20

EXCESSIVE_SUBDOMAINS = "Excessive subdomains"
SHORT_SLD = "Suspicious domain structure"
MIXED_CHARACTERS = "Mixed character types with hyphens"

STRUCTURE_POINTS: dict[str, int] = {
    EXCESSIVE_SUBDOMAINS: 20,
    SHORT_SLD: 15,
    MIXED_CHARACTERS: 10,
}

# Cyrillic, Greek and accented Latin letters that can pass for ASCII
HOMOGRAPH_CHARS = re.compile(
    "[а-яё]"
    f"|[{GREEK_LOWER}]"
    "|[àáâãäåæçèéêëìíîïðñòóôõöøùúûüýþÿ]",
    re.IGNORECASE,
)

_DIGIT = re.compile(r"[0-9]")
_ASCII_LETTER = re.compile(r"[a-z]")


def match_keywords(
    domain: str,
    url: str,
    registry: PatternRegistry = DEFAULT_REGISTRY,
) -> KeywordCheck:
    """Score brand/lure words that appear together with context terms.

    A word on its own scores nothing; each context term found in the domain
    or URL raises the rule's weight by half.
    """
    domain_lower = domain.lower()
    url_lower = url.lower()

    def present(term: str) -> bool:
        return term in domain_lower or term in url_lower

    total = 0.0
    matches: list[KeywordMatch] = []
    for rule in registry.keywords:
        if not present(rule.word):
            continue
        context_hits = sum(1 for term in sorted(rule.context_terms) if present(term))
        if context_hits == 0:
            continue
        score = rule.score(context_hits)
        total += score
        matches.append(KeywordMatch(rule.word, context_hits, score))

    return KeywordCheck(score=total, matches=tuple(matches))


def detect_homographs(domain: str) -> HomographCheck:
    """Count distinct look-alike characters in domain (15 points each)."""
    candidate = decode_punycode(domain)
    distinct: list[str] = []
    for match in HOMOGRAPH_CHARS.finditer(candidate):
        char = match.group(0)
        if char not in distinct:
            distinct.append(char)

    if not distinct:
        return HomographCheck()
    return HomographCheck(
        detected=True,
        score=HOMOGRAPH_POINTS * len(distinct),
        characters=tuple(distinct),
    )


def analyze_structure(domain: str) -> StructureCheck:
    """Additive structural red flags in the hostname."""
    parts = domain.split(".")
    issues: list[str] = []

    if len(parts) > 4:
        issues.append(EXCESSIVE_SUBDOMAINS)

    if len(parts) >= 2:
        tld = parts[-1]
        sld = parts[-2]
        if len(tld) == 2 and len(sld) < 3:
            issues.append(SHORT_SLD)

    if _DIGIT.search(domain) and _ASCII_LETTER.search(domain) and "-" in domain:
        issues.append(MIXED_CHARACTERS)

    score = sum(STRUCTURE_POINTS[issue] for issue in issues)
    return StructureCheck(score=score, issues=tuple(issues))


def check_tls(url: str) -> TlsCheck:
    """Presence of HTTPS. Certificate validity is not checked."""
    try:
        scheme = urlparse(url).scheme.lower()
    except ValueError:
        return TlsCheck(has_tls=False, score=NO_TLS_POINTS, issues=("Invalid URL",))
    if not scheme:
        return TlsCheck(has_tls=False, score=NO_TLS_POINTS, issues=("Invalid URL",))
    if scheme == "https":
        return TlsCheck(has_tls=True)
    return TlsCheck(has_tls=False, score=NO_TLS_POINTS, issues=("No SSL certificate",))
