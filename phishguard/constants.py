"""Centralized constants for PhishGuard.

Enums and fixed tables shared by the scoring pipeline, the engine and the
HTTP surfaces.
"""

from enum import Enum, IntEnum


class ReputationStatus(str, Enum):
    """Reputation classification of a domain."""

    LEGITIMATE = "legitimate"
    PHISHING = "phishing"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class ReputationSourceKind(str, Enum):
    """Where a reputation entry came from."""

    BLACKLIST = "blacklist"
    WHITELIST = "whitelist"
    PATTERN = "pattern"
    EXTERNAL = "external"

    def __str__(self) -> str:
        return self.value


class AgeCategory(str, Enum):
    """Domain age buckets."""

    VERY_NEW = "very_new"
    NEW = "new"
    RECENT = "recent"
    ESTABLISHED = "established"

    def __str__(self) -> str:
        return self.value


class Threat(IntEnum):
    """Threat levels with ranking for comparison."""

    MINIMAL = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    def __str__(self) -> str:
        return self.name.lower()


class Status(IntEnum):
    """Verdict status ranked by severity."""

    LEGITIMATE = 0
    QUESTIONABLE = 1
    SUSPICIOUS = 2
    PHISHING = 3

    def __str__(self) -> str:
        return self.name.lower()


# Inclusive lower bounds, checked from the top down.
VERDICT_THRESHOLDS: list[tuple[int, Status, Threat]] = [
    (70, Status.PHISHING, Threat.HIGH),
    (45, Status.SUSPICIOUS, Threat.MEDIUM),
    (25, Status.QUESTIONABLE, Threat.LOW),
    (0, Status.LEGITIMATE, Threat.MINIMAL),
]

VERDICT_MESSAGES: dict[Status, str] = {
    Status.PHISHING: "This site is very likely a phishing attempt. Do not enter personal information!",
    Status.SUSPICIOUS: "This site shows multiple suspicious characteristics. Exercise extreme caution.",
    Status.QUESTIONABLE: "This site has some concerning features. Verify before proceeding.",
    Status.LEGITIMATE: "This site appears to be legitimate and safe.",
}

VERDICT_COLORS: dict[Status, str] = {
    Status.PHISHING: "#ef4444",
    Status.SUSPICIOUS: "#f59e0b",
    Status.QUESTIONABLE: "#eab308",
    Status.LEGITIMATE: "#10b981",
}

# Toolbar badge glyph per threat level (empty means no badge).
THREAT_BADGES: dict[Threat, str] = {
    Threat.HIGH: "⚠",
    Threat.MEDIUM: "?",
    Threat.LOW: "!",
    Threat.MINIMAL: "",
}

MAX_REASONS = 8
PATTERN_CAP = 50
KEYWORD_CAP = 40

# Cache lifetimes (seconds)
REPUTATION_TTL_SECONDS = 60 * 60
ANALYSIS_TTL_SECONDS = 10 * 60
CACHE_MAX_AGE_SECONDS = 24 * 60 * 60

# Background task intervals (seconds)
INTEL_UPDATE_INTERVAL_SECONDS = 30 * 60
HOUSEKEEPING_INTERVAL_SECONDS = 60 * 60

# External source timeout (seconds)
DEFAULT_SOURCE_TIMEOUT = 0.15
