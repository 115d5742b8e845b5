"""Signal and result data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from ..constants import (
    AgeCategory,
    ReputationSourceKind,
    ReputationStatus,
    Status,
    THREAT_BADGES,
    Threat,
)


@dataclass(frozen=True)
class SignalWeight:
    """A weighted suspicious pattern from the registry."""

    pattern_id: str
    weight: int
    description: str


@dataclass(frozen=True)
class PhishingKeywordRule:
    """Brand/lure word that only counts alongside context terms."""

    word: str
    context_terms: frozenset[str]
    base_weight: int

    def score(self, context_hits: int) -> float:
        return self.base_weight * (1 + context_hits * 0.5)


@dataclass(frozen=True)
class ReputationEntry:
    """Reputation of a single domain."""

    status: ReputationStatus
    confidence: float
    source: ReputationSourceKind

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "confidence": self.confidence,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReputationEntry":
        return cls(
            status=ReputationStatus(data["status"]),
            confidence=float(data["confidence"]),
            source=ReputationSourceKind(data["source"]),
        )


NEUTRAL_REPUTATION = ReputationEntry(
    ReputationStatus.UNKNOWN, 0.5, ReputationSourceKind.EXTERNAL
)


@dataclass(frozen=True)
class PatternMatch:
    pattern_id: str
    description: str
    weight: int


@dataclass(frozen=True)
class PatternCheck:
    total_weight: int = 0
    matches: tuple[PatternMatch, ...] = ()


@dataclass(frozen=True)
class KeywordMatch:
    word: str
    context_hits: int
    score: float


@dataclass(frozen=True)
class KeywordCheck:
    score: float = 0.0
    matches: tuple[KeywordMatch, ...] = ()


@dataclass(frozen=True)
class HomographCheck:
    detected: bool = False
    score: int = 0
    characters: tuple[str, ...] = ()


@dataclass(frozen=True)
class StructureCheck:
    score: int = 0
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class TlsCheck:
    has_tls: bool = False
    score: int = 0
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class DomainAge:
    """Age estimate; days is None when the source had no data."""

    days: Optional[int]
    category: AgeCategory


NEUTRAL_AGE = DomainAge(days=None, category=AgeCategory.RECENT)


@dataclass(frozen=True)
class RedirectCheck:
    suspicious: bool = False
    score: int = 0
    chain: tuple[str, ...] = ()


@dataclass(frozen=True)
class SignalChecks:
    """All signal outputs for one URL, ready for aggregation."""

    reputation: ReputationEntry = NEUTRAL_REPUTATION
    tls: TlsCheck = field(default_factory=TlsCheck)
    age: DomainAge = NEUTRAL_AGE
    patterns: PatternCheck = field(default_factory=PatternCheck)
    keywords: KeywordCheck = field(default_factory=KeywordCheck)
    homograph: HomographCheck = field(default_factory=HomographCheck)
    structure: StructureCheck = field(default_factory=StructureCheck)
    redirects: RedirectCheck = field(default_factory=RedirectCheck)


@dataclass(frozen=True)
class Finding:
    """One scored observation, in aggregation order.

    `check` names the signal (reputation, tls, age, pattern, keyword,
    homograph, structure, redirect); `code` identifies the specific rule and
    `data` carries the values the reason text is rendered from.
    """

    check: str
    code: str
    weight: float
    data: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class AnalysisResult:
    """Verdict for one URL."""

    domain: str
    url: str
    risk_score: int
    confidence: int
    status: Status
    threat: Threat
    message: str
    color: str
    reasons: tuple[str, ...]
    findings: tuple[Finding, ...]
    detail: dict
    has_tls: bool
    domain_age_days: Optional[int]
    domain_age_category: AgeCategory
    elapsed_ms: int = 0
    analyzed_at: float = 0.0

    @property
    def badge(self) -> str:
        return THREAT_BADGES[self.threat]

    def to_dict(self) -> dict:
        return {
            "status": str(self.status),
            "threat": str(self.threat),
            "message": self.message,
            "color": self.color,
            "risk_score": self.risk_score,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "domain": self.domain,
            "url": self.url,
            "has_ssl": self.has_tls,
            "domain_age": self.domain_age_days,
            "domain_category": str(self.domain_age_category),
            "detailed_analysis": self.detail,
            "analysis_time": self.elapsed_ms,
            "analyzed_at": self.analyzed_at,
        }


@dataclass(frozen=True)
class ErrorResult:
    """The only user-visible failure outcome of analyze()."""

    message: str
    status: str = "error"

    def to_dict(self) -> dict:
        return {"status": self.status, "message": self.message}


@dataclass
class PhishingReport:
    """A user report about an analyzed URL."""

    domain: str
    url: str
    risk_score: int
    status: str
    reasons: list[str]
    reported_at: float
    note: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
