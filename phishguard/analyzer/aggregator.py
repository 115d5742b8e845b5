"""Score aggregation.

Combines the signal outputs for one URL into a bounded risk score,
confidence and verdict. Pure: no I/O, no shared state. Caching and
statistics are the caller's job.

Contribution of each signal, in evaluation order:

    reputation   phishing +70 / legitimate -40 / unknown 0
    tls          +25 without HTTPS
    age          very_new +35 / new +20 / recent 0 / established -10
    patterns     min(total, 50)
    keywords     min(total, 40)
    homograph    uncapped
    structure    uncapped
    redirects    +20

The sum is clamped to [0, 100] and rounded half up before the verdict
thresholds are applied, so the reported score always agrees with the
reported status.
"""

from __future__ import annotations

import math

from ..constants import (
    KEYWORD_CAP,
    MAX_REASONS,
    PATTERN_CAP,
    VERDICT_COLORS,
    VERDICT_MESSAGES,
    VERDICT_THRESHOLDS,
    AgeCategory,
    ReputationStatus,
    Status,
    Threat,
)
from .formatters import format_reason
from .models import AnalysisResult, Finding, SignalChecks
from .signals import NO_TLS_POINTS, REDIRECT_POINTS, STRUCTURE_POINTS

REPUTATION_POINTS = {
    ReputationStatus.PHISHING: 70,
    ReputationStatus.LEGITIMATE: -40,
}

AGE_POINTS = {
    AgeCategory.VERY_NEW: 35,
    AgeCategory.NEW: 20,
    AgeCategory.RECENT: 0,
    AgeCategory.ESTABLISHED: -10,
}


def classify_risk(risk_score: int) -> tuple[Status, Threat]:
    """Map a clamped score to exactly one verdict."""
    for lower_bound, status, threat in VERDICT_THRESHOLDS:
        if risk_score >= lower_bound:
            return status, threat
    return Status.LEGITIMATE, Threat.MINIMAL


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _slug(text: str) -> str:
    return "_".join(text.lower().split())


def aggregate(
    domain: str,
    url: str,
    checks: SignalChecks,
    elapsed_ms: int = 0,
    analyzed_at: float = 0.0,
) -> AnalysisResult:
    """Combine all signal outputs into an AnalysisResult."""
    risk = 0.0
    confidence = 0.5
    findings: list[Finding] = []
    contributions: dict[str, float] = {}

    # Reputation
    reputation = checks.reputation
    points = REPUTATION_POINTS.get(reputation.status, 0)
    if points:
        risk += points
        confidence = max(confidence, reputation.confidence)
        findings.append(
            Finding("reputation", reputation.status.value, points, {"source": reputation.source.value})
        )
    contributions["reputation"] = points

    # TLS
    tls = checks.tls
    points = 0 if tls.has_tls else NO_TLS_POINTS
    if points:
        risk += points
        for index, issue in enumerate(tls.issues):
            findings.append(Finding("tls", _slug(issue), points if index == 0 else 0, {"issue": issue}))
    contributions["tls"] = points

    # Domain age
    age = checks.age
    points = AGE_POINTS[age.category]
    risk += points
    if points > 0:
        findings.append(Finding("age", age.category.value, points, {"days": age.days}))
    contributions["age"] = points

    # Suspicious patterns, capped
    patterns = checks.patterns
    points = min(patterns.total_weight, PATTERN_CAP) if patterns.total_weight > 0 else 0
    risk += points
    for match in patterns.matches:
        findings.append(Finding("pattern", match.pattern_id, match.weight, {"description": match.description}))
    contributions["patterns"] = points

    # Keywords with context, capped
    keywords = checks.keywords
    points = min(keywords.score, KEYWORD_CAP) if keywords.score > 0 else 0
    risk += points
    for kw in keywords.matches:
        findings.append(Finding("keyword", kw.word, kw.score, {"context_hits": kw.context_hits}))
    contributions["keywords"] = points

    # Homographs
    homograph = checks.homograph
    points = homograph.score if homograph.detected else 0
    if points:
        risk += points
        findings.append(Finding("homograph", "homograph", points, {"characters": homograph.characters}))
    contributions["homograph"] = points

    # Structure
    structure = checks.structure
    points = structure.score
    if points > 0:
        risk += points
        for issue in structure.issues:
            findings.append(Finding("structure", _slug(issue), STRUCTURE_POINTS.get(issue, 0), {"issue": issue}))
    contributions["structure"] = points

    # Redirects
    redirects = checks.redirects
    points = REDIRECT_POINTS if redirects.suspicious else 0
    if points:
        risk += points
        findings.append(Finding("redirect", "suspicious_redirect", points, {"chain": redirects.chain}))
    contributions["redirects"] = points

    risk_score = _round_half_up(max(0.0, min(100.0, risk)))
    status, threat = classify_risk(risk_score)

    # Fixed check order, not severity order.
    findings = findings[:MAX_REASONS]

    detail = {
        "reputation": reputation.to_dict(),
        "patterns": len(patterns.matches),
        "pattern_weight": patterns.total_weight,
        "keywords": len(keywords.matches),
        "keyword_score": keywords.score,
        "homograph": homograph.detected,
        "structure": len(structure.issues),
        "redirects": redirects.suspicious,
        "raw_risk": risk,
        "contributions": contributions,
    }

    return AnalysisResult(
        domain=domain,
        url=url,
        risk_score=risk_score,
        confidence=_round_half_up(confidence * 100),
        status=status,
        threat=threat,
        message=VERDICT_MESSAGES[status],
        color=VERDICT_COLORS[status],
        reasons=tuple(format_reason(f) for f in findings),
        findings=tuple(findings),
        detail=detail,
        has_tls=tls.has_tls,
        domain_age_days=age.days,
        domain_age_category=age.category,
        elapsed_ms=elapsed_ms,
        analyzed_at=analyzed_at,
    )
