"""Analyzer modules for PhishGuard."""

from .aggregator import aggregate, classify_risk
from .metrics import Statistics, StatisticsAccumulator
from .patterns import DEFAULT_REGISTRY, PatternRegistry
from .reputation import DomainLists, ReputationResolver
from .threat_intel_updater import ThreatIntelUpdater, UpdateResult

__all__ = [
    "aggregate",
    "classify_risk",
    "Statistics",
    "StatisticsAccumulator",
    "DEFAULT_REGISTRY",
    "PatternRegistry",
    "DomainLists",
    "ReputationResolver",
    "ThreatIntelUpdater",
    "UpdateResult",
]
