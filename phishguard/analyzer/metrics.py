"""Verdict statistics.

Running counters over completed analyses. Owned by one engine; callers
only ever get copies.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from ..constants import Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statistics:
    """Read-only snapshot of the counters."""

    sites_analyzed: int = 0
    threats_blocked: int = 0
    legitimate_sites: int = 0
    suspicious_sites: int = 0
    total_risk_score: int = 0
    last_update: Optional[float] = None

    @property
    def protection_rate(self) -> float:
        """Percentage of analyzed sites classified as phishing."""
        if self.sites_analyzed <= 0:
            return 0.0
        return self.threats_blocked / self.sites_analyzed * 100

    @property
    def average_risk_score(self) -> float:
        if self.sites_analyzed <= 0:
            return 0.0
        return self.total_risk_score / self.sites_analyzed

    def to_dict(self) -> dict:
        data = asdict(self)
        data["protection_rate"] = self.protection_rate
        data["average_risk_score"] = self.average_risk_score
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Statistics":
        def _int(key: str) -> int:
            try:
                return max(0, int(data.get(key) or 0))
            except (TypeError, ValueError):
                return 0

        last_update = data.get("last_update")
        return cls(
            sites_analyzed=_int("sites_analyzed"),
            threats_blocked=_int("threats_blocked"),
            legitimate_sites=_int("legitimate_sites"),
            suspicious_sites=_int("suspicious_sites"),
            total_risk_score=_int("total_risk_score"),
            last_update=float(last_update) if isinstance(last_update, (int, float)) else None,
        )


class StatisticsAccumulator:
    """Thread-safe verdict counters."""

    def __init__(self, initial: Optional[Statistics] = None, clock: Callable[[], float] = time.time):
        self._lock = threading.Lock()
        self._clock = clock
        self._stats = initial or Statistics()

    def record(self, status: Status, risk_score: int) -> Statistics:
        """Count one completed analysis. Questionable counts as suspicious."""
        with self._lock:
            s = self._stats
            self._stats = Statistics(
                sites_analyzed=s.sites_analyzed + 1,
                threats_blocked=s.threats_blocked + (1 if status == Status.PHISHING else 0),
                legitimate_sites=s.legitimate_sites + (1 if status == Status.LEGITIMATE else 0),
                suspicious_sites=s.suspicious_sites
                + (1 if status in (Status.SUSPICIOUS, Status.QUESTIONABLE) else 0),
                total_risk_score=s.total_risk_score + int(risk_score),
                last_update=self._clock(),
            )
            return self._stats

    def snapshot(self) -> Statistics:
        with self._lock:
            return self._stats

    def reset(self) -> None:
        with self._lock:
            self._stats = Statistics(last_update=self._clock())
        logger.info("Statistics reset")
