"""Periodic threat-intelligence merge into the domain lists."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import ExternalSourceError
from ..utils.domains import normalize_domain
from .reputation import DomainLists
from .sources import IntelligenceSource, call_source

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Result of a threat intel refresh."""
    updated: bool
    phishing_added: list[str] = field(default_factory=list)
    legitimate_added: list[str] = field(default_factory=list)
    phishing_count: int = 0
    legitimate_count: int = 0
    last_update: Optional[float] = None
    message: str = ""

    def summary(self) -> dict:
        return {
            "last_update": self.last_update,
            "phishing_count": self.phishing_count,
            "legitimate_count": self.legitimate_count,
        }


def _validate_batch(entries, kind: str) -> list[str]:
    """Normalize a whole batch or reject it."""
    if entries is None:
        return []
    if not isinstance(entries, (list, tuple, set)):
        raise ExternalSourceError("intelligence", f"{kind} list is not a list")
    domains: list[str] = []
    for item in entries:
        value = normalize_domain(item) if isinstance(item, str) else ""
        if not value:
            raise ExternalSourceError("intelligence", f"invalid {kind} entry: {item!r}")
        domains.append(value)
    return domains


class ThreatIntelUpdater:
    """Merges intelligence feed additions into the blacklist/whitelist.

    A batch is applied all-or-nothing: it is fully fetched and validated
    before any domain is merged, so a failed refresh leaves the lists as
    they were. Re-adding known domains is a no-op.
    """

    def __init__(
        self,
        lists: DomainLists,
        source: IntelligenceSource,
        timeout: float = 10.0,
        on_added: Optional[Callable[[list[str]], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.lists = lists
        self.source = source
        self.timeout = timeout
        self.on_added = on_added
        self._clock = clock
        self._lock = asyncio.Lock()

        self.failures = 0
        self.last_summary: dict = {}

    async def refresh(self) -> UpdateResult:
        """Fetch one batch and merge it.

        Returns:
            UpdateResult describing what changed; `updated` is False on
            failure and `message` carries the error.
        """
        async with self._lock:
            try:
                update = await call_source(self.source.fetch_updates(), "intelligence", self.timeout)
                phishing = _validate_batch(update.phishing, "phishing")
                legitimate = _validate_batch(update.legitimate, "legitimate")
            except ExternalSourceError as e:
                self.failures += 1
                logger.error(f"Threat intelligence update failed: {e}")
                phishing_count, legitimate_count = self.lists.counts()
                result = UpdateResult(
                    updated=False,
                    phishing_count=phishing_count,
                    legitimate_count=legitimate_count,
                    last_update=self.last_summary.get("last_update"),
                    message=f"Error: {e}",
                )
                return result

            added_phishing, added_legitimate = self.lists.merge(phishing, legitimate)
            phishing_count, legitimate_count = self.lists.counts()

            result = UpdateResult(
                updated=bool(added_phishing or added_legitimate),
                phishing_added=added_phishing,
                legitimate_added=added_legitimate,
                phishing_count=phishing_count,
                legitimate_count=legitimate_count,
                last_update=self._clock(),
                message=f"+{len(added_phishing)} phishing, +{len(added_legitimate)} legitimate",
            )
            self.last_summary = result.summary()

        if result.updated:
            logger.info(
                f"Threat intel updated: {result.message} "
                f"(now {phishing_count} phishing, {legitimate_count} legitimate)"
            )
            if self.on_added:
                self.on_added(added_phishing + added_legitimate)
        else:
            logger.info("Threat intel refresh: no new domains")

        return result
