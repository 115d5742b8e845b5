"""Health and metrics endpoints for PhishGuard.

/healthz returns the engine's status snapshot as JSON and answers 503 once
the engine is stopped or its status cannot be read. /metrics renders the
same snapshot in the Prometheus text format.
"""

from __future__ import annotations

import logging
from typing import Callable

from aiohttp import web

logger = logging.getLogger(__name__)

METRIC_PREFIX = "phishguard"

# Statuses that still serve verdicts; "degraded" means saves are failing.
SERVING_STATUSES = frozenset({"ok", "degraded"})

METRIC_TYPES: dict[str, tuple[str, str]] = {
    "uptime_seconds": ("gauge", "Seconds since the engine was created"),
    "sites_analyzed": ("counter", "URLs scored since statistics were last reset"),
    "threats_blocked": ("counter", "URLs classified as phishing"),
    "suspicious_sites": ("counter", "URLs classified as suspicious or questionable"),
    "legitimate_sites": ("counter", "URLs classified as legitimate"),
    "protection_rate": ("gauge", "Percent of analyzed URLs classified as phishing"),
    "blacklist_size": ("gauge", "Domains on the blacklist"),
    "whitelist_size": ("gauge", "Domains on the whitelist"),
    "reputation_cache_entries": ("gauge", "Cached domain reputations"),
    "analysis_cache_entries": ("gauge", "Cached URL verdicts"),
    "reputation_fallbacks": ("counter", "Reputation lookups answered with the unknown fallback"),
    "intel_failures": ("counter", "Failed threat intelligence refreshes"),
    "intel_age_seconds": ("gauge", "Seconds since the last successful threat intelligence refresh"),
    "save_failures": ("counter", "Failed state saves"),
    "state_saved": ("gauge", "1 when the persisted state matches memory"),
    "reports": ("gauge", "User reports held in the report log"),
}


def render_metrics(data: dict) -> str:
    """Render a status snapshot as Prometheus text.

    Known engine fields get HELP/TYPE lines; other numeric fields are
    exported untyped. Booleans become 0/1 and non-numeric values (including
    None) are skipped.
    """
    lines = []
    status = data.get("status")
    if status is not None:
        up = f"{METRIC_PREFIX}_up"
        lines += [
            f"# HELP {up} 1 while the engine is serving verdicts",
            f"# TYPE {up} gauge",
            f"{up} {1 if status in SERVING_STATUSES else 0}",
        ]

    for key, value in data.items():
        if not isinstance(value, (int, float)):
            continue
        name = f"{METRIC_PREFIX}_{str(key).replace('.', '_').replace('-', '_')}"
        kind, help_text = METRIC_TYPES.get(key, ("untyped", ""))
        if help_text:
            lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} {kind}")
        lines.append(f"{name} {int(value) if isinstance(value, bool) else value}")

    if not lines:
        lines.append(f'{METRIC_PREFIX}_status{{state="empty"}} 1')
    return "\n".join(lines) + "\n"


class HealthServer:
    """Serves /healthz and /metrics for one status provider."""

    def __init__(
        self,
        host: str,
        port: int,
        status_provider: Callable[[], dict],
        enabled: bool = True,
    ):
        self.host = host
        self.port = port
        self.status_provider = status_provider
        self.enabled = enabled
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self):
        """Start the health server."""
        if not self.enabled:
            logger.info("Health server disabled")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("Health server listening on %s:%s", self.host, self.port)

    async def stop(self):
        """Stop the health server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    def _status(self) -> dict:
        try:
            return dict(self.status_provider() or {})
        except Exception as exc:
            logger.warning("Health status provider failed: %s", exc)
            return {"status": "error", "message": str(exc)}

    async def _handle_health(self, request):  # noqa: ANN001
        payload = self._status()
        payload.setdefault("status", "ok")
        code = 200 if payload["status"] in SERVING_STATUSES else 503
        return web.json_response(payload, status=code, headers={"Access-Control-Allow-Origin": "*"})

    async def _handle_metrics(self, request):  # noqa: ANN001
        return web.Response(text=render_metrics(self._status()))
