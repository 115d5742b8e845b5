"""JSON API for PhishGuard."""

from __future__ import annotations

import logging

from aiohttp import web

from ..analyzer.models import ErrorResult
from ..pipeline.analysis import AnalysisEngine
from ..utils.domains import normalize_domain

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
MAX_NOTE_LENGTH = 1000


class ApiServer:
    """aiohttp front end over an AnalysisEngine."""

    def __init__(self, engine: AnalysisEngine, host: str = "127.0.0.1", port: int = 8080, enabled: bool = True):
        self.engine = engine
        self.host = host
        self.port = port
        self.enabled = enabled
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/analyze", self._analyze)
        app.router.add_post("/api/block", self._block)
        app.router.add_post("/api/trust", self._trust)
        app.router.add_post("/api/unblock", self._unblock)
        app.router.add_post("/api/untrust", self._untrust)
        app.router.add_get("/api/lists", self._lists)
        app.router.add_post("/api/report", self._report)
        app.router.add_get("/api/statistics", self._statistics)
        app.router.add_post("/api/statistics/reset", self._reset_statistics)
        app.router.add_post("/api/refresh", self._refresh)
        return app

    async def start(self):
        if not self.enabled:
            logger.info("API server disabled")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("API server listening on %s:%s", self.host, self.port)

    async def stop(self):
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    @staticmethod
    async def _json_body(request: web.Request) -> dict | None:
        try:
            data = await request.json()
        except Exception:
            return None
        return data if isinstance(data, dict) else None

    async def _analyze(self, request: web.Request) -> web.Response:
        url = (request.query.get("url") or "").strip()
        if not url:
            return web.json_response({"error": "url is required"}, status=400)
        if len(url) > MAX_URL_LENGTH:
            return web.json_response({"error": "URL too long"}, status=400)

        result = await self.engine.analyze(url)
        status = 400 if isinstance(result, ErrorResult) else 200
        return web.json_response(result.to_dict(), status=status)

    async def _domain_action(self, request: web.Request, action) -> web.Response:
        data = await self._json_body(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON payload"}, status=400)

        domain = normalize_domain(str(data.get("domain") or ""))
        if not domain:
            return web.json_response({"error": "domain is required"}, status=400)

        changed = await action(domain)
        return web.json_response({"status": "ok", "domain": domain, "changed": changed})

    async def _block(self, request: web.Request) -> web.Response:
        return await self._domain_action(request, self.engine.block)

    async def _trust(self, request: web.Request) -> web.Response:
        return await self._domain_action(request, self.engine.trust)

    async def _unblock(self, request: web.Request) -> web.Response:
        return await self._domain_action(request, self.engine.unblock)

    async def _untrust(self, request: web.Request) -> web.Response:
        return await self._domain_action(request, self.engine.untrust)

    async def _lists(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "blacklist": self.engine.blocked_domains(),
                "whitelist": self.engine.trusted_domains(),
            }
        )

    async def _report(self, request: web.Request) -> web.Response:
        data = await self._json_body(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON payload"}, status=400)

        url = str(data.get("url") or "").strip()
        if not url:
            return web.json_response({"error": "url is required"}, status=400)
        if len(url) > MAX_URL_LENGTH:
            return web.json_response({"error": "URL too long"}, status=400)
        note = str(data.get("note") or "").strip()[:MAX_NOTE_LENGTH]

        result = await self.engine.analyze(url)
        if isinstance(result, ErrorResult):
            return web.json_response(result.to_dict(), status=400)

        report = await self.engine.report(result, note=note)
        return web.json_response({"status": "reported", "report": report.to_dict()}, status=201)

    async def _statistics(self, request: web.Request) -> web.Response:
        return web.json_response(self.engine.get_statistics().to_dict())

    async def _reset_statistics(self, request: web.Request) -> web.Response:
        stats = await self.engine.reset_statistics()
        return web.json_response(stats.to_dict())

    async def _refresh(self, request: web.Request) -> web.Response:
        result = await self.engine.refresh_threat_intelligence()
        payload = {
            "updated": result.updated,
            "message": result.message,
            "phishing_added": result.phishing_added,
            "legitimate_added": result.legitimate_added,
            **result.summary(),
        }
        return web.json_response(payload, status=200 if not result.message.startswith("Error") else 502)
