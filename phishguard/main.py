"""Main entry point for the PhishGuard service."""

import asyncio
import logging
import signal
import sys

from .analyzer.patterns import DEFAULT_REGISTRY
from .analyzer.reputation import DomainLists
from .analyzer.sources import (
    HttpIntelligenceSource,
    HttpReputationSource,
    NullReputationSource,
    StaticIntelligenceSource,
)
from .config import Config, load_config, validate_config
from .dashboard.server import ApiServer
from .monitoring.health import HealthServer
from .pipeline.analysis import AnalysisEngine
from .storage import JsonDocumentStore, MemoryDocumentStore, SqliteDocumentStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger(__name__)


def build_store(config: Config):
    match config.storage_backend:
        case "sqlite":
            return SqliteDocumentStore(config.state_path)
        case "memory":
            return MemoryDocumentStore()
        case _:
            return JsonDocumentStore(config.state_path)


def build_engine(config: Config) -> AnalysisEngine:
    """Wire an AnalysisEngine from configuration."""
    if config.reputation_api_url:
        reputation_source = HttpReputationSource(
            config.reputation_api_url,
            api_key=config.reputation_api_key or None,
            timeout=config.source_timeout,
        )
    else:
        reputation_source = NullReputationSource()

    if config.intel_feed_url:
        intel_source = HttpIntelligenceSource(
            config.intel_feed_url,
            api_key=config.intel_feed_api_key or None,
            timeout=config.intel_timeout_seconds,
        )
    else:
        intel_source = StaticIntelligenceSource()

    registry = DEFAULT_REGISTRY
    if config.extra_patterns or config.keyword_rules:
        registry = DEFAULT_REGISTRY.extended(config.extra_patterns, config.keyword_rules)

    return AnalysisEngine(
        registry=registry,
        lists=DomainLists.with_defaults(config.denylist, config.allowlist),
        reputation_source=reputation_source,
        intel_source=intel_source,
        store=build_store(config),
        reputation_ttl=config.reputation_ttl_seconds,
        analysis_ttl=config.analysis_ttl_seconds,
        cache_max_age=config.cache_max_age_seconds,
        intel_interval=config.intel_update_interval_minutes * 60,
        housekeeping_interval=config.housekeeping_interval_minutes * 60,
        source_timeout=config.source_timeout,
        intel_timeout=config.intel_timeout_seconds,
    )


class PhishGuardService:
    """Runs the engine with its HTTP surfaces until stopped."""

    def __init__(self, config: Config):
        self.config = config
        self.engine = build_engine(config)
        self.api_server = ApiServer(
            self.engine,
            host=config.api_host,
            port=config.api_port,
            enabled=config.api_enabled,
        )
        self.health_server = HealthServer(
            host=config.health_host,
            port=config.health_port,
            status_provider=self.engine.status_snapshot,
            enabled=config.health_enabled,
        )
        self._stopped = asyncio.Event()
        self._stop_lock = asyncio.Lock()
        self._stop_task: asyncio.Task | None = None

    async def start(self):
        """Start the engine and servers, then wait for stop()."""
        logger.info("Starting PhishGuard...")
        await self.engine.start()
        await self.api_server.start()
        await self.health_server.start()
        logger.info("PhishGuard running")
        await self._stopped.wait()

    async def stop(self):
        """Stop all components (idempotent)."""
        async with self._stop_lock:
            if self._stop_task is None:
                self._stop_task = asyncio.create_task(self._stop_impl())
            stop_task = self._stop_task
        await stop_task

    async def _stop_impl(self):
        logger.info("Stopping PhishGuard...")
        await self.health_server.stop()
        await self.api_server.stop()
        await self.engine.stop()
        self._stopped.set()
        logger.info("PhishGuard stopped")


async def run_service():
    """Run the PhishGuard service."""
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)

    service = PhishGuardService(config)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

    try:
        await service.start()
    except KeyboardInterrupt:
        pass
    finally:
        await service.stop()


def main():
    """Entry point."""
    asyncio.run(run_service())


if __name__ == "__main__":
    main()
