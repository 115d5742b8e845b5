"""Configuration management for PhishGuard."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

import yaml
from dotenv import load_dotenv

from .constants import (
    ANALYSIS_TTL_SECONDS,
    CACHE_MAX_AGE_SECONDS,
    REPUTATION_TTL_SECONDS,
)
from .utils.allowlist import read_domain_list

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("json", "sqlite", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))
    storage_backend: str = "json"  # json | sqlite | memory

    # Cache lifetimes
    reputation_ttl_seconds: int = REPUTATION_TTL_SECONDS
    analysis_ttl_seconds: int = ANALYSIS_TTL_SECONDS
    cache_max_age_seconds: int = CACHE_MAX_AGE_SECONDS

    # Background tasks
    intel_update_interval_minutes: int = 30
    housekeeping_interval_minutes: int = 60

    # Collaborators
    source_timeout_ms: int = 150
    intel_timeout_seconds: int = 10
    reputation_api_url: str = ""
    reputation_api_key: str = ""
    intel_feed_url: str = ""
    intel_feed_api_key: str = ""

    # JSON API
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    api_enabled: bool = True

    # Health/metrics
    health_host: str = "0.0.0.0"
    health_port: int = 8081
    health_enabled: bool = True

    log_level: str = "INFO"

    # Loaded lists
    allowlist: Set[str] = field(default_factory=set)
    denylist: Set[str] = field(default_factory=set)

    # Heuristics (override via config/heuristics.yaml)
    extra_patterns: list[dict] = field(default_factory=list)
    keyword_rules: list[dict] = field(default_factory=list)

    def __post_init__(self):
        """Ensure paths exist and load lists."""
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)

        if self.storage_backend != "memory":
            self.data_dir.mkdir(parents=True, exist_ok=True)

        self._load_lists()

    def _load_lists(self):
        """Load allowlist and denylist from config files."""
        self.allowlist = set(self.allowlist) | read_domain_list(self.config_dir / "allowlist.txt")
        self.denylist = set(self.denylist) | read_domain_list(self.config_dir / "denylist.txt")

    @property
    def source_timeout(self) -> float:
        return self.source_timeout_ms / 1000

    @property
    def state_path(self) -> Path:
        suffix = "db" if self.storage_backend == "sqlite" else "json"
        return self.data_dir / f"phishguard.{suffix}"


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}

    if not isinstance(data, dict):
        logger.warning("heuristics.yaml must contain a mapping; ignoring it")
        return {}

    def _coerce_patterns(raw):
        items: list[dict] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            pattern_id = str(entry.get("id") or "").strip()
            pattern = str(entry.get("pattern") or "").strip()
            try:
                weight = int(entry.get("weight"))
            except Exception:
                continue
            if not pattern_id or not pattern:
                continue
            items.append({
                "id": pattern_id,
                "pattern": pattern,
                "weight": weight,
                "description": str(entry.get("description") or "").strip() or pattern_id,
                "target": str(entry.get("target") or "url").strip().lower(),
            })
        return items

    def _coerce_keywords(raw):
        items: list[dict] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            word = str(entry.get("word") or "").strip().lower()
            context = entry.get("context") or []
            if isinstance(context, str):
                context = context.split(",")
            context = [str(c).strip().lower() for c in context if str(c).strip()]
            try:
                weight = int(entry.get("weight"))
            except Exception:
                continue
            if word and context:
                items.append({"word": word, "context": context, "weight": weight})
        return items

    return {
        "extra_patterns": _coerce_patterns(data.get("patterns")),
        "keyword_rules": _coerce_keywords(data.get("keywords")),
    }


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)

    return Config(
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
        storage_backend=os.getenv("STORAGE_BACKEND", "json").strip().lower() or "json",
        reputation_ttl_seconds=int(os.getenv("REPUTATION_TTL_SECONDS", str(REPUTATION_TTL_SECONDS))),
        analysis_ttl_seconds=int(os.getenv("ANALYSIS_TTL_SECONDS", str(ANALYSIS_TTL_SECONDS))),
        cache_max_age_seconds=int(os.getenv("CACHE_MAX_AGE_SECONDS", str(CACHE_MAX_AGE_SECONDS))),
        intel_update_interval_minutes=int(os.getenv("INTEL_UPDATE_INTERVAL_MINUTES", "30")),
        housekeeping_interval_minutes=int(os.getenv("HOUSEKEEPING_INTERVAL_MINUTES", "60")),
        source_timeout_ms=int(os.getenv("SOURCE_TIMEOUT_MS", "150")),
        intel_timeout_seconds=int(os.getenv("INTEL_TIMEOUT_SECONDS", "10")),
        reputation_api_url=os.getenv("REPUTATION_API_URL", ""),
        reputation_api_key=os.getenv("REPUTATION_API_KEY", ""),
        intel_feed_url=os.getenv("INTEL_FEED_URL", ""),
        intel_feed_api_key=os.getenv("INTEL_FEED_API_KEY", ""),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=int(os.getenv("API_PORT", "8080")),
        api_enabled=os.getenv("API_ENABLED", "true").lower() == "true",
        health_host=os.getenv("HEALTH_HOST", "0.0.0.0"),
        health_port=int(os.getenv("HEALTH_PORT", "8081")),
        health_enabled=os.getenv("HEALTH_ENABLED", "true").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        extra_patterns=heuristics.get("extra_patterns", []),
        keyword_rules=heuristics.get("keyword_rules", []),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if config.storage_backend not in STORAGE_BACKENDS:
        errors.append(
            f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)} (got {config.storage_backend!r})"
        )
    if config.log_level not in LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)} (got {config.log_level!r})")

    for name in (
        "reputation_ttl_seconds",
        "analysis_ttl_seconds",
        "cache_max_age_seconds",
        "intel_update_interval_minutes",
        "housekeeping_interval_minutes",
        "source_timeout_ms",
        "intel_timeout_seconds",
    ):
        if getattr(config, name) <= 0:
            errors.append(f"{name.upper()} must be positive")

    for name in ("api_port", "health_port"):
        port = getattr(config, name)
        if not 0 < port < 65536:
            errors.append(f"{name.upper()} must be a valid TCP port")

    if config.api_enabled and config.health_enabled and config.api_port == config.health_port:
        errors.append("API_PORT and HEALTH_PORT must differ")

    if not config.intel_feed_url:
        logger.info("No INTEL_FEED_URL configured; threat intelligence refresh is a no-op")
    if not config.reputation_api_url:
        logger.info("No REPUTATION_API_URL configured; unknown domains resolve to neutral reputation")

    return errors
