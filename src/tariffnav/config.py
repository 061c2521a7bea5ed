"""Environment-driven settings.

All variables share the ``TARIFFNAV_`` prefix, e.g. ``TARIFFNAV_ORACLE_URL``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Optional

from tariffnav.errors import ConfigurationError

_PREFIX = "TARIFFNAV_"

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_HTS_DATA_PATH = PACKAGE_DATA_DIR / "hts_seed.jsonl"
DEFAULT_MATERIAL_ROUTES_PATH = PACKAGE_DATA_DIR / "material_routes.json"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(f"{_PREFIX}{name}")
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_PREFIX}{name} must be a number, got {raw!r}") from exc


def _parse_keys(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(key.strip() for key in raw.split(",") if key.strip())


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration."""

    hts_data_path: Path = DEFAULT_HTS_DATA_PATH
    material_routes_path: Path = DEFAULT_MATERIAL_ROUTES_PATH
    scoring_weights_path: Optional[Path] = None
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    oracle_url: Optional[str] = None
    oracle_api_key: Optional[str] = None
    oracle_timeout_sec: float = 10.0
    chapter_cache_ttl_sec: int = 3600
    search_workers: int = 3
    api_keys: FrozenSet[str] = field(default_factory=lambda: frozenset({"dev-key"}))
    rate_limit_per_minute: int = 60

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.oracle_url)


def settings_from_env() -> Settings:
    """Build settings from the current process environment."""

    weights_path = _env("SCORING_WEIGHTS_PATH")
    timeout = _env_float("ORACLE_TIMEOUT_SEC", 10.0)
    if timeout <= 0:
        raise ConfigurationError(f"{_PREFIX}ORACLE_TIMEOUT_SEC must be positive")
    keys = _parse_keys(_env("API_KEYS")) or frozenset({"dev-key"})
    return Settings(
        hts_data_path=Path(_env("HTS_DATA_PATH", str(DEFAULT_HTS_DATA_PATH))),
        material_routes_path=Path(
            _env("MATERIAL_ROUTES_PATH", str(DEFAULT_MATERIAL_ROUTES_PATH))
        ),
        scoring_weights_path=Path(weights_path) if weights_path else None,
        database_url=_env("DATABASE_URL"),
        redis_url=_env("REDIS_URL"),
        oracle_url=_env("ORACLE_URL"),
        oracle_api_key=_env("ORACLE_API_KEY"),
        oracle_timeout_sec=timeout,
        chapter_cache_ttl_sec=max(1, _env_int("CHAPTER_CACHE_TTL_SEC", 3600)),
        search_workers=max(1, _env_int("SEARCH_WORKERS", 3)),
        api_keys=keys,
        rate_limit_per_minute=max(1, _env_int("RATE_LIMIT_PER_MINUTE", 60)),
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return settings_from_env()


def reset_settings_cache() -> None:
    """Forget memoized settings so the next call re-reads the environment."""

    load_settings.cache_clear()
