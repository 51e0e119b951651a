from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH_ENV = "REFLEX_DB_PATH"
LOG_LEVEL_ENV = "REFLEX_LOG_LEVEL"
AD_SECONDS_ENV = "REFLEX_AD_SECONDS"


@dataclass(frozen=True, slots=True)
class SurvivalConfig:
    base_quota: int = 30
    quota_cap: int = 60
    minute_s: float = 60.0
    max_continuations: int = 2
    ledger_retention_s: float = 300.0
    oracle_timeout_s: float = 60.0
    xp_multiplier: float = 1.5
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.base_quota <= 0:
            raise ValueError("base_quota must be > 0")
        if self.quota_cap < self.base_quota:
            raise ValueError("quota_cap must be >= base_quota")
        if self.minute_s <= 0.0:
            raise ValueError("minute_s must be > 0")
        if self.max_continuations < 0:
            raise ValueError("max_continuations must be >= 0")
        if self.ledger_retention_s < self.minute_s:
            raise ValueError("ledger_retention_s must cover at least one minute")
        if self.oracle_timeout_s <= 0.0:
            raise ValueError("oracle_timeout_s must be > 0")
        if self.xp_multiplier < 0.0:
            raise ValueError("xp_multiplier must be >= 0")


def _env_int(environ: Mapping[str, str], key: str, fallback: int | None) -> int | None:
    raw = environ.get(key, "").strip()
    if raw == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r (not an integer)", key, raw)
        return fallback


def _env_float(environ: Mapping[str, str], key: str, fallback: float) -> float:
    raw = environ.get(key, "").strip()
    if raw == "":
        return fallback
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring %s=%r (not a number)", key, raw)
        return fallback


def config_from_env(environ: Mapping[str, str] | None = None) -> SurvivalConfig:
    env = os.environ if environ is None else environ
    d = SurvivalConfig()
    base_quota = _env_int(env, "REFLEX_BASE_QUOTA", d.base_quota)
    quota_cap = _env_int(env, "REFLEX_QUOTA_CAP", d.quota_cap)
    max_continuations = _env_int(env, "REFLEX_MAX_CONTINUATIONS", d.max_continuations)
    try:
        return SurvivalConfig(
            base_quota=d.base_quota if base_quota is None else base_quota,
            quota_cap=d.quota_cap if quota_cap is None else quota_cap,
            max_continuations=d.max_continuations if max_continuations is None else max_continuations,
            oracle_timeout_s=_env_float(env, "REFLEX_ORACLE_TIMEOUT_S", d.oracle_timeout_s),
            seed=_env_int(env, "REFLEX_SEED", None),
        )
    except ValueError as exc:
        logger.warning("invalid survival settings in environment (%s); using defaults", exc)
        return d


def db_path_from_env(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    explicit = env.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".reflex_arena.sqlite3"


def log_level_from_env(environ: Mapping[str, str] | None = None) -> int:
    env = os.environ if environ is None else environ
    name = env.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def ad_seconds_from_env(environ: Mapping[str, str] | None = None) -> float:
    env = os.environ if environ is None else environ
    return max(0.0, _env_float(env, AD_SECONDS_ENV, 5.0))
