from __future__ import annotations

import logging
from pathlib import Path

import pytest

from reflex_arena.config import (
    SurvivalConfig,
    ad_seconds_from_env,
    config_from_env,
    db_path_from_env,
    log_level_from_env,
)


def test_defaults() -> None:
    cfg = SurvivalConfig()
    assert (cfg.base_quota, cfg.quota_cap, cfg.max_continuations) == (30, 60, 2)
    assert cfg.minute_s == 60.0
    assert cfg.ledger_retention_s == 300.0
    assert cfg.oracle_timeout_s == 60.0
    assert cfg.seed is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_quota": 0},
        {"quota_cap": 10},
        {"minute_s": 0.0},
        {"max_continuations": -1},
        {"ledger_retention_s": 30.0},
        {"oracle_timeout_s": 0.0},
        {"xp_multiplier": -1.0},
    ],
)
def test_invalid_values_raise(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SurvivalConfig(**kwargs)


def test_config_from_env_reads_overrides() -> None:
    cfg = config_from_env(
        {
            "REFLEX_BASE_QUOTA": "20",
            "REFLEX_QUOTA_CAP": "40",
            "REFLEX_MAX_CONTINUATIONS": "3",
            "REFLEX_ORACLE_TIMEOUT_S": "15.5",
            "REFLEX_SEED": "42",
        }
    )
    assert cfg == SurvivalConfig(base_quota=20, quota_cap=40, max_continuations=3, oracle_timeout_s=15.5, seed=42)


def test_malformed_env_values_fall_back(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="reflex_arena.config"):
        cfg = config_from_env({"REFLEX_BASE_QUOTA": "lots", "REFLEX_ORACLE_TIMEOUT_S": "soon"})
    assert cfg.base_quota == 30
    assert cfg.oracle_timeout_s == 60.0
    assert "REFLEX_BASE_QUOTA" in caplog.text


def test_inconsistent_env_values_use_defaults() -> None:
    cfg = config_from_env({"REFLEX_BASE_QUOTA": "50", "REFLEX_QUOTA_CAP": "40"})
    assert cfg == SurvivalConfig()


def test_shell_settings_from_env(tmp_path: Path) -> None:
    env = {
        "REFLEX_DB_PATH": str(tmp_path / "x.sqlite3"),
        "REFLEX_LOG_LEVEL": "debug",
        "REFLEX_AD_SECONDS": "2.5",
    }
    assert db_path_from_env(env) == tmp_path / "x.sqlite3"
    assert log_level_from_env(env) == logging.DEBUG
    assert ad_seconds_from_env(env) == 2.5

    assert db_path_from_env({}) == Path.home() / ".reflex_arena.sqlite3"
    assert log_level_from_env({"REFLEX_LOG_LEVEL": "chatty"}) == logging.WARNING
    assert ad_seconds_from_env({"REFLEX_AD_SECONDS": "-3"}) == 0.0
