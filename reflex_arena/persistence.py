from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
XP_PER_LEVEL = 1000


def open_db(path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS survival_run (
                id INTEGER PRIMARY KEY,
                completed_at_utc TEXT NOT NULL,
                final_score INTEGER NOT NULL,
                xp INTEGER NOT NULL,
                challenges_answered INTEGER NOT NULL
            );
            """
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def player_level(total_xp: int) -> int:
    return total_xp // XP_PER_LEVEL + 1


@dataclass(frozen=True, slots=True)
class PlayerTotals:
    runs: int
    best_score: int
    total_xp: int
    level: int


class SqliteRunStore:
    """Session-end sink that appends one row per finished survival run."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path

    def on_session_end(self, *, final_score: int, derived_xp: int, challenges_answered: int) -> None:
        conn = open_db(self._db_path)
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO survival_run(completed_at_utc, final_score, xp, challenges_answered)
                    VALUES (?, ?, ?, ?)
                    """,
                    (_utc_now_iso(), int(final_score), int(derived_xp), int(challenges_answered)),
                )
        finally:
            conn.close()
        logger.debug("recorded survival run: score=%d xp=%d", final_score, derived_xp)

    def totals(self) -> PlayerTotals:
        conn = open_db(self._db_path)
        try:
            row = conn.execute(
                "SELECT COUNT(*), COALESCE(MAX(final_score), 0), COALESCE(SUM(xp), 0) FROM survival_run"
            ).fetchone()
        finally:
            conn.close()
        runs, best, total_xp = (int(v) for v in row)
        return PlayerTotals(runs=runs, best_score=best, total_xp=total_xp, level=player_level(total_xp))
