"""SQLite-backed preference store: per (user, category, backend) win/total counters."""

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from arena.models import PreferenceStat

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS preference_stats (
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    backend TEXT NOT NULL,
    wins INTEGER NOT NULL DEFAULT 0,
    total INTEGER NOT NULL DEFAULT 0,
    updated_at REAL NOT NULL,
    PRIMARY KEY (user_id, category, backend),
    CHECK (wins >= 0 AND wins <= total)
)
"""

# Single statement per row: the increment happens inside SQLite, never in Python.
_UPSERT = """
INSERT INTO preference_stats (user_id, category, backend, wins, total, updated_at)
VALUES (?, ?, ?, ?, 1, ?)
ON CONFLICT (user_id, category, backend) DO UPDATE SET
    wins = wins + excluded.wins,
    total = total + 1,
    updated_at = excluded.updated_at
"""


class PreferenceStore:
    """Persistent win/total counters used by routing."""

    def __init__(self, db_path: Path | str, timeout_sec: float = 10.0) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout_sec = timeout_sec
        self._init_database()

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.execute(_SCHEMA)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_preference_user_category "
                "ON preference_stats(user_id, category)"
            )

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Preference store error: %s", exc)
            raise
        finally:
            conn.close()

    def increment(self, user_id: str, category: str, backend: str, *, won: bool) -> None:
        """Atomically add one round (and one win if ``won``) to a counter row."""
        with self._get_connection() as conn:
            conn.execute(_UPSERT, (user_id, category, backend, 1 if won else 0, time.time()))

    def stats_for(self, user_id: str, category: str) -> list[PreferenceStat]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT backend, wins, total FROM preference_stats "
                "WHERE user_id = ? AND category = ? ORDER BY backend",
                (user_id, category),
            ).fetchall()
        return [PreferenceStat(backend=r["backend"], wins=r["wins"], total=r["total"]) for r in rows]

    def stats_by_category(self, user_id: str) -> dict[str, list[PreferenceStat]]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT category, backend, wins, total FROM preference_stats "
                "WHERE user_id = ? ORDER BY category, wins DESC, backend",
                (user_id,),
            ).fetchall()
        grouped: dict[str, list[PreferenceStat]] = {}
        for r in rows:
            grouped.setdefault(r["category"], []).append(
                PreferenceStat(backend=r["backend"], wins=r["wins"], total=r["total"])
            )
        return grouped
