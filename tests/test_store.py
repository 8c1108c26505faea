"""Tests for arena/store.py (SQLite preference counters)."""

import sqlite3
import threading
from pathlib import Path

import pytest

from arena.models import PreferenceStat
from arena.store import PreferenceStore


def test_creates_parent_directory(tmp_path: Path):
    db_path = tmp_path / "nested" / "dir" / "prefs.db"
    PreferenceStore(db_path)
    assert db_path.exists()


def test_first_increment_inserts_row(store):
    store.increment("alice", "code", "gpt", won=True)
    assert store.stats_for("alice", "code") == [PreferenceStat("gpt", wins=1, total=1)]


def test_increment_accumulates(store):
    store.increment("alice", "code", "gpt", won=True)
    store.increment("alice", "code", "gpt", won=False)
    store.increment("alice", "code", "gpt", won=True)
    assert store.stats_for("alice", "code") == [PreferenceStat("gpt", wins=2, total=3)]


def test_stats_are_scoped_by_user_and_category(store):
    store.increment("alice", "code", "gpt", won=True)
    store.increment("bob", "code", "gpt", won=False)
    store.increment("alice", "writing", "claude", won=True)

    assert store.stats_for("alice", "code") == [PreferenceStat("gpt", 1, 1)]
    assert store.stats_for("bob", "code") == [PreferenceStat("gpt", 0, 1)]
    assert store.stats_for("alice", "research") == []


def test_stats_by_category_orders_by_wins(store):
    store.increment("alice", "code", "claude", won=False)
    store.increment("alice", "code", "gpt", won=True)
    store.increment("alice", "writing", "claude", won=True)

    grouped = store.stats_by_category("alice")
    assert [s.backend for s in grouped["code"]] == ["gpt", "claude"]
    assert grouped["writing"] == [PreferenceStat("claude", 1, 1)]


def test_data_persists_across_instances(tmp_path: Path):
    db_path = tmp_path / "prefs.db"
    PreferenceStore(db_path).increment("alice", "code", "gpt", won=True)
    assert PreferenceStore(db_path).stats_for("alice", "code") == [PreferenceStat("gpt", 1, 1)]


def test_wins_cannot_exceed_total(store):
    with pytest.raises(sqlite3.IntegrityError):
        with store._get_connection() as conn:
            conn.execute(
                "INSERT INTO preference_stats (user_id, category, backend, wins, total, updated_at) "
                "VALUES ('alice', 'code', 'gpt', 3, 1, 0)"
            )


def test_concurrent_increments_lose_no_updates(store):
    """Parallel writers on the same row: every increment lands."""
    def worker(won: bool) -> None:
        for _ in range(25):
            store.increment("alice", "code", "gpt", won=won)

    threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    [stat] = store.stats_for("alice", "code")
    assert stat.total == 100
    assert stat.wins == 50
