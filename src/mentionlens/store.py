"""SQLite-backed store for users, monitors and captured results."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from mentionlens.models import PlanTier, Platform, RawResult, as_utc

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id    TEXT PRIMARY KEY,
    plan       TEXT NOT NULL DEFAULT 'free'
);
CREATE TABLE IF NOT EXISTS monitors (
    monitor_id TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL,
    name       TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS results (
    result_id  TEXT PRIMARY KEY,
    monitor_id TEXT NOT NULL,
    title      TEXT NOT NULL,
    content    TEXT,
    platform   TEXT NOT NULL,
    sentiment  TEXT,
    source_url TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_results_monitor_created
    ON results (monitor_id, created_at DESC);
"""

# Upper bound on a single window query
MAX_WINDOW = 500


def _to_utc_text(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="microseconds")


class ResultStore:
    """Read side used by the insights engine, plus the writes that feed it."""

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._init_db()

    # ── public ──────────────────────────────────────────────────────────

    def set_plan(self, user_id: str, plan: PlanTier) -> None:
        con = self._connect()
        try:
            con.execute(
                """
                INSERT INTO users (user_id, plan) VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET plan = excluded.plan
                """,
                (user_id, plan.value),
            )
            con.commit()
        finally:
            con.close()

    def plan_for(self, user_id: str) -> str:
        """Return the user's plan tier as stored ('free' for unknown users)."""
        con = self._connect()
        try:
            row = con.execute(
                "SELECT plan FROM users WHERE user_id = ?", (user_id,)
            ).fetchone()
        finally:
            con.close()
        return row[0] if row else PlanTier.FREE.value

    def add_monitor(self, monitor_id: str, user_id: str, name: str = "") -> None:
        con = self._connect()
        try:
            con.execute(
                "INSERT OR IGNORE INTO monitors (monitor_id, user_id, name) VALUES (?, ?, ?)",
                (monitor_id, user_id, name),
            )
            con.commit()
        finally:
            con.close()

    def monitor_ids(self, user_id: str) -> list[str]:
        con = self._connect()
        try:
            cur = con.execute(
                "SELECT monitor_id FROM monitors WHERE user_id = ? ORDER BY monitor_id",
                (user_id,),
            )
            return [row[0] for row in cur.fetchall()]
        finally:
            con.close()

    def insert_results(self, monitor_id: str, items: Iterable[RawResult]) -> int:
        """Insert results for a monitor; return count of newly inserted rows."""
        rows = [
            (
                item.id,
                monitor_id,
                item.title,
                item.content,
                item.platform.value,
                item.sentiment,
                item.source_url,
                _to_utc_text(item.created_at),
            )
            for item in items
        ]
        con = self._connect()
        try:
            before = self._count(con)
            con.executemany(
                """
                INSERT OR IGNORE INTO results
                    (result_id, monitor_id, title, content, platform, sentiment, source_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            con.commit()
            return self._count(con) - before
        finally:
            con.close()

    def recent_results(
        self,
        monitor_ids: list[str],
        since: datetime,
        limit: int = MAX_WINDOW,
    ) -> list[RawResult]:
        """Newest-first results for *monitor_ids* created after *since*."""
        if not monitor_ids:
            return []
        limit = min(limit, MAX_WINDOW)
        placeholders = ", ".join("?" for _ in monitor_ids)
        con = self._connect()
        try:
            cur = con.execute(
                f"""
                SELECT result_id, title, content, platform, sentiment, source_url, created_at
                FROM results
                WHERE monitor_id IN ({placeholders}) AND created_at >= ?
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (*monitor_ids, _to_utc_text(since), limit),
            )
            rows = cur.fetchall()
        finally:
            con.close()

        results = [
            RawResult(
                id=row[0],
                title=row[1],
                content=row[2],
                platform=Platform(row[3]),
                sentiment=row[4],
                source_url=row[5],
                created_at=datetime.fromisoformat(row[6]),
            )
            for row in rows
        ]
        logger.debug("Loaded %d results for %d monitors", len(results), len(monitor_ids))
        return results

    # ── private ─────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path))

    def _init_db(self) -> None:
        con = self._connect()
        con.executescript(_SCHEMA)
        con.close()

    @staticmethod
    def _count(con: sqlite3.Connection) -> int:
        cur = con.execute("SELECT COUNT(*) FROM results")
        return cur.fetchone()[0]  # type: ignore[no-any-return]
