"""SQLite-backed storage for analytics events and sessions."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .constants import DEFAULT_SITE_ID
from .migrate import MigrationError, MigrationRunner

logger = logging.getLogger(__name__)

_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA cache_size = -2000",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
    "PRAGMA foreign_keys = ON",
    "PRAGMA auto_vacuum = INCREMENTAL",
    "PRAGMA page_size = 4096",
    "PRAGMA mmap_size = 268435456",
)


class StorageError(Exception):
    """Raised when a database operation fails."""


def _format_timestamp(ts: datetime) -> str:
    """Format as RFC 3339 with second precision, naive values taken as local."""
    if ts.tzinfo is None:
        ts = ts.astimezone()
    text = ts.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        return text[: -len("+00:00")] + "Z"
    return text


def _parse_timestamp(text: str) -> datetime:
    value = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {text!r} has no UTC offset")
    return parsed


@dataclass
class Event:
    """An analytics event such as a pageview."""

    type: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    url: str = ""
    title: str = ""
    referrer: str = ""
    session_id: str = ""
    metadata: dict[str, Any] | None = None
    id: int = 0
    site_id: str = ""
    created_at: datetime | None = None


@dataclass
class Session:
    """A visitor session, maintained by a trigger on pageview events."""

    id: str
    site_id: str
    started_at: datetime
    ended_at: datetime | None = None
    duration: int | None = None
    pages_viewed: int = 0
    entry_page: str = ""
    exit_page: str = ""
    referrer: str = ""
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class RealtimeStats:
    """Counts for the live dashboard."""

    active_visitors: int = 0
    pageviews_today: int = 0
    total_sessions: int = 0


class Database:
    """A configured SQLite connection with the analytics schema applied."""

    def __init__(
        self, path: str | os.PathLike, migrations_path: str | os.PathLike | None = "migrations"
    ) -> None:
        self.path = os.fspath(path)
        try:
            self._conn = sqlite3.connect(
                self.path, isolation_level=None, check_same_thread=False
            )
            self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to connect to database: {exc}") from exc

        try:
            self._configure()
        except StorageError:
            self._conn.close()
            raise

        if migrations_path:
            try:
                MigrationRunner(self._conn).run(migrations_path)
            except (MigrationError, sqlite3.Error) as exc:
                self._conn.close()
                raise StorageError(f"failed to run migrations: {exc}") from exc

    def _configure(self) -> None:
        for pragma in _PRAGMAS:
            try:
                self._conn.execute(pragma).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(
                    f"failed to configure database: failed to execute pragma {pragma}: {exc}"
                ) from exc
        logger.info("Database configured with optimal settings")

    def close(self) -> None:
        """Close the connection; closing twice is harmless."""
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def insert_event(self, event: Event) -> int:
        """Store an event, filling in its site and id; return the new id."""
        event.site_id = DEFAULT_SITE_ID
        metadata_json = ""
        if event.metadata is not None:
            try:
                metadata_json = json.dumps(
                    event.metadata, sort_keys=True, separators=(",", ":")
                )
            except (TypeError, ValueError) as exc:
                raise StorageError(f"failed to marshal metadata: {exc}") from exc

        try:
            cursor = self._conn.execute(
                """
                INSERT INTO events (
                    site_id, type, timestamp, url, title, referrer, session_id, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.site_id,
                    event.type,
                    _format_timestamp(event.timestamp),
                    event.url,
                    event.title,
                    event.referrer,
                    event.session_id,
                    metadata_json,
                ),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"failed to insert event: {exc}") from exc

        event.id = cursor.lastrowid or 0
        return event.id

    def _scalar(self, what: str, sql: str, *params: Any) -> int:
        try:
            row = self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to get {what}: {exc}") from exc
        return int(row[0])

    def realtime_stats(self) -> RealtimeStats:
        """Return active visitors, today's pageviews and today's sessions."""
        active = self._scalar(
            "active visitors",
            """
            SELECT COUNT(DISTINCT session_id)
            FROM events
            WHERE site_id = ?
            AND timestamp >= datetime('now', '-30 minutes')
            AND session_id IS NOT NULL""",
            DEFAULT_SITE_ID,
        )
        pageviews = self._scalar(
            "pageviews today",
            """
            SELECT COUNT(*)
            FROM events
            WHERE site_id = ?
            AND type = 'pageview'
            AND date(timestamp) = date('now')""",
            DEFAULT_SITE_ID,
        )
        sessions = self._scalar(
            "total sessions",
            """
            SELECT COUNT(*)
            FROM sessions
            WHERE site_id = ?
            AND date(started_at) = date('now')""",
            DEFAULT_SITE_ID,
        )
        return RealtimeStats(
            active_visitors=active, pageviews_today=pageviews, total_sessions=sessions
        )

    def popular_pages(self, limit: int) -> list[dict[str, Any]]:
        """Return the most viewed pages of the last 24 hours, busiest first."""
        try:
            rows = self._conn.execute(
                """
                SELECT url, COUNT(*) AS pageviews, COUNT(DISTINCT session_id) AS unique_views
                FROM events
                WHERE site_id = ?
                AND type = 'pageview'
                AND timestamp >= datetime('now', '-24 hours')
                AND url IS NOT NULL
                GROUP BY url
                ORDER BY pageviews DESC
                LIMIT ?""",
                (DEFAULT_SITE_ID, limit),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to query popular pages: {exc}") from exc
        return [
            {"url": url, "pageviews": int(pageviews), "unique_views": int(unique_views)}
            for url, pageviews, unique_views in rows
        ]

    def session_by_id(self, session_id: str) -> Session | None:
        """Return the session with this id, or None when there is none."""
        try:
            row = self._conn.execute(
                """
                SELECT id, site_id, started_at, ended_at, duration, pages_viewed,
                       entry_page, exit_page, referrer, metadata
                FROM sessions
                WHERE id = ? AND site_id = ?""",
                (session_id, DEFAULT_SITE_ID),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to get session: {exc}") from exc
        if row is None:
            return None

        (sid, site_id, started_at, ended_at, duration, pages_viewed,
         entry_page, exit_page, referrer, metadata_json) = row
        if pages_viewed is None:
            raise StorageError("failed to get session: pages_viewed is NULL")

        try:
            started = _parse_timestamp(started_at)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"failed to parse started_at timestamp: {exc}") from exc

        ended = None
        if ended_at is not None:
            try:
                ended = _parse_timestamp(ended_at)
            except (TypeError, ValueError) as exc:
                raise StorageError(f"failed to parse ended_at timestamp: {exc}") from exc

        metadata = None
        if metadata_json:
            try:
                metadata = json.loads(metadata_json)
            except ValueError as exc:
                raise StorageError(f"failed to unmarshal session metadata: {exc}") from exc
            if not isinstance(metadata, dict):
                raise StorageError("failed to unmarshal session metadata: not an object")

        return Session(
            id=sid,
            site_id=site_id,
            started_at=started,
            ended_at=ended,
            duration=None if duration is None else int(duration),
            pages_viewed=int(pages_viewed),
            entry_page=entry_page or "",
            exit_page=exit_page or "",
            referrer=referrer or "",
            metadata=metadata,
        )

    def ping(self) -> None:
        """Raise StorageError unless the connection is usable."""
        try:
            self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"database ping failed: {exc}") from exc

    def cleanup(self) -> None:
        """Refresh planner statistics and reclaim free pages."""
        try:
            self._conn.execute("ANALYZE").fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to analyze database: {exc}") from exc
        try:
            self._conn.execute("PRAGMA incremental_vacuum").fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to run incremental vacuum: {exc}") from exc
        logger.info("Database cleanup completed")