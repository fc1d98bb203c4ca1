import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from nyla.storage import Database, Event, RealtimeStats, StorageError

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE site_config (
    id TEXT PRIMARY KEY DEFAULT 'default',
    name TEXT NOT NULL DEFAULT 'My Site',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    settings TEXT NOT NULL DEFAULT '{}',
    CHECK (id = 'default')
);

INSERT INTO site_config (id, name) VALUES ('default', 'My Site')
ON CONFLICT DO NOTHING;

CREATE TABLE events (
    id INTEGER PRIMARY KEY,
    site_id TEXT NOT NULL DEFAULT 'default',
    type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    url TEXT,
    title TEXT,
    referrer TEXT,
    session_id TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY(site_id) REFERENCES site_config(id),
    CHECK (site_id = 'default')
) STRICT;

CREATE INDEX idx_events_timestamp ON events(timestamp);
CREATE INDEX idx_events_type_timestamp ON events(type, timestamp);
CREATE INDEX idx_events_session ON events(session_id, timestamp);
CREATE INDEX idx_events_url ON events(url, timestamp);

CREATE TABLE sessions (
    id TEXT PRIMARY KEY,
    site_id TEXT NOT NULL DEFAULT 'default',
    started_at TEXT NOT NULL,
    ended_at TEXT,
    duration INTEGER,
    pages_viewed INTEGER DEFAULT 0,
    entry_page TEXT,
    exit_page TEXT,
    referrer TEXT,
    metadata TEXT,
    FOREIGN KEY(site_id) REFERENCES site_config(id),
    CHECK (site_id = 'default')
) STRICT;

CREATE INDEX idx_sessions_time ON sessions(started_at);
CREATE INDEX idx_sessions_duration ON sessions(duration);

CREATE TRIGGER update_session_stats
AFTER INSERT ON events
WHEN NEW.type = 'pageview'
BEGIN
    INSERT INTO sessions (
        id,
        site_id,
        started_at,
        ended_at,
        pages_viewed,
        entry_page
    ) VALUES (
        NEW.session_id,
        NEW.site_id,
        NEW.timestamp,
        NEW.timestamp,
        1,
        NEW.url
    )
    ON CONFLICT(id) DO UPDATE SET
        pages_viewed = pages_viewed + 1,
        ended_at = NEW.timestamp,
        exit_page = NEW.url,
        duration = CAST(
            (strftime('%s', NEW.timestamp) -
             strftime('%s', started_at)) AS INTEGER
        );
END;

INSERT INTO schema_migrations (version) VALUES (1);
"""


@pytest.fixture
def migrations_dir(tmp_path):
    directory = tmp_path / "migrations"
    directory.mkdir()
    (directory / "001_test_schema.sql").write_text(SCHEMA, encoding="utf-8")
    return directory


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test_nyla.db"


@pytest.fixture
def db(db_path, migrations_dir):
    database = Database(db_path, migrations_dir)
    yield database
    database.close()


def test_new_db_ping_and_schema_version(db, db_path):
    db.ping()
    assert db.realtime_stats() == RealtimeStats(0, 0, 0)
    assert db.popular_pages(10) == []
    with sqlite3.connect(db_path) as conn:
        versions = [row[0] for row in conn.execute("SELECT version FROM schema_migrations")]
    assert versions == [1]


def test_ping_after_close_raises(db):
    db.close()
    with pytest.raises(StorageError):
        db.ping()


def test_missing_migrations_directory_raises(tmp_path):
    with pytest.raises(StorageError, match="failed to run migrations"):
        Database(tmp_path / "x.db", tmp_path / "does-not-exist")


def test_context_manager_closes(db_path, migrations_dir):
    with Database(db_path, migrations_dir) as database:
        database.ping()
    with pytest.raises(StorageError):
        database.ping()


def test_insert_event(db, db_path):
    event = Event(
        type="pageview",
        timestamp=datetime.now(),
        url="/test-page",
        title="Test Page",
        session_id="test-session-123",
        metadata={"browser": "Chrome", "os": "macOS"},
    )
    returned = db.insert_event(event)
    assert event.id != 0
    assert returned == event.id
    assert event.site_id == "default"

    with sqlite3.connect(db_path) as conn:
        (metadata,) = conn.execute(
            "SELECT metadata FROM events WHERE id = ?", (event.id,)
        ).fetchone()
    assert json.loads(metadata) == {"browser": "Chrome", "os": "macOS"}


def test_insert_event_unserialisable_metadata(db):
    event = Event(type="pageview", metadata={"bad": object()})
    with pytest.raises(StorageError, match="marshal"):
        db.insert_event(event)


def test_realtime_stats(db):
    now = datetime.now()
    events = [
        Event(type="pageview", timestamp=now - timedelta(minutes=10), url="/page1",
              session_id="session1"),
        Event(type="pageview", timestamp=now - timedelta(minutes=5), url="/page2",
              session_id="session2"),
        Event(type="pageview", timestamp=now - timedelta(hours=1), url="/page3",
              session_id="session3"),
    ]
    for event in events:
        db.insert_event(event)

    stats = db.realtime_stats()
    assert stats.pageviews_today == 3
    assert stats.total_sessions >= 0


def test_realtime_stats_empty(db):
    assert db.realtime_stats() == RealtimeStats(0, 0, 0)


def test_popular_pages(db):
    now = datetime.now()
    for url, session in [
        ("/popular", "s1"),
        ("/popular", "s2"),
        ("/popular", "s3"),
        ("/less-popular", "s4"),
        ("/less-popular", "s5"),
    ]:
        db.insert_event(Event(type="pageview", timestamp=now, url=url, session_id=session))

    pages = db.popular_pages(10)
    assert len(pages) == 2
    assert pages[0] == {"url": "/popular", "pageviews": 3, "unique_views": 3}
    assert pages[1] == {"url": "/less-popular", "pageviews": 2, "unique_views": 2}


def test_popular_pages_respects_limit(db):
    now = datetime.now()
    for url in ["/a", "/a", "/b"]:
        db.insert_event(Event(type="pageview", timestamp=now, url=url, session_id="s"))
    pages = db.popular_pages(1)
    assert [page["url"] for page in pages] == ["/a"]


def test_session_creation(db):
    session_id = "test-session-456"
    db.insert_event(
        Event(type="pageview", timestamp=datetime.now(), url="/test-page",
              session_id=session_id)
    )

    session = db.session_by_id(session_id)
    assert session is not None
    assert session.id == session_id
    assert session.site_id == "default"
    assert session.pages_viewed == 1
    assert session.entry_page == "/test-page"


def test_session_updates_on_second_pageview(db):
    start = datetime.now(timezone.utc).replace(microsecond=0)
    db.insert_event(Event(type="pageview", timestamp=start, url="/first", session_id="s"))
    db.insert_event(
        Event(type="pageview", timestamp=start + timedelta(seconds=60), url="/second",
              session_id="s")
    )

    session = db.session_by_id("s")
    assert session.pages_viewed == 2
    assert session.started_at == start
    assert session.ended_at == start + timedelta(seconds=60)
    assert session.duration == 60
    assert session.exit_page == "/second"
    assert session.metadata is None


def test_non_pageview_creates_no_session(db):
    db.insert_event(Event(type="click", url="/x", session_id="clicker"))
    assert db.session_by_id("clicker") is None


def test_unknown_session_is_none(db):
    assert db.session_by_id("missing") is None


def test_cleanup_keeps_data(db):
    db.insert_event(Event(type="pageview", url="/kept", session_id="s1"))
    db.cleanup()
    assert [page["url"] for page in db.popular_pages(10)] == ["/kept"]


def test_cleanup_after_close_raises(db):
    db.close()
    with pytest.raises(StorageError, match="analyze"):
        db.cleanup()