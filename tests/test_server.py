import pytest
from werkzeug.test import Client

from nyla.server import Server
from nyla.storage import Database

SCHEMA = """
CREATE TABLE events (
    id INTEGER PRIMARY KEY,
    site_id TEXT NOT NULL,
    type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    url TEXT,
    title TEXT,
    referrer TEXT,
    session_id TEXT,
    metadata TEXT
);
CREATE TABLE sessions (
    id TEXT PRIMARY KEY,
    site_id TEXT NOT NULL,
    started_at TEXT NOT NULL
);
"""


@pytest.fixture
def db(tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_schema.sql").write_text(SCHEMA)
    database = Database(tmp_path / "server.db", migrations)
    yield database
    database.close()


@pytest.fixture
def client(db, monkeypatch):
    for name in ("API_BASE_URL", "CORS_ALLOWED_ORIGINS", "CORS_ALLOWED_HEADERS",
                 "CORS_EXPOSED_HEADERS", "CORS_ALLOW_CREDENTIALS"):
        monkeypatch.delenv(name, raising=False)
    return Client(Server(db))


def test_stats_route(client):
    response = client.get("/api/v1/stats/realtime")
    assert response.status_code == 200
    assert "Total Pageviews" in response.get_data(as_text=True)


def test_collect_route(client, db):
    response = client.get("/api/v1/collect", query_string={"url": "https://example.com"})
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "image/gif"
    assert db.popular_pages(10)[0]["url"] == "https://example.com"


def test_collect_rejects_other_site(client):
    response = client.get("/api/v1/collect", query_string={"site_id": "invalid"})
    assert response.status_code == 400


def test_dashboard_on_any_path_uses_default_api(client):
    for path in ("/", "/some/page"):
        response = client.get(path)
        assert response.status_code == 200
        assert "https://api.localhost/v1/stats/realtime" in response.get_data(as_text=True)


def test_dashboard_uses_configured_api(db, monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://api.example.com")
    response = Client(Server(db)).get("/")
    assert "https://api.example.com/v1/stats/realtime" in response.get_data(as_text=True)


def test_preflight_is_answered(client):
    response = client.options("/api/v1/collect")
    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, PUT, DELETE, OPTIONS"


def test_allowed_origin_is_echoed(client):
    response = client.get("/", headers={"Origin": "https://localhost"})
    assert response.headers["Access-Control-Allow-Origin"] == "https://localhost"
    assert response.headers["Vary"] == "Origin"


def test_other_methods_not_allowed(client):
    response = client.post("/api/v1/collect")
    assert response.status_code == 405