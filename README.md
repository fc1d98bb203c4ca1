# nyla

nyla is a small, privacy-friendly web analytics service for a single site.
It takes in events through a tracking-pixel endpoint and stores them in a
local SQLite database. It also serves a dashboard page that uses htmx to
refresh a statistics fragment.

Visitors are never stored by IP address. Each visitor is identified by a
SHA-256 hash of the IP address, user agent, host name and site id, salted
with the current date (`nyla.hashing.generate_private_id_hash`). Because the
salt changes every day, the same visitor cannot be linked across days.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Running the server

```
nyla-core --port 8080
```

The server opens `nyla.db` in the current directory, creating it if needed.
It configures SQLite for write-ahead logging and applies pending SQL
migrations from the `migrations` directory. It then serves HTTP on all
interfaces on the given port (8080 by default).

Migrations are `.sql` files named `<version>_<name>.sql`, for example
`001_initial_schema.sql`. They are looked for in the directory and in its
sub-directories. Files whose names do not start with a number followed by an
underscore are skipped with a warning. Migrations newer than the highest
version recorded in the `schema_migrations` table are applied in version
order, each one in its own transaction.

### Routes

| Route                         | Purpose                                                        |
|-------------------------------|----------------------------------------------------------------|
| `GET /api/v1/collect`         | Records an event and returns a 1×1 transparent GIF             |
| `GET /api/v1/stats/realtime`  | Returns an HTML fragment with today's page-view count          |
| `GET /` and other `GET` paths | The dashboard                                                  |

Every response carries CORS headers. `OPTIONS` requests are answered with
`204 No Content`.

`/api/v1/collect` accepts these query parameters:

- `site_id`: optional. Any value other than `default` is rejected with status 400 and the JSON body `{"error": "Invalid site_id. This instance only supports site_id='default'"}`.
- `type`: the event type. Defaults to `pageview`.
- `url`: the page URL. Defaults to the request's `Referer` header.
- `referrer`: the referring page. Defaults to the request's `Referer` header.

The client IP used for the visitor hash comes from `X-Forwarded-For` (its
first entry), then from `X-Real-IP`, and otherwise from the peer address. The
event's metadata records the user agent, the host name, and the browser name,
operating system and bot flag detected by `nyla.handlers.parse_user_agent`.

### Configuration

| Variable                 | Default                                         |
|--------------------------|-------------------------------------------------|
| `API_BASE_URL`           | `https://api.localhost`; the dashboard polls `<API_BASE_URL>/v1/stats/realtime` |
| `CORS_ALLOWED_ORIGINS`   | `https://localhost` (comma separated, or `*`)   |
| `CORS_ALLOWED_HEADERS`   | `Content-Type` and the htmx request headers     |
| `CORS_EXPOSED_HEADERS`   | the htmx response headers                       |
| `CORS_ALLOW_CREDENTIALS` | `true`                                          |
| `GEOIP_PROTO`            | `http`, used by `nyla.geo.get_geo_info`         |
| `GEOIP_HOST`             | `localhost:8080`, used by `nyla.geo.get_geo_info` |

## Generating sample data

```
nyla-seed [--output data/dump.data] [--rows 1500000] [--workers 10]
```

This writes tab-separated rows of random analytics data. Each worker writes
its share to a temporary file, and the files are then joined into the output.
Rows that do not divide evenly among the workers are dropped. About 10% of
the visitor hashes are taken from a small fixed pool, so that returning
visitors are simulated.

## Using it as a library

```python
from datetime import datetime, timezone

from nyla.storage import Database, Event
from nyla.server import Server

with Database("nyla.db", "migrations") as db:
    db.insert_event(Event(type="pageview", timestamp=datetime.now(timezone.utc),
                          url="/", session_id="abc"))
    print(db.realtime_stats())
    print(db.popular_pages(10))
    print(db.session_by_id("abc"))

    app = Server(db)  # a WSGI application
    app.serve("127.0.0.1", 8080)
```

Pass `None` as the migrations path to open a database without running
migrations. Database errors are raised as `nyla.storage.StorageError`, and
migration errors as `nyla.migrate.MigrationError`.
`nyla.migrate.MigrationRunner(conn).status(path)` prints which migrations are
applied and which are pending.

## What nyla does not do

- It ships no schema. The migrations you supply must create an `events`
  table (`site_id`, `type`, `timestamp`, `url`, `title`, `referrer`,
  `session_id`, `metadata`) and a `sessions` table (`id`, `site_id`,
  `started_at`, `ended_at`, `duration`, `pages_viewed`, `entry_page`,
  `exit_page`, `referrer`, `metadata`). nyla only reads sessions, so keeping
  them up to date, for example with a trigger on `events`, is up to the
  schema.
- The dashboard shows only today's page-view count. The "Unique Visitors" and
  "Active Users" cards show `--`, and the traffic chart is a placeholder.
- Geo-IP lookups are available through `nyla.geo.get_geo_info`, but collected
  events do not record location.
- Events are collected through `GET /api/v1/collect` only. There is no
  endpoint that accepts a JSON body.