"""Single-site web analytics: event collection, SQLite storage, migrations and an htmx dashboard."""

__version__ = "0.1.0"