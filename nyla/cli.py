"""Command-line entry point for the analytics server."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .server import Server
from .storage import Database, StorageError

DATABASE_PATH = "nyla.db"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the command line."""
    parser = argparse.ArgumentParser(description="Run the analytics server.")
    parser.add_argument("--port", type=int, default=8080, help="port to listen on")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Open the database, apply migrations and serve until stopped."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        db = Database(DATABASE_PATH)
    except StorageError as exc:
        print(f"Failed to initialize database: {exc}", file=sys.stderr)
        return 1

    with db:
        server = Server(db)
        print(f"🚀 nyla-core server starting on port {args.port}")
        print(f"📊 Dashboard: http://localhost:{args.port}")
        print(f"🔗 API: http://localhost:{args.port}/api/v1")
        try:
            server.serve("0.0.0.0", args.port)
        except OSError as exc:
            print(exc, file=sys.stderr)
            return 1
    return 0