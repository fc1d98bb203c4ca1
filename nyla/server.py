"""The WSGI application combining API and UI routes."""

from __future__ import annotations

import os
from typing import Any, Callable, Iterable

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.serving import run_simple
from werkzeug.wrappers import Request

from .cors import CORSConfig
from .handlers import Handlers
from .storage import Database
from .ui import UIHandlers

_DEFAULT_API_BASE_URL = "https://api.localhost"


class Server:
    """Routes requests to the handlers, wrapped in CORS middleware."""

    def __init__(self, db: Database) -> None:
        self.db = db
        api = Handlers(db)
        ui = UIHandlers(os.environ.get("API_BASE_URL") or _DEFAULT_API_BASE_URL)
        self._routes = Map(
            [
                Rule("/api/v1/collect", methods=["GET"], endpoint=api.collect),
                Rule("/api/v1/stats/realtime", methods=["GET"], endpoint=api.realtime_stats),
                Rule("/", methods=["GET"], endpoint=ui.dashboard),
                Rule("/<path:rest>", methods=["GET"], endpoint=ui.dashboard),
            ],
            strict_slashes=False,
        )
        self._app = CORSConfig.from_env().wrap(self._dispatch)

    def _dispatch(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        request = Request(environ)
        adapter = self._routes.bind_to_environ(environ)
        try:
            endpoint, _ = adapter.match()
            response: Any = endpoint(request)
        except HTTPException as exc:
            response = exc
        return response(environ, start_response)

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        return self._app(environ, start_response)

    def serve(self, host: str, port: int) -> None:
        """Serve HTTP until interrupted."""
        run_simple(host, port, self)