"""CORS handling as WSGI middleware."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Iterable

_DEFAULT_ORIGINS = "https://localhost"
_DEFAULT_HEADERS = (
    "Content-Type,HX-Request,HX-Target,HX-Current-URL,HX-Trigger,"
    "HX-Trigger-Name,HX-History-Restore-Request"
)
_DEFAULT_EXPOSED = (
    "HX-Redirect,HX-Location,HX-Push,HX-Refresh,HX-Trigger,"
    "HX-Trigger-After-Settle,HX-Trigger-After-Swap"
)
_DEFAULT_CREDENTIALS = "true"
_ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"

WSGIApp = Callable[[dict, Callable], Iterable[bytes]]


def _env(key: str, default: str) -> str:
    return os.environ.get(key) or default


@dataclass
class CORSConfig:
    """Comma-separated CORS settings applied to every response."""

    allowed_origins: str = _DEFAULT_ORIGINS
    allowed_headers: str = _DEFAULT_HEADERS
    exposed_headers: str = _DEFAULT_EXPOSED
    allow_credentials: str = _DEFAULT_CREDENTIALS

    @classmethod
    def from_env(cls) -> "CORSConfig":
        """Read settings from CORS_* variables, falling back to defaults."""
        return cls(
            allowed_origins=_env("CORS_ALLOWED_ORIGINS", _DEFAULT_ORIGINS),
            allowed_headers=_env("CORS_ALLOWED_HEADERS", _DEFAULT_HEADERS),
            exposed_headers=_env("CORS_EXPOSED_HEADERS", _DEFAULT_EXPOSED),
            allow_credentials=_env("CORS_ALLOW_CREDENTIALS", _DEFAULT_CREDENTIALS),
        )

    def _headers_for(self, origin: str) -> list[tuple[str, str]]:
        headers: list[tuple[str, str]] = []
        if self.allowed_origins == "*":
            headers.append(("Access-Control-Allow-Origin", "*"))
        elif origin and any(
            allowed.strip() == origin for allowed in self.allowed_origins.split(",")
        ):
            headers.append(("Access-Control-Allow-Origin", origin))
            headers.append(("Vary", "Origin"))
        headers.extend(
            [
                ("Access-Control-Allow-Methods", _ALLOWED_METHODS),
                ("Access-Control-Allow-Headers", self.allowed_headers),
                ("Access-Control-Expose-Headers", self.exposed_headers),
                ("Access-Control-Allow-Credentials", self.allow_credentials),
            ]
        )
        return headers

    def wrap(self, app: WSGIApp) -> WSGIApp:
        """Return a WSGI app adding CORS headers and answering preflights."""

        def middleware(environ: dict, start_response: Callable) -> Iterable[bytes]:
            cors_headers = self._headers_for(environ.get("HTTP_ORIGIN", ""))
            if environ.get("REQUEST_METHOD") == "OPTIONS":
                start_response("204 No Content", cors_headers)
                return []

            def start_with_cors(status: str, headers: list, exc_info: Any = None):
                own = {name.lower() for name, _ in headers}
                merged = [h for h in cors_headers if h[0].lower() not in own]
                return start_response(status, merged + list(headers), exc_info)

            return app(environ, start_with_cors)

        return middleware