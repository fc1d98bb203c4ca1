"""The dashboard page."""

from __future__ import annotations

from typing import Any

from werkzeug.wrappers import Response

from .elements import Element, element, text

_CARD = "bg-white rounded-lg shadow p-6"
_LABEL = "text-sm text-gray-500"
_VALUE = "text-2xl font-bold text-indigo-700 mt-2"
_NAV_LINK = "text-gray-600 hover:text-indigo-700 px-3"
_SIDE_LINK = "block text-gray-600 hover:text-indigo-700"


def _link(label: str, css: str) -> Element:
    return element("a", {"href": "#", "class": css}, text(label))


def _metric_card(label: str) -> Element:
    return element(
        "div",
        {"class": _CARD},
        element("div", {"class": _LABEL}, text(label)),
        element("div", {"class": _VALUE}, text("--")),
    )


def render_dashboard(api_base_url: str) -> str:
    """Return the dashboard HTML, polling stats from the given API base URL."""
    stats_url = api_base_url + "/v1/stats/realtime"
    head = element(
        "head",
        None,
        element("meta", {"charset": "UTF-8"}),
        element(
            "meta",
            {"name": "viewport", "content": "width=device-width, initial-scale=1.0"},
        ),
        element("title", None, text("Nyla Analytics Dashboard")),
        element("script", {"src": "https://unpkg.com/htmx.org@1.9.12"}),
        element("script", {"src": "https://cdn.jsdelivr.net/npm/@tailwindcss/browser@4"}),
    )
    header = element(
        "header",
        {"class": "bg-white shadow px-6 py-4 flex items-center justify-between"},
        element("div", {"class": "text-2xl font-bold text-indigo-700"}, text("Nyla Analytics")),
        element("nav", None, _link("Dashboard", _NAV_LINK), _link("Settings", _NAV_LINK)),
    )
    sidebar = element(
        "aside",
        {"class": "w-64 bg-white border-r min-h-screen p-6 hidden md:block"},
        element(
            "nav",
            {"class": "space-y-4"},
            _link("Overview", "block text-indigo-700 font-semibold"),
            _link("Pages", _SIDE_LINK),
            _link("Visitors", _SIDE_LINK),
            _link("Settings", _SIDE_LINK),
        ),
    )
    main = element(
        "main",
        {"class": "flex-1 p-8"},
        element("h1", {"class": "text-3xl font-bold mb-6 text-gray-900"}, text("Dashboard")),
        element(
            "div",
            {"class": "grid grid-cols-1 md:grid-cols-3 gap-6 mb-8"},
            element(
                "div",
                {
                    "class": _CARD,
                    "hx-get": stats_url,
                    "hx-trigger": "load, every 30s",
                    "hx-swap": "innerHTML",
                },
                text("Loading..."),
            ),
            _metric_card("Unique Visitors"),
            _metric_card("Active Users"),
        ),
        element(
            "div",
            {"class": "bg-white rounded-lg shadow p-6 h-64 flex items-center justify-center text-gray-400"},
            text("[Traffic Chart Placeholder]"),
        ),
    )
    body = element(
        "body",
        {"class": "bg-gray-50 min-h-screen"},
        header,
        element("div", {"class": "flex"}, sidebar, main),
    )
    return element("html", {"lang": "en"}, head, body).render()


class UIHandlers:
    """Request handlers for the browser-facing pages."""

    def __init__(self, api_base_url: str) -> None:
        self.api_base_url = api_base_url

    def dashboard(self, request: Any) -> Response:
        """Serve the dashboard page."""
        return Response(
            render_dashboard(self.api_base_url), content_type="text/html; charset=utf-8"
        )