"""HTTP handlers for event collection and statistics."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from werkzeug.wrappers import Response

from .constants import DEFAULT_SITE_ID
from .elements import element, text
from .geo import ip_from_request
from .hashing import generate_private_id_hash
from .storage import Database, Event, StorageError

logger = logging.getLogger(__name__)

_INVALID_SITE = "Invalid site_id. This instance only supports site_id='default'"

TRANSPARENT_GIF = bytes(
    [
        0x47, 0x49, 0x46, 0x38, 0x39, 0x61, 0x01, 0x00,
        0x01, 0x00, 0x80, 0x00, 0x00, 0x00, 0x00, 0x00,
        0xFF, 0xFF, 0xFF, 0x21, 0xF9, 0x04, 0x01, 0x00,
        0x00, 0x00, 0x00, 0x2C, 0x00, 0x00, 0x00, 0x00,
        0x01, 0x00, 0x01, 0x00, 0x00, 0x02, 0x02, 0x44,
        0x01, 0x00, 0x3B,
    ]
)

_BOT_RE = re.compile(r"bot|crawl|spider|slurp", re.IGNORECASE)
_BOT_NAME_RE = re.compile(r"([A-Za-z][\w-]*bot)\b", re.IGNORECASE)
_BROWSERS = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Internet Explorer", re.compile(r"MSIE |Trident/")),
    ("Safari", re.compile(r"Safari/")),
)
_SYSTEMS = (
    ("Windows Phone", re.compile(r"Windows Phone")),
    ("Windows", re.compile(r"Windows")),
    ("Android", re.compile(r"Android")),
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("macOS", re.compile(r"Mac OS X|Macintosh")),
    ("ChromeOS", re.compile(r"CrOS")),
    ("Linux", re.compile(r"Linux")),
)


@dataclass
class CollectorData:
    """Event data sent by a tracking script."""

    type: str = ""
    event: str = ""
    user_agent: str = ""
    hostname: str = ""
    referrer: str = ""


@dataclass
class CollectorPayload:
    """The envelope around collector data."""

    data: CollectorData = field(default_factory=CollectorData)


@dataclass(frozen=True)
class UserAgent:
    """What could be read from a User-Agent header."""

    string: str = ""
    name: str = ""
    os: str = ""
    bot: bool = False


def parse_user_agent(ua: str) -> UserAgent:
    """Detect browser name, operating system and bots in a User-Agent string."""
    bot = bool(_BOT_RE.search(ua))
    name = next((label for label, pattern in _BROWSERS if pattern.search(ua)), "")
    if bot:
        match = _BOT_NAME_RE.search(ua)
        if match:
            name = match.group(1)
    system = next((label for label, pattern in _SYSTEMS if pattern.search(ua)), "")
    return UserAgent(string=ua, name=name, os=system, bot=bot)


class Handlers:
    """API handlers backed by the event store."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def collect(self, request: Any) -> Response:
        """Record an event from query parameters and answer with a tracking pixel."""
        args = request.args
        site_id = args.get("site_id", "")
        if site_id and site_id != DEFAULT_SITE_ID:
            body = json.dumps({"error": _INVALID_SITE}) + "\n"
            return Response(body, status=400, content_type="application/json")

        referer_header = request.headers.get("Referer", "")
        event_type = args.get("type") or "pageview"
        url = args.get("url") or referer_header
        referrer = args.get("referrer") or referer_header

        user_agent = request.headers.get("User-Agent", "")
        ua = parse_user_agent(user_agent)
        try:
            ip = str(ip_from_request(["X-Forwarded-For", "X-Real-IP"], request))
        except ValueError:
            ip = "<nil>"
        session_id = generate_private_id_hash(ip, user_agent, request.host, DEFAULT_SITE_ID)

        event = Event(
            type=event_type,
            timestamp=datetime.now(),
            url=url,
            referrer=referrer,
            session_id=session_id,
            metadata={
                "user_agent": user_agent,
                "hostname": request.host,
                "browser_name": ua.name,
                "os_name": ua.os,
                "is_bot": ua.bot,
            },
        )
        try:
            self.db.insert_event(event)
        except StorageError as exc:
            logger.error("Error inserting event: %s", exc)
            return Response(status=500)

        logger.info("Event added: %s %s", event_type, url)
        return Response(
            TRANSPARENT_GIF,
            status=200,
            content_type="image/gif",
            headers={
                "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
                "Pragma": "no-cache",
                "Expires": "0",
            },
        )

    def realtime_stats(self, request: Any) -> Response:
        """Return an HTML fragment with today's pageview count."""
        try:
            stats = self.db.realtime_stats()
        except StorageError as exc:
            logger.error("Error getting realtime stats: %s", exc)
            return Response(f"<div class='error'>Error: {exc}</div>", status=500)

        fragment = element(
            "div",
            {"class": "bg-white rounded-lg shadow p-6"},
            element("div", {"class": "text-sm text-gray-500"}, text("Total Pageviews")),
            element(
                "div",
                {"class": "text-2xl font-bold text-indigo-700 mt-2"},
                text(str(stats.pageviews_today)),
            ),
        ).render()
        return Response(fragment, content_type="text/html; charset=utf-8")