"""Daily-rotating, privacy-preserving visitor identifiers."""

from __future__ import annotations

import hashlib
from datetime import datetime


def generate_salt(ip: str, site_id: str) -> str:
    """Return a salt built from the IP, the site and today's date."""
    current_date = datetime.now().strftime("%Y%m%d")
    return f"{ip}_{site_id}_{current_date}"


def generate_private_id_hash(ip: str, user_agent: str, hostname: str, site_id: str) -> str:
    """Return a hex SHA-256 digest identifying a visitor for the current day."""
    data = generate_salt(ip, site_id) + user_agent + hostname + site_id
    return hashlib.sha256(data.encode("utf-8")).hexdigest()