"""Client IP extraction and geo-IP lookups."""

from __future__ import annotations

import ipaddress
import json
import os
import urllib.request
from dataclasses import dataclass, fields
from typing import Any, Iterable

GEOIP_PROTO = os.environ.get("GEOIP_PROTO", "http")
GEOIP_HOST = os.environ.get("GEOIP_HOST", "localhost:8080")


@dataclass
class GeoInfo:
    """Location data returned by the geo-IP service."""

    ip: str = ""
    country: str = ""
    country_iso: str = ""
    region_name: str = ""
    region_code: str = ""
    city: str = ""
    latitude: str = ""
    longitude: str = ""

    @classmethod
    def from_json(cls, data: Any) -> "GeoInfo":
        """Build from a decoded JSON object; unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ValueError("geo-IP response is not a JSON object")
        values = {}
        for field in fields(cls):
            value = data.get(field.name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"geo-IP field {field.name!r} is not a string")
            values[field.name] = value
        return cls(**values)


def _forwarded_for(value: str) -> str:
    return value.split(",", 1)[0]


def _host_of(remote_addr: str | None) -> str:
    if not remote_addr:
        raise ValueError("missing remote address")
    if remote_addr.startswith("["):
        end = remote_addr.find("]")
        if end == -1:
            raise ValueError(f"invalid remote address {remote_addr}")
        return remote_addr[1:end]
    if remote_addr.count(":") == 1:
        return remote_addr.rsplit(":", 1)[0]
    return remote_addr


def ip_from_request(
    headers: Iterable[str], request: Any
) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Return the client IP from the first usable header, else the peer address.

    Raises ValueError when no valid address can be found.
    """
    remote_ip = ""
    for name in headers:
        remote_ip = request.headers.get(name) or ""
        if name.lower() == "x-forwarded-for":
            remote_ip = _forwarded_for(remote_ip)
        if remote_ip:
            break

    if not remote_ip:
        remote_ip = _host_of(request.remote_addr)

    try:
        return ipaddress.ip_address(remote_ip)
    except ValueError:
        raise ValueError(f"invalid IP {remote_ip}") from None


def get_geo_info(ip: str) -> GeoInfo:
    """Query the configured geo-IP service for an address."""
    url = f"{GEOIP_PROTO}://{GEOIP_HOST}/json?ip={ip}"
    with urllib.request.urlopen(url) as response:
        payload = json.load(response)
    return GeoInfo.from_json(payload)