"""Shared constants."""

DEFAULT_SITE_ID = "default"
"""The only site identifier this single-site instance accepts."""