"""
Utility functions shared across blueprints:
- safe_next_url: local-only redirect targets.
- status_badge_class: CSS class for a letter status badge.
- format_date: Indonesian long date used on letters and detail pages.
"""

from __future__ import annotations

from datetime import datetime
from urllib.parse import urlparse

from flask import url_for

MONTHS_ID = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

STATUS_BADGES = {
    "draft": "bg-secondary",
    "pending": "bg-warning text-dark",
    "approved": "bg-success",
    "rejected": "bg-danger",
    "sent": "bg-primary",
    "archived": "bg-light text-dark border",
}

PRIORITY_BADGES = {
    "low": "bg-info text-dark",
    "medium": "bg-secondary",
    "high": "bg-danger",
}


def safe_next_url(raw_next: str | None, fallback_endpoint: str) -> str:
    """
    Return a safe local next URL.

    Only relative URLs starting with "/" are allowed; anything else falls back
    to the given endpoint.
    """
    if not raw_next or not raw_next.startswith("/") or raw_next.startswith("//"):
        return url_for(fallback_endpoint)

    parsed = urlparse(raw_next)
    if parsed.scheme or parsed.netloc:
        return url_for(fallback_endpoint)

    return raw_next


def status_badge_class(status: str | None) -> str:
    return STATUS_BADGES.get(status or "", "bg-secondary")


def priority_badge_class(priority: str | None) -> str:
    return PRIORITY_BADGES.get(priority or "", "bg-secondary")


def format_date(value: datetime | None) -> str:
    """e.g. 5 Maret 2025"""
    if value is None:
        return "-"
    return f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"
