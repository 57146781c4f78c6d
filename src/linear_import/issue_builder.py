"""Build Linear issue descriptions and comment bodies from source data."""

from __future__ import annotations

import datetime as dt


def parse_timestamp(iso_timestamp: str) -> dt.datetime:
    """Parse an ISO 8601 timestamp as returned by source APIs.

    Naive timestamps are taken to be UTC.

    Raises:
        ValueError: If the timestamp cannot be parsed
    """
    parsed = dt.datetime.fromisoformat(iso_timestamp)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def format_timestamp(timestamp: dt.datetime) -> str:
    """Format a timestamp for display (e.g., "2024-01-15 10:30:45Z")."""
    formatted = timestamp.isoformat(sep=" ", timespec="seconds")
    return formatted.replace("+00:00", "Z")


def to_api_timestamp(timestamp: dt.datetime) -> str:
    """Format a timestamp for the Linear API (e.g., "2024-01-15T10:30:45.000Z")."""
    utc = timestamp.astimezone(dt.UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def build_description(body: str | None, url: str, source_name: str) -> str:
    """Build the issue description: source body plus a link back to the original."""
    return f"{body or ''}\n\n[View original issue in {source_name}]({url})"


def build_attributed_comment(body: str, author: str, created_at: dt.datetime) -> str:
    """Prefix a comment posted by the importer with its original author."""
    return f"**Comment by** {author} **on** {format_timestamp(created_at)}\n\n---\n\n{body}"
