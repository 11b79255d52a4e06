"""Utility helpers for Campus Events."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert aware datetimes to naive UTC; naive values pass through."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_tags(raw: str | list[str] | None) -> list[str] | None:
    """Split comma-separated tags, dropping blanks; ``None`` when empty."""
    if raw is None:
        return None
    parts = raw if isinstance(raw, list) else raw.split(",")
    tags = [part.strip() for part in parts if part and part.strip()]
    return tags or None


def format_event_date(value: datetime | None) -> str:
    """Return a short label such as ``Mar 15, 2025, 06:30 PM``."""
    if not value:
        return ""
    return value.strftime("%b %d, %Y, %I:%M %p")
