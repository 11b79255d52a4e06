"""Event catalog loading and the listing filter predicate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .models import Event, Profile
from .notifications import Notification, error
from .utils import utcnow

logger = logging.getLogger("uvicorn.error")

ALL_CATEGORIES = "all"


@dataclass
class CatalogEntry:
    """An event plus the values the listing derives for it."""

    event: Event
    attendee_count: int = 0
    category_name: str | None = None
    category_color: str | None = None

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def is_full(self) -> bool:
        cap = self.event.max_attendees
        return cap is not None and self.attendee_count >= cap


@dataclass
class CatalogResult:
    entries: list[CatalogEntry] = field(default_factory=list)
    notification: Notification | None = None

    @property
    def failed(self) -> bool:
        return self.notification is not None


@dataclass
class MyEvents:
    organized: list[CatalogEntry] = field(default_factory=list)
    attending: list[CatalogEntry] = field(default_factory=list)
    attended: list[CatalogEntry] = field(default_factory=list)
    notification: Notification | None = None


def _entries_from_rows(rows: Iterable) -> list[CatalogEntry]:
    return [
        CatalogEntry(
            event=row[0],
            attendee_count=int(row[1] or 0),
            category_name=row[2],
            category_color=row[3],
        )
        for row in rows
    ]


def load_catalog(
    db: Session,
    *,
    now: datetime | None = None,
    previous: Sequence[CatalogEntry] | None = None,
) -> CatalogResult:
    """Load upcoming events (ending at or after ``now``), soonest first."""
    moment = now or utcnow()
    try:
        rows = crud.upcoming_events_with_counts(db, now=moment)
    except SQLAlchemyError:
        logger.error("Failed to load event catalog", exc_info=True)
        return CatalogResult(
            entries=list(previous or []),
            notification=error("Failed to load events"),
        )
    return CatalogResult(entries=_entries_from_rows(rows))


def load_past_events(db: Session, *, now: datetime | None = None) -> CatalogResult:
    moment = now or utcnow()
    try:
        rows = crud.past_events_with_counts(db, now=moment)
    except SQLAlchemyError:
        logger.error("Failed to load past events", exc_info=True)
        return CatalogResult(notification=error("Failed to load past events"))
    return CatalogResult(entries=_entries_from_rows(rows))


def load_favorite_events(db: Session, profile: Profile) -> CatalogResult:
    try:
        event_ids = crud.favorited_event_ids(db, profile.user_id)
        rows = crud.events_with_counts_for_ids(db, sorted(event_ids))
    except SQLAlchemyError:
        logger.error("Failed to load favorites for %s", profile.user_id, exc_info=True)
        return CatalogResult(
            notification=error("Failed to load your favorite events")
        )
    return CatalogResult(entries=_entries_from_rows(rows))


def load_my_events(
    db: Session, profile: Profile, *, now: datetime | None = None
) -> MyEvents:
    """Organized events (admins only) and registrations split by end time."""
    moment = now or utcnow()
    result = MyEvents()
    try:
        if profile.is_admin:
            organized_ids = crud.organized_event_ids(db, profile.user_id)
            result.organized = _entries_from_rows(
                crud.events_with_counts_for_ids(db, organized_ids)
            )
        registered_ids = crud.registered_event_ids(db, profile.user_id)
        registered = _entries_from_rows(
            crud.events_with_counts_for_ids(db, sorted(registered_ids))
        )
    except SQLAlchemyError:
        logger.error("Failed to load events for %s", profile.user_id, exc_info=True)
        result.notification = error("Failed to load your events")
        return result
    result.attending = [e for e in registered if e.event.end_time >= moment]
    result.attended = [e for e in registered if e.event.end_time < moment]
    return result


def matches_filter(
    entry: CatalogEntry, search: str | None, category: str | None
) -> bool:
    needle = (search or "").lower()
    if needle:
        title = (entry.event.title or "").lower()
        description = (entry.event.description or "").lower()
        if needle not in title and needle not in description:
            return False
    selector = (category or ALL_CATEGORIES).strip()
    if selector and selector != ALL_CATEGORIES:
        return entry.event.category_id == selector
    return True


def filter_catalog(
    entries: Iterable[CatalogEntry], search: str | None, category: str | None
) -> list[CatalogEntry]:
    return [entry for entry in entries if matches_filter(entry, search, category)]
