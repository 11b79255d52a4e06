"""Single-event detail, discussion, roster, and admin edit surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .errors import NotFound, NotSignedIn, PermissionDenied, StoreFailure, ValidationFailed
from .models import Category, Event
from .notifications import Notification, error, success
from .serializers import serialize_attendee, serialize_comment, serialize_event
from .session import CREATE_EVENT, DELETE_EVENT, EDIT_EVENT, UPLOAD_VIDEO, SessionContext
from .utils import parse_tags, to_naive_utc, utcnow

logger = logging.getLogger("uvicorn.error")

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"

# Returns the stored image URL, or None when no file was sent.
ImageStore = Callable[[], str | None]


@dataclass
class EventForm:
    """Raw values submitted from the create or edit form."""

    title: str | None = None
    description: str | None = None
    location: str | None = None
    start_time: str | datetime | None = None
    end_time: str | datetime | None = None
    max_attendees: str | int | None = None
    image_url: str | None = None
    tags: str | list[str] | None = None
    category_id: str | None = None


def _parse_datetime(raw: str | datetime | None) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return to_naive_utc(raw)
    cleaned = raw.strip()
    if not cleaned:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(cleaned))
    except ValueError as exc:
        raise ValidationFailed("Invalid date") from exc


def _parse_max_attendees(raw: str | int | None) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed("Maximum attendees must be a positive number") from exc
    return value if value > 0 else None


def _clean(value: str | None) -> str:
    return (value or "").strip()


def validate_event_form(
    form: EventForm,
    *,
    now: datetime | None = None,
    require_future_start: bool = False,
) -> dict[str, Any]:
    """Return column values for a valid form or raise ``ValidationFailed``."""
    title = _clean(form.title)
    description = _clean(form.description)
    location = _clean(form.location)
    start_time = _parse_datetime(form.start_time)
    end_time = _parse_datetime(form.end_time)
    if not (title and description and location and start_time and end_time):
        raise ValidationFailed(REQUIRED_FIELDS_MESSAGE)
    if require_future_start and start_time <= (now or utcnow()):
        raise ValidationFailed("Start date must be in the future")
    if end_time <= start_time:
        raise ValidationFailed("End date must be after start date")
    return {
        "title": title,
        "description": description,
        "location": location,
        "start_time": start_time,
        "end_time": end_time,
        "max_attendees": _parse_max_attendees(form.max_attendees),
        "image_url": _clean(form.image_url) or None,
        "tags": parse_tags(form.tags),
    }


def _apply_uploaded_image(values: dict[str, Any], store_image: ImageStore | None) -> None:
    if store_image is None:
        return
    uploaded_url = store_image()
    if uploaded_url:
        values["image_url"] = uploaded_url


def create_event_from_form(
    db: Session,
    session: SessionContext,
    form: EventForm,
    *,
    now: datetime | None = None,
    store_image: ImageStore | None = None,
) -> Event:
    """Create an event once every check has passed.

    ``store_image`` runs after authorization and validation, so rejected
    submissions never reach object storage.
    """
    if not session.is_authenticated:
        raise NotSignedIn("You must be logged in to create an event")
    if not session.can(CREATE_EVENT):
        raise PermissionDenied("Only administrators can create events")
    values = validate_event_form(form, now=now, require_future_start=True)
    category_id = _clean(form.category_id) or None
    try:
        known_category = category_id is None or db.get(Category, category_id) is not None
    except SQLAlchemyError as exc:
        logger.error("Failed to look up category %s", category_id, exc_info=True)
        raise StoreFailure("Failed to create event. Please try again.") from exc
    if not known_category:
        raise ValidationFailed("Unknown category")
    _apply_uploaded_image(values, store_image)
    try:
        event = crud.create_event(
            db,
            organizer_id=session.user_id,
            category_id=category_id,
            **values,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to create event %r", values["title"], exc_info=True)
        raise StoreFailure("Failed to create event. Please try again.") from exc
    logger.info("Created event %s (%s)", event.id, event.title)
    return event


def delete_event(db: Session, session: SessionContext, event_id: str) -> Notification:
    if not session.can(DELETE_EVENT):
        raise PermissionDenied("Only administrators can delete events")
    event = crud.get_event(db, event_id)
    if event is None:
        raise NotFound("Event not found")
    try:
        crud.delete_event(db, event)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to delete event %s", event_id, exc_info=True)
        raise StoreFailure("Failed to delete event") from exc
    logger.info("Deleted event %s", event_id)
    return success("Event deleted successfully")


class EventDetailSurface:
    """Holds the loaded state of one event page.

    ``event`` is a serialized snapshot. Edits patch it with the submitted
    values instead of refetching, so ``attendee_count`` keeps the value
    from the last load.
    """

    def __init__(self, db: Session, event_id: str, session: SessionContext) -> None:
        self.db = db
        self.event_id = event_id
        self.session = session
        self.event: dict | None = None
        self.attendee_count = 0
        self.discussions: list[dict] = []
        self.attendees: list[dict] = []
        self.notifications: list[Notification] = []
        self.not_found = False

    @property
    def is_past(self) -> bool:
        if not self.event:
            return False
        return datetime.fromisoformat(self.event["end_time"]) < utcnow()

    def load(self) -> EventDetailSurface:
        try:
            event = crud.get_event(self.db, self.event_id)
            if event is not None:
                self.attendee_count = crud.attendee_count(self.db, self.event_id)
        except SQLAlchemyError as exc:
            logger.error("Error fetching event %s", self.event_id, exc_info=True)
            raise StoreFailure("Failed to load event details") from exc
        if event is None:
            self.not_found = True
            self.event = None
            return self
        self.not_found = False
        self.event = serialize_event(event)
        self.fetch_discussions()
        self.fetch_attendees()
        return self

    def fetch_discussions(self) -> list[dict]:
        try:
            comments = crud.list_discussions(self.db, self.event_id)
        except SQLAlchemyError:
            logger.error("Error fetching discussions for %s", self.event_id, exc_info=True)
            self.notifications.append(error("Failed to load discussion"))
            return self.discussions
        self.discussions = [serialize_comment(comment) for comment in comments]
        return self.discussions

    def fetch_attendees(self) -> list[dict]:
        try:
            roster = crud.list_attendees(self.db, self.event_id)
        except SQLAlchemyError:
            logger.error("Error fetching attendees for %s", self.event_id, exc_info=True)
            self.notifications.append(error("Failed to load attendees"))
            return self.attendees
        self.attendees = [serialize_attendee(attendance) for attendance in roster]
        return self.attendees

    def _require_event(self) -> dict:
        if self.event is None:
            raise NotFound("Event not found")
        return self.event

    def post_comment(self, content: str | None) -> Notification:
        self._require_event()
        if not self.session.is_authenticated:
            raise NotSignedIn("You must be logged in to comment")
        cleaned = (content or "").strip()
        if not cleaned:
            raise ValidationFailed("Comment cannot be empty")
        try:
            crud.create_discussion(
                self.db,
                event_id=self.event_id,
                user_id=self.session.user_id,
                content=cleaned,
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Error posting comment on %s", self.event_id, exc_info=True)
            raise StoreFailure("Failed to post comment") from exc
        self.fetch_discussions()
        return success("Comment posted successfully")

    def submit_edit(
        self, form: EventForm, *, store_image: ImageStore | None = None
    ) -> Notification:
        current = self._require_event()
        if not self.session.can(EDIT_EVENT):
            raise PermissionDenied("Only administrators can edit events")
        values = validate_event_form(form)
        _apply_uploaded_image(values, store_image)
        try:
            event = crud.get_event(self.db, self.event_id)
            if event is None:
                raise NotFound("Event not found")
            crud.update_event(self.db, event, **values)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Error updating event %s", self.event_id, exc_info=True)
            raise StoreFailure("Failed to update event") from exc
        patched = dict(current)
        for key, value in values.items():
            patched[key] = value.isoformat() if isinstance(value, datetime) else value
        self.event = patched
        logger.info("Updated event %s", self.event_id)
        return success("Event updated successfully")

    def attach_video(self, video_url: str) -> Notification:
        current = self._require_event()
        if not self.session.can(UPLOAD_VIDEO):
            raise PermissionDenied("Only administrators can upload videos")
        updated_urls = [*(current.get("video_urls") or []), video_url]
        try:
            event = crud.get_event(self.db, self.event_id)
            if event is None:
                raise NotFound("Event not found")
            crud.update_event(self.db, event, video_urls=updated_urls)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Error updating videos for %s", self.event_id, exc_info=True)
            raise StoreFailure("Failed to save video") from exc
        self.event = {**current, "video_urls": updated_urls}
        return success("Video uploaded successfully")
