"""CRUD helpers for profiles, events, memberships, and discussions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import Row, delete, func, select
from sqlalchemy.orm import Session, joinedload

from .models import (
    ROLES,
    Attendance,
    Category,
    DiscussionComment,
    Event,
    Favorite,
    Profile,
    new_access_token,
)
from .utils import to_naive_utc, utcnow

EDITABLE_EVENT_FIELDS = {
    "title",
    "description",
    "location",
    "start_time",
    "end_time",
    "max_attendees",
    "image_url",
    "tags",
    "category_id",
    "video_urls",
}


def _now() -> datetime:
    return utcnow()


# -------- Profiles --------


def get_profile_by_token(session: Session, token: str | None) -> Profile | None:
    if not token:
        return None
    stmt = select(Profile).where(Profile.access_token == token)
    return session.scalars(stmt).first()


def get_profile_by_user_id(session: Session, user_id: str) -> Profile | None:
    stmt = select(Profile).where(Profile.user_id == user_id)
    return session.scalars(stmt).first()


def create_profile(
    session: Session,
    *,
    full_name: str,
    email: str | None = None,
    role: str = "user",
    department: str | None = None,
    bio: str | None = None,
) -> Profile:
    """Create a profile; the display name falls back to the email address."""
    normalized_role = (role or "user").strip().lower()
    if normalized_role not in ROLES:
        raise ValueError("Invalid role")
    display_name = (full_name or "").strip() or (email or "").strip()
    if not display_name:
        raise ValueError("A display name or email is required")
    profile = Profile(
        full_name=display_name,
        email=email,
        role=normalized_role,
        department=department,
        bio=bio,
        access_token=new_access_token(),
    )
    session.add(profile)
    session.flush()
    return profile


def rotate_access_token(session: Session, profile: Profile) -> str:
    profile.access_token = new_access_token()
    session.add(profile)
    session.flush()
    return profile.access_token


def update_profile(
    session: Session,
    profile: Profile,
    *,
    full_name: str,
    bio: str | None,
    department: str | None,
) -> Profile:
    profile.full_name = full_name
    profile.bio = bio
    profile.department = department
    profile.updated_at = _now()
    session.add(profile)
    session.flush()
    return profile


def set_avatar_url(session: Session, profile: Profile, avatar_url: str) -> Profile:
    profile.avatar_url = avatar_url
    profile.updated_at = _now()
    session.add(profile)
    session.flush()
    return profile


# -------- Categories --------


def list_categories(session: Session) -> Sequence[Category]:
    return session.scalars(select(Category).order_by(Category.name.asc())).all()


def ensure_category(session: Session, *, name: str, color: str = "#3b82f6") -> Category:
    """Return an existing category or create a new one."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Invalid category name")
    existing = session.scalars(select(Category).where(Category.name == cleaned)).first()
    if existing:
        return existing
    category = Category(name=cleaned, color=color)
    session.add(category)
    session.flush()
    return category


# -------- Events --------


def get_event(session: Session, event_id: str) -> Event | None:
    return session.get(Event, event_id)


def create_event(
    session: Session,
    *,
    title: str,
    description: str,
    start_time: datetime,
    end_time: datetime,
    location: str,
    organizer_id: str,
    max_attendees: int | None = None,
    image_url: str | None = None,
    tags: list[str] | None = None,
    category_id: str | None = None,
) -> Event:
    """Create and persist a new event."""
    event = Event(
        title=title,
        description=description,
        start_time=to_naive_utc(start_time),
        end_time=to_naive_utc(end_time),
        location=location,
        organizer_id=organizer_id,
        max_attendees=max_attendees,
        image_url=image_url,
        tags=tags,
        category_id=category_id,
    )
    session.add(event)
    session.flush()
    return event


def update_event(session: Session, event: Event, **fields: Any) -> Event:
    """Apply the given column values to an event."""
    for key, value in fields.items():
        if key not in EDITABLE_EVENT_FIELDS:
            raise ValueError(f"Unknown event field: {key}")
        if key in {"start_time", "end_time"}:
            value = to_naive_utc(value)
        if key in {"tags", "video_urls"} and value is not None:
            value = list(value)
        setattr(event, key, value)
    event.updated_at = _now()
    session.add(event)
    session.flush()
    return event


def delete_event(session: Session, event: Event) -> None:
    session.delete(event)
    session.flush()


def _events_with_counts_stmt():
    counts = (
        select(
            Attendance.event_id.label("event_id"),
            func.count(Attendance.id).label("attendee_count"),
        )
        .group_by(Attendance.event_id)
        .subquery()
    )
    return (
        select(
            Event,
            func.coalesce(counts.c.attendee_count, 0).label("attendee_count"),
            Category.name.label("category_name"),
            Category.color.label("category_color"),
        )
        .outerjoin(counts, counts.c.event_id == Event.id)
        .outerjoin(Category, Category.id == Event.category_id)
    )


def upcoming_events_with_counts(session: Session, *, now: datetime) -> Sequence[Row]:
    """Events ending at or after ``now``, soonest start first."""
    stmt = (
        _events_with_counts_stmt()
        .where(Event.end_time >= now)
        .order_by(Event.start_time.asc())
    )
    return session.execute(stmt).all()


def past_events_with_counts(session: Session, *, now: datetime) -> Sequence[Row]:
    """Events that ended before ``now``, most recently ended first."""
    stmt = (
        _events_with_counts_stmt()
        .where(Event.end_time < now)
        .order_by(Event.end_time.desc())
    )
    return session.execute(stmt).all()


def events_with_counts_for_ids(
    session: Session, event_ids: Sequence[str]
) -> Sequence[Row]:
    if not event_ids:
        return []
    stmt = (
        _events_with_counts_stmt()
        .where(Event.id.in_(list(event_ids)))
        .order_by(Event.start_time.asc())
    )
    return session.execute(stmt).all()


def organized_event_ids(session: Session, user_id: str) -> list[str]:
    stmt = (
        select(Event.id)
        .where(Event.organizer_id == user_id)
        .order_by(Event.start_time.asc())
    )
    return list(session.scalars(stmt).all())


def attendee_count(session: Session, event_id: str) -> int:
    stmt = select(func.count(Attendance.id)).where(Attendance.event_id == event_id)
    return int(session.scalar(stmt) or 0)


# -------- Memberships --------


def registered_event_ids(session: Session, user_id: str) -> set[str]:
    stmt = select(Attendance.event_id).where(Attendance.user_id == user_id)
    return set(session.scalars(stmt).all())


def favorited_event_ids(session: Session, user_id: str) -> set[str]:
    stmt = select(Favorite.event_id).where(Favorite.user_id == user_id)
    return set(session.scalars(stmt).all())


def insert_attendance(session: Session, *, event_id: str, user_id: str) -> Attendance:
    attendance = Attendance(event_id=event_id, user_id=user_id, registered_at=_now())
    session.add(attendance)
    session.flush()
    return attendance


def delete_attendance(session: Session, *, event_id: str, user_id: str) -> int:
    stmt = delete(Attendance).where(
        Attendance.event_id == event_id, Attendance.user_id == user_id
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def insert_favorite(session: Session, *, event_id: str, user_id: str) -> Favorite:
    favorite = Favorite(event_id=event_id, user_id=user_id, created_at=_now())
    session.add(favorite)
    session.flush()
    return favorite


def delete_favorite(session: Session, *, event_id: str, user_id: str) -> int:
    stmt = delete(Favorite).where(
        Favorite.event_id == event_id, Favorite.user_id == user_id
    )
    result = session.execute(stmt)
    return result.rowcount or 0


def list_attendees(session: Session, event_id: str) -> Sequence[Attendance]:
    stmt = (
        select(Attendance)
        .options(joinedload(Attendance.profile))
        .where(Attendance.event_id == event_id)
        .order_by(Attendance.registered_at.asc())
    )
    return session.scalars(stmt).all()


# -------- Discussions --------


def list_discussions(session: Session, event_id: str) -> Sequence[DiscussionComment]:
    stmt = (
        select(DiscussionComment)
        .options(joinedload(DiscussionComment.author))
        .where(DiscussionComment.event_id == event_id)
        .order_by(DiscussionComment.created_at.asc(), DiscussionComment.id.asc())
    )
    return session.scalars(stmt).all()


def create_discussion(
    session: Session, *, event_id: str, user_id: str, content: str
) -> DiscussionComment:
    comment = DiscussionComment(
        event_id=event_id,
        user_id=user_id,
        content=content,
        created_at=_now(),
    )
    session.add(comment)
    session.flush()
    return comment
