"""JSON-ready representations of store rows."""

from __future__ import annotations

from datetime import datetime

from .catalog import CatalogEntry
from .models import Attendance, Category, DiscussionComment, Event, Profile


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_event(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "start_time": _iso(event.start_time),
        "end_time": _iso(event.end_time),
        "location": event.location,
        "image_url": event.image_url,
        "max_attendees": event.max_attendees,
        "tags": list(event.tags) if event.tags else None,
        "video_urls": list(event.video_urls) if event.video_urls else None,
        "category_id": event.category_id,
        "organizer_id": event.organizer_id,
        "created_at": _iso(event.created_at),
        "updated_at": _iso(event.updated_at),
        "links": {"public": f"/e/{event.id}"},
    }


def serialize_entry(
    entry: CatalogEntry,
    *,
    registered: bool | None = None,
    favorited: bool | None = None,
) -> dict:
    payload = serialize_event(entry.event)
    payload["attendee_count"] = entry.attendee_count
    payload["category"] = (
        {"name": entry.category_name, "color": entry.category_color}
        if entry.category_name
        else None
    )
    if registered is not None:
        payload["registered"] = registered
    if favorited is not None:
        payload["favorited"] = favorited
    return payload


def serialize_profile(profile: Profile, *, include_token: bool = False) -> dict:
    payload = {
        "user_id": profile.user_id,
        "full_name": profile.full_name,
        "email": profile.email,
        "role": profile.role,
        "avatar_url": profile.avatar_url,
        "department": profile.department,
        "bio": profile.bio,
    }
    if include_token:
        payload["access_token"] = profile.access_token
    return payload


def serialize_category(category: Category) -> dict:
    return {"id": category.id, "name": category.name, "color": category.color}


def serialize_comment(comment: DiscussionComment) -> dict:
    author = comment.author
    return {
        "id": comment.id,
        "event_id": comment.event_id,
        "user_id": comment.user_id,
        "content": comment.content,
        "created_at": _iso(comment.created_at),
        "profiles": {
            "full_name": author.full_name if author else None,
            "role": author.role if author else None,
        },
    }


def serialize_attendee(attendance: Attendance) -> dict:
    profile = attendance.profile
    return {
        "id": attendance.id,
        "user_id": attendance.user_id,
        "registered_at": _iso(attendance.registered_at),
        "profiles": {
            "full_name": profile.full_name if profile else None,
            "role": profile.role if profile else None,
            "avatar_url": profile.avatar_url if profile else None,
        },
    }
