"""Development helpers for populating fake profiles, categories, and events."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .crud import (
    create_discussion,
    create_event,
    create_profile,
    ensure_category,
    insert_attendance,
    insert_favorite,
    list_categories,
)
from .database import get_session
from .models import Category, Profile
from .schema import init_db
from .utils import utcnow

_category_palette = [
    ("Academic", "#3b82f6"),
    ("Arts", "#ec4899"),
    ("Sports", "#22c55e"),
    ("Career", "#f59e0b"),
    ("Social", "#8b5cf6"),
    ("Wellness", "#14b8a6"),
    ("Technology", "#6366f1"),
]
_event_types = [
    "Workshop",
    "Lecture",
    "Fair",
    "Tournament",
    "Open Mic",
    "Info Session",
    "Hackathon",
    "Study Jam",
]
_departments = [
    "Computer Science",
    "Fine Arts",
    "Biology",
    "History",
    "Student Affairs",
    "Athletics",
]


def seed_fake_data(
    *,
    user_count: int = 8,
    category_count: int = 3,
    event_count: int = 12,
) -> dict[str, int]:
    """Populate the database with synthetic profiles, categories, and events.

    The first seeded profile is an admin and organizes every event.
    """
    if user_count < 1:
        raise ValueError("user_count must be >= 1")
    if not 0 <= category_count <= len(_category_palette):
        raise ValueError(
            f"category_count must be between 0 and {len(_category_palette)}"
        )
    if event_count < 0:
        raise ValueError("event_count must be >= 0")

    init_db()
    fake = Faker()
    stats = {"users": 0, "categories": 0, "events": 0, "registrations": 0}

    with get_session() as session:
        profiles = [
            _create_profile(session, fake, role="admin" if index == 0 else "user")
            for index in range(user_count)
        ]
        stats["users"] = len(profiles)

        existing = {category.name for category in list_categories(session)}
        for name, color in _category_palette[:category_count]:
            ensure_category(session, name=name, color=color)
            if name not in existing:
                stats["categories"] += 1
        categories = list(list_categories(session))

        organizer = profiles[0]
        for _ in range(event_count):
            stats["registrations"] += _create_event(
                session, fake, organizer=organizer, profiles=profiles, categories=categories
            )
            stats["events"] += 1

    return stats


def _create_profile(session: Session, fake: Faker, *, role: str) -> Profile:
    return create_profile(
        session,
        full_name=fake.name(),
        email=fake.unique.email(),
        role=role,
        department=random.choice(_departments),
        bio=fake.sentence() if random.random() < 0.5 else None,
    )


def _create_event(
    session: Session,
    fake: Faker,
    *,
    organizer: Profile,
    profiles: list[Profile],
    categories: list[Category],
) -> int:
    start_time = _random_start_time()
    end_time = start_time + timedelta(hours=random.randint(1, 6))
    category = random.choice(categories) if categories and random.random() < 0.8 else None
    max_attendees = random.choice([None, None, 10, 25, 50])
    event = create_event(
        session,
        title=f"{fake.word().title()} {random.choice(_event_types)}",
        description="\n\n".join(fake.paragraphs(nb=2)),
        start_time=start_time,
        end_time=end_time,
        location=f"{fake.last_name()} Hall, Room {random.randint(100, 450)}",
        organizer_id=organizer.user_id,
        max_attendees=max_attendees,
        tags=fake.words(nb=random.randint(0, 3), unique=True) or None,
        category_id=category.id if category else None,
    )

    attendees = random.sample(profiles, k=random.randint(0, len(profiles)))
    if max_attendees is not None:
        attendees = attendees[:max_attendees]
    for profile in attendees:
        insert_attendance(session, event_id=event.id, user_id=profile.user_id)
        if random.random() < 0.3:
            create_discussion(
                session,
                event_id=event.id,
                user_id=profile.user_id,
                content=fake.sentence(),
            )
    for profile in profiles:
        if random.random() < 0.2:
            insert_favorite(session, event_id=event.id, user_id=profile.user_id)
    return len(attendees)


def _random_start_time() -> datetime:
    now = utcnow().replace(second=0, microsecond=0)
    day_offset = random.randint(-14, 45)
    minute_offset = random.randint(8 * 60, 20 * 60)
    midnight = now.replace(hour=0, minute=0)
    return midnight + timedelta(days=day_offset, minutes=minute_offset)
