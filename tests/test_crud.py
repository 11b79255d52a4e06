from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from campusevents import crud
from campusevents.models import Attendance, Category, DiscussionComment, Favorite


def test_create_profile_validates_role_and_name(session):
    with pytest.raises(ValueError):
        crud.create_profile(session, full_name="X", role="superuser")
    with pytest.raises(ValueError):
        crud.create_profile(session, full_name="  ")

    profile = crud.create_profile(session, full_name="", email="quiet@campus.edu")
    assert profile.full_name == "quiet@campus.edu"
    assert profile.role == "user"
    assert profile.access_token


def test_update_profile_and_avatar(session, member):
    crud.update_profile(
        session, member, full_name="Samira Student", bio="Hi", department="Biology"
    )
    crud.set_avatar_url(session, member, "/storage/event-images/avatars/a.png")
    session.commit()

    stored = crud.get_profile_by_user_id(session, member.user_id)
    assert stored.full_name == "Samira Student"
    assert stored.department == "Biology"
    assert stored.avatar_url == "/storage/event-images/avatars/a.png"


def test_ensure_category_reuses_existing(session):
    created = crud.ensure_category(session, name="Sports", color="#22c55e")
    session.commit()
    reused = crud.ensure_category(session, name="Sports")
    assert reused.id == created.id
    assert [c.name for c in crud.list_categories(session)] == ["Sports"]


def test_update_event_rejects_unknown_fields(session, make_event):
    event = make_event()
    with pytest.raises(ValueError):
        crud.update_event(session, event, organizer_id="someone-else")


def test_duplicate_attendance_violates_unique_constraint(session, member, make_event):
    event = make_event()
    crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    session.commit()

    with pytest.raises(IntegrityError):
        crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    session.rollback()


def test_foreign_keys_are_enforced(session, make_event):
    event = make_event()

    with pytest.raises(IntegrityError):
        crud.insert_attendance(session, event_id=event.id, user_id="no-such-user")
    session.rollback()


def test_deleting_category_clears_event_category(session, make_event):
    category = crud.ensure_category(session, name="Sports")
    session.commit()
    event = make_event(category_id=category.id)

    session.execute(delete(Category).where(Category.id == category.id))
    session.commit()
    session.expire_all()

    assert crud.get_event(session, event.id).category_id is None


def test_delete_membership_rows(session, member, make_event):
    event = make_event()
    crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    crud.insert_favorite(session, event_id=event.id, user_id=member.user_id)
    session.commit()

    assert crud.delete_attendance(session, event_id=event.id, user_id=member.user_id) == 1
    assert crud.delete_favorite(session, event_id=event.id, user_id=member.user_id) == 1
    assert crud.delete_attendance(session, event_id=event.id, user_id=member.user_id) == 0


def test_delete_event_removes_dependents(session, member, make_event):
    event = make_event()
    crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    crud.insert_favorite(session, event_id=event.id, user_id=member.user_id)
    crud.create_discussion(
        session, event_id=event.id, user_id=member.user_id, content="Hello"
    )
    session.commit()
    session.expire_all()

    crud.delete_event(session, crud.get_event(session, event.id))
    session.commit()

    for model in (Attendance, Favorite, DiscussionComment):
        assert session.scalars(select(model)).all() == []


def test_upcoming_and_past_split_on_end_time(session, make_event):
    now = make_event().start_time - timedelta(days=1)
    assert len(crud.upcoming_events_with_counts(session, now=now)) == 1
    assert crud.past_events_with_counts(session, now=now) == []
