from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

from sqlalchemy.exc import SQLAlchemyError

from campusevents import crud
from campusevents.catalog import (
    CatalogEntry,
    filter_catalog,
    load_catalog,
    load_favorite_events,
    load_my_events,
    load_past_events,
    matches_filter,
)
from campusevents.utils import utcnow


def _now():
    return utcnow().replace(microsecond=0)


def test_catalog_includes_events_ending_exactly_now(session, make_event):
    now = _now()
    make_event(title="Ended", start=now - timedelta(hours=3), end=now - timedelta(seconds=1))
    make_event(title="Ends Now", start=now - timedelta(hours=2), end=now)
    make_event(title="Tomorrow", start=now + timedelta(days=1))

    result = load_catalog(session, now=now)

    assert not result.failed
    assert [entry.event.title for entry in result.entries] == ["Ends Now", "Tomorrow"]


def test_catalog_orders_by_start_and_annotates(session, admin, member, make_event):
    category = crud.ensure_category(session, name="Arts", color="#ec4899")
    session.commit()
    now = _now()
    later = make_event(title="Later", start=now + timedelta(days=3))
    sooner = make_event(
        title="Sooner", start=now + timedelta(days=1), category_id=category.id
    )
    crud.insert_attendance(session, event_id=sooner.id, user_id=admin.user_id)
    crud.insert_attendance(session, event_id=sooner.id, user_id=member.user_id)
    session.commit()

    result = load_catalog(session, now=now)

    assert [entry.id for entry in result.entries] == [sooner.id, later.id]
    first, second = result.entries
    assert first.attendee_count == 2
    assert first.category_name == "Arts"
    assert first.category_color == "#ec4899"
    assert second.attendee_count == 0
    assert second.category_name is None


def test_empty_catalog_is_not_an_error(session):
    result = load_catalog(session)
    assert result.entries == []
    assert result.notification is None


def test_catalog_failure_keeps_previous_entries(session, monkeypatch):
    previous = [CatalogEntry(event=SimpleNamespace(id="kept"))]

    def failing_query(*args, **kwargs):
        raise SQLAlchemyError("read failed")

    monkeypatch.setattr(crud, "upcoming_events_with_counts", failing_query)

    result = load_catalog(session, previous=previous)

    assert result.failed
    assert result.notification.description == "Failed to load events"
    assert result.notification.is_error
    assert result.entries == previous


def test_past_events_are_most_recent_first(session, make_event):
    now = _now()
    make_event(title="Long Ago", start=now - timedelta(days=10), end=now - timedelta(days=9))
    make_event(title="Yesterday", start=now - timedelta(days=1), end=now - timedelta(hours=20))
    make_event(title="Upcoming", start=now + timedelta(days=1))

    result = load_past_events(session, now=now)

    assert [entry.event.title for entry in result.entries] == ["Yesterday", "Long Ago"]


def test_my_events_splits_registrations(session, admin, member, make_event):
    now = _now()
    upcoming = make_event(title="Upcoming", start=now + timedelta(days=2))
    finished = make_event(
        title="Finished", start=now - timedelta(days=2), end=now - timedelta(days=1)
    )
    make_event(title="Not Registered", start=now + timedelta(days=5))
    crud.insert_attendance(session, event_id=upcoming.id, user_id=member.user_id)
    crud.insert_attendance(session, event_id=finished.id, user_id=member.user_id)
    session.commit()

    mine = load_my_events(session, member, now=now)

    assert mine.organized == []
    assert [entry.id for entry in mine.attending] == [upcoming.id]
    assert [entry.id for entry in mine.attended] == [finished.id]

    organized = load_my_events(session, admin, now=now).organized
    assert [entry.event.title for entry in organized] == [
        "Finished",
        "Upcoming",
        "Not Registered",
    ]


def test_favorite_events(session, member, make_event):
    saved = make_event(title="Saved")
    make_event(title="Ignored")
    crud.insert_favorite(session, event_id=saved.id, user_id=member.user_id)
    session.commit()

    result = load_favorite_events(session, member)

    assert [entry.event.title for entry in result.entries] == ["Saved"]


def _listing(title, description, category_id=None):
    return CatalogEntry(
        event=SimpleNamespace(
            id=title, title=title, description=description, category_id=category_id
        )
    )


def test_search_is_case_insensitive_over_title_and_description():
    tech = _listing("Tech Talk", "A session on compilers")
    art = _listing("Art Fair", "Local painters and sculptors")
    mural = _listing("Mural Walk", "Street ART tour")

    assert filter_catalog([tech, art], "art", "all") == [art]
    assert filter_catalog([tech, art], "ART", None) == [art]
    assert filter_catalog([tech, art, mural], "art", "all") == [art, mural]
    assert filter_catalog([tech, art], "", "all") == [tech, art]


def test_category_selection_excludes_other_and_missing_categories():
    music = _listing("Jazz Night", "Live band", category_id="music")
    sports = _listing("Five-a-side", "Football", category_id="sports")
    loose = _listing("Open House", "Everyone welcome")

    assert filter_catalog([music, sports, loose], None, "music") == [music]
    assert filter_catalog([music, sports, loose], None, "all") == [music, sports, loose]
    assert filter_catalog([music, sports, loose], None, "") == [music, sports, loose]
    assert not matches_filter(loose, None, "sports")
    assert not matches_filter(music, "football", "music")
