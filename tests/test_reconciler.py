from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from campusevents import crud
from campusevents.reconciler import (
    FAVORITE,
    REGISTRATION,
    InFlightRegistry,
    RegistrationReconciler,
)


def test_load_populates_membership_sets(session, member, make_event):
    registered = make_event(title="Registered")
    favorited = make_event(title="Favorited")
    crud.insert_attendance(session, event_id=registered.id, user_id=member.user_id)
    crud.insert_favorite(session, event_id=favorited.id, user_id=member.user_id)
    session.commit()

    reconciler = RegistrationReconciler.load(session, member.user_id)

    assert reconciler.is_registered(registered.id)
    assert not reconciler.is_registered(favorited.id)
    assert reconciler.is_favorited(favorited.id)
    assert not reconciler.is_favorited(registered.id)


def test_toggle_registration_twice_restores_state(session, member, make_event):
    event = make_event(max_attendees=5)
    reconciler = RegistrationReconciler.load(session, member.user_id)

    first = reconciler.toggle_registration(event.id, event.max_attendees, 2)
    assert first.outcome == "registered"
    assert first.active is True
    assert first.count == 3
    assert first.notification.variant == "default"
    assert reconciler.is_registered(event.id)
    assert crud.attendee_count(session, event.id) == 1

    second = reconciler.toggle_registration(event.id, event.max_attendees, first.count)
    assert second.outcome == "unregistered"
    assert second.active is False
    assert second.count == 2
    assert not reconciler.is_registered(event.id)
    assert crud.attendee_count(session, event.id) == 0


def test_full_event_rejects_registration_without_mutation(
    session, admin, member, make_event
):
    event = make_event(max_attendees=1)
    crud.insert_attendance(session, event_id=event.id, user_id=admin.user_id)
    session.commit()
    reconciler = RegistrationReconciler.load(session, member.user_id)

    result = reconciler.toggle_registration(event.id, 1, 1)

    assert result.outcome == "full"
    assert result.active is False
    assert result.count == 1
    assert result.notification.title == "Event Full"
    assert result.notification.is_error
    assert not reconciler.is_registered(event.id)
    assert crud.attendee_count(session, event.id) == 1


def test_registered_user_can_leave_full_event(session, member, make_event):
    event = make_event(max_attendees=1)
    crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    session.commit()
    reconciler = RegistrationReconciler.load(session, member.user_id)

    result = reconciler.toggle_registration(event.id, 1, 1)

    assert result.outcome == "unregistered"
    assert result.count == 0
    assert crud.attendee_count(session, event.id) == 0


def test_unregister_count_is_floored_at_zero(session, member, make_event):
    event = make_event()
    crud.insert_attendance(session, event_id=event.id, user_id=member.user_id)
    session.commit()
    reconciler = RegistrationReconciler.load(session, member.user_id)

    result = reconciler.toggle_registration(event.id, None, 0)

    assert result.outcome == "unregistered"
    assert result.count == 0


def test_second_toggle_while_in_flight_is_pending(
    session, member, make_event, monkeypatch
):
    event = make_event(title="Busy")
    other = make_event(title="Other")
    reconciler = RegistrationReconciler.load(session, member.user_id)
    nested = {}
    original_insert = crud.insert_attendance

    def insert_with_reentry(db, *, event_id, user_id):
        if event_id == event.id and "same" not in nested:
            assert reconciler.is_pending(event.id, REGISTRATION)
            nested["same"] = reconciler.toggle_registration(event.id, None, 0)
            nested["other"] = reconciler.toggle_registration(other.id, None, 0)
        return original_insert(db, event_id=event_id, user_id=user_id)

    monkeypatch.setattr(crud, "insert_attendance", insert_with_reentry)

    result = reconciler.toggle_registration(event.id, None, 0)

    assert result.outcome == "registered"
    assert nested["same"].outcome == "pending"
    assert nested["same"].count == 0
    assert nested["same"].notification is None
    assert nested["other"].outcome == "registered"
    assert crud.attendee_count(session, event.id) == 1
    assert crud.attendee_count(session, other.id) == 1
    assert not reconciler.is_pending(event.id, REGISTRATION)


def test_store_failure_keeps_membership_and_count(
    session, member, make_event, monkeypatch
):
    event = make_event()
    event_id = event.id
    reconciler = RegistrationReconciler.load(session, member.user_id)

    def failing_insert(*args, **kwargs):
        raise SQLAlchemyError("write failed")

    monkeypatch.setattr(crud, "insert_attendance", failing_insert)

    result = reconciler.toggle_registration(event_id, 10, 4)

    assert result.outcome == "error"
    assert result.active is False
    assert result.count == 4
    assert result.notification.description == "Failed to update registration"
    assert not reconciler.is_registered(event_id)
    assert not reconciler.is_pending(event_id, REGISTRATION)
    assert crud.attendee_count(session, event_id) == 0


def test_toggle_favorite_round_trip(session, member, make_event):
    event = make_event()
    reconciler = RegistrationReconciler.load(session, member.user_id)

    added = reconciler.toggle_favorite(event.id)
    assert added.outcome == "favorited"
    assert added.active is True
    assert reconciler.is_favorited(event.id)
    assert crud.favorited_event_ids(session, member.user_id) == {event.id}

    removed = reconciler.toggle_favorite(event.id)
    assert removed.outcome == "unfavorited"
    assert removed.active is False
    assert not reconciler.is_favorited(event.id)
    assert crud.favorited_event_ids(session, member.user_id) == set()


def test_favorite_failure_leaves_set_untouched(
    session, member, make_event, monkeypatch
):
    event = make_event()
    event_id = event.id
    reconciler = RegistrationReconciler.load(session, member.user_id)

    def failing_insert(*args, **kwargs):
        raise SQLAlchemyError("write failed")

    monkeypatch.setattr(crud, "insert_favorite", failing_insert)

    result = reconciler.toggle_favorite(event_id)

    assert result.outcome == "error"
    assert result.notification.is_error
    assert not reconciler.is_favorited(event_id)
    assert not reconciler.is_pending(event_id, FAVORITE)


def test_claims_are_shared_between_reconcilers(session, admin, member, make_event):
    event = make_event()
    registry = InFlightRegistry()
    first = RegistrationReconciler(session, member.user_id, registry=registry)
    second = RegistrationReconciler(session, member.user_id, registry=registry)
    other_user = RegistrationReconciler(session, admin.user_id, registry=registry)

    assert registry.claim(member.user_id, REGISTRATION, event.id)

    assert first.is_pending(event.id)
    assert second.toggle_registration(event.id, None, 0).outcome == "pending"
    assert second.toggle_favorite(event.id).outcome == "favorited"
    assert other_user.toggle_registration(event.id, None, 0).outcome == "registered"

    registry.release(member.user_id, REGISTRATION, event.id)
    assert second.toggle_registration(event.id, None, 1).outcome == "registered"
