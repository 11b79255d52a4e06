"""Registration and favorite membership for the signed-in user.

The reconciler keeps two sets of event ids loaded once from the store and
patches them (and the displayed attendee count) only after the matching
insert or delete has gone through. In-flight toggles are claimed in a
process-wide registry keyed by user and toggle, so a second request for
the same toggle is answered with ``pending`` while the first is still running.
Other events stay usable.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .notifications import Notification, error, success

logger = logging.getLogger("uvicorn.error")

Outcome = Literal[
    "registered",
    "unregistered",
    "favorited",
    "unfavorited",
    "full",
    "pending",
    "error",
]

REGISTRATION = "registration"
FAVORITE = "favorite"


class InFlightRegistry:
    """Toggles currently being written, shared by every request."""

    def __init__(self) -> None:
        self._claims: set[tuple[str, str, str]] = set()
        self._lock = threading.Lock()

    def claim(self, user_id: str, kind: str, event_id: str) -> bool:
        with self._lock:
            key = (user_id, kind, event_id)
            if key in self._claims:
                return False
            self._claims.add(key)
            return True

    def release(self, user_id: str, kind: str, event_id: str) -> None:
        with self._lock:
            self._claims.discard((user_id, kind, event_id))

    def is_claimed(self, user_id: str, kind: str, event_id: str) -> bool:
        with self._lock:
            return (user_id, kind, event_id) in self._claims


in_flight = InFlightRegistry()


@dataclass(frozen=True)
class ToggleResult:
    outcome: Outcome
    active: bool
    count: int | None = None
    notification: Notification | None = None

    def as_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "active": self.active,
            "count": self.count,
            "notification": self.notification.as_dict() if self.notification else None,
        }


class RegistrationReconciler:
    def __init__(
        self,
        db: Session,
        user_id: str,
        *,
        registered: set[str] | None = None,
        favorited: set[str] | None = None,
        registry: InFlightRegistry | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.registered: set[str] = set(registered or ())
        self.favorited: set[str] = set(favorited or ())
        self.registry = registry or in_flight

    @classmethod
    def load(cls, db: Session, user_id: str) -> RegistrationReconciler:
        """Populate membership sets from the store."""
        return cls(
            db,
            user_id,
            registered=crud.registered_event_ids(db, user_id),
            favorited=crud.favorited_event_ids(db, user_id),
        )

    def is_registered(self, event_id: str) -> bool:
        return event_id in self.registered

    def is_favorited(self, event_id: str) -> bool:
        return event_id in self.favorited

    def is_pending(self, event_id: str, kind: str = REGISTRATION) -> bool:
        return self.registry.is_claimed(self.user_id, kind, event_id)

    def _claim(self, kind: str, event_id: str) -> bool:
        return self.registry.claim(self.user_id, kind, event_id)

    def _release(self, kind: str, event_id: str) -> None:
        self.registry.release(self.user_id, kind, event_id)

    def toggle_registration(
        self, event_id: str, capacity: int | None, current_count: int
    ) -> ToggleResult:
        was_registered = self.is_registered(event_id)
        if not was_registered and capacity is not None and current_count >= capacity:
            logger.info("Rejected registration for full event %s", event_id)
            return ToggleResult(
                outcome="full",
                active=False,
                count=current_count,
                notification=error("This event is full", title="Event Full"),
            )
        if not self._claim(REGISTRATION, event_id):
            return ToggleResult(outcome="pending", active=was_registered, count=current_count)
        try:
            if was_registered:
                crud.delete_attendance(self.db, event_id=event_id, user_id=self.user_id)
            else:
                crud.insert_attendance(self.db, event_id=event_id, user_id=self.user_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                "Failed to %s user %s for event %s",
                "unregister" if was_registered else "register",
                self.user_id,
                event_id,
                exc_info=True,
            )
            return ToggleResult(
                outcome="error",
                active=was_registered,
                count=current_count,
                notification=error("Failed to update registration"),
            )
        finally:
            self._release(REGISTRATION, event_id)

        if was_registered:
            self.registered.discard(event_id)
            return ToggleResult(
                outcome="unregistered",
                active=False,
                count=max(current_count - 1, 0),
                notification=success("You are no longer registered for this event"),
            )
        self.registered.add(event_id)
        return ToggleResult(
            outcome="registered",
            active=True,
            count=current_count + 1,
            notification=success("You are registered for this event"),
        )

    def toggle_favorite(self, event_id: str) -> ToggleResult:
        was_favorited = self.is_favorited(event_id)
        if not self._claim(FAVORITE, event_id):
            return ToggleResult(outcome="pending", active=was_favorited)
        try:
            if was_favorited:
                crud.delete_favorite(self.db, event_id=event_id, user_id=self.user_id)
            else:
                crud.insert_favorite(self.db, event_id=event_id, user_id=self.user_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                "Failed to update favorite of user %s for event %s",
                self.user_id,
                event_id,
                exc_info=True,
            )
            return ToggleResult(
                outcome="error",
                active=was_favorited,
                notification=error("Failed to update favorites"),
            )
        finally:
            self._release(FAVORITE, event_id)

        if was_favorited:
            self.favorited.discard(event_id)
            return ToggleResult(
                outcome="unfavorited",
                active=False,
                notification=success("Event removed from favorites"),
            )
        self.favorited.add(event_id)
        return ToggleResult(
            outcome="favorited",
            active=True,
            notification=success("Event added to favorites"),
        )
