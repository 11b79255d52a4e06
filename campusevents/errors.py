"""Exceptions raised by the event surfaces and mapped to HTTP responses."""

from __future__ import annotations

from .notifications import Notification, error


class CampusEventsError(Exception):
    """Base error carrying a user-facing message."""

    status_code = 500
    title = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def notification(self) -> Notification:
        return error(self.message, title=self.title)


class ValidationFailed(CampusEventsError):
    """Rejected before any store call."""

    status_code = 400


class NotSignedIn(CampusEventsError):
    status_code = 401


class PermissionDenied(CampusEventsError):
    status_code = 403


class NotFound(CampusEventsError):
    status_code = 404
    title = "Not Found"


class StoreFailure(CampusEventsError):
    """The store rejected or failed a read or write."""

    status_code = 503
