"""Current identity, profile, and role capabilities for a request."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .crud import get_profile_by_token, rotate_access_token
from .models import Profile

logger = logging.getLogger("uvicorn.error")

CREATE_EVENT = "create_event"
EDIT_EVENT = "edit_event"
DELETE_EVENT = "delete_event"
UPLOAD_IMAGE = "upload_image"
UPLOAD_VIDEO = "upload_video"

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "admin": frozenset(
        {CREATE_EVENT, EDIT_EVENT, DELETE_EVENT, UPLOAD_IMAGE, UPLOAD_VIDEO}
    ),
    "user": frozenset({UPLOAD_IMAGE}),
}


def capabilities_for_role(role: str | None) -> frozenset[str]:
    return ROLE_CAPABILITIES.get((role or "").lower(), frozenset())


def get_current_user(db: Session, token: str | None) -> Profile | None:
    """Resolve an access token to its profile, or ``None``."""
    return get_profile_by_token(db, token)


def sign_out(db: Session, profile: Profile) -> None:
    """Invalidate every outstanding token for the profile."""
    rotate_access_token(db, profile)
    logger.info("Signed out user %s", profile.user_id)


@dataclass
class SessionContext:
    """Single holder of the signed-in profile for one request.

    Views read ``profile`` and ``capabilities`` from here instead of
    re-fetching the profile themselves.
    """

    profile: Profile | None = None
    capabilities: frozenset[str] = field(default_factory=frozenset)
    loaded: bool = False

    @classmethod
    def anonymous(cls) -> SessionContext:
        return cls(loaded=True)

    @classmethod
    def for_profile(cls, profile: Profile | None) -> SessionContext:
        context = cls()
        context._apply(profile)
        return context

    def load(self, db: Session, token: str | None) -> SessionContext:
        if self.loaded:
            return self
        try:
            profile = get_current_user(db, token)
        except SQLAlchemyError:
            logger.error("Failed to load profile for session", exc_info=True)
            profile = None
        self._apply(profile)
        return self

    def invalidate(self) -> None:
        self.profile = None
        self.capabilities = frozenset()
        self.loaded = False

    def _apply(self, profile: Profile | None) -> None:
        self.profile = profile
        self.capabilities = capabilities_for_role(profile.role if profile else None)
        self.loaded = True

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None

    @property
    def user_id(self) -> str | None:
        return self.profile.user_id if self.profile else None

    @property
    def is_admin(self) -> bool:
        return bool(self.profile and self.profile.is_admin)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities
