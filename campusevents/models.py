"""SQLAlchemy models for Campus Events."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import utcnow

Base = declarative_base()

ROLES = ("admin", "user")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return utcnow()


def new_access_token() -> str:
    return secrets.token_urlsafe(32)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, unique=True, default=_uuid)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    role = Column(String(16), nullable=False, default="user")
    avatar_url = Column(Text, nullable=True)
    department = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    access_token = Column(
        String(128), nullable=False, unique=True, default=new_access_token
    )
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Category(Base):
    __tablename__ = "event_categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=False, unique=True)
    color = Column(String(32), nullable=False, default="#3b82f6")
    created_at = Column(DateTime, default=_now, nullable=False)

    events = relationship("Event", back_populates="category")


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False, index=True)
    location = Column(String(255), nullable=False, default="")
    image_url = Column(Text, nullable=True)
    max_attendees = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=True)
    video_urls = Column(JSON, nullable=True)
    category_id = Column(
        String(36), ForeignKey("event_categories.id", ondelete="SET NULL"), nullable=True
    )
    organizer_id = Column(String(36), ForeignKey("profiles.user_id"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    category = relationship("Category", back_populates="events")
    organizer = relationship("Profile")
    attendees = relationship(
        "Attendance",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Attendance.registered_at",
    )
    favorites = relationship(
        "Favorite", back_populates="event", cascade="all, delete-orphan"
    )
    discussions = relationship(
        "DiscussionComment",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="DiscussionComment.created_at",
    )


class Attendance(Base):
    __tablename__ = "event_attendees"
    __table_args__ = (UniqueConstraint("event_id", "user_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("profiles.user_id"), nullable=False)
    registered_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="attendees")
    profile = relationship("Profile")


class Favorite(Base):
    __tablename__ = "event_favorites"
    __table_args__ = (UniqueConstraint("event_id", "user_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("profiles.user_id"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="favorites")


class DiscussionComment(Base):
    __tablename__ = "event_discussions"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(36), ForeignKey("profiles.user_id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="discussions")
    author = relationship("Profile")
