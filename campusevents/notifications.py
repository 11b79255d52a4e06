"""User-visible notifications returned by catalog and mutation helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Literal

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: Variant = "default"

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"

    @property
    def message_class(self) -> str:
        return "alert-danger" if self.is_error else "alert-success"

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def success(description: str, *, title: str = "Success") -> Notification:
    return Notification(title=title, description=description)


def error(description: str, *, title: str = "Error") -> Notification:
    return Notification(title=title, description=description, variant="destructive")
