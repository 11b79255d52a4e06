"""Month grid bucketing for the calendar view."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from .catalog import CatalogEntry

SUNDAY = 6


@dataclass
class DayCell:
    day: date
    is_padding: bool = False
    entries: list[CatalogEntry] = field(default_factory=list)

    @property
    def label(self) -> int:
        return self.day.day


@dataclass
class MonthGrid:
    year: int
    month: int
    first_weekday: int
    cells: list[DayCell] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def weeks(self) -> list[list[DayCell]]:
        return [self.cells[i : i + 7] for i in range(0, len(self.cells), 7)]

    @property
    def weekday_names(self) -> list[str]:
        return [
            calendar.day_abbr[(self.first_weekday + offset) % 7] for offset in range(7)
        ]

    @property
    def previous(self) -> tuple[int, int]:
        return shift_month(self.year, self.month, -1)

    @property
    def next(self) -> tuple[int, int]:
        return shift_month(self.year, self.month, 1)

    def cell_for(self, day: date) -> DayCell | None:
        for cell in self.cells:
            if not cell.is_padding and cell.day == day:
                return cell
        return None


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move the reference month by ``delta`` months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def leading_padding(year: int, month: int, first_weekday: int = SUNDAY) -> int:
    """Number of prior-month cells before day 1 of the month."""
    return (date(year, month, 1).weekday() - first_weekday) % 7


def build_month_grid(
    year: int,
    month: int,
    entries: Iterable[CatalogEntry],
    *,
    first_weekday: int = SUNDAY,
) -> MonthGrid:
    """Bucket entries by the calendar day of their start time.

    An event only appears on its start day. Padding cells from the prior
    month keep their dates but never hold events.
    """
    first_day = date(year, month, 1)
    days_in_month = calendar.monthrange(year, month)[1]
    padding = leading_padding(year, month, first_weekday)

    buckets: dict[date, list[CatalogEntry]] = {}
    for entry in entries:
        start = entry.event.start_time
        if start is None or start.year != year or start.month != month:
            continue
        buckets.setdefault(start.date(), []).append(entry)

    grid = MonthGrid(year=year, month=month, first_weekday=first_weekday)
    for offset in range(padding, 0, -1):
        grid.cells.append(DayCell(day=first_day - timedelta(days=offset), is_padding=True))
    for day_number in range(1, days_in_month + 1):
        day = date(year, month, day_number)
        grid.cells.append(DayCell(day=day, entries=buckets.get(day, [])))
    return grid
