#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""A light wrapper around the `datetime` library for the wall-clock ranges reservations
are made of. All ranges are half-open: a booking ending at 10:00 and one starting at
10:00 do not overlap."""

import datetime
from typing import Callable, NamedTuple, Self

from spacebook.booking.exceptions import ValidationError
from spacebook.constants import DATE_FORMAT, WALL_CLOCK_FORMAT

Clock = Callable[[], datetime.datetime]
"""Returns the current local date and time. Injected so that "today" is testable."""


def system_clock() -> datetime.datetime:
    return datetime.datetime.now()


def overlaps(
    a_start: datetime.datetime,
    a_end: datetime.datetime,
    b_start: datetime.datetime,
    b_end: datetime.datetime,
) -> bool:
    """Half-open overlap test: touching ranges do not overlap."""
    return a_start < b_end and a_end > b_start


class TimeInterval(NamedTuple):
    """Represents the time interval between two specific time points."""

    start: datetime.datetime
    end: datetime.datetime

    @classmethod
    def on(cls, date: datetime.date, start: datetime.time, end: datetime.time) -> Self:
        """Anchor a pair of wall-clock times to `date`."""
        return cls(start=combine(date, start), end=combine(date, end))

    def overlaps(self, other: Self) -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def contains(self, dt: datetime.datetime) -> bool:
        """Check if a given datetime is contained within this time interval."""
        return self.start <= dt < self.end

    @property
    def duration(self) -> datetime.timedelta:
        return self.end - self.start

    def __str__(self) -> str:
        start = self.start.strftime(WALL_CLOCK_FORMAT)
        end = self.end.strftime(WALL_CLOCK_FORMAT)
        if self.start.date() == self.end.date():
            return f"{self.start.strftime(DATE_FORMAT)} {start}-{end}"
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


def combine(date: datetime.date, time: datetime.time) -> datetime.datetime:
    return datetime.datetime.combine(date, time)


def parse_wall_clock(value: datetime.time | str) -> datetime.time:
    """Parse an `HH:MM` string. `datetime.time` values are returned unchanged."""
    if isinstance(value, datetime.time):
        return value
    try:
        return datetime.datetime.strptime(value.strip(), WALL_CLOCK_FORMAT).time()
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")


def parse_date(value: datetime.date | str) -> datetime.date:
    """Parse an ISO `YYYY-MM-DD` date string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_slot(label: str) -> tuple[datetime.time, datetime.time]:
    """Split a slot label such as '12:00 - 13:00' into its start and end times."""
    parts = label.split("-")
    if len(parts) != 2:
        raise ValidationError(f"Invalid slot '{label}', expected 'HH:MM - HH:MM'")
    return parse_wall_clock(parts[0]), parse_wall_clock(parts[1])


def format_slot(start: datetime.time, end: datetime.time) -> str:
    return f"{start.strftime(WALL_CLOCK_FORMAT)} - {end.strftime(WALL_CLOCK_FORMAT)}"
