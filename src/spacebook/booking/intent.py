#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Free-text bookings.

A language model turns the user query into a `BookingIntent`. The intent only says
*what* the user asked for: its `is_available` flag and confirmation message are the
model's guess and are never used to grant anything. The intent is resolved to a
space, a date and a time range and then booked through `BookingService`, exactly
like a form submission.
"""

import datetime
import logging
from enum import StrEnum, auto
from typing import Protocol, runtime_checkable

from dateutil import parser as date_parser
from jinja2 import Environment, StrictUndefined, Template
from pydantic import BaseModel, Field
from rapidfuzz import fuzz, process, utils

from spacebook.booking import reply_templates
from spacebook.booking.availability import Conflict
from spacebook.booking.exceptions import ConflictError, NotFoundError, ValidationError
from spacebook.booking.reservations import Reservation
from spacebook.booking.service import BookingService
from spacebook.booking.spaces import Cafeteria, MeetingRoom, User
from spacebook.booking.time_utils import combine, format_slot
from spacebook.store.base import read_retry

logger = logging.getLogger(__name__)

SPACE_MATCH_THRESHOLD = 90
# the best match must beat the runner-up by this many points
SPACE_MATCH_MARGIN = 5
DEFAULT_MEETING_PURPOSE = "Booked via assistant"


class BookingIntent(BaseModel, frozen=True):
    """Structured output of the natural-language parser.

    Parameters
    ----------
    resource_description
        The space as the user named it, eg "the main canteen".
    date, time
        Free text, eg "tomorrow", "2025-03-14", "12:00 - 13:00", "2pm".
    is_available, confirmation_message
        The model's own answer. Kept for logging only.
    """

    resource_description: str
    date: str | None = None
    time: str | None = None
    is_available: bool | None = None
    confirmation_message: str | None = None
    seat_count: int = Field(default=1, gt=0)
    purpose: str | None = None
    participants: list[str] = Field(default_factory=list)


@runtime_checkable
class IntentParser(Protocol):
    def __call__(self, query: str) -> BookingIntent: ...


class IntentOutcome(StrEnum):
    BOOKED = auto()
    REQUESTED = auto()
    UNAVAILABLE = auto()


class IntentReply(BaseModel, frozen=True):
    outcome: IntentOutcome
    confirmation_message: str
    is_available: bool
    reservation: Reservation | None = None
    conflicts: list[Conflict] = []
    free_seats: int | None = None


class IntentBookingFlow:
    """Books on behalf of a user from a free-text query.

    Validation and lookup errors (`ValidationError`, `NotFoundError`) propagate to the
    caller. A `ConflictError` is an expected answer and is turned into an
    `UNAVAILABLE` reply.
    """

    def __init__(self, service: BookingService, parser: IntentParser):
        self._service = service
        self._parser = parser
        self._query_spaces = read_retry(service.policy.read_retries)(
            service.store.query_spaces
        )
        environment = Environment(undefined=StrictUndefined)
        self._templates: dict[IntentOutcome, Template] = {
            IntentOutcome.BOOKED: environment.from_string(
                reply_templates.cafeteria_booked()
            ),
            IntentOutcome.REQUESTED: environment.from_string(
                reply_templates.meeting_room_requested()
            ),
            IntentOutcome.UNAVAILABLE: environment.from_string(
                reply_templates.unavailable()
            ),
        }

    def handle(self, requester: User, query: str) -> IntentReply:
        intent = self._parser(query)
        logger.debug(
            f"Parsed {query!r} into {intent}; ignoring model availability "
            f"{intent.is_available}"
        )
        return self.book(requester, intent)

    def book(self, requester: User, intent: BookingIntent) -> IntentReply:
        space = self.resolve_space(requester, intent.resource_description)
        date = self.resolve_date(intent.date)
        start_time, end_time = self.resolve_time_range(intent.time, space)
        context = {
            "space_name": space.name,
            "date": date.isoformat(),
            "slot": format_slot(start_time, end_time),
        }
        try:
            if isinstance(space, Cafeteria):
                self._service.checker.validate_new_booking(
                    space, date, start_time, end_time, seat_count=intent.seat_count
                )
                table_id = self._service.checker.allocator.suggest_table(
                    space, date, start_time, end_time, intent.seat_count
                )
                reservation = self._service.book_cafeteria(
                    requester,
                    space.space_id,
                    date,
                    start_time,
                    end_time,
                    table_id=table_id,
                    seat_count=intent.seat_count,
                )
                outcome = IntentOutcome.BOOKED
                context |= {"table_id": table_id, "seat_count": intent.seat_count}
            else:
                reservation = self._service.request_meeting_room(
                    requester,
                    space.space_id,
                    date,
                    start_time,
                    end_time,
                    purpose=intent.purpose or DEFAULT_MEETING_PURPOSE,
                    participants=intent.participants,
                )
                outcome = IntentOutcome.REQUESTED
        except ConflictError as e:
            logger.info(f"Intent {intent} cannot be granted: {e}")
            return IntentReply(
                outcome=IntentOutcome.UNAVAILABLE,
                confirmation_message=self._render(
                    IntentOutcome.UNAVAILABLE,
                    context | {"free_seats": e.free_seats, "conflicts": e.conflicts},
                ),
                is_available=False,
                conflicts=e.conflicts,
                free_seats=e.free_seats,
            )
        return IntentReply(
            outcome=outcome,
            confirmation_message=self._render(outcome, context),
            is_available=True,
            reservation=reservation,
        )

    def resolve_space(
        self, requester: User, description: str
    ) -> Cafeteria | MeetingRoom:
        """Fuzzy match `description` against the names of the requester's spaces.

        Raises
        ------
        NotFoundError if no space name is close enough, or if two names match about
        equally well.
        """
        spaces = self._query_spaces(requester.org_id)
        matches = process.extract(
            description,
            [s.name for s in spaces],
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            score_cutoff=SPACE_MATCH_THRESHOLD,
            limit=2,
        )
        if not matches:
            raise NotFoundError(f"No space matching '{description}'")
        _, score, index = matches[0]
        if len(matches) > 1 and score - matches[1][1] < SPACE_MATCH_MARGIN:
            raise NotFoundError(
                f"'{description}' could be {spaces[index].name} or "
                f"{spaces[matches[1][2]].name}"
            )
        logger.debug(f"Resolved '{description}' to {spaces[index].name} ({score:.0f})")
        return spaces[index]

    def resolve_date(self, text: str | None) -> datetime.date:
        today = self._service.checker.today()
        if text is None or not text.strip() or text.strip().lower() == "today":
            return today
        if text.strip().lower() == "tomorrow":
            return today + datetime.timedelta(days=1)
        return _parse(text, today).date()

    def resolve_time_range(
        self, text: str | None, space: Cafeteria | MeetingRoom
    ) -> tuple[datetime.time, datetime.time]:
        """Parse "HH:MM - HH:MM", "2pm to 3pm" or a single start time.

        A cafeteria start time is extended to the slot it opens; otherwise a single
        start time lasts `intent_default_duration_minutes`.
        """
        if text is None or not text.strip():
            raise ValidationError("The request does not say when to book.")
        today = self._service.checker.today()
        for separator in (" - ", "-", " to ", " until "):
            if separator in text:
                start_text, end_text = text.split(separator, 1)
                return _parse(start_text, today).time(), _parse(end_text, today).time()
        start = _parse(text, today)
        if isinstance(space, Cafeteria):
            for slot_start, slot_end in self._service.policy.parsed_cafeteria_slots():
                if slot_start == start.time():
                    return slot_start, slot_end
        duration = datetime.timedelta(
            minutes=self._service.policy.intent_default_duration_minutes
        )
        end = start + duration
        if end.date() != start.date():
            raise ValidationError(f"A booking starting at {text} would end the next day.")
        return start.time(), end.time()

    def _render(self, outcome: IntentOutcome, context: dict) -> str:
        return self._templates[outcome].render(**context)


def _parse(text: str, today: datetime.date) -> datetime.datetime:
    try:
        return date_parser.parse(
            text.strip(), default=combine(today, datetime.time()), fuzzy=True
        )
    except (ValueError, OverflowError):
        raise ValidationError(f"Could not understand '{text.strip()}'")


