#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, Field, model_validator

from spacebook.aliases import OrgId, ReservationId, SpaceId, TableId, UserId
from spacebook.booking.spaces import SpaceKind
from spacebook.booking.time_utils import TimeInterval, format_slot


class ReservationStatus(StrEnum):
    RequiresApproval = "Requires Approval"
    Confirmed = "Confirmed"
    Cancelled = "Cancelled"
    Rejected = "Rejected"
    # legacy records only, equivalent to RequiresApproval
    Pending = "Pending"

    @property
    def is_pending(self) -> bool:
        return self in (ReservationStatus.RequiresApproval, ReservationStatus.Pending)

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.Cancelled, ReservationStatus.Rejected)


class CafeteriaSeating(BaseModel, frozen=True):
    kind: Literal[SpaceKind.Cafeteria] = SpaceKind.Cafeteria
    table_id: TableId
    seat_count: int = Field(gt=0)


class MeetingDetails(BaseModel, frozen=True):
    """What a meeting-room request is for and who attends.

    Parameters
    ----------
    participants
        Names or e-mail addresses of the attendees, not including the requester.
    employee_id, contact
        Copied from the requester profile when the request is submitted.
    """

    kind: Literal[SpaceKind.MeetingRoom] = SpaceKind.MeetingRoom
    purpose: str
    participants: list[str] = Field(default_factory=list)
    employee_id: str | None = None
    contact: str | None = None


ReservationPayload = Annotated[
    CafeteriaSeating | MeetingDetails, Field(discriminator="kind")
]

PAYLOAD_FIELDS = (
    "table_id",
    "seat_count",
    "purpose",
    "participants",
    "employee_id",
    "contact",
)


class Reservation(BaseModel, frozen=True):
    """A request for, or a grant of, a time range on a space.

    Reservations are never edited nor deleted: `status` is the only field that
    changes, via `with_status`, and the record is kept as history.
    """

    reservation_id: ReservationId | None = None
    org_id: OrgId
    requester_id: UserId
    space_id: SpaceId
    space_kind: SpaceKind
    date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    status: ReservationStatus
    payload: ReservationPayload
    created_at: datetime.datetime | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Reservation must start before it ends, got "
                f"{format_slot(self.start_time, self.end_time)}"
            )
        if self.payload.kind != self.space_kind:
            raise ValueError(
                f"A {self.space_kind} reservation cannot carry a {self.payload.kind} payload"
            )
        return self

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval.on(self.date, self.start_time, self.end_time)

    @property
    def table_id(self) -> TableId | None:
        if isinstance(self.payload, CafeteriaSeating):
            return self.payload.table_id
        return None

    @property
    def seat_count(self) -> int:
        if isinstance(self.payload, CafeteriaSeating):
            return self.payload.seat_count
        return 0

    def with_status(self, status: ReservationStatus) -> Self:
        return self.model_copy(update={"status": status})

    def to_record(self) -> dict[str, Any]:
        """Flatten into a single row of the reservations table."""
        record = {
            "reservation_id": self.reservation_id,
            "org_id": self.org_id,
            "requester_id": self.requester_id,
            "space_id": self.space_id,
            "space_kind": str(self.space_kind),
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": str(self.status),
            "created_at": self.created_at,
        }
        record.update({f: None for f in PAYLOAD_FIELDS})
        record.update(self.payload.model_dump(exclude={"kind"}))
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        data = {k: v for k, v in record.items() if k not in PAYLOAD_FIELDS}
        kind = SpaceKind(record["space_kind"])
        if kind == SpaceKind.Cafeteria:
            payload = CafeteriaSeating(
                table_id=record["table_id"], seat_count=record["seat_count"]
            )
        else:
            payload = MeetingDetails(
                purpose=record["purpose"] or "",
                participants=record["participants"] or [],
                employee_id=record["employee_id"],
                contact=record["contact"],
            )
        return cls(**data, payload=payload)

    def __str__(self) -> str:
        slot = format_slot(self.start_time, self.end_time)
        where = self.space_id
        if self.table_id is not None:
            where += f"/{self.table_id}"
        return f"{self.reservation_id} ({where}, {self.date.isoformat()} {slot}, {self.status})"
