#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Bookable spaces. A space is either a cafeteria, made of fixed-size tables, or a
meeting room with an explicit capacity."""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from spacebook.aliases import OrgId, SpaceId, TableId, UserId
from spacebook.booking.exceptions import NotFoundError
from spacebook.constants import SEATS_PER_TABLE


class SpaceKind(StrEnum):
    Cafeteria = "cafeteria"
    MeetingRoom = "meetingRoom"


class Table(BaseModel, frozen=True):
    """A cafeteria table and its position on the floor plan."""

    table_id: TableId
    x: float = 0.0
    y: float = 0.0


class Cafeteria(BaseModel, frozen=True):
    kind: Literal[SpaceKind.Cafeteria] = SpaceKind.Cafeteria
    space_id: SpaceId
    org_id: OrgId
    name: str
    layout: list[Table] = Field(default_factory=list)

    @property
    def capacity(self) -> int:
        return len(self.layout) * SEATS_PER_TABLE

    @property
    def table_ids(self) -> list[TableId]:
        return [t.table_id for t in self.layout]

    def get_table(self, table_id: TableId) -> Table:
        for table in self.layout:
            if table.table_id == table_id:
                return table
        raise NotFoundError(f"Table '{table_id}' not found in cafeteria '{self.name}'")


class MeetingRoom(BaseModel, frozen=True):
    """A meeting room.

    Parameters
    ----------
    capacity
        The maximum number of participants the room can host.
    amenities
        Equipment available in the room (projector, whiteboard, ...).
    location
        Building or wing, eg "Tower B".
    """

    kind: Literal[SpaceKind.MeetingRoom] = SpaceKind.MeetingRoom
    space_id: SpaceId
    org_id: OrgId
    name: str
    capacity: int = Field(gt=0)
    amenities: frozenset[str] = frozenset()
    floor: int | None = None
    location: str | None = None
    image_url: str | None = None


Space = Annotated[Cafeteria | MeetingRoom, Field(discriminator="kind")]


class User(BaseModel, frozen=True):
    """A member of an organisation. Used to label reservations only."""

    uid: UserId
    org_id: OrgId
    email: str
    full_name: str
    role: Literal["admin", "user"] = "user"
    mobile_number: str | None = None
    employee_id: str | None = None
