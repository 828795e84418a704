#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Booking policy. The packaged defaults live in `configs/policy/default.yaml` and can be
overridden from any OmegaConf / Hydra config."""

import datetime
import logging
from importlib import resources
from typing import Any, cast

from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, field_validator

from spacebook.aliases import SlotLabel
from spacebook.booking.exceptions import ValidationError
from spacebook.booking.time_utils import parse_slot, parse_wall_clock
from spacebook.constants import (
    CAFETERIA_SLOTS,
    CONFIGS_PACKAGE,
    DEFAULT_POLICY_NAME,
    MAX_MEETING_DURATION_HOURS,
    MAX_SEATS_PER_REQUEST,
    POLICY_CONFIG_GROUP,
    SEATS_PER_TABLE,
)

logger = logging.getLogger(__name__)


class ReadRetrySettings(BaseModel, frozen=True):
    """Bounded retries for store reads. Writes are never retried."""

    attempts: int = Field(default=3, ge=1)
    max_wait_seconds: float = Field(default=2.0, ge=0)
    multiplier: float = Field(default=0.1, ge=0)


class OpeningHours(BaseModel, frozen=True):
    opens: datetime.time = datetime.time(7, 0)
    closes: datetime.time = datetime.time(19, 0)

    @field_validator("opens", "closes", mode="before")
    @classmethod
    def parse_time(cls, value: Any) -> datetime.time:
        try:
            return parse_wall_clock(value)
        except ValidationError as e:
            raise ValueError(str(e))


class BookingPolicy(BaseModel, frozen=True):
    """Business rules applied to new bookings.

    Parameters
    ----------
    seats_per_table
        Seats at every cafeteria table. A table is full once this many seats are
        committed for a slot.
    max_seats_per_request
        Ceiling on the seats a single cafeteria booking may take.
    max_meeting_duration_hours
        Longest meeting-room booking that can be requested. `None` disables the cap.
    meeting_room_hours
        Meeting rooms can only be booked between these wall-clock times.
    cafeteria_slots
        The only time ranges cafeteria tables can be booked for, lunch hours by
        default. An empty list allows any range.
    cafeteria_booking_horizon_days, meeting_room_booking_horizon_days
        How many days ahead of today a space can be booked. 0 restricts bookings to
        today, `None` removes the limit.
    intent_default_duration_minutes
        Duration assumed when a natural-language request only states a start time.
    """

    seats_per_table: int = Field(default=SEATS_PER_TABLE, gt=0)
    max_seats_per_request: int = Field(default=MAX_SEATS_PER_REQUEST, gt=0)
    max_meeting_duration_hours: float | None = MAX_MEETING_DURATION_HOURS
    meeting_room_hours: OpeningHours | None = OpeningHours()
    cafeteria_slots: list[SlotLabel] = Field(default_factory=lambda: list(CAFETERIA_SLOTS))
    cafeteria_booking_horizon_days: int | None = 0
    meeting_room_booking_horizon_days: int | None = None
    intent_default_duration_minutes: int = Field(default=60, gt=0)
    read_retries: ReadRetrySettings = ReadRetrySettings()

    @field_validator("cafeteria_slots")
    @classmethod
    def check_slots(cls, slots: list[SlotLabel]) -> list[SlotLabel]:
        for label in slots:
            try:
                start, end = parse_slot(label)
            except ValidationError as e:
                raise ValueError(str(e))
            if start >= end:
                raise ValueError(f"Slot '{label}' ends before it starts")
        return slots

    @property
    def max_meeting_duration(self) -> datetime.timedelta | None:
        if self.max_meeting_duration_hours is None:
            return None
        return datetime.timedelta(hours=self.max_meeting_duration_hours)

    def parsed_cafeteria_slots(self) -> list[tuple[datetime.time, datetime.time]]:
        return [parse_slot(label) for label in self.cafeteria_slots]


def load_policy(config: DictConfig | dict[str, Any] | None = None) -> BookingPolicy:
    """Build the booking policy from a config node, falling back to the packaged
    defaults for any key the node does not set."""
    defaults = OmegaConf.load(str(_policy_path(DEFAULT_POLICY_NAME)))
    if config is not None:
        defaults = OmegaConf.merge(defaults, config)
    container = cast(dict[str, Any], OmegaConf.to_container(defaults, resolve=True))
    policy = BookingPolicy(**container)
    logger.debug(f"Loaded booking policy: {policy}")
    return policy


def _policy_path(name: str):
    return resources.files(CONFIGS_PACKAGE) / POLICY_CONFIG_GROUP / f"{name}.yaml"
