#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Replays a scripted sequence of booking actions against a seeded store and prints
the resulting schedule.

    spacebook-console date=2025-03-14 'actions=[]' snapshot_out=out/store.json
"""

import datetime
import logging
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf
from rich.console import Console

from spacebook.aliases import UserId
from spacebook.booking.enrichment import ReservationEnricher
from spacebook.booking.exceptions import BookingError
from spacebook.booking.service import BookingService
from spacebook.booking.spaces import Cafeteria, User
from spacebook.booking.time_utils import combine, parse_date, parse_slot, parse_wall_clock
from spacebook.config import load_policy
from spacebook.interactive.display import display_occupancy, display_reservations
from spacebook.readers import load_store_snapshot
from spacebook.simulation.seed import load_seed
from spacebook.store.memory import InMemoryReservationStore
from spacebook.writers import save_store_snapshot

logger = logging.getLogger(__name__)


def run_action(
    service: BookingService,
    users: dict[UserId, User],
    action: dict[str, Any],
    today: datetime.date,
    console: Console,
) -> None:
    """Run one scripted action. Booking errors are shown, not raised, as a booking
    screen would."""
    name = action["action"]
    date = today + datetime.timedelta(days=action.get("day_offset", 0))
    try:
        if name == "book_cafeteria":
            start, end = parse_slot(action["slot"])
            reservation = service.book_cafeteria(
                users[action["requester"]],
                action["space_id"],
                date,
                start,
                end,
                table_id=action["table_id"],
                seat_count=action["seat_count"],
            )
            console.print(f"[green]Booked[/green] {reservation}")
        elif name == "request_meeting_room":
            start, end = parse_slot(action["slot"])
            reservation = service.request_meeting_room(
                users[action["requester"]],
                action["space_id"],
                date,
                start,
                end,
                purpose=action.get("purpose", ""),
                participants=action.get("participants", []),
            )
            console.print(f"[yellow]Requested[/yellow] {reservation}")
        elif name == "approve_pending":
            for pending in service.approvals.pending(action["org_id"]):
                try:
                    console.print(f"[green]Approved[/green] {service.approve(pending.reservation_id)}")
                except BookingError as e:
                    console.print(f"[red]Approval refused[/red] {pending}: {e}")
        else:
            raise ValueError(f"Unknown action {name}")
    except BookingError as e:
        console.print(f"[red]{name} failed[/red] ({e.__class__.__name__}): {e}")


@hydra.main(
    config_name="console",
    config_path="pkg://spacebook.configs",
)
def main(cfg: DictConfig):
    if cfg.debug:
        logger.info(OmegaConf.to_yaml(cfg, resolve=True))
    policy = load_policy(cfg.policy)
    today = parse_date(cfg.date) if cfg.date else datetime.date.today()
    now = combine(today, parse_wall_clock(cfg.now))
    if cfg.snapshot_in:
        store = load_store_snapshot(cfg.snapshot_in)
    else:
        store = InMemoryReservationStore()
        load_seed(store, cfg.seed, today)
    service = BookingService(store, policy, clock=lambda: now)
    console = Console()

    actions = OmegaConf.to_container(cfg.actions, resolve=True)
    requesters = {a["requester"] for a in actions if "requester" in a}
    users = {u.uid: u for u in store.query_users(requesters)}
    for action in actions:
        run_action(service, users, action, today, console)

    enricher = ReservationEnricher(store)
    display_reservations(
        enricher.approval_board(cfg.seed.org_id), title="Schedule", console=console
    )
    for space in store.query_spaces(cfg.seed.org_id):
        if not isinstance(space, Cafeteria):
            continue
        for start, end in policy.parsed_cafeteria_slots():
            display_occupancy(
                space,
                service.checker.allocator.occupancy(space, today, start, end),
                console=console,
            )
    if cfg.snapshot_out:
        save_store_snapshot(store, cfg.snapshot_out)


if __name__ == "__main__":
    main()
