#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
from rich.console import Console
from rich.table import Table
from rich.text import Text

from spacebook.booking.allocator import SeatOccupancy
from spacebook.booking.availability import Availability
from spacebook.booking.enrichment import EnrichedReservation
from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import Cafeteria
from spacebook.booking.time_utils import format_slot

STATUS_STYLES = {
    ReservationStatus.Confirmed: "green",
    ReservationStatus.RequiresApproval: "yellow",
    ReservationStatus.Pending: "yellow",
    ReservationStatus.Cancelled: "red",
    ReservationStatus.Rejected: "red",
}


def reservations_table(
    reservations: list[EnrichedReservation], title: str | None = None
) -> Table:
    """Build a table of reservations with the following format

    ┏━━━━━━━━━━━━┳━━━━━━━━━━━━━━━┳━━━━━━━━━━━━━━┳━━━━━━━━━━━━━━━┳━━━━━━━━━━━━━━━┳━━━━━━━━━━━┓
    ┃ Date       ┃ Slot          ┃ Space        ┃ Details       ┃ Requester     ┃ Status    ┃
    ┡━━━━━━━━━━━━╇━━━━━━━━━━━━━━━╇━━━━━━━━━━━━━━╇━━━━━━━━━━━━━━━╇━━━━━━━━━━━━━━━╇━━━━━━━━━━━┩
    """  # noqa
    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Slot", no_wrap=True)
    table.add_column("Space")
    table.add_column("Details", style="dim")
    table.add_column("Requester")
    table.add_column("Status", no_wrap=True)
    for enriched in reservations:
        r = enriched.reservation
        if r.table_id is not None:
            details = f"table {r.table_id}, {r.seat_count} seat(s)"
        else:
            details = r.payload.purpose
        table.add_row(
            r.date.isoformat(),
            format_slot(r.start_time, r.end_time),
            enriched.space_name,
            details,
            enriched.requester_name,
            Text(str(r.status), style=STATUS_STYLES[r.status]),
        )
    return table


def occupancy_table(cafeteria: Cafeteria, occupancy: SeatOccupancy) -> Table:
    """Seats taken and free at every table of a cafeteria for one slot."""
    table = Table(
        show_header=True,
        header_style="bold magenta",
        title=f"{cafeteria.name} {occupancy.interval}",
    )
    table.add_column("Table", style="cyan", no_wrap=True)
    table.add_column("Taken", justify="right")
    table.add_column("Free", justify="right")
    for table_id in cafeteria.table_ids:
        free = occupancy.free_seats(table_id)
        table.add_row(
            table_id,
            str(occupancy.committed_seats(table_id)),
            Text(str(free), style="red" if free == 0 else "green"),
        )
    return table


def display_reservations(
    reservations: list[EnrichedReservation],
    title: str | None = None,
    console: Console | None = None,
):
    console = console or Console()
    console.print(reservations_table(reservations, title=title))


def display_occupancy(
    cafeteria: Cafeteria, occupancy: SeatOccupancy, console: Console | None = None
):
    console = console or Console()
    console.print(occupancy_table(cafeteria, occupancy))


def display_availability(availability: Availability, console: Console | None = None):
    console = console or Console()
    if availability.available:
        message = f"[bold green]{availability.space_id} is available for {availability.interval}[/bold green]"
        if availability.free_seats is not None:
            message += f" ({availability.free_seats} seat(s) free)"
        console.print(message)
        return
    console.print(f"[bold red]{availability.reason}[/bold red]")
    for conflict in availability.conflicts:
        console.print(f"  - {conflict}")
