#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
from textwrap import dedent


def cafeteria_booked() -> str:
    template = """\
    Your booking is confirmed: {{ seat_count }} seat{{ 's' if seat_count > 1 else '' }} at table {{ table_id }} in {{ space_name }} on {{ date }}, {{ slot }}."""
    return dedent(template)


def meeting_room_requested() -> str:
    template = """\
    Your request for {{ space_name }} on {{ date }}, {{ slot }} has been sent for approval."""
    return dedent(template)


def unavailable() -> str:
    template = """\
    Sorry, {{ space_name }} is not available on {{ date }}, {{ slot }}.
    {%- if free_seats is not none %} Only {{ free_seats }} seat{{ 's' if free_seats != 1 else '' }} left.{% endif %}
    {%- for conflict in conflicts %}
    - already booked {{ conflict.interval.start.strftime('%H:%M') }}-{{ conflict.interval.end.strftime('%H:%M') }}
    {%- endfor %}"""
    return dedent(template)
