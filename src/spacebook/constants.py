#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
PACKAGE_NAME = "spacebook"
CONFIGS_PACKAGE = f"{PACKAGE_NAME}.configs"
POLICY_CONFIG_GROUP = "policy"
DEFAULT_POLICY_NAME = "default"
SEATS_PER_TABLE = 4
"""Every cafeteria table seats this many people."""
MAX_SEATS_PER_REQUEST = 3
MAX_MEETING_DURATION_HOURS = 3
CAFETERIA_SLOTS = ("11:00 - 12:00", "12:00 - 13:00", "13:00 - 14:00")
WALL_CLOCK_FORMAT = "%H:%M"
DATE_FORMAT = "%Y-%m-%d"
UNKNOWN_USER = "Unknown User"
UNKNOWN_SPACE = "Unknown Space"
ANONYMOUS_USER = "A User"
