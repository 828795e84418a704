#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
OrgId = str
UserId = str
SpaceId = str
TableId = str
ReservationId = str
SlotLabel = str
"""A cafeteria slot label, eg '12:00 - 13:00'."""
