#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
from spacebook.store.base import (
    AllocationKey,
    ChangeType,
    ReservationChange,
    ReservationStore,
    read_retry,
)
from spacebook.store.memory import InMemoryReservationStore
