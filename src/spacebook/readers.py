#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import json
import logging
from pathlib import Path

from spacebook.store.memory import InMemoryReservationStore

logger = logging.getLogger(__name__)


class SnapshotNotFoundError(Exception):
    pass


def load_json(path: str | Path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data


def load_store_snapshot(path: str | Path) -> InMemoryReservationStore:
    """Restore a store saved with `writers.save_store_snapshot`."""
    path = Path(path)
    if not path.exists():
        raise SnapshotNotFoundError(f"No store snapshot at {path}")
    store = InMemoryReservationStore.from_dict(load_json(path))
    logger.info(f"Loaded store snapshot from {path}")
    return store
