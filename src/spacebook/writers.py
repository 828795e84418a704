#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import json
import logging
from pathlib import Path
from typing import Any

from spacebook.store.memory import InMemoryReservationStore

logger = logging.getLogger(__name__)


def save_json(data: Any, path: str | Path, indent: int = 4):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)


def save_store_snapshot(store: InMemoryReservationStore, path: str | Path) -> None:
    """Dump every table of the store to a JSON file, readable by
    `readers.load_store_snapshot`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    save_json(store.to_dict(), path)
    logger.info(f"Saved store snapshot to {path}")
