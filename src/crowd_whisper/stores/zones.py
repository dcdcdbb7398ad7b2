"""
Zone Store
==========

Read-only access to zone definitions.

Interface:
    ZoneStore.list_zones() -> List[Zone]

The engine calls `list_zones` once at the start of every ingestion and
assumes the result is consistent for the rest of that call. Implementations
should be fast; a slow store only adds latency.

Implementations:
    - InMemoryZoneStore: Zones held in memory, optionally loaded from JSON

Example:
    from crowd_whisper.stores import InMemoryZoneStore

    store = InMemoryZoneStore()
    store.load_from_file("./data/zones/festival_grounds.json")
    zones = store.list_zones()
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from crowd_whisper.models.zone import Zone


logger = logging.getLogger(__name__)


class ZoneStore(Protocol):
    """
    Protocol for zone stores.

    Note:
        This is a Protocol (structural typing), not an abstract base class.
        Any object with a matching `list_zones` method can be used.
    """

    def list_zones(self) -> List[Zone]:
        """Return all current zone definitions."""
        ...


class InMemoryZoneStore:
    """
    Zone store backed by a dict.

    Insertion order is preserved; it decides which zone wins when zones
    overlap.
    """

    def __init__(self, zones: Optional[Iterable[Zone]] = None) -> None:
        self._zones: Dict[str, Zone] = {}
        for zone in zones or ():
            self.put(zone)

    def load_from_file(self, path: str) -> None:
        """
        Load zone definitions from a JSON file.

        The file holds either a list of zones or an object with a "zones"
        list. Loaded zones replace the current contents.

        Args:
            path: Path to the zone JSON file

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the JSON or a zone definition is invalid
        """
        file_path = Path(path)

        if not file_path.exists():
            raise FileNotFoundError(f"Zone file not found: {path}")

        logger.info(f"Loading zones from: {path}")

        with open(file_path, "r") as f:
            data = json.load(f)

        items = data.get("zones", []) if isinstance(data, dict) else data
        zones = [Zone.model_validate(item) for item in items]

        self._zones.clear()
        for zone in zones:
            self.put(zone)

        logger.info(f"Loaded {len(zones)} zones: {[z.name for z in zones]}")

    def put(self, zone: Zone) -> None:
        """Insert or replace a zone."""
        self._zones[zone.id] = zone

    def remove(self, zone_id: str) -> bool:
        """Remove a zone. Returns False if it did not exist."""
        return self._zones.pop(zone_id, None) is not None

    def get(self, zone_id: str) -> Optional[Zone]:
        """Get a zone by its id."""
        return self._zones.get(zone_id)

    def list_zones(self) -> List[Zone]:
        return list(self._zones.values())
