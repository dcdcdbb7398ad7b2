"""
Reading Window
==============

Per-zone time-bounded buffer of device readings.

Each zone keeps an ordered sequence of (device_id, timestamp) entries in
arrival order. Recording is O(1); eviction happens only when `sweep` runs,
which the engine schedules on a fixed interval independent of the
ingestion rate. Between sweeps a buffer may therefore hold entries older
than the horizon.

Occupancy counts DISTINCT device ids: a device that reported ten times
inside the window counts once.

Example:
    window = ReadingWindow(horizon_seconds=300.0)
    window.record("main-stage", reading)
    window.sweep(now=time.time())
    count = window.occupant_count("main-stage")
"""

import logging
from collections import deque
from typing import Deque, Dict, Tuple

from crowd_whisper.models.reading import SensorReading


logger = logging.getLogger(__name__)


WindowEntry = Tuple[str, float]


class ReadingWindow:
    """
    Sliding window of recent readings, keyed by zone.

    Attributes:
        horizon_seconds: Entries older than this are removed by sweep
    """

    def __init__(self, horizon_seconds: float = 300.0) -> None:
        """
        Initialize an empty window.

        Args:
            horizon_seconds: Retention horizon in seconds (must be positive)
        """
        if horizon_seconds <= 0:
            raise ValueError("horizon_seconds must be positive")

        self.horizon_seconds = horizon_seconds
        self._buffers: Dict[str, Deque[WindowEntry]] = {}
        self._sweep_count: int = 0
        self._evicted_total: int = 0

    def record(self, zone_id: str, reading: SensorReading) -> None:
        """Append a reading to the zone's buffer."""
        buffer = self._buffers.get(zone_id)
        if buffer is None:
            buffer = deque()
            self._buffers[zone_id] = buffer
        buffer.append((reading.device_id, reading.timestamp))

    def occupant_count(self, zone_id: str) -> int:
        """Number of distinct devices currently buffered for a zone."""
        buffer = self._buffers.get(zone_id)
        if not buffer:
            return 0
        return len({device_id for device_id, _ in buffer})

    def sweep(self, now: float) -> int:
        """
        Remove entries older than the horizon from every zone.

        Entries strictly newer than `now - horizon_seconds` are kept.
        Zones left empty are dropped entirely.

        Args:
            now: Current UNIX timestamp

        Returns:
            Number of entries removed
        """
        cutoff = now - self.horizon_seconds
        removed = 0

        for zone_id in list(self._buffers):
            buffer = self._buffers[zone_id]
            kept = deque(entry for entry in buffer if entry[1] > cutoff)
            removed += len(buffer) - len(kept)
            if kept:
                self._buffers[zone_id] = kept
            else:
                del self._buffers[zone_id]

        self._sweep_count += 1
        self._evicted_total += removed

        if removed:
            logger.debug(f"Window sweep evicted {removed} entries (cutoff={cutoff:.3f})")

        return removed

    def entry_count(self, zone_id: str) -> int:
        """Raw number of buffered entries for a zone (duplicates included)."""
        return len(self._buffers.get(zone_id, ()))

    def clear(self) -> None:
        """Drop all buffered entries."""
        self._buffers.clear()

    def metrics(self) -> dict:
        """Get window metrics for observability."""
        return {
            "zones": len(self._buffers),
            "entries": sum(len(b) for b in self._buffers.values()),
            "sweep_count": self._sweep_count,
            "evicted_total": self._evicted_total,
            "horizon_seconds": self.horizon_seconds,
        }
