"""
Density Estimator
=================

Computes per-zone occupancy and trend from the reading window.

This estimator:
    - Reads the distinct-device count for a zone from ReadingWindow
    - Computes occupancy = count / capacity * 100, rounded to 0.1
    - Keeps the last N occupancy values per zone (default 10)
    - Classifies the trend of that history

Trend Rule:
    recent   = mean of the last 3 values
    previous = mean of every value before those 3

    recent - previous >  threshold  -> increasing
    recent - previous < -threshold  -> decreasing
    otherwise                       -> stable

    With fewer than 4 values there is no "previous" and the trend is
    stable.

Note:
    The trend compares sample counts, not wall-clock time. Ten samples
    may span a second under heavy load or many minutes in a quiet zone,
    so the label is an approximation and not a time-normalized rate.
"""

import logging
import math
from collections import deque
from typing import Deque, Dict, Iterable, Optional, Sequence

from crowd_whisper.models.output import DensitySample, Trend
from crowd_whisper.models.zone import Zone
from crowd_whisper.signals.window import ReadingWindow


logger = logging.getLogger(__name__)


RECENT_SAMPLES = 3


def round_occupancy(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def compute_trend(history: Iterable[float], threshold: float = 5.0) -> Trend:
    """
    Classify an occupancy history.

    Args:
        history: Occupancy values, oldest first
        threshold: Minimum mean difference (percentage points) for a
            non-stable label

    Returns:
        Trend label
    """
    history = list(history)
    if len(history) <= RECENT_SAMPLES:
        return Trend.STABLE

    recent = history[-RECENT_SAMPLES:]
    previous = history[:-RECENT_SAMPLES]

    difference = sum(recent) / len(recent) - sum(previous) / len(previous)

    if difference > threshold:
        return Trend.INCREASING
    if difference < -threshold:
        return Trend.DECREASING
    return Trend.STABLE


class DensityEstimator:
    """
    Occupancy and trend computation over a shared ReadingWindow.

    Attributes:
        window: Reading window to count occupants from
        history_size: Number of occupancy values kept per zone
        trend_threshold: Mean difference needed for a non-stable trend

    Example:
        estimator = DensityEstimator(window, history_size=10)
        sample = estimator.compute(zone, timestamp=reading.timestamp)
        print(f"{sample.zone_id}: {sample.value}% ({sample.trend.value})")
    """

    def __init__(
        self,
        window: ReadingWindow,
        history_size: int = 10,
        trend_threshold: float = 5.0,
    ) -> None:
        """
        Initialize density estimator.

        Args:
            window: Reading window shared with the engine
            history_size: Occupancy values kept per zone (>= 4 so the
                trend rule can ever leave "stable")
            trend_threshold: Percentage-point difference for a trend
        """
        if history_size < RECENT_SAMPLES + 1:
            raise ValueError(f"history_size must be >= {RECENT_SAMPLES + 1}")
        if trend_threshold < 0:
            raise ValueError("trend_threshold must be non-negative")

        self.window = window
        self.history_size = history_size
        self.trend_threshold = trend_threshold

        self._history: Dict[str, Deque[float]] = {}

        logger.info(
            f"DensityEstimator initialized: history={history_size}, "
            f"trend_threshold={trend_threshold}"
        )

    def compute(self, zone: Zone, timestamp: float) -> DensitySample:
        """
        Compute the current density sample for a zone.

        Appends the new occupancy to the zone's history, so every call
        advances the trend.

        Args:
            zone: Zone to compute for
            timestamp: Timestamp to stamp the sample with

        Returns:
            DensitySample with rounded occupancy and trend
        """
        count = self.window.occupant_count(zone.id)
        occupancy = count / zone.capacity * 100

        history = self._history.get(zone.id)
        if history is None:
            history = deque(maxlen=self.history_size)
            self._history[zone.id] = history
        history.append(occupancy)

        trend = compute_trend(history, self.trend_threshold)

        return DensitySample(
            zone_id=zone.id,
            timestamp=timestamp,
            value=round_occupancy(occupancy),
            trend=trend,
        )

    def history(self, zone_id: str) -> Sequence[float]:
        """Occupancy history of a zone, oldest first."""
        return tuple(self._history.get(zone_id, ()))

    def last_value(self, zone_id: str) -> Optional[float]:
        """Most recent unrounded occupancy of a zone, if any."""
        history = self._history.get(zone_id)
        return history[-1] if history else None

    def reset(self) -> None:
        """Forget all occupancy histories."""
        self._history.clear()
        logger.info("DensityEstimator reset")
