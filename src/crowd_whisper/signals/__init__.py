"""
Signals Module
==============

Time-windowed occupancy signals for crowd density estimation.
"""

from crowd_whisper.signals.window import ReadingWindow
from crowd_whisper.signals.density_processor import (
    DensityEstimator,
    compute_trend,
    round_occupancy,
)

__all__ = [
    "ReadingWindow",
    "DensityEstimator",
    "compute_trend",
    "round_occupancy",
]
