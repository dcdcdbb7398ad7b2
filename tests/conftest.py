"""
Test Configuration
==================

Pytest fixtures and test configuration for crowd-whisper.
"""

from pathlib import Path

import pytest


DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def square_ring(x0, y0, size):
    """Closed square ring with its lower-left corner at (x0, y0)."""
    return [
        [x0, y0],
        [x0, y0 + size],
        [x0 + size, y0 + size],
        [x0 + size, y0],
        [x0, y0],
    ]


@pytest.fixture
def make_zone():
    """Factory for Zone objects with square boundaries."""
    from crowd_whisper.models.zone import Zone

    def _make(zone_id="zone-a", name="Zone A", capacity=10, ring=None):
        return Zone.model_validate({
            "id": zone_id,
            "name": name,
            "boundaries": {
                "type": "Polygon",
                "coordinates": [ring or square_ring(0.0, 0.0, 0.005)],
            },
            "capacity": capacity,
        })

    return _make


@pytest.fixture
def main_stage(make_zone):
    """The Main Stage zone from the festival seed data."""
    return make_zone("main-stage", "Main Stage", capacity=1000)


@pytest.fixture
def festival_zones(make_zone):
    """Three disjoint zones laid out like the festival seed data."""
    return [
        make_zone("main-stage", "Main Stage", 1000, square_ring(0.0, 0.0, 0.005)),
        make_zone("food-court", "Food Court", 500, square_ring(0.006, 0.0, 0.004)),
        make_zone("entry-plaza", "Entry Plaza", 750, square_ring(0.002, -0.004, 0.003)),
    ]


@pytest.fixture
def make_reading():
    """Factory for SensorReading objects."""
    from crowd_whisper.models.reading import SensorReading

    def _make(device_id="device-1", lat=0.001, lng=0.002, timestamp=1_000.0):
        return SensorReading.model_validate({
            "device_id": device_id,
            "timestamp": timestamp,
            "location": {"lat": lat, "lng": lng},
        })

    return _make


@pytest.fixture
def zones_file():
    """Path to the shipped zone definitions."""
    return DATA_DIR / "zones" / "festival_grounds.json"
