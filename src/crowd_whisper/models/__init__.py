"""
Data Models
===========

Pydantic models for crowd-whisper.

This module re-exports all data models for convenient access.

Models:
    Zones:
        - Zone, ZoneBoundary: Geofenced areas read from the zone store

    Input:
        - SensorReading: Geolocated device reading
        - Location, Motion, Acceleration, AudioLevel: Reading payloads
        - ControlCommand, CommandType: Simulator and alert control

    Output:
        - DensitySample, Trend: Per-zone occupancy
        - Alert, AlertType, AlertStatus, AlertUpdate: Threshold alerts
        - OutputEvent: Broadcast envelope
        - IngestResult: Return value of Engine.ingest
"""

from crowd_whisper.models.zone import Zone, ZoneBoundary
from crowd_whisper.models.reading import (
    Acceleration,
    AudioLevel,
    Location,
    Motion,
    SensorReading,
)
from crowd_whisper.models.commands import CommandType, ControlCommand
from crowd_whisper.models.output import (
    Alert,
    AlertStatus,
    AlertType,
    AlertUpdate,
    DensitySample,
    IngestResult,
    OutputEvent,
    Trend,
)

__all__ = [
    # Zones
    "Zone",
    "ZoneBoundary",
    # Input
    "SensorReading",
    "Location",
    "Motion",
    "Acceleration",
    "AudioLevel",
    "ControlCommand",
    "CommandType",
    # Output
    "DensitySample",
    "Trend",
    "Alert",
    "AlertType",
    "AlertStatus",
    "AlertUpdate",
    "OutputEvent",
    "IngestResult",
]
