"""
Sensor Reading Schema
=====================

This module defines the Pydantic model for geolocated readings delivered by
devices (real phones/wearables or simulated devices).

Input Contract:
    {
        "device_id": "sim-device-42",
        "timestamp": 1707321234.567,
        "location": {"lat": 0.0021, "lng": 0.0034},
        "motion": {"acceleration": {"x": 0.1, "y": -0.4, "z": 0.9}},
        "audio": {"level": 62.5}
    }

Guarantees:
    - location is always present; motion and audio are optional
    - timestamp is the UNIX time (seconds) when the reading was taken

Example:
    from crowd_whisper.models.reading import SensorReading

    reading = SensorReading.model_validate_json(raw)
    print(f"Reading from {reading.device_id} at {reading.location}")
"""

from typing import Optional, Tuple

from pydantic import BaseModel, Field


class Location(BaseModel):
    """WGS84 position of a device."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude (degrees)")
    lng: float = Field(..., ge=-180.0, le=180.0, description="Longitude (degrees)")

    def as_point(self) -> Tuple[float, float]:
        """Return the (longitude, latitude) pair used by zone rings."""
        return (self.lng, self.lat)


class Acceleration(BaseModel):
    """Three-axis acceleration vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Motion(BaseModel):
    """Motion payload attached to a reading."""

    acceleration: Acceleration = Field(default_factory=Acceleration)


class AudioLevel(BaseModel):
    """Ambient sound level attached to a reading."""

    level: float = Field(..., ge=0.0, description="Sound level (dB)")


class SensorReading(BaseModel):
    """
    Geolocated reading from a single device.

    Readings are consumed once by the engine and retained only inside a
    zone window until the window sweep evicts them.

    Attributes:
        device_id: Stable identifier of the reporting device
        timestamp: UNIX timestamp in seconds
        location: Device position
        motion: Optional acceleration payload
        audio: Optional sound level payload
    """

    device_id: str = Field(
        ...,
        min_length=1,
        description="Stable identifier of the reporting device",
    )

    timestamp: float = Field(
        ...,
        gt=0,
        description="UNIX timestamp in seconds when the reading was taken",
    )

    location: Location = Field(
        ...,
        description="Device position",
    )

    motion: Optional[Motion] = Field(
        default=None,
        description="Optional motion vector",
    )

    audio: Optional[AudioLevel] = Field(
        default=None,
        description="Optional audio level",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "device_id": "sim-device-42",
                "timestamp": 1707321234.567,
                "location": {"lat": 0.0021, "lng": 0.0034},
                "motion": {"acceleration": {"x": 0.1, "y": -0.4, "z": 0.9}},
            }
        }
    }
