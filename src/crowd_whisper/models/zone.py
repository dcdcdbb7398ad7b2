"""
Zone Models
===========

Geofenced zone definitions read from the zone store.

Design Philosophy:
    Zones are EXPLICITLY DECLARED geometry, owned by an external store.
    The engine only reads them for the duration of one processing call
    and never mutates them.

Coordinate Convention:
    Rings follow GeoJSON ordering: each vertex is a (longitude, latitude)
    pair. A ring is closed, so its first vertex equals its last.

Example Zone:
    {
        "id": "main-stage",
        "name": "Main Stage",
        "boundaries": {
            "type": "Polygon",
            "coordinates": [[
                [0.0, 0.0], [0.0, 0.005], [0.005, 0.005],
                [0.005, 0.0], [0.0, 0.0]
            ]]
        },
        "capacity": 1000,
        "risk_level": 1
    }

Note:
    Only the first (outer) ring of a polygon is used for containment.
    Holes and multi-ring polygons are not supported.
"""

from typing import List, Literal, Tuple

from pydantic import BaseModel, Field, field_validator


Coordinate = Tuple[float, float]
Ring = List[Coordinate]


class ZoneBoundary(BaseModel):
    """
    GeoJSON-style polygon boundary.

    Attributes:
        type: Geometry type (always "Polygon")
        coordinates: List of rings; only the first ring is used
    """

    type: Literal["Polygon"] = Field(
        default="Polygon",
        description="Geometry type",
    )

    coordinates: List[Ring] = Field(
        ...,
        min_length=1,
        description="Polygon rings of (longitude, latitude) pairs",
    )

    @field_validator("coordinates")
    @classmethod
    def validate_rings(cls, v: List[Ring]) -> List[Ring]:
        """Ensure every ring is closed and has at least 3 distinct vertices."""
        for ring in v:
            if len(ring) < 4:
                raise ValueError("Ring must have at least 4 points (3 vertices + closing point)")
            if tuple(ring[0]) != tuple(ring[-1]):
                raise ValueError("Ring must be closed (first point must equal last point)")
        return v

    @property
    def outer_ring(self) -> Ring:
        """The ring used for containment tests."""
        return self.coordinates[0]


class Zone(BaseModel):
    """
    Geofenced area with a people capacity.

    Attributes:
        id: Unique identifier of the zone
        name: Human-readable name, cited in alert messages
        boundaries: Polygon boundary
        capacity: Maximum number of people the zone is rated for
        risk_level: Operator-assigned risk level (1 = lowest)
        current_density: Last occupancy percent recorded by the store
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier of the zone",
    )

    name: str = Field(
        ...,
        description="Human-readable name",
    )

    boundaries: ZoneBoundary = Field(
        ...,
        description="Polygon boundary (GeoJSON ordering)",
    )

    capacity: int = Field(
        ...,
        gt=0,
        description="Maximum number of people",
    )

    risk_level: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Operator-assigned risk level",
    )

    current_density: float = Field(
        default=0.0,
        ge=0.0,
        description="Last recorded occupancy percent",
    )

    @property
    def ring(self) -> Ring:
        """Outer ring of the zone boundary."""
        return self.boundaries.outer_ring
