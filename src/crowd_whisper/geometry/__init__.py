"""
Geometry Module
===============

Geofence handling for zone matching.

This module provides ray-casting containment tests over the zone rings
supplied by the zone store, plus the bounding-box helpers the crowd
simulator uses for device placement.
"""

from crowd_whisper.geometry.regions import (
    BoundingBox,
    GeofenceMatcher,
    bounding_box,
    point_in_ring,
    ring_centroid,
)

__all__ = [
    "GeofenceMatcher",
    "BoundingBox",
    "bounding_box",
    "point_in_ring",
    "ring_centroid",
]
