"""
Geofence Matching
=================

Maps device coordinates to geofenced zones.

This module handles:
    - Point-in-polygon queries (ray casting)
    - Zone lookup for a coordinate
    - Axis-aligned bounding boxes and centroids used by the simulator

Ray Casting:
    A horizontal ray is cast from the point towards +x and the edges of
    the ring it crosses are counted. An odd count means the point is
    inside. Coordinates are treated as planar (longitude = x,
    latitude = y), which is accurate enough for venue-sized zones.

Limitations:
    - Only the outer ring of each zone is tested (no holes)
    - Points lying exactly on an edge may classify either way depending
      on edge orientation
    - Overlapping zones resolve to the first zone in iteration order

Example:
    from crowd_whisper.geometry import GeofenceMatcher

    matcher = GeofenceMatcher()
    zone_id = matcher.match_zone((0.002, 0.001), zones)
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

from crowd_whisper.models.zone import Coordinate, Zone


logger = logging.getLogger(__name__)


BoundingBox = Tuple[float, float, float, float]


def point_in_ring(point: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """
    Check if a point is inside a ring.

    Uses the ray casting algorithm. Cost is O(vertices).

    Args:
        point: (x, y) pair, i.e. (longitude, latitude)
        ring: Ring vertices in the same ordering

    Returns:
        True if the point is inside the ring
    """
    x, y = point
    inside = False

    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]

        # Edge straddles the ray's y, and the crossing lies right of the point
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i

    return inside


def bounding_box(ring: Sequence[Coordinate]) -> BoundingBox:
    """
    Compute the axis-aligned bounding box of a ring.

    Returns:
        (min_x, min_y, max_x, max_y)
    """
    xs = [p[0] for p in ring]
    ys = [p[1] for p in ring]
    return min(xs), min(ys), max(xs), max(ys)


def ring_centroid(ring: Sequence[Coordinate]) -> Coordinate:
    """
    Mean of the ring's distinct vertices.

    The closing vertex duplicates the first one and is skipped.
    """
    vertices = ring[:-1] if len(ring) > 1 and tuple(ring[0]) == tuple(ring[-1]) else ring
    n = len(vertices)
    return (
        sum(p[0] for p in vertices) / n,
        sum(p[1] for p in vertices) / n,
    )


class GeofenceMatcher:
    """
    Maps coordinates to zone ids.

    Stateless: zones are passed on every call because the zone store owns
    them and may change between calls.
    """

    def match_zone(self, point: Coordinate, zones: Iterable[Zone]) -> Optional[str]:
        """
        Find the zone containing a point.

        Args:
            point: (longitude, latitude) pair
            zones: Zones to test, in priority order

        Returns:
            Id of the first zone whose outer ring contains the point,
            or None if no zone does
        """
        zone = self.find_zone(point, zones)
        return zone.id if zone is not None else None

    def find_zone(self, point: Coordinate, zones: Iterable[Zone]) -> Optional[Zone]:
        """Same as match_zone but returns the Zone itself."""
        for zone in zones:
            if point_in_ring(point, zone.ring):
                return zone
        return None

    def contains(self, zone: Zone, point: Coordinate) -> bool:
        """Check if a point lies inside a single zone."""
        return point_in_ring(point, zone.ring)
