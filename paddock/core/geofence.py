"""Geofence containment - Pure functions.

Safe zones are polygons of [latitude, longitude] vertices. Containment uses
the even-odd ray casting rule on raw coordinates (planar, no geodesy), with
longitude as x and latitude as y. Points exactly on an edge fall on one side
or the other depending on the half-open latitude test; the result is
deterministic but not symmetric.
"""

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from paddock.core.models import Geofence


logger = logging.getLogger(__name__)


# A polygon needs at least three vertices to enclose anything
MIN_VERTICES = 3

Vertex = tuple[float, float]


def parse_vertices(raw: Any) -> list[Vertex]:
    """Parse a geofence vertex payload.

    Pure function.

    Args:
        raw: JSON string or sequence of [latitude, longitude] pairs

    Returns:
        List of (latitude, longitude) tuples

    Raises:
        ValueError: If the JSON is invalid or a pair is not two numbers
        TypeError: If the payload is not a sequence of pairs
    """
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)

    vertices = []
    for pair in raw:
        # Mappings such as {"lat": .., "lng": ..} have a length but no positions
        if not isinstance(pair, Sequence) or isinstance(pair, (str, bytes)):
            raise TypeError(f"Expected [lat, lng] pair, got {pair!r}")
        if len(pair) != 2:
            raise ValueError(f"Expected [lat, lng] pair, got {pair!r}")
        vertices.append((float(pair[0]), float(pair[1])))

    return vertices


def contains(point: Vertex, polygon: Sequence[Vertex]) -> bool:
    """Check if a point lies inside a polygon.

    Pure function. The closing edge from the last vertex back to the first
    is implied.

    Args:
        point: (latitude, longitude) to test
        polygon: Ordered (latitude, longitude) vertices

    Returns:
        True if the point is inside; False for degenerate polygons
    """
    if len(polygon) < MIN_VERTICES:
        return False

    y, x = point
    inside = False

    j = len(polygon) - 1
    for i in range(len(polygon)):
        yi, xi = polygon[i]
        yj, xj = polygon[j]

        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside

        j = i

    return inside


def _usable_vertices(geofence: Geofence) -> list[Vertex] | None:
    """Parse a geofence's vertices, logging and returning None if unusable."""
    try:
        vertices = parse_vertices(geofence.vertices)
    except (ValueError, TypeError, KeyError, IndexError) as e:
        logger.warning(
            "Skipping geofence %s (%s): unparseable coordinates: %s",
            geofence.id,
            geofence.name,
            e,
        )
        return None

    if len(vertices) < MIN_VERTICES:
        logger.warning(
            "Skipping geofence %s (%s): %d vertices, need at least %d",
            geofence.id,
            geofence.name,
            len(vertices),
            MIN_VERTICES,
        )
        return None

    return vertices


def find_containing_geofence(
    point: Vertex,
    geofences: Iterable[Geofence],
) -> Geofence | None:
    """Find the first active geofence that contains a point.

    Malformed geofences are logged and skipped.

    Args:
        point: (latitude, longitude) to test
        geofences: Candidate geofences

    Returns:
        The first containing active geofence, or None
    """
    for geofence in geofences:
        if not geofence.is_active:
            continue

        vertices = _usable_vertices(geofence)
        if vertices is None:
            continue

        if contains(point, vertices):
            return geofence

    return None


def is_in_any_safe_zone(point: Vertex, geofences: Iterable[Geofence]) -> bool:
    """Check if a point is inside any active geofence.

    Args:
        point: (latitude, longitude) to test
        geofences: Candidate geofences

    Returns:
        True if at least one active, well-formed geofence contains the point
    """
    return find_containing_geofence(point, geofences) is not None
