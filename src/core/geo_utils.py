"""
EcoFlow - Geospatial Utilities
Distance and boundary calculations for reports, routes and geofencing.
"""

import logging
import math
from typing import List, Tuple, Optional
from dataclasses import dataclass

from shapely.geometry import Point as ShapelyPoint, box

from src.core.constants import GEOFENCED_COUNTRIES, STATE_BOUNDARIES

logger = logging.getLogger(__name__)

# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Point:
    """Geographic point with latitude and longitude."""
    latitude: float
    longitude: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def distance_to(self, other: "Point") -> float:
        """Great-circle distance to another point in kilometers."""
        return haversine_distance(
            self.latitude, self.longitude,
            other.latitude, other.longitude
        )


@dataclass
class BoundingBox:
    """Geographic bounding box."""
    west: float   # min longitude
    south: float  # min latitude
    east: float   # max longitude
    north: float  # max latitude

    def contains(self, point: Point) -> bool:
        """Check if a point is within the bounding box (edges included)."""
        return box(self.west, self.south, self.east, self.north).covers(
            ShapelyPoint(point.longitude, point.latitude)
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)


def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates in decimal degrees
        lat2, lon2: Second point coordinates in decimal degrees

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_within_radius(origin: Point, target: Point, radius_km: float) -> bool:
    """True when target lies at most radius_km from origin."""
    return origin.distance_to(target) <= radius_km


def calculate_centroid(
    points: List[Tuple[float, float]]
) -> Tuple[float, float]:
    """
    Calculate the centroid (center of mass) of a set of points.

    Args:
        points: List of (latitude, longitude) tuples

    Returns:
        Tuple of (latitude, longitude) of the centroid
    """
    if not points:
        return (0.0, 0.0)

    lat_sum = sum(p[0] for p in points)
    lon_sum = sum(p[1] for p in points)
    n = len(points)

    return (lat_sum / n, lon_sum / n)


def path_length(points: List[Point]) -> float:
    """Total length in kilometers of a path visiting points in order."""
    return sum(
        points[i].distance_to(points[i + 1])
        for i in range(len(points) - 1)
    )


def get_state_bounds(state: str, country: str) -> Optional[BoundingBox]:
    """
    Look up the bounding box of a state.

    Returns:
        BoundingBox, or None when no boundary data exists
    """
    states = STATE_BOUNDARIES.get(country.strip().lower())
    if not states:
        return None

    bounds = states.get(state.strip().lower())
    if bounds is None:
        return None

    return BoundingBox(*bounds)


def is_location_in_state(
    latitude: float,
    longitude: float,
    state: str,
    country: str
) -> bool:
    """
    Check whether coordinates fall inside a state's boundaries.

    Countries and states without boundary data are not geofenced and
    always pass.

    Args:
        latitude, longitude: Location in decimal degrees
        state: State name (case-insensitive)
        country: Country name (case-insensitive)

    Returns:
        True if the location is inside the state or cannot be checked
    """
    if country.strip().lower() not in GEOFENCED_COUNTRIES:
        logger.debug(f"Geofence not available for country: {country}")
        return True

    bounds = get_state_bounds(state, country)
    if bounds is None:
        logger.debug(f"State boundaries not found for: {state}")
        return True

    return bounds.contains(Point(latitude, longitude))


def format_distance(distance_km: float) -> str:
    """Format a distance as '450 m' or '1.2 km'."""
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"
