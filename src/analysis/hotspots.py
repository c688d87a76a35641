"""
EcoFlow - Hotspot Detection
Groups nearby unresolved waste reports into hotspots needing attention.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from src.core.config import settings
from src.core.geo_utils import calculate_centroid, haversine_distance
from src.lifecycle.models import WasteReport

logger = logging.getLogger(__name__)

# Heat weight per waste type for map intensity
WASTE_TYPE_WEIGHTS = {
    "electronic": 3,
    "plastic": 2,
}
DEFAULT_WASTE_WEIGHT = 1


def heat_weight(report: WasteReport) -> int:
    """Map intensity contributed by one report."""
    return WASTE_TYPE_WEIGHTS.get((report.waste_type or "").lower(), DEFAULT_WASTE_WEIGHT)


@dataclass
class Hotspot:
    """A cluster of unresolved reports around a seed report."""
    hotspot_id: str
    center_latitude: float  # seed report
    center_longitude: float
    centroid: Tuple[float, float]
    reports: List[WasteReport]
    bounding_box: Tuple[float, float, float, float]  # (west, south, east, north)

    @property
    def report_count(self) -> int:
        return len(self.reports)

    @property
    def report_ids(self) -> List[str]:
        return [r.id for r in self.reports]

    @property
    def total_weight_kg(self) -> float:
        return sum(r.estimated_weight_kg for r in self.reports)

    @property
    def heat(self) -> int:
        return sum(heat_weight(r) for r in self.reports)

    @property
    def severity(self) -> str:
        """Classify hotspot by number of reports."""
        if self.report_count >= 10:
            return "critical"
        elif self.report_count >= 6:
            return "high"
        else:
            return "moderate"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hotspot_id": self.hotspot_id,
            "center": {
                "latitude": self.center_latitude,
                "longitude": self.center_longitude,
            },
            "centroid": {
                "latitude": self.centroid[0],
                "longitude": self.centroid[1],
            },
            "bounding_box": {
                "west": self.bounding_box[0],
                "south": self.bounding_box[1],
                "east": self.bounding_box[2],
                "north": self.bounding_box[3],
            },
            "report_count": self.report_count,
            "report_ids": self.report_ids,
            "total_weight_kg": round(self.total_weight_kg, 3),
            "heat": self.heat,
            "severity": self.severity,
        }

    def to_geojson(self) -> Dict[str, Any]:
        """Convert hotspot to GeoJSON Feature."""
        return {
            "type": "Feature",
            "geometry": {
                "type": "Point",
                "coordinates": [self.center_longitude, self.center_latitude],
            },
            "properties": {
                "hotspot_id": self.hotspot_id,
                "report_count": self.report_count,
                "heat": self.heat,
                "severity": self.severity,
            },
        }


class HotspotDetector:
    """
    Greedy single-pass clustering of unresolved reports.

    Reports are visited in input order. Each unprocessed report counts the
    other unprocessed reports within ``radius_km``; with at least
    ``min_neighbors`` of them it becomes a hotspot center and its
    neighbors are consumed. Results depend on input order, so callers
    wanting stable output must pass reports in a stable order.
    """

    def __init__(
        self,
        radius_km: Optional[float] = None,
        min_neighbors: Optional[int] = None
    ):
        """
        Initialize detector.

        Args:
            radius_km: Neighbor radius (default 0.5 km)
            min_neighbors: Neighbors needed besides the seed (default 2)
        """
        self.radius_km = radius_km if radius_km is not None else settings.hotspot_radius_km
        self.min_neighbors = (
            min_neighbors if min_neighbors is not None else settings.hotspot_min_neighbors
        )

    @staticmethod
    def candidates(reports: List[WasteReport]) -> List[WasteReport]:
        """Unresolved reports with coordinates, input order preserved."""
        return [
            r for r in reports
            if not r.status.is_resolved and r.has_coordinates
        ]

    def compute(self, reports: List[WasteReport]) -> List[Hotspot]:
        """
        Detect hotspots.

        Args:
            reports: Reports in the order they should be visited

        Returns:
            List of Hotspot objects, in discovery order
        """
        points = self.candidates(reports)
        processed = [False] * len(points)
        hotspots: List[Hotspot] = []

        for i, seed in enumerate(points):
            if processed[i]:
                continue
            processed[i] = True

            neighbors = self._find_neighbors(points, processed, i)
            if len(neighbors) < self.min_neighbors:
                continue

            for j in neighbors:
                processed[j] = True

            members = [seed] + [points[j] for j in neighbors]
            hotspots.append(
                self._create_hotspot(f"HOTSPOT-{len(hotspots) + 1:04d}", seed, members)
            )

        logger.info(
            f"Detected {len(hotspots)} hotspots from {len(points)} unresolved reports "
            f"(radius={self.radius_km} km, min_neighbors={self.min_neighbors})"
        )
        return hotspots

    def count(self, reports: List[WasteReport]) -> int:
        """Number of hotspots."""
        return len(self.compute(reports))

    def _find_neighbors(
        self,
        points: List[WasteReport],
        processed: List[bool],
        index: int
    ) -> List[int]:
        """Unprocessed reports within radius of points[index]."""
        seed = points[index]
        neighbors = []

        for j, other in enumerate(points):
            if j == index or processed[j]:
                continue
            dist = haversine_distance(
                seed.latitude, seed.longitude,
                other.latitude, other.longitude
            )
            if dist <= self.radius_km:
                neighbors.append(j)

        return neighbors

    @staticmethod
    def _create_hotspot(
        hotspot_id: str,
        seed: WasteReport,
        members: List[WasteReport]
    ) -> Hotspot:
        coords = [(r.latitude, r.longitude) for r in members]
        lats = [c[0] for c in coords]
        lons = [c[1] for c in coords]

        return Hotspot(
            hotspot_id=hotspot_id,
            center_latitude=seed.latitude,
            center_longitude=seed.longitude,
            centroid=calculate_centroid(coords),
            reports=members,
            bounding_box=(min(lons), min(lats), max(lons), max(lats)),
        )


def get_hotspot_statistics(hotspots: List[Hotspot]) -> Dict[str, Any]:
    """
    Get aggregate statistics for a list of hotspots.

    Args:
        hotspots: List of Hotspot objects

    Returns:
        Dictionary with aggregate statistics
    """
    if not hotspots:
        return {
            "total_hotspots": 0,
            "total_reports": 0,
            "total_weight_kg": 0,
        }

    total_reports = sum(h.report_count for h in hotspots)
    severity_counts = {"critical": 0, "high": 0, "moderate": 0}
    for h in hotspots:
        severity_counts[h.severity] += 1

    return {
        "total_hotspots": len(hotspots),
        "total_reports": total_reports,
        "total_weight_kg": round(sum(h.total_weight_kg for h in hotspots), 3),
        "average_hotspot_size": round(total_reports / len(hotspots), 1),
        "largest_hotspot_reports": max(h.report_count for h in hotspots),
        "severity_distribution": severity_counts,
    }
