"""
EcoFlow - Route Planner
Maintains each collector's queue of claimed reports.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.exceptions import Forbidden, InvalidState, NotFound, ValidationError
from src.core.geo_utils import Point, path_length
from src.lifecycle.lifecycle import ReportLifecycle
from src.lifecycle.models import ReportStatus, WasteReport

logger = logging.getLogger(__name__)


@dataclass
class RouteEstimate:
    """Estimated travel for a collector's route."""
    collector_id: str
    stops: List[WasteReport]
    distance_km: float
    skipped_report_ids: List[str] = field(default_factory=list)  # no coordinates

    @property
    def stop_count(self) -> int:
        return len(self.stops)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collector_id": self.collector_id,
            "stops": [
                {
                    "report_id": r.id,
                    "latitude": r.latitude,
                    "longitude": r.longitude,
                    "address": r.address,
                }
                for r in self.stops
            ],
            "stop_count": self.stop_count,
            "distance_km": round(self.distance_km, 2),
            "skipped_report_ids": self.skipped_report_ids,
        }


class RoutePlanner:
    """
    Route operations for collectors.

    A collector's route is every report with ``collector_id == collector``
    and status IN_PROGRESS, oldest report first. Adding and removing
    delegate to the lifecycle's claim and release transitions.
    """

    def __init__(self, lifecycle: ReportLifecycle):
        self.lifecycle = lifecycle
        self.store = lifecycle.store

    def add(
        self,
        collector_id: str,
        report_id: Optional[str],
        now: Optional[datetime] = None
    ) -> WasteReport:
        """
        Add a PENDING report to the collector's route.

        Args:
            collector_id: Collector adding the report
            report_id: Report to claim
            now: Claim time

        Returns:
            The claimed report (IN_PROGRESS)

        Raises:
            ValidationError: report_id missing or report not PENDING
            Unauthorized: collector ineligible
            NotFound: report or collector absent
            InvalidState: report claimed concurrently
        """
        if not report_id:
            raise ValidationError("wasteId is required")

        self.lifecycle.require_collector(collector_id)

        report = self.store.get(report_id)
        if report is None:
            raise NotFound(f"Waste report not found: {report_id}")

        if report.status is not ReportStatus.PENDING:
            raise ValidationError(
                f"Cannot add waste to route. Current status: {report.status.value}. "
                f"Only PENDING waste can be added to route."
            )

        report = self.lifecycle.claim(report_id, collector_id, now=now)
        logger.info(f"Report {report_id} added to route of {collector_id}")
        return report

    def remove(
        self,
        collector_id: str,
        report_id: Optional[str],
        now: Optional[datetime] = None
    ) -> WasteReport:
        """
        Remove a report from the collector's route, returning it to PENDING.

        Raises:
            ValidationError: report_id missing
            NotFound: report absent
            InvalidState: report not IN_PROGRESS
            Forbidden: report assigned to another collector
        """
        if not report_id:
            raise ValidationError("wasteId is required")

        report = self.store.get(report_id)
        if report is None:
            raise NotFound(f"Waste report not found: {report_id}")

        if report.status is not ReportStatus.IN_PROGRESS:
            raise InvalidState(
                f"Cannot remove waste from route. Current status: {report.status.value}. "
                f"Only IN_PROGRESS waste can be removed from route."
            )
        if report.collector_id != collector_id:
            raise Forbidden("You can only remove waste from your own route")

        report = self.lifecycle.release(report_id, collector_id, now=now)
        logger.info(f"Report {report_id} removed from route of {collector_id}")
        return report

    def list(self, collector_id: str) -> List[WasteReport]:
        """Collector's route, oldest report first."""
        return [
            r for r in self.store.find_by_collector(collector_id)
            if r.status is ReportStatus.IN_PROGRESS
        ]

    def estimate_distance(
        self,
        collector_id: str,
        start: Optional[Point] = None
    ) -> RouteEstimate:
        """
        Estimate total travel distance through the route in order.

        Args:
            collector_id: Collector
            start: Optional starting position (e.g. current location)

        Returns:
            RouteEstimate; stops without coordinates are skipped
        """
        route = self.list(collector_id)
        stops = [r for r in route if r.has_coordinates]
        skipped = [r.id for r in route if not r.has_coordinates]

        points = [r.point for r in stops]
        if start is not None and points:
            points.insert(0, start)

        distance = path_length(points)
        logger.debug(
            f"Route estimate for {collector_id}: {len(stops)} stops, {distance:.2f} km"
        )

        return RouteEstimate(
            collector_id=collector_id,
            stops=stops,
            distance_km=distance,
            skipped_report_ids=skipped,
        )
