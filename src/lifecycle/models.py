"""
Waste report and user entities.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from src.core.geo_utils import Point


class ReportStatus(str, Enum):
    """Status of a waste report."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COLLECTED = "COLLECTED"

    @property
    def is_resolved(self) -> bool:
        return self is ReportStatus.COLLECTED

    def can_transition_to(self, target: "ReportStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[ReportStatus, FrozenSet[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.IN_PROGRESS}),
    ReportStatus.IN_PROGRESS: frozenset({ReportStatus.PENDING, ReportStatus.COLLECTED}),
    ReportStatus.COLLECTED: frozenset(),
}


@dataclass
class User:
    """
    Platform user, owned by the identity provider.

    Only the fields the lifecycle and reward logic need are modelled.
    """
    id: str
    name: Optional[str] = None
    enable_collector: bool = False
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    reporter_points: int = 0
    collector_points: int = 0
    global_points: int = 0

    @property
    def has_complete_profile(self) -> bool:
        """City, state and country are all populated."""
        return all(
            value is not None and value.strip()
            for value in (self.city, self.state, self.country)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enable_collector": self.enable_collector,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "reporter_points": self.reporter_points,
            "collector_points": self.collector_points,
            "global_points": self.global_points,
        }


@dataclass
class Location:
    """Where a report was made. Coordinates are optional."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @property
    def point(self) -> Optional[Point]:
        if self.latitude is None or self.longitude is None:
            return None
        return Point(self.latitude, self.longitude)


@dataclass
class WasteReport:
    """
    Citizen-submitted record of waste at a location.

    Invariant: ``collector_id`` is set exactly when status is
    IN_PROGRESS or COLLECTED.
    """
    id: str
    reporter_id: str
    original_image_ref: str
    status: ReportStatus = ReportStatus.PENDING
    collector_id: Optional[str] = None

    # Location
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    # AI classification at report time
    waste_type: Optional[str] = None
    category: Optional[str] = None
    estimated_weight_kg: float = 0.0
    ai_classification: Dict[str, Any] = field(default_factory=dict)

    # Collection workflow
    before_image_ref: Optional[str] = None
    after_image_ref: Optional[str] = None

    # Timestamps
    reported_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    collected_at: Optional[datetime] = None

    @property
    def point(self) -> Optional[Point]:
        """Reported coordinates, or None when absent."""
        if self.latitude is None or self.longitude is None:
            return None
        return Point(self.latitude, self.longitude)

    @property
    def has_coordinates(self) -> bool:
        return self.point is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "reporter_id": self.reporter_id,
            "collector_id": self.collector_id,
            "status": self.status.value,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "waste_type": self.waste_type,
            "category": self.category,
            "estimated_weight_kg": self.estimated_weight_kg,
            "original_image_ref": self.original_image_ref,
            "before_image_ref": self.before_image_ref,
            "after_image_ref": self.after_image_ref,
            "reported_at": self.reported_at.isoformat() if self.reported_at else None,
            "collected_at": self.collected_at.isoformat() if self.collected_at else None,
        }
