"""
EcoFlow - Core Utilities
Central configuration, logging, errors and geospatial helpers.
"""

from src.core.config import settings
from src.core.exceptions import (
    EcoFlowError,
    NotFound,
    InvalidState,
    Unauthorized,
    Forbidden,
    ValidationError,
    VerificationFailed,
    VerificationUnavailable,
)
from src.core.geo_utils import (
    Point,
    haversine_distance,
    is_within_radius,
    is_location_in_state,
)

__all__ = [
    "settings",
    "EcoFlowError",
    "NotFound",
    "InvalidState",
    "Unauthorized",
    "Forbidden",
    "ValidationError",
    "VerificationFailed",
    "VerificationUnavailable",
    "Point",
    "haversine_distance",
    "is_within_radius",
    "is_location_in_state",
]
