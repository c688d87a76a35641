"""
EcoFlow - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Dict, List, Tuple

# =============================================================================
# GEOGRAPHIC BOUNDARIES
# =============================================================================

# Countries with state boundary data. Locations in other countries are
# not geofenced.
GEOFENCED_COUNTRIES: List[str] = ["india"]

# Indian states bounding boxes (west, south, east, north)
INDIAN_STATES: Dict[str, Tuple[float, float, float, float]] = {
    "andhra pradesh": (76.8, 12.6, 84.8, 19.9),
    "assam": (89.7, 24.1, 96.0, 28.0),
    "bihar": (83.3, 24.3, 88.3, 27.5),
    "chhattisgarh": (80.3, 17.8, 84.4, 24.1),
    "delhi": (76.8, 28.4, 77.3, 28.9),
    "goa": (73.7, 14.9, 74.3, 15.8),
    "gujarat": (68.2, 20.1, 74.5, 24.7),
    "haryana": (74.5, 27.7, 77.6, 30.9),
    "himachal pradesh": (75.6, 30.4, 79.0, 33.2),
    "jammu and kashmir": (73.3, 32.3, 80.3, 37.1),
    "jharkhand": (83.3, 21.9, 87.9, 25.3),
    "karnataka": (74.0, 11.5, 78.6, 18.5),
    "kerala": (74.9, 8.2, 77.4, 12.8),
    "madhya pradesh": (74.0, 21.1, 82.8, 26.9),
    "maharashtra": (72.6, 15.6, 80.9, 22.0),
    "odisha": (81.3, 17.8, 87.5, 22.6),
    "punjab": (73.9, 29.5, 76.9, 32.6),
    "rajasthan": (69.5, 23.0, 78.3, 30.2),
    "tamil nadu": (76.2, 8.1, 80.3, 13.6),
    "telangana": (77.2, 15.9, 81.3, 19.9),
    "uttar pradesh": (77.1, 23.9, 84.6, 30.4),
    "uttarakhand": (77.6, 28.7, 81.0, 31.5),
    "west bengal": (85.8, 21.5, 89.9, 27.2),
}

STATE_BOUNDARIES: Dict[str, Dict[str, Tuple[float, float, float, float]]] = {
    "india": INDIAN_STATES,
}

# =============================================================================
# COLLECTION VERIFICATION
# =============================================================================

# Names reported in VerificationFailed.failed_checks
CHECK_BEFORE_CONFIDENCE = "before-confidence"
CHECK_AFTER_CONFIDENCE = "after-confidence"
CHECK_LOCATION = "location"

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

# =============================================================================
# REPORTS
# =============================================================================

# AI classification fields a new report must carry
REQUIRED_CLASSIFICATION_FIELDS: List[str] = ["wasteType", "category"]

# Leaderboard name -> user points field it ranks by
LEADERBOARD_POINTS: Dict[str, str] = {
    "global": "global_points",
    "reporters": "reporter_points",
    "collectors": "collector_points",
}

LEADERBOARDS: List[str] = list(LEADERBOARD_POINTS)

# User fields synced from the identity provider; points are never synced
PROFILE_FIELDS: List[str] = ["name", "enable_collector", "city", "state", "country"]
