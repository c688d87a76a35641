"""
EcoFlow - Analysis Module
Geospatial analysis of unresolved waste reports.
"""

from src.analysis.hotspots import (
    Hotspot,
    HotspotDetector,
    get_hotspot_statistics,
)

__all__ = [
    "Hotspot",
    "HotspotDetector",
    "get_hotspot_statistics",
]
