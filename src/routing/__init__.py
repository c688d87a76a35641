"""
EcoFlow - Routing Module
Collector route planning.
"""

from src.routing.route_planner import RoutePlanner, RouteEstimate

__all__ = [
    "RoutePlanner",
    "RouteEstimate",
]
