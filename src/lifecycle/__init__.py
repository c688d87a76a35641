"""
EcoFlow - Lifecycle Module
Waste report state machine, entities and persistence contracts.
"""

from src.lifecycle.models import (
    ReportStatus,
    User,
    Location,
    WasteReport,
)
from src.lifecycle.events import EventKind, LifecycleEvent
from src.lifecycle.store import (
    ReportStore,
    UserDirectory,
    InMemoryReportStore,
    InMemoryUserDirectory,
)
from src.lifecycle.lifecycle import ReportLifecycle, VerificationOutcome

__all__ = [
    # Models
    "ReportStatus",
    "User",
    "Location",
    "WasteReport",
    # Events
    "EventKind",
    "LifecycleEvent",
    # Store
    "ReportStore",
    "UserDirectory",
    "InMemoryReportStore",
    "InMemoryUserDirectory",
    # Lifecycle
    "ReportLifecycle",
    "VerificationOutcome",
]
