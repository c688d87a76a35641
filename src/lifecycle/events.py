"""
Lifecycle events published after each committed transition.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from src.lifecycle.models import WasteReport


class EventKind(str, Enum):
    REPORTED = "REPORTED"
    CLAIMED = "CLAIMED"
    RELEASED = "RELEASED"
    COLLECTED = "COLLECTED"


@dataclass(frozen=True)
class LifecycleEvent:
    kind: EventKind
    report: WasteReport  # snapshot after the transition
    occurred_at: datetime
    actor_id: Optional[str] = None


EventListener = Callable[[LifecycleEvent], None]
