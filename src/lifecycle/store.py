"""
Persistence contracts for reports and users, with in-memory backends.

The only way to change a stored report is ``conditional_update``, a
compare-and-set on the report's status (and optionally its collector).
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.core.constants import LEADERBOARD_POINTS, PROFILE_FIELDS
from src.core.exceptions import NotFound
from src.lifecycle.models import ReportStatus, User, WasteReport

logger = logging.getLogger(__name__)

REPORT_FIELDS = frozenset(f.name for f in fields(WasteReport))
IMMUTABLE_FIELDS = frozenset({"id", "reporter_id", "original_image_ref", "reported_at"})


def check_update_fields(new_fields: Dict[str, Any]) -> None:
    """Reject unknown or immutable report fields."""
    unknown = set(new_fields) - REPORT_FIELDS
    if unknown:
        raise ValueError(f"Unknown report fields: {sorted(unknown)}")

    immutable = set(new_fields) & IMMUTABLE_FIELDS
    if immutable:
        raise ValueError(f"Immutable report fields: {sorted(immutable)}")


def ranking_key(board: str) -> Callable[[User], Tuple]:
    """
    Sort key for a leaderboard, best first.

    global ranks by global, then reporter, then collector points; the other
    boards rank by their own points, then global points. User id breaks
    remaining ties.
    """
    if board == "global":
        return lambda u: (-u.global_points, -u.reporter_points, -u.collector_points, u.id)

    field_name = LEADERBOARD_POINTS[board]
    return lambda u: (-getattr(u, field_name), -u.global_points, u.id)


class ReportStore(ABC):
    """Relational-style store for waste reports."""

    @abstractmethod
    def add(self, report: WasteReport) -> None:
        """Insert a new report."""

    @abstractmethod
    def get(self, report_id: str) -> Optional[WasteReport]:
        """Get report by ID, or None."""

    @abstractmethod
    def conditional_update(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_fields: Dict[str, Any],
        expected_collector_id: Optional[str] = None
    ) -> bool:
        """
        Atomically apply new_fields if the report is in expected_status.

        Args:
            report_id: Report ID
            expected_status: Status the report must currently have
            new_fields: Field values to set
            expected_collector_id: If given, collector the report must have

        Returns:
            True if exactly one report was updated
        """

    @abstractmethod
    def find_by_status(self, status: ReportStatus) -> List[WasteReport]:
        """All reports with the given status, oldest first."""

    @abstractmethod
    def find_by_collector(self, collector_id: str) -> List[WasteReport]:
        """All reports assigned to a collector, ordered by reported_at asc."""

    def find_all(self) -> List[WasteReport]:
        reports: List[WasteReport] = []
        for status in ReportStatus:
            reports.extend(self.find_by_status(status))
        return sorted(reports, key=lambda r: r.reported_at)


class UserDirectory(ABC):
    """Identity collaborator: profile lookup and point totals."""

    @abstractmethod
    def add_user(self, user: User) -> None:
        """Insert or replace a user synced from the identity provider."""

    @abstractmethod
    def update_profile(self, user: User) -> User:
        """
        Insert the user, or update only its profile fields if it exists.

        Point totals are owned by ``add_points`` and never overwritten here.
        """

    @abstractmethod
    def get_user(self, user_id: str) -> User:
        """Get user by ID. Raises NotFound."""

    @abstractmethod
    def add_points(
        self,
        user_id: str,
        reporter_points: int = 0,
        collector_points: int = 0
    ) -> User:
        """Increment a user's point subtotals and global total."""

    @abstractmethod
    def ranked(self, board: str, limit: Optional[int] = None) -> List[User]:
        """All users ordered for a leaderboard (see ``ranking_key``)."""


class InMemoryReportStore(ReportStore):
    """Thread-safe dict-backed report store. Returns copies."""

    def __init__(self):
        self._reports: Dict[str, WasteReport] = {}
        self._lock = threading.Lock()

    def add(self, report: WasteReport) -> None:
        with self._lock:
            if report.id in self._reports:
                raise ValueError(f"Report already exists: {report.id}")
            self._reports[report.id] = copy.deepcopy(report)

    def get(self, report_id: str) -> Optional[WasteReport]:
        with self._lock:
            report = self._reports.get(report_id)
            return copy.deepcopy(report) if report else None

    def conditional_update(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_fields: Dict[str, Any],
        expected_collector_id: Optional[str] = None
    ) -> bool:
        check_update_fields(new_fields)

        with self._lock:
            report = self._reports.get(report_id)
            if report is None or report.status != expected_status:
                return False
            if expected_collector_id is not None and report.collector_id != expected_collector_id:
                return False

            self._reports[report_id] = replace(report, **copy.deepcopy(new_fields))
            return True

    def find_by_status(self, status: ReportStatus) -> List[WasteReport]:
        with self._lock:
            matches = [copy.deepcopy(r) for r in self._reports.values() if r.status == status]
        return sorted(matches, key=lambda r: r.reported_at)

    def find_by_collector(self, collector_id: str) -> List[WasteReport]:
        with self._lock:
            matches = [
                copy.deepcopy(r) for r in self._reports.values()
                if r.collector_id == collector_id
            ]
        return sorted(matches, key=lambda r: r.reported_at)

    def __len__(self) -> int:
        return len(self._reports)


class InMemoryUserDirectory(UserDirectory):
    """Dict-backed user directory for tests and single-instance use."""

    def __init__(self, users: Optional[List[User]] = None):
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()
        for user in users or []:
            self.add_user(user)

    def add_user(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = copy.deepcopy(user)

    def update_profile(self, user: User) -> User:
        with self._lock:
            existing = self._users.get(user.id)
            if existing is None:
                existing = User(id=user.id)
                self._users[user.id] = existing
            for name in PROFILE_FIELDS:
                setattr(existing, name, getattr(user, name))
            return copy.deepcopy(existing)

    def get_user(self, user_id: str) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound(f"User not found: {user_id}")
            return copy.deepcopy(user)

    def add_points(
        self,
        user_id: str,
        reporter_points: int = 0,
        collector_points: int = 0
    ) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound(f"User not found: {user_id}")
            user.reporter_points += reporter_points
            user.collector_points += collector_points
            user.global_points += reporter_points + collector_points
            return copy.deepcopy(user)

    def ranked(self, board: str, limit: Optional[int] = None) -> List[User]:
        with self._lock:
            users = [copy.deepcopy(u) for u in self._users.values()]
        users.sort(key=ranking_key(board))
        return users[:limit] if limit is not None else users
