"""
EcoFlow - Reward Ledger
Credits points from lifecycle events and ranks users on leaderboards.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from src.core.config import settings
from src.core.constants import LEADERBOARDS
from src.core.exceptions import NotFound, ValidationError
from src.lifecycle.events import EventKind, LifecycleEvent
from src.lifecycle.store import UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class PointsBalance:
    """Accumulated points for one user."""
    user_id: str
    reporter_points: int = 0
    collector_points: int = 0
    reports: int = 0
    collections: int = 0
    first_credited: int = 0  # credit sequence number, breaks ties

    @property
    def global_points(self) -> int:
        return self.reporter_points + self.collector_points

    def points_for(self, board: str) -> int:
        if board == "reporters":
            return self.reporter_points
        if board == "collectors":
            return self.collector_points
        return self.global_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "reporter_points": self.reporter_points,
            "collector_points": self.collector_points,
            "global_points": self.global_points,
            "reports": self.reports,
            "collections": self.collections,
        }


@dataclass
class LeaderboardEntry:
    rank: int
    balance: PointsBalance
    points: int

    def to_dict(self) -> Dict[str, Any]:
        data = self.balance.to_dict()
        data["rank"] = self.rank
        data["points"] = self.points
        return data


class RewardLedger:
    """
    Read-only observer of the report lifecycle.

    REPORTED credits the reporter ``report_points``; COLLECTED credits the
    collector ``collect_points``. Each (report, event kind) pair is credited
    at most once, so replayed events never double-credit.

    With a user directory, points are written there and leaderboards are
    read back from it, so they cover every known user and survive restarts.
    Without one, leaderboards rank the balances credited by this process.

    Usage:
        ledger = RewardLedger(users=directory)
        lifecycle.subscribe(ledger.handle)
    """

    def __init__(
        self,
        users: Optional[UserDirectory] = None,
        report_points: Optional[int] = None,
        collect_points: Optional[int] = None
    ):
        """
        Initialize ledger.

        Args:
            users: If given, points are written to and ranked from this directory
            report_points: Points per report (default 10)
            collect_points: Points per verified collection (default 20)
        """
        self.users = users
        self.report_points = report_points if report_points is not None else settings.report_points
        self.collect_points = (
            collect_points if collect_points is not None else settings.collect_points
        )

        self._balances: Dict[str, PointsBalance] = {}
        self._credited: Set[Tuple[str, EventKind]] = set()
        self._pending: Set[Tuple[str, EventKind]] = set()
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def handle(self, event: LifecycleEvent) -> None:
        """Lifecycle listener."""
        report = event.report

        if event.kind is EventKind.REPORTED:
            self.credit(report.id, EventKind.REPORTED, report.reporter_id, reporter_points=self.report_points)
        elif event.kind is EventKind.COLLECTED and report.collector_id:
            self.credit(report.id, EventKind.COLLECTED, report.collector_id, collector_points=self.collect_points)

    def credit(
        self,
        report_id: str,
        kind: EventKind,
        user_id: str,
        reporter_points: int = 0,
        collector_points: int = 0
    ) -> bool:
        """
        Credit points once per (report, kind).

        A credit only counts once the user directory write succeeds; if it
        raises, the same (report, kind) can be credited again later.

        Returns:
            True if points were credited, False for a duplicate
        """
        key = (report_id, kind)
        with self._lock:
            if key in self._credited or key in self._pending:
                logger.debug(f"Duplicate {kind.value} credit ignored for report {report_id}")
                return False
            self._pending.add(key)

        if self.users is not None:
            try:
                self.users.add_points(
                    user_id,
                    reporter_points=reporter_points,
                    collector_points=collector_points,
                )
            except Exception:
                with self._lock:
                    self._pending.discard(key)
                raise

        with self._lock:
            self._pending.discard(key)
            self._credited.add(key)

            balance = self._balances.get(user_id)
            if balance is None:
                balance = PointsBalance(user_id=user_id, first_credited=next(self._sequence))
                self._balances[user_id] = balance

            balance.reporter_points += reporter_points
            balance.collector_points += collector_points
            if kind is EventKind.REPORTED:
                balance.reports += 1
            elif kind is EventKind.COLLECTED:
                balance.collections += 1

        logger.info(
            f"Credited {reporter_points + collector_points} points to {user_id} "
            f"for {kind.value} report {report_id}"
        )
        return True

    def balance(self, user_id: str) -> PointsBalance:
        """Points for a user (zero balance if never credited)."""
        with self._lock:
            balance = self._balances.get(user_id)
            balance = PointsBalance(**balance.__dict__) if balance else PointsBalance(user_id=user_id)

        if self.users is not None:
            try:
                user = self.users.get_user(user_id)
            except NotFound:
                return balance
            balance.reporter_points = user.reporter_points
            balance.collector_points = user.collector_points
        return balance

    def leaderboard(self, board: str = "global", limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """
        Rank users on a board.

        Args:
            board: One of global, reporters, collectors
            limit: Maximum number of entries

        Returns:
            LeaderboardEntry list, rank 1 first
        """
        ordered = self._ordered(board, limit)

        return [
            LeaderboardEntry(rank=i + 1, balance=b, points=b.points_for(board))
            for i, b in enumerate(ordered)
        ]

    def rank(self, user_id: str, board: str = "global") -> int:
        """1-based rank of a user. Raises NotFound for users not on the board."""
        for i, balance in enumerate(self._ordered(board)):
            if balance.user_id == user_id:
                return i + 1
        raise NotFound(f"User is not on the {board} leaderboard: {user_id}")

    def _ordered(self, board: str, limit: Optional[int] = None) -> List[PointsBalance]:
        if board not in LEADERBOARDS:
            raise ValidationError(
                f"Unknown leaderboard: {board}. Expected one of {', '.join(LEADERBOARDS)}"
            )

        if self.users is not None:
            return self._from_directory(board, limit)

        with self._lock:
            balances = [PointsBalance(**b.__dict__) for b in self._balances.values()]

        if board == "global":
            key = lambda b: (-b.global_points, -b.reporter_points, -b.collector_points, b.first_credited)
        else:
            key = lambda b: (-b.points_for(board), -b.global_points, b.first_credited)

        balances.sort(key=key)
        return balances[:limit] if limit is not None else balances

    def _from_directory(self, board: str, limit: Optional[int]) -> List[PointsBalance]:
        # Directory ties break on user id; activity counts are per process
        users = self.users.ranked(board, limit=limit)

        with self._lock:
            counts = {
                u.id: (self._balances[u.id].reports, self._balances[u.id].collections)
                for u in users
                if u.id in self._balances
            }

        return [
            PointsBalance(
                user_id=u.id,
                reporter_points=u.reporter_points,
                collector_points=u.collector_points,
                reports=counts.get(u.id, (0, 0))[0],
                collections=counts.get(u.id, (0, 0))[1],
            )
            for u in users
        ]
