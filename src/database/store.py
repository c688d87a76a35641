"""
SQL-backed report store, user directory and photo store.

``conditional_update`` is a single ``UPDATE ... WHERE id = ? AND status = ?
[AND collector_id = ?]``; the affected-row count decides success, so
concurrent claims race safely in the database.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update

from src.core.constants import LEADERBOARD_POINTS, PROFILE_FIELDS
from src.core.exceptions import NotFound
from src.lifecycle.models import ReportStatus, User, WasteReport
from src.lifecycle.store import ReportStore, UserDirectory, check_update_fields
from src.storage.blob_store import BlobStore, ImageSource
from .connection import DatabaseConnection
from .models import PhotoRecord, UserRecord, WasteReportRecord

logger = logging.getLogger(__name__)


class SqlReportStore(ReportStore):
    """Report store on top of SQLAlchemy."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def add(self, report: WasteReport) -> None:
        with self.db.get_session() as session:
            session.add(WasteReportRecord.from_domain(report))

    def get(self, report_id: str) -> Optional[WasteReport]:
        with self.db.get_session() as session:
            record = session.get(WasteReportRecord, report_id)
            return record.to_domain() if record else None

    def conditional_update(
        self,
        report_id: str,
        expected_status: ReportStatus,
        new_fields: Dict[str, Any],
        expected_collector_id: Optional[str] = None
    ) -> bool:
        check_update_fields(new_fields)

        stmt = (
            update(WasteReportRecord)
            .where(WasteReportRecord.id == report_id)
            .where(WasteReportRecord.status == expected_status)
        )
        if expected_collector_id is not None:
            stmt = stmt.where(WasteReportRecord.collector_id == expected_collector_id)
        stmt = stmt.values(**new_fields).execution_options(synchronize_session=False)

        with self.db.get_session() as session:
            result = session.execute(stmt)
            updated = result.rowcount == 1

        if not updated:
            logger.debug(
                f"Conditional update missed for {report_id} "
                f"(expected {expected_status.value}, collector {expected_collector_id})"
            )
        return updated

    def find_by_status(self, status: ReportStatus) -> List[WasteReport]:
        stmt = (
            select(WasteReportRecord)
            .where(WasteReportRecord.status == status)
            .order_by(WasteReportRecord.reported_at.asc())
        )
        with self.db.get_session() as session:
            return [r.to_domain() for r in session.scalars(stmt)]

    def find_by_collector(self, collector_id: str) -> List[WasteReport]:
        stmt = (
            select(WasteReportRecord)
            .where(WasteReportRecord.collector_id == collector_id)
            .order_by(WasteReportRecord.reported_at.asc())
        )
        with self.db.get_session() as session:
            return [r.to_domain() for r in session.scalars(stmt)]

    def find_all(self) -> List[WasteReport]:
        stmt = select(WasteReportRecord).order_by(WasteReportRecord.reported_at.asc())
        with self.db.get_session() as session:
            return [r.to_domain() for r in session.scalars(stmt)]


class SqlUserDirectory(UserDirectory):
    """User directory backed by the ``users`` table."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def add_user(self, user: User) -> None:
        with self.db.get_session() as session:
            session.merge(UserRecord.from_domain(user))

    def update_profile(self, user: User) -> User:
        values = {name: getattr(user, name) for name in PROFILE_FIELDS}
        stmt = (
            update(UserRecord)
            .where(UserRecord.id == user.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self.db.get_session() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                session.add(UserRecord(id=user.id, **values))
                logger.info(f"New user synced: {user.id}")

        return self.get_user(user.id)

    def get_user(self, user_id: str) -> User:
        with self.db.get_session() as session:
            record = session.get(UserRecord, user_id)
            if record is None:
                raise NotFound(f"User not found: {user_id}")
            return record.to_domain()

    def add_points(
        self,
        user_id: str,
        reporter_points: int = 0,
        collector_points: int = 0
    ) -> User:
        stmt = (
            update(UserRecord)
            .where(UserRecord.id == user_id)
            .values(
                reporter_points=UserRecord.reporter_points + reporter_points,
                collector_points=UserRecord.collector_points + collector_points,
                global_points=UserRecord.global_points + reporter_points + collector_points,
            )
            .execution_options(synchronize_session=False)
        )
        with self.db.get_session() as session:
            result = session.execute(stmt)
            if result.rowcount != 1:
                raise NotFound(f"User not found: {user_id}")

        return self.get_user(user_id)

    def ranked(self, board: str, limit: Optional[int] = None) -> List[User]:
        if board == "global":
            order = [
                UserRecord.global_points.desc(),
                UserRecord.reporter_points.desc(),
                UserRecord.collector_points.desc(),
            ]
        else:
            order = [
                getattr(UserRecord, LEADERBOARD_POINTS[board]).desc(),
                UserRecord.global_points.desc(),
            ]

        stmt = select(UserRecord).order_by(*order, UserRecord.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.db.get_session() as session:
            return [r.to_domain() for r in session.scalars(stmt)]


class SqlBlobStore(BlobStore):
    """
    Photo store backed by the ``report_photos`` table.

    Photos live next to the reports that reference them, so every process
    sharing the database can resolve them. References look like ``db://<key>``.
    """

    PREFIX = "db://"

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def put(self, key: str, data: bytes, mime_type: str) -> str:
        with self.db.get_session() as session:
            session.merge(PhotoRecord(key=key, data=data, mime_type=mime_type))
        logger.debug(f"Stored photo {key} ({len(data)} bytes, {mime_type})")
        return f"{self.PREFIX}{key}"

    def resolve(self, ref: str) -> ImageSource:
        if self.is_external(ref):
            return ref

        with self.db.get_session() as session:
            record = session.get(PhotoRecord, self._key(ref))
            if record is None:
                raise NotFound(f"Image not found: {ref}")
            return bytes(record.data)

    def delete(self, ref: str) -> bool:
        stmt = delete(PhotoRecord).where(PhotoRecord.key == self._key(ref))
        with self.db.get_session() as session:
            result = session.execute(stmt)
            return result.rowcount == 1

    def _key(self, ref: str) -> str:
        return ref[len(self.PREFIX):] if ref.startswith(self.PREFIX) else ref
