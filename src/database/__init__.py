"""
Database module for EcoFlow
SQLAlchemy persistence for waste reports, users and report photos
"""

from .connection import DatabaseConnection, init_db
from .models import (
    Base,
    PhotoRecord,
    UserRecord,
    WasteReportRecord,
)
from .store import SqlBlobStore, SqlReportStore, SqlUserDirectory

__all__ = [
    "DatabaseConnection",
    "init_db",
    "Base",
    "PhotoRecord",
    "UserRecord",
    "WasteReportRecord",
    "SqlBlobStore",
    "SqlReportStore",
    "SqlUserDirectory",
]
