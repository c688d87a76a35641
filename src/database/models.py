"""
SQLAlchemy models for EcoFlow
Waste reports and the user fields the lifecycle depends on.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, Float, String, Text, Boolean,
    DateTime, ForeignKey, Index, JSON, LargeBinary, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import JSONB

from src.lifecycle.models import ReportStatus, User, WasteReport

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class UserRecord(Base):
    """
    Platform user.

    Identity is managed externally; only profile and point fields are kept.
    """
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(200))
    enable_collector = Column(Boolean, nullable=False, default=False)

    # Profile location (required before reporting or collecting)
    city = Column(String(100))
    state = Column(String(100))
    country = Column(String(100))

    # Points
    reporter_points = Column(Integer, nullable=False, default=0)
    collector_points = Column(Integer, nullable=False, default=0)
    global_points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    reports = relationship(
        "WasteReportRecord", back_populates="reporter", foreign_keys="WasteReportRecord.reporter_id"
    )

    def __repr__(self):
        return f"<UserRecord({self.id}, collector={self.enable_collector}, points={self.global_points})>"

    @classmethod
    def from_domain(cls, user: User) -> "UserRecord":
        return cls(
            id=user.id,
            name=user.name,
            enable_collector=user.enable_collector,
            city=user.city,
            state=user.state,
            country=user.country,
            reporter_points=user.reporter_points,
            collector_points=user.collector_points,
            global_points=user.global_points,
        )

    def to_domain(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            enable_collector=bool(self.enable_collector),
            city=self.city,
            state=self.state,
            country=self.country,
            reporter_points=self.reporter_points or 0,
            collector_points=self.collector_points or 0,
            global_points=self.global_points or 0,
        )


class WasteReportRecord(Base):
    """
    Citizen waste report.

    Status changes are applied only through conditional updates on
    ``status`` (and ``collector_id``).
    """
    __tablename__ = "waste_reports"

    id = Column(String(64), primary_key=True, index=True)
    reporter_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    collector_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    status = Column(
        SQLEnum(ReportStatus, name="report_status", native_enum=False, length=20),
        nullable=False,
        default=ReportStatus.PENDING,
    )

    # Location
    latitude = Column(Float)
    longitude = Column(Float)
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(100))
    country = Column(String(100))

    # AI classification
    waste_type = Column(String(50))
    category = Column(String(50))
    estimated_weight_kg = Column(Float, nullable=False, default=0.0)
    ai_classification = Column(JSONType, default=dict)

    # Images (blob store references)
    original_image_ref = Column(Text, nullable=False)
    before_image_ref = Column(Text)
    after_image_ref = Column(Text)

    # Timeline
    reported_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime)
    collected_at = Column(DateTime)

    reporter = relationship("UserRecord", back_populates="reports", foreign_keys=[reporter_id])

    __table_args__ = (
        Index("idx_report_status", status),
        Index("idx_report_collector_status", collector_id, status),
        Index("idx_report_reported_at", reported_at),
        Index("idx_report_city", city),
    )

    def __repr__(self):
        return f"<WasteReportRecord({self.id}, status={self.status}, collector={self.collector_id})>"

    @classmethod
    def from_domain(cls, report: WasteReport) -> "WasteReportRecord":
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            collector_id=report.collector_id,
            status=report.status,
            latitude=report.latitude,
            longitude=report.longitude,
            address=report.address,
            city=report.city,
            state=report.state,
            country=report.country,
            waste_type=report.waste_type,
            category=report.category,
            estimated_weight_kg=report.estimated_weight_kg,
            ai_classification=report.ai_classification,
            original_image_ref=report.original_image_ref,
            before_image_ref=report.before_image_ref,
            after_image_ref=report.after_image_ref,
            reported_at=report.reported_at,
            updated_at=report.updated_at,
            collected_at=report.collected_at,
        )

    def to_domain(self) -> WasteReport:
        return WasteReport(
            id=self.id,
            reporter_id=self.reporter_id,
            original_image_ref=self.original_image_ref,
            status=self.status,
            collector_id=self.collector_id,
            latitude=self.latitude,
            longitude=self.longitude,
            address=self.address,
            city=self.city,
            state=self.state,
            country=self.country,
            waste_type=self.waste_type,
            category=self.category,
            estimated_weight_kg=self.estimated_weight_kg or 0.0,
            ai_classification=dict(self.ai_classification or {}),
            before_image_ref=self.before_image_ref,
            after_image_ref=self.after_image_ref,
            reported_at=self.reported_at,
            updated_at=self.updated_at,
            collected_at=self.collected_at,
        )


class PhotoRecord(Base):
    """
    Report photo bytes.

    Keys are blob store keys (``waste-reports/<report id>/<stage>-<suffix>``);
    reports refer to them as ``db://<key>``.
    """
    __tablename__ = "report_photos"

    key = Column(String(255), primary_key=True)
    data = Column(LargeBinary, nullable=False)
    mime_type = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<PhotoRecord({self.key}, {self.mime_type}, {len(self.data or b'')} bytes)>"
