"""
Waste report lifecycle.

State machine: PENDING -> IN_PROGRESS -> COLLECTED, with ``release`` as
the only backward move (IN_PROGRESS -> PENDING). Every write goes
through the store's conditional update, so a transition either commits
completely or leaves the report untouched.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from src.core.config import settings
from src.core.constants import (
    CHECK_AFTER_CONFIDENCE,
    CHECK_BEFORE_CONFIDENCE,
    CHECK_LOCATION,
    REQUIRED_CLASSIFICATION_FIELDS,
)
from src.core.exceptions import (
    Forbidden,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
    VerificationFailed,
)
from src.core.geo_utils import Point, format_distance, is_location_in_state, is_within_radius
from src.lifecycle.events import EventKind, EventListener, LifecycleEvent
from src.lifecycle.models import Location, ReportStatus, User, WasteReport
from src.lifecycle.store import ReportStore, UserDirectory
from src.storage.blob_store import BlobStore, ImageSource
from src.vision.images import ImageNormalizer, is_remote
from src.vision.models import VerificationResult
from src.vision.verifier import VisionVerifier

logger = logging.getLogger(__name__)

PROFILE_INCOMPLETE_MESSAGE = (
    "Please update your profile with city, state, and country "
    "before reporting or collecting waste."
)


@dataclass
class VerificationOutcome:
    """Result of a successful collection verification step."""
    report: WasteReport
    verification: VerificationResult
    distance_km: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report": self.report.to_dict(),
            "verification": self.verification.to_dict(),
            "distance_km": round(self.distance_km, 3) if self.distance_km is not None else None,
        }


class ReportLifecycle:
    """
    Owns waste reports and their legal transitions.

    Collaborators are injected: the report store, the user directory,
    the blob store for photos and the vision verifier. Time is passed in
    through ``now`` (or the ``clock``) so transitions are deterministic
    under test.
    """

    def __init__(
        self,
        store: ReportStore,
        users: UserDirectory,
        verifier: VisionVerifier,
        blob_store: BlobStore,
        normalizer: Optional[ImageNormalizer] = None,
        confidence_threshold: Optional[float] = None,
        collection_radius_km: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        """
        Initialize lifecycle.

        Args:
            store: Report persistence
            users: Identity collaborator
            verifier: Vision verifier for the collection gate
            blob_store: Photo storage
            normalizer: Image normalizer used when storing photos
            confidence_threshold: Minimum verifier confidence (default 0.6)
            collection_radius_km: Max collector distance from the report (default 10 km)
            clock: Fallback time source when ``now`` is not passed
        """
        self.store = store
        self.users = users
        self.verifier = verifier
        self.blob_store = blob_store
        self.normalizer = normalizer or ImageNormalizer()
        self.confidence_threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else settings.verification_confidence_threshold
        )
        self.collection_radius_km = (
            collection_radius_km
            if collection_radius_km is not None
            else settings.collection_radius_km
        )
        self.clock = clock

        self._listeners: List[EventListener] = []

        logger.info(
            f"ReportLifecycle initialized (threshold={self.confidence_threshold}, "
            f"radius={self.collection_radius_km} km)"
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener for committed transitions."""
        self._listeners.append(listener)

    def _publish(
        self,
        kind: EventKind,
        report: WasteReport,
        now: datetime,
        actor_id: Optional[str] = None
    ) -> None:
        event = LifecycleEvent(kind=kind, report=report, occurred_at=now, actor_id=actor_id)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                # The transition is already committed; a listener cannot undo it.
                logger.exception(f"Listener failed for {kind.value} on report {report.id}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, report_id: str) -> WasteReport:
        """Get report by ID. Raises NotFound."""
        report = self.store.get(report_id)
        if report is None:
            raise NotFound(f"Waste report not found: {report_id}")
        return report

    def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        city: Optional[str] = None
    ) -> List[WasteReport]:
        """Reports filtered by status and city, newest first."""
        if status is not None:
            reports = self.store.find_by_status(status)
        else:
            reports = self.store.find_all()

        if city:
            wanted = city.strip().lower()
            reports = [r for r in reports if (r.city or "").strip().lower() == wanted]

        return sorted(reports, key=lambda r: r.reported_at, reverse=True)

    def get_statistics(self) -> Dict[str, Any]:
        """Aggregate counts and weights."""
        reports = self.store.find_all()

        by_status = {status.value: 0 for status in ReportStatus}
        total_weight = 0.0
        collected_weight = 0.0
        with_coordinates = 0

        for report in reports:
            by_status[report.status.value] += 1
            total_weight += report.estimated_weight_kg
            if report.status is ReportStatus.COLLECTED:
                collected_weight += report.estimated_weight_kg
            if report.has_coordinates:
                with_coordinates += 1

        total = len(reports)
        return {
            "total_reports": total,
            "by_status": by_status,
            "total_weight_kg": round(total_weight, 3),
            "collected_weight_kg": round(collected_weight, 3),
            "with_coordinates": with_coordinates,
            "collection_rate": by_status[ReportStatus.COLLECTED.value] / total if total > 0 else 0,
        }

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def require_complete_profile(self, user_id: str) -> User:
        user = self.users.get_user(user_id)
        if not user.has_complete_profile:
            raise Unauthorized(PROFILE_INCOMPLETE_MESSAGE)
        return user

    def require_collector(self, collector_id: str) -> User:
        """Collector must have a complete profile and collector mode enabled."""
        user = self.require_complete_profile(collector_id)
        if not user.enable_collector:
            raise Unauthorized("User must have collector mode enabled to collect waste")
        return user

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(
        self,
        reporter_id: str,
        image: ImageSource,
        location: Location,
        ai_classification: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> WasteReport:
        """
        Create a new PENDING report.

        Args:
            reporter_id: Reporting user
            image: Waste photo (bytes, URL or data URI)
            location: Where the waste is
            ai_classification: Classifier output with wasteType, category,
                estimatedWeightKg
            now: Report time

        Returns:
            Created WasteReport
        """
        now = now or self.clock()
        reporter = self.require_complete_profile(reporter_id)

        classification = self._validate_classification(ai_classification)
        point = self._validate_location(location)

        if point is not None and not is_location_in_state(
            point.latitude, point.longitude, reporter.state, reporter.country
        ):
            raise ValidationError(
                f"Location ({point.latitude:.4f}, {point.longitude:.4f}) is outside "
                f"{reporter.state}, {reporter.country}"
            )

        report_id = str(uuid.uuid4())
        image_ref = self._store_image(report_id, "original", image)

        report = WasteReport(
            id=report_id,
            reporter_id=reporter_id,
            original_image_ref=image_ref,
            status=ReportStatus.PENDING,
            latitude=location.latitude,
            longitude=location.longitude,
            address=location.address,
            city=location.city or reporter.city,
            state=location.state or reporter.state,
            country=location.country or reporter.country,
            waste_type=classification["wasteType"],
            category=classification["category"],
            estimated_weight_kg=classification["estimatedWeightKg"],
            ai_classification=classification,
            reported_at=now,
        )
        self.store.add(report)

        logger.info(
            f"New report created: {report_id} by {reporter_id} "
            f"({report.waste_type}, {report.estimated_weight_kg} kg)"
        )
        self._publish(EventKind.REPORTED, report, now, actor_id=reporter_id)
        return report

    def claim(
        self,
        report_id: str,
        collector_id: str,
        now: Optional[datetime] = None
    ) -> WasteReport:
        """
        Assign a PENDING report exclusively to a collector.

        Raises:
            NotFound: report or collector absent
            Unauthorized: collector ineligible
            InvalidState: report not PENDING, or claimed concurrently
        """
        now = now or self.clock()
        report = self.get(report_id)
        self.require_collector(collector_id)

        if not report.status.can_transition_to(ReportStatus.IN_PROGRESS):
            raise InvalidState(
                f"Cannot claim report with status {report.status.value}. "
                f"Only PENDING reports can be claimed."
            )

        claimed = self.store.conditional_update(
            report_id,
            ReportStatus.PENDING,
            {
                "status": ReportStatus.IN_PROGRESS,
                "collector_id": collector_id,
                "before_image_ref": None,
                "after_image_ref": None,
                "updated_at": now,
            },
        )
        if not claimed:
            logger.info(f"Claim race lost on report {report_id} by {collector_id}")
            raise InvalidState(f"Report {report_id} was claimed by another collector")

        logger.info(f"Report {report_id} status: PENDING -> IN_PROGRESS (collector {collector_id})")
        report = self.get(report_id)
        self._publish(EventKind.CLAIMED, report, now, actor_id=collector_id)
        return report

    def release(
        self,
        report_id: str,
        collector_id: str,
        now: Optional[datetime] = None
    ) -> WasteReport:
        """
        Return an IN_PROGRESS report to PENDING.

        Raises:
            NotFound: report absent
            InvalidState: report not IN_PROGRESS
            Forbidden: caller is not the assigned collector
        """
        now = now or self.clock()
        report = self.get(report_id)

        if not report.status.can_transition_to(ReportStatus.PENDING):
            raise InvalidState(
                f"Cannot release report with status {report.status.value}. "
                f"Only IN_PROGRESS reports can be released."
            )
        if report.collector_id != collector_id:
            raise Forbidden("You can only release reports assigned to you")

        released = self.store.conditional_update(
            report_id,
            ReportStatus.IN_PROGRESS,
            {
                "status": ReportStatus.PENDING,
                "collector_id": None,
                "before_image_ref": None,
                "updated_at": now,
            },
            expected_collector_id=collector_id,
        )
        if not released:
            raise InvalidState(f"Report {report_id} changed while releasing")

        if report.before_image_ref:
            self._discard_image(report.before_image_ref)

        logger.info(f"Report {report_id} status: IN_PROGRESS -> PENDING (released by {collector_id})")
        report = self.get(report_id)
        self._publish(EventKind.RELEASED, report, now, actor_id=collector_id)
        return report

    def verify_before(
        self,
        report_id: str,
        before_image: ImageSource,
        collector_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> VerificationOutcome:
        """
        Check the collector's before photo against the original report photo.

        The before photo is stored only on a positive verdict at or above
        the confidence threshold; otherwise the report is left as it was.

        Raises:
            InvalidState: report not IN_PROGRESS
            Forbidden: collector_id given and not the assigned collector
            VerificationFailed: negative or low-confidence verdict
            VerificationUnavailable: model unreachable or output unusable
        """
        now = now or self.clock()
        report = self._get_in_progress(report_id, collector_id)

        original = self.blob_store.resolve(report.original_image_ref)
        result = self.verifier.compare_before(original, before_image)

        if not result.passes(self.confidence_threshold):
            logger.warning(
                f"Before verification failed for {report_id}: "
                f"valid={result.is_valid} confidence={result.confidence:.2f}"
            )
            raise VerificationFailed(
                f"Before photo does not match the reported waste "
                f"(confidence {result.confidence:.2f}, required {self.confidence_threshold:.2f}): "
                f"{result.message}",
                failed_checks=[CHECK_BEFORE_CONFIDENCE],
                confidences={"before": result.confidence},
            )

        before_ref = self._store_image(report_id, "before", before_image)
        stored = self.store.conditional_update(
            report_id,
            ReportStatus.IN_PROGRESS,
            {"before_image_ref": before_ref, "updated_at": now},
            expected_collector_id=report.collector_id,
        )
        if not stored:
            self._discard_image(before_ref)
            raise InvalidState(f"Report {report_id} changed during before verification")

        # A retaken before photo replaces the previous one
        if report.before_image_ref and report.before_image_ref != before_ref:
            self._discard_image(report.before_image_ref)

        logger.info(f"Before photo verified for report {report_id}")
        return VerificationOutcome(report=self.get(report_id), verification=result)

    def verify_after_and_complete(
        self,
        report_id: str,
        after_image: ImageSource,
        current_location: Optional[Point],
        collector_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> VerificationOutcome:
        """
        Check the after photo and the collector's position, then mark COLLECTED.

        The location check is skipped when the report has no coordinates.

        Raises:
            InvalidState: report not IN_PROGRESS
            Forbidden: collector_id given and not the assigned collector
            ValidationError: no verified before photo, or location missing
            VerificationFailed: after verdict and/or location rejected
            VerificationUnavailable: model unreachable or output unusable
        """
        now = now or self.clock()
        report = self._get_in_progress(report_id, collector_id)

        if not report.before_image_ref:
            raise ValidationError(
                "Before photo must be verified before completing collection"
            )

        failed_checks: List[str] = []
        reasons: List[str] = []
        distance_km: Optional[float] = None

        report_point = report.point
        if report_point is None:
            logger.info(f"Location check skipped for {report_id}: report has no coordinates")
        else:
            if current_location is None:
                raise ValidationError("Current location is required to complete collection")
            distance_km = report_point.distance_to(current_location)
            if not is_within_radius(report_point, current_location, self.collection_radius_km):
                failed_checks.append(CHECK_LOCATION)
                reasons.append(
                    f"you are {format_distance(distance_km)} from the waste location "
                    f"(max {format_distance(self.collection_radius_km)})"
                )

        before = self.blob_store.resolve(report.before_image_ref)
        result = self.verifier.compare_after(before, after_image)

        if not result.passes(self.confidence_threshold):
            failed_checks.insert(0, CHECK_AFTER_CONFIDENCE)
            reasons.insert(
                0,
                f"after photo not accepted (confidence {result.confidence:.2f}, "
                f"required {self.confidence_threshold:.2f}): {result.message}",
            )

        if failed_checks:
            logger.warning(f"Collection verification failed for {report_id}: {failed_checks}")
            raise VerificationFailed(
                "Collection not verified: " + "; ".join(reasons),
                failed_checks=failed_checks,
                confidences={"after": result.confidence},
            )

        after_ref = self._store_image(report_id, "after", after_image)
        completed = self.store.conditional_update(
            report_id,
            ReportStatus.IN_PROGRESS,
            {
                "status": ReportStatus.COLLECTED,
                "after_image_ref": after_ref,
                "collected_at": now,
                "updated_at": now,
            },
            expected_collector_id=report.collector_id,
        )
        if not completed:
            self._discard_image(after_ref)
            raise InvalidState(f"Report {report_id} changed during collection")

        logger.info(f"Report {report_id} status: IN_PROGRESS -> COLLECTED (collector {report.collector_id})")
        report = self.get(report_id)
        self._publish(EventKind.COLLECTED, report, now, actor_id=report.collector_id)
        return VerificationOutcome(report=report, verification=result, distance_km=distance_km)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_in_progress(self, report_id: str, collector_id: Optional[str]) -> WasteReport:
        report = self.get(report_id)

        if report.status is ReportStatus.COLLECTED:
            raise InvalidState("Waste report has already been collected")
        if not report.status.can_transition_to(ReportStatus.COLLECTED):
            raise InvalidState(
                "Waste must be added to a route first (status must be IN_PROGRESS)"
            )
        if collector_id is not None and report.collector_id != collector_id:
            raise Forbidden("Only the assigned collector can verify this report")
        return report

    def _store_image(self, report_id: str, stage: str, image: ImageSource) -> str:
        if is_remote(image):
            return image.strip()

        encoded = self.normalizer.normalize(image)
        return self.blob_store.put(
            BlobStore.report_key(report_id, stage),
            encoded.to_bytes(),
            encoded.mime_type,
        )

    def _discard_image(self, ref: str) -> None:
        if self.blob_store.is_external(ref):
            return
        if self.blob_store.delete(ref):
            logger.info(f"Discarded unused photo {ref}")

    @staticmethod
    def _validate_classification(ai_classification: Any) -> Dict[str, Any]:
        if not isinstance(ai_classification, dict):
            raise ValidationError("aiClassification must be an object")

        missing = [
            name for name in REQUIRED_CLASSIFICATION_FIELDS
            if not ai_classification.get(name)
        ]
        if missing:
            raise ValidationError(
                f"aiClassification must contain {' and '.join(REQUIRED_CLASSIFICATION_FIELDS)} "
                f"(missing: {', '.join(missing)})"
            )

        weight = ai_classification.get("estimatedWeightKg", 0.0)
        if isinstance(weight, bool):
            raise ValidationError("estimatedWeightKg must be a number")
        try:
            weight = float(weight)
        except (TypeError, ValueError) as e:
            raise ValidationError("estimatedWeightKg must be a number") from e
        if weight < 0:
            raise ValidationError("estimatedWeightKg cannot be negative")

        classification = dict(ai_classification)
        classification["estimatedWeightKg"] = weight
        return classification

    @staticmethod
    def _validate_location(location: Location) -> Optional[Point]:
        if (location.latitude is None) != (location.longitude is None):
            raise ValidationError("latitude and longitude must be given together")

        point = location.point
        if point is None:
            if not (location.address or location.city):
                raise ValidationError("location is required")
            return None

        if not -90 <= point.latitude <= 90 or not -180 <= point.longitude <= 180:
            raise ValidationError(
                f"Invalid coordinates: ({point.latitude}, {point.longitude})"
            )
        return point
