"""
Tests for the waste report lifecycle
"""
import threading
from datetime import timedelta

import pytest

import sys
sys.path.insert(0, '.')

from conftest import FIXED_NOW, REPORT_LAT, REPORT_LON, make_png, verdict
from src.core.exceptions import (
    Forbidden,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
    VerificationFailed,
    VerificationUnavailable,
)
from src.core.geo_utils import Point
from src.lifecycle.events import EventKind
from src.lifecycle.lifecycle import ReportLifecycle
from src.lifecycle.models import Location, ReportStatus
from src.lifecycle.store import InMemoryReportStore
from src.vision.verifier import VisionVerifier


# ~15 km north of the report
FAR_POINT = Point(REPORT_LAT + 0.135, REPORT_LON)
NEAR_POINT = Point(REPORT_LAT + 0.001, REPORT_LON)


class RacingReportStore(InMemoryReportStore):
    """Store where another writer wins the next conditional update."""

    lose_next = False

    def conditional_update(self, report_id, expected_status, new_fields, expected_collector_id=None):
        if self.lose_next:
            self.lose_next = False
            return False
        return super().conditional_update(report_id, expected_status, new_fields, expected_collector_id)


class TestCreate:
    """Test suite for report creation."""

    def test_create_pending_report(self, lifecycle, png_bytes, classification, blob_store):
        """Test new report is PENDING with classification stored."""
        report = lifecycle.create(
            "reporter-1", png_bytes,
            Location(latitude=REPORT_LAT, longitude=REPORT_LON), classification,
        )

        assert report.status == ReportStatus.PENDING
        assert report.collector_id is None
        assert report.waste_type == "Plastic"
        assert report.estimated_weight_kg == 2.5
        assert report.reported_at == FIXED_NOW
        assert report.city == "Bengaluru"
        assert blob_store.resolve(report.original_image_ref) == png_bytes

    def test_create_keeps_remote_image_url(self, lifecycle, classification):
        """Test URL images are stored as references, not downloaded."""
        report = lifecycle.create(
            "reporter-1", "https://images.example.com/waste.jpg",
            Location(latitude=REPORT_LAT, longitude=REPORT_LON), classification,
        )
        assert report.original_image_ref == "https://images.example.com/waste.jpg"

    def test_create_requires_complete_profile(self, lifecycle, png_bytes, classification):
        """Test reporter without state/country cannot report."""
        with pytest.raises(Unauthorized):
            lifecycle.create("incomplete", png_bytes, Location(latitude=12.9, longitude=77.5), classification)

    def test_create_unknown_reporter(self, lifecycle, png_bytes, classification):
        """Test unknown reporter raises NotFound."""
        with pytest.raises(NotFound):
            lifecycle.create("ghost", png_bytes, Location(latitude=12.9, longitude=77.5), classification)

    def test_create_requires_waste_type_and_category(self, lifecycle, png_bytes):
        """Test classification must carry wasteType and category."""
        with pytest.raises(ValidationError):
            lifecycle.create(
                "reporter-1", png_bytes,
                Location(latitude=REPORT_LAT, longitude=REPORT_LON),
                {"wasteType": "Plastic"},
            )

    def test_create_rejects_non_numeric_weight(self, lifecycle, png_bytes):
        """Test estimatedWeightKg must be numeric."""
        with pytest.raises(ValidationError):
            lifecycle.create(
                "reporter-1", png_bytes,
                Location(latitude=REPORT_LAT, longitude=REPORT_LON),
                {"wasteType": "Plastic", "category": "Recyclable", "estimatedWeightKg": "heavy"},
            )

    def test_create_outside_state_rejected(self, lifecycle, png_bytes, classification):
        """Test coordinates outside the reporter's state are rejected."""
        # Delhi, while the reporter is in Karnataka
        with pytest.raises(ValidationError):
            lifecycle.create(
                "reporter-1", png_bytes,
                Location(latitude=28.61, longitude=77.21), classification,
            )

    def test_create_half_coordinates_rejected(self, lifecycle, png_bytes, classification):
        """Test latitude without longitude is rejected."""
        with pytest.raises(ValidationError):
            lifecycle.create("reporter-1", png_bytes, Location(latitude=12.9), classification)

    def test_create_without_coordinates(self, lifecycle, png_bytes, classification):
        """Test address-only report is accepted without coordinates."""
        report = lifecycle.create(
            "reporter-1", png_bytes, Location(address="Near the bus stand"), classification,
        )
        assert not report.has_coordinates

    def test_create_publishes_event(self, lifecycle, png_bytes, classification):
        """Test REPORTED event is published after the report is stored."""
        events = []
        lifecycle.subscribe(events.append)

        report = lifecycle.create(
            "reporter-1", png_bytes,
            Location(latitude=REPORT_LAT, longitude=REPORT_LON), classification,
        )

        assert [e.kind for e in events] == [EventKind.REPORTED]
        assert events[0].report.id == report.id
        assert events[0].actor_id == "reporter-1"

    def test_listener_failure_does_not_undo_transition(self, lifecycle, png_bytes, classification, store):
        """Test a failing listener leaves the committed report in place."""
        def broken(event):
            raise RuntimeError("listener down")

        lifecycle.subscribe(broken)
        report = lifecycle.create(
            "reporter-1", png_bytes,
            Location(latitude=REPORT_LAT, longitude=REPORT_LON), classification,
        )
        assert store.get(report.id) is not None


class TestClaimAndRelease:
    """Test suite for claim and release transitions."""

    def test_claim_assigns_collector(self, lifecycle, pending_report):
        """Test claim moves PENDING to IN_PROGRESS with the collector."""
        report = lifecycle.claim(pending_report.id, "collector-a")

        assert report.status == ReportStatus.IN_PROGRESS
        assert report.collector_id == "collector-a"

    def test_claim_already_claimed(self, lifecycle, pending_report):
        """Test second claim fails with InvalidState."""
        lifecycle.claim(pending_report.id, "collector-a")

        with pytest.raises(InvalidState):
            lifecycle.claim(pending_report.id, "collector-b")

        assert lifecycle.get(pending_report.id).collector_id == "collector-a"

    def test_claim_requires_collector_flag(self, lifecycle, pending_report):
        """Test users without collector mode cannot claim."""
        with pytest.raises(Unauthorized):
            lifecycle.claim(pending_report.id, "citizen-2")

    def test_claim_requires_complete_profile(self, lifecycle, pending_report):
        """Test collectors with incomplete profiles cannot claim."""
        with pytest.raises(Unauthorized):
            lifecycle.claim(pending_report.id, "incomplete")

    def test_claim_missing_report(self, lifecycle):
        """Test claiming an unknown report raises NotFound."""
        with pytest.raises(NotFound):
            lifecycle.claim("missing", "collector-a")

    def test_concurrent_claims_only_one_wins(self, lifecycle, pending_report):
        """Test exactly one of many concurrent claims succeeds."""
        collectors = ["collector-a", "collector-b"] * 8
        barrier = threading.Barrier(len(collectors))
        winners = []
        losers = []
        lock = threading.Lock()

        def attempt(collector_id):
            barrier.wait()
            try:
                report = lifecycle.claim(pending_report.id, collector_id)
                with lock:
                    winners.append(report.collector_id)
            except InvalidState:
                with lock:
                    losers.append(collector_id)

        threads = [threading.Thread(target=attempt, args=(c,)) for c in collectors]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(losers) == len(collectors) - 1

        report = lifecycle.get(pending_report.id)
        assert report.status == ReportStatus.IN_PROGRESS
        assert report.collector_id == winners[0]

    def test_release_returns_to_pending(self, lifecycle, pending_report):
        """Test release clears the collector."""
        lifecycle.claim(pending_report.id, "collector-a")
        report = lifecycle.release(pending_report.id, "collector-a")

        assert report.status == ReportStatus.PENDING
        assert report.collector_id is None

    def test_release_by_other_collector_forbidden(self, lifecycle, pending_report):
        """Test only the assigned collector can release."""
        lifecycle.claim(pending_report.id, "collector-a")

        with pytest.raises(Forbidden):
            lifecycle.release(pending_report.id, "collector-b")

    def test_release_pending_invalid(self, lifecycle, pending_report):
        """Test releasing an unclaimed report raises InvalidState."""
        with pytest.raises(InvalidState):
            lifecycle.release(pending_report.id, "collector-a")

    def test_release_clears_before_photo(self, lifecycle, pending_report, png_bytes):
        """Test a released report starts the collection workflow over."""
        lifecycle.claim(pending_report.id, "collector-a")
        lifecycle.verify_before(pending_report.id, png_bytes)

        report = lifecycle.release(pending_report.id, "collector-a")
        assert report.before_image_ref is None


class TestVerifyBefore:
    """Test suite for the before-photo gate."""

    def test_verify_before_stores_photo(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test positive verdict stores the before photo."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue(verdict(True, 0.85, locationMatch=True, wasteMatch=True))

        outcome = lifecycle.verify_before(pending_report.id, png_bytes, collector_id="collector-a")

        assert outcome.report.before_image_ref is not None
        assert outcome.report.status == ReportStatus.IN_PROGRESS
        assert outcome.verification.confidence == 0.85
        assert outcome.verification.details["location_match"] is True
        assert outcome.verification.details["landmarks_match"] is False

    def test_low_confidence_fails_and_leaves_report(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test valid verdict below threshold fails without storing the photo."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue(verdict(True, 0.4))

        with pytest.raises(VerificationFailed) as exc_info:
            lifecycle.verify_before(pending_report.id, png_bytes)

        assert exc_info.value.failed_checks == ["before-confidence"]
        assert exc_info.value.confidences == {"before": 0.4}
        report = lifecycle.get(pending_report.id)
        assert report.status == ReportStatus.IN_PROGRESS
        assert report.before_image_ref is None

    def test_negative_verdict_fails(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test isValid=false fails even with high confidence."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue(verdict(False, 0.95))

        with pytest.raises(VerificationFailed):
            lifecycle.verify_before(pending_report.id, png_bytes)

    def test_threshold_is_inclusive(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test confidence exactly at the threshold passes."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue(verdict(True, 0.6))

        outcome = lifecycle.verify_before(pending_report.id, png_bytes)
        assert outcome.report.before_image_ref is not None

    def test_retry_after_failure(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test collector can resubmit after a failed verification."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue(verdict(True, 0.3), verdict(True, 0.9))

        with pytest.raises(VerificationFailed):
            lifecycle.verify_before(pending_report.id, png_bytes)
        outcome = lifecycle.verify_before(pending_report.id, png_bytes)

        assert outcome.report.before_image_ref is not None

    def test_unparseable_output_is_unavailable(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test malformed model output is not treated as a negative verdict."""
        lifecycle.claim(pending_report.id, "collector-a")
        vision_model.queue("I think the photos match")

        with pytest.raises(VerificationUnavailable) as exc_info:
            lifecycle.verify_before(pending_report.id, png_bytes)

        assert exc_info.value.retryable is True
        assert lifecycle.get(pending_report.id).before_image_ref is None

    def test_model_outage_leaves_report_untouched(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test boundary failure leaves the report in its pre-call state."""
        lifecycle.claim(pending_report.id, "collector-a")
        before = lifecycle.get(pending_report.id)
        vision_model.queue(VerificationUnavailable("Vision model timed out"))

        with pytest.raises(VerificationUnavailable):
            lifecycle.verify_before(pending_report.id, png_bytes)

        assert lifecycle.get(pending_report.id) == before

    def test_verify_before_requires_claim(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test PENDING report cannot be verified."""
        with pytest.raises(InvalidState):
            lifecycle.verify_before(pending_report.id, png_bytes)
        assert vision_model.calls == []

    def test_verify_before_wrong_collector(self, lifecycle, pending_report, png_bytes):
        """Test only the assigned collector can verify."""
        lifecycle.claim(pending_report.id, "collector-a")

        with pytest.raises(Forbidden):
            lifecycle.verify_before(pending_report.id, png_bytes, collector_id="collector-b")

    def test_model_receives_original_then_before(self, lifecycle, pending_report, vision_model):
        """Test the original photo is sent first, the before photo second."""
        lifecycle.claim(pending_report.id, "collector-a")
        before_photo = make_png(color=(10, 200, 10))

        lifecycle.verify_before(pending_report.id, before_photo)

        _, images = vision_model.calls[-1]
        assert len(images) == 2
        assert images[0].mime_type == "image/png"
        assert images[1].to_bytes() == before_photo


class TestVerifyAfterAndComplete:
    """Test suite for the after-photo gate and completion."""

    def _claim_and_verify_before(self, lifecycle, report_id, png_bytes):
        lifecycle.claim(report_id, "collector-a")
        lifecycle.verify_before(report_id, png_bytes)

    def test_complete_collection(self, lifecycle, pending_report, png_bytes):
        """Test valid after photo near the report completes the collection."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)
        later = FIXED_NOW + timedelta(hours=1)

        outcome = lifecycle.verify_after_and_complete(
            pending_report.id, png_bytes, NEAR_POINT, collector_id="collector-a", now=later,
        )

        assert outcome.report.status == ReportStatus.COLLECTED
        assert outcome.report.collected_at == later
        assert outcome.report.after_image_ref is not None
        assert outcome.report.collector_id == "collector-a"
        assert outcome.distance_km < 0.2

    def test_location_too_far(self, lifecycle, pending_report, png_bytes):
        """Test 15 km away fails the location check only."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)

        with pytest.raises(VerificationFailed) as exc_info:
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, FAR_POINT)

        assert exc_info.value.failed_checks == ["location"]
        report = lifecycle.get(pending_report.id)
        assert report.status == ReportStatus.IN_PROGRESS
        assert report.after_image_ref is None
        assert report.collected_at is None

    def test_after_and_location_both_fail(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test every failed check is listed."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)
        vision_model.queue(verdict(True, 0.2))

        with pytest.raises(VerificationFailed) as exc_info:
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, FAR_POINT)

        assert exc_info.value.failed_checks == ["after-confidence", "location"]
        assert exc_info.value.confidences == {"after": 0.2}

    def test_after_verdict_negative(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test waste still present fails the after check."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)
        vision_model.queue(verdict(False, 0.9, wasteRemoved=False))

        with pytest.raises(VerificationFailed) as exc_info:
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

        assert exc_info.value.failed_checks == ["after-confidence"]
        assert lifecycle.get(pending_report.id).status == ReportStatus.IN_PROGRESS

    def test_requires_before_photo(self, lifecycle, pending_report, png_bytes, vision_model):
        """Test completion without a verified before photo is rejected."""
        lifecycle.claim(pending_report.id, "collector-a")

        with pytest.raises(ValidationError):
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)
        assert vision_model.calls == []

    def test_requires_claim(self, lifecycle, pending_report, png_bytes):
        """Test PENDING report cannot be completed."""
        with pytest.raises(InvalidState):
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

    def test_missing_location_when_report_has_coordinates(self, lifecycle, pending_report, png_bytes):
        """Test current location is required when the report has coordinates."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)

        with pytest.raises(ValidationError):
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, None)

    def test_location_check_skipped_without_report_coordinates(
        self, lifecycle, png_bytes, classification
    ):
        """Test reports without coordinates skip the location check."""
        report = lifecycle.create(
            "reporter-1", png_bytes, Location(address="Old market lane"), classification,
        )
        self._claim_and_verify_before(lifecycle, report.id, png_bytes)

        outcome = lifecycle.verify_after_and_complete(report.id, png_bytes, FAR_POINT)

        assert outcome.report.status == ReportStatus.COLLECTED
        assert outcome.distance_km is None

    def test_collected_is_terminal(self, lifecycle, pending_report, png_bytes):
        """Test no transition leaves COLLECTED."""
        self._claim_and_verify_before(lifecycle, pending_report.id, png_bytes)
        lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

        with pytest.raises(InvalidState):
            lifecycle.claim(pending_report.id, "collector-b")
        with pytest.raises(InvalidState):
            lifecycle.release(pending_report.id, "collector-a")
        with pytest.raises(InvalidState):
            lifecycle.verify_before(pending_report.id, png_bytes)
        with pytest.raises(InvalidState):
            lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

        assert lifecycle.get(pending_report.id).status == ReportStatus.COLLECTED

    def test_status_sequence_is_monotonic(self, lifecycle, pending_report, png_bytes):
        """Test observed statuses only move forward except on release."""
        observed = []
        lifecycle.subscribe(lambda e: observed.append((e.kind, e.report.status)))

        lifecycle.claim(pending_report.id, "collector-a")
        lifecycle.release(pending_report.id, "collector-a")
        lifecycle.claim(pending_report.id, "collector-b")
        lifecycle.verify_before(pending_report.id, png_bytes)
        lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

        assert observed == [
            (EventKind.CLAIMED, ReportStatus.IN_PROGRESS),
            (EventKind.RELEASED, ReportStatus.PENDING),
            (EventKind.CLAIMED, ReportStatus.IN_PROGRESS),
            (EventKind.COLLECTED, ReportStatus.COLLECTED),
        ]


class TestQueries:
    """Test suite for report queries."""

    def test_get_missing(self, lifecycle):
        """Test get raises NotFound."""
        with pytest.raises(NotFound):
            lifecycle.get("missing")

    def test_list_reports_filters(self, lifecycle, png_bytes, classification):
        """Test list_reports filters by status and city, newest first."""
        first = lifecycle.create(
            "reporter-1", png_bytes, Location(latitude=12.97, longitude=77.59),
            classification, now=FIXED_NOW,
        )
        second = lifecycle.create(
            "reporter-1", png_bytes, Location(latitude=12.98, longitude=77.60),
            classification, now=FIXED_NOW + timedelta(minutes=5),
        )
        lifecycle.claim(first.id, "collector-a")

        assert [r.id for r in lifecycle.list_reports()] == [second.id, first.id]
        assert [r.id for r in lifecycle.list_reports(status=ReportStatus.PENDING)] == [second.id]
        assert len(lifecycle.list_reports(city="bengaluru")) == 2
        assert lifecycle.list_reports(city="Mysuru") == []

    def test_statistics(self, lifecycle, pending_report, png_bytes):
        """Test statistics count statuses and weights."""
        lifecycle.claim(pending_report.id, "collector-a")
        lifecycle.verify_before(pending_report.id, png_bytes)
        lifecycle.verify_after_and_complete(pending_report.id, png_bytes, NEAR_POINT)

        stats = lifecycle.get_statistics()

        assert stats["total_reports"] == 1
        assert stats["by_status"]["COLLECTED"] == 1
        assert stats["by_status"]["PENDING"] == 0
        assert stats["collected_weight_kg"] == 2.5
        assert stats["collection_rate"] == 1.0


class TestStatusAndPhotos:
    """Test suite for status transitions and stored photos."""

    def test_allowed_transitions(self):
        """Test the status graph."""
        assert ReportStatus.PENDING.can_transition_to(ReportStatus.IN_PROGRESS)
        assert ReportStatus.IN_PROGRESS.can_transition_to(ReportStatus.PENDING)
        assert ReportStatus.IN_PROGRESS.can_transition_to(ReportStatus.COLLECTED)
        assert not ReportStatus.PENDING.can_transition_to(ReportStatus.COLLECTED)
        assert not ReportStatus.COLLECTED.can_transition_to(ReportStatus.PENDING)
        assert ReportStatus.COLLECTED.is_resolved
        assert not ReportStatus.IN_PROGRESS.is_resolved

    def test_photos_stored_per_stage(self, lifecycle, pending_report, png_bytes, blob_store):
        """Test each verified stage stores one photo with its MIME type."""
        lifecycle.claim(pending_report.id, "collector-a")
        lifecycle.verify_before(pending_report.id, png_bytes)
        report = lifecycle.verify_after_and_complete(
            pending_report.id, png_bytes, NEAR_POINT
        ).report

        assert len(blob_store) == 3
        assert blob_store.mime_type(report.before_image_ref) == "image/png"
        assert blob_store.mime_type(report.after_image_ref) == "image/png"

    def test_missing_photo_ref(self, blob_store):
        """Test unknown references raise NotFound."""
        with pytest.raises(NotFound):
            blob_store.resolve("mem://waste-reports/missing")
        assert blob_store.mime_type("mem://waste-reports/missing") is None

    def test_retaken_before_photo_replaces_previous(self, lifecycle, pending_report, png_bytes, blob_store):
        """Test only the latest before photo is kept."""
        lifecycle.claim(pending_report.id, "collector-a")
        first = lifecycle.verify_before(pending_report.id, png_bytes).report.before_image_ref
        second = lifecycle.verify_before(pending_report.id, png_bytes).report.before_image_ref

        assert first != second
        assert len(blob_store) == 2
        assert blob_store.mime_type(first) is None

    def test_release_discards_before_photo(self, lifecycle, pending_report, png_bytes, blob_store):
        """Test released reports do not leave their before photo behind."""
        lifecycle.claim(pending_report.id, "collector-a")
        before_ref = lifecycle.verify_before(pending_report.id, png_bytes).report.before_image_ref

        lifecycle.release(pending_report.id, "collector-a")

        assert len(blob_store) == 1
        with pytest.raises(NotFound):
            blob_store.resolve(before_ref)


class TestLostUpdates:
    """Test suite for verifications that lose a concurrent update."""

    def setup_method(self):
        """Setup test fixtures."""
        self.store = RacingReportStore()

    def _lifecycle(self, users, vision_model, blob_store, **kwargs):
        return ReportLifecycle(
            store=self.store,
            users=users,
            verifier=VisionVerifier(model=vision_model),
            blob_store=blob_store,
            confidence_threshold=0.6,
            collection_radius_km=kwargs.get("collection_radius_km", 10.0),
            clock=lambda: FIXED_NOW,
        )

    def _claimed(self, lifecycle, png_bytes, classification):
        report = lifecycle.create(
            "reporter-1", png_bytes, Location(latitude=REPORT_LAT, longitude=REPORT_LON), classification,
        )
        lifecycle.claim(report.id, "collector-a")
        return report

    def test_lost_before_update_discards_photo(self, users, vision_model, blob_store, png_bytes, classification):
        """Test the before photo is removed when the report changed underneath."""
        lifecycle = self._lifecycle(users, vision_model, blob_store)
        report = self._claimed(lifecycle, png_bytes, classification)
        self.store.lose_next = True

        with pytest.raises(InvalidState):
            lifecycle.verify_before(report.id, png_bytes)

        assert len(blob_store) == 1
        assert lifecycle.get(report.id).before_image_ref is None

    def test_lost_completion_discards_photo(self, users, vision_model, blob_store, png_bytes, classification):
        """Test the after photo is removed when completion loses the update."""
        lifecycle = self._lifecycle(users, vision_model, blob_store)
        report = self._claimed(lifecycle, png_bytes, classification)
        lifecycle.verify_before(report.id, png_bytes)
        self.store.lose_next = True

        with pytest.raises(InvalidState):
            lifecycle.verify_after_and_complete(report.id, png_bytes, NEAR_POINT)

        assert len(blob_store) == 2
        assert lifecycle.get(report.id).status == ReportStatus.IN_PROGRESS

    def test_collection_radius_is_configurable(self, users, vision_model, blob_store, png_bytes, classification):
        """Test a tighter radius rejects a point about 110 m away."""
        lifecycle = self._lifecycle(users, vision_model, blob_store, collection_radius_km=0.05)
        report = self._claimed(lifecycle, png_bytes, classification)
        lifecycle.verify_before(report.id, png_bytes)

        with pytest.raises(VerificationFailed) as exc_info:
            lifecycle.verify_after_and_complete(report.id, png_bytes, NEAR_POINT)

        assert exc_info.value.failed_checks == ["location"]
