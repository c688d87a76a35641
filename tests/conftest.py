"""
Pytest configuration and fixtures
"""
import io
import json
import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence

from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.lifecycle.lifecycle import ReportLifecycle
from src.lifecycle.models import Location, ReportStatus, User, WasteReport
from src.lifecycle.store import InMemoryReportStore, InMemoryUserDirectory
from src.storage.blob_store import InMemoryBlobStore
from src.vision.gemini_client import VisionModel
from src.vision.images import EncodedImage
from src.vision.verifier import VisionVerifier

FIXED_NOW = datetime(2026, 1, 15, 10, 0, 0)

# Bengaluru, Karnataka
REPORT_LAT = 12.97
REPORT_LON = 77.59


def verdict(is_valid: bool = True, confidence: float = 0.9, **details) -> str:
    """Model output text for a verdict."""
    body = {"isValid": is_valid, "confidence": confidence, "message": "ok"}
    body.update(details)
    return json.dumps(body)


class ScriptedVisionModel(VisionModel):
    """Vision model returning queued responses and recording calls."""

    def __init__(self, responses: Optional[List[str]] = None, default: Optional[str] = None):
        self.responses = list(responses or [])
        self.default = default if default is not None else verdict()
        self.calls = []

    def queue(self, *responses: str) -> None:
        self.responses.extend(responses)

    def generate(self, prompt: str, images: Sequence[EncodedImage]) -> str:
        self.calls.append((prompt, list(images)))
        if self.responses:
            response = self.responses.pop(0)
        else:
            response = self.default
        if isinstance(response, Exception):
            raise response
        return response


def make_png(color=(120, 80, 40), size=(8, 8)) -> bytes:
    """Small PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    """PNG image bytes."""
    return make_png()


@pytest.fixture
def vision_model():
    """Scripted vision model (positive verdicts by default)."""
    return ScriptedVisionModel()


@pytest.fixture
def users():
    """User directory with a reporter and two eligible collectors."""
    return InMemoryUserDirectory([
        User(id="reporter-1", name="Asha", city="Bengaluru", state="Karnataka", country="India"),
        User(id="collector-a", name="Arjun", enable_collector=True,
             city="Bengaluru", state="Karnataka", country="India"),
        User(id="collector-b", name="Bela", enable_collector=True,
             city="Bengaluru", state="Karnataka", country="India"),
        User(id="citizen-2", name="Chirag", enable_collector=False,
             city="Bengaluru", state="Karnataka", country="India"),
        User(id="incomplete", name="Dev", enable_collector=True, city="Bengaluru"),
    ])


@pytest.fixture
def store():
    return InMemoryReportStore()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def lifecycle(store, users, vision_model, blob_store):
    """Lifecycle with scripted vision model and fixed clock."""
    return ReportLifecycle(
        store=store,
        users=users,
        verifier=VisionVerifier(model=vision_model),
        blob_store=blob_store,
        confidence_threshold=0.6,
        collection_radius_km=10.0,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def classification():
    """Classifier output at report time."""
    return {"wasteType": "Plastic", "category": "Recyclable", "estimatedWeightKg": 2.5}


@pytest.fixture
def pending_report(lifecycle, png_bytes, classification):
    """PENDING report with coordinates."""
    return lifecycle.create(
        "reporter-1",
        png_bytes,
        Location(latitude=REPORT_LAT, longitude=REPORT_LON, address="MG Road"),
        classification,
    )


@pytest.fixture
def report_factory():
    """Build WasteReport objects directly, bypassing the lifecycle."""
    counter = {"n": 0}

    def _make(
        latitude: Optional[float] = REPORT_LAT,
        longitude: Optional[float] = REPORT_LON,
        status: ReportStatus = ReportStatus.PENDING,
        collector_id: Optional[str] = None,
        waste_type: str = "Plastic",
        weight: float = 1.0,
        minutes: Optional[int] = None,
    ) -> WasteReport:
        counter["n"] += 1
        n = counter["n"]
        return WasteReport(
            id=f"report-{n:03d}",
            reporter_id="reporter-1",
            original_image_ref=f"https://images.example.com/{n}.jpg",
            status=status,
            collector_id=collector_id,
            latitude=latitude,
            longitude=longitude,
            city="Bengaluru",
            state="Karnataka",
            country="India",
            waste_type=waste_type,
            category="Recyclable",
            estimated_weight_kg=weight,
            reported_at=FIXED_NOW + timedelta(minutes=minutes if minutes is not None else n),
        )

    return _make
