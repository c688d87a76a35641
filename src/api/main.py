"""
EcoFlow - REST API

FastAPI application exposing waste reporting, route planning,
collection verification, hotspots and leaderboards.

Run with: uvicorn src.api.main:app --reload
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.analysis.hotspots import HotspotDetector, get_hotspot_statistics
from src.core.config import settings
from src.core.exceptions import (
    EcoFlowError,
    Forbidden,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
    VerificationFailed,
    VerificationUnavailable,
)
from src.core.geo_utils import Point
from src.core.logging import setup_logging
from src.core.rate_limit import RateLimiter, RateLimitExceeded
from src.lifecycle.lifecycle import ReportLifecycle
from src.lifecycle.models import Location, ReportStatus, User
from src.lifecycle.store import (
    InMemoryReportStore,
    InMemoryUserDirectory,
    ReportStore,
    UserDirectory,
)
from src.rewards.ledger import RewardLedger
from src.routing.route_planner import RoutePlanner
from src.storage.blob_store import BlobStore, InMemoryBlobStore
from src.vision.verifier import VisionVerifier

setup_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFound: 404,
    InvalidState: 409,
    Unauthorized: 401,
    Forbidden: 403,
    VerificationFailed: 422,
    VerificationUnavailable: 503,
    ValidationError: 400,
}

# FastAPI app
app = FastAPI(
    title="EcoFlow",
    description="Citizen waste reporting with AI-verified collection",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Services
# ============================================================================

@dataclass
class Services:
    """Wired application components."""
    store: ReportStore
    users: UserDirectory
    blob_store: BlobStore
    lifecycle: ReportLifecycle
    planner: RoutePlanner
    detector: HotspotDetector
    ledger: RewardLedger
    limiter: RateLimiter


def build_services(
    store: Optional[ReportStore] = None,
    users: Optional[UserDirectory] = None,
    blob_store: Optional[BlobStore] = None,
    verifier: Optional[VisionVerifier] = None,
    limiter: Optional[RateLimiter] = None
) -> Services:
    """
    Wire the application components.

    SQL persistence is used when DATABASE_URL is set, in-memory otherwise.
    """
    if store is None or users is None or blob_store is None:
        if settings.database_url:
            from src.database import SqlBlobStore, SqlReportStore, SqlUserDirectory, init_db

            db = init_db(settings.database_url)
            store = store if store is not None else SqlReportStore(db)
            users = users if users is not None else SqlUserDirectory(db)
            # Photos live beside the reports that reference them
            blob_store = blob_store if blob_store is not None else SqlBlobStore(db)
        else:
            store = store if store is not None else InMemoryReportStore()
            users = users if users is not None else InMemoryUserDirectory()
            blob_store = blob_store if blob_store is not None else InMemoryBlobStore()

    lifecycle = ReportLifecycle(
        store=store,
        users=users,
        verifier=verifier or VisionVerifier(),
        blob_store=blob_store,
    )
    ledger = RewardLedger(users=users)
    lifecycle.subscribe(ledger.handle)

    return Services(
        store=store,
        users=users,
        blob_store=blob_store,
        lifecycle=lifecycle,
        planner=RoutePlanner(lifecycle),
        detector=HotspotDetector(),
        ledger=ledger,
        limiter=limiter or RateLimiter(),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Dependency returning the process-wide services."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def get_caller_id(x_user_id: Optional[str] = Header(None, alias="x-user-id")) -> str:
    """Caller identity from the x-user-id header."""
    if not x_user_id:
        raise Unauthorized('userId is required in header "x-user-id"')
    return x_user_id


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(EcoFlowError)
async def ecoflow_error_handler(request: Request, exc: EcoFlowError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.reason}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Too many requests. Limit: {exc.limit}",
            "type": "RateLimitExceeded",
            "retryable": True,
        },
    )


# ============================================================================
# Pydantic Models
# ============================================================================

class LocationModel(BaseModel):
    """Report location; coordinates optional."""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class ReportCreateRequest(BaseModel):
    """Citizen waste report."""
    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(description="Image URL, data URI or base64 string")
    location: LocationModel
    ai_classification: Dict[str, Any] = Field(alias="aiClassification")


class RouteRequest(BaseModel):
    """Add or remove a report on the caller's route."""
    model_config = ConfigDict(populate_by_name=True)

    waste_id: Optional[str] = Field(None, alias="wasteId")


class VerifyBeforeRequest(BaseModel):
    """Collector's before photo."""
    image: str


class VerifyAfterRequest(BaseModel):
    """Collector's after photo and current position."""
    image: str
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class UserSyncRequest(BaseModel):
    """User profile synced from the identity provider."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    enable_collector: bool = Field(False, alias="enableCollector")
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    storage: str


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version="0.1.0",
        timestamp=datetime.utcnow().isoformat(),
        storage=type(services.store).__name__,
    )


@app.put("/api/v1/users/{user_id}", tags=["Users"])
def sync_user(
    user_id: str,
    request: UserSyncRequest,
    services: Services = Depends(get_services),
):
    """Create or update a user profile from the identity provider. Points are left untouched."""
    user = services.users.update_profile(
        User(
            id=user_id,
            name=request.name,
            enable_collector=request.enable_collector,
            city=request.city,
            state=request.state,
            country=request.country,
        )
    )
    return user.to_dict()


# ============================================================================
# Report Routes
# ============================================================================

@app.post("/api/v1/reports", status_code=201, tags=["Reports"])
def create_report(
    request: ReportCreateRequest,
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """
    Create a new waste report.

    The caller must have city, state and country set on their profile.
    Coordinates inside a known state must fall within that state.
    """
    report = services.lifecycle.create(
        reporter_id=caller_id,
        image=request.image,
        location=Location(**request.location.model_dump()),
        ai_classification=request.ai_classification,
    )
    return report.to_dict()


@app.get("/api/v1/reports", tags=["Reports"])
def list_reports(
    status: Optional[ReportStatus] = Query(None, description="Filter by status"),
    city: Optional[str] = Query(None, description="Filter by city"),
    limit: int = Query(100, ge=1, le=1000),
    services: Services = Depends(get_services),
):
    """List reports, newest first."""
    reports = services.lifecycle.list_reports(status=status, city=city)
    return {
        "count": len(reports),
        "reports": [r.to_dict() for r in reports[:limit]],
    }


@app.get("/api/v1/reports/stats/summary", tags=["Reports"])
def report_statistics(services: Services = Depends(get_services)):
    """Report counts and weights."""
    return services.lifecycle.get_statistics()


@app.get("/api/v1/reports/{report_id}", tags=["Reports"])
def get_report(report_id: str, services: Services = Depends(get_services)):
    """Get a single report."""
    return services.lifecycle.get(report_id).to_dict()


# ============================================================================
# Route Planner Routes
# ============================================================================

@app.post("/api/v1/route/add", tags=["Route"])
def add_to_route(
    request: RouteRequest,
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """Claim a PENDING report for the caller's route."""
    report = services.planner.add(caller_id, request.waste_id)
    return {
        "success": True,
        "message": "Waste added to route successfully",
        "waste": report.to_dict(),
    }


@app.post("/api/v1/route/remove", tags=["Route"])
def remove_from_route(
    request: RouteRequest,
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """Release a report from the caller's route."""
    report = services.planner.remove(caller_id, request.waste_id)
    return {
        "success": True,
        "message": "Waste removed from route successfully",
        "waste": report.to_dict(),
    }


@app.get("/api/v1/route", tags=["Route"])
def get_route(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """Caller's route, oldest report first, with a distance estimate."""
    start = Point(latitude, longitude) if latitude is not None and longitude is not None else None
    route = services.planner.list(caller_id)
    estimate = services.planner.estimate_distance(caller_id, start=start)
    return {
        "count": len(route),
        "wastes": [r.to_dict() for r in route],
        "estimate": estimate.to_dict(),
    }


# ============================================================================
# Collection Verification Routes
# ============================================================================

@app.post("/api/v1/collections/{report_id}/verify-before", tags=["Collection"])
def verify_before(
    report_id: str,
    request: VerifyBeforeRequest,
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """Compare the collector's before photo with the reported photo."""
    services.limiter.check(caller_id)
    outcome = services.lifecycle.verify_before(report_id, request.image, collector_id=caller_id)
    return outcome.to_dict()


@app.post("/api/v1/collections/{report_id}/verify-after", tags=["Collection"])
def verify_after(
    report_id: str,
    request: VerifyAfterRequest,
    caller_id: str = Depends(get_caller_id),
    services: Services = Depends(get_services),
):
    """Compare before/after photos, check location and complete the collection."""
    services.limiter.check(caller_id)
    current = (
        Point(request.latitude, request.longitude)
        if request.latitude is not None and request.longitude is not None
        else None
    )
    outcome = services.lifecycle.verify_after_and_complete(
        report_id, request.image, current, collector_id=caller_id
    )
    return outcome.to_dict()


# ============================================================================
# Hotspot Routes
# ============================================================================

@app.get("/api/v1/hotspots", tags=["Hotspots"])
def get_hotspots(
    city: Optional[str] = Query(None, description="Filter by city"),
    output_format: str = Query("json", alias="format", pattern="^(json|geojson)$"),
    services: Services = Depends(get_services),
):
    """Hotspots among unresolved reports, oldest reports visited first."""
    reports = sorted(
        services.lifecycle.list_reports(city=city),
        key=lambda r: (r.reported_at, r.id),
    )
    hotspots = services.detector.compute(reports)

    if output_format == "geojson":
        return {
            "type": "FeatureCollection",
            "features": [h.to_geojson() for h in hotspots],
        }

    return {
        "count": len(hotspots),
        "hotspots": [h.to_dict() for h in hotspots],
        "statistics": get_hotspot_statistics(hotspots),
    }


# ============================================================================
# Leaderboard Routes
# ============================================================================

@app.get("/api/v1/leaderboard/{board}", tags=["Leaderboard"])
def get_leaderboard(
    board: str,
    limit: int = Query(20, ge=1, le=100),
    x_user_id: Optional[str] = Header(None, alias="x-user-id"),
    services: Services = Depends(get_services),
):
    """Leaderboard (global, reporters, collectors) and the caller's rank."""
    entries = services.ledger.leaderboard(board, limit=limit)

    my_rank: Optional[int] = None
    if x_user_id:
        try:
            my_rank = services.ledger.rank(x_user_id, board)
        except NotFound:
            my_rank = None

    return {
        "board": board,
        "entries": [e.to_dict() for e in entries],
        "my_rank": my_rank,
    }


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
