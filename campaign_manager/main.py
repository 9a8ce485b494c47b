import logging
import random
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from campaign_manager.aggregation import InvalidRange
from campaign_manager.auth import AuthService, get_current_user
from campaign_manager.config import settings
from campaign_manager.database import get_db, get_db_session, init_db, test_db_connection
from campaign_manager.models import CampaignStatus, User
from campaign_manager.schema import (
    AssetResponse,
    AuthResponse,
    CampaignPerformance,
    CampaignRequest,
    CampaignResponse,
    CampaignSummary,
    DashboardSummary,
    LoginRequest,
    MetricRowSummary,
    RegisterRequest,
)
from campaign_manager.seeding import seed_campaign_metrics, seed_demo_user
from campaign_manager.service import (
    AssetService,
    CampaignService,
    CampaignServiceError,
    DashboardService,
)
from campaign_manager.storage import AssetStorage

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
log = logging.getLogger("campaign_manager")

DEFAULT_TOP_CAMPAIGNS = 5
MAX_TOP_CAMPAIGNS = 50


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    Path(settings.ASSET_STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    if settings.SEED_DEMO_DATA:
        with get_db_session() as db:
            seed_demo_user(db)
            seed_campaign_metrics(db, random.Random(settings.SEED_RANDOM_SEED))
    log.info("Application started")
    yield


app = FastAPI(
    title="Campaign Manager API",
    description="Advertising campaign management with performance dashboards",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

if settings.ASSET_BASE_URL.startswith("/"):
    app.mount(
        settings.ASSET_BASE_URL,
        StaticFiles(directory=settings.ASSET_STORAGE_DIR, check_dir=False),
        name="assets",
    )


@app.exception_handler(CampaignServiceError)
async def campaign_service_error_handler(request: Request, exc: CampaignServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(InvalidRange)
async def invalid_range_handler(request: Request, exc: InvalidRange):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ────────────────────────────────────────────
# Dependencies
# ────────────────────────────────────────────

def get_asset_storage() -> AssetStorage:
    return AssetStorage()


def get_campaign_service(
    db: Session = Depends(get_db), storage: AssetStorage = Depends(get_asset_storage)
) -> CampaignService:
    return CampaignService(db, storage)


def get_asset_service(
    db: Session = Depends(get_db), storage: AssetStorage = Depends(get_asset_storage)
) -> AssetService:
    return AssetService(db, storage)


def get_dashboard_service(db: Session = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD.")


# ────────────────────────────────────────────
# System
# ────────────────────────────────────────────

@app.get("/", include_in_schema=False)
def docs_redirect():
    return RedirectResponse(url="/docs")


@app.get("/healthz", tags=["System"])
def health():
    db_ok = test_db_connection()
    return {"status": "ok" if db_ok else "degraded", "database_ok": db_ok}


# ────────────────────────────────────────────
# Authentication
# ────────────────────────────────────────────

@app.post("/api/auth/register", status_code=status.HTTP_201_CREATED, tags=["Authentication"])
def register(request: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """
    Registers a new user account and returns a bearer token for it.
    """
    return AuthService(db).register(request)


@app.post("/api/auth/login", tags=["Authentication"])
def login(request: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    return AuthService(db).login(request)


# ────────────────────────────────────────────
# Campaigns
# ────────────────────────────────────────────

@app.post("/api/campaigns", status_code=status.HTTP_201_CREATED, tags=["Campaigns"])
def create_campaign(
    request: CampaignRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    log.info("Creating new campaign: %s", request.name)
    return service.create_campaign(user.id, request)


@app.get("/api/campaigns", tags=["Campaigns"])
def get_campaigns(
    campaign_status: Optional[CampaignStatus] = Query(
        None, alias="status", description="Only return campaigns with this status"
    ),
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> List[CampaignSummary]:
    """
    Returns the caller's campaigns, optionally filtered by status.
    """
    return service.get_campaigns(user.id, campaign_status)


@app.get("/api/campaigns/{campaign_id}", tags=["Campaigns"])
def get_campaign(
    campaign_id: UUID,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    return service.get_campaign(campaign_id, user.id)


@app.put("/api/campaigns/{campaign_id}", tags=["Campaigns"])
def update_campaign(
    campaign_id: UUID,
    request: CampaignRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    """
    Replaces the campaign's fields. A missing status keeps the current one.
    """
    return service.update_campaign(campaign_id, user.id, request)


@app.delete(
    "/api/campaigns/{campaign_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Campaigns"],
)
def delete_campaign(
    campaign_id: UUID,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
):
    """
    Deletes the campaign along with its metrics and assets.
    """
    service.delete_campaign(campaign_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ────────────────────────────────────────────
# Assets
# ────────────────────────────────────────────

@app.post(
    "/api/campaigns/{campaign_id}/assets",
    status_code=status.HTTP_201_CREATED,
    tags=["Assets"],
)
def upload_asset(
    campaign_id: UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    service: AssetService = Depends(get_asset_service),
) -> AssetResponse:
    # read at most one byte past the limit
    data = file.file.read(settings.ASSET_MAX_BYTES + 1)
    return service.upload_asset(campaign_id, user.id, file.filename, file.content_type, data)


@app.get("/api/campaigns/{campaign_id}/assets", tags=["Assets"])
def list_assets(
    campaign_id: UUID,
    user: User = Depends(get_current_user),
    service: AssetService = Depends(get_asset_service),
) -> List[AssetResponse]:
    return service.list_assets(campaign_id, user.id)


@app.delete(
    "/api/assets/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Assets"],
)
def delete_asset(
    asset_id: UUID,
    user: User = Depends(get_current_user),
    service: AssetService = Depends(get_asset_service),
):
    service.delete_asset(asset_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ────────────────────────────────────────────
# Dashboard
# ────────────────────────────────────────────

@app.get("/api/dashboard/summary", tags=["Dashboard"])
def get_dashboard_summary(
    user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardSummary:
    """
    Returns totals across all of the caller's campaigns and their metrics.

    Metrics:
    - Total / active campaigns
    - Total budget
    - Total impressions, clicks and conversions
    - Average click-through rate = clicks / impressions * 100
    - Average conversion rate = conversions / clicks * 100
    """
    log.info("Getting dashboard summary for user: %s", user.id)
    return service.get_dashboard_summary(user.id)


@app.get("/api/dashboard/campaigns/{campaign_id}/metrics", tags=["Dashboard"])
def get_campaign_metrics(
    campaign_id: UUID,
    start_date: Optional[str] = Query(
        None, description="First day to include (YYYY-MM-DD), defaults to 30 days ago"
    ),
    end_date: Optional[str] = Query(
        None, description="Last day to include (YYYY-MM-DD), defaults to today"
    ),
    user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
) -> List[MetricRowSummary]:
    """
    Returns the campaign's daily metrics in the date range, oldest first.
    """
    return service.get_campaign_metrics(
        campaign_id, user.id, parse_date(start_date), parse_date(end_date)
    )


@app.get("/api/dashboard/top-campaigns", tags=["Dashboard"])
def get_top_campaigns(
    limit: int = Query(DEFAULT_TOP_CAMPAIGNS, description="Number of campaigns (1-50)"),
    user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
) -> List[CampaignPerformance]:
    """
    Returns the caller's campaigns ranked by total conversions.
    """
    if limit < 1 or limit > MAX_TOP_CAMPAIGNS:
        log.debug("Invalid limit %s, using default %s", limit, DEFAULT_TOP_CAMPAIGNS)
        limit = DEFAULT_TOP_CAMPAIGNS
    return service.get_top_campaigns(user.id, limit)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
