import logging
from datetime import date
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from campaign_manager.aggregation import (
    filter_metrics_by_date_range,
    rank_top_campaigns_by_conversions,
    resolve_date_range,
    summarize_campaign_performance,
    summarize_dashboard,
    summarize_metric_row,
)
from campaign_manager.config import settings
from campaign_manager.models import Campaign, CampaignAsset, CampaignMetric, CampaignStatus
from campaign_manager.schema import (
    AssetResponse,
    CampaignPerformance,
    CampaignRequest,
    CampaignResponse,
    CampaignSummary,
    DashboardSummary,
    MetricRowSummary,
)
from campaign_manager.storage import AssetStorage

log = logging.getLogger(__name__)


class CampaignServiceError(Exception):
    status_code = 400


class CampaignNotFound(CampaignServiceError):
    status_code = 404


class AssetNotFound(CampaignServiceError):
    status_code = 404


class AccessDenied(CampaignServiceError):
    status_code = 403


class InvalidCredentials(CampaignServiceError):
    status_code = 401


class EmailAlreadyRegistered(CampaignServiceError):
    status_code = 409


class InvalidAsset(CampaignServiceError):
    pass


class CampaignStore:
    """Campaign and metric queries shared by the services below."""

    def __init__(self, db: Session):
        self.db = db

    def get_campaigns_for_user(
        self, user_id: UUID, status: Optional[CampaignStatus] = None
    ) -> List[Campaign]:
        query = select(Campaign).where(Campaign.user_id == user_id)
        if status is not None:
            query = query.where(Campaign.status == status)
        return list(self.db.scalars(query.order_by(Campaign.created_at)))

    def get_metrics_for_campaigns(self, campaign_ids: List[UUID]) -> List[CampaignMetric]:
        if not campaign_ids:
            return []
        query = select(CampaignMetric).where(CampaignMetric.campaign_id.in_(campaign_ids))
        return list(self.db.scalars(query))

    def get_metrics_for_campaign(
        self,
        campaign_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[CampaignMetric]:
        query = select(CampaignMetric).where(CampaignMetric.campaign_id == campaign_id)
        if start_date is not None:
            query = query.where(CampaignMetric.date >= start_date)
        if end_date is not None:
            query = query.where(CampaignMetric.date <= end_date)
        return list(self.db.scalars(query))

    def get_owned_campaign(self, campaign_id: UUID, user_id: UUID, action: str) -> Campaign:
        campaign = self.db.get(Campaign, campaign_id)
        if campaign is None:
            raise CampaignNotFound(f"Campaign not found with id: {campaign_id}")

        if campaign.user_id != user_id:
            log.warning(
                "User %s attempted to %s campaign %s owned by user %s",
                user_id,
                action,
                campaign_id,
                campaign.user_id,
            )
            raise AccessDenied(f"You don't have permission to {action} this campaign")

        return campaign

    def count_assets(self, campaign_id: UUID) -> int:
        query = select(func.count(CampaignAsset.id)).where(
            CampaignAsset.campaign_id == campaign_id
        )
        return self.db.scalar(query) or 0


class CampaignService:
    def __init__(self, db: Session, storage: Optional[AssetStorage] = None):
        self.db = db
        self.store = CampaignStore(db)
        self.storage = storage or AssetStorage()

    def _to_response(self, campaign: Campaign) -> CampaignResponse:
        response = CampaignResponse.model_validate(campaign)
        response.asset_count = self.store.count_assets(campaign.id)
        return response

    def create_campaign(self, user_id: UUID, request: CampaignRequest) -> CampaignResponse:
        log.info("Creating new campaign for user: %s", user_id)

        campaign = Campaign(
            user_id=user_id,
            name=request.name,
            description=request.description,
            budget=request.budget,
            start_date=request.start_date,
            end_date=request.end_date,
            target_audience=request.target_audience,
            status=request.status or CampaignStatus.DRAFT,
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)

        log.info("Created campaign %s for user %s", campaign.id, user_id)
        return self._to_response(campaign)

    def get_campaign(self, campaign_id: UUID, user_id: UUID) -> CampaignResponse:
        log.debug("Retrieving campaign %s for user %s", campaign_id, user_id)
        campaign = self.store.get_owned_campaign(campaign_id, user_id, "access")
        return self._to_response(campaign)

    def get_campaigns(
        self, user_id: UUID, status: Optional[CampaignStatus] = None
    ) -> List[CampaignSummary]:
        log.debug("Retrieving campaigns for user %s with status filter %s", user_id, status)
        campaigns = self.store.get_campaigns_for_user(user_id, status)
        return [CampaignSummary.model_validate(c) for c in campaigns]

    def update_campaign(
        self, campaign_id: UUID, user_id: UUID, request: CampaignRequest
    ) -> CampaignResponse:
        log.info("Updating campaign %s for user %s", campaign_id, user_id)
        campaign = self.store.get_owned_campaign(campaign_id, user_id, "update")

        campaign.name = request.name
        campaign.description = request.description
        campaign.budget = request.budget
        campaign.start_date = request.start_date
        campaign.end_date = request.end_date
        campaign.target_audience = request.target_audience
        if request.status is not None:
            campaign.status = request.status

        self.db.commit()
        self.db.refresh(campaign)
        return self._to_response(campaign)

    def delete_campaign(self, campaign_id: UUID, user_id: UUID) -> None:
        """Delete a campaign together with its metrics and assets."""
        log.info("Deleting campaign %s for user %s", campaign_id, user_id)
        campaign = self.store.get_owned_campaign(campaign_id, user_id, "delete")

        storage_keys = list(
            self.db.scalars(
                select(CampaignAsset.storage_key).where(
                    CampaignAsset.campaign_id == campaign_id
                )
            )
        )
        try:
            self.db.execute(
                delete(CampaignMetric).where(CampaignMetric.campaign_id == campaign_id)
            )
            self.db.execute(
                delete(CampaignAsset).where(CampaignAsset.campaign_id == campaign_id)
            )
            self.db.delete(campaign)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # files go only once the rows are gone for good
        for key in storage_keys:
            self.storage.delete(key)

        log.info("Deleted campaign %s and %s assets", campaign_id, len(storage_keys))


class AssetService:
    def __init__(self, db: Session, storage: Optional[AssetStorage] = None):
        self.db = db
        self.store = CampaignStore(db)
        self.storage = storage or AssetStorage()

    def upload_asset(
        self,
        campaign_id: UUID,
        user_id: UUID,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
    ) -> AssetResponse:
        campaign = self.store.get_owned_campaign(campaign_id, user_id, "upload assets to")

        if not data:
            raise InvalidAsset("Uploaded file is empty")
        if len(data) > settings.ASSET_MAX_BYTES:
            raise InvalidAsset(
                f"Uploaded file exceeds the maximum size of {settings.ASSET_MAX_BYTES} bytes"
            )

        key = self.storage.build_key(campaign.id, file_name)
        url = self.storage.save(key, data)

        asset = CampaignAsset(
            campaign_id=campaign.id,
            file_name=file_name or "file",
            storage_key=key,
            url=url,
            file_type=content_type or "application/octet-stream",
            file_size=len(data),
        )
        self.db.add(asset)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.storage.delete(key)
            raise
        self.db.refresh(asset)

        log.info("Uploaded asset %s to campaign %s", asset.id, campaign.id)
        return AssetResponse.model_validate(asset)

    def list_assets(self, campaign_id: UUID, user_id: UUID) -> List[AssetResponse]:
        self.store.get_owned_campaign(campaign_id, user_id, "access")
        query = (
            select(CampaignAsset)
            .where(CampaignAsset.campaign_id == campaign_id)
            .order_by(CampaignAsset.uploaded_at)
        )
        return [AssetResponse.model_validate(a) for a in self.db.scalars(query)]

    def delete_asset(self, asset_id: UUID, user_id: UUID) -> None:
        asset = self.db.get(CampaignAsset, asset_id)
        if asset is None:
            raise AssetNotFound(f"Asset not found with id: {asset_id}")

        self.store.get_owned_campaign(asset.campaign_id, user_id, "delete assets of")

        key = asset.storage_key
        self.db.delete(asset)
        self.db.commit()
        self.storage.delete(key)
        log.info("Deleted asset %s", asset_id)


class DashboardService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.store = CampaignStore(db)
        self.today = today

    def get_dashboard_summary(self, user_id: UUID) -> DashboardSummary:
        log.debug("Calculating dashboard summary for user: %s", user_id)

        campaigns = self.store.get_campaigns_for_user(user_id)
        if not campaigns:
            log.debug("No campaigns found for user: %s", user_id)
            return summarize_dashboard([], [])

        rows = self.store.get_metrics_for_campaigns([c.id for c in campaigns])
        summary = summarize_dashboard(campaigns, rows)

        log.debug(
            "Dashboard summary calculated: %s campaigns, %s impressions, %s clicks",
            summary.total_campaigns,
            summary.total_impressions,
            summary.total_clicks,
        )
        return summary

    def get_campaign_metrics(
        self,
        campaign_id: UUID,
        user_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[MetricRowSummary]:
        log.debug(
            "Getting metrics for campaign %s, user %s, range %s to %s",
            campaign_id,
            user_id,
            start_date,
            end_date,
        )
        self.store.get_owned_campaign(campaign_id, user_id, "view metrics of")

        start_date, end_date = resolve_date_range(start_date, end_date, self.today)
        rows = self.store.get_metrics_for_campaign(campaign_id, start_date, end_date)
        rows = filter_metrics_by_date_range(rows, start_date, end_date)

        return [summarize_metric_row(row) for row in rows]

    def get_top_campaigns(self, user_id: UUID, limit: int) -> List[CampaignPerformance]:
        log.debug("Getting top %s campaigns by performance for user: %s", limit, user_id)

        campaigns = self.store.get_campaigns_for_user(user_id)
        if not campaigns:
            return []

        rows_by_campaign = {c.id: [] for c in campaigns}
        for row in self.store.get_metrics_for_campaigns(list(rows_by_campaign)):
            rows_by_campaign[row.campaign_id].append(row)

        performances = [
            summarize_campaign_performance(c.id, c.name, c.status, rows_by_campaign[c.id])
            for c in campaigns
        ]
        return rank_top_campaigns_by_conversions(performances, limit)
