"""
Dashboard aggregation over already-loaded campaigns and metric rows.

Every function here is pure: callers fetch the rows, these functions reduce
them. Rows are any objects exposing ``date``, ``impressions``, ``clicks`` and
``conversions`` (ORM ``CampaignMetric`` instances in the app); campaigns expose
``status`` and ``budget``.
"""
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from campaign_manager.models import CampaignStatus
from campaign_manager.schema import (
    CampaignPerformance,
    DashboardSummary,
    MetricRowSummary,
)

DEFAULT_LOOKBACK_DAYS = 30

Row = TypeVar("Row")


class InvalidRange(ValueError):
    pass


def compute_rate(numerator: int, denominator: int) -> float:
    """
    Percentage ``numerator / denominator * 100`` rounded to 2 decimals.

    The value is scaled by 10000, rounded half-up to an integer and divided by
    100, so 1/8 gives 12.5 and 1/800 gives 0.13. A zero denominator gives 0.0.
    """
    if not denominator:
        return 0.0
    scaled = (Decimal(numerator) * 10000 / Decimal(denominator)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return float(scaled / 100)


def summarize_metric_row(row) -> MetricRowSummary:
    return MetricRowSummary(
        date=row.date,
        impressions=row.impressions,
        clicks=row.clicks,
        conversions=row.conversions,
        click_through_rate=compute_rate(row.clicks, row.impressions),
        conversion_rate=compute_rate(row.conversions, row.clicks),
    )


def _totals(rows: Iterable) -> tuple[int, int, int]:
    impressions = clicks = conversions = 0
    for row in rows:
        impressions += row.impressions
        clicks += row.clicks
        conversions += row.conversions
    return impressions, clicks, conversions


def summarize_campaign_performance(
    campaign_id: UUID, name: str, status: CampaignStatus, rows: Iterable
) -> CampaignPerformance:
    impressions, clicks, conversions = _totals(rows)
    return CampaignPerformance(
        campaign_id=campaign_id,
        campaign_name=name,
        status=status,
        total_impressions=impressions,
        total_clicks=clicks,
        total_conversions=conversions,
        click_through_rate=compute_rate(clicks, impressions),
        conversion_rate=compute_rate(conversions, clicks),
    )


def summarize_dashboard(campaigns: Sequence, rows: Iterable) -> DashboardSummary:
    """
    Per-user totals across ``campaigns`` and all of their metric ``rows``.

    With no campaigns the zero summary is returned and ``rows`` is never read.
    """
    if not campaigns:
        return DashboardSummary()

    active = sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE)
    budget = sum(
        (Decimal(c.budget) for c in campaigns if c.budget is not None), Decimal("0")
    )
    impressions, clicks, conversions = _totals(rows)

    return DashboardSummary(
        total_campaigns=len(campaigns),
        active_campaigns=active,
        total_budget=budget,
        total_impressions=impressions,
        total_clicks=clicks,
        total_conversions=conversions,
        average_click_through_rate=compute_rate(clicks, impressions),
        average_conversion_rate=compute_rate(conversions, clicks),
    )


def rank_top_campaigns_by_conversions(
    performances: Iterable[CampaignPerformance], limit: int
) -> list[CampaignPerformance]:
    # sorted() is stable, equal conversions keep their input order
    ranked = sorted(performances, key=lambda p: p.total_conversions, reverse=True)
    return ranked[: max(1, limit)]


def resolve_date_range(
    start_date: Optional[date],
    end_date: Optional[date],
    today: Callable[[], date] = date.today,
) -> tuple[date, date]:
    """
    Fill in missing bounds (the last 30 days ending today) and check order.

    ``today`` is called at most once.
    """
    if start_date is None or end_date is None:
        current = today()
        if start_date is None:
            start_date = current - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        if end_date is None:
            end_date = current

    if end_date < start_date:
        raise InvalidRange("End date cannot be before start date")

    return start_date, end_date


def filter_metrics_by_date_range(
    rows: Iterable[Row],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Callable[[], date] = date.today,
) -> list[Row]:
    """Rows dated within the resolved ``[start_date, end_date]``, oldest first."""
    start_date, end_date = resolve_date_range(start_date, end_date, today)

    selected = [row for row in rows if start_date <= row.date <= end_date]
    return sorted(selected, key=lambda row: row.date)
