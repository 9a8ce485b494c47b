import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from campaign_manager.aggregation import (
    InvalidRange,
    compute_rate,
    filter_metrics_by_date_range,
    rank_top_campaigns_by_conversions,
    summarize_campaign_performance,
    summarize_dashboard,
    summarize_metric_row,
)
from campaign_manager.models import Campaign, CampaignMetric, CampaignStatus

TODAY = date(2024, 6, 30)


def metric(day: date, impressions: int, clicks: int, conversions: int) -> CampaignMetric:
    return CampaignMetric(
        date=day, impressions=impressions, clicks=clicks, conversions=conversions
    )


def campaign(name: str, status: CampaignStatus, budget=None) -> Campaign:
    return Campaign(id=uuid.uuid4(), name=name, status=status, budget=budget)


class ExplodingRows:
    def __iter__(self):
        raise AssertionError("metric rows should not be read")


@pytest.mark.parametrize("numerator", [0, 1, 10, 12345])
def test_compute_rate_zero_denominator(numerator):
    assert compute_rate(numerator, 0) == 0.0


@pytest.mark.parametrize(
    "numerator,denominator,expected",
    [
        (1, 3, 33.33),
        (2, 8, 25.0),
        (10, 150, 6.67),
        (1, 10, 10.0),
        (0, 100, 0.0),
        (5, 5, 100.0),
        # exact ties on the third decimal round up
        (1, 800, 0.13),
        (3, 1600, 0.19),
        (1, 8, 12.5),
    ],
)
def test_compute_rate_rounding(numerator, denominator, expected):
    assert compute_rate(numerator, denominator) == expected


def test_summarize_metric_row():
    summary = summarize_metric_row(metric(TODAY, 1000, 50, 3))

    assert summary.date == TODAY
    assert summary.impressions == 1000
    assert summary.clicks == 50
    assert summary.conversions == 3
    assert summary.click_through_rate == 5.0
    assert summary.conversion_rate == 6.0


def test_summarize_metric_row_without_traffic():
    summary = summarize_metric_row(metric(TODAY, 0, 0, 0))

    assert summary.click_through_rate == 0.0
    assert summary.conversion_rate == 0.0


def test_summarize_campaign_performance_totals():
    campaign_id = uuid.uuid4()
    rows = [metric(TODAY, 100, 10, 1), metric(TODAY - timedelta(days=1), 200, 20, 4)]

    performance = summarize_campaign_performance(
        campaign_id, "Spring sale", CampaignStatus.ACTIVE, rows
    )

    assert performance.campaign_id == campaign_id
    assert performance.campaign_name == "Spring sale"
    assert performance.status == CampaignStatus.ACTIVE
    assert performance.total_impressions == 300
    assert performance.total_clicks == 30
    assert performance.total_conversions == 5
    assert performance.click_through_rate == 10.0
    assert performance.conversion_rate == 16.67

    reversed_performance = summarize_campaign_performance(
        campaign_id, "Spring sale", CampaignStatus.ACTIVE, list(reversed(rows))
    )
    assert reversed_performance == performance


def test_summarize_campaign_performance_without_rows():
    performance = summarize_campaign_performance(
        uuid.uuid4(), "Empty", CampaignStatus.DRAFT, []
    )

    assert performance.total_impressions == 0
    assert performance.total_clicks == 0
    assert performance.total_conversions == 0
    assert performance.click_through_rate == 0.0
    assert performance.conversion_rate == 0.0


def test_summarize_dashboard_empty():
    summary = summarize_dashboard([], [])

    assert summary.total_campaigns == 0
    assert summary.active_campaigns == 0
    assert summary.total_budget == Decimal("0")
    assert summary.total_impressions == 0
    assert summary.total_clicks == 0
    assert summary.total_conversions == 0
    assert summary.average_click_through_rate == 0.0
    assert summary.average_conversion_rate == 0.0


def test_summarize_dashboard_does_not_read_rows_without_campaigns():
    summary = summarize_dashboard([], ExplodingRows())

    assert summary.total_campaigns == 0


def test_summarize_dashboard_totals():
    c1 = campaign("C1", CampaignStatus.ACTIVE, Decimal("100"))
    c2 = campaign("C2", CampaignStatus.DRAFT)
    rows = [metric(TODAY, 100, 10, 1), metric(TODAY, 50, 0, 0)]

    summary = summarize_dashboard([c1, c2], rows)

    assert summary.total_campaigns == 2
    assert summary.active_campaigns == 1
    assert summary.total_budget == Decimal("100")
    assert summary.total_impressions == 150
    assert summary.total_clicks == 10
    assert summary.total_conversions == 1
    assert summary.average_click_through_rate == 6.67
    assert summary.average_conversion_rate == 10.0

    assert summarize_dashboard([c2, c1], list(reversed(rows))) == summary


def test_summarize_dashboard_rounds_budget_half_up():
    summary = summarize_dashboard(
        [
            campaign("A", CampaignStatus.PAUSED, Decimal("10.005")),
            campaign("B", CampaignStatus.COMPLETED, Decimal("0.10")),
        ],
        [],
    )

    assert summary.total_budget == Decimal("10.11")
    assert summary.active_campaigns == 0


def _performance(name: str, conversions: int):
    return summarize_campaign_performance(
        uuid.uuid4(), name, CampaignStatus.ACTIVE, [metric(TODAY, 1000, 100, conversions)]
    )


def test_rank_top_campaigns_by_conversions():
    performances = [_performance("a", 5), _performance("b", 20), _performance("c", 1)]

    top = rank_top_campaigns_by_conversions(performances, 2)

    assert [p.campaign_name for p in top] == ["b", "a"]


def test_rank_top_campaigns_keeps_input_order_for_ties():
    performances = [
        _performance("first", 3),
        _performance("best", 9),
        _performance("second", 3),
        _performance("third", 3),
    ]

    top = rank_top_campaigns_by_conversions(performances, 10)

    assert [p.campaign_name for p in top] == ["best", "first", "second", "third"]


@pytest.mark.parametrize("limit", [0, -3])
def test_rank_top_campaigns_returns_at_least_one(limit):
    performances = [_performance("a", 5), _performance("b", 20)]

    top = rank_top_campaigns_by_conversions(performances, limit)

    assert [p.campaign_name for p in top] == ["b"]


def test_rank_top_campaigns_empty():
    assert rank_top_campaigns_by_conversions([], 5) == []


def test_filter_metrics_invalid_range():
    with pytest.raises(InvalidRange, match="End date cannot be before start date"):
        filter_metrics_by_date_range([], date(2024, 6, 2), date(2024, 6, 1))


def test_filter_metrics_invalid_range_after_defaulting():
    # start in the future, end defaults to today
    with pytest.raises(InvalidRange):
        filter_metrics_by_date_range([], TODAY + timedelta(days=1), None, today=lambda: TODAY)


def test_filter_metrics_defaults_to_last_30_days():
    rows = [
        metric(TODAY + timedelta(days=1), 1, 1, 1),
        metric(TODAY, 2, 2, 2),
        metric(TODAY - timedelta(days=31), 3, 3, 3),
        metric(TODAY - timedelta(days=30), 4, 4, 4),
        metric(TODAY - timedelta(days=10), 5, 5, 5),
    ]
    calls = []

    def today():
        calls.append(1)
        return TODAY

    selected = filter_metrics_by_date_range(rows, today=today)

    assert [row.impressions for row in selected] == [4, 5, 2]
    assert [row.date for row in selected] == sorted(row.date for row in selected)
    assert len(calls) == 1


def test_filter_metrics_explicit_range_is_inclusive_and_sorted():
    start, end = date(2024, 1, 10), date(2024, 1, 12)
    rows = [
        metric(date(2024, 1, 12), 12, 0, 0),
        metric(date(2024, 1, 9), 9, 0, 0),
        metric(date(2024, 1, 10), 10, 0, 0),
        metric(date(2024, 1, 13), 13, 0, 0),
        metric(date(2024, 1, 11), 11, 0, 0),
    ]

    def today():
        raise AssertionError("clock should not be read when both bounds are given")

    selected = filter_metrics_by_date_range(rows, start, end, today=today)

    assert [row.impressions for row in selected] == [10, 11, 12]


def test_filter_metrics_single_day_range():
    day = date(2024, 3, 1)
    rows = [metric(day, 1, 0, 0), metric(day + timedelta(days=1), 2, 0, 0)]

    selected = filter_metrics_by_date_range(rows, day, day)

    assert [row.impressions for row in selected] == [1]
