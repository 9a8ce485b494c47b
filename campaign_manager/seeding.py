"""
Demo data for local development: a test user and 31 days of mock metrics per
campaign. Randomness comes from the ``random.Random`` passed in, so a seeded
generator always produces the same rows.
"""
import logging
import random
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from campaign_manager.aggregation import DEFAULT_LOOKBACK_DAYS
from campaign_manager.auth import hash_password
from campaign_manager.models import (
    Campaign,
    CampaignMetric,
    CampaignStatus,
    User,
    UserRole,
)

log = logging.getLogger(__name__)

DEMO_USER_EMAIL = "test@example.com"
DEMO_USER_PASSWORD = "password"
DEMO_USER_NAME = "Test User"

WEEKEND_FACTOR = 0.8


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def seed_demo_user(db: Session) -> User:
    user = db.scalars(select(User).where(User.email == DEMO_USER_EMAIL)).first()
    if user:
        log.info("Test user already exists with email: %s", DEMO_USER_EMAIL)
        return user

    user = User(
        email=DEMO_USER_EMAIL,
        password_hash=hash_password(DEMO_USER_PASSWORD),
        name=DEMO_USER_NAME,
        role=UserRole.USER,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("Created test user with id %s and email %s", user.id, user.email)
    return user


def base_impressions(status: CampaignStatus, rng: random.Random) -> int:
    if status == CampaignStatus.ACTIVE:
        impressions = 3000 + rng.randrange(7000)
    elif status == CampaignStatus.PAUSED:
        impressions = rng.randrange(500)
    elif status == CampaignStatus.COMPLETED:
        impressions = 1000 + rng.randrange(3000)
    else:
        impressions = rng.randrange(100)

    # daily variance of -20% .. +20%
    variance = 0.8 + rng.random() * 0.4
    return max(0, int(impressions * variance))


def generate_metric(campaign: Campaign, day: date, rng: random.Random) -> CampaignMetric:
    impressions = base_impressions(campaign.status, rng)

    ctr = 0.02 + rng.random() * 0.06
    clicks = _round_half_up(impressions * ctr)
    if impressions > 0 and clicks == 0:
        clicks = 1

    conversion_rate = 0.02 + rng.random() * 0.08
    conversions = _round_half_up(clicks * conversion_rate)

    if day.weekday() >= 5:
        impressions = int(impressions * WEEKEND_FACTOR)
        clicks = int(clicks * WEEKEND_FACTOR)
        conversions = int(conversions * WEEKEND_FACTOR)

    return CampaignMetric(
        campaign_id=campaign.id,
        date=day,
        impressions=impressions,
        clicks=clicks,
        conversions=conversions,
    )


def seed_campaign_metrics(
    db: Session, rng: random.Random, today: Optional[date] = None
) -> int:
    """
    Generate one metric row per day from ``today - 30`` to ``today`` for every
    campaign. Does nothing if any metric rows already exist.

    Returns the number of rows created.
    """
    existing = db.scalar(select(func.count(CampaignMetric.id))) or 0
    if existing:
        log.info("Campaign metrics already exist (%s records). Skipping seeding.", existing)
        return 0

    campaigns = list(db.scalars(select(Campaign).order_by(Campaign.created_at, Campaign.name)))
    if not campaigns:
        log.info("No campaigns found. Skipping metrics seeding.")
        return 0

    today = today or date.today()
    start = today - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    days = [start + timedelta(days=offset) for offset in range(DEFAULT_LOOKBACK_DAYS + 1)]

    metrics = [generate_metric(campaign, day, rng) for campaign in campaigns for day in days]
    db.add_all(metrics)
    db.commit()

    log.info(
        "Seeded %s campaign metrics for %s campaigns over %s days",
        len(metrics),
        len(campaigns),
        len(days),
    )
    return len(metrics)
