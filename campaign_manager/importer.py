"""
Bulk load of daily campaign metrics from CSV exports.

Expected columns: campaign_id, date, impressions, clicks, conversions.
"""
import logging
import uuid

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from campaign_manager.models import Campaign, CampaignMetric

log = logging.getLogger(__name__)

METRIC_COLUMNS = ["impressions", "clicks", "conversions"]


def clean_metric_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalise types and aggregate duplicate (campaign_id, date) rows.

    Counts that are missing or not numeric become 0, negative counts are
    clipped to 0, and rows without a parseable date are dropped.
    """
    df = df.copy()
    df["campaign_id"] = df["campaign_id"].astype(str).str.strip().str.lower()
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.date
    df = df.dropna(subset=["date"])

    for column in METRIC_COLUMNS:
        df[column] = (
            pd.to_numeric(df[column], errors="coerce").fillna(0).clip(lower=0).astype(int)
        )

    # aggregate duplicate rows
    return df.groupby(["campaign_id", "date"], as_index=False).agg(
        {"impressions": "sum", "clicks": "sum", "conversions": "sum"}
    )


def import_metric_frame(db: Session, df: pd.DataFrame) -> int:
    """Insert cleaned rows for campaigns that exist; returns rows inserted."""
    cleaned = clean_metric_frame(df)

    known_ids = {str(cid) for cid in db.scalars(select(Campaign.id))}
    skipped = cleaned[~cleaned["campaign_id"].isin(known_ids)]
    if not skipped.empty:
        log.warning(
            "Skipping %s rows for unknown campaigns: %s",
            len(skipped),
            sorted(skipped["campaign_id"].unique()),
        )
    cleaned = cleaned[cleaned["campaign_id"].isin(known_ids)]

    metrics = []
    for _, row in cleaned.iterrows():
        metric = CampaignMetric(
            campaign_id=uuid.UUID(row["campaign_id"]),
            date=row["date"],
            impressions=int(row["impressions"]),
            clicks=int(row["clicks"]),
            conversions=int(row["conversions"]),
        )
        metrics.append(metric)

    db.add_all(metrics)
    db.commit()
    log.info("Imported %s campaign metric rows", len(metrics))
    return len(metrics)


def import_metrics_csv(db: Session, path: str) -> int:
    return import_metric_frame(db, pd.read_csv(path))
