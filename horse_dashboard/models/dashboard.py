"""
Dashboard Models — Pydantic response models for the metrics endpoints.

Fields serialize in camelCase, the shape the dashboard frontend renders.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from horse_dashboard.models.records import InteractionRecord


class _DashboardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# SUMMARY (KPI CARDS)
# =============================================================================


class DashboardSummary(_DashboardModel):
    """Aggregate KPIs for the dashboard summary cards."""

    total_users: int
    conversions: int
    conversion_rate: str  # percent, one decimal ("12.5")
    currently_talking: int
    avg_messages: str  # one decimal; "0.0" when no record has a count


# =============================================================================
# TIMESERIES (CHARTS)
# =============================================================================

DailyMetric = Literal["interactions", "conversions", "revenue"]


class DailyPoint(_DashboardModel):
    """Single calendar day in a daily chart."""

    date: str  # YYYY-MM-DD in the display timezone
    value: int | float


class DailySeries(_DashboardModel):
    """Ascending daily buckets, most recent window only."""

    metric: DailyMetric
    points: list[DailyPoint]


# =============================================================================
# STAGES / FUNNEL
# =============================================================================


class StageCount(_DashboardModel):
    """One bar in the stage distribution chart."""

    label: str
    count: int


class FunnelStep(_DashboardModel):
    """One canonical stage of the conversion funnel."""

    stage: str
    label: str
    count: int
    percentage: float  # relative to the first stage
    drop_rate: float | None  # None for the first stage and undefined ratios


# =============================================================================
# LISTING / OVERVIEW
# =============================================================================


class RecordPage(_DashboardModel):
    """Newest-first page of raw records."""

    items: list[InteractionRecord]
    total: int
    limit: int
    offset: int


class DashboardOverview(_DashboardModel):
    """Every view in one response; a view whose fetch failed is None."""

    summary: DashboardSummary | None = None
    daily_interactions: DailySeries | None = None
    daily_conversions: DailySeries | None = None
    daily_revenue: DailySeries | None = None
    stages: list[StageCount] | None = None
    funnel: list[FunnelStep] | None = None
    errors: list[str] = []
