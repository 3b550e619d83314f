"""
Dashboard Router — derived views for the analytics dashboard.

Endpoints:
  GET  /dashboard                      — Every view at once (per-view failures)
  GET  /dashboard/summary              — KPI cards
  GET  /dashboard/daily/interactions   — Interactions per day
  GET  /dashboard/daily/conversions    — Conversions per day
  GET  /dashboard/daily/revenue        — Placeholder revenue per day
  GET  /dashboard/stages               — Top stages by count
  GET  /dashboard/funnel               — Five-stage funnel
  GET  /dashboard/records              — Raw records, newest first
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from horse_dashboard.config import settings
from horse_dashboard.models.dashboard import (
    DailySeries,
    DashboardOverview,
    DashboardSummary,
    FunnelStep,
    RecordPage,
    StageCount,
)
from horse_dashboard.services import dashboard
from horse_dashboard.services.rate_limiter import get_rate_limiter
from horse_dashboard.services.records import SourceError

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# RATE LIMITING DEPENDENCY
# =============================================================================


async def _dashboard_rate_limit(request: Request) -> None:
    """Rate limit dashboard requests per caller IP."""
    ip = request.client.host if request.client else "unknown"

    limiter = get_rate_limiter()
    if not limiter.check(f"dashboard:{ip}", settings.dashboard_rate_limit_rpm):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")


# =============================================================================
# OVERVIEW
# =============================================================================


@router.get("")
async def overview(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> DashboardOverview:
    """All views; unavailable ones are null and listed in ``errors``."""
    return await dashboard.get_overview()


# =============================================================================
# KPI CARDS
# =============================================================================


@router.get("/summary")
async def summary(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> DashboardSummary:
    try:
        return await dashboard.get_summary()
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch summary")


# =============================================================================
# DAILY SERIES
# =============================================================================


@router.get("/daily/interactions")
async def daily_interactions(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> DailySeries:
    try:
        return await dashboard.get_daily_interactions()
    except SourceError:
        raise HTTPException(
            status_code=500, detail="Failed to fetch daily interactions"
        )


@router.get("/daily/conversions")
async def daily_conversions(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> DailySeries:
    try:
        return await dashboard.get_daily_conversions()
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch daily conversions")


@router.get("/daily/revenue")
async def daily_revenue(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> DailySeries:
    try:
        return await dashboard.get_daily_revenue()
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch daily revenue")


# =============================================================================
# STAGES / FUNNEL
# =============================================================================


@router.get("/stages")
async def stages(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
    labeled: bool = Query(default=True),
) -> list[StageCount]:
    """Stage distribution; ``labeled=false`` returns raw stage keys."""
    try:
        return await dashboard.get_stage_distribution(labeled=labeled)
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch stages")


@router.get("/funnel")
async def funnel(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
) -> list[FunnelStep]:
    try:
        return await dashboard.get_funnel()
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch funnel")


# =============================================================================
# RECORDS
# =============================================================================


@router.get("/records")
async def records(
    request: Request,
    _rate: None = Depends(_dashboard_rate_limit),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> RecordPage:
    """Raw interaction records, newest first."""
    try:
        return await dashboard.list_records(limit, offset)
    except SourceError:
        raise HTTPException(status_code=500, detail="Failed to fetch records")
