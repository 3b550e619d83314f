"""
Dashboard Service — fetch a snapshot per view, then aggregate it.

Each view asks the record source only for the columns and ordering it needs.
A SourceError propagates unchanged; no view is ever zero-filled after a
failed fetch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable
from zoneinfo import ZoneInfo

from horse_dashboard.config import settings
from horse_dashboard.models.dashboard import (
    DailySeries,
    DashboardOverview,
    DashboardSummary,
    FunnelStep,
    RecordPage,
    StageCount,
)
from horse_dashboard.services import metrics
from horse_dashboard.services.records import (
    RecordSource,
    SourceError,
    get_record_source,
)

logger = logging.getLogger(__name__)


def _display_tz() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)


async def get_summary(source: RecordSource | None = None) -> DashboardSummary:
    """KPI cards over the full record set."""
    source = source or get_record_source()
    records = await source.fetch_all()
    summary = metrics.compute_summary(records)
    logger.debug("Calculated stats: %s", summary)
    return summary


async def get_daily_interactions(source: RecordSource | None = None) -> DailySeries:
    """Interactions per day, last window of days."""
    source = source or get_record_source()
    records = await source.fetch_all(columns=["created_at"], order="asc")
    return metrics.daily_interactions(
        records, _display_tz(), window=settings.daily_window_days
    )


async def get_daily_conversions(source: RecordSource | None = None) -> DailySeries:
    """Conversions per day, last window of days."""
    source = source or get_record_source()
    records = await source.fetch_all(columns=["created_at", "finish"], order="asc")
    return metrics.daily_conversions(
        records, _display_tz(), window=settings.daily_window_days
    )


async def get_daily_revenue(source: RecordSource | None = None) -> DailySeries:
    """Placeholder revenue per day (conversions x configured unit value)."""
    source = source or get_record_source()
    records = await source.fetch_all(columns=["created_at", "finish"], order="asc")
    return metrics.daily_revenue(
        records,
        settings.revenue_per_conversion,
        _display_tz(),
        window=settings.daily_window_days,
    )


async def get_stage_distribution(
    source: RecordSource | None = None, *, labeled: bool = True
) -> list[StageCount]:
    """Top stages by record count."""
    source = source or get_record_source()
    records = await source.fetch_all(columns=["stage"])
    return metrics.stage_distribution(
        records, labeled=labeled, limit=settings.top_stages_limit
    )


async def get_funnel(source: RecordSource | None = None) -> list[FunnelStep]:
    """Five-stage funnel with drop-off rates."""
    source = source or get_record_source()
    records = await source.fetch_all(columns=["stage"])
    return metrics.compute_funnel(records)


async def list_records(
    limit: int, offset: int = 0, source: RecordSource | None = None
) -> RecordPage:
    """Raw listing, newest first."""
    source = source or get_record_source()
    items, total = await source.fetch_page(limit, offset)
    return RecordPage(items=items, total=total, limit=limit, offset=offset)


async def get_overview(source: RecordSource | None = None) -> DashboardOverview:
    """All views, fetched concurrently.

    A view whose fetch fails is left as None and named in ``errors``; the
    others are returned normally. Errors other than SourceError propagate.
    """
    source = source or get_record_source()
    views: dict[str, Awaitable[Any]] = {
        "summary": get_summary(source),
        "daily_interactions": get_daily_interactions(source),
        "daily_conversions": get_daily_conversions(source),
        "daily_revenue": get_daily_revenue(source),
        "stages": get_stage_distribution(source),
        "funnel": get_funnel(source),
    }
    results = await asyncio.gather(*views.values(), return_exceptions=True)

    fields: dict[str, Any] = {}
    errors: list[str] = []
    for name, result in zip(views, results):
        if isinstance(result, SourceError):
            logger.warning("Overview: %s unavailable: %s", name, result)
            errors.append(name)
        elif isinstance(result, BaseException):
            raise result
        else:
            fields[name] = result

    return DashboardOverview(**fields, errors=errors)
