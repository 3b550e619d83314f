"""
Metrics Engine — pure aggregations over a snapshot of interaction records.

Every function here is synchronous and side-effect free: identical input
always yields identical output. Divisions by zero resolve to 0 or None,
never raise.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

from horse_dashboard.models.dashboard import (
    DailyPoint,
    DailySeries,
    DashboardSummary,
    FunnelStep,
    StageCount,
)
from horse_dashboard.models.records import InteractionRecord

logger = logging.getLogger(__name__)

# =============================================================================
# STAGE TABLES
# =============================================================================

STAGE_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "rapport_inicial": "Contato Inicial",
        "apresentacao_produto": "Apresentação do Produto",
        "validacao_dores_e_culpas": "Validação de Dores e Culpas",
        "pitch_direto": "Pitch Direto",
        "quebra_de_objecao": "Quebra de Objeções",
    }
)

# Expected linear progression through the funnel
FUNNEL_STAGES: tuple[str, ...] = (
    "rapport_inicial",
    "apresentacao_produto",
    "validacao_dores_e_culpas",
    "pitch_direto",
    "quebra_de_objecao",
)

UNKNOWN_STAGE = "Unknown"

DEFAULT_WINDOW_DAYS = 30
DEFAULT_TOP_STAGES = 5

_TENTH = Decimal("0.1")


def _round_half_up(value: float) -> Decimal:
    """One decimal place, ties away from zero like the dashboard's toFixed(1)."""
    # Decimal(value) is the exact binary value, so 1.005 stays below the tie
    return Decimal(value).quantize(_TENTH, rounding=ROUND_HALF_UP)


def _one_decimal(value: float) -> str:
    return str(_round_half_up(value))


# =============================================================================
# SUMMARY
# =============================================================================


def compute_summary(records: Sequence[InteractionRecord]) -> DashboardSummary:
    """KPI card statistics.

    Only explicit ``True`` counts as a conversion or an active session; records
    without a message count are left out of the average entirely.
    """
    total_users = len(records)
    conversions = sum(1 for r in records if r.is_finished is True)
    currently_talking = sum(1 for r in records if r.is_talking is True)

    conversion_rate = conversions / total_users * 100 if total_users > 0 else 0.0

    message_counts = [r.message_count for r in records if r.message_count is not None]
    avg_messages = (
        sum(message_counts) / len(message_counts) if message_counts else 0.0
    )

    return DashboardSummary(
        total_users=total_users,
        conversions=conversions,
        conversion_rate=_one_decimal(conversion_rate),
        currently_talking=currently_talking,
        avg_messages=_one_decimal(avg_messages),
    )


# =============================================================================
# DAILY SERIES
# =============================================================================


def _bucket_by_day(
    records: Iterable[InteractionRecord],
    weight: Callable[[InteractionRecord], int | float | None],
    tz: tzinfo,
    window: int,
) -> list[DailyPoint]:
    """Sum ``weight`` per calendar day in ``tz``, keeping the last ``window`` days.

    Records whose weight is None get no bucket.
    """
    buckets: dict[date, int | float] = {}
    for record in records:
        value = weight(record)
        if value is None:
            continue
        day = record.created_at.astimezone(tz).date()
        buckets[day] = buckets.get(day, 0) + value

    days = sorted(buckets)[-window:] if window > 0 else []
    return [DailyPoint(date=day.isoformat(), value=buckets[day]) for day in days]


def daily_interactions(
    records: Iterable[InteractionRecord],
    tz: tzinfo,
    window: int = DEFAULT_WINDOW_DAYS,
) -> DailySeries:
    """Records created per calendar day."""
    return DailySeries(
        metric="interactions",
        points=_bucket_by_day(records, lambda r: 1, tz, window),
    )


def daily_conversions(
    records: Iterable[InteractionRecord],
    tz: tzinfo,
    window: int = DEFAULT_WINDOW_DAYS,
) -> DailySeries:
    """Finished (converted) records per calendar day."""
    return DailySeries(
        metric="conversions",
        points=_bucket_by_day(
            records, lambda r: 1 if r.is_finished is True else None, tz, window
        ),
    )


def daily_revenue(
    records: Iterable[InteractionRecord],
    revenue_per_conversion: float,
    tz: tzinfo,
    window: int = DEFAULT_WINDOW_DAYS,
) -> DailySeries:
    """Conversions per day times a fixed unit revenue."""
    return DailySeries(
        metric="revenue",
        points=_bucket_by_day(
            records,
            lambda r: revenue_per_conversion if r.is_finished is True else None,
            tz,
            window,
        ),
    )


# =============================================================================
# STAGE DISTRIBUTION
# =============================================================================


def stage_label(stage: str | None, labeled: bool = True) -> str:
    """Display bucket for a raw stage value."""
    if not stage:
        return UNKNOWN_STAGE
    if labeled:
        return STAGE_LABELS.get(stage, stage)
    return stage


def stage_distribution(
    records: Iterable[InteractionRecord],
    *,
    labeled: bool = True,
    limit: int = DEFAULT_TOP_STAGES,
) -> list[StageCount]:
    """Most common stages, descending by count.

    Missing stages are counted under "Unknown"; ties keep first-seen order.
    """
    counts = Counter(stage_label(r.stage, labeled) for r in records)
    # sorted() is stable, so equal counts stay in insertion order
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [StageCount(label=label, count=count) for label, count in ranked[:limit]]


# =============================================================================
# FUNNEL
# =============================================================================


def _pct(part: int, whole: int) -> float:
    return float(_round_half_up(part / whole * 100))


def compute_funnel(
    records: Iterable[InteractionRecord],
    stages: Sequence[str] = FUNNEL_STAGES,
) -> list[FunnelStep]:
    """Counts, share of the first stage and stage-over-stage drop-off.

    Stage values outside ``stages`` (including None) are ignored. A step's
    drop rate is None when it is the first step, when the previous step is
    empty, or when the step itself is empty.
    """
    canonical = set(stages)
    counts = Counter(r.stage for r in records if r.stage in canonical)
    base = counts[stages[0]] if stages else 0

    steps: list[FunnelStep] = []
    for i, stage in enumerate(stages):
        count = counts[stage]
        percentage = _pct(count, base) if base > 0 else 0.0

        drop_rate: float | None = None
        if i > 0:
            previous = counts[stages[i - 1]]
            if previous > 0 and count > 0:
                drop_rate = _pct(previous - count, previous)

        steps.append(
            FunnelStep(
                stage=stage,
                label=STAGE_LABELS.get(stage, stage),
                count=count,
                percentage=percentage,
                drop_rate=drop_rate,
            )
        )

    logger.debug("Funnel counts: %s", [s.count for s in steps])
    return steps
