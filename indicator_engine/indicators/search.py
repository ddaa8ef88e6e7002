"""
Search-Domain Calculators

Indicators computed from search-performance rows only:
- position_change: impression-weighted ranking movement per query
- brand_vs_generic: share of clicks from queries without a brand keyword
"""

from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple, Union

import polars as pl
import structlog

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.base import (
    build_result,
    resolve_config,
    round_or_none,
    safe_ratio,
)
from indicator_engine.indicators.classification import (
    change_percent,
    determine_confidence,
    determine_priority,
    thresholds_for,
)
from indicator_engine.indicators.frames import in_period, rows_by_key, search_frame, weighted_position
from indicator_engine.indicators.periods import PeriodLabel, compute_periods
from indicator_engine.indicators.records import SearchPerformanceRow
from indicator_engine.indicators.results import (
    BrandMixPayload,
    IndicatorContext,
    IndicatorResult,
    PositionChangePayload,
    QueryClassStats,
    QueryPositionChange,
)
from indicator_engine.indicators.types import IndicatorKind

logger = structlog.get_logger(__name__)

STABLE_POSITION_BAND = 0.5
SIGNIFICANT_POSITION_CHANGE = 3.0
MAX_SIGNIFICANT_CHANGES = 10
MAX_TOP_QUERIES = 5
POSITION_PRIORITY_SCALE = 5

# (min |delta|, min impressions, impact), first match wins
IMPACT_RULES: List[Tuple[float, int, str]] = [
    (5.0, 100, "high"),
    (3.0, 50, "medium"),
]
_IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}

# (min generic share, health, recommendation), first match wins
HEALTH_TIERS: List[Tuple[float, str, str]] = [
    (50.0, "healthy", "Generic search drives most clicks; keep investing in category and product content."),
    (30.0, "moderate", "Expand content for generic product queries to reduce reliance on brand searches."),
    (15.0, "brand_dependent", "Traffic leans on brand searches; prioritise SEO for non-brand product terms."),
    (0.0, "very_brand_dependent", "Almost all clicks are brand searches; new-customer acquisition via search is minimal."),
]


def _impact(delta: float, impressions: int) -> str:
    for min_delta, min_impressions, impact in IMPACT_RULES:
        if abs(delta) >= min_delta and impressions >= min_impressions:
            return impact
    return "low"


def _aggregate_queries(window: pl.DataFrame) -> pl.DataFrame:
    return window.group_by("query").agg(
        pl.col("clicks").sum(),
        pl.col("impressions").sum(),
        weighted_position().alias("avg_position"),
    )


def _window_position(window: pl.DataFrame) -> Optional[float]:
    if window.height == 0:
        return None
    return float(window.select(weighted_position()).item())


# =============================================================================
# POSITION CHANGE
# =============================================================================

def calculate_position_change(
    rows: Sequence[SearchPerformanceRow],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Ranking movement between windows.

    A positive change means the average position number went down, i.e. the
    site ranks higher. Per-query deltas only cover queries seen in both
    windows. The headline value is the movement of the overall weighted
    average position.
    """
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.POSITION_CHANGE
    thresholds = thresholds_for(kind)

    frame = search_frame(rows)
    cur = in_period(frame, current)
    prev = in_period(frame, comparison)

    cur_queries = rows_by_key(_aggregate_queries(cur), "query")
    prev_queries = rows_by_key(_aggregate_queries(prev), "query")

    changes: List[QueryPositionChange] = []
    for query, now in cur_queries.items():
        before = prev_queries.get(query)
        if before is None:
            continue
        delta = before["avg_position"] - now["avg_position"]
        changes.append(
            QueryPositionChange(
                query=query,
                previous_position=round(before["avg_position"], 1),
                current_position=round(now["avg_position"], 1),
                change=round(delta, 1),
                impressions=now["impressions"],
                clicks=now["clicks"],
                impact=_impact(delta, now["impressions"]),
            )
        )
    changes.sort(key=lambda c: (_IMPACT_ORDER[c.impact], -abs(c.change), c.query))

    stable = sum(1 for c in changes if abs(c.change) < STABLE_POSITION_BAND)
    improved = sum(1 for c in changes if c.change >= STABLE_POSITION_BAND)
    declined = sum(1 for c in changes if c.change <= -STABLE_POSITION_BAND)
    significant = [c for c in changes if abs(c.change) >= SIGNIFICANT_POSITION_CHANGE]

    cur_avg = _window_position(cur)
    prev_avg = _window_position(prev)
    avg_change = 0.0
    if cur_avg is not None and prev_avg is not None:
        avg_change = round(prev_avg - cur_avg, 1)

    change: Optional[float] = None
    if cur_avg is not None and prev_avg:
        change = round((prev_avg - cur_avg) / prev_avg * 100, 1)

    notes = []
    if cur_avg is None:
        notes.append("No search data in the current window; change not computed")
    elif change is None:
        notes.append("No comparison search data; change not computed")
    else:
        notes.append(f"{improved} queries improved, {declined} declined")

    logger.debug(
        "Position change calculated",
        queries_compared=len(changes),
        avg_change=avg_change,
    )

    return build_result(
        kind,
        value=avg_change,
        unit="positions",
        change_percent=change,
        change_absolute=avg_change if change is not None else None,
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            cur.height, config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=determine_priority(abs(avg_change) * POSITION_PRIORITY_SCALE),
        alert_triggered=thresholds.crosses_warning(avg_change),
        payload=PositionChangePayload(
            current_avg_position=round_or_none(cur_avg, 1),
            previous_avg_position=round_or_none(prev_avg, 1),
            avg_change=avg_change,
            queries_tracked=len(cur_queries),
            queries_compared=len(changes),
            improved=improved,
            declined=declined,
            stable=stable,
            significant_changes=significant[:MAX_SIGNIFICANT_CHANGES],
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=thresholds.crosses_critical(avg_change),
            anomaly_type=(
                ("ranking_gain" if avg_change > 0 else "ranking_loss")
                if thresholds.crosses_critical(avg_change)
                else None
            ),
            no_comparison_data=prev_avg is None,
        ),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# BRAND VS GENERIC
# =============================================================================

def _class_stats(window: pl.DataFrame) -> QueryClassStats:
    if window.height == 0:
        return QueryClassStats(clicks=0, impressions=0, avg_position=None, query_count=0)
    by_query = (
        window.group_by("query")
        .agg(pl.col("clicks").sum())
        .sort(["clicks", "query"], descending=[True, False])
    )
    return QueryClassStats(
        clicks=int(window.get_column("clicks").sum()),
        impressions=int(window.get_column("impressions").sum()),
        avg_position=round(float(window.select(weighted_position()).item()), 1),
        query_count=by_query.height,
        top_queries=by_query.get_column("query").head(MAX_TOP_QUERIES).to_list(),
    )


def _split(window: pl.DataFrame, keywords: Sequence[str]) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """(brand rows, generic rows)"""
    pattern = pl.lit(False)
    for keyword in keywords:
        pattern = pattern | pl.col("query").str.to_lowercase().str.contains(keyword, literal=True)
    flagged = window.with_columns(pattern.alias("is_brand"))
    return flagged.filter(pl.col("is_brand")), flagged.filter(~pl.col("is_brand"))


def _health(generic_share: float) -> Tuple[str, str]:
    for floor, health, recommendation in HEALTH_TIERS:
        if generic_share >= floor:
            return health, recommendation
    return HEALTH_TIERS[-1][1], HEALTH_TIERS[-1][2]


def calculate_brand_vs_generic(
    rows: Sequence[SearchPerformanceRow],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """Share of organic clicks coming from generic (non-brand) queries."""
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.BRAND_VS_GENERIC
    thresholds = thresholds_for(kind)
    keywords = config.brand_keywords

    frame = search_frame(rows)
    cur_brand, cur_generic = _split(in_period(frame, current), keywords)
    prev_brand, prev_generic = _split(in_period(frame, comparison), keywords)

    brand = _class_stats(cur_brand)
    generic = _class_stats(cur_generic)
    total_clicks = brand.clicks + generic.clicks
    generic_share = round(safe_ratio(generic.clicks, total_clicks), 1)

    prev_generic_clicks = int(prev_generic.get_column("clicks").sum())
    prev_total = int(prev_brand.get_column("clicks").sum()) + prev_generic_clicks
    previous_share = round(safe_ratio(prev_generic_clicks, prev_total), 1) if prev_total > 0 else None

    change = round_or_none(change_percent(generic_share, previous_share), 1)
    health, recommendation = _health(generic_share)

    # Low shares only alert past the critical floor
    alert = total_clicks > 0 and (
        thresholds.crosses_warning(generic_share) or thresholds.crosses_critical(generic_share)
    )

    notes = [f"Generic queries bring {generic_share:.1f}% of organic clicks"]
    if not keywords:
        notes.append("No brand keywords configured; every query counts as generic")
    if change is None:
        notes.append("No comparison share; change not computed")

    return build_result(
        kind,
        value=generic_share,
        unit="%",
        change_percent=change,
        change_absolute=(
            round(generic_share - previous_share, 1) if previous_share is not None else None
        ),
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            total_clicks, config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=determine_priority(change),
        alert_triggered=alert,
        payload=BrandMixPayload(
            generic_share=generic_share,
            previous_generic_share=previous_share,
            health=health,
            recommendation=recommendation,
            brand=brand,
            generic=generic,
            brand_keywords=list(keywords),
        ),
        context=IndicatorContext(
            notes=notes,
            no_comparison_data=change is None,
        ),
        stability_threshold=config.stability_threshold,
    )
