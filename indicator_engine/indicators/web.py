"""
Web-Analytics Calculators

Behavioral indicators computed from web-analytics session rows:
- traffic_source_mix: channel concentration and entropy-based diversity
- bounce_rate_trend: session-weighted bounce rate versus the previous window
- landing_page_quality: share of traffic landing on high-bounce pages
"""

import math
from datetime import date, datetime
from typing import List, Optional, Sequence, Union

import polars as pl
from scipy.stats import entropy

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.base import (
    build_result,
    resolve_config,
    round_or_none,
    safe_ratio,
)
from indicator_engine.indicators.classification import (
    Priority,
    change_percent,
    determine_confidence,
    determine_priority,
    thresholds_for,
)
from indicator_engine.indicators.frames import analytics_frame, in_period
from indicator_engine.indicators.periods import PeriodLabel, compute_periods
from indicator_engine.indicators.records import WebAnalyticsRow
from indicator_engine.indicators.results import (
    BounceRatePayload,
    ChannelShare,
    IndicatorContext,
    IndicatorResult,
    LandingPagePayload,
    LandingPageStats,
    TrafficSourcePayload,
)
from indicator_engine.indicators.types import IndicatorKind

MAX_CHANNELS = 10
SESSION_HIGH_FLOOR = 1000
SESSION_MEDIUM_FLOOR = 100

MIN_PAGE_SESSIONS = 10
PROBLEM_BOUNCE_RATE = 65.0
PROBLEM_TRAFFIC_SHARE = 2.0
GOOD_BOUNCE_RATE = 40.0
MAX_PAGES = 10
PAGE_HIGH_FLOOR = 20
PAGE_MEDIUM_FLOOR = 5


def diversity_score(counts: Sequence[float]) -> float:
    """Shannon entropy normalised to 0-100; a single channel scores 0."""
    positive = [c for c in counts if c > 0]
    if len(positive) < 2:
        return 0.0
    return float(entropy(positive, base=2) / math.log2(len(positive)) * 100)


def _bounce_rate(window: pl.DataFrame) -> Optional[float]:
    sessions = int(window.get_column("sessions").sum())
    if sessions == 0:
        return None
    engaged = int(window.get_column("engaged_sessions").sum())
    return (sessions - engaged) / sessions * 100


# =============================================================================
# TRAFFIC SOURCE MIX
# =============================================================================

def calculate_traffic_source_mix(
    rows: Sequence[WebAnalyticsRow],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """Share of the biggest channel; a snapshot of the current window only."""
    config = resolve_config(config)
    current, _ = compute_periods(period_end, period_label)
    kind = IndicatorKind.TRAFFIC_SOURCE_MIX
    thresholds = thresholds_for(kind)

    channels = (
        in_period(analytics_frame(rows), current)
        .group_by("channel")
        .agg(pl.col("sessions").sum())
        .sort(["sessions", "channel"], descending=[True, False])
    )
    total = int(channels.get_column("sessions").sum())
    shares = [
        ChannelShare(
            channel=row["channel"],
            sessions=row["sessions"],
            percentage=round(safe_ratio(row["sessions"], total), 1),
        )
        for row in channels.iter_rows(named=True)
    ]
    top_share = shares[0].percentage if shares and total > 0 else 0.0
    score = round(diversity_score(channels.get_column("sessions").to_list()), 1)
    concentrated = thresholds.crosses_warning(top_share)

    if thresholds.crosses_critical(top_share):
        priority = Priority.HIGH
    elif concentrated:
        priority = Priority.MEDIUM
    else:
        priority = Priority.LOW

    notes = [f"Diversity score {score:.1f}/100 across {len(shares)} channels"]
    if concentrated:
        notes.append(f"{shares[0].channel} brings {top_share:.1f}% of sessions")

    return build_result(
        kind,
        value=top_share,
        unit="%",
        change_percent=None,
        period=current,
        comparison_period=None,
        confidence=determine_confidence(total, SESSION_HIGH_FLOOR, SESSION_MEDIUM_FLOOR),
        priority=priority,
        alert_triggered=concentrated,
        payload=TrafficSourcePayload(
            total_sessions=total,
            top_channel=shares[0].channel if shares else None,
            diversity_score=score,
            is_concentrated=concentrated,
            channels=shares[:MAX_CHANNELS],
        ),
        context=IndicatorContext(notes=notes, no_comparison_data=True),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# BOUNCE RATE TREND
# =============================================================================

def calculate_bounce_rate_trend(
    rows: Sequence[WebAnalyticsRow],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Session-weighted bounce rate, where a bounce is a session without engagement.

    Direction follows the rate itself: ``up`` means more visitors bounced.
    """
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.BOUNCE_RATE_TREND
    thresholds = thresholds_for(kind)

    frame = analytics_frame(rows)
    cur = in_period(frame, current)
    prev = in_period(frame, comparison)

    rate = _bounce_rate(cur)
    prev_rate = _bounce_rate(prev)
    value = round(rate, 1) if rate is not None else 0.0
    previous_value = round_or_none(prev_rate, 1)
    change = round_or_none(change_percent(value, previous_value), 1) if rate is not None else None

    alert = rate is not None and value > thresholds.warning_high
    notes = []
    if change is None:
        notes.append("No comparison sessions; change not computed")
    if alert:
        notes.append(f"Bounce rate above {thresholds.warning_high:g}%")

    sessions = int(cur.get_column("sessions").sum())
    return build_result(
        kind,
        value=value,
        unit="%",
        change_percent=change,
        change_absolute=round(value - previous_value, 1) if change is not None else None,
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(sessions, SESSION_HIGH_FLOOR, SESSION_MEDIUM_FLOOR),
        priority=determine_priority(change),
        alert_triggered=alert,
        payload=BounceRatePayload(
            current_bounce_rate=value,
            previous_bounce_rate=previous_value,
            sessions=sessions,
            engaged_sessions=int(cur.get_column("engaged_sessions").sum()),
            previous_sessions=int(prev.get_column("sessions").sum()),
            is_improvement=(change < 0) if change is not None else None,
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=rate is not None and thresholds.crosses_critical(value),
            no_comparison_data=change is None,
        ),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# LANDING PAGE QUALITY
# =============================================================================

def calculate_landing_page_quality(
    rows: Sequence[WebAnalyticsRow],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """Share of sessions landing on pages that bounce more than 65% of visitors."""
    config = resolve_config(config)
    current, _ = compute_periods(period_end, period_label)
    kind = IndicatorKind.LANDING_PAGE_QUALITY
    thresholds = thresholds_for(kind)

    pages = (
        in_period(analytics_frame(rows), current)
        .drop_nulls("landing_page")
        .group_by("landing_page")
        .agg(pl.col("sessions").sum(), pl.col("engaged_sessions").sum())
        .filter(pl.col("sessions") >= MIN_PAGE_SESSIONS)
        .sort(["sessions", "landing_page"], descending=[True, False])
    )
    total = int(pages.get_column("sessions").sum())

    stats: List[LandingPageStats] = [
        LandingPageStats(
            page=row["landing_page"],
            sessions=row["sessions"],
            bounce_rate=round(safe_ratio(row["sessions"] - row["engaged_sessions"], row["sessions"]), 1),
            traffic_share=round(safe_ratio(row["sessions"], total), 1),
        )
        for row in pages.iter_rows(named=True)
    ]
    problems = [
        page for page in stats
        if page.bounce_rate > PROBLEM_BOUNCE_RATE and page.traffic_share > PROBLEM_TRAFFIC_SHARE
    ]
    good = [page for page in stats if page.bounce_rate < GOOD_BOUNCE_RATE]
    problem_sessions = sum(page.sessions for page in problems)
    problem_share = round(safe_ratio(problem_sessions, total), 1)

    if thresholds.crosses_critical(problem_share):
        priority = Priority.HIGH
    elif thresholds.crosses_warning(problem_share):
        priority = Priority.MEDIUM
    else:
        priority = Priority.LOW

    notes = [f"{len(problems)} of {len(stats)} landing pages bounce above {PROBLEM_BOUNCE_RATE:g}%"]

    return build_result(
        kind,
        value=problem_share,
        unit="%",
        change_percent=None,
        period=current,
        comparison_period=None,
        confidence=determine_confidence(len(stats), PAGE_HIGH_FLOOR, PAGE_MEDIUM_FLOOR),
        priority=priority,
        alert_triggered=thresholds.crosses_warning(problem_share),
        payload=LandingPagePayload(
            pages_analyzed=len(stats),
            total_sessions=total,
            problem_pages=problems[:MAX_PAGES],
            good_pages=good[:MAX_PAGES],
            problem_traffic_share=problem_share,
        ),
        context=IndicatorContext(notes=notes, no_comparison_data=True),
        stability_threshold=config.stability_threshold,
    )
