"""
Sales-Domain Calculators

Single-source indicators computed from the order ledger (and, for gross
margin, the product catalog):
- sales_trend: revenue and order trend with daily variance
- aov: average order value with distribution buckets
- gross_margin: margin with a cost heuristic for products lacking unit cost
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl
import structlog

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.base import (
    build_result,
    resolve_config,
    resolve_currency,
    round_or_none,
    safe_ratio,
)
from indicator_engine.indicators.classification import (
    change_percent,
    determine_confidence,
    determine_priority,
    thresholds_for,
)
from indicator_engine.indicators.frames import in_period, line_items_frame, orders_frame
from indicator_engine.indicators.periods import Period, PeriodLabel, compute_periods
from indicator_engine.indicators.records import Order, Product
from indicator_engine.indicators.results import (
    AovBucket,
    AovPayload,
    CategoryMargin,
    GrossMarginPayload,
    IndicatorContext,
    IndicatorResult,
    MarginAlert,
    SalesTrendPayload,
)
from indicator_engine.indicators.types import IndicatorKind

logger = structlog.get_logger(__name__)

TREND_BAND = 5.0
UNCATEGORIZED = "Uncategorized"
MARGIN_ALERT_GAP_PP = 15.0
MAX_CATEGORIES = 10
MAX_MARGIN_ALERTS = 5

# (label, lower inclusive, upper exclusive)
AOV_BUCKETS: List[Tuple[str, float, Optional[float]]] = [
    ("0-500", 0, 500),
    ("500-1000", 500, 1000),
    ("1000-2000", 1000, 2000),
    ("2000-5000", 2000, 5000),
    ("5000+", 5000, None),
]


def _daily_revenue(window: pl.DataFrame, period: Period) -> List[float]:
    """Revenue per calendar day of the window, zero-filled"""
    by_day = window.group_by("order_date").agg(pl.col("total_amount").sum())
    totals: Dict[date, float] = dict(
        zip(by_day.get_column("order_date").to_list(), by_day.get_column("total_amount").to_list())
    )
    return [
        float(totals.get(period.start + timedelta(days=offset), 0.0))
        for offset in range(period.length_days)
    ]


# =============================================================================
# SALES TREND
# =============================================================================

def calculate_sales_trend(
    orders: Sequence[Order],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Revenue and order-count trend versus the comparison window.

    The value is the trend classification (growing/declining/stable) from a
    +/-5% band on the revenue change. Revenue change is only computed when the
    comparison window has orders and revenue.
    """
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.SALES_TREND
    thresholds = thresholds_for(kind)

    frame = orders_frame(orders)
    cur = in_period(frame, current, "order_date")
    prev = in_period(frame, comparison, "order_date")

    cur_revenue = float(cur.get_column("total_amount").sum())
    prev_revenue = float(prev.get_column("total_amount").sum())
    cur_orders = cur.height
    prev_orders = prev.height

    change: Optional[float] = None
    if prev_orders > 0 and prev_revenue > 0:
        change = round(change_percent(cur_revenue, prev_revenue), 2)
    orders_change = round_or_none(change_percent(cur_orders, prev_orders), 2)

    if change is not None and change > TREND_BAND:
        trend = "growing"
    elif change is not None and change < -TREND_BAND:
        trend = "declining"
    else:
        trend = "stable"

    daily = _daily_revenue(cur, current)
    daily_stddev = float(np.std(daily)) if daily else 0.0
    daily_average = safe_ratio(cur_revenue, current.length_days, scale=1.0)

    anomaly = thresholds.crosses_critical(change)
    notes = []
    if change is None:
        notes.append("No comparison revenue; change not computed")
    else:
        notes.append(f"Revenue {change:+.2f}% vs previous {current.length_days} days")
    if anomaly:
        notes.append("Revenue change exceeds the critical bound")

    currency = resolve_currency(orders, config)
    logger.debug(
        "Sales trend calculated",
        trend=trend,
        change_percent=change,
        current_orders=cur_orders,
    )

    return build_result(
        kind,
        value=trend,
        unit=currency,
        change_percent=change,
        change_absolute=round(cur_revenue - prev_revenue, 2) if change is not None else None,
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            cur_orders, config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=determine_priority(change),
        alert_triggered=thresholds.crosses_warning(change),
        payload=SalesTrendPayload(
            trend=trend,
            current_revenue=round(cur_revenue, 2),
            previous_revenue=round(prev_revenue, 2),
            current_orders=cur_orders,
            previous_orders=prev_orders,
            orders_change_percent=orders_change,
            daily_average=round(daily_average, 2),
            daily_stddev=round(daily_stddev, 2),
            daily_revenue=[round(value, 2) for value in daily],
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=anomaly,
            anomaly_type=("spike" if change > 0 else "drop") if anomaly else None,
            no_comparison_data=change is None,
        ),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# AVERAGE ORDER VALUE
# =============================================================================

def _distribution(values: List[float]) -> List[AovBucket]:
    total = len(values)
    buckets = []
    for label, lower, upper in AOV_BUCKETS:
        count = sum(1 for v in values if v >= lower and (upper is None or v < upper))
        buckets.append(
            AovBucket(
                label=label,
                lower=lower,
                upper=upper,
                count=count,
                percentage=round(safe_ratio(count, total), 1),
            )
        )
    return buckets


def calculate_aov(
    orders: Sequence[Order],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """Average value of orders with a positive total, with a bucketed distribution."""
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.AOV
    thresholds = thresholds_for(kind)

    frame = orders_frame(orders).filter(pl.col("total_amount") > 0)
    cur_values = in_period(frame, current, "order_date").get_column("total_amount").to_list()
    prev_values = in_period(frame, comparison, "order_date").get_column("total_amount").to_list()

    cur_aov = float(np.mean(cur_values)) if cur_values else 0.0
    prev_aov = float(np.mean(prev_values)) if prev_values else None

    change = round_or_none(change_percent(cur_aov, prev_aov), 2)
    anomaly = thresholds.crosses_critical(change)

    notes = []
    if change is None:
        notes.append("No comparison orders; change not computed")
    if not cur_values:
        notes.append("No orders with a positive total in the current window")

    return build_result(
        kind,
        value=round(cur_aov, 2),
        unit=resolve_currency(orders, config),
        change_percent=change,
        change_absolute=round(cur_aov - prev_aov, 2) if change is not None else None,
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            len(cur_values), config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=determine_priority(change),
        alert_triggered=thresholds.crosses_warning(change),
        payload=AovPayload(
            current_aov=round(cur_aov, 2),
            previous_aov=round_or_none(prev_aov, 2),
            current_orders=len(cur_values),
            previous_orders=len(prev_values),
            median=round(float(np.median(cur_values)), 2) if cur_values else 0.0,
            min_value=round(min(cur_values), 2) if cur_values else 0.0,
            max_value=round(max(cur_values), 2) if cur_values else 0.0,
            distribution=_distribution(cur_values),
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=anomaly,
            anomaly_type=("spike" if change > 0 else "drop") if anomaly else None,
            no_comparison_data=change is None,
        ),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# GROSS MARGIN
# =============================================================================

CATALOG_SCHEMA = {
    "product_ref": pl.Utf8,
    "product_id": pl.Utf8,
    "catalog_name": pl.Utf8,
    "category": pl.Utf8,
    "unit_cost": pl.Float64,
}


def _catalog_frame(products: Sequence[Product]) -> pl.DataFrame:
    """One row per identifier a line item may use, first product wins"""
    rows = [
        {
            "product_ref": key,
            "product_id": product.product_id,
            "catalog_name": product.name,
            "category": product.category,
            "unit_cost": product.unit_cost if product.has_cost else None,
        }
        for product in products
        for key in sorted(product.keys)
    ]
    return pl.DataFrame(rows, schema=CATALOG_SCHEMA).unique(
        subset="product_ref", keep="first", maintain_order=True
    )


def _costed_items(items: pl.DataFrame, catalog: pl.DataFrame, cost_ratio: float) -> pl.DataFrame:
    """Attach cost to every line item, assuming cost_ratio of revenue when unknown"""
    has_cost = pl.col("unit_cost").is_not_null()
    return items.join(catalog, on="product_ref", how="left").with_columns(
        has_cost.alias("has_cost"),
        pl.when(has_cost)
        .then(pl.col("unit_cost") * pl.col("quantity"))
        .otherwise(pl.col("revenue") * cost_ratio)
        .alias("cost"),
        pl.col("category").fill_null(UNCATEGORIZED),
        pl.coalesce(pl.col("product_id"), pl.col("product_ref"), pl.lit("unknown")).alias("product_key"),
        pl.coalesce(pl.col("catalog_name"), pl.col("product_name"), pl.lit("")).alias("display_name"),
    )


def _window_margin(items: pl.DataFrame, config: EngineSettings) -> Tuple[float, float, int, Optional[float]]:
    """(revenue, cost, costed line items, margin %) for one window"""
    revenue = float(items.get_column("revenue").sum())
    cost = float(items.get_column("cost").sum())
    costed = int(items.get_column("has_cost").sum())
    if items.height > 0 and costed == 0:
        return revenue, cost, costed, config.estimated_margin_percent
    if revenue <= 0:
        return revenue, cost, costed, None
    return revenue, cost, costed, (revenue - cost) / revenue * 100


def _category_breakdown(items: pl.DataFrame) -> List[CategoryMargin]:
    grouped = (
        items.group_by("category")
        .agg(pl.col("revenue").sum(), pl.col("cost").sum())
        .sort(["revenue", "category"], descending=[True, False])
        .head(MAX_CATEGORIES)
    )
    return [
        CategoryMargin(
            category=row["category"],
            revenue=round(row["revenue"], 2),
            cost=round(row["cost"], 2),
            margin_percent=round(safe_ratio(row["revenue"] - row["cost"], row["revenue"]), 2),
        )
        for row in grouped.iter_rows(named=True)
    ]


def _margin_alerts(items: pl.DataFrame, average: float) -> List[MarginAlert]:
    """Products with known cost selling at least 15 points below the average margin"""
    per_product = (
        items.filter(pl.col("has_cost") & (pl.col("revenue") > 0))
        .group_by("product_key")
        .agg(
            pl.col("display_name").first(),
            pl.col("revenue").sum(),
            pl.col("cost").sum(),
        )
        .with_columns(
            ((pl.col("revenue") - pl.col("cost")) / pl.col("revenue") * 100).alias("margin_percent")
        )
        .filter(pl.col("margin_percent") <= average - MARGIN_ALERT_GAP_PP)
        .sort(["margin_percent", "product_key"])
        .head(MAX_MARGIN_ALERTS)
    )
    return [
        MarginAlert(
            product_ref=row["product_key"],
            product_name=row["display_name"],
            margin_percent=round(row["margin_percent"], 2),
            below_average_pp=round(average - row["margin_percent"], 2),
        )
        for row in per_product.iter_rows(named=True)
    ]


def calculate_gross_margin(
    orders: Sequence[Order],
    products: Sequence[Product],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Gross margin over order line items.

    Line items without a known unit cost assume ``default_cost_ratio`` of their
    revenue as cost. When no line item in the window has a known cost, the
    result is flagged as estimated and reports ``estimated_margin_percent``.
    Change is reported in percentage points.
    """
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.GROSS_MARGIN
    thresholds = thresholds_for(kind)

    items = _costed_items(
        line_items_frame(orders), _catalog_frame(products), config.default_cost_ratio
    )
    cur_items = in_period(items, current, "order_date")
    prev_items = in_period(items, comparison, "order_date")

    revenue, cost, costed, margin = _window_margin(cur_items, config)
    prev_revenue, prev_cost, _, prev_margin = _window_margin(prev_items, config)

    is_estimated = cur_items.height > 0 and costed == 0
    value = round(margin, 2) if margin is not None else 0.0
    previous_value = round_or_none(prev_margin, 2)
    change_pp: Optional[float] = None
    if margin is not None and previous_value is not None:
        change_pp = round(value - previous_value, 2)

    coverage = safe_ratio(costed, cur_items.height, scale=1.0)
    margin_alerts = [] if is_estimated else _margin_alerts(cur_items, value)
    gross_profit = revenue - cost

    notes = []
    if is_estimated:
        notes.append(
            f"No unit costs on file; margin is a fixed {config.estimated_margin_percent:g}% estimate"
        )
    elif costed < cur_items.height:
        notes.append(
            f"{cur_items.height - costed} of {cur_items.height} line items assume "
            f"{config.default_cost_ratio:.0%} cost"
        )
    if cur_items.height == 0:
        notes.append("No line items in the current window; change not computed")
    elif change_pp is None:
        notes.append("No comparison revenue; change not computed")

    return build_result(
        kind,
        value=value,
        unit="%",
        change_percent=change_pp,
        change_absolute=(
            round(gross_profit - (prev_revenue - prev_cost), 2) if change_pp is not None else None
        ),
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            costed, config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=determine_priority(change_pp * 2 if change_pp is not None else None),
        alert_triggered=thresholds.crosses_warning(change_pp) or bool(margin_alerts),
        payload=GrossMarginPayload(
            total_revenue=round(revenue, 2),
            total_cost=round(cost, 2),
            gross_profit=round(gross_profit, 2),
            margin_percent=value,
            previous_margin_percent=previous_value,
            change_pp=change_pp,
            is_estimated=is_estimated,
            line_items=cur_items.height,
            line_items_with_cost=costed,
            cost_coverage=round(coverage, 3),
            by_category=_category_breakdown(cur_items),
            margin_alerts=margin_alerts,
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=thresholds.crosses_critical(change_pp),
            anomaly_type="margin_shift" if thresholds.crosses_critical(change_pp) else None,
            no_comparison_data=previous_value is None,
            is_estimated=is_estimated,
        ),
        stability_threshold=config.margin_stability_threshold,
    )
