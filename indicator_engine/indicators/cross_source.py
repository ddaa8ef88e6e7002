"""
Cross-Source Calculators

Indicators joining search traffic with the order ledger and product catalog:
- organic_conversion_rate: orders attributed to organic clicks by a fixed rate
- stock_availability_risk: products likely to run out while search demand is live

Both rely on heuristic constants from ``EngineSettings`` (attribution rate,
traffic conversion rate). They are business approximations, not measured values.
"""

import math
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import polars as pl
import structlog

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.base import (
    build_result,
    resolve_config,
    resolve_currency,
    round_half_up,
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
from indicator_engine.indicators.frames import (
    in_period,
    line_items_frame,
    orders_frame,
    search_frame,
)
from indicator_engine.indicators.periods import PeriodLabel, compute_periods
from indicator_engine.indicators.records import (
    Order,
    Product,
    SearchPerformanceRow,
    slugify,
)
from indicator_engine.indicators.results import (
    IndicatorContext,
    IndicatorResult,
    OrganicConversionPayload,
    PageTypeConversion,
    StockRiskPayload,
    StockRiskProduct,
    ZeroSalesPage,
)
from indicator_engine.indicators.types import IndicatorKind

logger = structlog.get_logger(__name__)

PRODUCT_SLUG_PATTERN = r"/(?:product|produkt|p)/([^/?#]+)"

# (page type, URL pattern, weight), first match wins; unmatched pages are "other"
PAGE_TYPES: List[Tuple[str, str, float]] = [
    ("product", r"/(?:product|produkt|p)/", 1.5),
    ("category", r"/category/|/products/", 0.8),
    ("blog", r"/blog/|/artikkelit/", 0.3),
]
OTHER_PAGE_WEIGHT = 0.5
MAX_ZERO_SALES_ALERTS = 5

MAX_AT_RISK = 20
NO_VELOCITY_DAYS = 999
CRITICAL_DAYS = 3
HIGH_DAYS = 7
MEDIUM_DAYS = 14
_SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2}


def _page_slugs(window: pl.DataFrame) -> pl.DataFrame:
    """Search rows with the product slug pulled out of the landing page URL"""
    return window.with_columns(
        pl.col("page").str.to_lowercase().str.extract(PRODUCT_SLUG_PATTERN, 1).alias("slug")
    )


# =============================================================================
# ORGANIC CONVERSION
# =============================================================================

def _page_type_expr() -> pl.Expr:
    page = pl.col("page").str.to_lowercase()
    expr = pl.lit("other")
    for page_type, pattern, _ in reversed(PAGE_TYPES):
        expr = pl.when(page.str.contains(pattern)).then(pl.lit(page_type)).otherwise(expr)
    return expr


def _by_page_type(window: pl.DataFrame, attributed: int) -> List[PageTypeConversion]:
    """
    Split attributed orders across page types by weighted click share.

    Weights favour product pages; the estimates sum to the attributed total.
    """
    weights = {page_type: weight for page_type, _, weight in PAGE_TYPES}
    weights["other"] = OTHER_PAGE_WEIGHT

    grouped = (
        window.with_columns(_page_type_expr().alias("page_type"))
        .group_by("page_type")
        .agg(pl.col("clicks").sum())
    )
    clicks = dict(zip(grouped.get_column("page_type").to_list(), grouped.get_column("clicks").to_list()))
    weighted_total = sum(clicks.get(page_type, 0) * weight for page_type, weight in weights.items())

    breakdown = []
    for page_type, weight in weights.items():
        type_clicks = int(clicks.get(page_type, 0))
        if type_clicks == 0:
            continue
        estimated = safe_ratio(attributed * type_clicks * weight, weighted_total, scale=1.0)
        breakdown.append(
            PageTypeConversion(
                page_type=page_type,
                clicks=type_clicks,
                estimated_orders=round(estimated, 2),
                conversion_rate=round(safe_ratio(estimated, type_clicks), 2),
            )
        )
    return breakdown


def _zero_sales_pages(
    window: pl.DataFrame,
    sold_slugs: Set[str],
    min_clicks: int,
) -> List[ZeroSalesPage]:
    """High-traffic product pages whose product sold nothing in the window"""
    pages = (
        _page_slugs(window)
        .filter(pl.col("slug").is_not_null())
        .group_by("page", "slug")
        .agg(pl.col("clicks").sum(), pl.col("impressions").sum())
        .filter(pl.col("clicks") >= min_clicks)
        .sort(["clicks", "page"], descending=[True, False])
    )
    alerts = []
    for row in pages.iter_rows(named=True):
        if row["slug"] in sold_slugs:
            continue
        alerts.append(
            ZeroSalesPage(page=row["page"], clicks=row["clicks"], impressions=row["impressions"])
        )
        if len(alerts) == MAX_ZERO_SALES_ALERTS:
            break
    return alerts


def calculate_organic_conversion(
    rows: Sequence[SearchPerformanceRow],
    orders: Sequence[Order],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Estimated conversion rate of organic search clicks.

    attributed_orders = round(qualifying_orders x organic_attribution_rate)
    conversion_rate   = attributed_orders / organic_clicks x 100
    """
    config = resolve_config(config)
    current, comparison = compute_periods(period_end, period_label)
    kind = IndicatorKind.ORGANIC_CONVERSION_RATE
    thresholds = thresholds_for(kind)
    rate = config.organic_attribution_rate

    frame = search_frame(rows)
    cur = in_period(frame, current)
    prev = in_period(frame, comparison)
    clicks = int(cur.get_column("clicks").sum())
    prev_clicks = int(prev.get_column("clicks").sum())

    qualifying = orders_frame(orders).filter(pl.col("total_amount") > 0)
    cur_orders = in_period(qualifying, current, "order_date").height
    prev_orders = in_period(qualifying, comparison, "order_date").height
    attributed = round_half_up(cur_orders * rate)
    prev_attributed = round_half_up(prev_orders * rate)

    conversion_rate = round(safe_ratio(attributed, clicks), 2)
    prev_rate: Optional[float] = None
    if prev_clicks > 0 and prev_attributed > 0:
        prev_rate = round(safe_ratio(prev_attributed, prev_clicks), 2)
    change = round_or_none(change_percent(conversion_rate, prev_rate), 2)

    items = in_period(line_items_frame(orders), current, "order_date")
    sold_slugs = {slugify(name) for name in items.get_column("product_name").drop_nulls().to_list()}
    alerts = _zero_sales_pages(cur, sold_slugs, config.high_traffic_clicks)

    low_rate = clicks > 0 and conversion_rate < thresholds.warning_low
    alert = low_rate or bool(alerts)
    anomaly = clicks > 0 and thresholds.crosses_critical(conversion_rate)
    if change is not None:
        priority = determine_priority(change)
    else:
        priority = Priority.HIGH if alert else Priority.LOW

    notes = [
        f"Assumes {rate:.0%} of orders come from organic search",
    ]
    if alerts:
        notes.append(f"{len(alerts)} high-traffic product pages without sales")
    if change is None:
        notes.append("No comparison clicks or attributed orders; change not computed")

    logger.debug(
        "Organic conversion calculated",
        clicks=clicks,
        attributed_orders=attributed,
        conversion_rate=conversion_rate,
    )

    return build_result(
        kind,
        value=conversion_rate,
        unit="%",
        change_percent=change,
        change_absolute=round(conversion_rate - prev_rate, 2) if prev_rate is not None else None,
        period=current,
        comparison_period=comparison,
        confidence=determine_confidence(
            min(clicks, cur_orders), config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=priority,
        alert_triggered=alert,
        payload=OrganicConversionPayload(
            organic_clicks=clicks,
            previous_organic_clicks=prev_clicks,
            total_orders=cur_orders,
            previous_total_orders=prev_orders,
            attributed_orders=attributed,
            previous_attributed_orders=prev_attributed,
            attribution_rate=rate,
            previous_conversion_rate=prev_rate,
            by_page_type=_by_page_type(cur, attributed),
            alerts=alerts,
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=anomaly,
            anomaly_type=(
                ("conversion_spike" if conversion_rate > thresholds.critical_high else "conversion_collapse")
                if anomaly
                else None
            ),
            no_comparison_data=change is None,
            is_estimated=True,
        ),
        stability_threshold=config.stability_threshold,
    )


# =============================================================================
# STOCK AVAILABILITY RISK
# =============================================================================

def days_until_stockout(stock_level: int, velocity: float) -> int:
    if stock_level <= 0:
        return 0
    if velocity <= 0:
        return NO_VELOCITY_DAYS
    return int(math.floor(stock_level / velocity))


def classify_stock_risk(
    stock_level: int,
    days_left: int,
    min_stock: int,
) -> Optional[Tuple[str, str]]:
    """(severity, risk type), or None when the product is not at risk"""
    if stock_level <= 0:
        return "critical", "out_of_stock"
    if days_left <= CRITICAL_DAYS:
        return "critical", "low_stock"
    if days_left <= HIGH_DAYS or stock_level < min_stock:
        return "high", "low_stock"
    if days_left <= MEDIUM_DAYS:
        return "medium", "medium_stock"
    return None


def _units_sold(items: pl.DataFrame) -> Dict[str, int]:
    grouped = items.drop_nulls("product_ref").group_by("product_ref").agg(pl.col("quantity").sum())
    return dict(zip(grouped.get_column("product_ref").to_list(), grouped.get_column("quantity").to_list()))


def calculate_stock_risk(
    products: Sequence[Product],
    rows: Sequence[SearchPerformanceRow],
    orders: Sequence[Order],
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """
    Revenue at risk from products running out while they still get organic traffic.

    Only the current window is used: stock levels are a snapshot, so there is
    no comparison and change is always null.
    """
    config = resolve_config(config)
    current, _ = compute_periods(period_end, period_label)
    kind = IndicatorKind.STOCK_AVAILABILITY_RISK
    thresholds = thresholds_for(kind)
    conversion = config.traffic_conversion_rate

    slug_clicks_frame = (
        _page_slugs(in_period(search_frame(rows), current))
        .filter(pl.col("slug").is_not_null())
        .group_by("slug")
        .agg(pl.col("clicks").sum())
    )
    slug_clicks = dict(
        zip(slug_clicks_frame.get_column("slug").to_list(), slug_clicks_frame.get_column("clicks").to_list())
    )
    units = _units_sold(in_period(line_items_frame(orders), current, "order_date"))

    checked = 0
    at_risk: List[StockRiskProduct] = []
    for product in products:
        clicks = int(slug_clicks.get(product.slug, 0))
        if clicks < config.min_organic_clicks:
            continue
        checked += 1

        sold = sum(units.get(key, 0) for key in product.keys)
        velocity = sold / current.length_days
        days_left = days_until_stockout(product.stock_level, velocity)
        min_stock = (
            product.min_stock_level if product.min_stock_level is not None else config.default_min_stock
        )
        risk = classify_stock_risk(product.stock_level, days_left, min_stock)
        if risk is None:
            continue

        severity, risk_type = risk
        at_risk.append(
            StockRiskProduct(
                product_id=product.product_id,
                name=product.name,
                stock_level=product.stock_level,
                min_stock_level=min_stock,
                organic_clicks=clicks,
                daily_velocity=round(velocity, 2),
                days_until_stockout=days_left,
                severity=severity,
                risk_type=risk_type,
                revenue_at_risk=round(clicks * conversion * product.unit_price, 2),
            )
        )

    at_risk.sort(key=lambda p: (_SEVERITY_ORDER[p.severity], -p.organic_clicks, p.product_id))
    total_at_risk = round(sum(p.revenue_at_risk for p in at_risk), 2)
    counts = {severity: sum(1 for p in at_risk if p.severity == severity) for severity in _SEVERITY_ORDER}

    if counts["critical"]:
        priority = Priority.CRITICAL
    elif at_risk:
        priority = Priority.HIGH
    else:
        priority = Priority.LOW

    notes = [
        f"Revenue at risk assumes a {conversion:.0%} conversion rate on organic clicks",
    ]
    if checked == 0:
        notes.append(f"No product pages with at least {config.min_organic_clicks} organic clicks")

    return build_result(
        kind,
        value=total_at_risk,
        unit=resolve_currency(orders, config),
        change_percent=None,
        period=current,
        comparison_period=None,
        confidence=determine_confidence(
            checked, config.confidence_high_floor, config.confidence_medium_floor
        ),
        priority=priority,
        alert_triggered=counts["critical"] > 0 or thresholds.crosses_warning(total_at_risk),
        payload=StockRiskPayload(
            products_checked=checked,
            products_at_risk=len(at_risk),
            critical_count=counts["critical"],
            high_count=counts["high"],
            medium_count=counts["medium"],
            total_revenue_at_risk=total_at_risk,
            conversion_rate=conversion,
            at_risk=at_risk[:MAX_AT_RISK],
        ),
        context=IndicatorContext(
            notes=notes,
            anomaly_detected=counts["critical"] > 0,
            anomaly_type="stockout" if counts["critical"] else None,
            no_comparison_data=True,
            is_estimated=True,
        ),
        stability_threshold=config.stability_threshold,
    )
