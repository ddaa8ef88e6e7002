"""
Indicator Catalog

Maps each ``IndicatorKind`` to its calculator. The mapping is exhaustive over
the enumeration; the orchestrator iterates ``IndicatorKind`` directly.
"""

from datetime import date, datetime
from typing import Optional, Union

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.cross_source import calculate_organic_conversion, calculate_stock_risk
from indicator_engine.indicators.periods import PeriodLabel
from indicator_engine.indicators.records import SourceRecords
from indicator_engine.indicators.results import IndicatorResult
from indicator_engine.indicators.sales import calculate_aov, calculate_gross_margin, calculate_sales_trend
from indicator_engine.indicators.search import calculate_brand_vs_generic, calculate_position_change
from indicator_engine.indicators.types import IndicatorKind
from indicator_engine.indicators.web import (
    calculate_bounce_rate_trend,
    calculate_landing_page_quality,
    calculate_traffic_source_mix,
)


def calculate_indicator(
    kind: IndicatorKind,
    records: SourceRecords,
    period_end: Union[datetime, date],
    period_label: Union[str, PeriodLabel],
    config: Optional[EngineSettings] = None,
) -> IndicatorResult:
    """Run the calculator for one kind over the pre-fetched records."""
    args = (period_end, period_label, config)

    if kind is IndicatorKind.SALES_TREND:
        return calculate_sales_trend(records.orders, *args)
    if kind is IndicatorKind.AOV:
        return calculate_aov(records.orders, *args)
    if kind is IndicatorKind.GROSS_MARGIN:
        return calculate_gross_margin(records.orders, records.products, *args)
    if kind is IndicatorKind.POSITION_CHANGE:
        return calculate_position_change(records.search_rows, *args)
    if kind is IndicatorKind.BRAND_VS_GENERIC:
        return calculate_brand_vs_generic(records.search_rows, *args)
    if kind is IndicatorKind.ORGANIC_CONVERSION_RATE:
        return calculate_organic_conversion(records.search_rows, records.orders, *args)
    if kind is IndicatorKind.STOCK_AVAILABILITY_RISK:
        return calculate_stock_risk(records.products, records.search_rows, records.orders, *args)
    if kind is IndicatorKind.TRAFFIC_SOURCE_MIX:
        return calculate_traffic_source_mix(records.analytics_rows, *args)
    if kind is IndicatorKind.BOUNCE_RATE_TREND:
        return calculate_bounce_rate_trend(records.analytics_rows, *args)
    if kind is IndicatorKind.LANDING_PAGE_QUALITY:
        return calculate_landing_page_quality(records.analytics_rows, *args)
    raise ValueError(f"Unhandled indicator kind: {kind}")
