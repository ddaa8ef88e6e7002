"""
Indicator Catalog Types

The catalog is a closed enumeration. Each kind knows its category and the
record sources it cannot be computed without.
"""

from enum import Enum
from typing import Dict, FrozenSet


class IndicatorCategory(str, Enum):
    SALES = "sales"
    SEO = "seo"
    COMBINED = "combined"
    BEHAVIORAL = "behavioral"


class DataSource(str, Enum):
    """Record sets fetched once per batch"""
    ORDERS = "orders"
    PRODUCTS = "products"
    SEARCH = "search_performance"
    WEB_ANALYTICS = "web_analytics"


class IndicatorKind(str, Enum):
    """Fixed catalog of indicators, in execution order"""
    SALES_TREND = "sales_trend"
    AOV = "aov"
    GROSS_MARGIN = "gross_margin"
    POSITION_CHANGE = "position_change"
    BRAND_VS_GENERIC = "brand_vs_generic"
    ORGANIC_CONVERSION_RATE = "organic_conversion_rate"
    STOCK_AVAILABILITY_RISK = "stock_availability_risk"
    TRAFFIC_SOURCE_MIX = "traffic_source_mix"
    BOUNCE_RATE_TREND = "bounce_rate_trend"
    LANDING_PAGE_QUALITY = "landing_page_quality"

    @property
    def category(self) -> IndicatorCategory:
        return _CATEGORIES[self]

    @property
    def requires(self) -> FrozenSet[DataSource]:
        """Sources that must have at least one row, else the kind is skipped."""
        return _REQUIREMENTS[self]

    @property
    def inputs(self) -> FrozenSet[DataSource]:
        """Every source the calculator reads, required or not"""
        return _INPUTS[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_CATEGORIES: Dict[IndicatorKind, IndicatorCategory] = {
    IndicatorKind.SALES_TREND: IndicatorCategory.SALES,
    IndicatorKind.AOV: IndicatorCategory.SALES,
    IndicatorKind.GROSS_MARGIN: IndicatorCategory.SALES,
    IndicatorKind.POSITION_CHANGE: IndicatorCategory.SEO,
    IndicatorKind.BRAND_VS_GENERIC: IndicatorCategory.SEO,
    IndicatorKind.ORGANIC_CONVERSION_RATE: IndicatorCategory.COMBINED,
    IndicatorKind.STOCK_AVAILABILITY_RISK: IndicatorCategory.COMBINED,
    IndicatorKind.TRAFFIC_SOURCE_MIX: IndicatorCategory.BEHAVIORAL,
    IndicatorKind.BOUNCE_RATE_TREND: IndicatorCategory.BEHAVIORAL,
    IndicatorKind.LANDING_PAGE_QUALITY: IndicatorCategory.BEHAVIORAL,
}

_REQUIREMENTS: Dict[IndicatorKind, FrozenSet[DataSource]] = {
    IndicatorKind.SALES_TREND: frozenset({DataSource.ORDERS}),
    IndicatorKind.AOV: frozenset({DataSource.ORDERS}),
    IndicatorKind.GROSS_MARGIN: frozenset({DataSource.ORDERS, DataSource.PRODUCTS}),
    IndicatorKind.POSITION_CHANGE: frozenset({DataSource.SEARCH}),
    IndicatorKind.BRAND_VS_GENERIC: frozenset({DataSource.SEARCH}),
    IndicatorKind.ORGANIC_CONVERSION_RATE: frozenset({DataSource.SEARCH}),
    IndicatorKind.STOCK_AVAILABILITY_RISK: frozenset({DataSource.SEARCH, DataSource.PRODUCTS}),
    IndicatorKind.TRAFFIC_SOURCE_MIX: frozenset({DataSource.WEB_ANALYTICS}),
    IndicatorKind.BOUNCE_RATE_TREND: frozenset({DataSource.WEB_ANALYTICS}),
    IndicatorKind.LANDING_PAGE_QUALITY: frozenset({DataSource.WEB_ANALYTICS}),
}

_DISPLAY_NAMES: Dict[IndicatorKind, str] = {
    IndicatorKind.SALES_TREND: "Sales Trend",
    IndicatorKind.AOV: "Average Order Value",
    IndicatorKind.GROSS_MARGIN: "Gross Margin",
    IndicatorKind.POSITION_CHANGE: "Search Position Change",
    IndicatorKind.BRAND_VS_GENERIC: "Brand vs Generic Traffic",
    IndicatorKind.ORGANIC_CONVERSION_RATE: "Organic Conversion Rate",
    IndicatorKind.STOCK_AVAILABILITY_RISK: "Stock Availability Risk",
    IndicatorKind.TRAFFIC_SOURCE_MIX: "Traffic Source Mix",
    IndicatorKind.BOUNCE_RATE_TREND: "Bounce Rate Trend",
    IndicatorKind.LANDING_PAGE_QUALITY: "Landing Page Quality",
}

_INPUTS: Dict[IndicatorKind, FrozenSet[DataSource]] = {
    **_REQUIREMENTS,
    IndicatorKind.ORGANIC_CONVERSION_RATE: frozenset({DataSource.SEARCH, DataSource.ORDERS}),
    IndicatorKind.STOCK_AVAILABILITY_RISK: frozenset(
        {DataSource.SEARCH, DataSource.PRODUCTS, DataSource.ORDERS}
    ),
}
