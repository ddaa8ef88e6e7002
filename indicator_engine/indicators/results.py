"""
Indicator Result Models

A narrow common envelope (value, direction, change, confidence, priority, alert)
shared by every indicator, with the indicator-specific metrics carried in a
payload record discriminated by ``kind``.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from indicator_engine.indicators.classification import (
    Confidence,
    Direction,
    Priority,
    Thresholds,
)
from indicator_engine.indicators.periods import Period
from indicator_engine.indicators.types import IndicatorCategory, IndicatorKind


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# SALES
# =============================================================================

class SalesTrendPayload(_Payload):
    kind: Literal["sales_trend"] = "sales_trend"
    trend: Literal["growing", "declining", "stable"]
    current_revenue: float
    previous_revenue: float
    current_orders: int
    previous_orders: int
    orders_change_percent: Optional[float] = None
    daily_average: float
    daily_stddev: float
    daily_revenue: List[float] = Field(default_factory=list)


class AovBucket(_Payload):
    label: str
    lower: float
    upper: Optional[float] = None
    count: int
    percentage: float


class AovPayload(_Payload):
    kind: Literal["aov"] = "aov"
    current_aov: float
    previous_aov: Optional[float] = None
    current_orders: int
    previous_orders: int
    median: float
    min_value: float
    max_value: float
    distribution: List[AovBucket] = Field(default_factory=list)


class CategoryMargin(_Payload):
    category: str
    revenue: float
    cost: float
    margin_percent: float


class MarginAlert(_Payload):
    product_ref: str
    product_name: str
    margin_percent: float
    below_average_pp: float


class GrossMarginPayload(_Payload):
    kind: Literal["gross_margin"] = "gross_margin"
    total_revenue: float
    total_cost: float
    gross_profit: float
    margin_percent: float
    previous_margin_percent: Optional[float] = None
    change_pp: Optional[float] = None
    is_estimated: bool = False
    line_items: int
    line_items_with_cost: int
    cost_coverage: float
    by_category: List[CategoryMargin] = Field(default_factory=list)
    margin_alerts: List[MarginAlert] = Field(default_factory=list)


# =============================================================================
# SEARCH
# =============================================================================

class QueryPositionChange(_Payload):
    query: str
    previous_position: float
    current_position: float
    change: float
    impressions: int
    clicks: int
    impact: Literal["high", "medium", "low"]


class PositionChangePayload(_Payload):
    kind: Literal["position_change"] = "position_change"
    current_avg_position: Optional[float] = None
    previous_avg_position: Optional[float] = None
    avg_change: float
    queries_tracked: int
    queries_compared: int
    improved: int
    declined: int
    stable: int
    significant_changes: List[QueryPositionChange] = Field(default_factory=list)


class QueryClassStats(_Payload):
    clicks: int
    impressions: int
    avg_position: Optional[float] = None
    query_count: int
    top_queries: List[str] = Field(default_factory=list)


class BrandMixPayload(_Payload):
    kind: Literal["brand_vs_generic"] = "brand_vs_generic"
    generic_share: float
    previous_generic_share: Optional[float] = None
    health: Literal["healthy", "moderate", "brand_dependent", "very_brand_dependent"]
    recommendation: str
    brand: QueryClassStats
    generic: QueryClassStats
    brand_keywords: List[str] = Field(default_factory=list)


# =============================================================================
# CROSS-SOURCE
# =============================================================================

class PageTypeConversion(_Payload):
    page_type: Literal["product", "category", "blog", "other"]
    clicks: int
    estimated_orders: float
    conversion_rate: float


class ZeroSalesPage(_Payload):
    page: str
    clicks: int
    impressions: int
    reason: Literal["high_traffic_zero_sales"] = "high_traffic_zero_sales"


class OrganicConversionPayload(_Payload):
    kind: Literal["organic_conversion_rate"] = "organic_conversion_rate"
    organic_clicks: int
    previous_organic_clicks: int
    total_orders: int
    previous_total_orders: int
    attributed_orders: int
    previous_attributed_orders: int
    attribution_rate: float
    previous_conversion_rate: Optional[float] = None
    by_page_type: List[PageTypeConversion] = Field(default_factory=list)
    alerts: List[ZeroSalesPage] = Field(default_factory=list)


class StockRiskProduct(_Payload):
    product_id: str
    name: str
    stock_level: int
    min_stock_level: int
    organic_clicks: int
    daily_velocity: float
    days_until_stockout: int
    severity: Literal["critical", "high", "medium"]
    risk_type: Literal["out_of_stock", "low_stock", "medium_stock"]
    revenue_at_risk: float


class StockRiskPayload(_Payload):
    kind: Literal["stock_availability_risk"] = "stock_availability_risk"
    products_checked: int
    products_at_risk: int
    critical_count: int
    high_count: int
    medium_count: int
    total_revenue_at_risk: float
    conversion_rate: float
    at_risk: List[StockRiskProduct] = Field(default_factory=list)


# =============================================================================
# WEB ANALYTICS
# =============================================================================

class ChannelShare(_Payload):
    channel: str
    sessions: int
    percentage: float


class TrafficSourcePayload(_Payload):
    kind: Literal["traffic_source_mix"] = "traffic_source_mix"
    total_sessions: int
    top_channel: Optional[str] = None
    diversity_score: float
    is_concentrated: bool
    channels: List[ChannelShare] = Field(default_factory=list)


class BounceRatePayload(_Payload):
    kind: Literal["bounce_rate_trend"] = "bounce_rate_trend"
    current_bounce_rate: float
    previous_bounce_rate: Optional[float] = None
    sessions: int
    engaged_sessions: int
    previous_sessions: int
    is_improvement: Optional[bool] = None


class LandingPageStats(_Payload):
    page: str
    sessions: int
    bounce_rate: float
    traffic_share: float


class LandingPagePayload(_Payload):
    kind: Literal["landing_page_quality"] = "landing_page_quality"
    pages_analyzed: int
    total_sessions: int
    problem_pages: List[LandingPageStats] = Field(default_factory=list)
    good_pages: List[LandingPageStats] = Field(default_factory=list)
    problem_traffic_share: float


IndicatorPayload = Annotated[
    Union[
        SalesTrendPayload,
        AovPayload,
        GrossMarginPayload,
        PositionChangePayload,
        BrandMixPayload,
        OrganicConversionPayload,
        StockRiskPayload,
        TrafficSourcePayload,
        BounceRatePayload,
        LandingPagePayload,
    ],
    Field(discriminator="kind"),
]


# =============================================================================
# ENVELOPE
# =============================================================================

class IndicatorContext(BaseModel):
    """Free-text notes plus the flags readers filter on"""

    model_config = ConfigDict(frozen=True)

    notes: List[str] = Field(default_factory=list)
    anomaly_detected: bool = False
    anomaly_type: Optional[str] = None
    no_comparison_data: bool = False
    is_estimated: bool = False


class IndicatorResult(BaseModel):
    """One computed indicator for one tenant and one period"""

    model_config = ConfigDict(frozen=True)

    id: IndicatorKind
    name: str
    category: IndicatorCategory
    value: Union[float, str]
    unit: str
    direction: Direction
    change_percent: Optional[float] = None
    change_absolute: Optional[float] = None
    period: Period
    comparison_period: Optional[Period] = None
    confidence: Confidence
    priority: Priority
    thresholds: Thresholds
    alert_triggered: bool
    payload: IndicatorPayload
    context: IndicatorContext = Field(default_factory=IndicatorContext)
    calculated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def numeric_value(self) -> Optional[float]:
        """Scalar stored alongside the payload for querying"""
        if isinstance(self.value, (int, float)):
            return float(self.value)
        return self.change_percent

    def comparable(self) -> dict:
        """Serialized form without the run timestamp"""
        return self.model_dump(mode="json", exclude={"calculated_at"})
