"""
Indicator Calculators Module

Period arithmetic, classification helpers, and one pure calculator per
indicator in the fixed catalog.
"""
from .catalog import calculate_indicator
from .classification import Confidence, Direction, Priority, Thresholds
from .periods import Period, PeriodLabel, compute_periods, default_period_end
from .records import (
    Order,
    OrderLineItem,
    Product,
    SearchPerformanceRow,
    SourceRecords,
    WebAnalyticsRow,
)
from .results import IndicatorResult
from .types import DataSource, IndicatorCategory, IndicatorKind

__all__ = [
    "calculate_indicator",
    "Confidence",
    "Direction",
    "Priority",
    "Thresholds",
    "Period",
    "PeriodLabel",
    "compute_periods",
    "default_period_end",
    "Order",
    "OrderLineItem",
    "Product",
    "SearchPerformanceRow",
    "SourceRecords",
    "WebAnalyticsRow",
    "IndicatorResult",
    "DataSource",
    "IndicatorCategory",
    "IndicatorKind",
]
