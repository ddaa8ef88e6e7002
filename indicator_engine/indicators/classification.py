"""
Classification Helpers

Pure step functions shared by every calculator:
- change magnitude -> priority
- sample size -> confidence
- signed change -> direction
- per-indicator alert threshold table
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from indicator_engine.indicators.types import IndicatorKind


class Direction(str, Enum):
    """Trend direction of an indicator"""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Priority(str, Enum):
    """Urgency of a change"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


class Confidence(str, Enum):
    """Reliability of a value given its sample size"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

DEFAULT_STABILITY_THRESHOLD = 0.5
MARGIN_STABILITY_THRESHOLD = 1.0
DEFAULT_HIGH_FLOOR = 30
DEFAULT_MEDIUM_FLOOR = 10


def determine_direction(
    change: Optional[float],
    threshold: float = DEFAULT_STABILITY_THRESHOLD,
) -> Direction:
    """Up/down by sign outside the stable band; a missing change is stable."""
    if change is None:
        return Direction.STABLE
    if change > threshold:
        return Direction.UP
    if change < -threshold:
        return Direction.DOWN
    return Direction.STABLE


def determine_priority(magnitude: Optional[float]) -> Priority:
    """
    Classify the size of a change.

    Margin-type indicators pass twice their percentage-point change.
    """
    if magnitude is None:
        return Priority.LOW
    magnitude = abs(magnitude)
    if magnitude > 20:
        return Priority.CRITICAL
    if magnitude > 10:
        return Priority.HIGH
    if magnitude > 5:
        return Priority.MEDIUM
    return Priority.LOW


def determine_confidence(
    sample_count: int,
    high_floor: int = DEFAULT_HIGH_FLOOR,
    medium_floor: int = DEFAULT_MEDIUM_FLOOR,
) -> Confidence:
    if sample_count >= high_floor:
        return Confidence.HIGH
    if sample_count >= medium_floor:
        return Confidence.MEDIUM
    return Confidence.LOW


class Thresholds(BaseModel):
    """Alert bounds for one indicator. Unset bounds are never crossed."""

    model_config = ConfigDict(frozen=True)

    critical_high: Optional[float] = None
    warning_high: Optional[float] = None
    warning_low: Optional[float] = None
    critical_low: Optional[float] = None

    def crosses_warning(self, value: Optional[float]) -> bool:
        """True when value is above warning_high or below warning_low."""
        if value is None:
            return False
        if self.warning_high is not None and value > self.warning_high:
            return True
        if self.warning_low is not None and value < self.warning_low:
            return True
        return False

    def crosses_critical(self, value: Optional[float]) -> bool:
        if value is None:
            return False
        if self.critical_high is not None and value > self.critical_high:
            return True
        if self.critical_low is not None and value < self.critical_low:
            return True
        return False


# Bounds apply to the value each calculator watches: relative change for the
# trend indicators, percentage points for margin, positions for ranking, and
# the current level for the share and rate indicators.
DEFAULT_THRESHOLDS: Dict[IndicatorKind, Thresholds] = {
    IndicatorKind.SALES_TREND: Thresholds(
        critical_high=30, warning_high=15, warning_low=-15, critical_low=-30,
    ),
    IndicatorKind.AOV: Thresholds(
        critical_high=20, warning_high=10, warning_low=-10, critical_low=-20,
    ),
    IndicatorKind.GROSS_MARGIN: Thresholds(
        critical_high=5, warning_high=3, warning_low=-3, critical_low=-5,
    ),
    IndicatorKind.POSITION_CHANGE: Thresholds(
        critical_high=5, warning_high=2, warning_low=-2, critical_low=-5,
    ),
    IndicatorKind.BRAND_VS_GENERIC: Thresholds(
        warning_high=90, critical_low=15,
    ),
    IndicatorKind.ORGANIC_CONVERSION_RATE: Thresholds(
        critical_high=5, warning_high=3, warning_low=0.5, critical_low=0.2,
    ),
    IndicatorKind.STOCK_AVAILABILITY_RISK: Thresholds(
        critical_high=20000, warning_high=5000,
    ),
    IndicatorKind.TRAFFIC_SOURCE_MIX: Thresholds(
        critical_high=80, warning_high=60,
    ),
    IndicatorKind.BOUNCE_RATE_TREND: Thresholds(
        critical_high=80, warning_high=65, warning_low=20, critical_low=10,
    ),
    IndicatorKind.LANDING_PAGE_QUALITY: Thresholds(
        critical_high=75, warning_high=50,
    ),
}


def thresholds_for(kind: IndicatorKind) -> Thresholds:
    return DEFAULT_THRESHOLDS[kind]


def change_percent(current: float, previous: Optional[float]) -> Optional[float]:
    """Relative change in percent; None when there is no usable denominator."""
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100
