"""
Shared building blocks for the calculators.
"""

import math
from datetime import datetime
from typing import Optional, Sequence, Union

from indicator_engine.config import EngineSettings, get_settings
from indicator_engine.indicators.classification import (
    Confidence,
    Priority,
    determine_direction,
    thresholds_for,
)
from indicator_engine.indicators.periods import Period
from indicator_engine.indicators.records import Order
from indicator_engine.indicators.results import IndicatorContext, IndicatorPayload, IndicatorResult
from indicator_engine.indicators.types import IndicatorKind


def resolve_config(config: Optional[EngineSettings]) -> EngineSettings:
    return config if config is not None else get_settings().engine


def round_or_none(value: Optional[float], ndigits: int = 2) -> Optional[float]:
    if value is None:
        return None
    return round(value, ndigits)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive counts"""
    return int(math.floor(value + 0.5))


def safe_ratio(numerator: float, denominator: float, scale: float = 100.0) -> float:
    """numerator / denominator * scale, or 0 when the denominator is 0"""
    if not denominator:
        return 0.0
    return numerator / denominator * scale


def build_result(
    kind: IndicatorKind,
    *,
    value: Union[float, str],
    unit: str,
    change_percent: Optional[float],
    period: Period,
    comparison_period: Optional[Period],
    confidence: Confidence,
    priority: Priority,
    alert_triggered: bool,
    payload: IndicatorPayload,
    context: IndicatorContext,
    stability_threshold: float,
    change_absolute: Optional[float] = None,
    calculated_at: Optional[datetime] = None,
) -> IndicatorResult:
    """Assemble the common envelope; direction always follows the reported change."""
    return IndicatorResult(
        id=kind,
        name=kind.display_name,
        category=kind.category,
        value=value,
        unit=unit,
        direction=determine_direction(change_percent, stability_threshold),
        change_percent=change_percent,
        change_absolute=change_absolute,
        period=period,
        comparison_period=comparison_period,
        confidence=confidence,
        priority=priority,
        thresholds=thresholds_for(kind),
        alert_triggered=alert_triggered,
        payload=payload,
        context=context,
        calculated_at=calculated_at or datetime.utcnow(),
    )


def resolve_currency(orders: Sequence[Order], config: EngineSettings) -> str:
    """First currency found on the orders, else the configured default"""
    for order in orders:
        if order.currency:
            return order.currency
    return config.currency
