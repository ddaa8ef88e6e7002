"""
Polars frame builders for the calculators.

Every builder takes an explicit schema so an empty record list still yields a
frame with the expected columns and dtypes.
"""

from typing import Dict, Iterable

import polars as pl

from indicator_engine.indicators.periods import Period
from indicator_engine.indicators.records import Order, SearchPerformanceRow, WebAnalyticsRow


ORDER_SCHEMA = {
    "order_id": pl.Utf8,
    "order_date": pl.Date,
    "total_amount": pl.Float64,
}

LINE_ITEM_SCHEMA = {
    "order_id": pl.Utf8,
    "order_date": pl.Date,
    "product_ref": pl.Utf8,
    "product_name": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
    "revenue": pl.Float64,
}

SEARCH_SCHEMA = {
    "date": pl.Date,
    "query": pl.Utf8,
    "page": pl.Utf8,
    "clicks": pl.Int64,
    "impressions": pl.Int64,
    "position": pl.Float64,
}

ANALYTICS_SCHEMA = {
    "date": pl.Date,
    "channel": pl.Utf8,
    "landing_page": pl.Utf8,
    "sessions": pl.Int64,
    "engaged_sessions": pl.Int64,
}


def orders_frame(orders: Iterable[Order]) -> pl.DataFrame:
    rows = [
        {
            "order_id": order.order_id,
            "order_date": order.order_date,
            "total_amount": order.total_amount,
        }
        for order in orders
    ]
    return pl.DataFrame(rows, schema=ORDER_SCHEMA)


def line_items_frame(orders: Iterable[Order]) -> pl.DataFrame:
    """One row per line item, with revenue already resolved"""
    rows = [
        {
            "order_id": order.order_id,
            "order_date": order.order_date,
            "product_ref": item.product_ref,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "revenue": item.revenue,
        }
        for order in orders
        for item in order.line_items
    ]
    return pl.DataFrame(rows, schema=LINE_ITEM_SCHEMA)


def search_frame(rows: Iterable[SearchPerformanceRow]) -> pl.DataFrame:
    data = [row.model_dump() for row in rows]
    return pl.DataFrame(data, schema=SEARCH_SCHEMA)


def analytics_frame(rows: Iterable[WebAnalyticsRow]) -> pl.DataFrame:
    data = [row.model_dump() for row in rows]
    return pl.DataFrame(data, schema=ANALYTICS_SCHEMA)


def in_period(frame: pl.DataFrame, period: Period, column: str = "date") -> pl.DataFrame:
    """Rows whose date falls inside the closed window"""
    return frame.filter(pl.col(column).is_between(period.start, period.end, closed="both"))


def weighted_position() -> pl.Expr:
    """Impression-weighted position, counting zero-impression rows once"""
    weight = pl.when(pl.col("impressions") > 0).then(pl.col("impressions")).otherwise(1)
    return (pl.col("position") * weight).sum() / weight.sum()


def rows_by_key(frame: pl.DataFrame, key: str) -> Dict[str, dict]:
    return {row[key]: row for row in frame.iter_rows(named=True)}
