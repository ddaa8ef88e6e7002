"""
Database Module
"""
from .connection import (
    close_database,
    get_db,
    get_session_factory,
    init_database,
)
from .models import (
    Base,
    IndicatorSnapshot,
    OrderLineItemRecord,
    OrderRecord,
    ProductRecord,
    SearchPerformanceRecord,
    WebAnalyticsRecord,
)

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_session_factory",
    "Base",
    "IndicatorSnapshot",
    "OrderLineItemRecord",
    "OrderRecord",
    "ProductRecord",
    "SearchPerformanceRecord",
    "WebAnalyticsRecord",
]
