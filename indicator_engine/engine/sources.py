"""
Record Sources

Read side of the engine. A source returns validated domain records for one
tenant, pre-filtered to the batch window.
"""

from datetime import datetime
from typing import List, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from indicator_engine.database.models import (
    OrderRecord,
    ProductRecord,
    SearchPerformanceRecord,
    WebAnalyticsRecord,
)
from indicator_engine.indicators.records import (
    Order,
    Product,
    SearchPerformanceRow,
    WebAnalyticsRow,
)

logger = structlog.get_logger(__name__)


class RecordSource(Protocol):
    """What the orchestrator needs from the storage collaborators"""

    async def fetch_orders(self, tenant_id: str, start: datetime, end: datetime) -> List[Order]:
        ...

    async def fetch_products(self, tenant_id: str) -> List[Product]:
        ...

    async def fetch_search_rows(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> List[SearchPerformanceRow]:
        ...

    async def fetch_analytics_rows(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> List[WebAnalyticsRow]:
        ...


class SqlRecordSource:
    """
    Reads the source tables through SQLAlchemy.

    Each fetch opens its own short-lived session; nothing is written.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_orders(self, tenant_id: str, start: datetime, end: datetime) -> List[Order]:
        query = (
            select(OrderRecord)
            .options(selectinload(OrderRecord.line_items))
            .where(
                OrderRecord.tenant_id == tenant_id,
                OrderRecord.created_at >= start,
                OrderRecord.created_at <= end,
            )
            .order_by(OrderRecord.created_at)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            orders = [Order.model_validate(row) for row in rows]

        logger.debug("Fetched orders", tenant_id=tenant_id, count=len(orders))
        return orders

    async def fetch_products(self, tenant_id: str) -> List[Product]:
        query = (
            select(ProductRecord)
            .where(ProductRecord.tenant_id == tenant_id)
            .order_by(ProductRecord.product_id)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            products = [Product.model_validate(row) for row in rows]

        logger.debug("Fetched products", tenant_id=tenant_id, count=len(products))
        return products

    async def fetch_search_rows(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> List[SearchPerformanceRow]:
        query = (
            select(SearchPerformanceRecord)
            .where(
                SearchPerformanceRecord.tenant_id == tenant_id,
                SearchPerformanceRecord.date >= start.date(),
                SearchPerformanceRecord.date <= end.date(),
            )
            .order_by(SearchPerformanceRecord.date, SearchPerformanceRecord.query)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            search_rows = [SearchPerformanceRow.model_validate(row) for row in rows]

        logger.debug("Fetched search rows", tenant_id=tenant_id, count=len(search_rows))
        return search_rows

    async def fetch_analytics_rows(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> List[WebAnalyticsRow]:
        query = (
            select(WebAnalyticsRecord)
            .where(
                WebAnalyticsRecord.tenant_id == tenant_id,
                WebAnalyticsRecord.date >= start.date(),
                WebAnalyticsRecord.date <= end.date(),
            )
            .order_by(WebAnalyticsRecord.date, WebAnalyticsRecord.channel)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
            analytics_rows = [WebAnalyticsRow.model_validate(row) for row in rows]

        logger.debug("Fetched web analytics rows", tenant_id=tenant_id, count=len(analytics_rows))
        return analytics_rows
