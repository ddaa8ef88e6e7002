"""
Test Suite Configuration
"""
from datetime import timedelta
from typing import AsyncGenerator, Dict, List, Optional, Set, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from indicator_engine.config import EngineSettings
from indicator_engine.database.models import Base
from indicator_engine.engine.exceptions import PersistenceError
from indicator_engine.indicators.classification import Priority
from indicator_engine.indicators.periods import PeriodLabel
from indicator_engine.indicators.records import SourceRecords
from indicator_engine.indicators.results import IndicatorResult
from indicator_engine.indicators.types import DataSource, IndicatorKind

from tests.factories import (
    CURRENT_DAY,
    PREVIOUS_DAY,
    analytics_row,
    make_item,
    make_order,
    make_product,
    search_row,
)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeRecordSource:
    """In-memory record source; sources listed in ``failing`` raise on fetch"""

    def __init__(self, records: SourceRecords, failing: Optional[Set[DataSource]] = None):
        self.records = records
        self.failing = failing or set()
        self.calls: List[str] = []

    def _check(self, source: DataSource) -> None:
        self.calls.append(source.value)
        if source in self.failing:
            raise ConnectionError(f"{source.value} unavailable")

    async def fetch_orders(self, tenant_id, start, end):
        self._check(DataSource.ORDERS)
        return list(self.records.orders)

    async def fetch_products(self, tenant_id):
        self._check(DataSource.PRODUCTS)
        return list(self.records.products)

    async def fetch_search_rows(self, tenant_id, start, end):
        self._check(DataSource.SEARCH)
        return list(self.records.search_rows)

    async def fetch_analytics_rows(self, tenant_id, start, end):
        self._check(DataSource.WEB_ANALYTICS)
        return list(self.records.analytics_rows)


class FakeSnapshotStore:
    """Dict-backed snapshot store keyed like the real table"""

    def __init__(self, failing: Optional[Set[IndicatorKind]] = None):
        self.snapshots: Dict[Tuple[str, str, str], IndicatorResult] = {}
        self.failing = failing or set()
        self.writes = 0

    async def upsert(self, tenant_id: str, result: IndicatorResult) -> None:
        if result.id in self.failing:
            raise PersistenceError("disk full", indicator_id=result.id.value)
        self.writes += 1
        self.snapshots[(tenant_id, result.id.value, result.period.label.value)] = result

    async def get_indicators(self, tenant_id, period_label=None) -> List[IndicatorResult]:
        label = PeriodLabel.parse(period_label).value if period_label is not None else None
        results = [
            result
            for (tenant, _, stored_label), result in self.snapshots.items()
            if tenant == tenant_id and (label is None or stored_label == label)
        ]
        return sorted(results, key=lambda r: (Priority(r.priority).rank, r.id.value))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def engine_settings() -> EngineSettings:
    """Engine heuristics with their default values"""
    return EngineSettings()


@pytest.fixture
def full_records() -> SourceRecords:
    """A tenant with rows in every source and both windows"""
    items = [make_item("p1", quantity=2, unit_price=250.0, product_name="Lackspray Röd")]
    orders = [
        make_order(f"cur-{i}", 500.0, CURRENT_DAY - timedelta(days=i % 20), items=items, currency="SEK")
        for i in range(30)
    ] + [
        make_order(f"prev-{i}", 450.0, PREVIOUS_DAY - timedelta(days=i % 10), items=items, currency="SEK")
        for i in range(25)
    ]
    products = [
        make_product("p1", name="Lackspray Röd", stock_level=40, unit_price=250.0, unit_cost=120.0),
        make_product("p2", name="Polermedel", stock_level=0, unit_price=180.0),
    ]
    search_rows = [
        search_row("billackering", "/", clicks=120, impressions=900, position=1.4),
        search_row("lackspray röd", "/produkt/lackspray-rod", clicks=80, impressions=1500, position=4.0),
        search_row("polermedel bil", "/produkt/polermedel", clicks=30, impressions=700, position=7.5),
        search_row("billackering", "/", clicks=100, impressions=850, position=1.6, day=PREVIOUS_DAY.date()),
        search_row(
            "lackspray röd", "/produkt/lackspray-rod", clicks=60, impressions=1400, position=6.0,
            day=PREVIOUS_DAY.date(),
        ),
    ]
    analytics_rows = [
        analytics_row("Organic Search", 900, 500, "/produkt/lackspray-rod"),
        analytics_row("Direct", 400, 150, "/"),
        analytics_row("Paid Search", 200, 60, "/kampanj"),
        analytics_row("Organic Search", 800, 480, "/produkt/lackspray-rod", day=PREVIOUS_DAY.date()),
    ]
    return SourceRecords(
        orders=orders,
        products=products,
        search_rows=search_rows,
        analytics_rows=analytics_rows,
    )


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the schema created"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)
