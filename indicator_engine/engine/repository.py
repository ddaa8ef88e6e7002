"""
Indicator Snapshot Repository

Write side of the engine: one idempotent upsert per indicator result, keyed by
(tenant, indicator id, period label). Last write wins; there is no
cross-indicator transaction.
"""

from typing import List, Optional, Protocol, Union

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indicator_engine.database.models import IndicatorSnapshot
from indicator_engine.engine.exceptions import PersistenceError
from indicator_engine.indicators.classification import Priority
from indicator_engine.indicators.periods import PeriodLabel
from indicator_engine.indicators.results import IndicatorResult

logger = structlog.get_logger(__name__)

SNAPSHOT_KEY = ("tenant_id", "indicator_id", "period_label")

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SnapshotStore(Protocol):
    async def upsert(self, tenant_id: str, result: IndicatorResult) -> None:
        ...

    async def get_indicators(
        self,
        tenant_id: str,
        period_label: Optional[Union[str, PeriodLabel]] = None,
    ) -> List[IndicatorResult]:
        ...


def snapshot_values(tenant_id: str, result: IndicatorResult) -> dict:
    """Column values for one result: the full payload plus denormalized scalars"""
    return {
        "tenant_id": tenant_id,
        "indicator_id": result.id.value,
        "category": result.category.value,
        "period_label": result.period.label.value,
        "period_start": result.period.start,
        "period_end": result.period.end,
        "payload": result.model_dump(mode="json"),
        "numeric_value": result.numeric_value,
        "direction": result.direction.value,
        "change_percent": result.change_percent,
        "priority": result.priority.value,
        "confidence": result.confidence.value,
        "alert_triggered": result.alert_triggered,
        "calculated_at": result.calculated_at,
    }


class SnapshotRepository:
    """
    Persists and reads back indicator snapshots.

    Upserts use INSERT .. ON CONFLICT DO UPDATE on the snapshot key, so
    concurrent or repeated runs converge on the latest result.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, tenant_id: str, result: IndicatorResult) -> None:
        values = snapshot_values(tenant_id, result)
        try:
            async with self._session_factory() as session:
                dialect = session.bind.dialect.name
                insert = _INSERTS.get(dialect)
                if insert is None:
                    raise PersistenceError(
                        f"Upsert not supported for dialect {dialect}", indicator_id=result.id.value
                    )

                stmt = insert(IndicatorSnapshot).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(SNAPSHOT_KEY),
                    set_={
                        **{
                            column: stmt.excluded[column]
                            for column in values
                            if column not in SNAPSHOT_KEY
                        },
                        "updated_at": func.now(),
                    },
                )
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Snapshot upsert failed",
                tenant_id=tenant_id,
                indicator_id=result.id.value,
                error=str(e),
            )
            raise PersistenceError(str(e), indicator_id=result.id.value) from e

        logger.debug(
            "Snapshot saved",
            tenant_id=tenant_id,
            indicator_id=result.id.value,
            period_label=values["period_label"],
        )

    async def get_snapshots(
        self,
        tenant_id: str,
        period_label: Optional[Union[str, PeriodLabel]] = None,
    ) -> List[IndicatorSnapshot]:
        query = select(IndicatorSnapshot).where(IndicatorSnapshot.tenant_id == tenant_id)
        if period_label is not None:
            query = query.where(
                IndicatorSnapshot.period_label == PeriodLabel.parse(period_label).value
            )

        async with self._session_factory() as session:
            rows = list((await session.execute(query)).scalars().all())

        rows.sort(key=lambda row: (Priority(row.priority).rank, row.indicator_id, row.period_label))
        return rows

    async def get_indicators(
        self,
        tenant_id: str,
        period_label: Optional[Union[str, PeriodLabel]] = None,
    ) -> List[IndicatorResult]:
        """Stored results, most urgent first"""
        snapshots = await self.get_snapshots(tenant_id, period_label)
        return [IndicatorResult.model_validate(snapshot.payload) for snapshot in snapshots]
