"""
Indicator Engine Orchestrator

Runs the whole catalog for one tenant and one period label:

1. Resolve the current and comparison windows
2. Fetch every record source once, covering both windows
3. For each indicator kind: skip if a required source is empty, otherwise
   calculate and persist it
4. Return a batch report of successes, skips and errors

A failure in one indicator (fetch, calculation or persistence) is recorded and
never stops the others.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indicator_engine.config import EngineSettings, get_settings
from indicator_engine.engine.exceptions import (
    CalculationError,
    FetchError,
    MissingDataSkip,
    PersistenceError,
)
from indicator_engine.engine.repository import SnapshotRepository, SnapshotStore
from indicator_engine.engine.sources import RecordSource, SqlRecordSource
from indicator_engine.indicators.catalog import calculate_indicator
from indicator_engine.indicators.periods import (
    PeriodLabel,
    compute_periods,
    default_period_end,
    fetch_window,
)
from indicator_engine.indicators.records import SourceRecords
from indicator_engine.indicators.results import IndicatorResult
from indicator_engine.indicators.types import DataSource, IndicatorKind

logger = structlog.get_logger(__name__)


# =============================================================================
# OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Success:
    indicator_id: IndicatorKind
    result: IndicatorResult


@dataclass(frozen=True)
class Skipped:
    indicator_id: IndicatorKind
    reason: str


@dataclass(frozen=True)
class Failed:
    indicator_id: IndicatorKind
    error_message: str


IndicatorOutcome = Union[Success, Skipped, Failed]


@dataclass(frozen=True)
class BatchReport:
    """Outcome of one engine run"""
    tenant_id: str
    period_label: PeriodLabel
    period_end: datetime
    outcomes: Tuple[IndicatorOutcome, ...] = ()
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> List[str]:
        return [o.indicator_id.value for o in self.outcomes if isinstance(o, Success)]

    @property
    def skipped(self) -> List[str]:
        return [o.indicator_id.value for o in self.outcomes if isinstance(o, Skipped)]

    @property
    def errors(self) -> List[Dict[str, str]]:
        return [
            {"id": o.indicator_id.value, "error_message": o.error_message}
            for o in self.outcomes
            if isinstance(o, Failed)
        ]

    @property
    def results(self) -> List[IndicatorResult]:
        return [o.result for o in self.outcomes if isinstance(o, Success)]

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "period_label": self.period_label.value,
            "period_end": self.period_end.isoformat(),
            "success": self.success,
            "errors": self.errors,
            "skipped": self.skipped,
        }


def _describe(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


# =============================================================================
# ENGINE
# =============================================================================

class IndicatorEngine:
    """
    Batch orchestrator for the indicator catalog.

    Example:
        engine = IndicatorEngine.from_session_factory(session_factory)
        report = await engine.run("tenant-1", "30d")
        print(report.success, report.errors, report.skipped)
    """

    def __init__(
        self,
        source: RecordSource,
        repository: SnapshotStore,
        config: Optional[EngineSettings] = None,
    ):
        self.source = source
        self.repository = repository
        self.config = config if config is not None else get_settings().engine

    @classmethod
    def from_session_factory(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        config: Optional[EngineSettings] = None,
    ) -> "IndicatorEngine":
        return cls(SqlRecordSource(session_factory), SnapshotRepository(session_factory), config)

    async def run(
        self,
        tenant_id: str,
        period_label: Union[str, PeriodLabel],
        period_end: Optional[datetime] = None,
    ) -> BatchReport:
        """
        Calculate and persist every indicator for one tenant.

        Args:
            tenant_id: Tenant whose records are read
            period_label: short/medium/long or 7d/30d/90d
            period_end: Reference end; defaults to the end of yesterday

        Returns:
            BatchReport with one outcome per indicator kind
        """
        label = PeriodLabel.parse(period_label)
        period_end = period_end or default_period_end()
        started_at = datetime.utcnow()
        log = logger.bind(tenant_id=tenant_id, period_label=label.value)

        current, comparison = compute_periods(period_end, label)
        log.info(
            "Indicator run started",
            period_start=current.start.isoformat(),
            period_end=current.end.isoformat(),
            comparison_start=comparison.start.isoformat(),
        )

        # Step 1: fetch every source once
        records, fetch_failures = await self._fetch(tenant_id, period_end, label)

        # Step 2: one outcome per kind, in catalog order
        outcomes = tuple(
            [
                await self._run_indicator(kind, tenant_id, records, fetch_failures, period_end, label)
                for kind in IndicatorKind
            ]
        )

        report = BatchReport(
            tenant_id=tenant_id,
            period_label=label,
            period_end=period_end,
            outcomes=outcomes,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )
        log.info(
            "Indicator run completed",
            success=len(report.success),
            errors=len(report.errors),
            skipped=len(report.skipped),
            duration_seconds=round((report.completed_at - started_at).total_seconds(), 3),
        )
        return report

    async def get_indicators(
        self,
        tenant_id: str,
        period_label: Optional[Union[str, PeriodLabel]] = None,
    ) -> List[IndicatorResult]:
        """Stored results for a tenant, read back through the repository."""
        return await self.repository.get_indicators(tenant_id, period_label)

    # -------------------------------------------------------------------------

    async def _fetch(
        self,
        tenant_id: str,
        period_end: datetime,
        label: PeriodLabel,
    ) -> Tuple[SourceRecords, Dict[DataSource, FetchError]]:
        start, end = fetch_window(period_end, label)
        failures: Dict[DataSource, FetchError] = {}

        async def guarded(source: DataSource, fetch: Callable[[], Awaitable[list]]) -> list:
            try:
                return await fetch()
            except Exception as e:
                logger.error(
                    "Record fetch failed",
                    tenant_id=tenant_id,
                    source=source.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                failures[source] = FetchError(_describe(e), source=source.value)
                return []

        records = SourceRecords(
            orders=await guarded(
                DataSource.ORDERS, lambda: self.source.fetch_orders(tenant_id, start, end)
            ),
            products=await guarded(
                DataSource.PRODUCTS, lambda: self.source.fetch_products(tenant_id)
            ),
            search_rows=await guarded(
                DataSource.SEARCH, lambda: self.source.fetch_search_rows(tenant_id, start, end)
            ),
            analytics_rows=await guarded(
                DataSource.WEB_ANALYTICS,
                lambda: self.source.fetch_analytics_rows(tenant_id, start, end),
            ),
        )
        return records, failures

    async def _run_indicator(
        self,
        kind: IndicatorKind,
        tenant_id: str,
        records: SourceRecords,
        fetch_failures: Dict[DataSource, FetchError],
        period_end: datetime,
        label: PeriodLabel,
    ) -> IndicatorOutcome:
        log = logger.bind(tenant_id=tenant_id, indicator_id=kind.value, period_label=label.value)

        failed_inputs = sorted(source.value for source in kind.inputs if source in fetch_failures)
        if failed_inputs:
            message = "; ".join(
                f"{source}: {fetch_failures[DataSource(source)]}" for source in failed_inputs
            )
            log.warning("Indicator not calculated, source fetch failed", sources=failed_inputs)
            return Failed(kind, f"FetchError: {message}")

        missing = records.missing(kind.requires)
        if missing:
            skip = MissingDataSkip(
                f"No rows for {', '.join(sorted(s.value for s in missing))}",
                indicator_id=kind.value,
            )
            log.info("Indicator skipped", reason=str(skip))
            return Skipped(kind, str(skip))

        try:
            result = calculate_indicator(kind, records, period_end, label, self.config)
        except Exception as e:
            error = CalculationError(_describe(e), indicator_id=kind.value)
            log.exception("Indicator calculation failed")
            return Failed(kind, f"CalculationError: {error}")

        try:
            await self.repository.upsert(tenant_id, result)
        except PersistenceError as e:
            return Failed(kind, f"PersistenceError: {e}")
        except Exception as e:
            log.exception("Indicator persistence failed")
            return Failed(kind, f"PersistenceError: {_describe(e)}")

        log.info(
            "Indicator saved",
            value=result.value,
            direction=result.direction.value,
            priority=result.priority.value,
            alert_triggered=result.alert_triggered,
        )
        return Success(kind, result)
