"""
Indicator API Endpoints

Trigger an engine run for a tenant and read back the stored snapshots.
"""

from datetime import date, datetime, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
import structlog

from indicator_engine.database.connection import get_session_factory
from indicator_engine.engine.orchestrator import IndicatorEngine
from indicator_engine.indicators.periods import PeriodLabel
from indicator_engine.indicators.results import IndicatorResult

router = APIRouter()
logger = structlog.get_logger(__name__)


class IndicatorError(BaseModel):
    """Failed indicator in a batch"""
    id: str
    error_message: str


class RunResponse(BaseModel):
    """Batch outcome report"""
    tenant_id: str
    period_label: str
    period_end: datetime
    success: List[str]
    errors: List[IndicatorError]
    skipped: List[str]


def get_indicator_engine() -> IndicatorEngine:
    """FastAPI dependency building an engine on the shared session factory."""
    try:
        session_factory = get_session_factory()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return IndicatorEngine.from_session_factory(session_factory)


def _parse_period(period: str) -> PeriodLabel:
    try:
        return PeriodLabel.parse(period)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/{tenant_id}/run", response_model=RunResponse)
async def run_indicators(
    tenant_id: str,
    period: str = Query("30d", description="short|medium|long or 7d|30d|90d"),
    period_end: Optional[date] = Query(None, description="Last day of the current window"),
    engine: IndicatorEngine = Depends(get_indicator_engine),
) -> RunResponse:
    """
    Calculate and store every indicator for one tenant.

    Individual indicator failures are reported in ``errors``; the request
    itself only fails for invalid input.
    """
    label = _parse_period(period)
    end = datetime.combine(period_end, time.max) if period_end else None

    logger.info("Indicator run requested", tenant_id=tenant_id, period_label=label.value)
    report = await engine.run(tenant_id, label, end)
    return RunResponse(**report.to_dict())


@router.get("/{tenant_id}", response_model=List[IndicatorResult])
async def list_indicators(
    tenant_id: str,
    period: Optional[str] = Query(None, description="Filter by period label"),
    alerts_only: bool = False,
    engine: IndicatorEngine = Depends(get_indicator_engine),
) -> List[IndicatorResult]:
    """Stored indicator results, most urgent first."""
    label = _parse_period(period) if period else None
    results = await engine.get_indicators(tenant_id, label)
    if alerts_only:
        results = [result for result in results if result.alert_triggered]
    return results
