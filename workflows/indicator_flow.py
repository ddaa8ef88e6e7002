"""
Prefect Workflow Orchestration - Indicator Runs

Scheduled indicator calculation with:
- One engine run per tenant and period label
- Retries on whole-run failures
- Alert logging for indicators that fail or trigger thresholds
"""

from datetime import datetime
from typing import List, Optional

from prefect import flow, task, get_run_logger

from indicator_engine.config.logging import configure_logging
from indicator_engine.database.connection import init_database, close_database, get_session_factory
from indicator_engine.engine.orchestrator import IndicatorEngine
from indicator_engine.indicators.periods import PeriodLabel, default_period_end


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="run_indicator_batch",
    description="Calculate and store every indicator for one tenant and period",
    retries=2,
    retry_delay_seconds=60,
)
async def run_indicator_batch(
    tenant_id: str,
    period_label: str = "30d",
    period_end: Optional[datetime] = None,
) -> dict:
    """Run the engine once and return the batch report"""
    logger = get_run_logger()

    engine = IndicatorEngine.from_session_factory(get_session_factory())
    report = await engine.run(tenant_id, period_label, period_end)

    logger.info(
        f"Indicator run for {tenant_id}/{report.period_label.value}: "
        f"{len(report.success)} saved, {len(report.errors)} failed, "
        f"{len(report.skipped)} skipped"
    )

    summary = report.to_dict()
    summary["alerts"] = [result.id.value for result in report.results if result.alert_triggered]
    return summary


@task(
    name="report_alerts",
    description="Log triggered alerts and failed indicators",
)
async def report_alerts(summaries: List[dict]) -> int:
    """Log alert and error lines, return how many were found"""
    logger = get_run_logger()
    found = 0

    for summary in summaries:
        tenant = summary["tenant_id"]
        period = summary["period_label"]
        for indicator_id in summary["alerts"]:
            logger.warning(f"[ALERT] {tenant}/{period}: {indicator_id} crossed its threshold")
            found += 1
        for error in summary["errors"]:
            logger.error(f"[ERROR] {tenant}/{period}: {error['id']} - {error['error_message']}")
            found += 1

    return found


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="scheduled_indicator_run",
    description="Daily indicator calculation for a set of tenants",
    retries=1,
    retry_delay_seconds=300,
)
async def scheduled_indicator_run(
    tenant_ids: List[str],
    period_labels: Optional[List[str]] = None,
    period_end: Optional[datetime] = None,
) -> dict:
    """
    Daily indicator pipeline.

    Steps:
    1. Open the database
    2. Run the engine for every tenant and period label
    3. Log alerts and failures
    """
    logger = get_run_logger()
    configure_logging()

    labels = [PeriodLabel.parse(label).value for label in (period_labels or ["7d", "30d", "90d"])]
    period_end = period_end or default_period_end()

    logger.info(f"Starting indicator run for {len(tenant_ids)} tenants, periods {labels}")

    await init_database()
    try:
        summaries = [
            await run_indicator_batch(tenant_id, label, period_end)
            for tenant_id in tenant_ids
            for label in labels
        ]
        alert_count = await report_alerts(summaries)
    finally:
        await close_database()

    return {
        "period_end": period_end.isoformat(),
        "runs": summaries,
        "alerts": alert_count,
        "status": "success",
    }


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import asyncio

    asyncio.run(scheduled_indicator_run(["default"]))
