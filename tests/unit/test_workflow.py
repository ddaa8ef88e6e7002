"""
Unit Tests - Scheduled Indicator Workflow
"""
import logging
from types import SimpleNamespace

import pytest

from indicator_engine.engine.orchestrator import IndicatorEngine
from indicator_engine.indicators.types import IndicatorKind
from workflows import indicator_flow

from tests.conftest import FakeRecordSource, FakeSnapshotStore
from tests.factories import PERIOD_END


@pytest.fixture
def run_logger(monkeypatch):
    """Plain logger in place of the Prefect run logger"""
    logger = logging.getLogger("indicator_flow_test")
    monkeypatch.setattr(indicator_flow, "get_run_logger", lambda: logger)
    return logger


class TestReportAlerts:
    """Tests for the report_alerts task"""

    @pytest.mark.asyncio
    async def test_counts_alerts_and_errors(self, run_logger, caplog):
        """Every alert and every failed indicator is logged and counted"""
        summaries = [
            {
                "tenant_id": "acme",
                "period_label": "7d",
                "alerts": ["aov", "bounce_rate_trend"],
                "errors": [{"id": "gross_margin", "error_message": "PersistenceError: disk full"}],
            },
            {"tenant_id": "globex", "period_label": "30d", "alerts": [], "errors": []},
        ]

        with caplog.at_level(logging.WARNING, logger=run_logger.name):
            found = await indicator_flow.report_alerts.fn(summaries)

        assert found == 3
        assert "[ALERT] acme/7d: aov crossed its threshold" in caplog.text
        assert "[ERROR] acme/7d: gross_margin - PersistenceError: disk full" in caplog.text
        assert "globex" not in caplog.text

    @pytest.mark.asyncio
    async def test_nothing_to_report(self, run_logger):
        """Clean summaries report zero"""
        found = await indicator_flow.report_alerts.fn(
            [{"tenant_id": "acme", "period_label": "90d", "alerts": [], "errors": []}]
        )

        assert found == 0


class TestRunIndicatorBatch:
    """Tests for the run_indicator_batch task"""

    @pytest.mark.asyncio
    async def test_summary_lists_alerts(self, monkeypatch, run_logger, full_records, engine_settings):
        """The returned summary is the report plus the ids that triggered alerts"""
        store = FakeSnapshotStore()
        engine = IndicatorEngine(FakeRecordSource(full_records), store, engine_settings)
        monkeypatch.setattr(indicator_flow, "get_session_factory", lambda: object())
        monkeypatch.setattr(
            indicator_flow, "IndicatorEngine", SimpleNamespace(from_session_factory=lambda factory: engine)
        )

        summary = await indicator_flow.run_indicator_batch.fn("acme", "30d", PERIOD_END)

        expected_alerts = [result.id.value for result in store.snapshots.values() if result.alert_triggered]
        assert summary["tenant_id"] == "acme"
        assert summary["period_label"] == "30d"
        assert len(summary["success"]) == len(IndicatorKind)
        assert summary["errors"] == []
        assert sorted(summary["alerts"]) == sorted(expected_alerts)
