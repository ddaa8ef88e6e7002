"""
Unit Tests - Search Indicators
"""
from indicator_engine.config import EngineSettings
from indicator_engine.indicators.classification import Direction, Priority
from indicator_engine.indicators.search import calculate_brand_vs_generic, calculate_position_change

from tests.factories import PERIOD_END, PREVIOUS_DAY, search_row

PREV = PREVIOUS_DAY.date()


class TestPositionChange:
    """Tests for calculate_position_change"""

    def test_improvement(self, engine_settings):
        """Lower position numbers in the current window are an improvement"""
        rows = [
            search_row("lackspray", position=5.0, impressions=100, clicks=10),
            search_row("vax", position=3.0, impressions=100, clicks=5),
            search_row("lackspray", position=10.0, impressions=100, clicks=4, day=PREV),
            search_row("vax", position=3.0, impressions=100, clicks=5, day=PREV),
        ]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)
        payload = result.payload

        assert payload.current_avg_position == 4.0
        assert payload.previous_avg_position == 6.5
        assert result.value == 2.5
        assert result.change_percent == 38.5
        assert result.direction is Direction.UP
        assert result.priority is Priority.HIGH
        assert result.alert_triggered
        assert (payload.improved, payload.declined, payload.stable) == (1, 0, 1)

    def test_significant_changes(self, engine_settings):
        """Queries moving three or more positions are listed with their impact"""
        rows = [
            search_row("lackspray", position=5.0, impressions=100),
            search_row("lackspray", position=10.0, impressions=100, day=PREV),
        ]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)
        [change] = result.payload.significant_changes

        assert change.query == "lackspray"
        assert change.change == 5.0
        assert change.impact == "high"

    def test_decline(self, engine_settings):
        """Rising position numbers count as declines"""
        rows = [
            search_row("vax", position=8.0, impressions=50),
            search_row("vax", position=4.0, impressions=50, day=PREV),
        ]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)

        assert result.value == -4.0
        assert result.direction is Direction.DOWN
        assert result.payload.declined == 1
        assert result.payload.significant_changes[0].impact == "medium"

    def test_no_comparison(self, engine_settings):
        """Only new queries means no change and a stable direction"""
        rows = [search_row("vax", position=4.0, impressions=10)]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)

        assert result.change_percent is None
        assert result.value == 0.0
        assert result.direction is Direction.STABLE
        assert result.payload.queries_compared == 0
        assert result.context.no_comparison_data

    def test_comparison_only(self, engine_settings):
        """Rows only in the comparison window still count as comparison data"""
        rows = [search_row("vax", position=4.0, impressions=10, day=PREV)]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)

        assert result.change_percent is None
        assert result.payload.previous_avg_position == 4.0
        assert result.payload.current_avg_position is None
        assert not result.context.no_comparison_data
        assert "No search data in the current window; change not computed" in result.context.notes

    def test_zero_impression_rows_weigh_once(self, engine_settings):
        """Rows without impressions still count with weight one"""
        rows = [
            search_row("a", position=4.0, impressions=0),
            search_row("b", position=8.0, impressions=0),
        ]

        result = calculate_position_change(rows, PERIOD_END, "30d", engine_settings)

        assert result.payload.current_avg_position == 6.0


class TestBrandVsGeneric:
    """Tests for calculate_brand_vs_generic"""

    def test_generic_share(self, engine_settings):
        """Queries containing a brand keyword are brand traffic"""
        rows = [
            search_row("billackering stockholm", clicks=30, impressions=300),
            search_row("BILSPRAY svart", clicks=10, impressions=100),
            search_row("lackera bil", clicks=60, impressions=900),
            search_row("billack", clicks=60, impressions=600, day=PREV),
            search_row("lackera bil", clicks=40, impressions=700, day=PREV),
        ]

        result = calculate_brand_vs_generic(rows, PERIOD_END, "30d", engine_settings)
        payload = result.payload

        assert result.value == 60.0
        assert payload.previous_generic_share == 40.0
        assert result.change_percent == 50.0
        assert result.change_absolute == 20.0
        assert result.direction is Direction.UP
        assert payload.health == "healthy"
        assert payload.brand.clicks == 40
        assert payload.generic.top_queries == ["lackera bil"]
        assert not result.alert_triggered

    def test_brand_dependent_alerts(self, engine_settings):
        """A generic share under the critical floor triggers an alert"""
        rows = [
            search_row("billackering", clicks=90),
            search_row("lackera bil", clicks=10),
        ]

        result = calculate_brand_vs_generic(rows, PERIOD_END, "30d", engine_settings)

        assert result.value == 10.0
        assert result.payload.health == "very_brand_dependent"
        assert result.alert_triggered
        assert result.change_percent is None

    def test_moderate_share_does_not_alert(self, engine_settings):
        """Shares between the critical floor and the upper warning stay quiet"""
        rows = [
            search_row("billackering", clicks=80),
            search_row("lackera bil", clicks=20),
        ]

        result = calculate_brand_vs_generic(rows, PERIOD_END, "30d", engine_settings)

        assert result.value == 20.0
        assert result.payload.health == "brand_dependent"
        assert result.thresholds.warning_low is None
        assert not result.alert_triggered

    def test_custom_keywords(self):
        """Brand keywords come from configuration"""
        config = EngineSettings(brand_keywords=["Acme"])
        rows = [
            search_row("acme lack", clicks=25),
            search_row("billackering", clicks=75),
        ]

        result = calculate_brand_vs_generic(rows, PERIOD_END, "30d", config)

        assert result.value == 75.0
        assert result.payload.brand_keywords == ["acme"]

    def test_no_clicks(self, engine_settings):
        """Zero clicks give a zero share and no alert"""
        rows = [search_row("lackera bil", clicks=0, impressions=40)]

        result = calculate_brand_vs_generic(rows, PERIOD_END, "30d", engine_settings)

        assert result.value == 0.0
        assert not result.alert_triggered
