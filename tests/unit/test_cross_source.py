"""
Unit Tests - Cross-Source Indicators
"""
import pytest

from indicator_engine.config import EngineSettings
from indicator_engine.indicators.classification import Direction, Priority
from indicator_engine.indicators.cross_source import (
    calculate_organic_conversion,
    calculate_stock_risk,
    classify_stock_risk,
    days_until_stockout,
)

from tests.factories import (
    PERIOD_END,
    PREVIOUS_DAY,
    make_item,
    make_order,
    make_orders,
    make_product,
    search_row,
)

PREV = PREVIOUS_DAY.date()


class TestOrganicConversion:
    """Tests for calculate_organic_conversion"""

    def test_attributed_conversion_rate(self, engine_settings):
        """35% of qualifying orders are attributed to organic clicks"""
        orders = make_orders(20, 150.0) + make_orders(12, 150.0, PREVIOUS_DAY, prefix="prev")
        rows = [
            search_row("lack", "/category/lack", clicks=700),
            search_row("lack", "/category/lack", clicks=200, day=PREV),
        ]

        result = calculate_organic_conversion(rows, orders, PERIOD_END, "30d", engine_settings)
        payload = result.payload

        assert payload.attributed_orders == 7
        assert payload.previous_attributed_orders == 4
        assert result.value == 1.0
        assert payload.previous_conversion_rate == 2.0
        assert result.change_percent == -50.0
        assert result.direction is Direction.DOWN
        assert result.priority is Priority.CRITICAL
        assert not result.alert_triggered
        assert result.context.is_estimated

    def test_rounds_half_up(self):
        """Half an attributed order rounds up"""
        config = EngineSettings(organic_attribution_rate=0.5)
        rows = [search_row("lack", clicks=100)]

        result = calculate_organic_conversion(rows, make_orders(5, 100.0), PERIOD_END, "30d", config)

        assert result.payload.attributed_orders == 3
        assert result.value == 3.0

    def test_low_rate_alerts(self, engine_settings):
        """A rate under the warning floor alerts and under the critical floor is an anomaly"""
        rows = [search_row("lack", clicks=100)]

        result = calculate_organic_conversion(rows, [make_order("o1", 100.0)], PERIOD_END, "30d", engine_settings)

        assert result.value == 0.0
        assert result.alert_triggered
        assert result.priority is Priority.HIGH
        assert result.context.anomaly_type == "conversion_collapse"

    def test_no_comparison(self, engine_settings):
        """Without comparison clicks the change stays null"""
        rows = [search_row("lack", clicks=100)]

        result = calculate_organic_conversion(rows, make_orders(10, 100.0), PERIOD_END, "30d", engine_settings)

        assert result.change_percent is None
        assert result.direction is Direction.STABLE
        assert result.context.no_comparison_data

    def test_zero_sales_pages(self, engine_settings):
        """High-traffic product pages whose product did not sell are flagged"""
        orders = [
            make_order("o1", 250.0, items=[make_item("p1", product_name="Lackspray Röd")]),
        ] + make_orders(29, 100.0)
        rows = [
            search_row("lackspray", "/produkt/lackspray-rod", clicks=60),
            search_row("polermedel", "/product/polermedel", clicks=80, impressions=900),
            search_row("vax", "/product/vax", clicks=10),
        ]

        result = calculate_organic_conversion(rows, orders, PERIOD_END, "30d", engine_settings)

        assert [alert.page for alert in result.payload.alerts] == ["/product/polermedel"]
        assert result.payload.alerts[0].impressions == 900
        assert result.alert_triggered

    def test_page_type_breakdown_sums_to_attributed(self, engine_settings):
        """Weighted page type estimates add up to the attributed total"""
        rows = [
            search_row("lackspray", "/produkt/lackspray", clicks=300),
            search_row("lack", "/category/lack", clicks=200),
            search_row("guide", "/blog/lackera", clicks=100),
            search_row("start", "/", clicks=100),
        ]

        result = calculate_organic_conversion(rows, make_orders(40, 100.0), PERIOD_END, "30d", engine_settings)
        breakdown = {entry.page_type: entry for entry in result.payload.by_page_type}

        assert set(breakdown) == {"product", "category", "blog", "other"}
        assert sum(entry.estimated_orders for entry in breakdown.values()) == pytest.approx(
            result.payload.attributed_orders, abs=0.05
        )
        assert breakdown["product"].conversion_rate > breakdown["blog"].conversion_rate


class TestStockHelpers:
    """Tests for the stock-out helpers"""

    def test_days_until_stockout(self):
        """Zero stock is zero days and zero velocity is capped"""
        assert days_until_stockout(0, 1.0) == 0
        assert days_until_stockout(5, 0.0) == 999
        assert days_until_stockout(6, 18 / 30) == 10

    @pytest.mark.parametrize(
        "stock, days, min_stock, expected",
        [
            (0, 0, 5, ("critical", "out_of_stock")),
            (10, 3, 5, ("critical", "low_stock")),
            (10, 7, 5, ("high", "low_stock")),
            (4, 100, 5, ("high", "low_stock")),
            (6, 10, 5, ("medium", "medium_stock")),
            (10, 14, 5, ("medium", "medium_stock")),
            (10, 15, 5, None),
        ],
    )
    def test_classify_stock_risk(self, stock, days, min_stock, expected):
        """Severity follows days left, with stock under the minimum raised to high"""
        assert classify_stock_risk(stock, days, min_stock) == expected


class TestStockRisk:
    """Tests for calculate_stock_risk"""

    def test_ten_days_of_stock(self, engine_settings):
        """Stock 6 with 18 units sold in 30 days leaves 10 days"""
        products = [make_product("p1", name="Lackspray", stock_level=6, unit_price=200.0)]
        orders = [make_order("o1", 3600.0, items=[make_item("p1", quantity=18, unit_price=200.0)])]
        rows = [search_row("lackspray", "/produkt/lackspray", clicks=12)]

        result = calculate_stock_risk(products, rows, orders, PERIOD_END, "30d", engine_settings)
        [product] = result.payload.at_risk

        assert product.daily_velocity == 0.6
        assert product.days_until_stockout == 10
        assert product.severity == "medium"
        assert product.revenue_at_risk == 48.0
        assert result.value == 48.0
        assert result.priority is Priority.HIGH
        assert result.change_percent is None
        assert result.comparison_period is None

    def test_requires_organic_clicks(self, engine_settings):
        """Products with fewer than five organic clicks are not assessed"""
        products = [make_product("p1", name="Lackspray", stock_level=0, unit_price=200.0)]
        rows = [search_row("lackspray", "/produkt/lackspray", clicks=4)]

        result = calculate_stock_risk(products, rows, [], PERIOD_END, "30d", engine_settings)

        assert result.payload.products_checked == 0
        assert result.payload.at_risk == []
        assert result.priority is Priority.LOW
        assert result.value == 0.0

    def test_out_of_stock_is_critical(self, engine_settings):
        """A product with organic demand and no stock is critical"""
        products = [
            make_product("p1", name="Lackspray", stock_level=0, unit_price=200.0),
            make_product("p2", name="Vax", stock_level=3, unit_price=100.0),
        ]
        rows = [
            search_row("lackspray", "/produkt/lackspray", clicks=20),
            search_row("vax", "/p/vax", clicks=50),
        ]

        result = calculate_stock_risk(products, rows, [], PERIOD_END, "30d", engine_settings)
        at_risk = result.payload.at_risk

        assert [p.product_id for p in at_risk] == ["p1", "p2"]
        assert at_risk[0].risk_type == "out_of_stock"
        assert at_risk[1].severity == "high"
        assert at_risk[1].days_until_stockout == 999
        assert result.priority is Priority.CRITICAL
        assert result.alert_triggered
        assert result.context.anomaly_detected

    def test_uses_url_slug(self, engine_settings):
        """A stored URL slug is matched instead of the name"""
        products = [make_product("p1", name="Lack Spray 400ml", url_slug="lack-400", stock_level=0)]
        rows = [search_row("lack", "/product/lack-400?ref=x", clicks=8)]

        result = calculate_stock_risk(products, rows, [], PERIOD_END, "30d", engine_settings)

        assert result.payload.products_checked == 1
        assert result.payload.at_risk[0].organic_clicks == 8
