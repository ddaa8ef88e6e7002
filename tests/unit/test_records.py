"""
Unit Tests - Source Records
"""
from datetime import datetime, timedelta, timezone

from indicator_engine.indicators.records import (
    Order,
    OrderLineItem,
    Product,
    SourceRecords,
    WebAnalyticsRow,
    slugify,
)
from indicator_engine.indicators.types import DataSource

from tests.factories import make_order, make_product


class TestSlugify:
    """Tests for slugify"""

    def test_folds_nordic_vowels(self):
        """å/ä fold to a and ö folds to o"""
        assert slugify("Lackspray Röd") == "lackspray-rod"
        assert slugify("Bättre Lack & Färg") == "battre-lack-farg"

    def test_strips_edge_dashes(self):
        """Leading and trailing separators are dropped"""
        assert slugify("  --Vax 500 ml!") == "vax-500-ml"


class TestRecords:
    """Tests for record defaults"""

    def test_line_item_defaults(self):
        """Missing quantity counts as one unit and revenue falls back to price"""
        item = OrderLineItem(product_ref="p1", quantity=None, unit_price=99.0)

        assert item.quantity == 1
        assert item.revenue == 99.0

    def test_line_total_wins(self):
        """A stored line total takes precedence over price x quantity"""
        item = OrderLineItem(product_ref="p1", quantity=3, unit_price=100.0, line_total=270.0)

        assert item.revenue == 270.0

    def test_order_coerces_numeric_strings(self):
        """Numeric strings from upstream feeds are coerced"""
        order = Order(order_id="o1", total_amount="149.50", created_at=datetime(2025, 3, 1, 10))

        assert order.total_amount == 149.5
        assert order.order_date.isoformat() == "2025-03-01"

    def test_aware_order_date_is_utc(self):
        """An aware timestamp is dated by its UTC calendar day"""
        stockholm_summer = timezone(timedelta(hours=3))
        order = Order(order_id="o1", created_at=datetime(2025, 3, 2, 1, 0, tzinfo=stockholm_summer))

        assert order.order_date.isoformat() == "2025-03-01"

    def test_naive_order_date_unchanged(self):
        """Naive timestamps are already UTC"""
        order = Order(order_id="o1", created_at=datetime(2025, 3, 2, 23, 30))

        assert order.order_date.isoformat() == "2025-03-02"

    def test_product_keys_and_slug(self):
        """Every identifier is a key and the slug falls back to the name"""
        product = make_product("p1", sku="SKU-1", name="Polermedel Extra")

        assert product.keys == {"p1", "SKU-1"}
        assert product.slug == "polermedel-extra"
        assert not product.has_cost

    def test_product_slug_prefers_url_slug(self):
        """A stored URL slug wins over the name"""
        product = Product(product_id="p2", name="Vax", url_slug="Premium-Vax")

        assert product.slug == "premium-vax"

    def test_analytics_channel_default(self):
        """Rows without a channel count as Direct"""
        row = WebAnalyticsRow(date="2025-03-01", channel=None, sessions=None)

        assert row.channel == "Direct"
        assert row.sessions == 0


class TestSourceRecords:
    """Tests for SourceRecords"""

    def test_missing_sources(self):
        """Only empty sources are reported missing"""
        records = SourceRecords(orders=[make_order("o1", 100.0)])

        assert records.row_count(DataSource.ORDERS) == 1
        assert records.missing([DataSource.ORDERS, DataSource.PRODUCTS]) == [DataSource.PRODUCTS]
