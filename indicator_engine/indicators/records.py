"""
Source Records

Read-only domain records handed to the calculators. They are validated from ORM
rows (``from_attributes``) or plain dicts, coercing numeric strings and filling
the defaults upstream feeds leave out.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from indicator_engine.indicators.types import DataSource


_SLUG_TRANSLATION = str.maketrans({"å": "a", "ä": "a", "ö": "o"})
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, fold Nordic vowels, join alphanumeric runs with dashes."""
    folded = text.lower().translate(_SLUG_TRANSLATION)
    return _NON_ALNUM.sub("-", folded).strip("-")


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrderLineItem(_Record):
    product_ref: Optional[str] = None
    product_name: Optional[str] = None
    quantity: int = 1
    unit_price: float = 0.0
    line_total: Optional[float] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, v):
        """Missing or zero quantities count as one unit"""
        return v or 1

    @field_validator("unit_price", mode="before")
    @classmethod
    def default_price(cls, v):
        return v or 0.0

    @property
    def revenue(self) -> float:
        """line_total, falling back to unit_price x quantity"""
        if self.line_total:
            return float(self.line_total)
        return self.unit_price * self.quantity


class Order(_Record):
    order_id: str
    total_amount: float = 0.0
    currency: Optional[str] = None
    created_at: datetime
    line_items: List[OrderLineItem] = Field(default_factory=list)

    @field_validator("total_amount", mode="before")
    @classmethod
    def default_total(cls, v):
        return v or 0.0

    @property
    def order_date(self) -> date:
        """Calendar date in UTC; naive timestamps are taken as UTC already"""
        created = self.created_at
        if created.tzinfo is not None:
            created = created.astimezone(timezone.utc)
        return created.date()


class Product(_Record):
    product_id: str
    product_ref: Optional[str] = None
    sku: Optional[str] = None
    name: str = ""
    category: Optional[str] = None
    stock_level: int = 0
    min_stock_level: Optional[int] = None
    unit_price: float = 0.0
    unit_cost: Optional[float] = None
    url_slug: Optional[str] = None

    @field_validator("stock_level", mode="before")
    @classmethod
    def default_stock(cls, v):
        return v or 0

    @field_validator("unit_price", mode="before")
    @classmethod
    def default_price(cls, v):
        return v or 0.0

    @property
    def keys(self) -> Set[str]:
        """Every identifier a line item may reference this product by"""
        return {key for key in (self.product_id, self.product_ref, self.sku) if key}

    @property
    def has_cost(self) -> bool:
        return bool(self.unit_cost)

    @property
    def slug(self) -> str:
        return (self.url_slug or slugify(self.name)).lower()


class SearchPerformanceRow(_Record):
    date: date
    query: str = ""
    page: str = ""
    clicks: int = 0
    impressions: int = 0
    position: float = 0.0

    @field_validator("clicks", "impressions", "position", mode="before")
    @classmethod
    def default_zero(cls, v):
        return v or 0

    @field_validator("query", "page", mode="before")
    @classmethod
    def default_blank(cls, v):
        return v or ""


class WebAnalyticsRow(_Record):
    date: date
    channel: str = "Direct"
    landing_page: Optional[str] = None
    sessions: int = 0
    engaged_sessions: int = 0

    @field_validator("channel", mode="before")
    @classmethod
    def default_channel(cls, v):
        return v or "Direct"

    @field_validator("sessions", "engaged_sessions", mode="before")
    @classmethod
    def default_zero(cls, v):
        return v or 0


@dataclass(frozen=True)
class SourceRecords:
    """Everything fetched for one tenant and one batch window"""
    orders: List[Order] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    search_rows: List[SearchPerformanceRow] = field(default_factory=list)
    analytics_rows: List[WebAnalyticsRow] = field(default_factory=list)

    def row_count(self, source: DataSource) -> int:
        if source is DataSource.ORDERS:
            return len(self.orders)
        if source is DataSource.PRODUCTS:
            return len(self.products)
        if source is DataSource.SEARCH:
            return len(self.search_rows)
        return len(self.analytics_rows)

    def missing(self, sources) -> List[DataSource]:
        """Required sources with zero rows"""
        return [source for source in sources if self.row_count(source) == 0]
