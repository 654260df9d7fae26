from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Intent(BaseModel):
    """Advisory classification of the user's idea."""

    specific: str | None = None  # category name when exactly one matched
    general: bool = True


class SearchTarget(BaseModel):
    """A candidate page/image pair returned by the search API, not yet validated."""

    title: str | None = None
    page_url: str | None = None
    image_url: str | None = None

    @property
    def key(self) -> str | None:
        return self.page_url or self.image_url


class ExtractedRecord(BaseModel):
    """Product fields recovered from one extraction source on a page."""

    is_product: bool = False  # only structured data with a typed Product sets this
    name: str | None = None
    description: str | None = None
    images: list[str] = []  # absolute URLs, page order
    price: float | None = None
    currency: str | None = None
    url: str


class Product(BaseModel):
    title: str
    description: str | None = None
    price: float | None = None
    currency: str = "USD"
    image: str | None = None
    url: str
    source: str  # hostname the product was hydrated from

    @property
    def key(self) -> str:
        if self.url:
            return self.url
        return f"img:{self.image}" if self.image else ""


class SkipReason(str, Enum):
    NO_PAGE_URL = "no_page_url"
    NOT_PRODUCT_URL = "not_product_url"
    ROBOTS_DISALLOWED = "robots_disallowed"
    FETCH_FAILED = "fetch_failed"
    BAD_STATUS = "bad_status"
    NOT_HTML = "not_html"
    PARSE_FAILED = "parse_failed"
    LISTING_PAGE = "listing_page"
    NO_PRICE = "no_price"
    INCOMPLETE = "incomplete"
    DUPLICATE = "duplicate"


class HydrationOutcome(BaseModel):
    """Result of hydrating one target: either a product or the reason it was skipped."""

    target: SearchTarget
    product: Product | None = None
    skip_reason: SkipReason | None = None

    @property
    def ok(self) -> bool:
        return self.product is not None


class PriceBand(BaseModel):
    # Half-open [min, max); the top band's max is +inf
    min: float
    max: float

    def contains(self, price: float) -> bool:
        return self.min <= price < self.max


class PriceBands(BaseModel):
    low: PriceBand
    mid: PriceBand
    high: PriceBand


class BandsPayload(PriceBands):
    avg: float | None = None


class ResultSet(BaseModel):
    bands: PriceBands
    low: list[Product] = []
    mid: list[Product] = []
    high: list[Product] = []

    @property
    def yield_count(self) -> int:
        return len(self.low) + len(self.mid) + len(self.high)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class ProductsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str | None = None
    budget: Any = None  # coerced later; invalid values fall back to the default
    image: bool = True  # image-search mode
    ikea_only: bool = True
    retailers: list[str] | None = None


class ProductsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    bands: BandsPayload
    low: list[Product]
    mid: list[Product]
    high: list[Product]
    all_count: int
    priced_count: int
    intent: Intent
    ikea_only: bool
    retailers: list[str]
