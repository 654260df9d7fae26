"""
Product record extraction from parsed pages.

Two sources, merged field by field:
  A) JSON-LD structured data: the first node typed Product (authoritative)
  B) Heuristic metadata: title / Open Graph / itemprop tags, plus a
     last-resort price regex over the raw markup

Also holds the URL-shape checks used to keep listing and category pages
out of the results.
"""

import html as html_lib
import logging
import re
from typing import Any
from urllib.parse import parse_qs, urljoin, urlparse

from models import ExtractedRecord
from parser import ParsedPage

logger = logging.getLogger(__name__)

# Weak fallback for prices in inline scripts (price: 129, price = "129.99"); a quoted "price" key never matches
_PRICE_IN_MARKUP = re.compile(r"\bprice\b\s*[:=]\s*\"?(\d{1,5}(?:\.\d{1,2})?)\"?", re.IGNORECASE)

# Strips currency symbols, spaces and thousands separators before float()
_PRICE_NOISE = re.compile(r"[^\d.\-]")

# Path fragments that mark search, category and listing pages
CATEGORY_PATH_HINTS = (
    "/s/",
    "/search",
    "/category",
    "/collections",
    "/browse",
    "/catalog",
    "/list",
    "/plp",
    "/shop/all",
    "/c/",
    "/dept/",
)
# Query-string parameters used by on-site search and faceted listings
CATEGORY_QUERY_PARAMS = frozenset({"q", "search", "k", "keyword", "keywords", "refinements", "N", "Ns"})

# Retailers whose product detail pages have a recognizable URL shape
_IKEA_HOST = re.compile(r"ikea\.com$", re.IGNORECASE)
_IKEA_PRODUCT_PATH = re.compile(r"^/[a-z]{2}/en/p/", re.IGNORECASE)
_WESTELM_HOST = re.compile(r"westelm\.com$", re.IGNORECASE)


# =====================================================================
# URL shape checks
# =====================================================================


def looks_like_category_url(url: str) -> bool:
    """True if the URL path or query string carries a listing/search hint."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    path = parsed.path.lower()
    if any(h in path for h in CATEGORY_PATH_HINTS):
        return True
    params = parse_qs(parsed.query, keep_blank_values=True)
    return any(p in CATEGORY_QUERY_PARAMS or p.lower() in CATEGORY_QUERY_PARAMS for p in params)


def is_known_non_product_url(url: str) -> bool:
    """True if the URL belongs to a known retailer but is not product-shaped.

    Unknown hosts always pass; the check only rejects what it can recognize.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = parsed.hostname or ""
    if _IKEA_HOST.search(host):
        return not _IKEA_PRODUCT_PATH.search(parsed.path)
    if _WESTELM_HOST.search(host):
        return "/products/" not in parsed.path.lower()
    return False


def _absolute(url: str, base_url: str) -> str:
    try:
        return urljoin(base_url, url.strip())
    except ValueError:
        return url


def _clean_text(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    return html_lib.unescape(value).strip() or None


def to_price(value: Any) -> float | None:
    """Coerce a structured-data or meta price into a float, None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _PRICE_NOISE.sub("", value.replace(",", ""))
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


# =====================================================================
# Stage A: JSON-LD structured data
# =====================================================================


def _flatten_json_ld(blocks: list) -> list[dict]:
    """Flatten lists, @graph and mainEntity wrappers into one node list (document order)."""
    flat: list[dict] = []

    def visit(node: Any) -> None:
        if not node:
            return
        if isinstance(node, list):
            for item in node:
                visit(item)
        elif isinstance(node, dict):
            flat.append(node)
            if node.get("@graph"):
                visit(node["@graph"])
            if node.get("mainEntity"):
                visit(node["mainEntity"])

    for block in blocks:
        visit(block)
    return flat


def _is_product_node(node: dict) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Product" in node_type
    return node_type == "Product"


def _images_from_node(image: Any) -> list[str]:
    """Product.image comes as a string, a list of strings/ImageObjects, or a single ImageObject."""
    if isinstance(image, str):
        return [image]
    if isinstance(image, list):
        urls = []
        for item in image:
            if isinstance(item, str):
                urls.append(item)
            elif isinstance(item, dict) and isinstance(item.get("url"), str):
                urls.append(item["url"])
        return [u for u in urls if u]
    if isinstance(image, dict) and isinstance(image.get("url"), str):
        return [image["url"]]
    return []


def extract_structured_product(parsed: ParsedPage, page_url: str) -> ExtractedRecord | None:
    """Return the first Product node in JSON-LD as a record, or None if there is none."""
    product = next((n for n in _flatten_json_ld(parsed.json_ld) if _is_product_node(n)), None)
    if product is None:
        return None

    offers = product.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if not isinstance(offers, dict):
        offers = {}
    spec = offers.get("priceSpecification")
    if isinstance(spec, list):
        spec = spec[0] if spec else None
    if not isinstance(spec, dict):
        spec = {}

    # Priority: direct offer price, then priceSpecification, then AggregateOffer.lowPrice
    raw_price = offers.get("price")
    if raw_price is None:
        raw_price = spec.get("price")
    if raw_price is None:
        raw_price = offers.get("lowPrice")

    url = _clean_text(product.get("url")) or _clean_text(offers.get("url")) or page_url

    return ExtractedRecord(
        is_product=True,
        name=_clean_text(product.get("name")),
        description=_clean_text(product.get("description")),
        images=[_absolute(u, page_url) for u in _images_from_node(product.get("image"))],
        price=to_price(raw_price),
        currency=_clean_text(offers.get("priceCurrency")) or _clean_text(spec.get("priceCurrency")),
        url=_absolute(url, page_url),
    )


# =====================================================================
# Stage B: heuristic metadata fallback
# =====================================================================


def extract_fallback_meta(parsed: ParsedPage, page_url: str) -> ExtractedRecord:
    """Recover what the page's generic metadata offers. Never flags a product."""
    og = parsed.og_tags
    props = parsed.itemprops

    name = og.get("title") or parsed.title or None
    description = og.get("description") or parsed.meta_tags.get("description") or None
    image = og.get("image")

    price_tag = og.get("price:amount") or props.get("price")
    currency = og.get("price:currency") or props.get("priceCurrency") or None

    price = to_price(price_tag)
    if price_tag is None:
        price = _price_from_markup(parsed.html)

    return ExtractedRecord(
        is_product=False,
        name=name,
        description=description,
        images=[_absolute(image, page_url)] if image else [],
        price=price,
        currency=currency,
        url=page_url,
    )


def _price_from_markup(html: str) -> float | None:
    """First `price: <number>` in the raw markup; later matches are ignored."""
    match = _PRICE_IN_MARKUP.search(html or "")
    if not match:
        return None
    return to_price(match.group(1))


# =====================================================================
# Merge
# =====================================================================


def merge_records(structured: ExtractedRecord | None, fallback: ExtractedRecord) -> ExtractedRecord:
    """Field-by-field merge; structured values win whenever present."""
    if structured is None:
        return fallback
    return ExtractedRecord(
        is_product=True,
        name=structured.name or fallback.name,
        description=structured.description or fallback.description,
        images=structured.images or fallback.images,
        price=structured.price if structured.price is not None else fallback.price,
        currency=structured.currency or fallback.currency,
        url=structured.url or fallback.url,
    )


def extract_record(parsed: ParsedPage, page_url: str) -> ExtractedRecord:
    """Run both extraction stages and merge them."""
    structured = extract_structured_product(parsed, page_url)
    fallback = extract_fallback_meta(parsed, page_url)
    return merge_records(structured, fallback)
