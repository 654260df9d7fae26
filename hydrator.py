"""
Page hydration: candidate target -> validated Product.

Each target goes through: URL-shape pre-filter -> robots gate -> fetch ->
parse -> extract + merge -> acceptance filters. Every target yields a
HydrationOutcome; a target that fails any step is a skip with a reason,
never an exception.
"""

import asyncio
import logging
from collections import Counter
from urllib.parse import urlparse

import httpx

from config import Settings
from extractor import extract_record, is_known_non_product_url, looks_like_category_url
from models import ExtractedRecord, HydrationOutcome, Product, SearchTarget, SkipReason
from parser import parse_html
from robots import RobotsGate

logger = logging.getLogger(__name__)


def _skip(target: SearchTarget, reason: SkipReason) -> HydrationOutcome:
    return HydrationOutcome(target=target, skip_reason=reason)


def build_product(target: SearchTarget, merged: ExtractedRecord) -> Product | SkipReason:
    """Apply the acceptance filters to a merged record.

    Returns the Product, or the SkipReason explaining why there is none.
    """
    page_url = target.page_url or ""

    # Listing pages often carry generic OG tags; only a typed Product overrides the URL shape
    if not merged.is_product and looks_like_category_url(page_url):
        return SkipReason.LISTING_PAGE
    if not merged.is_product and merged.price is None:
        return SkipReason.NO_PRICE

    title = merged.name or target.title
    images = merged.images or ([target.image_url] if target.image_url else [])
    if not title or merged.price is None or not images:
        return SkipReason.INCOMPLETE

    return Product(
        title=title,
        description=merged.description,
        price=merged.price,
        currency=merged.currency or "USD",
        image=images[0],
        url=merged.url or page_url,
        source=urlparse(page_url).hostname or "",
    )


def hydrate_html(target: SearchTarget, html: str) -> HydrationOutcome:
    """Extract and validate a product from already-fetched markup."""
    parsed = parse_html(html)
    merged = extract_record(parsed, target.page_url or "")
    result = build_product(target, merged)
    if isinstance(result, SkipReason):
        return _skip(target, result)
    return HydrationOutcome(target=target, product=result)


def summarize_skips(outcomes: list[HydrationOutcome]) -> dict[str, int]:
    """Count skip reasons across a batch of outcomes."""
    return dict(Counter(o.skip_reason.value for o in outcomes if o.skip_reason is not None))


def dedupe_outcomes(outcomes: list[HydrationOutcome]) -> list[HydrationOutcome]:
    """Mark repeat products within one batch (same product URL) as duplicates."""
    seen: set[str] = set()
    result: list[HydrationOutcome] = []
    for outcome in outcomes:
        if outcome.product is not None:
            if outcome.product.url in seen:
                outcome = _skip(outcome.target, SkipReason.DUPLICATE)
            else:
                seen.add(outcome.product.url)
        result.append(outcome)
    return result


class PageHydrator:
    def __init__(self, settings: Settings, client: httpx.AsyncClient, robots: RobotsGate):
        self.settings = settings
        self.client = client
        self.robots = robots

    async def hydrate_target(self, target: SearchTarget) -> HydrationOutcome:
        """Hydrate one target. Never raises for network or content problems."""
        if not target.page_url:
            return _skip(target, SkipReason.NO_PAGE_URL)

        if is_known_non_product_url(target.page_url):
            return _skip(target, SkipReason.NOT_PRODUCT_URL)

        if not await self.robots.allowed(target.page_url):
            return _skip(target, SkipReason.ROBOTS_DISALLOWED)

        try:
            resp = await self.client.get(
                target.page_url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.page_timeout,
                follow_redirects=True,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError):
            logger.debug("Fetch failed for %s", target.page_url)
            return _skip(target, SkipReason.FETCH_FAILED)

        if not resp.is_success:
            return _skip(target, SkipReason.BAD_STATUS)
        content_type = resp.headers.get("content-type", "").lower()
        if "text/html" not in content_type:
            return _skip(target, SkipReason.NOT_HTML)

        try:
            return hydrate_html(target, resp.text)
        except (ValueError, TypeError):
            logger.debug("Extraction failed for %s", target.page_url, exc_info=True)
            return _skip(target, SkipReason.PARSE_FAILED)

    async def hydrate(self, targets: list[SearchTarget]) -> list[HydrationOutcome]:
        """Hydrate a batch with at most `hydrate_concurrency` fetches in flight."""
        semaphore = asyncio.Semaphore(self.settings.hydrate_concurrency)

        async def _bounded(target: SearchTarget) -> HydrationOutcome:
            async with semaphore:
                return await self.hydrate_target(target)

        outcomes = await asyncio.gather(*[_bounded(t) for t in targets])
        outcomes = dedupe_outcomes(list(outcomes))

        hydrated = sum(1 for o in outcomes if o.ok)
        logger.info("[HYDRATE] %d/%d targets hydrated, skips=%s", hydrated, len(outcomes), summarize_skips(outcomes))
        return outcomes
