"""
Tests for page hydration: every failure mode ends as a skip reason, never an exception.
"""

import asyncio

import httpx
import pytest

from conftest import product_page
from hydrator import PageHydrator, build_product, dedupe_outcomes, hydrate_html, summarize_skips
from models import ExtractedRecord, HydrationOutcome, Product, SearchTarget, SkipReason
from robots import RobotsGate

PAGE = "https://shop.example/products/hektar-lamp"


def html_response(html: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, headers={"content-type": "text/html; charset=utf-8"}, text=html)


def make_hydrator(settings, client) -> PageHydrator:
    return PageHydrator(settings, client, RobotsGate(settings, client))


class TestBuildProduct:
    def test_accepts_complete_record(self):
        target = SearchTarget(title="Search title", page_url=PAGE, image_url="https://img/t.jpg")
        merged = ExtractedRecord(
            is_product=True, name="Lamp", images=["https://img/a.jpg"], price=40.0, url=PAGE
        )
        product = build_product(target, merged)
        assert isinstance(product, Product)
        assert product.title == "Lamp"
        assert product.image == "https://img/a.jpg"
        assert product.currency == "USD"
        assert product.source == "shop.example"

    def test_falls_back_to_target_title_and_image(self):
        target = SearchTarget(title="Search title", page_url=PAGE, image_url="https://img/t.jpg")
        merged = ExtractedRecord(is_product=True, price=40.0, url=PAGE)
        product = build_product(target, merged)
        assert product.title == "Search title"
        assert product.image == "https://img/t.jpg"

    def test_listing_page_without_product_data(self):
        target = SearchTarget(page_url="https://shop.example/search?q=lamp")
        merged = ExtractedRecord(name="Lamps", images=["https://img/a.jpg"], price=10.0, url=target.page_url)
        assert build_product(target, merged) is SkipReason.LISTING_PAGE

    def test_typed_product_overrides_listing_shape(self):
        target = SearchTarget(page_url="https://shop.example/collections/lamps/oak-lamp")
        merged = ExtractedRecord(
            is_product=True, name="Oak", images=["https://img/a.jpg"], price=10.0, url=target.page_url
        )
        assert isinstance(build_product(target, merged), Product)

    def test_no_price_without_product_data(self):
        merged = ExtractedRecord(name="Lamp", images=["https://img/a.jpg"], url=PAGE)
        assert build_product(SearchTarget(page_url=PAGE), merged) is SkipReason.NO_PRICE

    @pytest.mark.parametrize(
        "merged",
        [
            ExtractedRecord(is_product=True, name="Lamp", images=["https://img/a.jpg"], url=PAGE),
            ExtractedRecord(is_product=True, images=["https://img/a.jpg"], price=5.0, url=PAGE),
            ExtractedRecord(is_product=True, name="Lamp", price=5.0, url=PAGE),
        ],
    )
    def test_incomplete(self, merged):
        assert build_product(SearchTarget(page_url=PAGE), merged) is SkipReason.INCOMPLETE


class TestHydrateHtml:
    def test_product_page(self, lamp_ld):
        outcome = hydrate_html(SearchTarget(page_url=PAGE), product_page(lamp_ld))
        assert outcome.ok
        assert outcome.product.price == 69.99
        assert outcome.product.image == "https://shop.example/images/hektar-1.jpg"

    def test_blank_page(self):
        outcome = hydrate_html(SearchTarget(page_url=PAGE), "<html></html>")
        assert outcome.skip_reason is SkipReason.NO_PRICE


class TestPageHydrator:
    @pytest.mark.asyncio
    async def test_valid_product(self, settings, mock_client, lamp_ld):
        client = mock_client({PAGE: html_response(product_page(lamp_ld))})
        outcome = await make_hydrator(settings, client).hydrate_target(SearchTarget(page_url=PAGE))
        assert outcome.ok
        assert outcome.product.title == "HEKTAR Floor lamp"

    @pytest.mark.asyncio
    async def test_missing_page_url(self, settings, mock_client):
        client = mock_client({})
        outcome = await make_hydrator(settings, client).hydrate_target(SearchTarget(image_url="https://img/a.jpg"))
        assert outcome.skip_reason is SkipReason.NO_PAGE_URL
        assert client.seen_requests == []

    @pytest.mark.asyncio
    async def test_known_non_product_url_not_fetched(self, settings, mock_client):
        client = mock_client({})
        target = SearchTarget(page_url="https://www.ikea.com/au/en/cat/floor-lamps-10731/")
        outcome = await make_hydrator(settings, client).hydrate_target(target)
        assert outcome.skip_reason is SkipReason.NOT_PRODUCT_URL
        assert client.seen_requests == []

    @pytest.mark.asyncio
    async def test_robots_disallow(self, settings, mock_client, lamp_ld):
        client = mock_client(
            {
                "https://shop.example/robots.txt": httpx.Response(200, text="User-agent: *\nDisallow: /products/\n"),
                PAGE: html_response(product_page(lamp_ld)),
            }
        )
        outcome = await make_hydrator(settings, client).hydrate_target(SearchTarget(page_url=PAGE))
        assert outcome.skip_reason is SkipReason.ROBOTS_DISALLOWED
        assert [r.url.path for r in client.seen_requests] == ["/robots.txt"]

    @pytest.mark.asyncio
    async def test_non_html_response(self, settings, mock_client):
        client = mock_client({PAGE: httpx.Response(200, json={"name": "Lamp", "price": 10})})
        outcome = await make_hydrator(settings, client).hydrate_target(SearchTarget(page_url=PAGE))
        assert outcome.skip_reason is SkipReason.NOT_HTML

    @pytest.mark.asyncio
    async def test_bad_status(self, settings, mock_client):
        outcome = await make_hydrator(settings, mock_client({})).hydrate_target(SearchTarget(page_url=PAGE))
        assert outcome.skip_reason is SkipReason.BAD_STATUS

    @pytest.mark.asyncio
    async def test_fetch_failure(self, settings, mock_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = mock_client({PAGE: refuse})
        outcome = await make_hydrator(settings, client).hydrate_target(SearchTarget(page_url=PAGE))
        assert outcome.skip_reason is SkipReason.FETCH_FAILED

    @pytest.mark.asyncio
    async def test_rejected_url_does_not_sink_batch(self, settings, mock_client, lamp_ld):
        client = mock_client({PAGE: html_response(product_page(lamp_ld))})
        targets = [
            SearchTarget(page_url=PAGE),
            SearchTarget(page_url="https://exämple..com/p/other"),
            SearchTarget(page_url="https://shop.example:port/p/other"),
        ]
        outcomes = await make_hydrator(settings, client).hydrate(targets)

        assert outcomes[0].ok
        assert outcomes[0].product.title == "HEKTAR Floor lamp"
        assert [o.skip_reason for o in outcomes[1:]] == [SkipReason.FETCH_FAILED, SkipReason.FETCH_FAILED]

    @pytest.mark.asyncio
    async def test_listing_page(self, settings, mock_client):
        head = '<meta property="og:title" content="Lamps">' '<meta property="product:price:amount" content="19">'
        client = mock_client({"https://shop.example/search": html_response(product_page(head=head))})
        target = SearchTarget(page_url="https://shop.example/search?q=lamp")
        outcome = await make_hydrator(settings, client).hydrate_target(target)
        assert outcome.skip_reason is SkipReason.LISTING_PAGE

    @pytest.mark.asyncio
    async def test_batch_dedupes_and_counts(self, settings, mock_client, lamp_ld):
        lamp_ld["url"] = PAGE
        client = mock_client(
            {
                PAGE: html_response(product_page(lamp_ld)),
                "https://shop.example/products/hektar-lamp-grey": html_response(product_page(lamp_ld)),
            }
        )
        targets = [
            SearchTarget(page_url=PAGE),
            SearchTarget(page_url="https://shop.example/products/hektar-lamp-grey"),
            SearchTarget(page_url="https://shop.example/products/missing"),
        ]
        outcomes = await make_hydrator(settings, client).hydrate(targets)

        assert [o.target for o in outcomes] == targets
        assert outcomes[0].ok
        assert outcomes[1].skip_reason is SkipReason.DUPLICATE
        assert summarize_skips(outcomes) == {"duplicate": 1, "bad_status": 1}

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, settings, lamp_ld):
        settings.hydrate_concurrency = 2
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            if request.url.path == "/robots.txt":
                return httpx.Response(404)
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return html_response(product_page(dict(lamp_ld, url=str(request.url))))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            targets = [SearchTarget(page_url=f"https://shop.example/products/{i}") for i in range(7)]
            outcomes = await make_hydrator(settings, client).hydrate(targets)

        assert all(o.ok for o in outcomes)
        assert peak <= 2


def test_dedupe_outcomes_keeps_first():
    product = Product(title="Lamp", price=1.0, image="https://img/a.jpg", url=PAGE, source="shop.example")
    outcomes = [
        HydrationOutcome(target=SearchTarget(page_url="https://a/1"), product=product),
        HydrationOutcome(target=SearchTarget(page_url="https://a/2"), product=product),
    ]
    result = dedupe_outcomes(outcomes)
    assert result[0].ok
    assert result[1].skip_reason is SkipReason.DUPLICATE
