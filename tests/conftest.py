"""
Shared fixtures: settings, fake LLM, canned pages and an httpx client
backed by MockTransport so no test touches the network.
"""

import json

import httpx
import pytest

from config import Settings
from models import Product


class StubLLM:
    """Stands in for ai.LLMClient; returns a canned reply or raises."""

    def __init__(self, reply: str | None = None, error: Exception | None = None, enabled: bool = True):
        self.reply = reply
        self.error = error
        self.enabled = enabled
        self.calls: list[tuple[str, str]] = []

    async def text(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        return self.reply or ""


def product_page(ld: dict | list | None = None, head: str = "", body: str = "") -> str:
    """Minimal HTML page with an optional JSON-LD block."""
    ld_block = f'<script type="application/ld+json">{json.dumps(ld)}</script>' if ld is not None else ""
    return f"<html><head>{head}{ld_block}</head><body>{body}</body></html>"


def make_product(price: float | None, url: str | None = None, title: str = "Lamp", image: str = "https://img/x.jpg"):
    return Product(
        title=title,
        price=price,
        image=image,
        url=url if url is not None else f"https://shop.example/p/{price}",
        source="shop.example",
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(cse_api_key="test-key", cse_cx="test-cx", llm_api_key="")


@pytest.fixture
def lamp_ld() -> dict:
    return {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "HEKTAR Floor lamp",
        "description": "Dark grey floor lamp with adjustable head.",
        "image": ["/images/hektar-1.jpg", "/images/hektar-2.jpg"],
        "offers": {"@type": "Offer", "price": "69.99", "priceCurrency": "USD"},
    }


@pytest.fixture
def mock_client():
    """Factory: build an AsyncClient whose requests are answered by `routes`.

    `routes` maps a URL (without query string) to an httpx.Response or a
    callable taking the request. Unknown URLs answer 404.
    """
    seen: list[httpx.Request] = []

    def _factory(routes: dict) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
            route = routes.get(key)
            if route is None:
                return httpx.Response(404, text="not found")
            if callable(route):
                return route(request)
            # Fresh copy so one canned response can answer many requests
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.seen_requests = seen
        return client

    return _factory
