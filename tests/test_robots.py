import httpx
import pytest

from robots import RobotsGate

ROBOTS = "https://shop.example/robots.txt"


class TestRobotsGate:
    @pytest.mark.asyncio
    async def test_disallowed_path(self, settings, mock_client):
        client = mock_client({ROBOTS: httpx.Response(200, text="User-agent: *\nDisallow: /checkout\n")})
        gate = RobotsGate(settings, client)
        assert await gate.allowed("https://shop.example/checkout/cart") is False
        assert await gate.allowed("https://shop.example/products/lamp") is True

    @pytest.mark.asyncio
    async def test_missing_robots_allows(self, settings, mock_client):
        gate = RobotsGate(settings, mock_client({}))
        assert await gate.allowed("https://shop.example/products/lamp") is True

    @pytest.mark.asyncio
    async def test_unreachable_robots_allows(self, settings, mock_client):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        gate = RobotsGate(settings, mock_client({ROBOTS: refuse}))
        assert await gate.allowed("https://shop.example/products/lamp") is True

    @pytest.mark.asyncio
    async def test_relative_url_allows(self, settings, mock_client):
        client = mock_client({})
        assert await RobotsGate(settings, client).allowed("/products/lamp") is True
        assert client.seen_requests == []

    @pytest.mark.asyncio
    async def test_url_rejected_by_client_allows(self, settings, mock_client):
        client = mock_client({})
        assert await RobotsGate(settings, client).allowed("https://exämple..com/p/lamp") is True
        assert client.seen_requests == []
