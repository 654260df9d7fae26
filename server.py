"""
FastAPI server for product discovery.

Endpoints:
- POST /api/products    → tiered products for a description + budget
- POST /api/philosophy  → one-paragraph rationale per tier
- GET  /api/proxy       → pass-through fetch for remote assets
- GET  /health
"""

import logging
import re
import time
from functools import lru_cache

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse, Response

from ai import LLMClient
from config import ConfigurationError, Settings, get_settings
from models import ProductsRequest, ProductsResponse
from philosophy import PhilosophyRequest, tier_philosophy
from pipeline import DiscoveryRequest, discover

logger = logging.getLogger("server")

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@lru_cache()
def get_llm() -> LLMClient:
    """One client (and one connection pool) per process."""
    return LLMClient(get_settings())


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Product Discovery API",
    default_response_class=ORJSONResponse,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    max_age=86400,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.monotonic()
    response = await call_next(request)
    ms = (time.monotonic() - start) * 1000
    logger.info("%s %s %d %.0fms", request.method, request.url.path, response.status_code, ms)
    return response


@app.on_event("startup")
async def startup() -> None:
    settings = get_settings()
    logger.info(
        "Search configured: %s, query generation: %s",
        bool(settings.cse_api_key and settings.cse_cx),
        "on" if settings.llm_enabled else "templates only",
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    if get_llm.cache_info().currsize:
        await get_llm().aclose()
        get_llm.cache_clear()


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(ConfigurationError)
async def configuration_error(request: Request, exc: ConfigurationError):
    logger.error("Configuration error: %s", exc)
    return ORJSONResponse(status_code=500, content={"error": str(exc)})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/api/products", response_model=ProductsResponse)
async def find_products(
    body: ProductsRequest,
    settings: Settings = Depends(get_settings),
    llm: LLMClient = Depends(get_llm),
):
    """Discover products for a description and split them into price tiers."""
    settings.require_search()
    idea = (body.description or "").strip()
    if not idea:
        return ORJSONResponse(status_code=400, content={"error": "Missing description"})

    result = await discover(
        settings,
        llm,
        DiscoveryRequest(
            idea=idea,
            budget=body.budget,
            image_search=body.image,
            ikea_only=body.ikea_only,
            retailers=body.retailers,
        ),
    )
    return result.to_response()


@app.post("/api/philosophy")
async def philosophy(body: PhilosophyRequest, llm: LLMClient = Depends(get_llm)):
    return await tier_philosophy(llm, body)


@app.get("/api/proxy")
async def proxy(u: str = "", settings: Settings = Depends(get_settings)):
    """Fetch a remote asset and pass its body and content headers through."""
    if not _ABSOLUTE_URL.match(u):
        return Response("Invalid url", status_code=400, media_type="text/plain")

    logger.info("[PROXY] GET %s", u)
    try:
        async with httpx.AsyncClient(headers={"User-Agent": settings.user_agent}) as client:
            resp = await client.get(u, timeout=settings.proxy_timeout, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("[PROXY] error %s", e)
        return Response("Proxy error", status_code=500, media_type="text/plain")

    if not resp.is_success:
        return Response("Upstream error", status_code=resp.status_code, media_type="text/plain")

    headers = {}
    disposition = resp.headers.get("content-disposition")
    if disposition:
        headers["Content-Disposition"] = disposition
    return Response(
        content=resp.content,
        media_type=resp.headers.get("content-type", "application/octet-stream"),
        headers=headers,
    )


@app.get("/health")
async def health():
    return {"ok": True}


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
