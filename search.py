"""
Programmable Search (Custom Search JSON API) client.

Turns one query + site scope + 1-based offset into SearchTargets.
"""

import logging
from urllib.parse import urlencode

import httpx

from config import Settings
from models import SearchTarget

logger = logging.getLogger(__name__)

# The API never returns more than 10 items per page
MAX_PAGE_SIZE = 10


class SearchUpstreamError(RuntimeError):
    """The search API answered with a non-2xx status or could not be reached."""

    def __init__(self, status: int | None, body: str = ""):
        self.status = status
        self.body = body
        label = status if status is not None else "unreachable"
        super().__init__(f"Custom Search API error: {label} {body}".strip())


def build_search_params(
    settings: Settings,
    query: str,
    limit: int = 6,
    sites: list[str] | None = None,
    image_search: bool = True,
    start: int = 1,
) -> dict[str, str]:
    """Build the API query parameters for one page of results."""
    sites = sites or []
    params = {
        "key": settings.cse_api_key,
        "cx": settings.cse_cx,
        "q": query,
        "num": str(max(1, min(limit, MAX_PAGE_SIZE))),
        "safe": "active",
    }
    if image_search:
        params["searchType"] = "image"
    if start and start > 1:
        params["start"] = str(start)
    if len(sites) == 1:
        params["siteSearch"] = sites[0]
        params["siteSearchFilter"] = "i"
    elif len(sites) > 1:
        # siteSearch only takes one site; several go into the query text
        params["q"] = f"{query} " + " OR ".join(f"site:{s}" for s in sites)
    return params


def parse_search_items(data: dict, image_search: bool) -> list[SearchTarget]:
    """Normalize API items into SearchTargets."""
    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    targets: list[SearchTarget] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        link = item.get("link")
        if image_search:
            image_meta = item.get("image")
            context_link = image_meta.get("contextLink") if isinstance(image_meta, dict) else None
            targets.append(SearchTarget(title=item.get("title"), image_url=link, page_url=context_link or link))
        else:
            targets.append(SearchTarget(title=item.get("title"), image_url=None, page_url=link))
    return targets


class SearchClient:
    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def search(
        self,
        query: str,
        limit: int = 6,
        sites: list[str] | None = None,
        image_search: bool = True,
        start: int = 1,
    ) -> list[SearchTarget]:
        """Fetch one page of results. Raises SearchUpstreamError; never retries."""
        params = build_search_params(self.settings, query, limit, sites, image_search, start)

        safe_params = {k: v for k, v in params.items() if k != "key"}
        logger.info(
            "[CSE] request: image=%s url=%s?%s",
            image_search,
            self.settings.cse_endpoint,
            urlencode(safe_params),
        )

        try:
            resp = await self.client.get(
                self.settings.cse_endpoint,
                params=params,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.fetch_timeout,
            )
        except httpx.HTTPError as e:
            raise SearchUpstreamError(None, str(e)) from e

        if not resp.is_success:
            raise SearchUpstreamError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise SearchUpstreamError(resp.status_code, "invalid JSON body") from e

        targets = parse_search_items(data, image_search)
        logger.info("[CSE] query ok: %r count=%d", query, len(targets))
        return targets
