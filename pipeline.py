"""
Discovery orchestrator: idea + budget -> tiered, priced products.

One DiscoveryRun per request:
  INITIAL_SEARCH  all queries against the request's retailer scope, offset 1
  EVALUATE        enough priced, tiered products? -> DONE, else EXPANDING
  EXPANDING       single-site x offset x query tasks in bounded waves,
                  re-banding after every task, until the yield is met or
                  the task set runs out
  DONE            respond with whatever was found

All state (seen targets, products, skip counts) belongs to the run; no
state is shared between requests.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from ai import LLMClient
from config import DEFAULT_RETAILERS, IKEA_ONLY_RETAILERS, RETAILER_PRIORITY, Settings
from hydrator import PageHydrator
from models import BandsPayload, HydrationOutcome, Intent, PriceBands, Product, ProductsResponse, SearchTarget
from pricing import TierState, compute_tiers, fallback_bands, normalize_budget
from queries import QueryExpander, classify_intent
from robots import RobotsGate
from search import SearchClient, SearchUpstreamError

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    INITIAL_SEARCH = "initial_search"
    EVALUATE = "evaluate"
    EXPANDING = "expanding"
    DONE = "done"


@dataclass
class DiscoveryRequest:
    idea: str
    budget: Any = None
    image_search: bool = True
    ikea_only: bool = True
    retailers: list[str] | None = None

    def retailer_scope(self) -> list[str]:
        """Sites searched in the initial phase."""
        if self.retailers:
            return list(self.retailers)
        return list(IKEA_ONLY_RETAILERS) if self.ikea_only else list(DEFAULT_RETAILERS)

    def expansion_scope(self) -> list[str]:
        """Sites tried one at a time when widening, in priority order."""
        if self.retailers:
            return list(self.retailers)
        return list(IKEA_ONLY_RETAILERS) if self.ikea_only else list(RETAILER_PRIORITY)


@dataclass
class DiscoveryResult:
    request: DiscoveryRequest
    intent: Intent
    queries: list[str]
    retailers: list[str]
    budget_bands: PriceBands
    state: TierState
    phases: list[Phase] = field(default_factory=list)
    expansion_tasks: int = 0  # tasks actually dispatched while expanding
    skip_counts: Counter = field(default_factory=Counter)

    def to_response(self) -> ProductsResponse:
        result = self.state.result
        return ProductsResponse(
            bands=BandsPayload(low=result.bands.low, mid=result.bands.mid, high=result.bands.high, avg=self.state.avg),
            low=result.low,
            mid=result.mid,
            high=result.high,
            all_count=len(self.state.unique),
            priced_count=len(self.state.priced),
            intent=self.intent,
            ikea_only=self.request.ikea_only,
            retailers=self.retailers,
        )


class DiscoveryRun:
    def __init__(
        self,
        settings: Settings,
        search: SearchClient,
        hydrator: PageHydrator,
        expander: QueryExpander,
        request: DiscoveryRequest,
    ):
        self.settings = settings
        self.search = search
        self.hydrator = hydrator
        self.expander = expander
        self.request = request

        self.seen_targets: set[str] = set()
        self.products: list[Product] = []
        self.skip_counts: Counter = Counter()
        self.phases: list[Phase] = []
        self.budget_bands = fallback_bands(request.budget, settings.default_budget)
        self.state = compute_tiers([], self.budget_bands, settings.tier_cap)

    # -----------------------------------------------------------------
    # Shared helpers
    # -----------------------------------------------------------------

    def _claim_targets(self, targets: list[SearchTarget]) -> list[SearchTarget]:
        """Return targets not seen before in this run and mark them seen."""
        fresh: list[SearchTarget] = []
        for target in targets:
            key = target.key
            if not key or key in self.seen_targets:
                continue
            self.seen_targets.add(key)
            fresh.append(target)
        return fresh

    def _reduce(self, outcomes: list[HydrationOutcome]) -> None:
        """Merge one batch into the run and re-band. Only called from the run's own coroutine."""
        for outcome in outcomes:
            if outcome.product is not None:
                self.products.append(outcome.product)
            elif outcome.skip_reason is not None:
                self.skip_counts[outcome.skip_reason.value] += 1
        self.state = compute_tiers(self.products, self.budget_bands, self.settings.tier_cap)

    def _enough(self) -> bool:
        return self.state.yield_count >= self.settings.min_yield

    async def _search(self, query: str, sites: list[str], start: int) -> list[SearchTarget]:
        return await self.search.search(
            query,
            limit=self.settings.search_page_size,
            sites=sites,
            image_search=self.request.image_search,
            start=start,
        )

    # -----------------------------------------------------------------
    # Phases
    # -----------------------------------------------------------------

    async def initial_search(self, queries: list[str], retailers: list[str]) -> None:
        self.phases.append(Phase.INITIAL_SEARCH)
        semaphore = asyncio.Semaphore(self.settings.query_concurrency)

        async def _query(q: str) -> list[SearchTarget] | None:
            async with semaphore:
                try:
                    return await self._search(q, retailers, 1)
                except SearchUpstreamError as e:
                    logger.warning("[CSE] initial task error for %r: %s", q, e)
                    return None

        results = await asyncio.gather(*[_query(q) for q in queries])

        if queries and all(r is None for r in results):
            logger.warning("[CSE] all %d initial queries failed, continuing to expansion", len(queries))

        targets: list[SearchTarget] = []
        for q, found in zip(queries, results):
            if found is None:
                continue
            fresh = self._claim_targets(found)
            targets.extend(fresh)
            logger.info("[CSE] targets appended: %r %d/%d new", q, len(fresh), len(found))

        outcomes = await self.hydrator.hydrate(targets)
        self._reduce(outcomes)
        logger.info("[HYDRATE] initial products: %d, yield %d", len(self.products), self.state.yield_count)

    async def _expansion_task(self, query: str, site: str, start: int) -> list[HydrationOutcome]:
        try:
            found = await self._search(query, [site], start)
        except SearchUpstreamError as e:
            logger.warning("[EXPAND] task error (%s, start=%d, %r): %s", site, start, query, e)
            return []
        # Claiming is synchronous, so concurrent tasks never fetch the same target twice
        fresh = self._claim_targets(found)
        if not fresh:
            return []
        return await self.hydrator.hydrate(fresh)

    async def expand(self, queries: list[str]) -> int:
        """Run expansion waves until the yield is met or tasks run out. Returns tasks dispatched."""
        self.phases.append(Phase.EXPANDING)
        plan = [
            (q, site, start)
            for site in self.request.expansion_scope()
            for start in self.settings.expansion_offsets
            for q in queries[: self.settings.expansion_query_limit]
        ]
        logger.info("[EXPAND] insufficient priced results (%d), %d tasks planned", self.state.yield_count, len(plan))

        wave_size = max(1, self.settings.expand_concurrency)
        dispatched = 0
        for i in range(0, len(plan), wave_size):
            if self._enough():
                break
            wave = [asyncio.ensure_future(self._expansion_task(*spec)) for spec in plan[i : i + wave_size]]
            dispatched += len(wave)
            # Dispatched tasks always finish; their batches are accepted even past the threshold
            for next_done in asyncio.as_completed(wave):
                self._reduce(await next_done)

        logger.info("[EXPAND] done after %d/%d tasks, yield %d", dispatched, len(plan), self.state.yield_count)
        return dispatched

    async def run(self) -> DiscoveryResult:
        req = self.request
        intent = classify_intent(req.idea)
        budget = normalize_budget(req.budget, self.settings.default_budget)
        queries = await self.expander.expand(req.idea, budget, intent, ikea_only=req.ikea_only)
        retailers = req.retailer_scope()
        logger.info(
            "[PRODUCTS] request: idea=%r budget=%g queries=%d image=%s intent=%s",
            req.idea,
            budget,
            len(queries),
            req.image_search,
            intent.model_dump(),
        )

        await self.initial_search(queries, retailers)

        expansion_tasks = 0
        self.phases.append(Phase.EVALUATE)
        if not self._enough():
            expansion_tasks = await self.expand(queries)
            self.phases.append(Phase.EVALUATE)
        self.phases.append(Phase.DONE)

        return DiscoveryResult(
            request=req,
            intent=intent,
            queries=queries,
            retailers=retailers,
            budget_bands=self.budget_bands,
            state=self.state,
            phases=self.phases,
            expansion_tasks=expansion_tasks,
            skip_counts=self.skip_counts,
        )


async def discover(settings: Settings, llm: LLMClient, request: DiscoveryRequest) -> DiscoveryResult:
    """Run one discovery with a fresh HTTP client; raises ConfigurationError without search credentials."""
    settings.require_search()
    async with httpx.AsyncClient(headers={"User-Agent": settings.user_agent}) as client:
        robots = RobotsGate(settings, client)
        run = DiscoveryRun(
            settings,
            SearchClient(settings, client),
            PageHydrator(settings, client, robots),
            QueryExpander(llm),
            request,
        )
        return await run.run()
