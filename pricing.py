"""
Price banding and tier slicing.

Budget-derived bands are only a starting point; as soon as one priced
product exists the bands come from the live price distribution instead
(nearest-rank 25th / 75th percentiles).
"""

import math
from dataclasses import dataclass
from typing import Any

from models import PriceBand, PriceBands, Product, ResultSet

DEFAULT_BUDGET = 150.0
MIN_BAND_BOUND = 5


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def normalize_budget(budget: Any, default: float = DEFAULT_BUDGET) -> float:
    """Coerce a user-supplied budget; absent, non-numeric or non-positive values use the default."""
    if isinstance(budget, bool):
        return default
    try:
        value = float(budget)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return value


def fallback_bands(budget: Any, default: float = DEFAULT_BUDGET) -> PriceBands:
    """Bands derived from the budget alone: 25-60%, 60-110%, 110-180% of budget.

    Every bound is at least MIN_BAND_BOUND.
    """
    b = max(MIN_BAND_BOUND, normalize_budget(budget, default))

    def bound(fraction: float) -> int:
        return max(MIN_BAND_BOUND, _round_half_up(b * fraction))

    return PriceBands(
        low=PriceBand(min=bound(0.25), max=bound(0.6)),
        mid=PriceBand(min=bound(0.6), max=bound(1.1)),
        high=PriceBand(min=bound(1.1), max=bound(1.8)),
    )


def percentile_price(priced: list[Product], pct: float) -> float | None:
    """Nearest-rank percentile over a list sorted ascending by price."""
    if not priced:
        return None
    idx = math.floor((len(priced) - 1) * pct)
    idx = max(0, min(len(priced) - 1, idx))
    return priced[idx].price


def distribution_bands(priced: list[Product]) -> tuple[PriceBands, float] | None:
    """Bands from the live price distribution, plus the mean. None when nothing is priced."""
    if not priced:
        return None
    avg = sum(p.price for p in priced) / len(priced)
    p25 = percentile_price(priced, 0.25)
    p75 = percentile_price(priced, 0.75)
    bands = PriceBands(
        low=PriceBand(min=0, max=p25),
        mid=PriceBand(min=p25, max=p75),
        high=PriceBand(min=p75, max=math.inf),
    )
    return bands, avg


def dedupe_products(products: list[Product]) -> list[Product]:
    """Drop repeat products by URL (image key when a URL is missing). First occurrence wins."""
    seen: set[str] = set()
    unique: list[Product] = []
    for p in products:
        key = p.key
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(p)
    return unique


def priced_sorted(products: list[Product]) -> list[Product]:
    return sorted((p for p in products if p.price is not None), key=lambda p: p.price)


def slice_tiers(priced: list[Product], bands: PriceBands, cap: int = 5) -> ResultSet:
    """Assign priced products (ascending) to their band, keeping at most `cap` per tier."""
    return ResultSet(
        bands=bands,
        low=[p for p in priced if bands.low.contains(p.price)][:cap],
        mid=[p for p in priced if bands.mid.contains(p.price)][:cap],
        high=[p for p in priced if bands.high.contains(p.price)][:cap],
    )


@dataclass
class TierState:
    """Snapshot of banding over the current product list."""

    unique: list[Product]
    priced: list[Product]
    result: ResultSet
    avg: float | None

    @property
    def yield_count(self) -> int:
        return self.result.yield_count


def compute_tiers(products: list[Product], budget_bands: PriceBands, cap: int = 5) -> TierState:
    """Dedup, band and slice in one pass. Budget bands are used only when nothing is priced."""
    unique = dedupe_products(products)
    priced = priced_sorted(unique)
    live = distribution_bands(priced)
    if live is None:
        bands, avg = budget_bands, None
    else:
        bands, avg = live
    return TierState(unique=unique, priced=priced, result=slice_tiers(priced, bands, cap), avg=avg)
