"""
Run one product discovery from the command line.

Prints the tiers, the bands they came from, and a report of why
candidate pages were skipped during hydration.
"""

import argparse
import asyncio
import logging
import time

from ai import LLMClient
from config import get_settings
from models import Product
from pipeline import DiscoveryRequest, DiscoveryResult, discover

logger = logging.getLogger(__name__)


def _fmt_bound(value: float) -> str:
    return "inf" if value == float("inf") else f"{value:g}"


def _print_tier(label: str, products: list[Product]) -> None:
    print(f"\n── {label} ({len(products)}) ──")
    if not products:
        print("  (none)")
        return
    for p in products:
        print(f"  {p.price:>9.2f} {p.currency:<4} {p.title[:60]:<60} {p.source}")
        print(f"  {'':>14} {p.url}")


def print_report(result: DiscoveryResult, wall_clock: float) -> None:
    """Print a tier report for a finished discovery."""
    state = result.state
    bands = state.result.bands

    print(f"\n{'='*70}")
    print("DISCOVERY REPORT")
    print(f"{'='*70}")

    print(f"\n  Idea:       {result.request.idea}")
    print(f"  Intent:     {result.intent.specific or 'general'}")
    print(f"  Retailers:  {', '.join(result.retailers)}")
    print(f"  Queries:    {len(result.queries)}")
    for q in result.queries:
        print(f"    - {q}")

    print("\n── Bands ──")
    source = "live prices" if state.priced else "budget fallback"
    print(f"  Source: {source}" + (f", mean {state.avg:.2f}" if state.avg is not None else ""))
    for name in ("low", "mid", "high"):
        band = getattr(bands, name)
        print(f"  {name:<5} [{_fmt_bound(band.min)}, {_fmt_bound(band.max)})")

    _print_tier("Low", state.result.low)
    _print_tier("Mid", state.result.mid)
    _print_tier("High", state.result.high)

    print("\n── Counts ──")
    print(f"  Unique products:   {len(state.unique)}")
    print(f"  Priced products:   {len(state.priced)}")
    print(f"  Tiered (yield):    {state.yield_count}")
    print(f"  Phases:            {' -> '.join(p.value for p in result.phases)}")
    print(f"  Expansion tasks:   {result.expansion_tasks}")

    print("\n── Skipped targets ──")
    if not result.skip_counts:
        print("  (none)")
    for reason, count in result.skip_counts.most_common():
        print(f"  {reason:<20} {count:>5}")

    print(f"\n  Wall clock: {wall_clock:.2f}s")
    print(f"\n{'='*70}")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find and price-tier products for an idea.")
    parser.add_argument("description", help='what to shop for, e.g. "floor lamp"')
    parser.add_argument("--budget", type=float, default=None)
    parser.add_argument("--all-retailers", action="store_true", help="search the full retailer list, not IKEA only")
    parser.add_argument("--retailer", action="append", dest="retailers", help="explicit retailer hostname (repeatable)")
    parser.add_argument("--links", action="store_true", help="use link search instead of image search")
    parser.add_argument("--json", action="store_true", help="print the API response payload instead of a report")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    request = DiscoveryRequest(
        idea=args.description.strip(),
        budget=args.budget,
        image_search=not args.links,
        ikea_only=not args.all_retailers,
        retailers=args.retailers,
    )

    llm = LLMClient(settings)
    t_wall_start = time.monotonic()
    try:
        result = await discover(settings, llm, request)
    finally:
        await llm.aclose()
    wall_clock = time.monotonic() - t_wall_start

    if args.json:
        print(result.to_response().model_dump_json(by_alias=True, indent=2))
    else:
        print_report(result, wall_clock)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())
