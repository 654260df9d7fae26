"""
Search query generation.

classify_intent() decides whether the idea names a single kind of
furnishing; QueryExpander turns the idea into a cohesive set of search
queries, falling back to fixed templates whenever generation fails.
"""

import logging

from ai import LLMClient
from docwalk import extract_json, first_string_list
from models import Intent

logger = logging.getLogger(__name__)

MIN_QUERIES = 6
MAX_QUERIES = 12

# Category -> keywords matched as substrings of the lowercased idea
INTENT_KEYWORDS: dict[str, list[str]] = {
    "lamp": ["floor lamp", "table lamp", "lamp", "lighting", "light"],
    "couch": ["sofa", "couch", "sectional"],
    "table": ["coffee table", "side table", "end table", "console table", "table"],
    "rug": ["rug", "area rug", "carpet"],
    "art": ["wall art", "art", "poster", "print", "painting"],
    "plant": ["indoor plant", "plant", "planter"],
    "shelf": ["shelf", "shelving", "bookcase", "bookshelf"],
    "chair": ["chair", "accent chair", "armchair", "dining chair"],
    "desk": ["desk"],
    "bed": ["bed", "bed frame", "headboard"],
    "dresser": ["dresser"],
    "mirror": ["mirror"],
}

_FALLBACK_SUFFIXES = ("buy online", "price", "best budget", "premium", "sale", "product page")

_CATEGORY_SUFFIXES = (
    "modern couch",
    "floor lamp",
    "side table",
    "area rug",
    "wall art",
    "indoor plant",
    "shelving",
    "cute decor etsy",
)

_SYSTEM_PROMPT = "You are generating shopping search queries that land on specific product detail pages."


def classify_intent(idea: str | None) -> Intent:
    """Specific when exactly one category's keywords appear in the idea; general otherwise."""
    text = (idea or "").lower()
    hits = [category for category, words in INTENT_KEYWORDS.items() if any(w in text for w in words)]
    if len(hits) == 1:
        return Intent(specific=hits[0], general=False)
    return Intent(specific=None, general=True)


def fallback_queries(idea: str) -> list[str]:
    return [f"{idea} {suffix}" for suffix in _FALLBACK_SUFFIXES]


def category_queries(idea: str) -> list[str]:
    return [f"{idea} {suffix}" for suffix in _CATEGORY_SUFFIXES]


def broaden_for_intent(queries: list[str], idea: str, intent: Intent) -> list[str]:
    """Append category-anchored queries for general requests; dedup, cap at MAX_QUERIES."""
    if not intent.general:
        return queries
    combined = list(dict.fromkeys(queries + category_queries(idea)))
    return combined[:MAX_QUERIES]


def build_prompt(idea: str, budget: float, ikea_only: bool) -> str:
    retailer_rule = "Retailer constraint: ONLY generate queries that fit IKEA products and naming.\n" if ikea_only else ""
    return (
        f'User request: "{idea}". Budget: {budget:g}.\n'
        "Unifying style: choose one cohesive style direction (e.g., Scandinavian minimal, "
        "mid-century warm wood, Japandi neutral) and weave that into every query so the products mesh together.\n"
        f"{retailer_rule}"
        "Rules:\n"
        '- If the request is for a single product type (e.g., "floor lamp"), produce queries tightly focused on that product.\n'
        '- If the request is a general room improvement (e.g., "make my living room cozy"), cover complementary '
        "categories: seating, lighting, side tables and surfaces, rugs and textiles, wall decor, storage and shelving, "
        "indoor plants.\n"
        "- Prefer queries that land on specific product pages with prices, not category listings.\n"
        "- Keep them diverse but cohesive (share style/material/finish keywords).\n"
        "Return ONLY a JSON array of 8-10 query strings."
    )


def parse_generated_queries(raw: str) -> list[str]:
    """Pull the query list out of a model reply. Raises ValueError if there is none."""
    data = extract_json(raw)
    queries = first_string_list(data) if data is not None else None
    if not queries:
        raise ValueError("no query list in model reply")
    cleaned = [q.strip() for q in queries if q.strip()]
    if not cleaned:
        raise ValueError("query list was empty")
    return list(dict.fromkeys(cleaned))[:MAX_QUERIES]


class QueryExpander:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def generate(self, idea: str, budget: float, ikea_only: bool = True) -> list[str]:
        """Model-generated queries, or the templated fallback on any failure."""
        if not self.llm.enabled:
            return fallback_queries(idea)
        try:
            raw = await self.llm.text(_SYSTEM_PROMPT, build_prompt(idea, budget, ikea_only))
            queries = parse_generated_queries(raw)
        except Exception:
            # Generation is optional; any provider or parsing failure degrades to templates
            logger.warning("Query generation failed, using templates", exc_info=True)
            return fallback_queries(idea)

        if len(queries) < MIN_QUERIES:
            queries = list(dict.fromkeys(queries + fallback_queries(idea)))[:MAX_QUERIES]
        return queries

    async def expand(self, idea: str, budget: float, intent: Intent, ikea_only: bool = True) -> list[str]:
        queries = await self.generate(idea, budget, ikea_only)
        return broaden_for_intent(queries, idea, intent)
