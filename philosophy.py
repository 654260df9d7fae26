"""
Short design rationales for each price tier.

One structured model call; without credentials a deterministic brief is
built from the tier contents, and malformed output falls back to fixed
defaults, as do provider errors.
"""

import logging
from typing import Any

from openai import OpenAIError
from pydantic import BaseModel

from ai import LLMClient

logger = logging.getLogger(__name__)

TIERS = ("low", "mid", "high")

# Used when the model answers but leaves a tier out
_DEFAULTS = {
    "low": "Cohesive, budget-friendly essentials.",
    "mid": "Comfort-driven, durable selections.",
    "high": "Premium textures and finishes.",
}

# Used when the model's answer cannot be parsed at all
_UNPARSED = {
    "low": "Balanced and minimal.",
    "mid": "Comfort and durability.",
    "high": "Premium materials and detail.",
}

_SYSTEM_PROMPT = "You are a product design assistant. Answer with strict JSON only."


class TierItem(BaseModel):
    title: str | None = None
    source: str | None = None
    currency: str | None = None
    price: float | None = None


class PhilosophyTiers(BaseModel):
    low: list[TierItem] = []
    mid: list[TierItem] = []
    high: list[TierItem] = []


class PhilosophyRequest(BaseModel):
    description: str = ""
    budget: Any = None
    tiers: PhilosophyTiers = PhilosophyTiers()


class TierPhilosophy(BaseModel):
    low: str | None = None
    mid: str | None = None
    high: str | None = None


def brief(items: list[TierItem], label: str) -> str:
    if not items:
        return f"{label}: no picks."
    return f"{label}: focuses on {items[0].title or 'cohesive items'} within budget."


def _format_tier(items: list[TierItem]) -> str:
    return "\n".join(
        f"- {p.title or 'Product'} | {p.source or ''} | {p.currency or 'USD'} {'' if p.price is None else f'{p.price:g}'}"
        for p in items
    )


def build_prompt(req: PhilosophyRequest) -> str:
    budget = req.budget if req.budget is not None else "n/a"
    return (
        f'The user said: "{req.description}". Budget (approx): {budget}.\n'
        "We have three tiers of cohesive product options chosen to work well together in a single room.\n\n"
        f"Low tier:\n{_format_tier(req.tiers.low)}\n"
        f"Mid tier:\n{_format_tier(req.tiers.mid)}\n"
        f"High tier:\n{_format_tier(req.tiers.high)}\n\n"
        "For each tier, write 2 concise sentences that explain the philosophy behind the choices "
        "(materials, forms, palette, and how they mesh together). Avoid marketing fluff. "
        "Return strict JSON with keys low, mid, high, each a short string."
    )


async def tier_philosophy(llm: LLMClient, req: PhilosophyRequest) -> dict[str, str]:
    if not llm.enabled:
        return {
            "low": brief(req.tiers.low, "Low"),
            "mid": brief(req.tiers.mid, "Mid"),
            "high": brief(req.tiers.high, "High"),
        }

    try:
        result = await llm.responses(_SYSTEM_PROMPT, build_prompt(req), TierPhilosophy)
    except (ValueError, OpenAIError):
        logger.warning("Tier philosophy generation failed, using defaults", exc_info=True)
        result = TierPhilosophy(**_UNPARSED)

    return {tier: getattr(result, tier) or _DEFAULTS[tier] for tier in TIERS}
