"""
HTML parser for candidate product pages.

Collects the raw signals the extractor works from: JSON-LD blocks,
Open Graph / product meta tags, itemprop meta tags, standard meta tags,
the document title and the raw markup.

No site-specific logic lives here.
"""

import json
import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


@dataclass
class ParsedPage:
    """All extraction inputs pulled from an HTML page."""

    json_ld: list = field(default_factory=list)  # decoded blocks, in document order
    og_tags: dict[str, str] = field(default_factory=dict)
    itemprops: dict[str, str] = field(default_factory=dict)
    meta_tags: dict[str, str] = field(default_factory=dict)
    title: str | None = None
    html: str = ""


def parse_html(html: str) -> ParsedPage:
    """Parse an HTML page and extract all structured data sources."""
    soup = BeautifulSoup(html, "lxml")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None

    return ParsedPage(
        json_ld=_extract_json_ld(soup),
        og_tags=_extract_og_tags(soup),
        itemprops=_extract_itemprop_meta(soup),
        meta_tags=_extract_meta_tags(soup),
        title=title or None,
        html=html,
    )


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _extract_json_ld(soup: BeautifulSoup) -> list:
    """Decode every <script type="application/ld+json"> block.

    Blocks are kept as decoded (dicts or lists); flattening happens in the
    extractor so @graph / mainEntity wrappers are handled in one place.
    """
    results: list = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string or tag.get_text()
        if not text or not text.strip():
            continue
        try:
            results.append(json.loads(text))
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
    return results


# ---------------------------------------------------------------------------
# Open Graph meta tags
# ---------------------------------------------------------------------------


def _extract_og_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract Open Graph and product meta tags. Handles both property= and name= attributes."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        prop = meta.get("property", "") or meta.get("name", "")
        if not isinstance(prop, str):
            continue
        content = meta.get("content", "")
        if not content:
            continue
        if prop.startswith("og:"):
            key = prop[3:]
            tags.setdefault(key, content)
        elif prop.startswith("product:"):
            # Facebook product tags (e.g., product:price:amount -> price:amount)
            key = prop[8:]
            tags.setdefault(key, content)
    return tags


def _extract_itemprop_meta(soup: BeautifulSoup) -> dict[str, str]:
    """Extract microdata values carried on <meta itemprop="..." content="...">."""
    props: dict[str, str] = {}
    for meta in soup.find_all("meta", attrs={"itemprop": True}):
        name = meta.get("itemprop")
        content = meta.get("content")
        if isinstance(name, str) and content:
            props.setdefault(name, content)
    return props


# ---------------------------------------------------------------------------
# Standard meta tags
# ---------------------------------------------------------------------------


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract standard meta tags (description, keywords, etc.)."""
    tags: dict[str, str] = {}
    for name in ("description", "keywords", "title"):
        meta = soup.find("meta", attrs={"name": name})
        if meta and meta.get("content"):
            tags[name] = meta["content"]
    return tags
