"""
Runtime settings for the discovery service.

Built once at process start and handed to every component constructor.
Values come from the environment (and an optional .env file next to this
module).
"""

import os
from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; RoomShopBot/1.0)"

# Scope used when the caller does not restrict to a single retailer
DEFAULT_RETAILERS = [
    "wayfair.com",
    "westelm.com",
    "cb2.com",
    "crateandbarrel.com",
    "ikea.com",
    "article.com",
    "target.com",
    "etsy.com",
]

# Order in which single sites are tried when widening the search
RETAILER_PRIORITY = [
    "ikea.com",
    "article.com",
    "cb2.com",
    "crateandbarrel.com",
    "westelm.com",
    "wayfair.com",
    "target.com",
    "etsy.com",
]

IKEA_ONLY_RETAILERS = ["ikea.com"]


class ConfigurationError(RuntimeError):
    """Required credentials or scope are missing."""


class Settings(BaseSettings):
    # Programmable Search
    cse_api_key: str = ""
    cse_cx: str = ""
    cse_endpoint: str = "https://www.googleapis.com/customsearch/v1"

    # Query generation (OpenAI-compatible endpoint); empty key disables it
    llm_api_key: str = ""
    llm_base_url: str | None = None
    llm_model: str = "gemini-2.5-flash"
    llm_timeout: float = 20.0

    user_agent: str = DEFAULT_USER_AGENT

    # Timeouts (seconds)
    fetch_timeout: float = 10.0
    page_timeout: float = 8.0
    robots_timeout: float = 4.0
    proxy_timeout: float = 20.0

    # Concurrency limits
    hydrate_concurrency: int = 4
    query_concurrency: int = 6
    expand_concurrency: int = 6

    # Result shaping
    min_yield: int = 6
    tier_cap: int = 5
    default_budget: float = 150.0
    search_page_size: int = 10
    expansion_offsets: list[int] = [1, 11, 21]
    expansion_query_limit: int = 8

    port: int = 8787

    class Config:
        _env_path = os.path.join(os.path.dirname(__file__), ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_api_key)

    def require_search(self) -> None:
        """Raise ConfigurationError unless search credentials are present."""
        if not self.cse_api_key or not self.cse_cx:
            raise ConfigurationError("Missing CSE_API_KEY or CSE_CX")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
