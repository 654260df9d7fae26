"""
Thin async LLM client over any OpenAI-compatible chat endpoint.

Callers own prompt construction and output parsing; this module only
moves text in and out.
"""

import logging
from typing import TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel

from config import Settings
from docwalk import extract_json

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class LLMUnavailable(RuntimeError):
    """No credentials configured for generative calls."""


class LLMClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.model = settings.llm_model
        self._client: AsyncOpenAI | None = None
        if settings.llm_enabled:
            self._client = AsyncOpenAI(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                timeout=settings.llm_timeout,
                max_retries=0,
            )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def text(self, system: str, user: str) -> str:
        """Single chat completion; returns the stripped response text."""
        if self._client is None:
            raise LLMUnavailable("LLM_API_KEY not set")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        content = response.choices[0].message.content or ""
        return content.strip()

    async def responses(self, system: str, user: str, text_format: type[T]) -> T:
        """Chat completion parsed into `text_format`.

        The model is asked for JSON; the first JSON value in the reply is
        validated against the schema. Raises ValueError on anything else.
        """
        raw = await self.text(system, user)
        data = extract_json(raw)
        if data is None:
            raise ValueError("LLM reply contained no JSON")
        return text_format.model_validate(data)
