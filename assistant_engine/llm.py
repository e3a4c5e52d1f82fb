"""Classification backends."""

from __future__ import annotations

from typing import Optional, Protocol

import openai

from assistant_engine.config import Settings
from assistant_engine.errors import ClassificationError, ConfigurationError
from assistant_engine.logs import get_logger
from assistant_engine.prompts import SYSTEM_PROMPT

logger = get_logger(__name__)


class ClassificationBackend(Protocol):
    async def classify(self, prompt: str) -> str:
        ...


class OpenAIClassificationBackend:
    """Chat-completions backend; every failure surfaces as ClassificationError."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError("OpenAI API key is required for the classification backend")
        self.model = model
        self.client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIClassificationBackend:
        return cls(
            api_key=settings.llm_api_key or "",
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    async def classify(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.0,
            )
        except openai.OpenAIError as exc:
            logger.warning("Classification request failed: %s", exc)
            raise ClassificationError(str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ClassificationError("Classification backend returned no content")
        return content
