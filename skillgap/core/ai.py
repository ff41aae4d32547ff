"""
Generative-text provider client.

The core treats the provider as a black box: generate(prompt) -> str. Nothing
about its output is trusted; ResponseCoercer owns turning it into a result.

All OpenAI calls go through this module so we can:
  - Centralise API key management and model selection
  - Wrap SDK errors into sanitized ProviderError messages (the worker persists
    them as retry diagnostics, so they must never carry raw provider payloads)
"""
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from skillgap.core.config import settings
from skillgap.core.exceptions import ProviderError
from skillgap.core.logging import get_logger

logger = get_logger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into unstructured text."""

    async def generate(self, prompt: str) -> str: ...


class OpenAITextGenerator:
    """TextGenerator backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ):
        self._api_key = api_key or settings.openai_api_key
        self._model = model or settings.openai_chat_model
        self._max_tokens = max_tokens or settings.openai_max_tokens_analysis
        self._temperature = temperature
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        """Lazily create the async client on first use."""
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ProviderError(
                "OPENAI_API_KEY is not configured. Set it as an environment variable."
            )
        self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except openai.RateLimitError as exc:
            logger.error("openai_rate_limit", endpoint="generate", error=str(exc))
            raise ProviderError("AI provider rate limit reached") from exc
        except openai.APITimeoutError as exc:
            logger.error("openai_timeout", endpoint="generate")
            raise ProviderError("AI provider request timed out") from exc
        except openai.APIError as exc:
            logger.error("openai_api_error", endpoint="generate", error=str(exc))
            raise ProviderError("AI provider request failed") from exc

        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
