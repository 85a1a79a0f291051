import logging
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from ..config import MAX_TOKENS, OPENAI_API_KEY, OPENAI_BASE_URL, TEMPERATURE

logger = logging.getLogger(__name__)


class ModelProvider:
    """Chat completions against an OpenAI-compatible endpoint."""

    def __init__(
        self, client: AsyncOpenAI, temperature: float = TEMPERATURE, max_tokens: int = MAX_TOKENS
    ) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def stream_chat_completion(self, messages: list[dict], model: str) -> AsyncIterator[str]:
        """Yield content deltas as they arrive; the upstream stream is closed on exit."""
        stream = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            stream=True,
        )
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            await stream.close()

    async def chat_completion(self, messages: list[dict], model: str) -> str:
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


def create_provider(
    api_key: str = OPENAI_API_KEY, base_url: str = OPENAI_BASE_URL
) -> ModelProvider | None:
    if not api_key:
        logger.warning("OPENAI_API_KEY not set; generation endpoints are disabled")
        return None
    logger.info("Model provider configured for %s", base_url)
    return ModelProvider(AsyncOpenAI(api_key=api_key, base_url=base_url))
