import asyncio
import logging

from openai import AsyncOpenAI

from ..config import (
    KNOWLEDGE_TIMEOUT_SECS,
    PERPLEXITY_API_KEY,
    PERPLEXITY_BASE_URL,
    PERPLEXITY_MODEL,
)

logger = logging.getLogger(__name__)

SEARCH_SYSTEM_PROMPT = (
    "You are a research assistant. Give a detailed, factual overview of the topic: key "
    "principles, governing equations, typical parameter ranges and notable history."
)
DOCUMENTATION_SYSTEM_PROMPT = (
    "You are a technical reference. Summarize documentation and practical guidance for "
    "building an interactive browser simulation of the topic."
)


class KnowledgeClient:
    """Background knowledge lookups used to ground generated demos.

    ``get_knowledge`` never raises: any lookup failure degrades to an empty string so
    generation can proceed without it.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = PERPLEXITY_MODEL,
        timeout: float = KNOWLEDGE_TIMEOUT_SECS,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout

    async def _ask(self, system_prompt: str, query: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": query},
            ],
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def get_knowledge(self, topic: str) -> str:
        topic = topic.strip()
        if not topic:
            return ""

        try:
            search, docs = await asyncio.wait_for(
                asyncio.gather(
                    self._ask(SEARCH_SYSTEM_PROMPT, topic),
                    self._ask(DOCUMENTATION_SYSTEM_PROMPT, f"{topic} documentation experiment simulation"),
                    return_exceptions=True,
                ),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning("Knowledge lookup for %r timed out after %.0fs", topic, self._timeout)
            return ""

        sections = []
        for label, result in (("Basic Information", search), ("Technical Documentation", docs)):
            if isinstance(result, Exception):
                logger.warning("Knowledge lookup (%s) failed: %s", label, result)
            elif result:
                sections.append(f"**{label}:**\n{result}")
        if not sections:
            return ""

        logger.info("Retrieved %d knowledge section(s) for %r", len(sections), topic)
        header = f'Research results about "{topic}":'
        return "\n\n".join([header, *sections])

    async def close(self) -> None:
        await self._client.close()


def create_knowledge_client(
    api_key: str = PERPLEXITY_API_KEY, base_url: str = PERPLEXITY_BASE_URL
) -> KnowledgeClient | None:
    if not api_key:
        logger.info("PERPLEXITY_API_KEY not set; generating without background knowledge")
        return None
    return KnowledgeClient(AsyncOpenAI(api_key=api_key, base_url=base_url))
