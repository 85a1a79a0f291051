import asyncio
from types import SimpleNamespace

import pytest

from demo_agent.agent.knowledge import KnowledgeClient, create_knowledge_client
from demo_agent.agent.provider import ModelProvider, create_provider


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def delta(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)

    async def close(self):
        self.closed = True


class FakeOpenAI:
    """Mimics the ``client.chat.completions.create`` surface of AsyncOpenAI."""

    def __init__(self, handler):
        self.calls = []
        self.closed = False

        async def create(**kwargs):
            self.calls.append(kwargs)
            return await handler(**kwargs)

        self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_stream_yields_content_and_closes():
    stream = FakeStream([delta("Hel"), delta(None), SimpleNamespace(choices=[]), delta("lo")])

    async def handler(**kwargs):
        return stream

    client = FakeOpenAI(handler)
    provider = ModelProvider(client, temperature=0.2, max_tokens=100)

    chunks = [c async for c in provider.stream_chat_completion([{"role": "user", "content": "hi"}], "m")]

    assert chunks == ["Hel", "lo"]
    assert stream.closed
    assert client.calls[0]["stream"] is True
    assert client.calls[0]["model"] == "m"
    assert client.calls[0]["max_tokens"] == 100


@pytest.mark.asyncio
async def test_chat_completion_returns_text():
    async def handler(**kwargs):
        return completion("answer")

    provider = ModelProvider(FakeOpenAI(handler))
    assert await provider.chat_completion([{"role": "user", "content": "q"}], "m") == "answer"


def test_factories_need_api_keys():
    assert create_provider(api_key="") is None
    assert create_knowledge_client(api_key="") is None


@pytest.mark.asyncio
async def test_knowledge_combines_both_lookups():
    async def handler(**kwargs):
        query = kwargs["messages"][-1]["content"]
        return completion("docs text" if "documentation" in query else "facts text")

    client = FakeOpenAI(handler)
    knowledge = await KnowledgeClient(client, model="sonar").get_knowledge("pendulum")

    assert "**Basic Information:**\nfacts text" in knowledge
    assert "**Technical Documentation:**\ndocs text" in knowledge
    assert {c["model"] for c in client.calls} == {"sonar"}


@pytest.mark.asyncio
async def test_knowledge_survives_one_failed_lookup():
    async def handler(**kwargs):
        if "documentation" in kwargs["messages"][-1]["content"]:
            raise RuntimeError("503")
        return completion("facts text")

    knowledge = await KnowledgeClient(FakeOpenAI(handler)).get_knowledge("pendulum")
    assert "facts text" in knowledge
    assert "Technical Documentation" not in knowledge


@pytest.mark.asyncio
async def test_knowledge_degrades_to_empty():
    async def failing(**kwargs):
        raise RuntimeError("down")

    async def slow(**kwargs):
        await asyncio.sleep(5)
        return completion("late")

    assert await KnowledgeClient(FakeOpenAI(failing)).get_knowledge("pendulum") == ""
    assert await KnowledgeClient(FakeOpenAI(slow), timeout=0.05).get_knowledge("pendulum") == ""
    assert await KnowledgeClient(FakeOpenAI(failing)).get_knowledge("   ") == ""
