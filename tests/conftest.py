import uuid

import pytest
import pytest_asyncio

from demo_agent.data.sqlite_store import UPDATABLE_FIELDS, SQLiteStore


class FakeProvider:
    """Scripted stand-in for ModelProvider."""

    def __init__(self, chunks=(), replies=(), fail_after=None, error=None):
        self.chunks = list(chunks)
        self.replies = list(replies)
        self.fail_after = fail_after
        self.error = error or RuntimeError("upstream exploded")
        self.on_stream_start = None
        self.stream_calls = []
        self.completion_calls = []
        self.closed_streams = 0

    async def stream_chat_completion(self, messages, model):
        self.stream_calls.append((messages, model))
        if self.on_stream_start is not None:
            await self.on_stream_start()
        try:
            for i, chunk in enumerate(self.chunks):
                if self.fail_after is not None and i >= self.fail_after:
                    raise self.error
                yield chunk
        finally:
            self.closed_streams += 1

    async def chat_completion(self, messages, model):
        self.completion_calls.append((messages, model))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeKnowledge:
    def __init__(self, text=""):
        self.text = text
        self.topics = []

    async def get_knowledge(self, topic):
        self.topics.append(topic)
        return self.text


class FakeStore:
    """In-memory store with the same surface the routes use."""

    def __init__(self):
        self.messages = {}

    async def create_conversation(self, title="New conversation"):
        cid = str(uuid.uuid4())
        self.messages[cid] = {
            "id": cid,
            "conversation_id": cid,
            "role": "assistant",
            "content": "",
            "experiment_id": None,
            "html_content": None,
            "css_content": None,
            "js_content": None,
            "title": title,
            "is_conversation_root": True,
            "created_at": "2026-01-01T00:00:00+00:00",
            "updated_at": "2026-01-01T00:00:00+00:00",
        }
        return self._conversation(self.messages[cid])

    @staticmethod
    def _conversation(root):
        return {
            "id": root["id"],
            "title": root["title"],
            "created_at": root["created_at"],
            "updated_at": root["updated_at"],
        }

    async def list_conversations(self):
        return [self._conversation(m) for m in self.messages.values() if m["is_conversation_root"]]

    async def get_conversation(self, conversation_id):
        root = self.messages.get(conversation_id)
        if not root or not root["is_conversation_root"]:
            return None
        return self._conversation(root)

    async def update_conversation_title(self, conversation_id, title):
        root = self.messages.get(conversation_id)
        if not root or not root["is_conversation_root"]:
            return False
        root["title"] = title
        return True

    async def delete_conversation(self, conversation_id):
        doomed = [k for k, m in self.messages.items() if m["conversation_id"] == conversation_id]
        for key in doomed:
            del self.messages[key]
        return bool(doomed)

    async def add_message(self, conversation_id, role, content="", experiment_id=None, **extra):
        mid = str(uuid.uuid4())
        self.messages[mid] = {
            "id": mid,
            "conversation_id": conversation_id,
            "role": role,
            "content": content,
            "experiment_id": experiment_id,
            "html_content": extra.get("html_content"),
            "css_content": extra.get("css_content"),
            "js_content": extra.get("js_content"),
            "title": None,
            "is_conversation_root": False,
            "created_at": "2026-01-01T00:00:01+00:00",
            "updated_at": "2026-01-01T00:00:01+00:00",
        }
        return dict(self.messages[mid])

    async def get_messages(self, conversation_id):
        return [dict(m) for m in self.messages.values() if m["conversation_id"] == conversation_id]

    async def update_message(self, message_id, fields):
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update message fields: {', '.join(sorted(unknown))}")
        message = self.messages.get(message_id)
        if message is None:
            return None
        message.update(fields)
        return dict(message)

    async def get_experiment(self, experiment_id):
        for m in self.messages.values():
            if m["experiment_id"] == experiment_id:
                return {
                    "experiment_id": experiment_id,
                    "message_id": m["id"],
                    "conversation_id": m["conversation_id"],
                    "title": m["title"],
                    "html_content": m["html_content"],
                }
        return None


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "test.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_knowledge():
    return FakeKnowledge
