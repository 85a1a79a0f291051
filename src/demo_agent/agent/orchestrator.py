import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum

from ..extraction.html import HtmlExtraction, extract_experiment_html
from .history import ConversationTurn, Mode, build_chat_history, build_messages, select_mode

logger = logging.getLogger(__name__)

HTML_FENCE_MARKER = "```html"
BUILDING_DEMO_STATUS = "Building interactive demo..."


class StreamState(StrEnum):
    IDLE = "idle"
    MODE_DECIDED = "mode_decided"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ChatEvent:
    """An event yielded during generation streaming."""

    type: str  # "init", "text", "status", "error", "done"
    data: str = ""


@dataclass
class GenerationRequest:
    prompt: str
    conversation_id: str | None = None
    message_id: str | None = None
    model: str | None = None
    chat_only: bool = False

    def __post_init__(self) -> None:
        self.prompt = (self.prompt or "").strip()
        if not self.prompt:
            raise ValueError("prompt must not be empty")


@dataclass
class StreamedArtifact:
    """Text accumulated from one provider stream, plus what was extracted from it."""

    mode: Mode
    experiment_id: str | None = None
    raw_text: str = ""
    html: str | None = None
    title: str | None = None
    _finalized: bool = field(default=False, repr=False)

    def append(self, chunk: str) -> None:
        if self._finalized:
            raise RuntimeError("artifact already finalized")
        self.raw_text += chunk

    def finalize(self) -> HtmlExtraction:
        if self._finalized:
            raise RuntimeError("artifact already finalized")
        self._finalized = True
        extraction = extract_experiment_html(self.raw_text)
        self.html = extraction.html
        self.title = extraction.title
        return extraction


def _error(message: str) -> ChatEvent:
    return ChatEvent(type="error", data=message)


def _done(mode: Mode, artifact: StreamedArtifact | None = None, **extra) -> ChatEvent:
    payload = {
        "mode": str(mode),
        "experiment_id": artifact.experiment_id if artifact else None,
        "has_html": bool(artifact and artifact.html),
        **extra,
    }
    return ChatEvent(type="done", data=json.dumps(payload))


class StreamOrchestrator:
    """Drives one streaming generation request from mode selection to the final write.

    Events are yielded in order: ``init``, any number of ``text`` (plus at most one
    ``status`` when the HTML fence first shows up), optionally one ``error``, and a single
    terminal ``done``. In experiment mode the artifact ID is minted and written onto the
    placeholder message before the provider is called, so clients can link the demo while
    it is still streaming.
    """

    def __init__(self, store, provider, knowledge, default_model: str) -> None:
        self._store = store
        self._provider = provider
        self._knowledge = knowledge
        self._default_model = default_model
        self.state = StreamState.IDLE

    async def _load_history(self, req: GenerationRequest) -> list[ConversationTurn]:
        if not req.conversation_id:
            return []
        try:
            messages = await self._store.get_messages(req.conversation_id)
        except Exception:
            logger.exception("Failed to load history for conversation %s", req.conversation_id)
            return []
        return build_chat_history(messages, placeholder_id=req.message_id)

    async def _get_knowledge(self, prompt: str) -> str:
        if self._knowledge is None:
            return ""
        try:
            return await self._knowledge.get_knowledge(prompt)
        except Exception:
            logger.exception("Knowledge lookup failed; generating without it")
            return ""

    async def _persist(self, message_id: str | None, fields: dict) -> None:
        if not message_id:
            logger.warning("No message_id on request; generated content is not persisted")
            return
        try:
            updated = await self._store.update_message(message_id, fields)
        except Exception:
            logger.exception("Failed to persist generated content for message %s", message_id)
            return
        if updated is None:
            logger.error("Message %s disappeared before generated content was saved", message_id)

    async def _persist_partial(self, req: GenerationRequest, artifact: StreamedArtifact) -> None:
        fields = {"content": artifact.raw_text}
        if artifact.experiment_id:
            fields["experiment_id"] = artifact.experiment_id
        await self._persist(req.message_id, fields)

    async def run(self, req: GenerationRequest) -> AsyncIterator[ChatEvent]:
        self.state = StreamState.IDLE
        history = await self._load_history(req)
        mode = select_mode(history, chat_only=req.chat_only)
        artifact = StreamedArtifact(mode=mode)
        self.state = StreamState.MODE_DECIDED
        logger.info(
            "Generation for conversation %s: mode=%s, %d prior turn(s)",
            req.conversation_id,
            mode,
            len(history),
        )

        if mode is Mode.EXPERIMENT:
            if not req.message_id:
                self.state = StreamState.FAILED
                yield _error("message_id is required to generate an experiment")
                yield _done(mode)
                return

            artifact.experiment_id = str(uuid.uuid4())
            try:
                updated = await self._store.update_message(
                    req.message_id, {"experiment_id": artifact.experiment_id}
                )
            except Exception:
                logger.exception("Failed to assign experiment ID to message %s", req.message_id)
                updated = None
            if updated is None:
                self.state = StreamState.FAILED
                yield _error("Could not save the experiment ID for this message")
                yield _done(mode)
                return
            logger.info("Assigned experiment %s to message %s", artifact.experiment_id, req.message_id)

        yield ChatEvent(
            type="init",
            data=json.dumps(
                {
                    "conversation_id": req.conversation_id,
                    "message_id": req.message_id,
                    "mode": str(mode),
                    "experiment_id": artifact.experiment_id,
                }
            ),
        )

        if self._provider is None:
            self.state = StreamState.FAILED
            yield _error("No model provider is configured on the server")
            yield _done(mode, artifact)
            return

        knowledge = await self._get_knowledge(req.prompt)
        messages = build_messages(mode, req.prompt, history, knowledge)
        model = req.model or self._default_model

        self.state = StreamState.STREAMING
        building_announced = False
        try:
            async with aclosing(self._provider.stream_chat_completion(messages, model)) as stream:
                async for chunk in stream:
                    artifact.append(chunk)
                    yield ChatEvent(type="text", data=chunk)
                    # Only the new chunk plus a marker-sized overlap can hold a new fence.
                    tail = artifact.raw_text[-(len(chunk) + len(HTML_FENCE_MARKER)) :]
                    if not building_announced and HTML_FENCE_MARKER in tail:
                        building_announced = True
                        yield ChatEvent(type="status", data=BUILDING_DEMO_STATUS)
        except (asyncio.CancelledError, GeneratorExit):
            self.state = StreamState.FAILED
            logger.info("Client disconnected; saving %d chars of partial output", len(artifact.raw_text))
            await self._persist_partial(req, artifact)
            raise
        except Exception as e:
            self.state = StreamState.FAILED
            logger.exception("Model stream failed")
            await self._persist_partial(req, artifact)
            yield _error(f"Generation failed: {e}")
            yield _done(mode, artifact, error=str(e))
            return

        extraction = artifact.finalize()
        if mode is Mode.EXPERIMENT:
            fields = {"content": artifact.raw_text, "experiment_id": artifact.experiment_id}
            if extraction.found:
                fields["html_content"] = extraction.html
                if extraction.title:
                    fields["title"] = extraction.title
            else:
                logger.warning(
                    "No HTML document found in output for experiment %s", artifact.experiment_id
                )
        else:
            fields = {"content": artifact.raw_text.strip()}
        await self._persist(req.message_id, fields)

        self.state = StreamState.COMPLETED
        yield _done(mode, artifact)
