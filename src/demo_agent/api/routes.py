import logging

from fastapi import APIRouter, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from ..agent.generator import ExperimentGenerator, GenerationError
from ..agent.orchestrator import GenerationRequest, StreamOrchestrator
from ..config import DEFAULT_CONVERSATION_TITLE, DEFAULT_MODEL
from .models import (
    ConversationCreate,
    ConversationOut,
    ConversationUpdate,
    ExperimentOut,
    GenerateRequest,
    MessageCreate,
    MessageOut,
    MessageUpdate,
)
from .sse import sse_done, sse_error, sse_from_chat_event

logger = logging.getLogger(__name__)
router = APIRouter()

RESTRICTED_ACCESS_HEADER = "x-access-type"
MAX_TITLE_LENGTH = 80


def _is_restricted(request: Request) -> bool:
    return request.headers.get(RESTRICTED_ACCESS_HEADER, "").strip().lower() == "api"


def _title_from_prompt(prompt: str) -> str:
    title = prompt.strip()[:MAX_TITLE_LENGTH]
    if len(title) >= MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3] + "..."
    return title


@router.post("/api/generate-stream")
async def generate_stream(req: GenerateRequest, request: Request):
    sqlite = request.app.state.sqlite_store
    try:
        gen_request = GenerationRequest(
            prompt=req.prompt,
            conversation_id=req.conversation_id,
            message_id=req.message_id,
            model=req.model,
            chat_only=_is_restricted(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    orchestrator = StreamOrchestrator(
        sqlite,
        request.app.state.provider,
        request.app.state.knowledge_client,
        default_model=DEFAULT_MODEL,
    )

    async def event_generator():
        try:
            async for event in orchestrator.run(gen_request):
                if event.type == "done" and gen_request.conversation_id:
                    conv = await sqlite.get_conversation(gen_request.conversation_id)
                    if conv and conv["title"] == DEFAULT_CONVERSATION_TITLE:
                        await sqlite.update_conversation_title(
                            gen_request.conversation_id, _title_from_prompt(gen_request.prompt)
                        )
                yield sse_from_chat_event(event)
        except Exception as e:
            logger.exception("Error in generation stream")
            yield sse_error(str(e))
            yield sse_done({"error": str(e)})

    return EventSourceResponse(event_generator(), ping=15)


@router.post("/api/generate")
async def generate(req: GenerateRequest, request: Request):
    provider = request.app.state.provider
    if provider is None:
        raise HTTPException(status_code=503, detail="No model provider is configured")

    generator = ExperimentGenerator(provider, request.app.state.knowledge_client)
    try:
        data = await generator.generate(req.prompt, req.model or DEFAULT_MODEL)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except GenerationError as e:
        logger.warning("Experiment generation failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    except Exception as e:
        logger.exception("Model call failed during experiment generation")
        raise HTTPException(status_code=502, detail=f"Model call failed: {e}") from e
    return {"success": True, "data": data}


# --- Conversations ---


@router.get("/api/conversations", response_model=list[ConversationOut])
async def list_conversations(request: Request):
    sqlite = request.app.state.sqlite_store
    return await sqlite.list_conversations()


@router.post("/api/conversations", response_model=ConversationOut)
async def create_conversation(body: ConversationCreate, request: Request):
    sqlite = request.app.state.sqlite_store
    return await sqlite.create_conversation(body.title or DEFAULT_CONVERSATION_TITLE)


@router.put("/api/conversations/{conversation_id}", response_model=ConversationOut)
async def update_conversation(conversation_id: str, body: ConversationUpdate, request: Request):
    sqlite = request.app.state.sqlite_store
    if not await sqlite.update_conversation_title(conversation_id, body.title.strip()):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return await sqlite.get_conversation(conversation_id)


@router.delete("/api/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str, request: Request):
    sqlite = request.app.state.sqlite_store
    if not await sqlite.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True}


@router.get("/api/conversations/{conversation_id}/messages", response_model=list[MessageOut])
async def get_conversation_messages(conversation_id: str, request: Request):
    sqlite = request.app.state.sqlite_store
    if not await sqlite.get_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return await sqlite.get_messages(conversation_id)


# --- Messages ---


@router.post("/api/messages", response_model=MessageOut)
async def create_message(body: MessageCreate, request: Request):
    sqlite = request.app.state.sqlite_store
    if not await sqlite.get_conversation(body.conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return await sqlite.add_message(
        body.conversation_id, body.role, body.content, experiment_id=body.experiment_id
    )


@router.put("/api/messages/{message_id}", response_model=MessageOut)
async def update_message(message_id: str, body: MessageUpdate, request: Request):
    sqlite = request.app.state.sqlite_store
    message = await sqlite.update_message(message_id, body.model_dump(exclude_unset=True))
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


# --- Experiments ---


@router.get("/api/experiments/{experiment_id}", response_model=ExperimentOut)
async def get_experiment(experiment_id: str, request: Request):
    sqlite = request.app.state.sqlite_store
    experiment = await sqlite.get_experiment(experiment_id)
    if not experiment:
        raise HTTPException(status_code=404, detail="Experiment not found")
    return experiment
