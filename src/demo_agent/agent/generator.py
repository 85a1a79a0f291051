import logging
import uuid

from ..config import REPAIR_MODEL
from ..extraction.fields import extract_experiment_fields
from ..extraction.html import combine_code_sections
from .history import Mode, build_messages
from .repair import RepairLoop, RepairStatus

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The model output could not be turned into a usable experiment."""


class ExperimentGenerator:
    """Non-streaming generation: one completion, structured extraction, then JS repair."""

    def __init__(self, provider, knowledge=None, repair_model: str = REPAIR_MODEL) -> None:
        self._provider = provider
        self._knowledge = knowledge
        self._repair_model = repair_model

    async def generate(self, prompt: str, model: str) -> dict:
        prompt = prompt.strip()
        if not prompt:
            raise ValueError("prompt must not be empty")

        knowledge = await self._knowledge.get_knowledge(prompt) if self._knowledge else ""
        messages = build_messages(Mode.EXPERIMENT, prompt, [], knowledge)
        reply = await self._provider.chat_completion(messages, model)

        fields = extract_experiment_fields(reply, prompt)
        if fields is None:
            logger.error("No experiment content found in %d chars of model output", len(reply))
            raise GenerationError("The model response did not contain an experiment")

        repair = None
        if fields.js_content.strip():
            outcome = await RepairLoop(self._provider, self._repair_model).run(fields.js_content)
            if outcome.status is RepairStatus.EXHAUSTED:
                raise GenerationError(
                    "Generated JavaScript still has syntax errors: " + "; ".join(outcome.errors)
                )
            fields.js_content = outcome.code
            repair = {"status": str(outcome.status), "attempts": outcome.attempts}

        return {
            "experiment_id": str(uuid.uuid4()),
            "title": fields.title,
            "description": fields.description,
            "html_content": fields.html_content,
            "css_content": fields.css_content,
            "js_content": fields.js_content,
            "parameters": fields.parameters,
            "document": combine_code_sections(
                fields.html_content, fields.css_content, fields.js_content, fields.title
            ),
            "repair": repair,
        }
