from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from .prompts import build_chat_prompt, build_experiment_prompt

EXPERIMENT_OMITTED_NOTE = "[Experiment HTML omitted for brevity. Experiment ID: {experiment_id}]"
EXPERIMENT_FALLBACK_SUMMARY = "I previously generated an interactive HTML experiment demo for you."


class Mode(StrEnum):
    EXPERIMENT = "experiment"
    CHAT = "chat"


@dataclass(frozen=True)
class ConversationTurn:
    role: str  # "user" or "assistant"
    text: str

    def as_message(self) -> dict:
        return {"role": self.role, "content": self.text}


def select_mode(history: Sequence[ConversationTurn], chat_only: bool = False) -> Mode:
    """First real exchange produces an experiment; later turns are chat replies.

    ``chat_only`` marks restricted-access callers and always wins.
    """
    if chat_only:
        return Mode.CHAT
    return Mode.EXPERIMENT if len(history) <= 1 else Mode.CHAT


def _turn_from_message(message: dict) -> ConversationTurn | None:
    text = (message.get("content") or "").strip()
    experiment_id = message.get("experiment_id")
    if not text and not experiment_id:
        return None

    if message.get("role") == "assistant" and experiment_id:
        summary = text.split("```html", 1)[0].strip() or EXPERIMENT_FALLBACK_SUMMARY
        note = EXPERIMENT_OMITTED_NOTE.format(experiment_id=experiment_id)
        return ConversationTurn(role="assistant", text=f"{summary}\n\n{note}")
    return ConversationTurn(role=message.get("role", "user"), text=text)


def build_chat_history(
    messages: Iterable[dict], placeholder_id: str | None = None
) -> list[ConversationTurn]:
    """Turn persisted messages into chat turns, skipping the root and the pending placeholder."""
    turns = []
    for message in messages:
        if message.get("is_conversation_root"):
            continue
        if placeholder_id and message.get("id") == placeholder_id:
            continue
        turn = _turn_from_message(message)
        if turn is not None:
            turns.append(turn)
    return turns


def build_messages(
    mode: Mode, prompt: str, history: Sequence[ConversationTurn], knowledge: str
) -> list[dict]:
    if mode is Mode.EXPERIMENT:
        return [
            {"role": "system", "content": build_experiment_prompt(prompt, knowledge)},
            {"role": "user", "content": prompt},
        ]

    messages = [{"role": "system", "content": build_chat_prompt(knowledge)}]
    messages.extend(turn.as_message() for turn in history)
    if not history or history[-1].role != "user":
        messages.append({"role": "user", "content": prompt})
    return messages
