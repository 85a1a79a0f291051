from demo_agent.agent.history import (
    ConversationTurn,
    Mode,
    build_chat_history,
    build_messages,
    select_mode,
)
from demo_agent.agent.prompts import build_chat_prompt, build_experiment_prompt, build_fix_prompt
from demo_agent.validation.javascript import validate_javascript

USER = ConversationTurn(role="user", text="pendulum")
ASSISTANT = ConversationTurn(role="assistant", text="done")


def test_first_turn_is_experiment():
    assert select_mode([]) is Mode.EXPERIMENT
    assert select_mode([USER]) is Mode.EXPERIMENT


def test_later_turns_are_chat():
    assert select_mode([USER, ASSISTANT]) is Mode.CHAT
    assert select_mode([USER, ASSISTANT, USER]) is Mode.CHAT


def test_chat_only_always_wins():
    assert select_mode([], chat_only=True) is Mode.CHAT
    assert select_mode([USER], chat_only=True) is Mode.CHAT


def test_history_skips_root_placeholder_and_empty_messages():
    messages = [
        {"id": "c1", "role": "assistant", "content": "", "is_conversation_root": True},
        {"id": "u1", "role": "user", "content": "  pendulum  "},
        {"id": "e1", "role": "assistant", "content": "   "},
        {"id": "p1", "role": "assistant", "content": ""},
    ]
    turns = build_chat_history(messages, placeholder_id="p1")
    assert turns == [ConversationTurn(role="user", text="pendulum")]


def test_experiment_message_is_condensed():
    messages = [
        {
            "id": "a1",
            "role": "assistant",
            "content": "Summary first.\n```html\n<html></html>\n```",
            "experiment_id": "exp-9",
        },
        {"id": "a2", "role": "assistant", "content": "", "experiment_id": "exp-10"},
    ]
    first, second = build_chat_history(messages)
    assert first.text == (
        "Summary first.\n\n[Experiment HTML omitted for brevity. Experiment ID: exp-9]"
    )
    assert second.text.startswith("I previously generated an interactive HTML experiment demo")
    assert second.text.endswith("Experiment ID: exp-10]")


def test_experiment_messages_are_system_and_user():
    messages = build_messages(Mode.EXPERIMENT, "pendulum", [USER], "g = 9.81")
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "g = 9.81" in messages[0]["content"]
    assert '"pendulum"' in messages[0]["content"]


def test_chat_messages_append_prompt_when_missing():
    messages = build_messages(Mode.CHAT, "and friction?", [USER, ASSISTANT], "")
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[-1]["content"] == "and friction?"

    messages = build_messages(Mode.CHAT, "pendulum", [ASSISTANT, USER], "")
    assert [m["role"] for m in messages] == ["system", "assistant", "user"]


def test_prompts_carry_math_and_output_contract():
    experiment = build_experiment_prompt("  magnetic field  ", "")
    assert '"magnetic field"' in experiment
    assert "$...$" in experiment
    assert "labeled `html`" in experiment
    assert "(no background knowledge was retrieved)" in experiment

    chat = build_chat_prompt("Lenz's law")
    assert "Lenz's law" in chat
    assert "$$...$$" in chat


def test_fix_prompt_numbers_errors():
    code = "if (a b) { run(); }"
    prompt = build_fix_prompt(code, validate_javascript(code))
    assert "1. If condition missing comparison operator" in prompt
    assert f"```javascript\n{code}\n```" in prompt
