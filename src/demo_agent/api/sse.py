import json

from ..agent.orchestrator import ChatEvent

# Events a generation stream may carry, in the order a client can expect them.
STREAM_EVENT_TYPES = ("init", "text", "status", "error", "done")


def format_sse_event(event_type: str, data: str) -> dict:
    """Build the dict EventSourceResponse expects.

    sse-starlette writes each line of ``data`` as its own ``data:`` field, so embedded
    newlines survive the trip and clients rejoin them with ``\\n``.
    """
    if event_type not in STREAM_EVENT_TYPES:
        raise ValueError(f"Unknown stream event type: {event_type!r}")
    return {"event": event_type, "data": data}


def sse_from_chat_event(event: ChatEvent) -> dict:
    # init and done payloads arrive already JSON-encoded
    return format_sse_event(event.type, event.data)


def sse_error(error: str) -> dict:
    return format_sse_event("error", error)


def sse_done(data: dict) -> dict:
    return format_sse_event("done", json.dumps(data))
