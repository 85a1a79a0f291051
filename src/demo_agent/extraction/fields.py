import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from .html import extract_experiment_html, normalize_whitespace, split_code_sections

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_HTML_FENCE_START_RE = re.compile(r"^[ \t]*(?:```|~~~)[ \t]*html", re.IGNORECASE | re.MULTILINE)
_CONTENT_KEYS = ("html_content", "css_content", "js_content")


@dataclass
class ExperimentFields:
    """Structured pieces of a generated experiment, whichever shape the model used."""

    title: str
    description: str
    html_content: str = ""
    css_content: str = ""
    js_content: str = ""
    parameters: list = field(default_factory=list)
    source: str = ""


def _summary_before_fence(text: str) -> str:
    match = _HTML_FENCE_START_RE.search(text)
    return text[: match.start()].strip() if match else ""


def from_html_document(text: str, prompt: str) -> ExperimentFields | None:
    extraction = extract_experiment_html(text)
    # A JSON payload whose string values carry markup is not a document.
    if not extraction.found or extraction.html.lstrip().startswith("{"):
        return None
    sections = split_code_sections(extraction.html)
    return ExperimentFields(
        title=extraction.title or f"{prompt} Demo",
        description=_summary_before_fence(normalize_whitespace(text))
        or f'Interactive experiment demo based on "{prompt}"',
        html_content=sections.html,
        css_content=sections.css,
        js_content=sections.js,
        source="html",
    )


def balanced_json_slice(text: str) -> str | None:
    """Return the first brace-balanced ``{...}`` span, ignoring braces inside strings."""
    in_str = False
    esc = False
    depth = 0
    start_idx = -1
    for i, ch in enumerate(text):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            if depth == 0:
                start_idx = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start_idx : i + 1]
    return None


def _fields_from_json(candidate: str | None, prompt: str, source: str) -> ExperimentFields | None:
    if not candidate:
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug("Discarding %s candidate: %s", source, e)
        return None
    if not isinstance(data, dict) or not any(isinstance(data.get(k), str) for k in _CONTENT_KEYS):
        return None

    def text_field(key: str) -> str:
        value = data.get(key)
        return value if isinstance(value, str) else ""

    parameters = data.get("parameters")
    return ExperimentFields(
        title=text_field("title") or f"{prompt} Demo",
        description=text_field("description") or f'Interactive experiment demo based on "{prompt}"',
        html_content=text_field("html_content"),
        css_content=text_field("css_content"),
        js_content=text_field("js_content"),
        parameters=parameters if isinstance(parameters, list) else [],
        source=source,
    )


def from_json_fence(text: str, prompt: str) -> ExperimentFields | None:
    match = _JSON_FENCE_RE.search(text)
    return _fields_from_json(match.group(1) if match else None, prompt, "json_fence")


def from_balanced_object(text: str, prompt: str) -> ExperimentFields | None:
    return _fields_from_json(balanced_json_slice(text), prompt, "json_object")


STAGES: tuple[Callable[[str, str], ExperimentFields | None], ...] = (
    from_html_document,
    from_json_fence,
    from_balanced_object,
)


def extract_experiment_fields(text: str | None, prompt: str) -> ExperimentFields | None:
    """Run the extraction stages in order and return the first structured result."""
    if not text or not text.strip():
        return None
    for stage in STAGES:
        fields = stage(text, prompt)
        if fields is not None:
            logger.info("Experiment fields extracted via %s", fields.source)
            return fields
    return None
