import re
from dataclasses import dataclass

from ..config import DEFAULT_EXPERIMENT_TITLE

MARKUP_LANGUAGES = {"html", "xml", "markup", "htm", "xhtml"}

# An opening fence at the start of a line, an optional language tag, then a lazy body
# up to a matching fence that closes its line.
_FENCE_PATTERNS = {
    fence: re.compile(
        rf"^[ \t]*{re.escape(fence)}[ \t]*([\w+.\-]*)[^\n]*\n(.*?){re.escape(fence)}[ \t]*$",
        re.MULTILINE | re.DOTALL,
    )
    for fence in ("```", "~~~")
}
_TAG_RE = re.compile(r"</?[a-z][^>]*>", re.IGNORECASE)
_DOCTYPE_DOCUMENT_RE = re.compile(r"<!DOCTYPE html[\s\S]*?</html>", re.IGNORECASE)
_HTML_DOCUMENT_RE = re.compile(r"<html\b[\s\S]*?</html>", re.IGNORECASE)
_BODY_RE = re.compile(r"<body\b[\s\S]*?</body>", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title\b[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>([\s\S]*?)</style>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script\b([^>]*)>([\s\S]*?)</script>", re.IGNORECASE)
_BODY_INNER_RE = re.compile(r"<body\b[^>]*>([\s\S]*?)</body>", re.IGNORECASE)


@dataclass(frozen=True)
class HtmlExtraction:
    html: str | None = None
    title: str | None = None

    @property
    def found(self) -> bool:
        return self.html is not None


@dataclass(frozen=True)
class CodeSections:
    html: str = ""
    css: str = ""
    js: str = ""


def normalize_whitespace(value: str) -> str:
    return value.replace("\r\n", "\n").strip()


def has_html_structure(snippet: str) -> bool:
    return bool(snippet) and _TAG_RE.search(snippet) is not None


def is_markup_language(language: str) -> bool:
    language = language.strip().lower()
    return language in MARKUP_LANGUAGES or "html" in language


def _scan_fenced_blocks(source: str, fence: str) -> str | None:
    untagged: list[str] = []
    tagged: list[str] = []
    for match in _FENCE_PATTERNS[fence].finditer(source):
        language = match.group(1)
        payload = normalize_whitespace(match.group(2))
        if not payload:
            continue
        if is_markup_language(language):
            return payload
        (tagged if language else untagged).append(payload)

    for candidate in untagged + tagged:
        if has_html_structure(candidate):
            return candidate
    return None


def extract_from_fenced_block(source: str) -> str | None:
    return _scan_fenced_blocks(source, "```") or _scan_fenced_blocks(source, "~~~")


def extract_bare_document(source: str) -> str | None:
    """Find an unfenced document, preferring one that carries a DOCTYPE."""
    for pattern in (_DOCTYPE_DOCUMENT_RE, _HTML_DOCUMENT_RE):
        match = pattern.search(source)
        if match:
            return normalize_whitespace(match.group(0))
    return None


def build_document_from_body(body_markup: str) -> str:
    body = body_markup.strip()
    if not body.lower().startswith("<body"):
        body = f"<body>\n{body}\n</body>"
    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '  <meta charset="utf-8">',
            f"  <title>{DEFAULT_EXPERIMENT_TITLE}</title>",
            "</head>",
            body,
            "</html>",
        ]
    )


def extract_from_body(source: str) -> str | None:
    match = _BODY_RE.search(source)
    if not match:
        return None
    return build_document_from_body(normalize_whitespace(match.group(0)))


def derive_title(document: str) -> str | None:
    match = _TITLE_RE.search(document)
    if not match:
        return None
    title = match.group(1).strip()
    return title or None


def extract_experiment_html(source: str | None) -> HtmlExtraction:
    """Pull a single standalone HTML document out of raw model output.

    Strategies run in order and the first hit wins: fenced code blocks, a bare
    ``<!DOCTYPE html>``/``<html>`` document, then a ``<body>`` fragment wrapped into a
    minimal document. Returns an empty ``HtmlExtraction`` when nothing looks like markup.
    """
    if not source:
        return HtmlExtraction()

    text = normalize_whitespace(source)
    for strategy in (extract_from_fenced_block, extract_bare_document, extract_from_body):
        document = strategy(text)
        if document:
            return HtmlExtraction(html=document, title=derive_title(document))
    return HtmlExtraction()


def split_code_sections(document: str) -> CodeSections:
    """Split a document into body markup, concatenated inline CSS and inline JS."""
    css = "\n\n".join(m.strip() for m in _STYLE_RE.findall(document) if m.strip())
    js = "\n\n".join(
        body.strip()
        for attrs, body in _SCRIPT_RE.findall(document)
        if "src=" not in attrs.lower() and body.strip()
    )

    body_match = _BODY_INNER_RE.search(document)
    if body_match:
        markup = body_match.group(1)
    else:
        markup = re.sub(r"<!DOCTYPE[^>]*>", "", document, flags=re.IGNORECASE)
        markup = re.sub(r"<head\b[\s\S]*?</head>", "", markup, flags=re.IGNORECASE)
        markup = re.sub(r"</?(?:html|body)\b[^>]*>", "", markup, flags=re.IGNORECASE)
    markup = _STYLE_RE.sub("", markup)
    markup = _SCRIPT_RE.sub(lambda m: m.group(0) if "src=" in m.group(1).lower() else "", markup)
    return CodeSections(html=markup.strip(), css=css, js=js)


def combine_code_sections(
    html: str, css: str = "", js: str = "", title: str = DEFAULT_EXPERIMENT_TITLE
) -> str:
    """Reassemble separated sections into one standalone document."""
    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="utf-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1">',
        f"  <title>{title}</title>",
    ]
    if css.strip():
        parts.append(f"  <style>\n{css.strip()}\n  </style>")
    parts.extend(["</head>", "<body>", html.strip()])
    if js.strip():
        parts.append(f"<script>\n{js.strip()}\n</script>")
    parts.extend(["</body>", "</html>"])
    return "\n".join(parts)
