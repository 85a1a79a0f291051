import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

BRACKET_PAIRS = {"(": ")", "[": "]", "{": "}"}
CLOSING_BRACKETS = {v: k for k, v in BRACKET_PAIRS.items()}

# Words that legitimately sit next to another identifier inside a condition.
OPERATOR_KEYWORDS = frozenset(
    {"typeof", "instanceof", "in", "of", "new", "void", "delete", "await", "yield"}
)

_IDENT = r"[A-Za-z_$][\w$]*"
_IF_CONDITION_RE = re.compile(r"\bif\s*\(([^()]*)\)")
_ADJACENT_IDENTS_RE = re.compile(rf"(?<![\w$])({_IDENT})\s+({_IDENT})(?![\w$])")
_TRUNCATED_IF_RE = re.compile(r"\bif\s*\(([^(){}\n]*)\{")
_STRAY_DECL_OPERATOR_RE = re.compile(r"(?<![\w$.])(const|let|var)\s*[<>]=?\s*")
_WRONG_ARROW_RE = re.compile(
    rf"\(\s*((?:{_IDENT}\s*(?:,\s*{_IDENT}\s*)*)?)\)\s*=(?![=>])\s*\{{"
)
_LINE_ASSIGNMENT_RE = re.compile(rf"^[ \t]*({_IDENT})[ \t]*=(?![=>])", re.MULTILINE)
_DECLARATION_RE = re.compile(rf"\b(?:const|let|var|class)\s+({_IDENT})")
_DESTRUCTURING_RE = re.compile(r"\b(?:const|let|var)\s*[\[{]([^\]}]*)[\]}]")
_FUNCTION_RE = re.compile(rf"\bfunction\s*({_IDENT})?\s*\(([^)]*)\)")
_ARROW_PARAMS_RE = re.compile(rf"(?:\(([^()]*)\)|({_IDENT}))\s*=>")
_CATCH_RE = re.compile(rf"\bcatch\s*\(\s*({_IDENT})\s*\)")
_IDENT_RE = re.compile(_IDENT)

_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*(?:\n|$)", re.MULTILINE)
_SCRIPT_TAG_RE = re.compile(r"</?script\b[^>]*>", re.IGNORECASE)
_MARKUP_RESIDUE_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9]*(?:\s[^<>]*)?/?>")

Edit = tuple[int, int, str]


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    fixed_code: str | None = None


@dataclass
class _CheckFindings:
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    edits: list[Edit] = field(default_factory=list)


def mask_literals(code: str) -> str:
    """Blank out string, template literal and comment bodies, keeping every offset."""
    chars = list(code)
    n = len(code)

    def blank(start: int, end: int) -> None:
        for k in range(start, min(end, n)):
            if chars[k] != "\n":
                chars[k] = " "

    i = 0
    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = code.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
        elif ch == "/" and nxt == "*":
            end = code.find("*/", i + 2)
            end = n if end == -1 else end + 2
            blank(i, end)
            i = end
        elif ch in "'\"`":
            j = i + 1
            while j < n:
                c = code[j]
                if c == "\\":
                    j += 2
                    continue
                if c == ch or (c == "\n" and ch != "`"):
                    break
                j += 1
            j = min(j, n)
            blank(i + 1, j)
            i = j + 1 if j < n and code[j] == ch else j
        else:
            i += 1
    return "".join(chars)


def check_brackets(masked: str) -> _CheckFindings:
    findings = _CheckFindings()
    stack: list[tuple[str, int]] = []
    for i, ch in enumerate(masked):
        if ch in BRACKET_PAIRS:
            stack.append((ch, i))
        elif ch in CLOSING_BRACKETS:
            if not stack:
                findings.errors.append(
                    f"Bracket mismatch at character {i + 1}: found '{ch}' with no open bracket"
                )
                continue
            opener, pos = stack.pop()
            if BRACKET_PAIRS[opener] != ch:
                findings.errors.append(
                    f"Bracket mismatch at character {i + 1}: expected '{BRACKET_PAIRS[opener]}' "
                    f"to close '{opener}' from character {pos + 1}, found '{ch}'"
                )
    if findings.errors:
        findings.suggestions.append("Check the nesting of brackets around the reported positions")
    if stack:
        unclosed = ", ".join(f"'{ch}' at character {pos + 1}" for ch, pos in stack)
        findings.errors.append(f"Unclosed brackets: {unclosed}")
        findings.suggestions.append(
            "Check that all opening brackets have corresponding closing brackets"
        )
    return findings


def check_if_conditions(code: str, masked: str) -> _CheckFindings:
    findings = _CheckFindings()
    for match in _IF_CONDITION_RE.finditer(masked):
        for pair in _ADJACENT_IDENTS_RE.finditer(match.group(1)):
            left, right = pair.group(1), pair.group(2)
            if left in OPERATOR_KEYWORDS or right in OPERATOR_KEYWORDS:
                continue
            condition = code[match.start(1) : match.end(1)].strip()
            findings.errors.append(
                f"If condition missing comparison operator between '{left}' and '{right}': "
                f"if ({condition})"
            )
            findings.suggestions.append(
                f"Add a comparison operator (<, >, ==, !=, <=, >=) between '{left}' and '{right}'"
            )
            break

    for match in _TRUNCATED_IF_RE.finditer(masked):
        condition = code[match.start(1) : match.end(1)].rstrip()
        findings.errors.append(
            f"Incomplete if statement: 'if ({condition} {{' never closes its condition"
        )
        findings.suggestions.append("Close the if condition with ')' before the opening brace")
        findings.edits.append((match.start(1), match.end(), f"{condition}) {{"))
    return findings


def check_declarations(code: str, masked: str) -> _CheckFindings:
    findings = _CheckFindings()
    for match in _STRAY_DECL_OPERATOR_RE.finditer(masked):
        keyword = match.group(1)
        snippet = code[match.start() : match.end()].strip()
        findings.errors.append(f'Found "{snippet}" syntax error in variable declaration')
        findings.suggestions.append(f"Remove the stray comparison operator after '{keyword}'")
        findings.edits.append((match.start(), match.end(), f"{keyword} "))
    return findings


def check_arrow_functions(code: str, masked: str) -> _CheckFindings:
    findings = _CheckFindings()
    for match in _WRONG_ARROW_RE.finditer(masked):
        params = code[match.start(1) : match.end(1)].strip()
        snippet = code[match.start() : match.end()]
        findings.errors.append(f"Incorrect arrow function syntax: {snippet}")
        findings.suggestions.append("Arrow functions should use => instead of =")
        findings.edits.append((match.start(), match.end(), f"({params}) => {{"))
    return findings


def _declared_names(masked: str) -> set[str]:
    names = set(_DECLARATION_RE.findall(masked))
    for group in _DESTRUCTURING_RE.findall(masked):
        names.update(_IDENT_RE.findall(group))
    for name, params in _FUNCTION_RE.findall(masked):
        if name:
            names.add(name)
        names.update(_IDENT_RE.findall(params))
    for params, single in _ARROW_PARAMS_RE.findall(masked):
        names.update(_IDENT_RE.findall(params) if params else [single])
    names.update(_CATCH_RE.findall(masked))
    return names


def check_undeclared_assignments(masked: str) -> _CheckFindings:
    """Heuristic: flags bare ``name = ...`` lines with no declaration of ``name`` anywhere.

    May false-positive (e.g. globals defined elsewhere), so it only ever adds suggestions.
    """
    findings = _CheckFindings()
    declared = _declared_names(masked)
    reported: set[str] = set()
    for match in _LINE_ASSIGNMENT_RE.finditer(masked):
        name = match.group(1)
        if name in declared or name in reported:
            continue
        reported.add(name)
        findings.suggestions.append(
            f"Possibly undeclared variable '{name}': declare it with const, let or var"
        )
    return findings


def apply_edits(code: str, edits: list[Edit]) -> str:
    """Apply non-overlapping (start, end, replacement) edits; later overlaps are dropped."""
    pieces: list[str] = []
    cursor = 0
    for start, end, replacement in sorted(edits):
        if start < cursor:
            continue
        pieces.append(code[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(code[cursor:])
    return "".join(pieces)


def validate_javascript(code: str) -> ValidationResult:
    """Statically check generated JavaScript for common LLM syntax slips.

    Runs five independent checks (bracket balance, if conditions, declaration typos,
    arrow function typos, undeclared assignments). Mechanical repairs are composed into
    ``fixed_code``, which is only a candidate: callers decide whether to adopt it.
    """
    masked = mask_literals(code or "")
    checks = (
        check_brackets(masked),
        check_if_conditions(code, masked),
        check_declarations(code, masked),
        check_arrow_functions(code, masked),
        check_undeclared_assignments(masked),
    )

    errors: list[str] = []
    suggestions: list[str] = []
    edits: list[Edit] = []
    for findings in checks:
        errors.extend(findings.errors)
        suggestions.extend(findings.suggestions)
        edits.extend(findings.edits)

    is_valid = not errors
    fixed_code = None
    if not is_valid and edits:
        candidate = apply_edits(code, edits)
        if candidate != code:
            fixed_code = candidate
    return ValidationResult(
        is_valid=is_valid, errors=errors, suggestions=suggestions, fixed_code=fixed_code
    )


def clean_javascript(code: str) -> str:
    """Strip markdown fences and wrapping <script> tags from model-produced JavaScript.

    Any other tag-like text outside string literals is only reported, never removed.
    """
    cleaned = _FENCE_LINE_RE.sub("", code or "")
    cleaned = _SCRIPT_TAG_RE.sub("", cleaned)
    if _MARKUP_RESIDUE_RE.search(mask_literals(cleaned)):
        logger.warning("Possible HTML tag residue detected in JavaScript code")
    return cleaned.strip()
