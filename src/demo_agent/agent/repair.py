import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum

from ..config import MAX_REPAIR_ATTEMPTS
from ..validation.javascript import clean_javascript, validate_javascript
from .prompts import FIX_SYSTEM_PROMPT, build_fix_prompt

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:javascript|js)[ \t]*\n([\s\S]*?)```", re.IGNORECASE)


class RepairStatus(StrEnum):
    REPAIRED = "repaired"  # validator accepts the code
    DEGRADED = "degraded"  # mechanical fixes adopted after the last attempt
    EXHAUSTED = "exhausted"


@dataclass
class RepairOutcome:
    status: RepairStatus
    code: str
    attempts: int
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is not RepairStatus.EXHAUSTED


def extract_code_block(reply: str) -> str:
    match = _CODE_BLOCK_RE.search(reply or "")
    return match.group(1) if match else (reply or "")


class RepairLoop:
    """Validate JavaScript and ask the model to fix it, a bounded number of times."""

    def __init__(self, provider, model: str, max_attempts: int = MAX_REPAIR_ATTEMPTS) -> None:
        self._provider = provider
        self._model = model
        self._max_attempts = max_attempts

    async def _request_fix(self, code: str, result) -> str | None:
        messages = [
            {"role": "system", "content": FIX_SYSTEM_PROMPT},
            {"role": "user", "content": build_fix_prompt(code, result)},
        ]
        try:
            reply = await self._provider.chat_completion(messages, self._model)
        except Exception:
            logger.exception("Fix request failed")
            return None
        fixed = clean_javascript(extract_code_block(reply))
        return fixed or None

    async def run(self, code: str) -> RepairOutcome:
        attempt = 1
        current = code
        while True:
            result = validate_javascript(current)
            if result.is_valid:
                if attempt > 1:
                    logger.info("JavaScript repaired after %d attempt(s)", attempt)
                return RepairOutcome(RepairStatus.REPAIRED, current, attempt)

            logger.info(
                "JavaScript validation attempt %d/%d found %d error(s)",
                attempt,
                self._max_attempts,
                len(result.errors),
            )
            if attempt >= self._max_attempts or self._provider is None:
                break

            fixed = await self._request_fix(current, result)
            if fixed is None:
                break
            current = fixed
            attempt += 1

        if result.fixed_code is not None:
            logger.warning("Adopting mechanical JavaScript fixes after %d attempt(s)", attempt)
            return RepairOutcome(RepairStatus.DEGRADED, result.fixed_code, attempt, result.errors)
        return RepairOutcome(RepairStatus.EXHAUSTED, current, attempt, result.errors)
