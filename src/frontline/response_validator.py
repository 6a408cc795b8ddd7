"""Quality gate on the text about to be spoken.

Checks run in order and the first failure wins:
  empty -> too short -> always-dead-end -> late-turn dead-end -> loop
  -> unresolved placeholder

Late-turn dead-end phrasing ("anything else I can help you with today?")
is only a failure from the late-turn threshold onward; on the first turns
the same words are a normal follow-up.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from frontline.loop_detector import LoopDetector

logger = logging.getLogger(__name__)

MIN_LENGTH = 5
DEFAULT_LATE_TURN_THRESHOLD = 3


class ValidationReason(Enum):
    EMPTY = "EMPTY"
    TOO_SHORT = "TOO_SHORT"
    DEAD_END = "DEAD_END"
    LATE_DEAD_END = "LATE_DEAD_END"
    LOOP = "LOOP"
    UNRESOLVED_PLACEHOLDER = "UNRESOLVED_PLACEHOLDER"

    @property
    def is_hard(self) -> bool:
        return self in HARD_REASONS


HARD_REASONS = {ValidationReason.DEAD_END, ValidationReason.LATE_DEAD_END, ValidationReason.LOOP}

ALWAYS_DEAD_END_PATTERNS = [
    re.compile(
        r"^(?:ok(?:ay)?|alright|all right|got it|sure|i see|i understand|understood|great|"
        r"thanks|thank you|mm-?hmm|uh-?huh|no problem|sounds good|perfect)[\s.!,]*$",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:i'?m sorry,? )?i (?:don'?t|do not) know[\s.!]*$", re.IGNORECASE),
]

LATE_DEAD_END_PATTERNS = [
    re.compile(r"\banything else (?:i|we) can (?:help|do|assist)", re.IGNORECASE),
    re.compile(r"\bhow else (?:can|may) (?:i|we) help\b", re.IGNORECASE),
    re.compile(r"\bis there anything else\s*\??\s*$", re.IGNORECASE),
    re.compile(r"\bwhat else can (?:i|we) do for you\b", re.IGNORECASE),
]

_UNRESOLVED = re.compile(r"\{\{\s*\w+\s*\}\}")


@dataclass
class ValidationResult:
    usable: bool
    reason: ValidationReason | None = None
    severity: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(usable=True)

    @classmethod
    def fail(cls, reason: ValidationReason) -> "ValidationResult":
        return cls(usable=False, reason=reason, severity="hard" if reason.is_hard else "soft")

    @property
    def is_hard(self) -> bool:
        return self.severity == "hard"


def validate_response(
    text: str | None,
    call_id: str,
    turn_number: int,
    *,
    loop_detector: LoopDetector | None = None,
    late_turn_threshold: int = DEFAULT_LATE_TURN_THRESHOLD,
) -> ValidationResult:
    result = _check(text, call_id, turn_number, loop_detector, late_turn_threshold)
    if not result.usable:
        logger.warning(
            "Response failed validation for %s turn %d: %s (%s)",
            call_id, turn_number, result.reason.value, (text or "")[:50],
        )
    return result


def _check(text, call_id, turn_number, loop_detector, late_turn_threshold) -> ValidationResult:
    if text is None or not text.strip():
        return ValidationResult.fail(ValidationReason.EMPTY)
    stripped = text.strip()
    if len(stripped) < MIN_LENGTH:
        return ValidationResult.fail(ValidationReason.TOO_SHORT)
    if any(p.search(stripped) for p in ALWAYS_DEAD_END_PATTERNS):
        return ValidationResult.fail(ValidationReason.DEAD_END)
    if turn_number >= late_turn_threshold and any(p.search(stripped) for p in LATE_DEAD_END_PATTERNS):
        return ValidationResult.fail(ValidationReason.LATE_DEAD_END)
    if loop_detector is not None and loop_detector.check_for_loop(call_id).is_looping:
        return ValidationResult.fail(ValidationReason.LOOP)
    if _UNRESOLVED.search(stripped):
        return ValidationResult.fail(ValidationReason.UNRESOLVED_PLACEHOLDER)
    return ValidationResult.ok()
