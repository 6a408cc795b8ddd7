"""Default response constructor: the only place spoken text is assembled.

Final text = [behavioral filler] + [triage card opening line] + [handler content]
"""

import logging
import re
import time
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from frontline.behavior import BehaviorState
from frontline.models import TriageResult

logger = logging.getLogger(__name__)

_ACKNOWLEDGEMENT = re.compile(
    r"^\s*(?:i'm sorry|sorry|i understand|i'm so sorry|okay|ok|great|got it|thanks|thank you|"
    r"no problem|absolutely|of course|sure)\b",
    re.IGNORECASE,
)


@dataclass
class FinalResponse:
    text: str
    ssml: str | None = None
    meta: dict = field(default_factory=dict)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", "", text.lower())).strip()


def _to_ssml(text: str, behavior: BehaviorState | None) -> str:
    body = escape(text)
    if behavior and behavior.pace == "slow":
        body = f'<prosody rate="95%">{body}</prosody>'
    return f"<speak>{body}</speak>"


class DefaultResponseConstructor:
    def build_final_response(
        self,
        *,
        context: dict,
        behavior: BehaviorState | None,
        triage: TriageResult | None,
        content: str,
        is_first_turn_for_scenario: bool,
    ) -> FinalResponse:
        start = time.monotonic()
        parts = []
        sources = []
        content = (content or "").strip()

        opening = (triage.opening_line or "").strip() if triage else ""
        use_opening = bool(opening) and (is_first_turn_for_scenario or not content)
        if use_opening and content and _normalize(opening) in _normalize(content):
            use_opening = False

        lead = opening if use_opening else content
        filler = behavior.suggested_filler if behavior else None
        if filler and is_first_turn_for_scenario and not _ACKNOWLEDGEMENT.match(lead or ""):
            parts.append(filler)
            sources.append("behavior_filler")
        if use_opening:
            parts.append(opening)
            sources.append("triage_opening_line")
        if content:
            parts.append(content)
            sources.append("handler")

        text = " ".join(parts).strip()
        construction_ms = round((time.monotonic() - start) * 1000, 2)
        logger.debug(
            "Constructed response for %s from %s",
            context.get("call_id"), ",".join(sources) or "nothing",
        )
        return FinalResponse(
            text=text,
            ssml=_to_ssml(text, behavior) if text else None,
            meta={"sources": sources, "construction_ms": construction_ms},
        )

    def build_simple_response(self, *, context: dict, text: str, source: str) -> FinalResponse:
        return FinalResponse(
            text=text,
            ssml=_to_ssml(text, None) if text else None,
            meta={"sources": [source], "construction_ms": 0.0},
        )
