"""Tier-3 clarifier: one short, specific question when the normal reply was unusable.

Asks the language model first, under a hard timeout.  Anything that fails,
times out, or comes back sounding generic ("how can I help you?") falls
through to keyword-triggered templates that only mention the tenant's trade.
"""

import asyncio
import logging
from dataclasses import dataclass

from frontline.llm import LLMClient
from frontline.prompts import FORBIDDEN_CLARIFIER_PHRASES, build_clarifier_prompt
from frontline.tenant import CompanyConfig
from frontline.validation import match_any_keyword

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 3.0
MAX_QUESTION_CHARS = 200

# Checked in order; first bucket with a keyword hit wins.
RULE_BUCKETS = [
    (
        "urgent",
        ["urgent", "emergency", "asap", "right away", "immediately"],
        "I want to get this handled quickly. Is the {trade} issue causing any damage or safety concern right now?",
    ),
    (
        "problem",
        ["problem", "broken", "not working", "stopped working", "issue", "leak", "noise", "won't"],
        "What exactly is going on with the {trade} problem, and when did you first notice it?",
    ),
    (
        "appointment",
        ["appointment", "schedule", "book", "come out", "visit"],
        "What day and time would work best for a {trade} visit?",
    ),
    (
        "price",
        ["price", "cost", "quote", "how much", "estimate", "charge"],
        "So I can point you in the right direction on cost, what {trade} work do you need done?",
    ),
    (
        "service",
        ["service", "maintenance", "tune-up", "tune up", "inspection", "check"],
        "What kind of {trade} service are you looking for?",
    ),
]

GENERIC_TEMPLATE = "Could you tell me a little more about the {trade} issue you're calling about?"


@dataclass
class ClarifierResult:
    text: str
    source: str
    success: bool


def is_generic(text: str) -> bool:
    lower = text.lower()
    return any(phrase in lower for phrase in FORBIDDEN_CLARIFIER_PHRASES)


def rule_clarification(user_text: str, config: CompanyConfig | None) -> ClarifierResult:
    trade = (config.trade if config else "") or "service"
    for bucket, keywords, template in RULE_BUCKETS:
        if match_any_keyword(user_text or "", keywords):
            return ClarifierResult(text=template.format(trade=trade), source=f"rule:{bucket}", success=False)
    return ClarifierResult(text=GENERIC_TEMPLATE.format(trade=trade), source="rule:generic", success=False)


class Tier3Clarifier:
    def __init__(self, llm: LLMClient | None, timeout: float = DEFAULT_TIMEOUT_S):
        self.llm = llm
        self.timeout = timeout

    async def clarify(
        self,
        user_text: str,
        config: CompanyConfig | None,
        call_id: str = "",
        turn_number: int = 0,
    ) -> ClarifierResult:
        question = await self._ask_model(user_text, config) if self.llm else None
        if question:
            logger.info("Tier-3 clarifier answered for %s turn %d", call_id, turn_number)
            return ClarifierResult(text=question, source="llm", success=True)
        result = rule_clarification(user_text, config)
        logger.info("Tier-3 clarifier fell back to %s for %s turn %d", result.source, call_id, turn_number)
        return result

    async def _ask_model(self, user_text: str, config: CompanyConfig | None) -> str | None:
        system, user = build_clarifier_prompt(user_text, config)

        async def _call() -> str | None:
            content = await asyncio.wait_for(
                self.llm.complete(system, user, temperature=0.4, max_tokens=60),
                timeout=self.timeout,
            )
            return self._clean(content)

        return await self.llm.circuit.execute(_call, lambda: None)

    @staticmethod
    def _clean(content: str | None) -> str | None:
        text = (content or "").strip().strip('"').strip()
        if not text or len(text) > MAX_QUESTION_CHARS:
            return None
        if is_generic(text):
            logger.warning("Clarifier returned a generic question; rejecting")
            return None
        return text
