"""Brain-1: turns one normalized utterance into a structured Decision.

Order of evaluation:
  1. quick deterministic decisions (emergency, wrong number, spam,
     upset caller asking for a human, vendor)
  2. booking lock (caller is mid slot-collection).  A reply that fills the
     pending slot stays in the flow; an opt-out ("never mind", "cancel")
     releases it and is flagged booking_cancelled; anything else goes to
     the model when one is configured
  3. fast triage-card match, which may bypass the model only when
     confidence >= 0.92, the card is healthy, and the call is not looping
  4. language-model decision behind a circuit breaker, with a rule-based
     fallback Decision whenever the breaker is open or the call fails

The engine never mutates call state.
"""

import asyncio
import logging
import re

from frontline.actions import BookingStep, DecisionAction, Emotion
from frontline.booking import fills_step, slot_answer
from frontline.card_health import score_card
from frontline.card_matcher import CardMatch, best_match
from frontline.emotion import EmotionSnapshot
from frontline.extraction import extract_entities
from frontline.llm import LLMClient
from frontline.loop_detector import LoopDetector
from frontline.models import CardHealth, Decision
from frontline.prompts import build_decision_prompt, tag_vocabulary
from frontline.session import CallState, Entities, merge_entities
from frontline.tenant import CompanyConfig
from frontline.validation import (
    VENDOR_URGENT_KEYWORDS,
    detect_booking_opt_out,
    detect_emergency,
    detect_human_request,
    detect_spam,
    detect_vendor,
    detect_wrong_number,
    match_any_keyword,
    validate_address,
    validate_email,
    validate_name,
    validate_phone,
    validate_zip,
)

logger = logging.getLogger(__name__)

BYPASS_CONFIDENCE = 0.92
FALLBACK_CONFIDENCE = 0.3
DEFAULT_DECISION_TIMEOUT_S = 4.0

CARD_ROUTING_TO_ACTION = {
    "BOOK": DecisionAction.BOOK,
    "TRANSFER": DecisionAction.TRANSFER,
    "ROUTE_TO_SCENARIO": DecisionAction.ROUTE_TO_SCENARIO,
    "MESSAGE_ONLY": DecisionAction.MESSAGE_ONLY,
}

_VENDOR_COMPANY = re.compile(
    r"\b(?:calling from|with|from) ((?:[A-Z][\w&'.-]*)(?: [A-Z][\w&'.-]*){0,4})"
)


def should_bypass(match: CardMatch | None, health: CardHealth | None, is_looping: bool) -> bool:
    """All three must hold: confident match, healthy card, no active loop."""
    if match is None or health is None:
        return False
    return match.confidence >= BYPASS_CONFIDENCE and health.healthy and not is_looping


def fallback_decision(reason: str = "LLM fallback - circuit breaker or timeout", triage_tag: str | None = None) -> Decision:
    return Decision(
        action=DecisionAction.ASK_FOLLOWUP,
        triage_tag=triage_tag,
        intent_tag="unknown",
        confidence=FALLBACK_CONFIDENCE,
        reasoning=reason,
        flags={"needs_deeper_lookup": True},
        source="fallback",
    )


def _vendor_entities(text: str) -> dict:
    vendor = {"reason": text[:200]}
    match = _VENDOR_COMPANY.search(text)
    if match:
        vendor["company_name"] = match.group(1).strip()
    vendor["urgency"] = "urgent" if match_any_keyword(text, VENDOR_URGENT_KEYWORDS) else "normal"
    return vendor


def check_quick_decisions(text: str, emotion: EmotionSnapshot) -> Decision | None:
    """Pinned high-confidence decisions that never need a model."""
    if detect_emergency(text):
        return Decision(
            action=DecisionAction.TRANSFER,
            triage_tag="EMERGENCY",
            intent_tag="emergency",
            confidence=0.95,
            reasoning="Emergency keyword detected",
            flags={"is_emergency": True, "wants_human": True},
            source="quick_rule",
        )
    if detect_wrong_number(text):
        return Decision(
            action=DecisionAction.END,
            triage_tag="WRONG_NUMBER",
            intent_tag="wrong_number",
            confidence=0.9,
            reasoning="Wrong number pattern detected",
            flags={"is_wrong_number": True},
            source="quick_rule",
        )
    if detect_spam(text):
        return Decision(
            action=DecisionAction.END,
            triage_tag="SPAM",
            intent_tag="spam",
            confidence=0.9,
            reasoning="Spam pattern detected",
            flags={"is_spam": True},
            source="quick_rule",
        )
    if emotion.primary.is_upset and detect_human_request(text):
        return Decision(
            action=DecisionAction.TRANSFER,
            triage_tag="ESCALATION_REQUEST",
            intent_tag="escalation",
            confidence=0.9,
            reasoning="Frustrated caller requesting human",
            flags={"is_frustrated": True, "wants_human": True},
            source="quick_rule",
        )
    if detect_vendor(text):
        return Decision(
            action=DecisionAction.ROUTE_TO_VENDOR,
            triage_tag="VENDOR",
            intent_tag="vendor",
            confidence=0.85,
            reasoning="Vendor/B2B caller pattern detected",
            entities=Entities(vendor=_vendor_entities(text)),
            flags={"is_vendor": True},
            source="quick_rule",
        )
    return None


def _clean_entities(raw) -> Entities:
    entities = Entities.from_dict(raw if isinstance(raw, dict) else {})
    contact = entities.contact
    if "name" in contact:
        contact["name"] = validate_name(contact["name"])
    if "phone" in contact:
        contact["phone"] = validate_phone(contact["phone"])
    if "email" in contact:
        contact["email"] = validate_email(contact["email"])
    if contact.get("name") and not contact.get("first_name"):
        contact["first_name"] = contact["name"].split()[0]
    location = entities.location
    if "address_line1" in location:
        location["address_line1"] = validate_address(location["address_line1"])
    if "zip" in location:
        location["zip"] = validate_zip(location["zip"])
    # drop anything the validators emptied
    return Entities.from_dict(entities.to_dict())


def normalize_decision(data: dict, config: CompanyConfig | None) -> Decision:
    """Coerce a model reply into a valid Decision.

    Unknown actions become ASK_FOLLOWUP; a triage tag outside this tenant's
    vocabulary (plus the generic set) is dropped.
    """
    allowed_tags = set(tag_vocabulary(config))
    tag = data.get("triage_tag") or data.get("triageTag")
    tag = str(tag).strip().upper() if tag else None
    if tag and tag not in allowed_tags:
        logger.info("Dropping triage tag %s not in tenant vocabulary", tag)
        tag = None
    flags = data.get("flags") if isinstance(data.get("flags"), dict) else {}
    return Decision(
        action=DecisionAction.parse(data.get("action")),
        triage_tag=tag,
        intent_tag=str(data.get("intent_tag") or data.get("intentTag") or "unknown"),
        confidence=data.get("confidence", 0.5),
        reasoning=str(data.get("reasoning") or "")[:500],
        entities=_clean_entities(data.get("entities")),
        flags=dict(flags),
        source="llm",
    )


class DecisionEngine:
    def __init__(
        self,
        llm: LLMClient | None,
        loop_detector: LoopDetector | None = None,
        decision_timeout: float = DEFAULT_DECISION_TIMEOUT_S,
    ):
        self.llm = llm
        self.loop_detector = loop_detector or LoopDetector()
        self.decision_timeout = decision_timeout

    async def decide(
        self,
        text: str,
        call_state: CallState,
        config: CompanyConfig | None,
        emotion: EmotionSnapshot,
        call_id: str = "",
    ) -> Decision:
        rule_entities = extract_entities(text)
        decision = await self._decide(text, call_state, config, emotion, call_id)
        decision.entities = merge_entities(rule_entities, decision.entities)
        if emotion.primary.is_upset:
            decision.flags.setdefault("is_frustrated", True)
        if emotion.primary == Emotion.PANICKED:
            decision.flags.setdefault("is_emergency", True)
        return decision

    async def _decide(self, text, call_state, config, emotion, call_id) -> Decision:
        quick = check_quick_decisions(text, emotion)
        if quick:
            logger.info("Quick decision for %s: %s (%s)", call_id, quick.action.value, quick.reasoning)
            return quick

        extra_flags = {}
        if call_state.booking_state and call_state.booking_state != BookingStep.CONFIRMED.value:
            if detect_booking_opt_out(text):
                logger.info("Caller left booking at %s on %s", call_state.booking_state, call_id)
                extra_flags["booking_cancelled"] = True
            elif self._answers_pending_slot(text, call_state) or self.llm is None:
                return Decision(
                    action=DecisionAction.BOOK,
                    triage_tag="BOOKING",
                    intent_tag="booking_slot_fill",
                    confidence=1.0,
                    reasoning=f"Booking in progress ({call_state.booking_state})",
                    flags={"booking_locked": True},
                    source="booking_lock",
                )
            else:
                logger.info("Reply does not fill %s on %s, asking the model", call_state.booking_state, call_id)

        decision = await self._decide_open(
            text, call_state, config, emotion, call_id, allow_bypass=not extra_flags,
        )
        decision.flags.update(extra_flags)
        return decision

    @staticmethod
    def _answers_pending_slot(text: str, call_state: CallState) -> bool:
        try:
            step = BookingStep(call_state.booking_state)
        except ValueError:
            return False
        answer = merge_entities(extract_entities(text), slot_answer(step, text))
        return fills_step(step, answer)

    async def _decide_open(self, text, call_state, config, emotion, call_id, allow_bypass: bool = True) -> Decision:
        candidate = best_match(text, config.enabled_cards) if config else None
        if candidate and allow_bypass:
            health = score_card(candidate.card)
            looping = self.loop_detector.check_for_loop(call_id).is_looping if call_id else False
            if should_bypass(candidate, health, looping):
                card = candidate.card
                logger.info(
                    "Fast path: card %s matched at %.2f (health %d), skipping model",
                    card.id, candidate.confidence, health.score,
                )
                return Decision(
                    action=CARD_ROUTING_TO_ACTION.get(card.routing, DecisionAction.MESSAGE_ONLY),
                    triage_tag=card.triage_tag,
                    intent_tag=(card.category or "card_match").lower(),
                    confidence=candidate.confidence,
                    reasoning=f"Card '{card.name}' matched: {', '.join(candidate.keyword_hits + candidate.synonym_hits)}",
                    flags={"matched_card_id": card.id, "fast_path": True},
                    source="card_fast_path",
                )
            logger.info(
                "Card %s not eligible for bypass (confidence %.2f, health %d, looping %s)",
                candidate.card.id, candidate.confidence, health.score, looping,
            )

        candidate_tag = candidate.card.triage_tag if candidate else None

        if self.llm is None:
            return fallback_decision("No language model configured", triage_tag=candidate_tag)

        async def _call_model() -> Decision:
            system, user = build_decision_prompt(text, call_state, config, emotion.to_dict())
            data = await asyncio.wait_for(
                self.llm.complete_json(system, user, temperature=0.2, max_tokens=600),
                timeout=self.decision_timeout,
            )
            return normalize_decision(data, config)

        decision = await self.llm.circuit.execute(
            _call_model,
            lambda: fallback_decision(triage_tag=candidate_tag),
        )
        if candidate and decision.source == "llm":
            decision.flags.setdefault("candidate_card_id", candidate.card.id)
        return decision
