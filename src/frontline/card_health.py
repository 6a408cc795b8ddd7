"""Structural completeness score for a triage card.

Only used as the safety gate in front of the fast-path bypass: a card that
matched confidently but has nothing behind its opening line (no questions,
no steps, no next action) must not short-circuit deeper decisioning.  It is
never used to stop a card from being used normally.
"""

from frontline.models import CardHealth
from frontline.tenant import TriageCard

MIN_OPENING_CHARS = 20
RICH_OPENING_CHARS = 100
HEALTHY_SCORE = CardHealth.HEALTHY_THRESHOLD

ACTIONABLE_NEXT_ACTIONS = {"BOOK", "BOOKING", "TRANSFER", "ESCALATE", "ESCALATION"}
ACTIONABLE_ROUTINGS = {"BOOK", "TRANSFER"}

# One-word triggers this broad match half the calls a business receives.
GENERIC_TRIGGERS = {
    "help", "problem", "issue", "service", "question", "call", "need",
    "broken", "working", "info", "information", "hello", "hi", "yes", "no",
}


def _is_specific(trigger: str) -> bool:
    trigger = trigger.strip().lower()
    if " " in trigger:
        return True
    return trigger not in GENERIC_TRIGGERS and len(trigger) > 3


def score_card(card: TriageCard) -> CardHealth:
    score = 0
    reasons: list[str] = []

    opening = (card.opening_line or "").strip()
    if len(opening) >= MIN_OPENING_CHARS:
        score += 1
        reasons.append(f"opening line has substance ({len(opening)} chars)")
    else:
        reasons.append("opening line missing or too short")
    if len(opening) >= RICH_OPENING_CHARS:
        score += 1
        reasons.append("opening line is detailed")

    if card.follow_up_questions or card.steps:
        score += 2
        reasons.append(
            f"has {len(card.follow_up_questions)} follow-up question(s) and {len(card.steps)} step(s)"
        )
    else:
        reasons.append("no follow-up questions or steps")

    next_action = (card.next_action or "").strip().upper()
    if next_action in ACTIONABLE_NEXT_ACTIONS or card.routing in ACTIONABLE_ROUTINGS:
        score += 1
        reasons.append(f"defined next action ({next_action or card.routing})")
    else:
        reasons.append("no defined next action")

    specific = [t for t in card.triggers if _is_specific(t)]
    if len(specific) >= 2:
        score += 1
        reasons.append(f"{len(specific)} specific triggers")
    if len(card.triggers) == 1 and not _is_specific(card.triggers[0]):
        score -= 1
        reasons.append(f"single generic trigger '{card.triggers[0]}'")

    return CardHealth(score=max(score, 0), reasons=reasons)


def is_healthy(card: TriageCard) -> bool:
    return score_card(card).score >= HEALTHY_SCORE
