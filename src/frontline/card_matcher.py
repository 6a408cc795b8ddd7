import logging
from dataclasses import dataclass, field

from frontline.tenant import TriageCard
from frontline.validation import matched_keywords

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 1.0
SINGLE_WORD_SYNONYM_WEIGHT = 0.5
MULTI_WORD_SYNONYM_WEIGHT = 0.8

BASE_CONFIDENCE = 0.75
CONFIDENCE_PER_POINT = 0.1
MAX_CONFIDENCE = 0.99

MIN_KEYWORD_HITS = 1
MIN_SYNONYM_HITS = 2


@dataclass
class CardMatch:
    card: TriageCard
    score: float
    confidence: float
    keyword_hits: list[str] = field(default_factory=list)
    synonym_hits: list[str] = field(default_factory=list)

    @property
    def eligible(self) -> bool:
        return len(self.keyword_hits) >= MIN_KEYWORD_HITS or len(self.synonym_hits) >= MIN_SYNONYM_HITS


def synonym_weight(synonym: str) -> float:
    return MULTI_WORD_SYNONYM_WEIGHT if len(synonym.split()) > 1 else SINGLE_WORD_SYNONYM_WEIGHT


def score_card_match(text: str, card: TriageCard) -> CardMatch:
    keyword_hits = matched_keywords(text, card.triggers)
    synonym_hits = [s for s in matched_keywords(text, card.synonyms) if s not in keyword_hits]
    score = KEYWORD_WEIGHT * len(keyword_hits) + sum(synonym_weight(s) for s in synonym_hits)
    confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + CONFIDENCE_PER_POINT * score) if score else 0.0
    return CardMatch(
        card=card,
        score=score,
        confidence=round(confidence, 4),
        keyword_hits=keyword_hits,
        synonym_hits=synonym_hits,
    )


def match_cards(text: str, cards: list[TriageCard]) -> list[CardMatch]:
    """Score every enabled card against text; return eligible matches, best first."""
    matches = []
    for card in cards:
        if not card.enabled:
            continue
        if card.negative_triggers and matched_keywords(text, card.negative_triggers):
            logger.debug("card %s excluded by negative trigger", card.id)
            continue
        match = score_card_match(text, card)
        if match.eligible:
            matches.append(match)
    matches.sort(key=lambda m: (m.score, len(m.keyword_hits)), reverse=True)
    return matches


def best_match(text: str, cards: list[TriageCard]) -> CardMatch | None:
    matches = match_cards(text, cards)
    return matches[0] if matches else None
