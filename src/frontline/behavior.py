"""Caller mood and speaking-style tracking across turns.

Rule based: the emotion snapshot for this turn plus the mood carried from
the previous turn pick a tone and, sometimes, a short acknowledgement the
response constructor may lead with.
"""

import logging
from dataclasses import asdict, dataclass

from frontline.actions import Emotion
from frontline.emotion import EmotionSnapshot

logger = logging.getLogger(__name__)

TONES = {
    Emotion.NEUTRAL: "friendly",
    Emotion.HAPPY: "upbeat",
    Emotion.FRUSTRATED: "empathetic",
    Emotion.ANGRY: "calm",
    Emotion.PANICKED: "reassuring",
    Emotion.CONFUSED: "patient",
}

FILLERS = {
    Emotion.HAPPY: "Great!",
    Emotion.FRUSTRATED: "I'm sorry to hear that.",
    Emotion.ANGRY: "I understand, and I'm sorry about that.",
    Emotion.PANICKED: "Okay, I've got you.",
    Emotion.CONFUSED: "No problem.",
}

_MOOD_RANK = {
    Emotion.HAPPY.value: 0,
    Emotion.NEUTRAL.value: 1,
    Emotion.CONFUSED.value: 2,
    Emotion.FRUSTRATED.value: 3,
    Emotion.ANGRY.value: 4,
    Emotion.PANICKED.value: 4,
}


@dataclass
class BehaviorState:
    mood: str = Emotion.NEUTRAL.value
    previous_mood: str | None = None
    trend: str = "steady"
    tone: str = "friendly"
    pace: str = "normal"
    suggested_filler: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "BehaviorState | None":
        if not data:
            return None
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})


def default_behavior() -> BehaviorState:
    return BehaviorState()


def _trend(previous: str | None, current: str) -> str:
    if previous is None:
        return "steady"
    delta = _MOOD_RANK.get(current, 1) - _MOOD_RANK.get(previous, 1)
    if delta > 0:
        return "worsening"
    if delta < 0:
        return "improving"
    return "steady"


async def analyze_behavior(
    text: str,
    emotion: EmotionSnapshot,
    previous: BehaviorState | None = None,
) -> BehaviorState:
    mood = emotion.primary
    trend = _trend(previous.mood if previous else None, mood.value)
    filler = FILLERS.get(mood)
    if mood is Emotion.NEUTRAL and trend == "improving":
        filler = "Thanks for bearing with me."
    pace = "slow" if mood in (Emotion.PANICKED, Emotion.CONFUSED) or emotion.intensity >= 0.8 else "normal"
    state = BehaviorState(
        mood=mood.value,
        previous_mood=previous.mood if previous else None,
        trend=trend,
        tone=TONES[mood],
        pace=pace,
        suggested_filler=filler,
    )
    logger.debug("Behavior: mood=%s trend=%s tone=%s", state.mood, state.trend, state.tone)
    return state
