"""Rule-based caller affect detection.

Scores each emotion from keyword signals in the current utterance, with a
small boost when the previous caller turns carried the same emotion (people
who were frustrated a turn ago rarely calm down on their own).
"""

import re
from dataclasses import dataclass, field

from frontline.actions import Emotion
from frontline.validation import detect_emergency, matched_keywords

EMOTION_SIGNALS = {
    Emotion.PANICKED: {
        "oh my god", "please hurry", "scared", "terrified",
        "panicking", "freaking out", "water everywhere",
    },
    Emotion.ANGRY: {
        "ridiculous", "unacceptable", "furious", "angry", "pissed", "worst",
        "terrible service", "sue", "never again", "incompetent",
    },
    Emotion.FRUSTRATED: {
        "frustrated", "frustrating", "again", "still not", "third time",
        "second time", "already told", "already called", "nobody called",
        "no one called", "waiting all day", "fed up", "sick of", "come on",
    },
    Emotion.CONFUSED: {
        "confused", "don't understand", "what do you mean", "not sure",
        "i don't know", "huh",
    },
    Emotion.HAPPY: {
        "thank you so much", "thanks so much", "great", "awesome", "wonderful",
        "perfect", "appreciate", "helpful",
    },
}

# Evaluated in this order when scores tie; the more safety-relevant emotion wins.
PRIORITY = [Emotion.PANICKED, Emotion.ANGRY, Emotion.FRUSTRATED, Emotion.CONFUSED, Emotion.HAPPY]

HISTORY_WINDOW = 3


@dataclass
class EmotionSnapshot:
    primary: Emotion = Emotion.NEUTRAL
    intensity: float = 0.0
    signals: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"primary": self.primary.value, "intensity": self.intensity, "signals": list(self.signals)}


def _history_emotions(history) -> list[str]:
    recent = []
    for entry in list(history or [])[-HISTORY_WINDOW:]:
        emotion = entry.get("emotion") if isinstance(entry, dict) else getattr(entry, "emotion", "")
        if emotion:
            recent.append(str(emotion))
    return recent


def detect_emotion(text: str, history=None) -> EmotionSnapshot:
    if not text or not text.strip():
        return EmotionSnapshot()

    scores: dict[Emotion, float] = {}
    signals: list[str] = []
    for emotion, keywords in EMOTION_SIGNALS.items():
        hits = matched_keywords(text, keywords)
        if hits:
            scores[emotion] = float(len(hits))
            signals.extend(hits)

    exclamations = text.count("!")
    shouting = len(re.findall(r"\b[A-Z]{3,}\b", text))
    if exclamations >= 2 or shouting >= 2:
        for emotion in (Emotion.ANGRY, Emotion.FRUSTRATED, Emotion.PANICKED):
            if emotion in scores:
                scores[emotion] += 0.5
        signals.append("emphasis")

    if detect_emergency(text):
        scores[Emotion.PANICKED] = scores.get(Emotion.PANICKED, 0.0) + 1.0
        signals.append("emergency_language")

    recent = _history_emotions(history)
    for emotion in list(scores):
        if emotion.value in recent:
            scores[emotion] += 0.5

    if not scores:
        return EmotionSnapshot()

    best = max(PRIORITY, key=lambda e: (scores.get(e, 0.0), -PRIORITY.index(e)))
    intensity = min(1.0, 0.3 + 0.2 * scores[best])
    return EmotionSnapshot(primary=best, intensity=round(intensity, 2), signals=signals)


def is_emergency(text: str, snapshot: EmotionSnapshot | None = None) -> bool:
    if snapshot is not None and snapshot.primary == Emotion.PANICKED:
        return True
    return detect_emergency(text or "")
