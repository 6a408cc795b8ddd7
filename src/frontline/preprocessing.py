"""Pure text transforms applied to raw STT output before any decisioning."""

import re
from dataclasses import dataclass

FILLER_WORDS = {"um", "uh", "uhh", "umm", "er", "erm", "hmm", "mm", "ah", "eh"}

# Multi-word fillers are only stripped at the start of an utterance or when
# set off by commas, since "like" and "you know" also carry meaning.
FILLER_PHRASES = ("you know", "i mean", "kind of like", "sort of like", "like")

_SPOKEN_FIXUPS = [
    (re.compile(r"\bgonna\b", re.IGNORECASE), "going to"),
    (re.compile(r"\bwanna\b", re.IGNORECASE), "want to"),
    (re.compile(r"\bgotta\b", re.IGNORECASE), "got to"),
    (re.compile(r"\bain't\b", re.IGNORECASE), "is not"),
]

_REPEATED_WORD = re.compile(r"\b(\w+)(\s+\1\b)+", re.IGNORECASE)
# Repeats are real content in spoken numbers ("five five five").
_NUMBER_WORDS = {"zero", "oh", "o", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine"}
_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:])")
_DUPLICATE_PUNCT = re.compile(r"([,.!?;:])[,.;:]+")


@dataclass
class Preprocessed:
    raw: str
    normalized: str
    tokens_stripped: int


def strip_fillers(text: str) -> str:
    """Remove hesitation fillers ("um", "uh") and comma-delimited filler phrases."""
    if not text:
        return ""
    words = []
    for token in text.split():
        bare = re.sub(r"[^\w']", "", token).lower()
        if bare in FILLER_WORDS:
            # keep trailing punctuation that ended a clause
            if token[-1:] in ".?!" and words:
                words[-1] = words[-1].rstrip(",") + token[-1]
            continue
        words.append(token)
    cleaned = " ".join(words)
    for phrase in FILLER_PHRASES:
        cleaned = re.sub(rf"^\s*{phrase}\s*,\s*", "", cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(rf",\s*{phrase}\s*,", ",", cleaned, flags=re.IGNORECASE)
    return cleaned.strip(" ,")


def _collapse_stutter(match: re.Match) -> str:
    word = match.group(1)
    if word.isdigit() or word.lower() in _NUMBER_WORDS:
        return match.group(0)
    return word


def _acronym_pattern(acronym: str) -> re.Pattern | None:
    letters = [c for c in acronym if c.isalnum()]
    if len(letters) < 2:
        return None
    return re.compile(r"\b" + r"\s*".join(re.escape(c) for c in letters) + r"\b", re.IGNORECASE)


def join_spoken_acronyms(text: str, spoken_acronyms=None) -> str:
    """Join letters the transcriber spelled out ("h v a c") back into the tenant's own terms."""
    if not text:
        return ""
    for acronym in spoken_acronyms or ():
        pattern = _acronym_pattern(str(acronym))
        if pattern is not None:
            text = pattern.sub("".join(c for c in str(acronym) if c.isalnum()).upper(), text)
    return text


def normalize_transcript(text: str, spoken_acronyms=None) -> str:
    """Collapse STT artifacts: stutters, spacing, casual contractions.

    spoken_acronyms are the tenant's own terms ("AC", "HVAC"); see
    join_spoken_acronyms.
    """
    if not text:
        return ""
    normalized = text
    for pattern, replacement in _SPOKEN_FIXUPS:
        normalized = pattern.sub(replacement, normalized)
    normalized = join_spoken_acronyms(normalized, spoken_acronyms)
    normalized = _REPEATED_WORD.sub(_collapse_stutter, normalized)
    normalized = _SPACE_BEFORE_PUNCT.sub(r"\1", normalized)
    normalized = _DUPLICATE_PUNCT.sub(r"\1", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip()


def preprocess(text: str | None, spoken_acronyms=None) -> Preprocessed:
    raw = text or ""
    if not raw.strip():
        return Preprocessed(raw=raw, normalized="", tokens_stripped=0)
    without_fillers = strip_fillers(raw)
    stripped = len(raw.split()) - len(without_fillers.split())
    normalized = normalize_transcript(without_fillers, spoken_acronyms)
    # Never let preprocessing erase a real utterance (e.g. "uh... hello?" is still a turn).
    if not normalized:
        normalized = normalize_transcript(raw, spoken_acronyms)
    return Preprocessed(raw=raw, normalized=normalized, tokens_stripped=max(stripped, 0))
