"""Deterministic entity extraction from a single caller utterance.

The language model extracts entities too, but fast-path and quick decisions
never reach it, and booking slots still have to fill up on those turns.
Everything here is conservative: a value is only returned when it passes
the same validators used for model output.
"""

import re

from frontline.session import Entities
from frontline.validation import (
    validate_address,
    validate_email,
    validate_name,
    validate_phone,
    validate_zip,
    words_to_digits,
)

_NAME_PATTERNS = [
    re.compile(r"\bmy name is ([A-Za-z][A-Za-z'\-]+(?: [A-Za-z][A-Za-z'\-]+)?)", re.IGNORECASE),
    re.compile(r"\b[Tt]his is ([A-Z][a-z'\-]+(?: [A-Z][a-z'\-]+)?)"),
    re.compile(r"\bname's ([A-Za-z][A-Za-z'\-]+(?: [A-Za-z][A-Za-z'\-]+)?)", re.IGNORECASE),
]

_NOT_NAMES = {"calling", "just", "not", "having", "the", "a", "an", "about", "in", "at", "from"}
_NAME_BREAKS = {
    "and", "my", "i", "i'm", "im", "the", "at", "from", "here", "calling",
    "with", "about", "is", "it", "we", "our", "but", "so", "phone", "number",
}

_PHONE_DIGITS = re.compile(r"(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}")
_SPOKEN_DIGIT_RUN = re.compile(
    r"\b(?:(?:zero|oh|one|two|three|four|five|six|seven|eight|nine|\d)[\s,-]*){10,11}",
    re.IGNORECASE,
)
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_ZIP = re.compile(r"\b(\d{5})\b")
_ADDRESS = re.compile(
    r"\b(\d{1,6} (?:[A-Za-z0-9]+ ){0,4}(?:street|st|avenue|ave|road|rd|drive|dr|lane|ln|"
    r"boulevard|blvd|court|ct|way|place|pl|circle|cir|parkway|pkwy|trail|trl))\b",
    re.IGNORECASE,
)

_WINDOWS = {
    "asap": ("asap", "as soon as possible", "right away", "today", "soonest"),
    "morning": ("morning",),
    "afternoon": ("afternoon",),
    "evening": ("evening", "tonight", "after work"),
}
_DAYS = (
    "tomorrow", "monday", "tuesday", "wednesday", "thursday", "friday",
    "saturday", "sunday", "this week", "next week",
)


def categorize_duration(duration: str) -> str:
    """Map problem duration to category: acute (<24h), recent (1-7d), ongoing (>7d)."""
    if not duration:
        return ""
    lower = duration.lower()
    acute_signals = ["today", "this morning", "tonight", "just", "hour", "few hours", "started"]
    recent_signals = ["yesterday", "couple days", "few days", "2 days", "3 days", "since"]
    ongoing_signals = ["week", "weeks", "month", "months", "long time", "a while"]

    if any(s in lower for s in acute_signals):
        return "acute"
    if any(s in lower for s in ongoing_signals):
        return "ongoing"
    if any(s in lower for s in recent_signals):
        return "recent"
    return ""


def extract_name(text: str) -> str:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        parts = match.group(1).strip().split()
        if parts[0].lower() in _NOT_NAMES:
            continue
        if len(parts) > 1 and parts[1].lower() in _NAME_BREAKS:
            parts = parts[:1]
        candidate = " ".join(parts)
        name = validate_name(candidate.title())
        if name:
            return name
    return ""


def extract_phone(text: str) -> str:
    match = _PHONE_DIGITS.search(text)
    if match:
        phone = validate_phone(match.group(0))
        if phone:
            return phone
    spoken = _SPOKEN_DIGIT_RUN.search(text)
    if spoken:
        return validate_phone(words_to_digits(spoken.group(0)))
    return ""


def extract_window(text: str) -> tuple[str, str]:
    """Return (preferred_window, preferred_date) hints found in text."""
    lower = text.lower()
    window = ""
    for name, phrases in _WINDOWS.items():
        if any(re.search(rf"\b{re.escape(p)}\b", lower) for p in phrases):
            window = name
            break
    date = next((d for d in _DAYS if re.search(rf"\b{d}\b", lower)), "")
    return window, date


def extract_entities(text: str) -> Entities:
    entities = Entities()
    if not text or not text.strip():
        return entities

    name = extract_name(text)
    if name:
        entities.contact["name"] = name
        entities.contact["first_name"] = name.split()[0]

    phone = extract_phone(text)
    if phone:
        entities.contact["phone"] = phone

    email_match = _EMAIL.search(text)
    if email_match:
        email = validate_email(email_match.group(0))
        if email:
            entities.contact["email"] = email

    address_match = _ADDRESS.search(text)
    if address_match:
        address = validate_address(address_match.group(1))
        if address:
            entities.location["address_line1"] = address

    zip_match = _ZIP.search(text)
    if zip_match and not phone:
        zip_code = validate_zip(zip_match.group(1))
        if zip_code:
            entities.location["zip"] = zip_code

    window, date = extract_window(text)
    if window:
        entities.scheduling["preferred_window"] = window
    if date:
        entities.scheduling["preferred_date"] = date

    duration = categorize_duration(text)
    if duration:
        entities.problem["duration_category"] = duration

    return entities
