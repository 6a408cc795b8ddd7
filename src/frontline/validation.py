import re


def match_any_keyword(text: str, keywords) -> bool:
    """Check if any keyword appears in text as a whole word (not substring)."""
    lower = text.lower()
    return any(re.search(rf'\b{re.escape(kw)}\b', lower) for kw in keywords)


def matched_keywords(text: str, keywords) -> list[str]:
    """Return the keywords that appear in text as whole words, in sorted order."""
    lower = text.lower()
    return sorted(kw for kw in keywords if re.search(rf'\b{re.escape(kw.lower())}\b', lower))


SENTINEL_VALUES = {
    "not provided", "n/a", "na", "unknown", "none", "tbd", "null",
    "{{customer_name}}", "{{callername}}", "{{service_address}}",
    "auto", "customer_name", "service_address", "...",
}

# Quick-decision vocabularies.  These are about caller behavior (safety,
# misdials, robocalls, escalation), never about a tenant's line of business.
EMERGENCY_KEYWORDS = {
    "gas leak", "smell gas", "smells like gas", "carbon monoxide", "co alarm",
    "co detector", "fire", "flooding", "sparks", "smoke", "emergency",
    "help now", "immediate",
}

EMERGENCY_RETRACTION_KEYWORDS = {
    "not an emergency", "no emergency", "isn't an emergency", "not urgent",
    "never mind", "false alarm", "no smoke", "no fire",
}

WRONG_NUMBER_KEYWORDS = {
    "wrong number", "pizza", "dialed the wrong", "trying to reach someone else",
    "misdialed",
}

SPAM_KEYWORDS = {
    "press 1", "press one", "car warranty", "extended warranty",
    "social security", "irs", "lawsuit", "you've been selected",
    "final notice", "business loan",
}

HUMAN_REQUEST_KEYWORDS = {
    "manager", "human", "person", "supervisor", "real person",
    "representative", "someone real", "operator",
}

VENDOR_KEYWORDS = {
    "vendor", "supplier", "supply house", "distributor", "sales rep",
    "delivery driver", "parts order", "purchase order", "invoice number",
    "calling on behalf of", "accounts receivable",
}

VENDOR_URGENT_KEYWORDS = {"urgent", "asap", "right away", "today", "immediately", "overdue"}

BOOKING_OPT_OUT_KEYWORDS = {
    "never mind", "nevermind", "cancel", "forget it", "don't want to", "do not want to",
    "not interested", "no thanks", "stop", "not right now", "changed my mind",
}

WORD_TO_DIGIT = {
    "zero": "0", "oh": "0", "o": "0",
    "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
}


def words_to_digits(text: str) -> str:
    """Convert number words and single digits to a digit string.

    Only handles single-digit words (one through nine, zero, oh, o).
    Example: "five one two five five five" -> "512555"
    """
    tokens = re.findall(r"[a-zA-Z]+|\d", text.lower())
    digits = []
    for tok in tokens:
        if tok in WORD_TO_DIGIT:
            digits.append(WORD_TO_DIGIT[tok])
        elif tok.isdigit():
            digits.append(tok)
    return "".join(digits)


def validate_zip(value: str | None) -> str:
    if not value:
        return ""
    cleaned = str(value).strip()
    if re.match(r"^\d{5}$", cleaned):
        return cleaned
    return ""


def validate_name(value: str | None) -> str:
    if not value:
        return ""
    cleaned = str(value).strip()
    if cleaned.lower() in SENTINEL_VALUES:
        return ""
    # Reject phone numbers used as names
    if re.match(r"^[\d+\-() ]{7,}$", cleaned):
        return ""
    # Reject template variables
    if "{{" in cleaned or "}}" in cleaned:
        return ""
    return cleaned


def validate_phone(value: str | None) -> str:
    """Return a bare 10-digit (or +1 11-digit) phone string, or ''."""
    if not value:
        return ""
    digits = re.sub(r"\D", "", str(value))
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return ""
    return digits


def validate_email(value: str | None) -> str:
    if not value:
        return ""
    cleaned = str(value).strip().lower()
    if re.match(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$", cleaned):
        return cleaned
    return ""


def validate_address(value: str | None) -> str:
    if not value:
        return ""
    cleaned = str(value).strip()
    if cleaned.lower() in SENTINEL_VALUES:
        return ""
    if re.search(r"\bor\b", cleaned, re.IGNORECASE):
        return ""
    # Must contain at least one letter (rejects "7801", "78001")
    if not re.search(r"[a-zA-Z]", cleaned):
        return ""
    if len(cleaned) < 5:
        return ""
    return cleaned


def detect_emergency(text: str) -> bool:
    if not match_any_keyword(text, EMERGENCY_KEYWORDS):
        return False
    return not match_any_keyword(text, EMERGENCY_RETRACTION_KEYWORDS)


def detect_wrong_number(text: str) -> bool:
    return match_any_keyword(text, WRONG_NUMBER_KEYWORDS)


def detect_spam(text: str) -> bool:
    return match_any_keyword(text, SPAM_KEYWORDS)


def detect_human_request(text: str) -> bool:
    return match_any_keyword(text, HUMAN_REQUEST_KEYWORDS)


def detect_vendor(text: str) -> bool:
    return match_any_keyword(text, VENDOR_KEYWORDS)


def detect_booking_opt_out(text: str) -> bool:
    return match_any_keyword(text, BOOKING_OPT_OUT_KEYWORDS)
