"""Last-mile rewrites on spoken text.

apply_guardrails runs after the response is assembled: no quoted prices
unless the tenant configured one, and no promised arrival windows.
substitute_variables runs last and fills {name} / {{name}} placeholders
from call state and tenant variables.
"""

import logging
import re

from frontline.session import CallState
from frontline.tenant import CompanyConfig

logger = logging.getLogger(__name__)

PRICE_REPLACEMENT = "a competitive rate"
ARRIVAL_REPLACEMENT = "we'll get someone out to you as soon as possible"

_PRICE = re.compile(r"\$\s?\d[\d,]*(?:\.\d{2})?")
_ARRIVAL_PROMISES = [
    re.compile(r"we'?ll be there (?:in|within) \d+\s*(?:-\s*\d+\s*)?(?:minutes?|mins?|hours?|hrs?)", re.IGNORECASE),
    re.compile(r"someone will be (?:out|there) (?:in|within) \d+\s*(?:-\s*\d+\s*)?(?:minutes?|mins?|hours?|hrs?)?", re.IGNORECASE),
    re.compile(r"(?:a |our )?technician will (?:arrive|be there) (?:in|within) \d+\s*(?:-\s*\d+\s*)?(?:minutes?|mins?|hours?|hrs?)?", re.IGNORECASE),
]

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}|\{(\w+)\}")


def apply_guardrails(text: str, config: CompanyConfig | None) -> str:
    """Soften prices and arrival promises. Running it twice changes nothing."""
    if not text:
        return text
    safe = text
    if not (config and config.has_price_config) and _PRICE.search(safe):
        logger.warning("Price quoted without tenant pricing config; softening")
        safe = _PRICE.sub(PRICE_REPLACEMENT, safe)
    for pattern in _ARRIVAL_PROMISES:
        if pattern.search(safe):
            logger.warning("Arrival-time promise rewritten")
            safe = pattern.sub(ARRIVAL_REPLACEMENT, safe)
    return safe


def build_substitution_context(call_state: CallState | None, config: CompanyConfig | None) -> dict:
    context = {}
    if config:
        context.update({str(k): str(v) for k, v in config.variables.items() if v not in (None, "")})
        if config.name:
            context.setdefault("companyName", config.name)
            context.setdefault("company_name", config.name)
        if config.trade:
            context.setdefault("trade", config.trade)
    if call_state:
        contact = call_state.extracted.contact
        location = call_state.extracted.location
        name = contact.get("name")
        first = contact.get("first_name") or (name.split()[0] if name else "")
        for key, value in (
            ("customerName", name),
            ("customer_name", name),
            ("firstName", first),
            ("first_name", first),
            ("callerName", first),
            ("phone", contact.get("phone")),
            ("address", location.get("address_line1")),
        ):
            if value:
                context[key] = value
    return context


def substitute_variables(text: str, context: dict) -> str:
    """Fill known placeholders; unknown ones are left for the validator to catch."""
    if not text or "{" not in text:
        return text

    def _fill(match: re.Match) -> str:
        key = match.group(1) or match.group(2)
        value = context.get(key)
        return str(value) if value not in (None, "") else match.group(0)

    return _PLACEHOLDER.sub(_fill, text)
