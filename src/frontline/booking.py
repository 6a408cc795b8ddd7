"""Booking slot collection: name -> phone -> address -> preferred time -> confirmed.

Each turn asks for exactly the next missing slot.  The flow confirms only
once all four slots are present, and every ask/confirm is reported to an
optional event sink for audit.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from frontline.actions import BookingStep
from frontline.extraction import extract_window
from frontline.session import Entities
from frontline.validation import validate_address, validate_name, validate_phone, words_to_digits

logger = logging.getLogger(__name__)

SLOT_ORDER = (
    (BookingStep.COLLECTING_NAME, "name"),
    (BookingStep.COLLECTING_PHONE, "phone"),
    (BookingStep.COLLECTING_ADDRESS, "address"),
    (BookingStep.COLLECTING_TIME, "preferred_time"),
)


@dataclass
class BookingEvent:
    kind: str  # "ask" or "confirm"
    step: BookingStep
    slot: str | None = None
    call_id: str = ""


@dataclass
class BookingOutcome:
    step: BookingStep
    text: str
    ready: bool = False


def _present_slots(entities: Entities) -> dict:
    scheduling = entities.scheduling
    return {
        "name": bool(entities.contact.get("name")),
        "phone": bool(entities.contact.get("phone")),
        "address": bool(entities.location.get("address_line1")),
        "preferred_time": bool(scheduling.get("preferred_date") or scheduling.get("preferred_window")),
    }


def fills_step(step: BookingStep, entities: Entities) -> bool:
    """True when entities carry the slot that step is waiting for."""
    slot = dict(SLOT_ORDER).get(step)
    return bool(slot) and _present_slots(entities)[slot]


def next_step(entities: Entities) -> BookingStep:
    present = _present_slots(entities)
    for step, slot in SLOT_ORDER:
        if not present[slot]:
            return step
    return BookingStep.CONFIRMED


class BookingFlow:
    def __init__(self, event_sink: Callable[[BookingEvent], None] | None = None):
        self.event_sink = event_sink

    def advance(self, entities: Entities, call_id: str = "") -> BookingOutcome:
        step = next_step(entities)
        if step is BookingStep.CONFIRMED:
            outcome = BookingOutcome(step=step, text=self._confirmation(entities), ready=True)
            self._emit(BookingEvent(kind="confirm", step=step, call_id=call_id))
            return outcome

        slot = dict(SLOT_ORDER)[step]
        self._emit(BookingEvent(kind="ask", step=step, slot=slot, call_id=call_id))
        return BookingOutcome(step=step, text=self._question(step, entities))

    def _emit(self, event: BookingEvent) -> None:
        logger.info("Booking %s %s for %s", event.kind, event.slot or event.step.value, event.call_id)
        if self.event_sink is None:
            return
        try:
            self.event_sink(event)
        except Exception as e:
            logger.warning("Booking event sink failed: %s", e)

    @staticmethod
    def _question(step: BookingStep, entities: Entities) -> str:
        if step is BookingStep.COLLECTING_NAME:
            return "I'd be happy to schedule that for you. May I have your name please?"
        if step is BookingStep.COLLECTING_PHONE:
            first = entities.contact.get("first_name") or entities.contact.get("name", "").split(" ")[0]
            return f"Thanks, {first}. And what's the best phone number to reach you?"
        if step is BookingStep.COLLECTING_ADDRESS:
            return "Great. What's the service address?"
        return "When would be a good time for us to come out?"

    @staticmethod
    def _confirmation(entities: Entities) -> str:
        date = entities.scheduling.get("preferred_date") or ""
        window = entities.scheduling.get("preferred_window") or ""
        window = "as soon as possible" if window == "asap" else window
        when = " ".join(part for part in (date, window) if part) or "soon"
        return (
            f"Perfect! I have {entities.contact['name']} at {entities.location['address_line1']} "
            f"for {when}. I'll get that scheduled and someone will confirm with you shortly."
        )


_BARE_NAME = re.compile(r"^[A-Za-z][A-Za-z'.-]*(?: [A-Za-z][A-Za-z'.-]*){0,3}$")
_NOT_NAME_WORDS = {
    "i", "my", "is", "the", "a", "an", "it", "not", "no", "yes", "yeah", "what", "why", "how",
    "need", "want", "can", "you", "your", "we", "our", "to", "and", "for", "hello", "hi",
}


def _looks_like_name(text: str) -> bool:
    if not _BARE_NAME.match(text):
        return False
    return not any(word.lower().strip(".'") in _NOT_NAME_WORDS for word in text.split())


def slot_answer(step: BookingStep, text: str) -> Entities:
    """Read a bare reply ("John Smith", "123 Oak Street") as the slot just asked for."""
    answer = Entities()
    cleaned = (text or "").strip().rstrip(".!?").strip()
    if not cleaned:
        return answer
    if step is BookingStep.COLLECTING_NAME:
        cleaned = re.sub(r"^(?:it's|its|this is|i'm|im)\s+", "", cleaned, flags=re.IGNORECASE)
        name = validate_name(cleaned) if _looks_like_name(cleaned) else ""
        if name:
            answer.contact["name"] = name.title() if name.islower() else name
            answer.contact["first_name"] = answer.contact["name"].split()[0]
    elif step is BookingStep.COLLECTING_PHONE:
        phone = validate_phone(words_to_digits(cleaned))
        if phone:
            answer.contact["phone"] = phone
    elif step is BookingStep.COLLECTING_ADDRESS:
        address = validate_address(cleaned) if re.search(r"\d", cleaned) else ""
        if address:
            answer.location["address_line1"] = address
    elif step is BookingStep.COLLECTING_TIME:
        window, date = extract_window(cleaned)
        if window:
            answer.scheduling["preferred_window"] = window
        if date or re.search(r"\d", cleaned):
            answer.scheduling["preferred_date"] = date or cleaned[:60]
    return answer
