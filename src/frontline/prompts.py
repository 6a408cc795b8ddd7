"""Prompt builders for the decision engine and the Tier-3 clarifier.

Everything tenant-specific (company name, trade, service types, triage tag
vocabulary) comes from the CompanyConfig passed in.  Nothing about any one
line of business is written here.
"""

import json

from frontline.actions import DecisionAction
from frontline.models import GENERIC_TRIAGE_TAGS
from frontline.session import CallState
from frontline.tenant import CompanyConfig

ACTION_GUIDE = """- ROUTE_TO_SCENARIO: Caller needs factual knowledge (hours, pricing, services, troubleshooting).
- TRANSFER: Caller explicitly wants a human OR the situation is an emergency.
- BOOK: Caller wants to schedule an appointment.
- ASK_FOLLOWUP: Need more information before deciding.
- MESSAGE_ONLY: Greeting, acknowledgment, or small talk. No routing needed.
- ROUTE_TO_VENDOR: Caller is a vendor, supplier, or other business, not a customer.
- END: Wrong number, spam, or the caller is done."""

DECISION_SCHEMA = """{
  "action": "%(actions)s",
  "triage_tag": "one of the TRIAGE TAGS above, or null",
  "intent_tag": "emergency|booking|troubleshooting|info|billing|greeting|vendor|other",
  "confidence": 0.0,
  "reasoning": "brief explanation",
  "entities": {
    "contact": {"name": "", "phone": "", "email": ""},
    "location": {"address_line1": "", "city": "", "state": "", "zip": ""},
    "problem": {"summary": "", "category": "", "urgency": "normal|urgent|emergency"},
    "scheduling": {"preferred_date": "", "preferred_window": "morning|afternoon|evening|asap"},
    "vendor": {"company_name": "", "contact_name": "", "reason": "", "urgency": "normal|urgent"}
  },
  "flags": {"needs_knowledge_search": false, "ready_to_book": false, "wants_human": false}
}"""

FORBIDDEN_CLARIFIER_PHRASES = (
    "how can i help you",
    "how may i help you",
    "what can i do for you",
    "how can i assist you",
    "is there anything else",
)


def tag_vocabulary(config: CompanyConfig | None) -> list[str]:
    tenant_tags = config.triage_tags if config else []
    return tenant_tags + [t for t in GENERIC_TRIAGE_TAGS if t not in tenant_tags]


def _company_line(config: CompanyConfig | None) -> tuple[str, str]:
    name = (config.name if config else "") or "the company"
    trade = (config.trade if config else "") or "service"
    return name, trade


def build_decision_prompt(
    text: str,
    call_state: CallState,
    config: CompanyConfig | None,
    emotion: dict,
) -> tuple[str, str]:
    """Return (system, user) messages for a structured decision."""
    name, trade = _company_line(config)
    tags = tag_vocabulary(config)
    services = ", ".join(config.service_types) if config and config.service_types else "general service"
    extracted = json.dumps(call_state.extracted.to_dict(), sort_keys=True)
    tag_list = ", ".join(tags)
    primary = emotion.get("primary", "NEUTRAL")
    intensity = emotion.get("intensity", 0)
    intent = call_state.current_intent or "unknown"
    schema = DECISION_SCHEMA % {"actions": "|".join(a.value for a in DecisionAction)}

    system = f"""You are the frontline call decision maker for {name}, a {trade} company.

YOUR ROLE: decide what ACTION to take and extract STRUCTURED DATA. You do NOT write the spoken reply.

ACTIONS:
{ACTION_GUIDE}

SERVICES OFFERED: {services}
TRIAGE TAGS: {tag_list}

CURRENT CALL STATE:
- Turn: {call_state.turn_count + 1}
- Current intent: {intent}
- Emotion: {primary} (intensity: {intensity})
- Extracted so far: {extracted}

RESPOND WITH ONLY VALID JSON:
{schema}"""

    user = f'Caller: "{text}"\n\nDecide the action and extract any entities.'
    return system, user


def build_clarifier_prompt(user_text: str, config: CompanyConfig | None) -> tuple[str, str]:
    name, trade = _company_line(config)
    services = ", ".join(config.service_types) if config and config.service_types else ""
    services_line = f"\nSERVICES: {services}" if services else ""

    system = f"""You are a receptionist for {name}, a {trade} company.{services_line}

The caller said something we could not act on yet. Ask ONE short, specific
clarifying question (max 20 words) that moves toward understanding their
{trade} need. Refer to what they said.

NEVER use generic phrasings such as "How can I help you?", "What can I do
for you?" or "Is there anything else?". Do not mention prices or arrival
times. Reply with the question only."""

    user = f'Caller said: "{user_text}"'
    return system, user
