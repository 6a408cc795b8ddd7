import pytest
from unittest.mock import AsyncMock, MagicMock

from frontline.circuit_breaker import CircuitBreaker
from frontline.session import CallState
from frontline.tenant import CompanyConfig

NO_COOL_CARD = {
    "id": "card_no_cool",
    "name": "No Cool",
    "category": "cooling",
    "triggers": ["not cooling", "stopped working", "ac"],
    "synonyms": ["warm air", "blowing hot"],
    "routing": "BOOK",
    "opening_line": "I'm sorry your AC isn't keeping up. Let's get a technician out to take a look.",
    "follow_up_questions": ["Is the outdoor unit still running?"],
}

HOURS_CARD = {
    "id": "card_hours",
    "name": "Business Hours",
    "category": "info",
    "triggers": ["open on saturday", "business hours", "what time do you open"],
    "routing": "ROUTE_TO_SCENARIO",
    "opening_line": "Happy to help with our hours.",
}

TENANT = {
    "id": "acme",
    "name": "Acme Heating & Air",
    "trade": "HVAC",
    "serviceTypes": ["repair", "maintenance", "installation"],
    "scenarios": [NO_COOL_CARD, HOURS_CARD],
    "variables": {"companyPhone": "512-555-0100"},
    "settings": {"transfer_number": "+15125550100"},
}


@pytest.fixture
def tenant_dict():
    return dict(TENANT)


@pytest.fixture
def company_config():
    return CompanyConfig.from_dict(TENANT)


@pytest.fixture
def call_state():
    return CallState(call_id="call_123", company_id="acme", from_number="+15125551234")


@pytest.fixture
def fake_llm():
    """LLM stand-in with a real circuit breaker; set complete_json/complete per test."""
    llm = MagicMock()
    llm.circuit = CircuitBreaker(failure_threshold=3, cooldown_seconds=30.0, label="LLM")
    llm.complete_json = AsyncMock(return_value={
        "action": "ROUTE_TO_SCENARIO",
        "triage_tag": None,
        "intent_tag": "info",
        "confidence": 0.8,
        "reasoning": "caller asked a question",
        "entities": {},
        "flags": {},
    })
    llm.complete = AsyncMock(return_value="Which room in the house is warmest right now?")
    llm.close = AsyncMock()
    return llm
