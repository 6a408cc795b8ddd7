"""Tenant (company) runtime configuration as seen by the turn runtime.

The runtime only ever reads these records.  They are built from whatever the
configuration provider returns, so parsing is lenient: unknown keys are
ignored and both camelCase and snake_case spellings are accepted for the
fields the admin tooling historically wrote in camelCase.
"""

from dataclasses import dataclass, field

CARD_ROUTINGS = {"BOOK", "TRANSFER", "ROUTE_TO_SCENARIO", "MESSAGE_ONLY"}

PRICE_VARIABLES = ("serviceCallPrice", "diagnosticFee", "service_call_price", "diagnostic_fee")


def _pick(data: dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _str_list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    return [str(v).strip() for v in value if str(v).strip()]


@dataclass
class TriageCard:
    id: str
    name: str
    enabled: bool = True
    triggers: list[str] = field(default_factory=list)
    synonyms: list[str] = field(default_factory=list)
    negative_triggers: list[str] = field(default_factory=list)
    routing: str = "MESSAGE_ONLY"
    opening_line: str = ""
    follow_up_questions: list[str] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    next_action: str = ""
    category: str = ""
    triage_tag: str = ""

    def __post_init__(self):
        self.routing = (self.routing or "MESSAGE_ONLY").upper()
        if self.routing not in CARD_ROUTINGS:
            self.routing = "MESSAGE_ONLY"
        if not self.triage_tag:
            self.triage_tag = tag_from_name(self.name)

    @classmethod
    def from_dict(cls, data: dict) -> "TriageCard":
        name = str(_pick(data, "name", "label", "displayName", default="") or "")
        return cls(
            id=str(_pick(data, "id", "_id", "scenarioId", default=name) or name),
            name=name,
            enabled=bool(_pick(data, "enabled", "isEnabled", "isActive", default=True)),
            triggers=_str_list(_pick(data, "triggers", "keywords", default=[])),
            synonyms=_str_list(_pick(data, "synonyms", default=[])),
            negative_triggers=_str_list(_pick(data, "negative_triggers", "negativeTriggers", default=[])),
            routing=str(_pick(data, "routing", "action", default="MESSAGE_ONLY")),
            opening_line=str(_pick(data, "opening_line", "openingLine", "response", default="") or ""),
            follow_up_questions=_str_list(_pick(data, "follow_up_questions", "followUpQuestions", "questions", default=[])),
            steps=_str_list(_pick(data, "steps", default=[])),
            next_action=str(_pick(data, "next_action", "nextAction", default="") or ""),
            category=str(_pick(data, "category", default="") or ""),
            triage_tag=str(_pick(data, "triage_tag", "triageTag", "tag", default="") or ""),
        )


def tag_from_name(name: str) -> str:
    """'No Cool / Warm Air' -> 'NO_COOL_WARM_AIR'."""
    cleaned = "".join(ch if ch.isalnum() else " " for ch in (name or "").upper())
    return "_".join(cleaned.split())


@dataclass
class CompanyConfig:
    id: str
    name: str = ""
    trade: str = ""
    service_types: list[str] = field(default_factory=list)
    cards: list[TriageCard] = field(default_factory=list)
    variables: dict = field(default_factory=dict)
    settings: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "CompanyConfig":
        raw_cards = _pick(data, "scenarios", "cards", "triageCards", default=[]) or []
        return cls(
            id=str(_pick(data, "id", "_id", "companyId", default="") or ""),
            name=str(_pick(data, "name", "companyName", default="") or ""),
            trade=str(_pick(data, "trade", default="") or ""),
            service_types=_str_list(_pick(data, "service_types", "serviceTypes", default=[])),
            cards=[TriageCard.from_dict(c) for c in raw_cards if isinstance(c, dict)],
            variables=dict(_pick(data, "variables", "placeholders", default={}) or {}),
            settings=dict(_pick(data, "settings", default={}) or {}),
        )

    @property
    def enabled_cards(self) -> list[TriageCard]:
        return [card for card in self.cards if card.enabled]

    @property
    def triage_tags(self) -> list[str]:
        return sorted({card.triage_tag for card in self.enabled_cards if card.triage_tag})

    def card_by_id(self, card_id: str) -> TriageCard | None:
        for card in self.enabled_cards:
            if card.id == card_id:
                return card
        return None

    def card_by_tag(self, tag: str) -> TriageCard | None:
        if not tag:
            return None
        for card in self.enabled_cards:
            if card.triage_tag == tag.upper():
                return card
        return None

    @property
    def has_price_config(self) -> bool:
        return any(self.variables.get(key) for key in PRICE_VARIABLES)

    def setting(self, key: str, default=None):
        return self.settings.get(key, default)
