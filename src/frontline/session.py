import time
from dataclasses import asdict, dataclass, field, fields

MAX_TURN_HISTORY = 10

ENTITY_GROUPS = ("contact", "location", "problem", "scheduling", "vendor")


@dataclass
class Entities:
    contact: dict = field(default_factory=dict)
    location: dict = field(default_factory=dict)
    problem: dict = field(default_factory=dict)
    scheduling: dict = field(default_factory=dict)
    vendor: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: "dict | Entities | None") -> "Entities":
        if isinstance(data, Entities):
            return data
        data = data or {}
        return cls(**{
            group: {k: v for k, v in (data.get(group) or {}).items() if v not in (None, "")}
            for group in ENTITY_GROUPS
            if isinstance(data.get(group) or {}, dict)
        })

    def to_dict(self) -> dict:
        return asdict(self)

    def is_empty(self) -> bool:
        return not any(getattr(self, group) for group in ENTITY_GROUPS)


def merge_entities(existing: Entities | None, updates: Entities | None) -> Entities:
    """Merge per group; newer non-empty values override older ones."""
    existing = existing or Entities()
    updates = updates or Entities()
    merged = Entities()
    for group in ENTITY_GROUPS:
        values = dict(getattr(existing, group))
        for key, value in getattr(updates, group).items():
            if value not in (None, ""):
                values[key] = value
        setattr(merged, group, values)
    return merged


@dataclass
class TurnRecord:
    turn: int
    speaker: str
    text: str
    timestamp: float = field(default_factory=time.time)
    action: str = ""
    emotion: str = "NEUTRAL"


@dataclass
class CallState:
    call_id: str = ""
    company_id: str = ""
    from_number: str = ""
    customer_id: str = ""

    # Turn tracking
    turn_count: int = 0
    current_intent: str = ""
    last_intent: str = ""
    current_scenario_id: str = ""
    turn_history: list[TurnRecord] = field(default_factory=list)

    # Accumulated per call
    emotion: dict = field(default_factory=lambda: {"primary": "NEUTRAL", "intensity": 0.0, "signals": []})
    extracted: Entities = field(default_factory=Entities)
    behavior: dict = field(default_factory=dict)
    flags: dict = field(default_factory=dict)

    # Booking sub-state
    booking_state: str = ""
    booking_ready: bool = False

    # Outcomes
    transfer_initiated: bool = False
    transfer_reason: str = ""
    call_ended: bool = False
    end_reason: str = ""
    is_vendor_call: bool = False
    vendor_info: dict = field(default_factory=dict)
    awaiting_reference_number: bool = False
    last_scenario: str = ""
    last_error: str = ""

    def add_turn(self, record: TurnRecord) -> None:
        self.turn_history.append(record)
        if len(self.turn_history) > MAX_TURN_HISTORY:
            del self.turn_history[: len(self.turn_history) - MAX_TURN_HISTORY]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "CallState":
        """Rebuild a CallState from a session-store dict, ignoring unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["extracted"] = Entities.from_dict(data.get("extracted"))
        kwargs["turn_history"] = [
            entry if isinstance(entry, TurnRecord) else TurnRecord(**{
                k: v for k, v in entry.items() if k in {f.name for f in fields(TurnRecord)}
            })
            for entry in data.get("turn_history") or []
        ][-MAX_TURN_HISTORY:]
        return cls(**kwargs)
