from dataclasses import dataclass, field

from frontline.actions import DecisionAction, Route, TurnAction
from frontline.session import CallState, Entities

GENERIC_TRIAGE_TAGS = (
    "EMERGENCY",
    "ESCALATION_REQUEST",
    "WRONG_NUMBER",
    "SPAM",
    "VENDOR",
    "BOOKING",
    "GENERAL_INQUIRY",
)


@dataclass
class Decision:
    action: DecisionAction = DecisionAction.ASK_FOLLOWUP
    triage_tag: str | None = None
    intent_tag: str = "unknown"
    confidence: float = 0.0
    reasoning: str = ""
    entities: Entities = field(default_factory=Entities)
    flags: dict = field(default_factory=dict)
    source: str = "llm"

    def __post_init__(self):
        self.action = DecisionAction.parse(self.action)
        try:
            self.confidence = max(0.0, min(1.0, float(self.confidence or 0.0)))
        except (TypeError, ValueError):
            self.confidence = 0.0
        if not isinstance(self.entities, Entities):
            self.entities = Entities.from_dict(self.entities)
        if self.triage_tag:
            self.triage_tag = str(self.triage_tag).strip().upper() or None

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "triage_tag": self.triage_tag,
            "intent_tag": self.intent_tag,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "entities": self.entities.to_dict(),
            "flags": dict(self.flags),
            "source": self.source,
        }


@dataclass
class TriageResult:
    route: Route
    matched_card_id: str | None = None
    matched_card_name: str | None = None
    opening_line: str | None = None
    scenario_hint: str | None = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "route": self.route.value,
            "matched_card_id": self.matched_card_id,
            "matched_card_name": self.matched_card_name,
            "opening_line": self.opening_line,
            "scenario_hint": self.scenario_hint,
            "reason": self.reason,
        }


@dataclass
class HandlerResult:
    text: str = ""
    action: TurnAction = TurnAction.CONTINUE
    should_transfer: bool = False
    should_hangup: bool = False
    scenario_id: str | None = None
    scenario_name: str | None = None
    call_state_updates: dict = field(default_factory=dict)
    booking_ready: bool = False
    transfer_target: str | None = None


@dataclass
class CardHealth:
    score: int
    reasons: list[str] = field(default_factory=list)

    HEALTHY_THRESHOLD = 2

    @property
    def healthy(self) -> bool:
        return self.score >= self.HEALTHY_THRESHOLD


@dataclass
class TurnResult:
    text: str
    action: TurnAction
    call_state: CallState
    should_transfer: bool = False
    should_hangup: bool = False
    ssml: str | None = None
    route: str | None = None
    bailout_triggered: bool = False
    bailout_reason: str | None = None
    trace_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "ssml": self.ssml,
            "action": self.action.value,
            "should_transfer": self.should_transfer,
            "should_hangup": self.should_hangup,
            "route": self.route,
            "bailout_triggered": self.bailout_triggered,
            "bailout_reason": self.bailout_reason,
            "trace_id": self.trace_id,
            "call_state": self.call_state.to_dict(),
        }
