from enum import Enum

TERMINAL_TURN_ACTIONS = {"transfer", "hangup"}


class DecisionAction(Enum):
    ROUTE_TO_SCENARIO = "ROUTE_TO_SCENARIO"
    TRANSFER = "TRANSFER"
    BOOK = "BOOK"
    ASK_FOLLOWUP = "ASK_FOLLOWUP"
    MESSAGE_ONLY = "MESSAGE_ONLY"
    ROUTE_TO_VENDOR = "ROUTE_TO_VENDOR"
    END = "END"

    @classmethod
    def parse(cls, value) -> "DecisionAction":
        """Coerce any value into the enumeration. Unknown values become ASK_FOLLOWUP."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.ASK_FOLLOWUP


class Route(Enum):
    SCENARIO_ENGINE = "SCENARIO_ENGINE"
    TRANSFER = "TRANSFER"
    BOOKING_FLOW = "BOOKING_FLOW"
    END_CALL = "END_CALL"
    VENDOR_HANDLING = "VENDOR_HANDLING"
    MESSAGE_ONLY = "MESSAGE_ONLY"


class TurnAction(Enum):
    CONTINUE = "continue"
    TRANSFER = "transfer"
    TAKE_MESSAGE = "take_message"
    HANGUP = "hangup"

    @classmethod
    def parse(cls, value) -> "TurnAction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.CONTINUE

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_TURN_ACTIONS


class Emotion(Enum):
    NEUTRAL = "NEUTRAL"
    HAPPY = "HAPPY"
    FRUSTRATED = "FRUSTRATED"
    ANGRY = "ANGRY"
    PANICKED = "PANICKED"
    CONFUSED = "CONFUSED"

    @property
    def is_upset(self) -> bool:
        return self in (Emotion.FRUSTRATED, Emotion.ANGRY)


class BookingStep(Enum):
    COLLECTING_NAME = "collecting_name"
    COLLECTING_PHONE = "collecting_phone"
    COLLECTING_ADDRESS = "collecting_address"
    COLLECTING_TIME = "collecting_time"
    CONFIRMED = "confirmed"

    @property
    def is_collecting(self) -> bool:
        return self is not BookingStep.CONFIRMED
