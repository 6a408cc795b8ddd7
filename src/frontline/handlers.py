"""Route handlers.

Each handler takes a HandlerContext and returns the content for this turn
as a HandlerResult.  Handlers never build the final spoken text (the
response constructor does) and never write call state directly: they
return `call_state_updates` for the orchestrator to apply.

Adding a route is one entry in ROUTE_HANDLERS.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from frontline.actions import BookingStep, DecisionAction, Route, TurnAction
from frontline.booking import BookingFlow, slot_answer
from frontline.models import Decision, HandlerResult, TriageResult
from frontline.session import CallState, merge_entities
from frontline.tenant import CompanyConfig
from frontline.trace import Trace

logger = logging.getLogger(__name__)

SCENARIO_FALLBACK = "I understand. Let me help you with that. Could you tell me a bit more about the issue?"

TRANSFER_EMERGENCY = (
    "I understand this is urgent. I'm connecting you with our emergency team right now. "
    "Please stay on the line."
)
TRANSFER_FRUSTRATED = (
    "I understand your frustration and I want to make sure you get the help you need. "
    "Let me connect you with someone who can assist you."
)
TRANSFER_DEFAULT = "Let me connect you with someone who can help you right away. Please hold for just a moment."

END_SPAM = "Goodbye."
END_WRONG_NUMBER = "It seems you may have reached us by mistake. Have a great day!"
END_NORMAL = "Thank you for calling! Have a great day. Goodbye!"

VENDOR_URGENT = "I understand this is urgent. Let me connect you with someone who can help right away. One moment please."


@dataclass
class HandlerContext:
    company_id: str
    call_id: str
    text: str
    call_state: CallState
    decision: Decision
    triage: TriageResult
    config: CompanyConfig | None = None
    trace: Trace | None = None
    scenario_engine: object = None
    vendor_log: object = None
    booking_flow: BookingFlow = field(default_factory=BookingFlow)

    def record(self, section: str, **values) -> None:
        if self.trace is not None:
            self.trace.record(section, **values)

    def setting(self, key: str, default=None):
        return self.config.setting(key, default) if self.config else default


async def handle_scenario(ctx: HandlerContext) -> HandlerResult:
    """Ask the scenario engine; any failure degrades to a generic follow-up."""
    if ctx.scenario_engine is None:
        ctx.record("brain2", called=False)
        return HandlerResult(text=SCENARIO_FALLBACK)

    start = time.monotonic()
    try:
        result = await ctx.scenario_engine.query(
            ctx.company_id,
            ctx.text,
            call_state=ctx.call_state,
            intent=ctx.decision.intent_tag,
            triage_tag=ctx.decision.triage_tag,
            scenario_hint=ctx.triage.scenario_hint,
        )
    except Exception as e:
        logger.error("Scenario engine failed for %s: %s", ctx.call_id, e)
        ctx.record("brain2", called=True, tier=0, error=str(e))
        return HandlerResult(text=SCENARIO_FALLBACK)

    result = result or {}
    metadata = result.get("metadata") or {}
    response = (result.get("response") or "").strip()
    ctx.record(
        "brain2",
        called=True,
        tier=metadata.get("tier", 0),
        scenario_id=metadata.get("scenario_id") or metadata.get("scenarioId"),
        scenario_name=metadata.get("scenario_name") or metadata.get("scenarioName"),
        confidence=result.get("confidence", 0),
        response_text=response[:500] or None,
        cost=metadata.get("cost", 0),
        error=metadata.get("error"),
    )
    if ctx.trace is not None:
        ctx.trace.timing("brain2", (time.monotonic() - start) * 1000)

    scenario_name = metadata.get("scenario_name") or metadata.get("scenarioName")
    return HandlerResult(
        text=response or SCENARIO_FALLBACK,
        scenario_id=metadata.get("scenario_id") or metadata.get("scenarioId"),
        scenario_name=scenario_name,
        call_state_updates={"last_scenario": scenario_name or ""},
    )


async def handle_transfer(ctx: HandlerContext) -> HandlerResult:
    flags = ctx.decision.flags
    if flags.get("is_emergency"):
        text = TRANSFER_EMERGENCY
    elif flags.get("is_frustrated"):
        text = TRANSFER_FRUSTRATED
    else:
        text = TRANSFER_DEFAULT
    return HandlerResult(
        text=text,
        action=TurnAction.TRANSFER,
        should_transfer=True,
        transfer_target=ctx.setting("transfer_number"),
        call_state_updates={"transfer_initiated": True, "transfer_reason": ctx.triage.reason},
    )


async def handle_booking(ctx: HandlerContext) -> HandlerResult:
    entities = ctx.call_state.extracted
    known_steps = {step.value: step for step in BookingStep}
    step = known_steps.get(ctx.call_state.booking_state)
    if step is not None and step.is_collecting:
        entities = merge_entities(entities, slot_answer(step, ctx.text))

    outcome = ctx.booking_flow.advance(entities, call_id=ctx.call_id)
    return HandlerResult(
        text=outcome.text,
        booking_ready=outcome.ready,
        call_state_updates={
            "extracted": entities,
            "booking_state": outcome.step.value,
            "booking_ready": outcome.ready,
        },
    )


async def handle_end_call(ctx: HandlerContext) -> HandlerResult:
    flags = ctx.decision.flags
    if flags.get("is_spam"):
        text, reason = END_SPAM, "spam"
    elif flags.get("is_wrong_number"):
        text, reason = END_WRONG_NUMBER, "wrong_number"
    else:
        text, reason = END_NORMAL, "normal"
    return HandlerResult(
        text=text,
        action=TurnAction.HANGUP,
        should_hangup=True,
        call_state_updates={"call_ended": True, "end_reason": reason},
    )


async def handle_vendor(ctx: HandlerContext) -> HandlerResult:
    vendor = dict(ctx.decision.entities.vendor)
    logger.info(
        "Vendor call for %s: company=%s urgency=%s",
        ctx.company_id, vendor.get("company_name"), vendor.get("urgency"),
    )

    logged = False
    if ctx.vendor_log is not None:
        try:
            await ctx.vendor_log.log_vendor_call({
                "company_id": ctx.company_id,
                "call_id": ctx.call_id,
                "vendor_name": vendor.get("company_name") or "Unknown Vendor",
                "contact_name": vendor.get("contact_name"),
                "phone": ctx.call_state.from_number,
                "reason": vendor.get("reason") or "general inquiry",
                "reference_number": vendor.get("reference_number"),
                "urgency": vendor.get("urgency") or "normal",
                "status": "pending",
                "handled_by": "ai_agent",
            })
            logged = True
        except Exception as e:
            logger.warning("Failed to log vendor call for %s: %s", ctx.call_id, e)
    ctx.record("vendor", detected=True, company_name=vendor.get("company_name"),
               urgency=vendor.get("urgency"), logged=logged)

    updates = {"is_vendor_call": True, "vendor_info": vendor}
    if vendor.get("urgency") == "urgent":
        return HandlerResult(
            text=VENDOR_URGENT,
            action=TurnAction.TRANSFER,
            should_transfer=True,
            transfer_target=ctx.setting("vendor_phone") or ctx.setting("transfer_number"),
            call_state_updates=updates,
        )

    vendor_name = vendor.get("company_name") or "your company"
    contact = f", {vendor['contact_name']}" if vendor.get("contact_name") else ""
    reason = vendor.get("reason") or "your inquiry"
    if len(reason) > 80:
        reason = "your inquiry"
    updates["awaiting_reference_number"] = not vendor.get("reference_number")
    return HandlerResult(
        text=(
            f"Thank you for calling from {vendor_name}{contact}. "
            f"I've made a note about your call regarding {reason}. "
            "Someone from our team will get back to you. Is there a reference number I should include?"
        ),
        call_state_updates=updates,
    )


async def handle_message_only(ctx: HandlerContext) -> HandlerResult:
    triage = ctx.triage
    if triage.matched_card_id and triage.opening_line:
        # the card's opening line is the reply; the constructor places it
        return HandlerResult(
            text="",
            scenario_id=triage.matched_card_id,
            scenario_name=triage.matched_card_name,
        )

    extracted = ctx.call_state.extracted
    if ctx.decision.action is DecisionAction.ASK_FOLLOWUP:
        has_name = bool(extracted.contact.get("name"))
        has_problem = bool(extracted.problem.get("summary"))
        if not has_name and not has_problem:
            text = "I'm here to help. Can you please tell me your name and what you need assistance with?"
        elif not has_problem:
            text = "I'd be happy to help. Can you tell me more about what's going on?"
        else:
            text = "I understand. Is there anything else you'd like to tell me about the issue?"
    else:
        text = "I understand. What can I help you with today?"
    return HandlerResult(text=text)


ROUTE_HANDLERS: dict[Route, Callable[[HandlerContext], Awaitable[HandlerResult]]] = {
    Route.SCENARIO_ENGINE: handle_scenario,
    Route.TRANSFER: handle_transfer,
    Route.BOOKING_FLOW: handle_booking,
    Route.END_CALL: handle_end_call,
    Route.VENDOR_HANDLING: handle_vendor,
    Route.MESSAGE_ONLY: handle_message_only,
}


async def dispatch(ctx: HandlerContext) -> HandlerResult:
    handler = ROUTE_HANDLERS.get(ctx.triage.route, handle_message_only)
    return await handler(ctx)
