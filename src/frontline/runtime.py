"""Brain1Runtime: the single entrypoint for every caller turn.

    preprocess -> emotion -> tenant config (spoken acronyms) -> decision
      -> [behavior || triage] -> route handler -> construct response
      -> guardrails -> variable substitution -> loop record
      -> validate -> (tier-3 clarifier | soft bailout | hard bailout)
      -> final gate -> trace (fire-and-forget)

process_turn never returns empty text.  Collaborator failures degrade to
fallback values inside their stage; anything unexpected is caught at the
boundary and turned into a hard bailout that transfers the caller.
"""

import asyncio
import copy
import logging
import time

from frontline.actions import Route, TurnAction
from frontline.behavior import BehaviorState, analyze_behavior, default_behavior
from frontline.booking import BookingFlow
from frontline.clarifier import Tier3Clarifier
from frontline.decision_engine import DecisionEngine
from frontline.emotion import detect_emotion
from frontline.guardrails import apply_guardrails, build_substitution_context, substitute_variables
from frontline.handlers import SCENARIO_FALLBACK, HandlerContext, dispatch
from frontline.llm import LLMClient
from frontline.loop_detector import LoopDetector
from frontline.models import HandlerResult, TriageResult, TurnResult
from frontline.preprocessing import join_spoken_acronyms, preprocess
from frontline.response import DefaultResponseConstructor
from frontline.response_validator import DEFAULT_LATE_TURN_THRESHOLD, validate_response
from frontline.session import CallState, TurnRecord, merge_entities
from frontline.tenant import CompanyConfig
from frontline.trace import Trace, TraceWriter
from frontline.triage import route

logger = logging.getLogger(__name__)

BAILOUT_TRANSFER_MESSAGE = (
    "I'm having a bit of trouble on my end. Let me connect you with someone who can help you right away."
)
BAILOUT_TAKE_MESSAGE = (
    "I'm having a bit of trouble on my end. Let me take a message and have someone call you back."
)
SOFT_BAILOUT_MESSAGE = "Sorry, let me try that again. Could you tell me a little more about what you need?"


def _ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def _coerce_state(call_state, company_id: str, call_id: str) -> CallState:
    if isinstance(call_state, CallState):
        state = copy.deepcopy(call_state)
    else:
        state = CallState.from_dict(call_state)
    state.call_id = state.call_id or call_id
    state.company_id = state.company_id or company_id
    return state


class Brain1Runtime:
    def __init__(
        self,
        config_provider,
        *,
        llm: LLMClient | None = None,
        scenario_engine=None,
        response_constructor=None,
        trace_store=None,
        customer_store=None,
        vendor_log=None,
        loop_detector: LoopDetector | None = None,
        decision_engine: DecisionEngine | None = None,
        clarifier: Tier3Clarifier | None = None,
        booking_flow: BookingFlow | None = None,
        behavior_analyzer=analyze_behavior,
        late_turn_threshold: int = DEFAULT_LATE_TURN_THRESHOLD,
    ):
        self.config_provider = config_provider
        self.scenario_engine = scenario_engine
        self.response_constructor = response_constructor or DefaultResponseConstructor()
        self.customer_store = customer_store
        self.vendor_log = vendor_log
        self.loop_detector = loop_detector or LoopDetector()
        self.decision_engine = decision_engine or DecisionEngine(llm, loop_detector=self.loop_detector)
        self.clarifier = clarifier or Tier3Clarifier(llm)
        self.booking_flow = booking_flow or BookingFlow()
        self.behavior_analyzer = behavior_analyzer
        self.late_turn_threshold = late_turn_threshold
        self.trace_writer = TraceWriter(trace_store)

    async def process_turn(self, company_id: str, call_id: str, user_input: str, call_state=None) -> TurnResult:
        start = time.monotonic()
        try:
            prior = _coerce_state(call_state, company_id, call_id)
        except Exception as e:
            logger.error("Unreadable call state for %s, starting fresh: %s", call_id, e)
            prior = CallState(call_id=call_id, company_id=company_id)
        logger.info(
            "Processing turn %d for %s (company %s, %d chars)",
            prior.turn_count + 1, call_id, company_id, len(user_input or ""),
        )
        try:
            result = await self._run(company_id, call_id, user_input, prior)
        except Exception as e:
            logger.error("Fatal error processing turn for %s: %s", call_id, e, exc_info=True)
            result = self._fatal_result(company_id, call_id, prior, e)
        logger.info(
            "Turn complete for %s: route=%s action=%s bailout=%s in %.0fms",
            call_id, result.route, result.action.value, result.bailout_reason, _ms(start),
        )
        return result

    async def _run(self, company_id: str, call_id: str, user_input: str, prior: CallState) -> TurnResult:
        turn = prior.turn_count + 1
        trace = Trace(company_id=company_id, call_id=call_id, turn=turn)
        context = {"call_id": call_id, "company_id": company_id, "turn_number": turn}

        stage = time.monotonic()
        pre = preprocess(user_input)
        text = pre.normalized
        trace.record("input", raw=pre.raw, normalized=pre.normalized, tokens_stripped=pre.tokens_stripped)
        trace.timing("preprocess", _ms(stage))

        emotion = detect_emotion(text, prior.turn_history)
        trace.record("emotion", **emotion.to_dict())

        stage = time.monotonic()
        config: CompanyConfig = await self.config_provider.load_company_runtime_config(company_id)
        trace.timing("config", _ms(stage))
        text = join_spoken_acronyms(text, config.setting("spoken_acronyms"))
        trace.record("input", normalized=text)

        stage = time.monotonic()
        decision = await self.decision_engine.decide(text, prior, config, emotion, call_id)
        trace.record("decision", **{k: v for k, v in decision.to_dict().items() if k not in ("entities", "flags")})
        trace.record("entities", **decision.entities.to_dict())
        trace.record("flags", **decision.flags)
        trace.timing("decision", _ms(stage))
        trace.mark("decided")

        state = copy.deepcopy(prior)
        state.turn_count = turn
        state.last_intent = decision.intent_tag
        state.current_intent = decision.intent_tag or prior.current_intent
        state.emotion = emotion.to_dict()
        state.extracted = merge_entities(prior.extracted, decision.entities)
        state.flags.update(decision.flags)
        if decision.flags.get("booking_cancelled"):
            state.booking_state = ""
            state.booking_ready = False
        state.add_turn(TurnRecord(
            turn=turn,
            speaker="caller",
            text=text,
            action=decision.action.value,
            emotion=emotion.primary.value,
        ))

        stage = time.monotonic()
        (behavior, behavior_ok), triage = await asyncio.gather(
            self._analyze_behavior(call_id, text, emotion, prior),
            self._route(call_id, decision, config),
        )
        trace.record(
            "behavior",
            analyzed=behavior_ok,
            mood=behavior.mood,
            tone=behavior.tone,
            suggested_filler=behavior.suggested_filler,
        )
        trace.record("triage", **triage.to_dict())
        trace.timing("parallel", _ms(stage))

        stage = time.monotonic()
        handler_result = await self._handle(HandlerContext(
            company_id=company_id,
            call_id=call_id,
            text=text,
            call_state=state,
            decision=decision,
            triage=triage,
            config=config,
            trace=trace,
            scenario_engine=self.scenario_engine,
            vendor_log=self.vendor_log,
            booking_flow=self.booking_flow,
        ))
        trace.record(
            "handler",
            route=triage.route.value,
            action=handler_result.action.value,
            scenario_id=handler_result.scenario_id,
            text=handler_result.text[:200],
        )
        trace.timing("handler", _ms(stage))

        for key, value in handler_result.call_state_updates.items():
            if hasattr(state, key):
                setattr(state, key, value)
            else:
                logger.warning("Handler returned unknown call state field %s", key)
        scenario_id = handler_result.scenario_id or triage.matched_card_id
        is_first_turn_for_scenario = not prior.current_scenario_id or prior.current_scenario_id != scenario_id
        state.current_scenario_id = scenario_id or ""
        state.behavior = behavior.to_dict()

        stage = time.monotonic()
        final = self.response_constructor.build_final_response(
            context=context,
            behavior=behavior,
            triage=triage,
            content=handler_result.text,
            is_first_turn_for_scenario=is_first_turn_for_scenario,
        )
        constructed = substitute_variables(
            apply_guardrails(final.text, config),
            build_substitution_context(state, config),
        )
        trace.timing("construct", _ms(stage))
        self.loop_detector.record_response(call_id, constructed)

        await self._enrich_customer(company_id, call_id, state, decision.entities)

        result = TurnResult(
            text=constructed,
            ssml=final.ssml if constructed == final.text else None,
            action=TurnAction.parse(handler_result.action),
            should_transfer=handler_result.should_transfer,
            should_hangup=handler_result.should_hangup,
            call_state=state,
            route=triage.route.value,
            trace_id=trace.trace_id,
        )
        await self._quality_gate(result, text, config, call_id, turn, trace)
        self._final_gate(result, call_id)

        if result.text != constructed:
            simple = self.response_constructor.build_simple_response(
                context=context, text=result.text, source=result.bailout_reason or "tier3",
            )
            result.ssml = simple.ssml
        if result.should_transfer:
            state.transfer_initiated = True

        trace.record(
            "output",
            spoken_text=result.text,
            action=result.action.value,
            should_transfer=result.should_transfer,
            should_hangup=result.should_hangup,
            next_intent=state.current_intent,
        )
        self._persist(trace)
        return result

    async def _analyze_behavior(self, call_id, text, emotion, prior: CallState) -> tuple[BehaviorState, bool]:
        try:
            previous = BehaviorState.from_dict(prior.behavior)
            return await self.behavior_analyzer(text, emotion, previous), True
        except Exception as e:
            logger.warning("Behavior analysis failed for %s, using defaults: %s", call_id, e)
            return default_behavior(), False

    async def _route(self, call_id, decision, config) -> TriageResult:
        try:
            return route(decision, config)
        except Exception as e:
            logger.warning("Triage failed for %s, defaulting to message-only: %s", call_id, e)
            return TriageResult(route=Route.MESSAGE_ONLY, reason=f"triage error: {e}")

    async def _handle(self, ctx: HandlerContext) -> HandlerResult:
        try:
            return await dispatch(ctx)
        except Exception as e:
            logger.error("Handler for %s failed on %s: %s", ctx.triage.route.value, ctx.call_id, e)
            ctx.record("handler", error=str(e))
            return HandlerResult(text=SCENARIO_FALLBACK)

    async def _enrich_customer(self, company_id, call_id, state: CallState, entities) -> None:
        if self.customer_store is None or not state.customer_id:
            return
        contact, location = entities.contact, entities.location
        if not (contact.get("name") or location.get("address_line1") or contact.get("email")):
            return
        fields = {
            "name": contact.get("name"),
            "first_name": contact.get("first_name"),
            "email": contact.get("email"),
            "address": {k: v for k, v in location.items() if k in ("address_line1", "city", "state", "zip")},
            "preferred_time_of_day": entities.scheduling.get("preferred_window"),
            "special_instructions": entities.problem.get("summary"),
        }
        try:
            await self.customer_store.enrich_customer(company_id, state.customer_id, fields)
            logger.info("Customer %s enriched from call %s", state.customer_id, call_id)
        except Exception as e:
            logger.warning("Customer enrichment failed for %s: %s", state.customer_id, e)

    def _late_turn_threshold(self, config: CompanyConfig | None) -> int:
        override = config.setting("late_turn_threshold") if config else None
        if override in (None, ""):
            return self.late_turn_threshold
        try:
            return int(override)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid late_turn_threshold %r", override)
            return self.late_turn_threshold

    async def _quality_gate(self, result: TurnResult, user_text, config, call_id, turn, trace: Trace) -> None:
        """Validate the constructed text and walk the fallback ladder if it fails."""
        threshold = self._late_turn_threshold(config)
        validation = validate_response(
            result.text, call_id, turn,
            loop_detector=self.loop_detector,
            late_turn_threshold=threshold,
        )
        trace.record(
            "validation",
            usable=validation.usable,
            reason=validation.reason.value if validation.reason else None,
            severity=validation.severity,
        )
        if validation.usable:
            return

        clarified = None
        try:
            clarified = await self.clarifier.clarify(user_text, config, call_id, turn)
        except Exception as e:
            logger.error("Tier-3 clarifier failed for %s: %s", call_id, e)

        if clarified is not None:
            check = validate_response(clarified.text, call_id, turn, late_turn_threshold=threshold)
            if check.usable and (clarified.success or not validation.is_hard):
                trace.record("fallback", tier3=clarified.source, bailout=None)
                result.text = clarified.text
                result.action = TurnAction.CONTINUE
                result.should_transfer = False
                result.should_hangup = False
                self.loop_detector.record_response(call_id, clarified.text)
                return

        if validation.is_hard:
            self._hard_bailout(result, config, validation.reason.value, call_id)
        else:
            logger.warning("Soft bailout for %s: %s", call_id, validation.reason.value)
            result.text = SOFT_BAILOUT_MESSAGE
            result.action = TurnAction.CONTINUE
            result.should_transfer = False
            result.should_hangup = False
            result.bailout_triggered = True
            result.bailout_reason = validation.reason.value
            self.loop_detector.record_response(call_id, result.text)
        trace.record(
            "fallback",
            tier3=clarified.source if clarified else None,
            bailout="hard" if validation.is_hard else "soft",
        )

    def _hard_bailout(self, result: TurnResult, config: CompanyConfig | None, reason: str, call_id: str) -> None:
        action = str((config.setting("bailout_action") if config else None) or "TRANSFER").upper()
        transfer = action != "MESSAGE"
        default = BAILOUT_TRANSFER_MESSAGE if transfer else BAILOUT_TAKE_MESSAGE
        message = (config.setting("bailout_message") if config else None) or default
        logger.warning("Hard bailout for %s: %s (%s)", call_id, reason, "transfer" if transfer else "take_message")
        result.text = message
        result.action = TurnAction.TRANSFER if transfer else TurnAction.TAKE_MESSAGE
        result.should_transfer = transfer
        result.should_hangup = False
        result.bailout_triggered = True
        result.bailout_reason = reason
        self.loop_detector.record_response(call_id, message)

    def _final_gate(self, result: TurnResult, call_id: str) -> None:
        if result.text and result.text.strip():
            return
        logger.error("Empty response reached the final gate for %s", call_id)
        result.text = BAILOUT_TRANSFER_MESSAGE
        result.action = TurnAction.TRANSFER
        result.should_transfer = True
        result.should_hangup = False
        result.bailout_triggered = True
        result.bailout_reason = "FINAL_GATE_EMPTY"

    def _persist(self, trace: Trace) -> None:
        try:
            self.trace_writer.submit(trace.finalize())
        except Exception as e:
            logger.error("Could not hand off trace %s: %s", trace.trace_id, e)

    def _fatal_result(self, company_id: str, call_id: str, prior: CallState, error: Exception) -> TurnResult:
        state = copy.deepcopy(prior)
        state.turn_count = prior.turn_count + 1
        state.last_error = str(error)
        state.transfer_initiated = True
        ssml = None
        try:
            ssml = self.response_constructor.build_simple_response(
                context={"call_id": call_id, "company_id": company_id, "turn_number": state.turn_count},
                text=BAILOUT_TRANSFER_MESSAGE,
                source="runtime.fatal",
            ).ssml
        except Exception as e:
            logger.error("Response constructor failed on the error path for %s: %s", call_id, e)
        return TurnResult(
            text=BAILOUT_TRANSFER_MESSAGE,
            ssml=ssml,
            action=TurnAction.TRANSFER,
            should_transfer=True,
            should_hangup=False,
            call_state=state,
            bailout_triggered=True,
            bailout_reason="FATAL_ERROR",
        )

    def start_sweeper(self, interval_seconds: float) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(self.loop_detector.run_sweeper(interval_seconds))

    async def drain(self) -> None:
        await self.trace_writer.drain()
