import asyncio

import pytest
from unittest.mock import AsyncMock

from frontline.actions import DecisionAction, Emotion
from frontline.card_health import score_card
from frontline.card_matcher import score_card_match
from frontline.circuit_breaker import CircuitBreaker
from frontline.decision_engine import (
    DecisionEngine,
    check_quick_decisions,
    fallback_decision,
    normalize_decision,
    should_bypass,
)
from frontline.emotion import EmotionSnapshot, detect_emotion
from frontline.errors import LLMError
from frontline.loop_detector import LoopDetector
from frontline.tenant import CompanyConfig, TriageCard

NEUTRAL = EmotionSnapshot()


def _thin_card_config() -> CompanyConfig:
    """A card that matches confidently but has nothing behind its opening line."""
    card = TriageCard(
        id="thin",
        name="Not Cooling",
        triggers=["not cooling"],
        synonyms=["warm air"],
        routing="ROUTE_TO_SCENARIO",
        opening_line="Sorry to hear the AC is not cooling.",
    )
    return CompanyConfig(id="acme", name="Acme", trade="HVAC", cards=[card])


class TestQuickDecisions:
    def test_emergency_transfers(self):
        decision = check_quick_decisions("I smell gas near the furnace", NEUTRAL)
        assert decision.action is DecisionAction.TRANSFER
        assert decision.triage_tag == "EMERGENCY"
        assert decision.confidence == 0.95
        assert decision.flags["is_emergency"] is True

    def test_wrong_number_ends(self):
        decision = check_quick_decisions("Is this the pizza place?", NEUTRAL)
        assert decision.action is DecisionAction.END
        assert decision.flags["is_wrong_number"] is True

    def test_spam_ends(self):
        decision = check_quick_decisions("This is about your extended warranty, press 1", NEUTRAL)
        assert decision.action is DecisionAction.END
        assert decision.triage_tag == "SPAM"

    def test_upset_caller_asking_for_human_transfers(self):
        text = "This is ridiculous, let me talk to a manager"
        decision = check_quick_decisions(text, detect_emotion(text))
        assert decision.action is DecisionAction.TRANSFER
        assert decision.triage_tag == "ESCALATION_REQUEST"

    def test_calm_human_request_is_not_pinned(self):
        assert check_quick_decisions("can I speak to a person about pricing", NEUTRAL) is None

    def test_vendor_with_company_name(self):
        decision = check_quick_decisions(
            "Hi, calling from Ferguson Supply about a parts order for your shop", NEUTRAL
        )
        assert decision.action is DecisionAction.ROUTE_TO_VENDOR
        assert decision.entities.vendor["company_name"] == "Ferguson Supply"
        assert decision.entities.vendor["urgency"] == "normal"

    def test_urgent_vendor(self):
        decision = check_quick_decisions("supplier here, the invoice number is overdue, need a callback asap", NEUTRAL)
        assert decision.entities.vendor["urgency"] == "urgent"

    def test_ordinary_caller(self):
        assert check_quick_decisions("my AC is blowing warm air", NEUTRAL) is None


class TestShouldBypass:
    def test_requires_all_three(self, company_config):
        card = company_config.card_by_id("card_no_cool")
        match = score_card_match("my AC stopped working", card)
        health = score_card(card)
        assert should_bypass(match, health, is_looping=False) is True
        assert should_bypass(match, health, is_looping=True) is False

    def test_unhealthy_card_never_bypasses(self):
        config = _thin_card_config()
        card = config.cards[0]
        match = score_card_match("it's not cooling, just warm air", card)
        assert match.confidence >= 0.92
        assert should_bypass(match, score_card(card), is_looping=False) is False

    def test_none(self):
        assert should_bypass(None, None, False) is False


class TestNormalizeDecision:
    def test_unknown_action_becomes_followup(self, company_config):
        assert normalize_decision({"action": "DANCE"}, company_config).action is DecisionAction.ASK_FOLLOWUP

    def test_tag_outside_vocabulary_is_dropped(self, company_config):
        decision = normalize_decision({"action": "BOOK", "triage_tag": "NO_HEAT"}, company_config)
        assert decision.triage_tag is None

    def test_tenant_and_generic_tags_kept(self, company_config):
        assert normalize_decision({"triage_tag": "no_cool"}, company_config).triage_tag == "NO_COOL"
        assert normalize_decision({"triage_tag": "BOOKING"}, company_config).triage_tag == "BOOKING"

    def test_entities_are_validated(self, company_config):
        decision = normalize_decision(
            {
                "action": "BOOK",
                "entities": {
                    "contact": {"name": "unknown", "phone": "555"},
                    "location": {"address_line1": "123 Oak Street", "zip": "7870"},
                },
            },
            company_config,
        )
        assert decision.entities.contact == {}
        assert decision.entities.location == {"address_line1": "123 Oak Street"}

    def test_confidence_is_clamped(self, company_config):
        assert normalize_decision({"confidence": 7}, company_config).confidence == 1.0

    def test_fallback_decision_shape(self):
        decision = fallback_decision(triage_tag="NO_COOL")
        assert decision.action is DecisionAction.ASK_FOLLOWUP
        assert decision.source == "fallback"
        assert decision.flags["needs_deeper_lookup"] is True
        assert decision.triage_tag == "NO_COOL"


class TestDecisionEngine:
    @pytest.mark.asyncio
    async def test_quick_decision_skips_model(self, fake_llm, call_state, company_config):
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("there's smoke coming out of the vents", call_state, company_config, NEUTRAL)
        assert decision.action is DecisionAction.TRANSFER
        fake_llm.complete_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_healthy_card_fast_path(self, fake_llm, call_state, company_config):
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("My AC stopped working", call_state, company_config, NEUTRAL, "call_123")
        assert decision.source == "card_fast_path"
        assert decision.action is DecisionAction.BOOK
        assert decision.flags["matched_card_id"] == "card_no_cool"
        fake_llm.complete_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_unhealthy_card_still_calls_model(self, fake_llm, call_state):
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("it's not cooling, just warm air", call_state, _thin_card_config(), NEUTRAL, "c1")
        fake_llm.complete_json.assert_awaited_once()
        assert decision.source == "llm"
        assert decision.flags["candidate_card_id"] == "thin"

    @pytest.mark.asyncio
    async def test_loop_blocks_fast_path(self, fake_llm, call_state, company_config):
        loops = LoopDetector()
        for _ in range(3):
            loops.record_response("call_123", "Could you tell me more about the issue?")
        engine = DecisionEngine(fake_llm, loop_detector=loops)
        await engine.decide("My AC stopped working", call_state, company_config, NEUTRAL, "call_123")
        fake_llm.complete_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_model_decision(self, fake_llm, call_state, company_config):
        fake_llm.complete_json.return_value = {
            "action": "BOOK",
            "triage_tag": "BOOKING",
            "intent_tag": "booking",
            "confidence": 0.88,
            "entities": {"contact": {"name": "Maria Lopez"}},
        }
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("I'd like to get someone out next week", call_state, company_config, NEUTRAL)
        assert decision.action is DecisionAction.BOOK
        assert decision.entities.contact["first_name"] == "Maria"

    @pytest.mark.asyncio
    async def test_model_error_falls_back(self, fake_llm, call_state, company_config):
        fake_llm.complete_json.side_effect = LLMError("bad gateway")
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("what's a heat pump", call_state, company_config, NEUTRAL)
        assert decision.source == "fallback"
        assert decision.action is DecisionAction.ASK_FOLLOWUP

    @pytest.mark.asyncio
    async def test_model_timeout_falls_back(self, fake_llm, call_state, company_config):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return {"action": "BOOK"}

        fake_llm.complete_json.side_effect = slow
        engine = DecisionEngine(fake_llm, decision_timeout=0.01)
        decision = await engine.decide("what's a heat pump", call_state, company_config, NEUTRAL)
        assert decision.source == "fallback"

    @pytest.mark.asyncio
    async def test_open_breaker_skips_model(self, fake_llm, call_state, company_config):
        fake_llm.circuit = CircuitBreaker(failure_threshold=1, cooldown_seconds=30.0, label="LLM")
        fake_llm.complete_json.side_effect = LLMError("down")
        engine = DecisionEngine(fake_llm)
        await engine.decide("what's a heat pump", call_state, company_config, NEUTRAL)
        decision = await engine.decide("what's a heat pump", call_state, company_config, NEUTRAL)
        assert decision.source == "fallback"
        assert fake_llm.complete_json.await_count == 1

    @pytest.mark.asyncio
    async def test_no_model_falls_back_with_candidate_tag(self, call_state):
        engine = DecisionEngine(None)
        decision = await engine.decide("it's not cooling, just warm air", call_state, _thin_card_config(), NEUTRAL)
        assert decision.source == "fallback"
        assert decision.triage_tag == "NOT_COOLING"

    @pytest.mark.asyncio
    async def test_booking_lock(self, fake_llm, call_state, company_config):
        call_state.booking_state = "collecting_phone"
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("5125551234", call_state, company_config, NEUTRAL)
        assert decision.action is DecisionAction.BOOK
        assert decision.source == "booking_lock"
        assert decision.entities.contact["phone"] == "5125551234"
        fake_llm.complete_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_opt_out_releases_booking_lock(self, fake_llm, call_state, company_config):
        call_state.booking_state = "collecting_name"
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide(
            "never mind, I don't want to book anymore", call_state, company_config, NEUTRAL,
        )
        assert decision.source == "llm"
        assert decision.flags["booking_cancelled"] is True
        fake_llm.complete_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_opt_out_without_model_still_leaves_booking(self, call_state, company_config):
        call_state.booking_state = "collecting_phone"
        decision = await DecisionEngine(None).decide("no thanks, cancel it please", call_state, company_config, NEUTRAL)
        assert decision.action is not DecisionAction.BOOK
        assert decision.flags["booking_cancelled"] is True

    @pytest.mark.asyncio
    async def test_opt_out_skips_card_fast_path(self, call_state, company_config):
        call_state.booking_state = "collecting_name"
        decision = await DecisionEngine(None).decide(
            "forget it, the AC stopped working but I'll call back", call_state, company_config, NEUTRAL,
        )
        assert decision.source == "fallback"
        assert decision.flags["booking_cancelled"] is True

    @pytest.mark.asyncio
    async def test_unrelated_reply_goes_to_model(self, fake_llm, call_state, company_config):
        call_state.booking_state = "collecting_name"
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("what are your hours on saturday", call_state, company_config, NEUTRAL)
        assert decision.source == "llm"
        assert "booking_cancelled" not in decision.flags
        fake_llm.complete_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unrelated_reply_without_model_keeps_lock(self, call_state, company_config):
        call_state.booking_state = "collecting_name"
        decision = await DecisionEngine(None).decide("what are your hours on saturday", call_state, company_config, NEUTRAL)
        assert decision.source == "booking_lock"

    @pytest.mark.asyncio
    async def test_name_sentence_fills_name_slot(self, fake_llm, call_state, company_config):
        call_state.booking_state = "collecting_name"
        decision = await DecisionEngine(fake_llm).decide("my name is Maria Lopez", call_state, company_config, NEUTRAL)
        assert decision.source == "booking_lock"
        fake_llm.complete_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_emergency_beats_booking_lock(self, fake_llm, call_state, company_config):
        call_state.booking_state = "collecting_address"
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("wait, I smell gas", call_state, company_config, NEUTRAL)
        assert decision.action is DecisionAction.TRANSFER

    @pytest.mark.asyncio
    async def test_confirmed_booking_is_not_locked(self, fake_llm, call_state, company_config):
        call_state.booking_state = "confirmed"
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide("what's a heat pump", call_state, company_config, NEUTRAL)
        assert decision.source == "llm"

    @pytest.mark.asyncio
    async def test_upset_emotion_sets_flag(self, fake_llm, call_state, company_config):
        engine = DecisionEngine(fake_llm)
        decision = await engine.decide(
            "what's a heat pump", call_state, company_config, EmotionSnapshot(primary=Emotion.FRUSTRATED)
        )
        assert decision.flags["is_frustrated"] is True

    @pytest.mark.asyncio
    async def test_does_not_mutate_call_state(self, fake_llm, call_state, company_config):
        before = call_state.to_dict()
        engine = DecisionEngine(fake_llm)
        await engine.decide("my name is John Smith", call_state, company_config, NEUTRAL)
        assert call_state.to_dict() == before
