import asyncio

import pytest

from frontline.clarifier import GENERIC_TEMPLATE, Tier3Clarifier, is_generic, rule_clarification
from frontline.errors import LLMError
from frontline.tenant import CompanyConfig


class TestRuleClarification:
    @pytest.mark.parametrize("text,bucket", [
        ("it's urgent, the unit is broken", "urgent"),
        ("the furnace is making a noise", "problem"),
        ("can you come out and look at it", "appointment"),
        ("how much for a tune-up", "price"),
        ("I want a maintenance plan", "service"),
    ])
    def test_buckets(self, text, bucket, company_config):
        result = rule_clarification(text, company_config)
        assert result.source == f"rule:{bucket}"
        assert result.success is False
        assert "HVAC" in result.text

    def test_generic_template(self, company_config):
        result = rule_clarification("hmm", company_config)
        assert result.source == "rule:generic"
        assert result.text == GENERIC_TEMPLATE.format(trade="HVAC")

    def test_uses_tenant_trade_only(self):
        plumber = CompanyConfig(id="p", trade="plumbing")
        assert "plumbing" in rule_clarification("there's a leak", plumber).text

    def test_no_config(self):
        assert "service" in rule_clarification("hmm", None).text

    def test_rule_questions_are_never_generic(self, company_config):
        for text in ("urgent", "broken", "schedule", "price", "service", "hmm"):
            assert not is_generic(rule_clarification(text, company_config).text)


class TestTier3Clarifier:
    @pytest.mark.asyncio
    async def test_model_question_used(self, fake_llm, company_config):
        clarifier = Tier3Clarifier(fake_llm)
        result = await clarifier.clarify("it's doing the thing again", company_config, "c1", 2)
        assert result.success is True
        assert result.source == "llm"
        assert result.text == "Which room in the house is warmest right now?"

    @pytest.mark.asyncio
    async def test_quotes_are_stripped(self, fake_llm, company_config):
        fake_llm.complete.return_value = '"Is the thermostat screen blank?"'
        result = await Tier3Clarifier(fake_llm).clarify("it's dead", company_config)
        assert result.text == "Is the thermostat screen blank?"

    @pytest.mark.asyncio
    async def test_generic_model_question_rejected(self, fake_llm, company_config):
        fake_llm.complete.return_value = "How can I help you today?"
        result = await Tier3Clarifier(fake_llm).clarify("the furnace is making a noise", company_config)
        assert result.success is False
        assert result.source == "rule:problem"

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_rules(self, fake_llm, company_config):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return "too late"

        fake_llm.complete.side_effect = slow
        result = await Tier3Clarifier(fake_llm, timeout=0.01).clarify("how much for a tune-up", company_config)
        assert result.source == "rule:price"

    @pytest.mark.asyncio
    async def test_model_error_falls_back_to_rules(self, fake_llm, company_config):
        fake_llm.complete.side_effect = LLMError("down")
        result = await Tier3Clarifier(fake_llm).clarify("hmm", company_config)
        assert result.source == "rule:generic"

    @pytest.mark.asyncio
    async def test_no_model(self, company_config):
        result = await Tier3Clarifier(None).clarify("it's urgent", company_config)
        assert result.source == "rule:urgent"

    @pytest.mark.asyncio
    async def test_overlong_answer_rejected(self, fake_llm, company_config):
        fake_llm.complete.return_value = "word " * 60
        result = await Tier3Clarifier(fake_llm).clarify("hmm", company_config)
        assert result.success is False
