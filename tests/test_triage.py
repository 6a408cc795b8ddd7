import pytest

from frontline.actions import DecisionAction, Route
from frontline.models import Decision
from frontline.triage import ACTION_ROUTES, route


@pytest.mark.parametrize("action,expected", [
    (DecisionAction.ROUTE_TO_SCENARIO, Route.SCENARIO_ENGINE),
    (DecisionAction.TRANSFER, Route.TRANSFER),
    (DecisionAction.BOOK, Route.BOOKING_FLOW),
    (DecisionAction.END, Route.END_CALL),
    (DecisionAction.ROUTE_TO_VENDOR, Route.VENDOR_HANDLING),
    (DecisionAction.ASK_FOLLOWUP, Route.MESSAGE_ONLY),
    (DecisionAction.MESSAGE_ONLY, Route.MESSAGE_ONLY),
])
def test_action_maps_to_route(action, expected):
    assert route(Decision(action=action), None).route is expected


def test_every_action_has_a_route():
    assert set(ACTION_ROUTES) == set(DecisionAction)


def test_matched_card_id_carries_card(company_config):
    decision = Decision(action=DecisionAction.BOOK, flags={"matched_card_id": "card_no_cool"})
    triage = route(decision, company_config)
    assert triage.route is Route.BOOKING_FLOW
    assert triage.matched_card_id == "card_no_cool"
    assert triage.opening_line.startswith("I'm sorry your AC")
    assert triage.scenario_hint == "cooling"


def test_triage_tag_carries_card(company_config):
    decision = Decision(action=DecisionAction.ASK_FOLLOWUP, triage_tag="NO_COOL", source="fallback")
    triage = route(decision, company_config)
    assert triage.route is Route.MESSAGE_ONLY
    assert triage.matched_card_name == "No Cool"


def test_disabled_card_is_not_carried(company_config):
    company_config.card_by_id("card_no_cool").enabled = False
    decision = Decision(action=DecisionAction.BOOK, flags={"matched_card_id": "card_no_cool"})
    assert route(decision, company_config).matched_card_id is None


def test_no_card_uses_tag_as_hint(company_config):
    triage = route(Decision(action=DecisionAction.BOOK, triage_tag="BOOKING"), company_config)
    assert triage.matched_card_id is None
    assert triage.scenario_hint == "BOOKING"
    assert "BOOK" in triage.reason
