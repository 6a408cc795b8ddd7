import logging

from frontline.actions import DecisionAction, Route
from frontline.models import Decision, TriageResult
from frontline.tenant import CompanyConfig, TriageCard

logger = logging.getLogger(__name__)

ACTION_ROUTES = {
    DecisionAction.ROUTE_TO_SCENARIO: Route.SCENARIO_ENGINE,
    DecisionAction.TRANSFER: Route.TRANSFER,
    DecisionAction.BOOK: Route.BOOKING_FLOW,
    DecisionAction.END: Route.END_CALL,
    DecisionAction.ROUTE_TO_VENDOR: Route.VENDOR_HANDLING,
    DecisionAction.ASK_FOLLOWUP: Route.MESSAGE_ONLY,
    DecisionAction.MESSAGE_ONLY: Route.MESSAGE_ONLY,
}


def _matched_card(decision: Decision, config: CompanyConfig | None) -> TriageCard | None:
    if config is None:
        return None
    card_id = decision.flags.get("matched_card_id")
    if card_id:
        card = config.card_by_id(str(card_id))
        if card:
            return card
    return config.card_by_tag(decision.triage_tag or "")


def route(decision: Decision, config: CompanyConfig | None) -> TriageResult:
    """Map a Decision onto a route, carrying any matched card forward.

    Pure: reads the decision and the tenant's enabled cards, writes nothing.
    """
    target = ACTION_ROUTES.get(decision.action, Route.MESSAGE_ONLY)
    card = _matched_card(decision, config)
    if card is None:
        return TriageResult(
            route=target,
            scenario_hint=decision.triage_tag,
            reason=f"{decision.action.value} via {decision.source}",
        )

    logger.debug("Triage carried card %s for route %s", card.id, target.value)
    return TriageResult(
        route=target,
        matched_card_id=card.id,
        matched_card_name=card.name,
        opening_line=card.opening_line or None,
        scenario_hint=card.category or card.triage_tag,
        reason=f"{decision.action.value} via {decision.source}, card '{card.name}'",
    )
