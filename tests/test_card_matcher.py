from frontline.card_matcher import best_match, match_cards, score_card_match, synonym_weight
from frontline.tenant import TriageCard


def _card(**overrides):
    data = {
        "id": "no_cool",
        "name": "No Cool",
        "triggers": ["not cooling", "stopped working", "ac"],
        "synonyms": ["warm air", "hot"],
    }
    data.update(overrides)
    return TriageCard(**data)


class TestScoring:
    def test_two_keywords(self):
        match = score_card_match("My AC stopped working", _card())
        assert match.keyword_hits == ["ac", "stopped working"]
        assert match.score == 2.0
        assert match.confidence == 0.95

    def test_synonym_weights(self):
        assert synonym_weight("warm air") == 0.8
        assert synonym_weight("hot") == 0.5

    def test_keyword_plus_multi_word_synonym(self):
        match = score_card_match("it's not cooling, just warm air", _card())
        assert match.score == 1.8
        assert match.confidence == 0.93

    def test_no_hits(self):
        match = score_card_match("what are your hours", _card())
        assert match.confidence == 0.0
        assert not match.eligible

    def test_confidence_is_capped(self):
        card = _card(triggers=["a1", "b2", "c3", "d4", "e5"])
        assert score_card_match("a1 b2 c3 d4 e5", card).confidence == 0.99


class TestEligibility:
    def test_single_synonym_is_not_enough(self):
        assert match_cards("blowing warm air", [_card()]) == []

    def test_two_synonyms_are_enough(self):
        matches = match_cards("it's hot and blowing warm air", [_card()])
        assert len(matches) == 1
        assert matches[0].synonym_hits == ["hot", "warm air"]

    def test_negative_trigger_excludes(self):
        card = _card(negative_triggers=["car"])
        assert match_cards("the AC in my car stopped working", [card]) == []

    def test_disabled_card_is_skipped(self):
        assert match_cards("my AC stopped working", [_card(enabled=False)]) == []


def test_best_match_prefers_higher_score():
    weak = _card(id="weak", name="Weak", triggers=["ac"])
    strong = _card(id="strong", name="Strong")
    assert best_match("my AC stopped working", [weak, strong]).card.id == "strong"


def test_best_match_none():
    assert best_match("hello", [_card()]) is None
