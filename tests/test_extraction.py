from frontline.extraction import (
    categorize_duration,
    extract_entities,
    extract_name,
    extract_phone,
    extract_window,
)


class TestExtractName:
    def test_my_name_is(self):
        assert extract_name("Hi, my name is John Smith") == "John Smith"

    def test_stops_at_connector(self):
        assert extract_name("my name is john and my AC is out") == "John"

    def test_this_is_capitalized_name(self):
        assert extract_name("Hi, this is Sarah calling about my furnace") == "Sarah"

    def test_this_is_lowercase_phrase_is_not_a_name(self):
        assert extract_name("this is ridiculous") == ""

    def test_no_name(self):
        assert extract_name("my heater is broken") == ""


class TestExtractPhone:
    def test_formatted(self):
        assert extract_phone("call me at 512-555-1234 please") == "5125551234"

    def test_spoken_digits(self):
        assert extract_phone("it's five one two five five five one two three four") == "5125551234"

    def test_too_short(self):
        assert extract_phone("extension 4455") == ""


class TestExtractWindow:
    def test_day_and_window(self):
        assert extract_window("tomorrow morning works") == ("morning", "tomorrow")

    def test_asap(self):
        assert extract_window("as soon as possible") == ("asap", "")

    def test_nothing(self):
        assert extract_window("whenever") == ("", "")


class TestCategorizeDuration:
    def test_acute(self):
        assert categorize_duration("it just started this morning") == "acute"

    def test_recent(self):
        assert categorize_duration("since yesterday") == "recent"

    def test_ongoing(self):
        assert categorize_duration("for a few weeks now") == "ongoing"

    def test_empty(self):
        assert categorize_duration("") == ""


class TestExtractEntities:
    def test_address_and_zip(self):
        entities = extract_entities("I'm at 123 Oak Street, 78701")
        assert entities.location["address_line1"] == "123 Oak Street"
        assert entities.location["zip"] == "78701"

    def test_phone_digits_are_not_a_zip(self):
        entities = extract_entities("my number is 512 555 1234")
        assert entities.contact["phone"] == "5125551234"
        assert "zip" not in entities.location

    def test_name_sets_first_name(self):
        entities = extract_entities("my name is Maria Lopez")
        assert entities.contact["first_name"] == "Maria"

    def test_email(self):
        assert extract_entities("email me at Pat@Example.com").contact["email"] == "pat@example.com"

    def test_blank(self):
        assert extract_entities("   ").is_empty()
