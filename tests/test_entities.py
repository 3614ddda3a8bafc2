"""Tests for surface entity extraction: names, dates, numbers and references."""

from datetime import date, datetime, timezone

from chat_kernel.router.entities import extract_entities, extract_names, invalid_dates, resolve_date

TODAY = date(2026, 3, 2)  # a Monday


class TestEntityExtraction:
    def test_possessive_name(self):
        assert extract_names("show Chen's portfolio") == ["Chen"]

    def test_leading_verb_is_dropped(self):
        assert extract_names("Delete client Acme") == ["Acme"]

    def test_full_name(self):
        assert extract_names("Call Sarah Chen about the trust") == ["Sarah Chen"]

    def test_quoted_phrase(self):
        assert extract_names('complete "Quarterly report draft"') == ["Quarterly report draft"]

    def test_relative_dates(self):
        assert resolve_date("due tomorrow", TODAY) == "2026-03-03"
        assert resolve_date("next week", TODAY) == "2026-03-09"
        assert resolve_date("by friday", TODAY) == "2026-03-06"
        assert resolve_date("on 2026-04-01", TODAY) == "2026-04-01"
        assert resolve_date("no date here", TODAY) is None

    def test_same_weekday_means_next_week(self):
        assert resolve_date("monday", TODAY) == "2026-03-09"

    def test_extract_entities(self):
        entities = extract_entities(
            "Create a high priority task for Sarah Chen tomorrow about $2.5m",
            current_time=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
        )
        assert entities.names == ["Sarah Chen"]
        assert entities.priority == "high"
        assert entities.dates == ["2026-03-03"]
        assert entities.numbers == [2_500_000]

    def test_references_and_email(self):
        entities = extract_entities("update it with jane@example.com")
        assert entities.references == ["it"]
        assert entities.email == "jane@example.com"

    def test_command_words_inside_a_name_are_kept(self):
        assert extract_names("create client Mark Johnson") == ["Mark Johnson"]
        assert extract_names("add client Grace Open") == ["Grace Open"]

    def test_invalid_iso_dates_are_reported(self):
        assert invalid_dates("due 2026-02-30") == ["2026-02-30"]
        assert invalid_dates("due 2026-13-01 or 2026-04-01") == ["2026-13-01"]
        assert resolve_date("due 2026-02-30", TODAY) is None
        assert resolve_date("2026-13-01 or 2026-04-01", TODAY) == "2026-04-01"

        entities = extract_entities("move it to 2026-02-30")
        assert entities.dates == []
        assert entities.invalid_dates == ["2026-02-30"]
