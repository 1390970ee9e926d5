"""
Tests for the rule-based intent fast path.
"""

from datetime import date

import pytest

from hr_assistant.intent_rules import RULES, detect_intent, rule_analysis

TODAY = date(2026, 10, 19)


class TestDetectIntent:
    """Priority-ordered rule matching."""

    @pytest.mark.parametrize(
        "message,intent",
        [
            ("show my requests", "view_requests"),
            ("view my leave requests", "view_requests"),
            ("hi", "greeting"),
            ("Good morning", "greeting"),
            ("what is the wfh policy", "wfh_policy"),
            ("wfh tomorrow", "apply_wfh"),
            ("I want to work from home on friday", "apply_wfh"),
            ("holiday list", "holiday_list"),
            ("is 9th november a holiday", "holiday_list"),
            ("how many casual leaves do I have left", "leave_balance"),
            ("leave balance", "leave_balance"),
            ("explain the leave policy", "leave_policy"),
            ("2 days casual leave from tomorrow", "apply_leave"),
            ("I want to apply for leave", "apply_leave"),
            ("leave on 28th october", "apply_leave"),
            ("half day leave", "apply_leave"),
            ("what is the capital of France", "general_query"),
        ],
    )
    def test_intents(self, message, intent):
        """Each message maps to the expected intent."""
        assert detect_intent(message) == intent

    def test_long_greeting_is_not_a_greeting(self):
        """Greetings are at most three words."""
        assert detect_intent("hi I would like some help please") != "greeting"

    def test_holiday_with_leave_keyword_is_not_a_holiday_query(self):
        """A leave keyword takes a holiday message out of the holiday rule."""
        assert detect_intent("apply leave on the holiday") == "apply_leave"

    def test_rule_order(self):
        """Rules are evaluated in their documented priority."""
        assert [rule.name for rule in RULES] == [
            "view_requests",
            "greeting",
            "wfh_policy",
            "apply_wfh",
            "holiday_list",
            "leave_balance",
            "leave_policy",
            "apply_leave",
        ]


class TestRuleAnalysis:
    """Entity extraction per intent."""

    def test_leave_entities(self):
        """Leave requests carry dates, explicit type and explicit reason."""
        analysis = rule_analysis("casual leave tomorrow for a family function", TODAY)

        assert analysis.intent == "apply_leave"
        assert analysis.confidence == 0.9
        assert analysis.source == "rules"
        assert analysis.entities.start_date == date(2026, 10, 20)
        assert analysis.entities.leave_type == "CASUAL"
        assert analysis.entities.reason == "family function"

    def test_leave_entities_do_not_infer_type(self):
        """Only keyword leave types are extracted at the rule stage."""
        analysis = rule_analysis("leave tomorrow for my wedding", TODAY)
        assert analysis.entities.leave_type is None

    def test_wfh_entities(self):
        """WFH requests carry the date and reason."""
        analysis = rule_analysis("wfh on 22nd october for plumber visit", TODAY)
        assert analysis.intent == "apply_wfh"
        assert analysis.entities.date == date(2026, 10, 22)
        assert analysis.entities.reason == "plumber visit"

    def test_balance_entities(self):
        """Balance questions carry an explicit leave type."""
        analysis = rule_analysis("sick leave balance", TODAY)
        assert analysis.intent == "leave_balance"
        assert analysis.entities.leave_type == "SICK"

    @pytest.mark.parametrize(
        "message,kind",
        [("show my leave requests", "leave"), ("show all my requests", "both"), ("show my requests", None)],
    )
    def test_request_kind(self, message, kind):
        """Ambiguous listing requests leave the kind open."""
        assert rule_analysis(message, TODAY).entities.request_kind == kind

    def test_holiday_count_in_month(self):
        """Counting questions with a month name."""
        entities = rule_analysis("how many holidays in november", TODAY).entities
        assert entities.count_only
        assert entities.month == 11
        assert not entities.upcoming

    def test_holiday_specific_date(self):
        """A date in a holiday question is a lookup."""
        entities = rule_analysis("is 9th november a holiday", TODAY).entities
        assert entities.date == date(2026, 11, 9)

    def test_holiday_next_month(self):
        """'next month' resolves against the reference date."""
        entities = rule_analysis("holidays next month", TODAY).entities
        assert (entities.month, entities.year) == (11, 2026)

    def test_holiday_upcoming(self):
        """'upcoming holidays' asks for holidays from today."""
        entities = rule_analysis("upcoming holidays", TODAY).entities
        assert entities.upcoming
        assert entities.month is None

    def test_holiday_year(self):
        """An explicit year is picked up."""
        assert rule_analysis("holidays in 2026", TODAY).entities.year == 2026

    def test_intent_override_uses_given_intent(self):
        """A supplied intent only borrows entity extraction."""
        analysis = rule_analysis("tomorrow", TODAY, intent="apply_wfh")
        assert analysis.intent == "apply_wfh"
        assert analysis.entities.date == date(2026, 10, 20)

    def test_general_query_confidence(self):
        """General queries have low confidence."""
        analysis = rule_analysis("tell me a joke", TODAY)
        assert analysis.intent == "general_query"
        assert analysis.confidence == 0.5
