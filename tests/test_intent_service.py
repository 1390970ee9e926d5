"""
Tests for the intent service: rule fast path, LLM path and fallback.
The ADK runners are never built; the LLM call is mocked.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from hr_assistant.circuit_breaker import CircuitBreaker
from hr_assistant.intent_service import FALLBACK_CONFIDENCE, IntentService, parse_analysis
from hr_assistant.replies import HELP_REPLY
from hr_assistant.session_store import SessionContext

TODAY = date(2026, 10, 19)

LLM_LEAVE_JSON = (
    '{"intent": "apply_leave", "confidence": 0.85, '
    '"entities": {"startDate": "2026-10-26", "leaveType": "Annual Leave", "reason": "rest"}}'
)


@pytest.fixture
def llm_service():
    """Enabled service whose runners are placeholders."""
    service = IntentService(api_key="test-key", timeout=1)
    service._classifier = Mock()
    service._responder = Mock()
    return service


def _classify(service, message, context=None):
    return asyncio.run(service.classify(message, context, TODAY))


class TestParseAnalysis:
    """Validation of the classifier's JSON."""

    def test_valid_json(self):
        """Entities are normalised into the typed model."""
        analysis = parse_analysis(LLM_LEAVE_JSON)

        assert analysis.intent == "apply_leave"
        assert analysis.confidence == 0.85
        assert analysis.source == "llm"
        assert analysis.entities.start_date == date(2026, 10, 26)
        assert analysis.entities.leave_type == "ANNUAL"

    def test_code_fence_is_stripped(self):
        """Markdown fences around the JSON are tolerated."""
        analysis = parse_analysis('```json\n{"intent": "greeting", "confidence": 1}\n```')
        assert analysis.intent == "greeting"

    def test_unknown_intent_becomes_general_query(self):
        """Intents outside the known set are not trusted."""
        assert parse_analysis('{"intent": "book_flight"}').intent == "general_query"

    def test_invalid_entities_are_dropped(self):
        """Malformed dates and leave types become None."""
        analysis = parse_analysis(
            '{"intent": "apply_leave", "entities": {"startDate": "2026-02-31", "leaveType": "bonus"}}'
        )
        assert analysis.entities.start_date is None
        assert analysis.entities.leave_type is None

    def test_confidence_is_clamped(self):
        """Confidence stays within 0..1."""
        assert parse_analysis('{"intent": "greeting", "confidence": 7}').confidence == 1.0

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", "{broken"])
    def test_garbage_raises(self, text):
        """Unparseable output raises ValueError."""
        with pytest.raises(ValueError):
            parse_analysis(text)


class TestClassifyFastPath:
    """Rule results that never reach the LLM."""

    @pytest.mark.parametrize(
        "message,intent", [("hello", "greeting"), ("holiday list", "holiday_list"), ("show my requests", "view_requests")]
    )
    def test_fast_track_intents(self, llm_service, message, intent):
        """Unambiguous intents are answered by rules at full confidence."""
        llm_service._call_llm = AsyncMock()

        analysis = _classify(llm_service, message)

        assert analysis.intent == intent
        assert analysis.confidence == 1.0
        llm_service._call_llm.assert_not_called()

    def test_leave_with_date_is_fast_tracked(self, llm_service):
        """A leave request with a rule-found date skips the LLM."""
        llm_service._call_llm = AsyncMock()

        analysis = _classify(llm_service, "2 days casual leave from tomorrow")

        assert analysis.intent == "apply_leave"
        assert analysis.confidence == 0.9
        assert analysis.entities.start_date == date(2026, 10, 20)
        llm_service._call_llm.assert_not_called()

    def test_disabled_service_uses_rules(self):
        """Without an API key the rule result is returned as-is."""
        service = IntentService(api_key="")
        analysis = _classify(service, "I want to apply for leave")

        assert not service.enabled
        assert analysis.intent == "apply_leave"
        assert analysis.source == "rules"


class TestClassifyLlmPath:
    """LLM classification and degradation."""

    def test_llm_result_is_used(self, llm_service):
        """Ambiguous messages are classified by the LLM."""
        llm_service._call_llm = AsyncMock(return_value=LLM_LEAVE_JSON)

        analysis = _classify(llm_service, "I need some time away to rest")

        assert analysis.intent == "apply_leave"
        assert analysis.source == "llm"
        prompt = llm_service._call_llm.call_args.args[1]
        assert "2026-10-19" in prompt
        assert "I need some time away to rest" in prompt

    def test_active_flow_is_in_prompt(self, llm_service):
        """The prompt names the active request flow."""
        llm_service._call_llm = AsyncMock(return_value='{"intent": "general_query"}')
        context = SessionContext(session_id="s1")
        context.wfh_flow = Mock()

        _classify(llm_service, "something odd", context)

        assert "apply_wfh" in llm_service._call_llm.call_args.args[1]

    def test_llm_error_falls_back_to_rules(self, llm_service):
        """Transport errors degrade to rules at fallback confidence."""
        llm_service._call_llm = AsyncMock(side_effect=RuntimeError("connection refused"))

        analysis = _classify(llm_service, "I want to apply for leave")

        assert analysis.intent == "apply_leave"
        assert analysis.confidence == FALLBACK_CONFIDENCE
        assert analysis.source == "fallback"

    def test_invalid_json_falls_back_to_rules(self, llm_service):
        """Prose instead of JSON degrades to rules."""
        llm_service._call_llm = AsyncMock(return_value="Sure! The user wants leave.")

        analysis = _classify(llm_service, "what is the capital of France")

        assert analysis.intent == "general_query"
        assert analysis.source == "fallback"

    def test_timeout_falls_back_to_rules(self, llm_service):
        """A slow model is abandoned after the timeout."""
        llm_service.timeout = 0.01

        async def slow_agent(runner, prompt):
            await asyncio.sleep(1)
            return LLM_LEAVE_JSON

        llm_service._run_agent = slow_agent

        analysis = _classify(llm_service, "I want to apply for leave")

        assert analysis.source == "fallback"

    def test_open_circuit_stops_calling_the_model(self, llm_service):
        """After the failure threshold the model is no longer called."""
        llm_service.circuit_breaker = CircuitBreaker(failure_threshold=1, timeout=60, name="TestLLM")
        llm_service._run_agent = AsyncMock(side_effect=RuntimeError("503"))

        first = _classify(llm_service, "I want to apply for leave")
        second = _classify(llm_service, "I want to apply for leave")

        assert first.source == second.source == "fallback"
        assert llm_service._run_agent.call_count == 1


class TestRespond:
    """Free-text replies for general questions."""

    def test_disabled_returns_help(self):
        """Without an LLM the canned help reply is used."""
        service = IntentService(api_key="")
        assert asyncio.run(service.respond("what can you do?")) == HELP_REPLY

    def test_reply_uses_history(self, llm_service):
        """The prompt carries recent history and the employee name."""
        llm_service._call_llm = AsyncMock(return_value="  Happy to help!  ")
        context = SessionContext(session_id="s1")
        context.identity.name = "Priya Sharma"
        context.add_history("hello", "greeting", 10)

        reply = asyncio.run(llm_service.respond("what can you do?", context))

        assert reply == "Happy to help!"
        prompt = llm_service._call_llm.call_args.args[1]
        assert "Detected Intent: greeting" in prompt
        assert "Employee Name: Priya Sharma" in prompt

    def test_failure_returns_help(self, llm_service):
        """LLM failures never surface to the user."""
        llm_service._call_llm = AsyncMock(side_effect=asyncio.TimeoutError())
        assert asyncio.run(llm_service.respond("what can you do?")) == HELP_REPLY
