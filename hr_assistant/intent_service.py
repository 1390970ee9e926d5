"""
Intent/entity collaborator.

``classify`` answers "what does the user want, with which entities": the
rule fast path handles the unambiguous cases, everything else goes to a
Google ADK agent running on a LiteLLM model. Any LLM problem (no API key,
timeout, transport error, unparseable JSON, open circuit) degrades to the
rule result; the conversation never sees an LLM error.

``respond`` produces a free-text reply for general questions.
"""

import asyncio
import json
import logging
import re
import uuid
from datetime import date

from google.adk import Agent
from google.adk.models.lite_llm import LiteLlm
from google.adk.runners import InMemoryRunner
from google.genai import types

from hr_assistant.callbacks import after_model_callback, before_model_callback
from hr_assistant.circuit_breaker import CircuitBreaker
from hr_assistant.config import settings
from hr_assistant.intent_rules import rule_analysis
from hr_assistant.observability import trace_span
from hr_assistant.replies import HELP_REPLY
from hr_assistant.schemas import INTENTS, IntentAnalysis
from hr_assistant.session_store import SessionContext

logger = logging.getLogger(__name__)

FAST_TRACK_INTENTS = ("view_requests", "holiday_list", "greeting")
FALLBACK_CONFIDENCE = 0.6

CLASSIFIER_INSTRUCTION = f"""You are the intent classifier of an HR assistant.

Carefully understand the user's message, even if it is phrased in an unusual
or indirect way, and map it to the closest system intent:

- apply_leave: user wants to request time off
- apply_wfh: user wants to work from home
- leave_balance: check remaining leaves
- holiday_list: view company holidays (a list, a count, or whether a date is a holiday)
- leave_policy: questions about leave policies
- wfh_policy: questions about WFH policies
- view_requests: see existing leave/WFH requests
- greeting: simple greeting or small talk
- general_query: any other HR question

Extract entities: dates as YYYY-MM-DD, leave type as one of
ANNUAL|SICK|CASUAL|MATERNITY|PATERNITY, the reason, and for holiday questions
the month (1-12), year and whether only a count was asked for. If a year is
not specified, use the year of the current date given in the message.

Respond in JSON ONLY, no prose:
{{"intent": "<one of {", ".join(INTENTS)}>", "confidence": <0.0-1.0>,
  "entities": {{"date": "YYYY-MM-DD", "startDate": "YYYY-MM-DD", "endDate": "YYYY-MM-DD",
  "leaveType": "...", "reason": "...", "month": 1, "year": 2026, "countOnly": false}}}}
"""

RESPONDER_INSTRUCTION = """You are a friendly, professional HR assistant for our company.

You help employees apply for leave and work-from-home, check leave balances,
view their requests, and understand company holidays and policies.

Guidelines:
- Be concise and clear; explain policies in simple terms.
- Never invent balances, approvals or policy numbers. Suggest the matching
  command instead ("check leave balance", "holiday list", "apply for leave").
- Only discuss the employee who is asking; never share other employees' data.
- For topics outside HR leave and WFH, politely point the employee to HR.
"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_analysis(text: str) -> IntentAnalysis:
    """Validate the classifier's JSON into an ``IntentAnalysis``; raises ValueError."""
    cleaned = _CODE_FENCE.sub("", (text or "").strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end < start:
        raise ValueError("No JSON object in model output")
    payload = json.loads(cleaned[start : end + 1])
    if not isinstance(payload, dict):
        raise ValueError("Model output is not a JSON object")
    payload["source"] = "llm"
    return IntentAnalysis.model_validate(payload)


class IntentService:
    """Rules first, LLM second, rules again when the LLM fails."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.model_name = model or settings.litellm_model
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            name="LLMCircuitBreaker",
        )
        self.app_name = "hr_assistant"
        self._classifier: InMemoryRunner | None = None
        self._responder: InMemoryRunner | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _runner(self, name: str, instruction: str) -> InMemoryRunner:
        model = LiteLlm(model=self.model_name, api_key=self.api_key)
        agent = Agent(
            name=name,
            model=model,
            description="HR assistant " + name.replace("_", " "),
            instruction=instruction,
            before_model_callback=before_model_callback,
            after_model_callback=after_model_callback,
        )
        return InMemoryRunner(agent=agent, app_name=self.app_name)

    @property
    def classifier(self) -> InMemoryRunner:
        if self._classifier is None:
            self._classifier = self._runner("intent_classifier", CLASSIFIER_INSTRUCTION)
        return self._classifier

    @property
    def responder(self) -> InMemoryRunner:
        if self._responder is None:
            self._responder = self._runner("hr_responder", RESPONDER_INSTRUCTION)
        return self._responder

    async def _run_agent(self, runner: InMemoryRunner, prompt: str) -> str:
        """One-shot agent run on a fresh ADK session; returns the final text."""
        user_id = "hr_assistant"
        session_id = uuid.uuid4().hex
        await runner.session_service.create_session(
            app_name=self.app_name, user_id=user_id, session_id=session_id
        )
        content = types.Content(role="user", parts=[types.Part(text=prompt)])

        final_response_text = None
        async for event in runner.run_async(
            user_id=user_id, session_id=session_id, new_message=content
        ):
            if event.is_final_response():
                if event.content and event.content.parts:
                    final_response_text = event.content.parts[0].text
                break
        return final_response_text or ""

    async def _bounded(self, runner: InMemoryRunner, prompt: str) -> str:
        return await asyncio.wait_for(self._run_agent(runner, prompt), self.timeout)

    async def _call_llm(self, runner: InMemoryRunner, prompt: str) -> str:
        return await self.circuit_breaker.call_async(self._bounded, runner, prompt)

    async def classify(
        self, message: str, context: SessionContext | None = None, reference_date: date | None = None
    ) -> IntentAnalysis:
        today = reference_date or date.today()
        rules = rule_analysis(message, today)

        if rules.intent in FAST_TRACK_INTENTS:
            return rules.model_copy(update={"confidence": 1.0})

        if rules.intent in ("apply_leave", "apply_wfh"):
            entities = rules.entities
            if entities.start_date or entities.date:
                logger.info(f"Fast-tracking {rules.intent} (date found via rules)")
                return rules.model_copy(update={"confidence": 0.9})

        if not self.enabled:
            return rules

        active_flow = context.active_flow if context else None
        prompt = (
            f"Current date: {today.strftime('%A, %B %d, %Y')} ({today.isoformat()})\n"
            f"Active request flow: {active_flow or 'none'}\n"
            f'User message: "{message}"'
        )
        try:
            with trace_span("llm.classify", session=context.session_id if context else None):
                text = await self._call_llm(self.classifier, prompt)
            analysis = parse_analysis(text)
        except Exception as e:
            logger.warning(f"Intent analysis failed, falling back to rules: {e}")
            return rules.model_copy(update={"confidence": FALLBACK_CONFIDENCE, "source": "fallback"})

        logger.info(f"LLM intent: {analysis.intent} ({analysis.confidence:.2f})")
        return analysis

    async def respond(self, message: str, context: SessionContext | None = None) -> str:
        if not self.enabled:
            return HELP_REPLY

        lines = []
        if context is not None:
            for entry in context.history[-5:]:
                lines.append(f"User: {entry.message}\nDetected Intent: {entry.intent}")
            if context.identity.name:
                lines.append(f"Employee Name: {context.identity.name}")
        history = "\n---\n".join(lines)
        prompt = f"{history}\n\nEmployee message: {message}" if history else message

        try:
            with trace_span("llm.respond", session=context.session_id if context else None):
                text = await self._call_llm(self.responder, prompt)
        except Exception as e:
            logger.error(f"Response generation failed: {e}")
            return HELP_REPLY

        return text.strip() or HELP_REPLY
