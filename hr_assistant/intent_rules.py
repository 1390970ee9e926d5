"""
Rule-based intent detection.

A priority-ordered list of named rules; the first rule whose predicate
matches decides the intent and its extractor fills the entity bag. This is
the deterministic fast path of the intent service and its fallback whenever
the LLM is unavailable.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from hr_assistant.date_parser import MONTHS, date_parser
from hr_assistant.entity_extractor import (
    extract_leave_details,
    extract_leave_type,
    extract_wfh_details,
    requested_record_kind,
)
from hr_assistant.schemas import IntentAnalysis, IntentEntities

logger = logging.getLogger(__name__)

_VIEW_REQUESTS = re.compile(
    r"\b(show|view|list|see|check)\b.*\b(requests?|applications?)\b|\bmy\s+(requests|applications)\b"
)
_GREETING_WORDS = {"hello", "hi", "hey", "hii", "hiii", "helo", "greetings", "howdy"}
_GREETING_PHRASES = re.compile(r"\bgood\s+(morning|afternoon|evening)\b")
_WFH = re.compile(r"\bwfh\b|\bwork(?:ing)?[- ]from[- ]home\b|\bremote\s+work\b")
_WFH_POLICY = re.compile(
    r"\b(policy|policies|what is|explain|rules|procedure|how to|how can|details|guidelines)\b"
)
_HOLIDAY = re.compile(r"\bholidays?\b")
_LEAVE = re.compile(r"\bleaves?\b|\bday off\b|\btime off\b")
_BALANCE = re.compile(r"\b(balance|remaining|left|available|how many|count)\b")
_LEAVE_POLICY = re.compile(r"\b(policy|policies|what is|explain|rules)\b")
_APPLY = re.compile(r"\b(apply|want|need|take|request|submit|book|tomorrow|today|next week)\b")
_DATE_HINT = re.compile(r"\d{1,2}(?:th|st|nd|rd)\b|\d{1,2}[./-]\d{1,2}")

_HOLIDAY_COUNT = re.compile(r"\b(how many|count|number of)\b")
_HOLIDAY_UPCOMING = re.compile(r"\b(upcoming|next|remaining|coming)\b")
_RELATIVE_MONTH = re.compile(r"\b(this|next)\s+month\b")
_YEAR = re.compile(r"\b(20\d{2})\b")
_MONTH_WORD = re.compile(
    r"\b(" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\b(?!\s+i\b)"
)


@dataclass(frozen=True)
class IntentRule:
    name: str
    predicate: Callable[[str], bool]
    extractor: Callable[[str, str, date], IntentEntities] | None = None


def _is_greeting(lower: str) -> bool:
    words = re.findall(r"[a-z']+", lower)
    if not words or len(words) > 3:
        return False
    return bool(_GREETING_WORDS.intersection(words) or _GREETING_PHRASES.search(lower))


def _is_holiday_query(lower: str) -> bool:
    return bool(_HOLIDAY.search(lower)) and not _LEAVE.search(lower)


def _is_leave_balance(lower: str) -> bool:
    return bool(_LEAVE.search(lower) and _BALANCE.search(lower))


def _is_leave_policy(lower: str) -> bool:
    return bool(_LEAVE.search(lower) and _LEAVE_POLICY.search(lower))


def _is_leave_application(lower: str) -> bool:
    if not _LEAVE.search(lower):
        return False
    if _APPLY.search(lower) or _DATE_HINT.search(lower):
        return True
    duration = date_parser.parse_duration(lower)
    return duration.has_explicit_duration or duration.is_half_day or date_parser.parse_dates(lower).ok


# Entity extractors


def _leave_entities(message: str, lower: str, today: date) -> IntentEntities:
    details = extract_leave_details(message, today, explicit_reason_only=True)
    return IntentEntities(
        start_date=details.start_date,
        end_date=details.end_date,
        leave_type=extract_leave_type(message, infer=False),
        reason=details.reason,
    )


def _wfh_entities(message: str, lower: str, today: date) -> IntentEntities:
    details = extract_wfh_details(message, today, explicit_reason_only=True)
    return IntentEntities(
        date=details.start_date,
        start_date=details.start_date,
        end_date=details.end_date,
        reason=details.reason,
    )


def _balance_entities(message: str, lower: str, today: date) -> IntentEntities:
    return IntentEntities(leave_type=extract_leave_type(message, infer=False))


def _request_entities(message: str, lower: str, today: date) -> IntentEntities:
    kind = requested_record_kind(message)
    if kind == "both" and not re.search(r"\b(all|both|everything)\b", lower):
        kind = None
    return IntentEntities(request_kind=kind)


def _holiday_entities(message: str, lower: str, today: date) -> IntentEntities:
    entities = IntentEntities(
        count_only=bool(_HOLIDAY_COUNT.search(lower)),
        upcoming=bool(_HOLIDAY_UPCOMING.search(lower)),
    )

    year = _YEAR.search(lower)
    if year:
        entities.year = int(year.group(1))

    if _DATE_HINT.search(lower):
        parsed = date_parser.parse_single_date(message, today)
        if parsed.ok:
            entities.date = parsed.start_date
            return entities

    relative = _RELATIVE_MONTH.search(lower)
    if relative:
        month = today.month + (1 if relative.group(1) == "next" else 0)
        year_value = today.year
        if month > 12:
            month, year_value = 1, year_value + 1
        entities.month = month
        entities.year = entities.year or year_value
        entities.upcoming = False
        return entities

    month = _MONTH_WORD.search(lower)
    if month:
        entities.month = MONTHS[month.group(1)]
        entities.upcoming = False
    return entities


RULES: list[IntentRule] = [
    IntentRule("view_requests", lambda lower: bool(_VIEW_REQUESTS.search(lower)), _request_entities),
    IntentRule("greeting", _is_greeting),
    IntentRule("wfh_policy", lambda lower: bool(_WFH.search(lower) and _WFH_POLICY.search(lower))),
    IntentRule("apply_wfh", lambda lower: bool(_WFH.search(lower)), _wfh_entities),
    IntentRule("holiday_list", _is_holiday_query, _holiday_entities),
    IntentRule("leave_balance", _is_leave_balance, _balance_entities),
    IntentRule("leave_policy", _is_leave_policy),
    IntentRule("apply_leave", _is_leave_application, _leave_entities),
]

_EXTRACTORS = {rule.name: rule.extractor for rule in RULES}


def detect_intent(message: str) -> str:
    lower = (message or "").lower()
    for rule in RULES:
        if rule.predicate(lower):
            return rule.name
    return "general_query"


def rule_analysis(message: str, today: date, intent: str | None = None) -> IntentAnalysis:
    """
    Classify with the rules and extract entities for the chosen intent.

    When ``intent`` is given (an override or an LLM decision) the rules only
    supply the entities for it.
    """
    lower = (message or "").lower()
    chosen = intent or detect_intent(message)
    extractor = _EXTRACTORS.get(chosen)
    entities = extractor(message or "", lower, today) if extractor else IntentEntities()
    confidence = 0.5 if chosen == "general_query" else 0.9
    logger.debug(f"Rule analysis: intent={chosen}")
    return IntentAnalysis(intent=chosen, confidence=confidence, entities=entities, source="rules")
