"""
Rule-based entity extraction.

Pulls leave/WFH details (dates, duration, leave type, reason) out of a chat
message using the date parser plus keyword rules, and reads yes/no replies.
Used directly by the conversation flows and as the rule fallback of the
intent service.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date

from hr_assistant.date_parser import ERROR_NO_TEXT, ERROR_UNPARSEABLE, date_parser

logger = logging.getLogger(__name__)

LEAVE_TYPES = ("ANNUAL", "SICK", "CASUAL", "MATERNITY", "PATERNITY")

_LEAVE_TYPE_KEYWORD = re.compile(r"\b(annual|sick|casual|maternity|paternity)\b")

_SICK_WORDS = re.compile(
    r"\b(fever|cold|flu|illness|doctor|hospital|medical|appointment|surgery|unwell|sick|"
    r"health|cough|pain|headache|stomach|viral|infection)\b"
)
_CASUAL_WORDS = re.compile(
    r"\b(wedding|marriage|festival|temple|church|mosque|ceremony|function|personal|family|"
    r"home|urgent|emergency|birthday|anniversary|pongal|diwali|deepavali|christmas|eid|"
    r"bakrid|ramzan|onam|holi|navratri|ganesh|dussehra|new year|lohri|baisakhi|vishu|"
    r"raksha bandhan|muharram|ugadi|good friday|easter|janmashtami|makar sankranti|bihu|"
    r"chhath|republic day|independence day|gandhi jayanti)\b"
)
_ANNUAL_WORDS = re.compile(
    r"\b(vacation|holiday|trip|travel|tour|visit|break|rest|relax|beach|mountain)\b"
)

_HALF_DAY_TEXT = re.compile(r"\b(?:a |an )?half(?:[- ]?a)?[- ]?days?\b", re.IGNORECASE)

_MONTHS = (
    "jan|january|feb|february|mar|march|apr|april|may|jun|june|jul|july|aug|august|"
    "sep|sept|september|oct|october|nov|november|dec|december"
)

# Applied in order to strip everything that is not the reason itself
_REASON_NOISE = [
    (r"\b(apply|applying|request|requesting|create|submit)\b", ""),
    (r"\b(leave|leaves)\b", ""),
    (r"\b(annual|sick|casual|maternity|paternity)\b", ""),
    (r"\b(wfh|work from home|working from home)\b", ""),
    (r"\bhalf(?:[- ]?a)?[- ]?days?\b", ""),
    (r"\b\d+(?:\.\d+)?\s*(?:day|days)\b", ""),
    (r"\b(day after tomorrow|today|tomorrow|yesterday)\b", ""),
    (r"\b(this|next|coming|last)\s+(week|month|year|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", ""),
    (r"\b\d{4}-\d{1,2}-\d{1,2}\b", ""),
    (r"\b\d{1,2}[-/.]\d{1,2}(?:[-/.]\d{4})?\b", ""),
    (rf"\b\d{{1,2}}(?:th|st|nd|rd)?\s+(?:of\s+)?(?:{_MONTHS})\b(?:\s*\d{{4}})?", ""),
    (rf"\b(?:{_MONTHS})\s+\d{{1,2}}(?:th|st|nd|rd)?\b(?:\s*\d{{4}})?", ""),
    (r"\b\d{1,2}(?:th|st|nd|rd)\b", ""),
    (r"\b(on|from)\s+", ""),
    (r"\b(i|want|need|to|a|an|the|my|for|at|in|of|me)\b", ""),
    (r"\b(please|can|could|would|will|shall|kindly)\b", ""),
]
_REASON_NOISE = [(re.compile(p, re.IGNORECASE), r) for p, r in _REASON_NOISE]

_GENERIC_REASONS = {"personal", "work", "reason", "purpose"}

_ON_DATE_FOR = re.compile(
    r"\d{1,2}[-/.]\d{1,2}[-/.]\d{4}\s+for\s+(.+?)$|"
    r"\bon\s+\d{1,2}(?:th|st|nd|rd)?\s+\w+\s+(?:\d{4}\s+)?for\s+(.+?)$",
    re.IGNORECASE,
)
_FOR_REASON = re.compile(r"\bfor\s+(.+?)(?:\s+on\b|\s+from\b|\s+\d{1,2}[-/.]\d|$)", re.IGNORECASE)
_BECAUSE_REASON = re.compile(r"\b(?:because(?:\s+of)?|due\s+to)\s+(.+?)$", re.IGNORECASE)

_YES_WORDS = ("yes", "yeah", "yep", "sure", "ok", "okay", "correct", "right", "confirm", "proceed", "approve")
_NO_WORDS = ("no", "nope", "nah", "cancel", "nevermind", "never mind", "stop", "wrong")


@dataclass
class LeaveDetails:
    start_date: date | None = None
    end_date: date | None = None
    leave_type: str | None = None
    reason: str | None = None
    duration_days: float | int | None = None
    is_half_day: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class WfhDetails:
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None
    errors: list[str] = field(default_factory=list)


def extract_leave_type(message: str, infer: bool = True) -> str | None:
    """Explicit leave type keyword, else (when infer is set) a type inferred from context words."""
    lower = (message or "").lower()

    explicit = _LEAVE_TYPE_KEYWORD.search(lower)
    if explicit:
        return explicit.group(1).upper()
    if not infer:
        return None

    if _SICK_WORDS.search(lower):
        return "SICK"
    if _CASUAL_WORDS.search(lower):
        return "CASUAL"
    if _ANNUAL_WORDS.search(lower):
        return "ANNUAL"
    return None


def normalize_leave_type(value) -> str | None:
    """Map free-form labels such as "Sick Leave" or "casual" onto a known type."""
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip().upper().replace("LEAVE", "").strip()
    return candidate if candidate in LEAVE_TYPES else None


def clean_reason(text: str) -> str | None:
    cleaned = text or ""
    for pattern, replacement in _REASON_NOISE:
        cleaned = pattern.sub(replacement, cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" ,.;:!?-")

    if len(cleaned) < 3:
        return None
    if cleaned.lower() in _GENERIC_REASONS:
        return "Personal"
    return cleaned


def extract_reason(message: str, explicit_only: bool = False) -> str | None:
    """
    Find the reason in a request message.

    Tries explicit markers first ("<date> for X", "for X", "because X"); unless
    explicit_only is set, falls back to whatever is left once dates, leave
    keywords and filler words are removed.
    """
    text = (message or "").strip()
    if not text:
        return None

    match = _ON_DATE_FOR.search(text)
    if match:
        reason = clean_reason(match.group(1) or match.group(2))
        if reason:
            return reason

    match = _FOR_REASON.search(text)
    if match:
        reason = clean_reason(match.group(1))
        if reason and len(reason) > 2:
            return reason

    match = _BECAUSE_REASON.search(text)
    if match:
        reason = clean_reason(match.group(1))
        if reason:
            return reason

    if explicit_only:
        return None

    leftover = clean_reason(text)
    if leftover and 5 < len(leftover) < 200:
        return leftover
    return None


def default_reason(message: str) -> str:
    lower = (message or "").lower()
    if re.search(r"\b(sick|fever|cold|doctor|hospital)\b", lower):
        return "Medical reasons"
    if re.search(r"\b(wedding|marriage)\b", lower):
        return "Family wedding"
    if re.search(r"\b(emergency|urgent)\b", lower):
        return "Emergency"
    if re.search(r"\b(vacation|trip|travel)\b", lower):
        return "Vacation"
    return "Personal"


def _parse_request_dates(text: str, reference_date: date):
    result = date_parser.parse_dates(text, reference_date)
    # "No date at all" is not an error for extraction; only malformed dates are.
    errors = [e for e in result.errors if e not in (ERROR_NO_TEXT, ERROR_UNPARSEABLE)]
    return result, errors


def extract_leave_details(
    message: str, reference_date: date | None = None, explicit_reason_only: bool = False
) -> LeaveDetails:
    reference = reference_date or date.today()
    result, errors = _parse_request_dates(message, reference)
    duration = date_parser.parse_duration(message)

    start = result.start_date
    end = result.end_date or start
    if errors:
        start = end = None

    duration_days = None
    is_half_day = duration.is_half_day

    if start is not None:
        if is_half_day:
            end = start
            duration_days = 0.5
        elif duration.has_explicit_duration and duration.days and not result.is_range:
            projected = date_parser.project_end_date(start, duration.days)
            end = date_parser.reconcile_end_date(start, projected, duration.days)
            duration_days = duration.days
        else:
            duration_days = date_parser.calculate_inclusive_days(start, end)
    elif duration.has_explicit_duration:
        duration_days = duration.days

    reason = extract_reason(message, explicit_only=explicit_reason_only)
    if reason:
        reason = _HALF_DAY_TEXT.sub("", reason)
        reason = re.sub(r"\s+", " ", reason).strip() or None

    return LeaveDetails(
        start_date=start,
        end_date=end,
        leave_type=extract_leave_type(message),
        reason=reason,
        duration_days=duration_days,
        is_half_day=is_half_day,
        errors=errors,
    )


def extract_wfh_details(
    message: str, reference_date: date | None = None, explicit_reason_only: bool = False
) -> WfhDetails:
    reference = reference_date or date.today()
    # "work from home" would otherwise read as the start of a "from X to Y" range
    sanitized = re.sub(r"work(?:ing)?\s+from\s+home", "wfh", message or "", flags=re.IGNORECASE)
    sanitized = re.sub(r"from\s+home", "home", sanitized, flags=re.IGNORECASE)

    result, errors = _parse_request_dates(sanitized, reference)
    start = None if errors else result.start_date
    end = None if errors else (result.end_date or start)

    return WfhDetails(
        start_date=start,
        end_date=end,
        reason=extract_reason(sanitized, explicit_only=explicit_reason_only),
        errors=errors,
    )


def _matches_vocabulary(normalized: str, words) -> bool:
    return any(normalized == word or normalized.startswith(word + " ") for word in words)


def extract_confirmation(message: str) -> str | None:
    """Return "yes", "no" or None; only whole leading words count."""
    normalized = re.sub(r"[.!?,]", "", (message or "").strip().lower()).strip()
    if not normalized:
        return None
    if _matches_vocabulary(normalized, _YES_WORDS):
        return "yes"
    if _matches_vocabulary(normalized, _NO_WORDS):
        return "no"
    return None


def is_cancel_request(message: str) -> bool:
    return bool(re.search(r"\b(cancel|stop|reset)\b", (message or "").lower()))


def requested_record_kind(message: str) -> str:
    """Which records a listing request refers to: "leave", "wfh" or "both"."""
    lower = (message or "").lower()
    if "leave" in lower:
        return "leave"
    if re.search(r"\b(wfh|remote)\b|work[- ]from[- ]home", lower):
        return "wfh"
    return "both"
