"""
Security callbacks for the LLM agents.
Run before and after every model call made by the intent service.
"""

import logging
import re

from google.adk.models.llm_response import LlmResponse
from google.genai import types

logger = logging.getLogger(__name__)

# Patterns for PII detection
PII_PATTERNS = {
    "email": r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b",
    "phone": r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b",
    "ssn": r"\b\d{3}-\d{2}-\d{4}\b",
    "credit_card": r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b",
}

# Malicious prompt patterns
MALICIOUS_PATTERNS = [
    r"ignore (all )?previous instructions",
    r"disregard.*rules",
    r"you are now",
    r"<script>",
    r"DROP TABLE",
    r"SELECT \* FROM",
    r"\.\./\.\./",  # Path traversal
]

REFUSAL_TEXT = "Invalid input detected. Please rephrase your question."


def screen_input(text: str) -> str | None:
    """
    Check one user message.

    Logs any PII types found. Returns the matching malicious pattern, or
    None when the text may be sent to the model.
    """
    for pii_type, pattern in PII_PATTERNS.items():
        if re.search(pattern, text or "", re.IGNORECASE):
            logger.warning(f"PII detected in input: {pii_type}")

    for pattern in MALICIOUS_PATTERNS:
        if re.search(pattern, text or "", re.IGNORECASE):
            logger.error(f"Malicious prompt detected: {pattern}")
            return pattern
    return None


def redact_output(text: str) -> str:
    # Redact SSNs in output (just in case)
    text = re.sub(r"\b\d{3}-\d{2}-\d{4}\b", "XXX-XX-XXXX", text)
    # Redact full email addresses (keep domain for context)
    return re.sub(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Z|a-z]{2,})\b", r"****@\2", text)


def _user_texts(llm_request) -> list[str]:
    texts = []
    for content in getattr(llm_request, "contents", None) or []:
        if getattr(content, "role", None) != "user":
            continue
        for part in content.parts or []:
            if part.text:
                texts.append(part.text)
    return texts


def before_model_callback(callback_context=None, llm_request=None) -> LlmResponse | None:
    """
    Runs BEFORE the request reaches the model.

    Returning an ``LlmResponse`` short-circuits the call: prompt-injection
    attempts get a fixed refusal instead of a model answer.
    """
    for text in _user_texts(llm_request):
        if screen_input(text):
            return LlmResponse(
                content=types.Content(role="model", parts=[types.Part(text=REFUSAL_TEXT)])
            )
    return None


def after_model_callback(callback_context=None, llm_response=None) -> LlmResponse | None:
    """Runs AFTER the model answers; redacts PII from the text parts in place."""
    content = getattr(llm_response, "content", None)
    if content is None or not content.parts:
        return None

    total = 0
    for part in content.parts:
        if part.text:
            part.text = redact_output(part.text)
            total += len(part.text)

    # Log for audit trail
    logger.info(f"Model response generated: {total} characters")
    return None
