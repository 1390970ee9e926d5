"""
Typed boundary models.

Everything that crosses a process boundary (LLM JSON, client payloads, HTTP
bodies) is validated here so the conversation flows never guess at shapes.
"""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hr_assistant.date_parser import MONTHS, coerce_date
from hr_assistant.entity_extractor import normalize_leave_type

INTENTS = (
    "apply_leave",
    "apply_wfh",
    "leave_balance",
    "view_requests",
    "holiday_list",
    "greeting",
    "leave_policy",
    "wfh_policy",
    "general_query",
)


class IntentEntities(BaseModel):
    """
    Entity bag returned by intent classification.

    Accepts camelCase or snake_case keys. Values that do not survive
    validation (a malformed date, an unknown leave type) become None rather
    than failing the whole analysis.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    date: dt.date | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    leave_type: str | None = None
    reason: str | None = None
    month: int | None = None
    year: int | None = None
    request_kind: str | None = Field(default=None, alias="type")
    count_only: bool = False
    upcoming: bool = False

    @field_validator("date", "start_date", "end_date", mode="before")
    @classmethod
    def _valid_iso_date(cls, value):
        return coerce_date(value)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _known_leave_type(cls, value):
        return normalize_leave_type(value)

    @field_validator("reason", mode="before")
    @classmethod
    def _non_blank_reason(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("month", mode="before")
    @classmethod
    def _month_number(cls, value):
        if isinstance(value, str):
            stripped = value.strip().lower()
            if stripped.isdigit():
                value = int(stripped)
            else:
                return MONTHS.get(stripped)
        if isinstance(value, int) and 1 <= value <= 12:
            return value
        return None

    @field_validator("year", mode="before")
    @classmethod
    def _plausible_year(cls, value):
        try:
            year = int(value)
        except (TypeError, ValueError):
            return None
        return year if 1900 <= year <= 9999 else None

    @field_validator("request_kind", mode="before")
    @classmethod
    def _request_kind(cls, value):
        if isinstance(value, str) and value.lower() in ("leave", "wfh", "both"):
            return value.lower()
        return None


class IntentAnalysis(BaseModel):
    intent: str = "general_query"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    entities: IntentEntities = Field(default_factory=IntentEntities)
    source: str = "rules"

    @field_validator("intent", mode="before")
    @classmethod
    def _known_intent(cls, value):
        if isinstance(value, str) and value.strip().lower() in INTENTS:
            return value.strip().lower()
        return "general_query"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        try:
            return min(max(float(value), 0.0), 1.0)
        except (TypeError, ValueError):
            return 0.5


class EditDetails(BaseModel):
    """Fields submitted from the client-side edit form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    date: dt.date | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    leave_type: str | None = None
    reason: str | None = None
    is_half_day: bool | None = None

    @field_validator("date", "start_date", "end_date", mode="before")
    @classmethod
    def _valid_iso_date(cls, value):
        return coerce_date(value)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _known_leave_type(cls, value):
        return normalize_leave_type(value)


class StructuredPayload(BaseModel):
    """Non-text inputs that accompany (or replace) a chat message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    edit_details: EditDetails | None = Field(default=None, alias="editDetails")
    confirmation_action: str | None = Field(default=None, alias="confirmationAction")
    intent_override: str | None = Field(default=None, alias="intentOverride")
    pending_request: dict[str, Any] | None = Field(default=None, alias="pendingRequest")
    employee_email: str | None = Field(default=None, alias="employeeEmail")
    employee_name: str | None = Field(default=None, alias="employeeName")

    @field_validator("confirmation_action", "intent_override", mode="before")
    @classmethod
    def _lowercase(cls, value):
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return None


class ChatReply(BaseModel):
    """Result of handling one message."""

    reply: str
    intent: str
    show_buttons: bool | None = None
    pending_request: dict[str, Any] | None = None
    show_form: bool | None = None
    details: dict[str, Any] | None = None


# Pydantic models for API


class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "2 days casual leave from tomorrow",
                "session_id": "session_123",
                "employee_email": "john.doe@company.com",
            }
        },
    )

    message: str | None = Field(None, description="User's message")
    session_id: str = Field(..., description="Session identifier for conversation tracking")
    edit_details: EditDetails | None = Field(None, alias="editDetails")
    confirmation_action: str | None = Field(None, alias="confirmationAction")
    intent_override: str | None = Field(None, alias="intentOverride")
    pending_request: dict[str, Any] | None = Field(None, alias="pendingRequest")
    employee_email: str | None = Field(None, alias="employeeEmail")
    employee_name: str | None = Field(None, alias="employeeName")

    def to_payload(self) -> StructuredPayload:
        return StructuredPayload(
            edit_details=self.edit_details,
            confirmation_action=self.confirmation_action,
            intent_override=self.intent_override,
            pending_request=self.pending_request,
            employee_email=self.employee_email,
            employee_name=self.employee_name,
        )


class ChatResponse(ChatReply):
    """Response model for chat endpoint."""

    session_id: str = Field(..., description="Session identifier")
    timestamp: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    record_store_circuit_breaker: dict | None = None
