"""
Deterministic conversation state.

Drafts accumulate the fields of a leave or WFH request across turns; the
step tells the flow which slot it is waiting for. LLMs are probabilistic,
HR workflows are not, so required fields are tracked here rather than left
to the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from hr_assistant.date_parser import coerce_date, date_parser, to_iso


class FlowStep(str, Enum):
    """Slot-filling steps: start -> date -> reason -> type (leave only) -> confirm."""

    START = "start"
    DATE = "date"
    REASON = "reason"
    TYPE = "type"
    CONFIRM = "confirm"


@dataclass
class EmployeeIdentity:
    name: str | None = None
    email: str | None = None
    employee_id: str | None = None
    gender: str | None = None


@dataclass
class LeaveRequestDraft:
    start_date: date | None = None
    end_date: date | None = None
    leave_type: str | None = None
    reason: str | None = None
    employee_name: str | None = None
    duration_days: float | int | None = None
    is_half_day: bool = False
    is_exception: bool = False
    errors: list[str] = field(default_factory=list)
    step: FlowStep = FlowStep.START

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.start_date:
            missing.append("start_date")
        if not self.reason:
            missing.append("reason")
        if not self.leave_type:
            missing.append("leave_type")
        return missing

    def is_complete(self) -> bool:
        return len(self.missing_fields()) == 0

    def apply_defaults(self, holiday_dates=()) -> "LeaveRequestDraft":
        """Fill the end date and day count from what is already known."""
        if self.start_date is None:
            return self
        if self.is_half_day:
            self.end_date = self.start_date
            self.duration_days = 0.5
        elif self.end_date is None:
            self.end_date = self.start_date
        if not self.duration_days:
            self.duration_days = date_parser.calculate_inclusive_days(
                self.start_date, self.end_date, holiday_dates=holiday_dates
            )
        return self

    def requested_days(self) -> float | int:
        if self.duration_days and self.duration_days > 0:
            return self.duration_days
        return date_parser.calculate_inclusive_days(
            self.start_date, self.end_date or self.start_date, self.is_half_day
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "start_date": to_iso(self.start_date),
            "end_date": to_iso(self.end_date),
            "leave_type": self.leave_type,
            "reason": self.reason,
            "employee_name": self.employee_name,
            "duration_days": self.duration_days,
            "is_half_day": self.is_half_day,
            "is_exception": self.is_exception,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "LeaveRequestDraft":
        return cls(
            start_date=coerce_date(payload.get("start_date")),
            end_date=coerce_date(payload.get("end_date")),
            leave_type=payload.get("leave_type"),
            reason=payload.get("reason"),
            employee_name=payload.get("employee_name"),
            duration_days=payload.get("duration_days"),
            is_half_day=bool(payload.get("is_half_day")),
            is_exception=bool(payload.get("is_exception")),
            step=FlowStep.CONFIRM,
        )


@dataclass
class WfhRequestDraft:
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None
    employee_name: str | None = None
    is_exception: bool = False
    step: FlowStep = FlowStep.START

    @property
    def date(self) -> date | None:
        return self.start_date

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.start_date:
            missing.append("date")
        if not self.reason:
            missing.append("reason")
        return missing

    def is_complete(self) -> bool:
        return len(self.missing_fields()) == 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "date": to_iso(self.start_date),
            "start_date": to_iso(self.start_date),
            "end_date": to_iso(self.end_date or self.start_date),
            "reason": self.reason,
            "employee_name": self.employee_name,
            "is_exception": self.is_exception,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WfhRequestDraft":
        start = coerce_date(payload.get("start_date") or payload.get("date"))
        return cls(
            start_date=start,
            end_date=coerce_date(payload.get("end_date")) or start,
            reason=payload.get("reason"),
            employee_name=payload.get("employee_name"),
            is_exception=bool(payload.get("is_exception")),
            step=FlowStep.CONFIRM,
        )


@dataclass
class PendingConfirmation:
    """A validated draft waiting for an explicit yes/no."""

    kind: str  # "leave" or "wfh"
    draft: LeaveRequestDraft | WfhRequestDraft

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.kind, "details": self.draft.to_payload()}

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "PendingConfirmation | None":
        if not payload or not isinstance(payload.get("details"), dict):
            return None
        kind = payload.get("type")
        if kind == "leave":
            return cls("leave", LeaveRequestDraft.from_payload(payload["details"]))
        if kind == "wfh":
            return cls("wfh", WfhRequestDraft.from_payload(payload["details"]))
        return None


@dataclass
class ExceptionOffer:
    """A draft that failed the balance or WFH allowance check, awaiting yes/no."""

    kind: str
    draft: LeaveRequestDraft | WfhRequestDraft
    reason_code: str
