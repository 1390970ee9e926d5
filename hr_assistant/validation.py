"""
Validation gate for leave and WFH drafts.

Runs before a draft may be offered for confirmation, again after an edit and
once more at commit time:

1. holiday conflict
2. past start date
3. overlap with an existing active request
4. leave balance (leave only, skipped for exception requests)
5. weekly WFH allowance (WFH only, skipped for exception requests)

Failures are returned as a ``ValidationOutcome``, never raised. Balance and
allowance failures set ``offer_exception`` so the conversation can offer a
manager-reviewed exception instead of rejecting the request outright.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from hr_assistant.config import settings
from hr_assistant.conversation_state import EmployeeIdentity, LeaveRequestDraft, WfhRequestDraft
from hr_assistant.holiday_calendar import HolidayCalendar
from hr_assistant.record_store import RecordStore

logger = logging.getLogger(__name__)

HOLIDAY_CONFLICT = "holiday_conflict"
PAST_DATE = "past_date"
OVERLAP = "overlap"
INSUFFICIENT_BALANCE = "insufficient_balance"
WFH_LIMIT_EXCEEDED = "wfh_limit_exceeded"

EXCEPTION_QUESTION = (
    "Would you like to submit this as a special exception for your manager to review? (yes/no)"
)


@dataclass
class ValidationOutcome:
    success: bool
    reason_code: str | None = None
    message: str | None = None
    offer_exception: bool = False
    details: dict[str, Any] = field(default_factory=dict)


ACCEPTED = ValidationOutcome(success=True)


def format_days(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


def _plural_days(value: float) -> str:
    return f"{format_days(value)} day{'' if value == 1 else 's'}"


class ValidationGate:
    def __init__(
        self,
        record_store: RecordStore,
        holiday_calendar: HolidayCalendar,
        wfh_weekly_limit: int | None = None,
    ):
        self.record_store = record_store
        self.holiday_calendar = holiday_calendar
        self.wfh_weekly_limit = (
            wfh_weekly_limit if wfh_weekly_limit is not None else settings.wfh_weekly_limit
        )

    def check_dates(self, kind: str, start: date, end: date | None, today: date) -> ValidationOutcome:
        """Holiday and past-date checks; pure, no record-store access."""
        label = "leave" if kind == "leave" else "WFH"
        end = end or start

        holiday = self.holiday_calendar.find_conflict(start, end)
        if holiday is not None:
            return ValidationOutcome(
                success=False,
                reason_code=HOLIDAY_CONFLICT,
                message=(
                    f"❌ Cannot apply {label} on {holiday.date.isoformat()} ({holiday.name}). "
                    "It is a company holiday."
                ),
                details={"holiday_date": holiday.date.isoformat(), "holiday_name": holiday.name},
            )

        if start < today:
            return ValidationOutcome(
                success=False,
                reason_code=PAST_DATE,
                message=(
                    f"❌ Cannot apply {label} for a past date ({start.isoformat()}). "
                    "Please select today or a future date."
                ),
            )
        return ACCEPTED

    def _check_overlap(self, identity: EmployeeIdentity, start: date, end: date) -> ValidationOutcome:
        overlap = self.record_store.check_overlap(identity, start, end)
        if not overlap.has_overlap:
            return ACCEPTED

        existing = overlap.conflicting_requests[0]
        if existing.kind == "leave":
            what = (
                f"{existing.leave_type} leave from {existing.start_date.isoformat()} "
                f"to {existing.end_date.isoformat()}"
            )
        elif existing.start_date == existing.end_date:
            what = f"a WFH request on {existing.start_date.isoformat()}"
        else:
            what = (
                f"a WFH request from {existing.start_date.isoformat()} "
                f"to {existing.end_date.isoformat()}"
            )
        return ValidationOutcome(
            success=False,
            reason_code=OVERLAP,
            message=(
                f"⚠️ You already have {what} ({existing.status}).\n\n"
                "Please adjust your new request or update the existing one first."
            ),
            details={"conflicting_request_id": existing.id},
        )

    def validate_leave(
        self, identity: EmployeeIdentity, draft: LeaveRequestDraft, today: date
    ) -> ValidationOutcome:
        outcome = self.check_dates("leave", draft.start_date, draft.end_date, today)
        if not outcome.success:
            return outcome

        outcome = self._check_overlap(identity, draft.start_date, draft.end_date or draft.start_date)
        if not outcome.success:
            return outcome

        if draft.is_exception or not draft.leave_type:
            return ACCEPTED

        requested = draft.requested_days()
        balance = self.record_store.check_balance(identity, draft.leave_type, requested)
        if balance.is_available:
            return ACCEPTED

        logger.info(
            f"Insufficient {draft.leave_type} balance: requested={requested} "
            f"remaining={balance.remaining}"
        )
        return ValidationOutcome(
            success=False,
            reason_code=INSUFFICIENT_BALANCE,
            message=(
                f"⚠️ **Insufficient Balance**\n\n"
                f"• Requested: {_plural_days(requested)} of {draft.leave_type} leave\n"
                f"• Available: {_plural_days(balance.remaining)} (out of {format_days(balance.total)})\n\n"
                f"{EXCEPTION_QUESTION}"
            ),
            offer_exception=True,
            details={"requested": requested, "remaining": balance.remaining, "total": balance.total},
        )

    def validate_wfh(
        self, identity: EmployeeIdentity, draft: WfhRequestDraft, today: date
    ) -> ValidationOutcome:
        outcome = self.check_dates("wfh", draft.start_date, draft.end_date, today)
        if not outcome.success:
            return outcome

        outcome = self._check_overlap(identity, draft.start_date, draft.end_date or draft.start_date)
        if not outcome.success:
            return outcome

        if draft.is_exception:
            return ACCEPTED

        used = self.record_store.count_wfh_in_week(identity, draft.start_date)
        if used < self.wfh_weekly_limit:
            return ACCEPTED

        monday = draft.start_date - timedelta(days=draft.start_date.weekday())
        logger.info(f"WFH weekly limit reached: used={used} limit={self.wfh_weekly_limit}")
        return ValidationOutcome(
            success=False,
            reason_code=WFH_LIMIT_EXCEEDED,
            message=(
                f"⚠️ **Insufficient WFH Allowance**\n\n"
                f"You already have {used} WFH request{'' if used == 1 else 's'} in the week of "
                f"{monday.isoformat()}. The weekly limit is {self.wfh_weekly_limit}.\n\n"
                f"{EXCEPTION_QUESTION}"
            ),
            offer_exception=True,
            details={"used": used, "limit": self.wfh_weekly_limit},
        )
