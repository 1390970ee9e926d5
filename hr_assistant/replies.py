"""
User-facing reply text.

Every string the conversation engine sends back is built here so flows stay
readable and wording changes live in one place.
"""

from datetime import date

from data.leave_policies import GENDER_RESTRICTED_LEAVE, LEAVE_ENTITLEMENTS, WFH_POLICY
from hr_assistant.conversation_state import LeaveRequestDraft, WfhRequestDraft
from hr_assistant.holiday_calendar import Holiday
from hr_assistant.record_store import (
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_REJECTED,
    BalanceInfo,
    RequestRecord,
)
from hr_assistant.validation import format_days

STATUS_EMOJI = {
    STATUS_APPROVED: "✅",
    STATUS_REJECTED: "❌",
    STATUS_PENDING: "⏳",
    STATUS_CANCELLED: "🚫",
}

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

ERROR_REPLY = (
    "I apologize, but I encountered an error processing your request. "
    "Please try again or contact HR support if the issue persists."
)

HELP_REPLY = (
    "I can help you apply for leave or WFH, check your leave balance, view your "
    "requests and company holidays, or explain the leave and WFH policies. "
    "What would you like to do?"
)

CONFIRMATION_DECLINED = "ℹ️ Request cancelled. How else can I help you?"
LEAVE_FLOW_CANCELLED = "Okay, I've cancelled that leave request. What else can I help you with?"
WFH_FLOW_CANCELLED = "Okay, I've cancelled that WFH request."
EXCEPTION_DECLINED = (
    "Okay, I won't submit that request. You can choose different dates or another "
    "leave type whenever you're ready."
)
EXCEPTION_REASK = "Please reply **yes** to submit this as an exception for manager review, or **no** to drop it."
REQUEST_KIND_QUESTION = "Which requests would you like to see? (Leave, WFH, or All)"
NO_PENDING_REQUEST = "There's no pending request to edit. Would you like to apply for leave or WFH?"


def date_span(start: date, end: date | None) -> str:
    if end and end != start:
        return f"{start.isoformat()} to {end.isoformat()}"
    return start.isoformat()


# Leave flow


def ask_leave_date() -> str:
    return (
        "🗓️ **When would you like to take leave?**\n\n"
        'Please provide the date(s) (e.g. "Oct 18" or "Tomorrow").'
    )


def ask_leave_reason(draft: LeaveRequestDraft) -> str:
    return f"📝 **What is the reason for your leave on {draft.start_date.isoformat()}?**"


def retry_leave_reason() -> str:
    return "📝 Could you please specify why you need leave?"


def ask_leave_type(inferred: str | None = None) -> str:
    hint = f"Potentially {inferred} leave. " if inferred else ""
    return f"🏖️ {hint}**What type of leave is this?**\n(Options: Annual, Sick, Casual)"


def retry_leave_type() -> str:
    return "🏖️ Please specify: Annual, Sick, or Casual."


def confirm_leave(draft: LeaveRequestDraft, updated: bool = False) -> str:
    title = "Please confirm your UPDATED leave request:" if updated else "Confirm your leave request:"
    lines = [
        f"📋 **{title}**",
        "",
        f"• **Type**: {draft.leave_type}",
        f"• **Date**: {date_span(draft.start_date, draft.end_date)}",
        f"• **Duration**: {format_days(draft.requested_days())} day(s)"
        + (" (half day)" if draft.is_half_day else ""),
        f"• **Reason**: {draft.reason}",
    ]
    if draft.is_exception:
        lines.append("• **Exception**: yes, needs manager review")
    return "\n".join(lines)


def leave_created(draft: LeaveRequestDraft) -> str:
    if draft.is_exception:
        return (
            f"✅ Exception leave request sent successfully!\n\n"
            f"Type: {draft.leave_type}\nDate: {date_span(draft.start_date, draft.end_date)}\n"
            "Status: Pending Approval\n\nYour manager will review this exception request."
        )
    return (
        f"✅ Leave request created successfully!\n\n"
        f"Type: {draft.leave_type}\n"
        f"Date: {draft.start_date.isoformat()} to {(draft.end_date or draft.start_date).isoformat()}\n"
        "Status: Pending Approval\n\nYour manager has been notified."
    )


# WFH flow


def ask_wfh_date() -> str:
    return '🏠 **When would you like to WFH?**\n(e.g. "tomorrow" or "25th Jan")'


def ask_wfh_reason(draft: WfhRequestDraft) -> str:
    return f"📝 **What is the reason for WFH on {date_span(draft.start_date, draft.end_date)}?**"


def retry_wfh_reason() -> str:
    return "📝 Could you please provide a reason for your WFH request?"


def confirm_wfh(draft: WfhRequestDraft, updated: bool = False) -> str:
    title = "Please confirm your UPDATED WFH request:" if updated else "Confirm your WFH request:"
    lines = [
        f"📋 **{title}**",
        "",
        f"• **Date**: {date_span(draft.start_date, draft.end_date)}",
        f"• **Reason**: {draft.reason}",
    ]
    if draft.is_exception:
        lines.append("• **Exception**: yes, needs manager review")
    return "\n".join(lines)


def wfh_created(draft: WfhRequestDraft) -> str:
    if draft.is_exception:
        return (
            f"✅ Exception WFH request sent successfully!\n\n"
            f"Date: {date_span(draft.start_date, draft.end_date)}\n"
            "Status: Pending Approval\n\nYour manager will review this exception request."
        )
    return (
        f"✅ WFH request created successfully!\n\n"
        f"Date: {date_span(draft.start_date, draft.end_date)}\n"
        "Status: Pending Approval\n\nYour manager has been notified."
    )


def commit_failed(message: str | None) -> str:
    return f"❌ Sorry, I couldn't create that request: {message or 'Unknown error'}"


def edit_rejected(message: str, kept_previous: bool) -> str:
    suffix = (
        "\n\nYour previous request details are unchanged and still waiting for confirmation."
        if kept_previous
        else ""
    )
    return f"{message}{suffix}"


def edit_form_prompt(kind: str) -> str:
    what = "leave" if kind == "leave" else "WFH"
    return f"✏️ Got it! Let's update your {what} request. Change the details in the form below."


# Informational intents


def greeting(name: str | None) -> str:
    return (
        f"Hello {name or 'there'}! 👋 I'm your HR Assistant. I can help you with:\n\n"
        "• Applying for **Leave** or **WFH**\n"
        "• Checking your **Leave Balance**\n"
        "• Viewing your **Existing Requests**\n"
        "• Information on **Company Policies**\n\n"
        "How can I help you today?"
    )


def visible_leave_types(gender: str | None) -> list[str]:
    """Leave types shown to an employee; unknown gender sees every type."""
    gender = (gender or "").lower()
    if not gender:
        return list(LEAVE_ENTITLEMENTS)
    return [
        leave_type
        for leave_type in LEAVE_ENTITLEMENTS
        if GENDER_RESTRICTED_LEAVE.get(leave_type, gender) == gender
    ]


def balance_single(balance: BalanceInfo) -> str:
    return (
        f"📅 **Your {balance.leave_type} Leave Balance:**\n\n"
        f"• **Total Entitlement**: {format_days(balance.total)} days\n"
        f"• **Used/Pending**: {format_days(balance.used)} days\n"
        f"• **Remaining**: **{format_days(balance.remaining)} days**\n\n"
        f"Would you like to apply for {balance.leave_type.lower()} leave now?"
    )


def balance_summary(balances: list[BalanceInfo], year: int) -> str:
    lines = [f"📋 **Your Leave Balance Summary ({year}):**", ""]
    for b in balances:
        lines.append(
            f"• **{b.leave_type}**: {format_days(b.remaining)} days left (out of {format_days(b.total)})"
        )
    lines.append("")
    lines.append("Would you like to apply for leave?")
    return "\n".join(lines)


def request_list(records: list[RequestRecord], kind: str) -> str:
    if not records:
        what = "leave or WFH" if kind == "both" else ("leave" if kind == "leave" else "WFH")
        return (
            f"You haven't made any {what} requests yet.\n\n"
            "Would you like to:\n"
            "• Apply for leave\n"
            "• Apply for WFH\n"
            "• Check your leave balance"
        )

    leaves = [r for r in records if r.kind == "leave"]
    wfhs = [r for r in records if r.kind == "wfh"]
    parts = ["📋 **Your Requests**\n"]
    if leaves:
        parts.append(f"**Leave Requests ({len(leaves)})**")
        for r in leaves:
            parts.append(
                f"{STATUS_EMOJI.get(r.status, '❓')} **{r.leave_type}** - "
                f"{r.start_date.isoformat()} to {r.end_date.isoformat()}\n"
                f"   Status: {r.status} | Reason: {r.reason or 'Not specified'}\n"
                f"   ID: {r.id}\n"
            )
    if wfhs:
        parts.append(f"**WFH Requests ({len(wfhs)})**")
        for r in wfhs:
            parts.append(
                f"{STATUS_EMOJI.get(r.status, '❓')} **{date_span(r.start_date, r.end_date)}**\n"
                f"   Status: {r.status}\n"
                f"   Reason: {r.reason or 'Personal'}\n"
                f"   ID: {r.id}\n"
            )
    parts.append("**Legend:**\n✅ Approved | ❌ Rejected | ⏳ Pending | 🚫 Cancelled")
    parts.append("\nWould you like to view details, edit, or cancel any request?")
    return "\n".join(parts)


def _holiday_scope(year: int | None, month: int | None, upcoming: bool) -> str | None:
    if month and year:
        return f"{MONTH_NAMES[month - 1]} {year}"
    if month:
        return MONTH_NAMES[month - 1]
    if year:
        return str(year)
    if upcoming:
        return "Upcoming"
    return None


def holiday_list(
    holidays: list[Holiday], year: int | None = None, month: int | None = None, upcoming: bool = False
) -> str:
    scope = _holiday_scope(year, month, upcoming)
    if not holidays:
        return f"There are no company holidays{f' in {scope}' if scope else ''}."
    lines = [f"🗓️ **{scope + ' ' if scope else ''}Company Holidays:**", ""]
    for h in holidays:
        suffix = " (optional)" if h.optional else ""
        lines.append(f"• **{h.name}**: {h.date.isoformat()}{suffix}")
    return "\n".join(lines)


def holiday_count(
    holidays: list[Holiday], year: int | None = None, month: int | None = None, upcoming: bool = False
) -> str:
    scope = _holiday_scope(year, month, upcoming)
    count = len(holidays)
    noun = "holiday" if count == 1 else "holidays"
    where = f" in {scope}" if scope else ""
    return f"🗓️ There {'is' if count == 1 else 'are'} {count} company {noun}{where}."


def holiday_on(day: date, holiday: Holiday | None) -> str:
    if holiday is None:
        return f"No, {day.isoformat()} is not a company holiday."
    return f"Yes! {day.isoformat()} is a company holiday: **{holiday.name}**."


def leave_policy(gender: str | None = None) -> str:
    lines = ["📘 **Leave Policy**", "", "Annual entitlements:"]
    for leave_type in visible_leave_types(gender):
        lines.append(f"• **{leave_type}**: {LEAVE_ENTITLEMENTS[leave_type]} days")
    lines.append("")
    lines.append(
        "Leave cannot be taken on company holidays or past dates, and requests beyond "
        "your remaining balance can be submitted as exceptions for manager review."
    )
    return "\n".join(lines)


def wfh_policy(weekly_limit: int) -> str:
    return (
        "🏠 **WFH Policy**\n\n"
        f"• Up to **{weekly_limit}** WFH days per Monday-Sunday week\n"
        f"• {WFH_POLICY['description']}\n"
        "• WFH cannot be requested on company holidays or past dates"
    )
