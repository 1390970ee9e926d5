"""
Conversation state machine.

``ChatEngine.handle_message`` is the single entry point for a chat turn.
Per session it serialises turns with the session store's lock, then:

1. answers a pending "which requests?" clarification,
2. applies an edit to a pending request,
3. resolves an exception offer (yes/no),
4. resolves a pending confirmation (yes commits, no discards),
5. classifies the message and applies intent locking,
6. dispatches to the intent handler.

Leave and WFH requests are built by slot filling
(start -> date -> reason -> type -> confirm); every draft passes the
validation gate before it can be confirmed and again when it is committed.
"""

import asyncio
import copy
import dataclasses
import logging
import re
from collections.abc import Callable
from datetime import date

from hr_assistant import replies
from hr_assistant.config import settings
from hr_assistant.conversation_state import (
    ExceptionOffer,
    FlowStep,
    LeaveRequestDraft,
    PendingConfirmation,
    WfhRequestDraft,
)
from hr_assistant.date_parser import ERROR_END_BEFORE_START, date_parser
from hr_assistant.entity_extractor import (
    default_reason,
    extract_confirmation,
    extract_leave_details,
    extract_leave_type,
    extract_reason,
    extract_wfh_details,
    is_cancel_request,
    requested_record_kind,
)
from hr_assistant.holiday_calendar import HolidayCalendar, load_holiday_calendar
from hr_assistant.intent_rules import rule_analysis
from hr_assistant.intent_service import IntentService
from hr_assistant.observability import trace_span
from hr_assistant.pending_approvals import PendingApprovalRecord, PendingApprovalStore
from hr_assistant.record_store import (
    STATUS_APPROVED,
    STATUS_REJECTED,
    RecordResult,
    RecordStore,
    RecordStoreError,
    create_record_store,
)
from hr_assistant.schemas import (
    INTENTS,
    ChatReply,
    EditDetails,
    IntentAnalysis,
    IntentEntities,
    StructuredPayload,
)
from hr_assistant.session_store import InMemorySessionStore, SessionContext, SessionStore
from hr_assistant.validation import ValidationGate, ValidationOutcome

logger = logging.getLogger(__name__)

# Switching to one of these abandons an active flow
HR_INTENTS = {"apply_leave", "apply_wfh", "leave_balance", "leave_policy", "wfh_policy"}
# Answered without touching an active flow
ALWAYS_HONOURED_INTENTS = {"view_requests", "greeting", "holiday_list"}

_APPLY_OR_LEAVE = re.compile(r"\b(apply|leaves?)\b")


class InvalidMessageError(ValueError):
    """Missing or non-string message with nothing else to act on."""


class ChatEngine:
    def __init__(
        self,
        session_store: SessionStore | None = None,
        record_store: RecordStore | None = None,
        intent_service: IntentService | None = None,
        holiday_calendar: HolidayCalendar | None = None,
        approvals: PendingApprovalStore | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self.session_store = session_store if session_store is not None else InMemorySessionStore()
        self.record_store = record_store if record_store is not None else create_record_store()
        self.intent_service = intent_service if intent_service is not None else IntentService()
        self.holiday_calendar = (
            holiday_calendar if holiday_calendar is not None else load_holiday_calendar()
        )
        self.approvals = approvals if approvals is not None else PendingApprovalStore()
        self.clock = clock
        self.gate = ValidationGate(self.record_store, self.holiday_calendar)

    # Entry point

    async def handle_message(
        self, session_id: str, message, payload: StructuredPayload | None = None
    ) -> ChatReply:
        payload = payload or StructuredPayload()
        if message is not None and not isinstance(message, str):
            raise InvalidMessageError("Message is required")
        text = (message or "").strip()
        has_action = payload.edit_details is not None or payload.confirmation_action in (
            "yes",
            "no",
            "edit",
        )
        if not text and not has_action:
            raise InvalidMessageError("Message is required")

        async with self.session_store.lock(session_id):
            context = self.session_store.get_or_create(session_id)
            snapshot = copy.deepcopy(context)
            try:
                await self._resolve_identity(context, payload)
                reply = await self._dispatch(context, text, payload)
            except (RecordStoreError, asyncio.TimeoutError) as e:
                logger.error(f"Collaborator failure in session {session_id}: {e}")
                context = snapshot
                reply = ChatReply(reply=replies.ERROR_REPLY, intent="error")

            context.add_history(
                text or f"[{payload.confirmation_action or 'edit'}]", reply.intent, settings.max_history
            )
            self.session_store.set(context)

        logger.info(f"Session {session_id}: intent={reply.intent}")
        return reply

    def reset_session(self, session_id: str) -> bool:
        return self.session_store.delete(session_id)

    async def _call_store(self, name: str, func, *args):
        """Run a blocking record-store call in a worker thread with a timeout."""
        with trace_span(f"record_store.{name}"):
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), settings.record_store_timeout_seconds
            )

    async def _resolve_identity(self, context: SessionContext, payload: StructuredPayload):
        identity = context.identity
        email = (payload.employee_email or "").strip().lower()
        if email and email != (identity.email or ""):
            identity.email = email
            employee = await self._call_store(
                "lookup_employee", self.record_store.lookup_employee, email
            )
            if employee:
                identity.name = employee.get("name") or identity.name
                identity.employee_id = employee.get("employee_id")
                identity.gender = employee.get("gender")
        if payload.employee_name:
            identity.name = payload.employee_name.strip()
        if not identity.name:
            identity.name = settings.default_employee_name

    # Dispatch

    async def _dispatch(
        self, context: SessionContext, text: str, payload: StructuredPayload
    ) -> ChatReply:
        today = self.clock()
        action = payload.confirmation_action

        if context.awaiting_request_type_clarification and text:
            context.awaiting_request_type_clarification = False
            return await self._list_requests(context, requested_record_kind(text))

        if payload.edit_details is not None or action == "edit":
            return await self._handle_edit(context, text, payload, today)

        answer = action if action in ("yes", "no") else extract_confirmation(text)

        if context.exception_offer is not None:
            return self._resolve_exception_offer(context, answer)

        if context.pending_confirmation is not None:
            if answer == "yes":
                return await self._commit(context, today)
            if answer == "no":
                context.pending_confirmation = None
                return ChatReply(reply=replies.CONFIRMATION_DECLINED, intent="confirmation_no")
            # Anything else falls through to classification

        if not text:
            return ChatReply(reply=replies.NO_PENDING_REQUEST, intent="no_pending_request")

        if payload.intent_override in INTENTS:
            analysis = rule_analysis(text, today, intent=payload.intent_override)
        else:
            analysis = await self.intent_service.classify(text, context, today)
        intent = analysis.intent

        active = context.active_flow
        if active and intent not in ALWAYS_HONOURED_INTENTS:
            if is_cancel_request(text):
                context.clear_flows()
                reply = (
                    replies.LEAVE_FLOW_CANCELLED if active == "apply_leave" else replies.WFH_FLOW_CANCELLED
                )
                return ChatReply(reply=reply, intent="cancel_flow")
            if intent in HR_INTENTS and intent != active and not self._is_wfh_reason(context, intent, text):
                logger.info(f"Abandoning {active} flow for {intent}")
                context.clear_flows()
            else:
                intent = active

        return await self._route(context, intent, analysis, text, today)

    @staticmethod
    def _is_wfh_reason(context: SessionContext, intent: str, text: str) -> bool:
        """A symptom word must not turn a WFH reason into a sick-leave request."""
        return (
            context.wfh_flow is not None
            and context.wfh_flow.step == FlowStep.REASON
            and intent == "apply_leave"
            and not _APPLY_OR_LEAVE.search(text.lower())
        )

    async def _route(
        self, context: SessionContext, intent: str, analysis: IntentAnalysis, text: str, today: date
    ) -> ChatReply:
        entities = analysis.entities
        if intent == "apply_leave":
            return await self._leave_flow(context, text, entities, today)
        if intent == "apply_wfh":
            return await self._wfh_flow(context, text, entities, today)
        if intent == "leave_balance":
            return await self._leave_balance(context, text, entities, today)
        if intent == "view_requests":
            kind = rule_analysis(text, today, intent="view_requests").entities.request_kind
            if kind is None:
                context.awaiting_request_type_clarification = True
                return ChatReply(reply=replies.REQUEST_KIND_QUESTION, intent="ask_request_type")
            return await self._list_requests(context, kind)
        if intent == "holiday_list":
            return self._holidays(text, entities, today)
        if intent == "greeting":
            return ChatReply(reply=replies.greeting(context.identity.name), intent="greeting")
        if intent == "leave_policy":
            return ChatReply(reply=replies.leave_policy(context.identity.gender), intent="leave_policy")
        if intent == "wfh_policy":
            return ChatReply(reply=replies.wfh_policy(self.gate.wfh_weekly_limit), intent="wfh_policy")

        reply = await self.intent_service.respond(text, context)
        return ChatReply(reply=reply, intent="general_query")

    # Confirmation, commit and exception offers

    @staticmethod
    def _confirm_reply(pending: PendingConfirmation, updated: bool = False) -> ChatReply:
        if pending.kind == "leave":
            text, intent = replies.confirm_leave(pending.draft, updated), "confirm_leave"
        else:
            text, intent = replies.confirm_wfh(pending.draft, updated), "confirm_wfh"
        return ChatReply(
            reply=text, intent=intent, show_buttons=True, pending_request=pending.to_payload()
        )

    def _resolve_exception_offer(self, context: SessionContext, answer: str | None) -> ChatReply:
        offer = context.exception_offer
        if answer == "yes":
            offer.draft.is_exception = True
            offer.draft.step = FlowStep.CONFIRM
            context.exception_offer = None
            context.pending_confirmation = PendingConfirmation(offer.kind, offer.draft)
            logger.info(f"Exception accepted for {offer.kind} request ({offer.reason_code})")
            return self._confirm_reply(context.pending_confirmation)
        if answer == "no":
            context.exception_offer = None
            return ChatReply(reply=replies.EXCEPTION_DECLINED, intent="exception_declined")
        return ChatReply(reply=replies.EXCEPTION_REASK, intent="exception_offer", show_buttons=True)

    async def _validate(self, context: SessionContext, kind: str, draft, today: date) -> ValidationOutcome:
        if kind == "leave":
            return await self._call_store(
                "validate_leave", self.gate.validate_leave, context.identity, draft, today
            )
        return await self._call_store(
            "validate_wfh", self.gate.validate_wfh, context.identity, draft, today
        )

    def _offer_exception(self, context: SessionContext, kind: str, draft, outcome) -> ChatReply:
        context.exception_offer = ExceptionOffer(kind, draft, outcome.reason_code)
        return ChatReply(reply=outcome.message, intent=outcome.reason_code, show_buttons=True)

    async def _commit(self, context: SessionContext, today: date) -> ChatReply:
        pending = context.pending_confirmation
        # Cleared first so a failed commit never leaves a request to re-commit
        context.pending_confirmation = None
        draft = pending.draft

        try:
            outcome = await self._validate(context, pending.kind, draft, today)
            if not outcome.success:
                if outcome.offer_exception:
                    return self._offer_exception(context, pending.kind, draft, outcome)
                return ChatReply(reply=outcome.message, intent=outcome.reason_code)

            if pending.kind == "leave":
                result = await self._call_store(
                    "create_leave_record", self.record_store.create_leave_record, context.identity, draft
                )
            else:
                result = await self._call_store(
                    "create_wfh_record", self.record_store.create_wfh_record, context.identity, draft
                )
        except (RecordStoreError, asyncio.TimeoutError) as e:
            logger.error(f"Commit failed for {pending.kind} request: {e}")
            return ChatReply(
                reply=replies.commit_failed(str(e) or "the request system did not respond"),
                intent="error",
            )

        if not result.success:
            logger.error(f"{pending.kind} creation failed: {result.message}")
            return ChatReply(reply=replies.commit_failed(result.message), intent="error")

        details = {"id": result.id}
        if draft.is_exception:
            approval = PendingApprovalRecord(
                record_id=result.id,
                kind=pending.kind,
                employee_name=context.identity.name,
                employee_email=context.identity.email,
                start_date=draft.start_date,
                end_date=draft.end_date or draft.start_date,
                reason=draft.reason,
                leave_type=getattr(draft, "leave_type", None),
                duration_days=draft.requested_days() if pending.kind == "leave" else None,
            )
            details["approval_id"] = self.approvals.store(approval)

        context.last_request = {"type": pending.kind, "id": result.id, "details": draft.to_payload()}
        if pending.kind == "leave":
            return ChatReply(reply=replies.leave_created(draft), intent="leave_created", details=details)
        return ChatReply(reply=replies.wfh_created(draft), intent="wfh_created", details=details)

    async def decide_approval(self, approval_id: str, approve: bool) -> RecordResult | None:
        """Manager decision on an exception request; None when unknown or expired."""
        approval = self.approvals.get(approval_id)
        if approval is None:
            return None
        status = STATUS_APPROVED if approve else STATUS_REJECTED
        result = await self._call_store(
            "update_record_status", self.record_store.update_record_status, approval.record_id, status
        )
        if result.success:
            self.approvals.remove(approval_id)
        return result

    # Slot filling shared helpers

    def _resolve_span(self, start: date, end: date | None, text: str):
        """Apply half-day and explicit-duration phrasing to a start/end pair."""
        duration = date_parser.parse_duration(text)
        if duration.is_half_day:
            return start, start, True
        if (end is None or end == start) and duration.has_explicit_duration and (duration.days or 0) > 1:
            projected = date_parser.project_end_date(start, duration.days)
            return start, date_parser.reconcile_end_date(start, projected, duration.days), False
        return start, end or start, False

    def _check_span(self, kind: str, start: date, end: date, today: date) -> ChatReply | None:
        """Ordering, holiday, past-date and weekend checks at the date step."""
        if end < start:
            return ChatReply(
                reply=f"❌ {ERROR_END_BEFORE_START} Please adjust your dates.", intent="validation_error"
            )
        outcome = self.gate.check_dates(kind, start, end, today)
        if not outcome.success:
            return ChatReply(reply=outcome.message, intent=outcome.reason_code)
        if date_parser.calculate_inclusive_days(start, end) == 0:
            label = "leave" if kind == "leave" else "WFH"
            return ChatReply(
                reply=(
                    f"🗓️ {replies.date_span(start, end)} falls on a weekend. "
                    f"Please choose a working day for your {label} request."
                ),
                intent="no_working_days",
            )
        return None

    # Leave flow

    async def _leave_flow(
        self, context: SessionContext, text: str, entities: IntentEntities, today: date
    ) -> ChatReply:
        if context.leave_flow is None:
            context.leave_flow = LeaveRequestDraft(employee_name=context.identity.name)
        draft = context.leave_flow

        if draft.step in (FlowStep.START, FlowStep.DATE):
            return await self._leave_date_step(context, draft, text, entities, today)

        if draft.step == FlowStep.REASON:
            reason = entities.reason or extract_reason(text, explicit_only=True)
            if not reason and len(text) >= 3:
                reason = text
            if not reason:
                return ChatReply(reply=replies.retry_leave_reason(), intent="ask_leave_reason_retry")
            draft.reason = reason
            return await self._advance_leave(context, draft, today)

        if draft.step == FlowStep.TYPE:
            leave_type = entities.leave_type or extract_leave_type(text)
            if not leave_type:
                return ChatReply(reply=replies.retry_leave_type(), intent="ask_leave_type_retry")
            draft.leave_type = leave_type
            return await self._advance_leave(context, draft, today)

        return await self._advance_leave(context, draft, today)

    async def _leave_date_step(
        self,
        context: SessionContext,
        draft: LeaveRequestDraft,
        text: str,
        entities: IntentEntities,
        today: date,
    ) -> ChatReply:
        details = extract_leave_details(text, today, explicit_reason_only=True)
        draft.leave_type = draft.leave_type or entities.leave_type or extract_leave_type(text, infer=False)
        draft.reason = draft.reason or entities.reason or details.reason

        start = entities.start_date or entities.date
        end = entities.end_date
        if start is None:
            if details.errors:
                draft.step = FlowStep.DATE
                return ChatReply(
                    reply=f"❌ {details.errors[0]}\n\nPlease provide the date(s) again.",
                    intent="date_parse_error",
                )
            start, end = details.start_date, details.end_date

        if start is None:
            draft.step = FlowStep.DATE
            return ChatReply(reply=replies.ask_leave_date(), intent="ask_leave_date")

        start, end, is_half_day = self._resolve_span(start, end, text)
        rejection = self._check_span("leave", start, end, today)
        if rejection is not None:
            draft.step = FlowStep.DATE
            return rejection

        draft.start_date, draft.end_date = start, end
        draft.is_half_day = is_half_day
        draft.duration_days = 0.5 if is_half_day else None
        return await self._advance_leave(context, draft, today)

    async def _advance_leave(
        self, context: SessionContext, draft: LeaveRequestDraft, today: date
    ) -> ChatReply:
        if not draft.start_date:
            draft.step = FlowStep.DATE
            return ChatReply(reply=replies.ask_leave_date(), intent="ask_leave_date")
        if not draft.reason:
            draft.step = FlowStep.REASON
            return ChatReply(reply=replies.ask_leave_reason(draft), intent="ask_leave_reason")
        if not draft.leave_type:
            draft.step = FlowStep.TYPE
            inferred = extract_leave_type(draft.reason)
            return ChatReply(reply=replies.ask_leave_type(inferred), intent="ask_leave_type")
        return await self._finalize(context, "leave", draft, today)

    # WFH flow

    async def _wfh_flow(
        self, context: SessionContext, text: str, entities: IntentEntities, today: date
    ) -> ChatReply:
        if context.wfh_flow is None:
            context.wfh_flow = WfhRequestDraft(employee_name=context.identity.name)
        draft = context.wfh_flow

        if draft.step in (FlowStep.START, FlowStep.DATE):
            details = extract_wfh_details(text, today, explicit_reason_only=True)
            draft.reason = draft.reason or entities.reason or details.reason

            start = entities.date or entities.start_date
            end = entities.end_date
            if start is None:
                if details.errors:
                    draft.step = FlowStep.DATE
                    return ChatReply(
                        reply=f"❌ {details.errors[0]}\n\nPlease provide the date again.",
                        intent="date_parse_error",
                    )
                start, end = details.start_date, details.end_date

            if start is None:
                draft.step = FlowStep.DATE
                return ChatReply(reply=replies.ask_wfh_date(), intent="ask_wfh_date")

            end = end or start
            rejection = self._check_span("wfh", start, end, today)
            if rejection is not None:
                draft.step = FlowStep.DATE
                return rejection
            draft.start_date, draft.end_date = start, end

        elif draft.step == FlowStep.REASON:
            reason = entities.reason or extract_reason(text, explicit_only=True)
            if not reason and len(text) >= 3:
                reason = text
            if not reason:
                return ChatReply(reply=replies.retry_wfh_reason(), intent="ask_wfh_reason_retry")
            draft.reason = reason

        if not draft.reason:
            draft.step = FlowStep.REASON
            return ChatReply(reply=replies.ask_wfh_reason(draft), intent="ask_wfh_reason")
        return await self._finalize(context, "wfh", draft, today)

    async def _finalize(self, context: SessionContext, kind: str, draft, today: date) -> ChatReply:
        """Full validation gate, then confirmation or an exception offer."""
        if kind == "leave":
            holiday_dates = self.holiday_calendar.get_holiday_dates(
                start=draft.start_date, end=draft.end_date
            )
            draft.apply_defaults(holiday_dates)

        outcome = await self._validate(context, kind, draft, today)
        if not outcome.success:
            if outcome.offer_exception:
                context.clear_flows()
                return self._offer_exception(context, kind, draft, outcome)
            # Dates must be chosen again; reason and type are kept
            draft.step = FlowStep.DATE
            draft.start_date = draft.end_date = None
            if kind == "leave":
                draft.duration_days = None
                draft.is_half_day = False
            return ChatReply(
                reply=f"{outcome.message}\n\nPlease choose different dates.", intent=outcome.reason_code
            )

        draft.step = FlowStep.CONFIRM
        context.clear_flows()
        context.pending_confirmation = PendingConfirmation(kind, draft)
        return self._confirm_reply(context.pending_confirmation)

    # Edits

    def _edit_from_text(self, kind: str, text: str, today: date) -> EditDetails | None:
        """Natural-language edit ("make it 28th october"); None when nothing usable."""
        if not text:
            return None
        if kind == "leave":
            details = extract_leave_details(text, today, explicit_reason_only=True)
            leave_type = extract_leave_type(text, infer=False)
            is_half_day = details.is_half_day or None
        else:
            details = extract_wfh_details(text, today, explicit_reason_only=True)
            leave_type = None
            is_half_day = None
        if not any([details.start_date, details.reason, leave_type, is_half_day]):
            return None
        return EditDetails(
            start_date=details.start_date,
            end_date=details.end_date,
            leave_type=leave_type,
            reason=details.reason,
            is_half_day=is_half_day,
        )

    async def _handle_edit(
        self, context: SessionContext, text: str, payload: StructuredPayload, today: date
    ) -> ChatReply:
        session_pending = context.pending_confirmation
        pending = session_pending or PendingConfirmation.from_payload(payload.pending_request)
        if pending is None:
            return ChatReply(reply=replies.NO_PENDING_REQUEST, intent="no_pending_request")

        edit = payload.edit_details or self._edit_from_text(pending.kind, text, today)
        if edit is None:
            return ChatReply(
                reply=replies.edit_form_prompt(pending.kind),
                intent="edit_request",
                show_form=True,
                details=pending.draft.to_payload(),
                pending_request=pending.to_payload(),
            )

        draft = dataclasses.replace(pending.draft)
        new_start = edit.start_date or edit.date
        if new_start:
            draft.start_date = new_start
            draft.end_date = edit.end_date or new_start
        elif edit.end_date:
            draft.end_date = edit.end_date
        if edit.reason:
            draft.reason = edit.reason

        if pending.kind == "leave":
            draft.errors = []
            if edit.leave_type:
                draft.leave_type = edit.leave_type
            if edit.is_half_day is not None:
                draft.is_half_day = edit.is_half_day
            if draft.is_half_day:
                draft.end_date = draft.start_date
            draft.duration_days = None
            draft.reason = draft.reason or "Personal"
        else:
            draft.reason = draft.reason or default_reason(text)
        draft.employee_name = context.identity.name

        kept = session_pending is not None
        if draft.end_date and draft.start_date and draft.end_date < draft.start_date:
            return ChatReply(
                reply=replies.edit_rejected(
                    f"❌ {ERROR_END_BEFORE_START} Please adjust your dates.", kept
                ),
                intent="validation_error",
            )

        if pending.kind == "leave":
            holiday_dates = self.holiday_calendar.get_holiday_dates(
                start=draft.start_date, end=draft.end_date
            )
            draft.apply_defaults(holiday_dates)

        outcome = await self._validate(context, pending.kind, draft, today)
        if not outcome.success:
            if outcome.offer_exception:
                context.pending_confirmation = None
                return self._offer_exception(context, pending.kind, draft, outcome)
            return ChatReply(reply=replies.edit_rejected(outcome.message, kept), intent=outcome.reason_code)

        draft.step = FlowStep.CONFIRM
        context.clear_flows()
        context.pending_confirmation = PendingConfirmation(pending.kind, draft)
        logger.info(f"Edited {pending.kind} request re-validated")
        return self._confirm_reply(context.pending_confirmation, updated=True)

    # Informational intents

    async def _leave_balance(
        self, context: SessionContext, text: str, entities: IntentEntities, today: date
    ) -> ChatReply:
        identity = context.identity
        visible = replies.visible_leave_types(identity.gender)
        leave_type = entities.leave_type or extract_leave_type(text, infer=False)

        if leave_type:
            if leave_type not in visible:
                return ChatReply(
                    reply=f"{leave_type} leave is not applicable to your profile.",
                    intent="leave_balance_info",
                )
            balance = await self._call_store(
                "get_leave_balance", self.record_store.get_leave_balance, identity, leave_type
            )
            return ChatReply(reply=replies.balance_single(balance), intent="leave_balance_info")

        balances = await self._call_store(
            "get_all_leave_balances", self.record_store.get_all_leave_balances, identity
        )
        balances = [b for b in balances if b.leave_type in visible]
        return ChatReply(
            reply=replies.balance_summary(balances, today.year), intent="leave_balance_summary"
        )

    async def _list_requests(self, context: SessionContext, kind: str) -> ChatReply:
        records = await self._call_store(
            "list_requests", self.record_store.list_requests, context.identity, kind
        )
        intent = "view_requests" if records else "no_requests_found"
        return ChatReply(reply=replies.request_list(records, kind), intent=intent)

    def _holidays(self, text: str, entities: IntentEntities, today: date) -> ChatReply:
        rules = rule_analysis(text, today, intent="holiday_list").entities
        day = entities.date or rules.date
        month = entities.month or rules.month
        year = entities.year or rules.year
        count_only = entities.count_only or rules.count_only
        start, end = entities.start_date, entities.end_date

        if day and not (start and end):
            return ChatReply(
                reply=replies.holiday_on(day, self.holiday_calendar.get_holiday(day)),
                intent="holiday_list",
            )

        upcoming = rules.upcoming and not (month or year or start)
        if start and end:
            holidays = self.holiday_calendar.list_holidays(start=start, end=end)
        elif upcoming:
            holidays = self.holiday_calendar.list_holidays(start=today)
        else:
            year = year or today.year
            holidays = self.holiday_calendar.list_holidays(year=year, month=month)

        render = replies.holiday_count if count_only else replies.holiday_list
        return ChatReply(
            reply=render(holidays, year=year, month=month, upcoming=upcoming), intent="holiday_list"
        )

    # Housekeeping

    def sweep(self) -> tuple[int, int]:
        """Drop idle sessions and expired approvals."""
        sessions = self.session_store.sweep_expired()
        approvals = self.approvals.sweep_expired()
        return sessions, approvals

    async def run_sweeper(self, interval: float | None = None):
        interval = interval or settings.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Sweep failed: {e}", exc_info=True)
