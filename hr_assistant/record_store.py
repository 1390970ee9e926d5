"""
Record store: the system of record for leave and WFH requests.

``RecordStore`` implements the business queries (overlap, balance, WFH
weekly count, listing) on top of four storage primitives. Two backends
provide the primitives:

- ``InMemoryRecordStore`` for demo mode and tests, seeded from the mock
  employee directory in ``data.leave_policies``;
- ``SnowflakeRecordStore`` using the Snowpark DataFrame API, every call
  protected by a circuit breaker.

All methods are synchronous; the conversation engine runs them in a worker
thread with a timeout.
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from snowflake.snowpark import Session
from snowflake.snowpark.exceptions import SnowparkSQLException
from snowflake.snowpark.functions import col, lit

from data.leave_policies import LEAVE_ENTITLEMENTS, get_employee_data
from hr_assistant.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from hr_assistant.config import settings
from hr_assistant.conversation_state import EmployeeIdentity, LeaveRequestDraft, WfhRequestDraft
from hr_assistant.date_parser import coerce_date, date_parser

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pending Approval"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_CANCELLED = "Cancelled"

# Requests in these states no longer occupy their dates or consume balance
INACTIVE_STATUSES = {STATUS_REJECTED, STATUS_CANCELLED}


class RecordStoreError(RuntimeError):
    """Backend unreachable or query failed."""


@dataclass
class RecordResult:
    success: bool
    id: str | None = None
    message: str | None = None


@dataclass
class RequestRecord:
    id: str
    kind: str  # "leave" or "wfh"
    start_date: date
    end_date: date
    status: str = STATUS_PENDING
    employee_name: str | None = None
    employee_email: str | None = None
    employee_id: str | None = None
    leave_type: str | None = None
    reason: str | None = None
    duration_days: float | None = None
    is_half_day: bool = False
    is_exception: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def date(self) -> date:
        return self.start_date

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and self.end_date >= start

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


@dataclass
class BalanceInfo:
    leave_type: str
    total: float
    used: float
    remaining: float
    is_available: bool = True


@dataclass
class OverlapResult:
    has_overlap: bool
    conflicting_requests: list[RequestRecord] = field(default_factory=list)


def _belongs_to(record: RequestRecord, identity: EmployeeIdentity) -> bool:
    if identity.email and record.employee_email:
        return record.employee_email.lower() == identity.email.lower()
    if identity.name and record.employee_name:
        return record.employee_name == identity.name
    return False


def _week_bounds(day: date) -> tuple[date, date]:
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


class RecordStore(ABC):
    """Record-store contract used by the conversation engine."""

    # Storage primitives

    @abstractmethod
    def _records_for(self, identity: EmployeeIdentity, kind: str | None = None) -> list[RequestRecord]:
        """All records of the employee, optionally only one kind."""

    @abstractmethod
    def _insert(self, record: RequestRecord) -> None: ...

    @abstractmethod
    def _set_status(self, record_id: str, status: str) -> bool: ...

    @abstractmethod
    def get_record(self, record_id: str) -> RequestRecord | None: ...

    @abstractmethod
    def lookup_employee(self, email: str) -> dict[str, Any] | None: ...

    def get_circuit_breaker_state(self) -> dict | None:
        return None

    def close(self):
        pass

    # Business queries

    def check_overlap(self, identity: EmployeeIdentity, start, end=None) -> OverlapResult:
        first = coerce_date(start)
        last = coerce_date(end) or first
        conflicts = [
            r for r in self._records_for(identity) if r.is_active and r.overlaps(first, last)
        ]
        return OverlapResult(has_overlap=bool(conflicts), conflicting_requests=conflicts)

    def get_leave_balance(self, identity: EmployeeIdentity, leave_type: str) -> BalanceInfo:
        leave_type = (leave_type or "").upper()
        total = LEAVE_ENTITLEMENTS.get(leave_type, 0)
        used = sum(
            r.duration_days or 0
            for r in self._records_for(identity, "leave")
            if r.is_active and r.leave_type == leave_type
        )
        return BalanceInfo(leave_type=leave_type, total=total, used=used, remaining=max(total - used, 0))

    def get_all_leave_balances(self, identity: EmployeeIdentity) -> list[BalanceInfo]:
        return [self.get_leave_balance(identity, leave_type) for leave_type in LEAVE_ENTITLEMENTS]

    def check_balance(
        self, identity: EmployeeIdentity, leave_type: str, requested_days: float
    ) -> BalanceInfo:
        balance = self.get_leave_balance(identity, leave_type)
        balance.is_available = requested_days <= balance.remaining
        return balance

    def count_wfh_in_week(self, identity: EmployeeIdentity, day) -> int:
        """Active WFH requests dated in the Monday-Sunday week containing day."""
        monday, sunday = _week_bounds(coerce_date(day))
        return sum(
            1
            for r in self._records_for(identity, "wfh")
            if r.is_active and monday <= r.date <= sunday
        )

    def list_requests(self, identity: EmployeeIdentity, kind: str = "both") -> list[RequestRecord]:
        records = self._records_for(identity, None if kind == "both" else kind)
        return sorted(records, key=lambda r: (r.start_date, r.created_at))

    def create_leave_record(
        self, identity: EmployeeIdentity, draft: LeaveRequestDraft
    ) -> RecordResult:
        if not draft.start_date or not draft.leave_type:
            return RecordResult(False, message="Missing required fields")

        record = RequestRecord(
            id=f"LR-{uuid.uuid4().hex[:10]}",
            kind="leave",
            start_date=draft.start_date,
            end_date=draft.end_date or draft.start_date,
            employee_name=identity.name or draft.employee_name,
            employee_email=identity.email,
            employee_id=identity.employee_id,
            leave_type=draft.leave_type,
            reason=draft.reason or "Personal",
            duration_days=draft.requested_days(),
            is_half_day=draft.is_half_day,
            is_exception=draft.is_exception,
        )
        self._insert(record)
        logger.info(f"Leave record created: {record.id} ({record.leave_type})")
        return RecordResult(True, id=record.id, message="Leave request created")

    def create_wfh_record(self, identity: EmployeeIdentity, draft: WfhRequestDraft) -> RecordResult:
        if not draft.start_date or not draft.reason:
            return RecordResult(False, message="Missing required fields")

        record = RequestRecord(
            id=f"WFH-{uuid.uuid4().hex[:10]}",
            kind="wfh",
            start_date=draft.start_date,
            end_date=draft.end_date or draft.start_date,
            employee_name=identity.name or draft.employee_name,
            employee_email=identity.email,
            employee_id=identity.employee_id,
            reason=draft.reason,
            duration_days=date_parser.calculate_inclusive_days(
                draft.start_date, draft.end_date or draft.start_date
            ),
            is_exception=draft.is_exception,
        )
        self._insert(record)
        logger.info(f"WFH record created: {record.id}")
        return RecordResult(True, id=record.id, message="WFH request created")

    def update_record_status(self, record_id: str, status: str) -> RecordResult:
        if not self._set_status(record_id, status):
            return RecordResult(False, id=record_id, message=f"Record {record_id} not found")
        logger.info(f"Record {record_id} -> {status}")
        return RecordResult(True, id=record_id, message=status)


class InMemoryRecordStore(RecordStore):
    """Demo-mode store; records live in process memory."""

    def __init__(self, employees: dict[str, dict] | None = None):
        self._records: dict[str, RequestRecord] = {}
        self._employees = employees
        self._lock = threading.Lock()

    def _records_for(self, identity, kind=None):
        with self._lock:
            records = list(self._records.values())
        return [
            r for r in records if _belongs_to(r, identity) and (kind is None or r.kind == kind)
        ]

    def _insert(self, record):
        with self._lock:
            self._records[record.id] = record

    def _set_status(self, record_id, status):
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return False
            record.status = status
            return True

    def get_record(self, record_id):
        with self._lock:
            return self._records.get(record_id)

    def lookup_employee(self, email):
        if self._employees is not None:
            return self._employees.get((email or "").strip().lower())
        return get_employee_data(email)

    def add_record(self, record: RequestRecord) -> RequestRecord:
        """Seed an existing record (demo data and tests)."""
        self._insert(record)
        return record


_LEAVE_COLUMNS = (
    "id",
    "employee_name",
    "employee_email",
    "employee_id",
    "leave_type",
    "start_date",
    "end_date",
    "reason",
    "duration_days",
    "is_half_day",
    "is_exception",
    "status",
    "created_at",
)
_WFH_COLUMNS = (
    "id",
    "employee_name",
    "employee_email",
    "employee_id",
    "start_date",
    "end_date",
    "reason",
    "duration_days",
    "is_exception",
    "status",
    "created_at",
)
_TABLES = {"leave": "leave_requests", "wfh": "wfh_requests"}


class SnowflakeRecordStore(RecordStore):
    """
    Snowflake-backed store.

    Queries use the Snowpark DataFrame API only, never SQL strings built from
    user input. Failures and an open circuit surface as RecordStoreError.
    """

    def __init__(self, session: Session | None = None, circuit_breaker: CircuitBreaker | None = None):
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            name="SnowflakeCircuitBreaker",
        )
        self.session = session or self._create_session()

    def _create_session(self) -> Session:
        session = Session.builder.configs(settings.snowflake_connection).create()
        logger.info("Snowflake session initialized successfully")
        return session

    def _guarded(self, func, *args):
        try:
            return self.circuit_breaker.call(func, *args)
        except CircuitBreakerOpenError as e:
            raise RecordStoreError(str(e)) from e
        except SnowparkSQLException as e:
            logger.error(f"Snowflake error: {e}")
            raise RecordStoreError("The leave system is unavailable right now.") from e

    @staticmethod
    def _rows(df) -> list[dict[str, Any]]:
        frame = df.to_pandas()
        # Unquoted Snowflake identifiers come back upper-cased
        frame.columns = [c.lower() for c in frame.columns]
        return frame.to_dict(orient="records")

    @staticmethod
    def _to_record(row: dict[str, Any], kind: str) -> RequestRecord:
        return RequestRecord(
            id=str(row["id"]),
            kind=kind,
            start_date=coerce_date(row.get("start_date")),
            end_date=coerce_date(row.get("end_date")) or coerce_date(row.get("start_date")),
            status=row.get("status") or STATUS_PENDING,
            employee_name=row.get("employee_name"),
            employee_email=row.get("employee_email"),
            employee_id=row.get("employee_id"),
            leave_type=row.get("leave_type"),
            reason=row.get("reason"),
            duration_days=row.get("duration_days"),
            is_half_day=bool(row.get("is_half_day")),
            is_exception=bool(row.get("is_exception")),
            created_at=str(row.get("created_at") or ""),
        )

    def _query_records(self, identity, kind):
        if identity.email:
            condition = col("employee_email") == identity.email
        else:
            condition = col("employee_name") == (identity.name or "")
        records = []
        for record_kind in (["leave", "wfh"] if kind is None else [kind]):
            df = self.session.table(_TABLES[record_kind]).filter(condition)
            records.extend(self._to_record(row, record_kind) for row in self._rows(df))
        return records

    def _records_for(self, identity, kind=None):
        return self._guarded(self._query_records, identity, kind)

    def _write(self, record):
        columns = _LEAVE_COLUMNS if record.kind == "leave" else _WFH_COLUMNS
        row = record.to_dict()
        values = [row.get(c) for c in columns]
        df = self.session.create_dataframe([values], schema=list(columns))
        df.write.mode("append").save_as_table(_TABLES[record.kind])

    def _insert(self, record):
        self._guarded(self._write, record)

    def _update(self, record_id, status):
        for table in _TABLES.values():
            result = self.session.table(table).update(
                {"status": lit(status)}, col("id") == record_id
            )
            if result.rows_updated:
                return True
        return False

    def _set_status(self, record_id, status):
        return self._guarded(self._update, record_id, status)

    def _fetch(self, record_id):
        for kind, table in _TABLES.items():
            rows = self._rows(self.session.table(table).filter(col("id") == record_id))
            if rows:
                return self._to_record(rows[0], kind)
        return None

    def get_record(self, record_id):
        return self._guarded(self._fetch, record_id)

    def _query_employee(self, email):
        df = (
            self.session.table("employees")
            .select("employee_id", "name", "email", "department", "gender")
            .filter(col("email") == email)
        )
        rows = self._rows(df)
        return rows[0] if rows else None

    def lookup_employee(self, email):
        if not email:
            return None
        return self._guarded(self._query_employee, email.strip().lower())

    def get_circuit_breaker_state(self) -> dict:
        return self.circuit_breaker.get_state()

    def close(self):
        if self.session:
            self.session.close()
            logger.info("Snowflake session closed")


def create_record_store() -> RecordStore:
    """Snowflake when an account is configured, otherwise the demo store."""
    if settings.use_snowflake:
        try:
            return SnowflakeRecordStore()
        except Exception as e:
            logger.error(f"Failed to initialize Snowflake session: {e}")
            logger.warning("Falling back to in-memory record store")
    return InMemoryRecordStore()
