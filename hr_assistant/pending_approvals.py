"""
Pending manager approvals for exception requests.

When an employee confirms a request that exceeds their balance or WFH
allowance, the record is created flagged as an exception and an approval
entry is kept here until a manager approves or rejects it, or it expires.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date

from hr_assistant.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PendingApprovalRecord:
    record_id: str
    kind: str
    employee_name: str | None
    start_date: date
    end_date: date
    reason: str | None = None
    employee_email: str | None = None
    leave_type: str | None = None
    duration_days: float | None = None
    is_exception: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = 0.0
    expires_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


class PendingApprovalStore:
    """Process-wide approval map; every operation holds the same lock."""

    def __init__(self, expiry_hours: int | None = None, clock: Callable[[], float] = time.time):
        hours = expiry_hours if expiry_hours is not None else settings.pending_approval_expiry_hours
        self.expiry_seconds = hours * 3600
        self.clock = clock
        self._pending: dict[str, PendingApprovalRecord] = {}
        self._lock = threading.Lock()

    def store(self, record: PendingApprovalRecord) -> str:
        now = self.clock()
        record.timestamp = now
        record.expires_at = now + self.expiry_seconds
        with self._lock:
            self._pending[record.id] = record
        logger.info(f"Stored pending approval: {record.id} (record {record.record_id})")
        return record.id

    def get(self, approval_id: str) -> PendingApprovalRecord | None:
        with self._lock:
            record = self._pending.get(approval_id)
            if record is None:
                return None
            if record.is_expired(self.clock()):
                logger.info(f"Pending approval {approval_id} has expired")
                del self._pending[approval_id]
                return None
            return record

    def remove(self, approval_id: str) -> bool:
        with self._lock:
            existed = self._pending.pop(approval_id, None) is not None
        if existed:
            logger.info(f"Removed pending approval: {approval_id}")
        return existed

    def count(self) -> int:
        with self._lock:
            return len(self._pending)

    def sweep_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [aid for aid, record in self._pending.items() if record.is_expired(now)]
            for aid in expired:
                del self._pending[aid]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired pending approvals")
        return len(expired)
