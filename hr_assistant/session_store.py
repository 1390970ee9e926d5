"""
Session store for conversation context.

The conversation engine owns session state exclusively; it reads and writes
it through the ``SessionStore`` interface so a different backing store can be
plugged in without touching the flow logic.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from hr_assistant.config import settings
from hr_assistant.conversation_state import (
    EmployeeIdentity,
    ExceptionOffer,
    LeaveRequestDraft,
    PendingConfirmation,
    WfhRequestDraft,
)

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    message: str
    intent: str
    timestamp: float


@dataclass
class SessionContext:
    session_id: str
    identity: EmployeeIdentity = field(default_factory=EmployeeIdentity)
    leave_flow: LeaveRequestDraft | None = None
    wfh_flow: WfhRequestDraft | None = None
    pending_confirmation: PendingConfirmation | None = None
    exception_offer: ExceptionOffer | None = None
    awaiting_request_type_clarification: bool = False
    last_request: dict[str, Any] | None = None
    history: list[HistoryEntry] = field(default_factory=list)
    last_activity: float = field(default_factory=time.time)

    @property
    def active_flow(self) -> str | None:
        if self.leave_flow is not None:
            return "apply_leave"
        if self.wfh_flow is not None:
            return "apply_wfh"
        return None

    def clear_flows(self):
        self.leave_flow = None
        self.wfh_flow = None

    def add_history(self, message: str, intent: str, max_history: int, now: float | None = None):
        self.history.append(HistoryEntry(message, intent, now or time.time()))
        if len(self.history) > max_history:
            del self.history[: len(self.history) - max_history]


class SessionStore(ABC):
    """get/set/delete/sweep_expired plus a per-session lock."""

    @abstractmethod
    def get(self, session_id: str) -> SessionContext | None: ...

    @abstractmethod
    def set(self, context: SessionContext) -> None: ...

    @abstractmethod
    def delete(self, session_id: str) -> bool: ...

    @abstractmethod
    def sweep_expired(self) -> int: ...

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock: ...

    @abstractmethod
    def __len__(self) -> int: ...

    def get_or_create(self, session_id: str) -> SessionContext:
        context = self.get(session_id)
        if context is None:
            context = SessionContext(session_id=session_id)
            self.set(context)
            logger.info(f"Created session context: {session_id}")
        return context


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.

    An OrderedDict keeps sessions in least-recently-used order so the oldest
    can be evicted deterministically once ``max_sessions`` is exceeded.
    Entries idle for longer than ``ttl_seconds`` are dropped on access and on
    every sweep.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self.clock = clock
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def _is_expired(self, context: SessionContext, now: float) -> bool:
        return now - context.last_activity > self.ttl_seconds

    def get(self, session_id: str) -> SessionContext | None:
        context = self._sessions.get(session_id)
        if context is None:
            return None
        if self._is_expired(context, self.clock()):
            logger.info(f"Session expired: {session_id}")
            self.delete(session_id)
            return None
        return context

    def set(self, context: SessionContext) -> None:
        context.last_activity = self.clock()
        self._sessions[context.session_id] = context
        self._sessions.move_to_end(context.session_id)

    def delete(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]
        return removed

    def sweep_expired(self) -> int:
        """Remove idle sessions, then the oldest ones beyond capacity."""
        now = self.clock()
        expired = [sid for sid, ctx in self._sessions.items() if self._is_expired(ctx, now)]
        for sid in expired:
            self.delete(sid)

        evicted = 0
        while len(self._sessions) > self.max_sessions:
            oldest_sid = next(iter(self._sessions))
            self.delete(oldest_sid)
            evicted += 1

        if expired or evicted:
            logger.info(f"Session sweep: expired={len(expired)} evicted={evicted}")
        return len(expired) + evicted

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._sessions)
