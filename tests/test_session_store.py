"""
Tests for the in-memory session store.
"""

import asyncio

from hr_assistant.conversation_state import WfhRequestDraft
from hr_assistant.session_store import InMemorySessionStore, SessionContext


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestInMemorySessionStore:
    """TTL expiry, capacity eviction and locks."""

    def test_get_or_create(self):
        """A new session is created once and then reused."""
        store = InMemorySessionStore()
        first = store.get_or_create("s1")
        second = store.get_or_create("s1")

        assert first is second
        assert len(store) == 1

    def test_expired_session_is_dropped_on_access(self):
        """Sessions idle past the TTL are gone."""
        clock = FakeClock()
        store = InMemorySessionStore(ttl_seconds=60, clock=clock)
        store.set(SessionContext(session_id="s1"))

        clock.now += 61

        assert store.get("s1") is None
        assert len(store) == 0

    def test_set_refreshes_activity(self):
        """Writing a session keeps it alive."""
        clock = FakeClock()
        store = InMemorySessionStore(ttl_seconds=60, clock=clock)
        context = store.get_or_create("s1")

        clock.now += 50
        store.set(context)
        clock.now += 50

        assert store.get("s1") is context

    def test_sweep_removes_expired_and_evicts_oldest(self):
        """Sweeping drops idle sessions, then the oldest beyond capacity."""
        clock = FakeClock()
        store = InMemorySessionStore(ttl_seconds=100, max_sessions=2, clock=clock)
        store.set(SessionContext(session_id="idle"))
        clock.now += 90
        for sid in ("a", "b", "c"):
            store.set(SessionContext(session_id=sid))
        clock.now += 20

        removed = store.sweep_expired()

        assert removed == 2
        assert store.get("idle") is None
        assert store.get("a") is None
        assert store.get("b") is not None
        assert store.get("c") is not None

    def test_delete(self):
        """Deleting reports whether the session existed."""
        store = InMemorySessionStore()
        store.get_or_create("s1")

        assert store.delete("s1")
        assert not store.delete("s1")

    def test_lock_is_per_session(self):
        """Each session id has its own asyncio lock."""
        store = InMemorySessionStore()

        assert store.lock("s1") is store.lock("s1")
        assert store.lock("s1") is not store.lock("s2")

    def test_lock_serialises_turns(self):
        """Turns on one session run one after another."""
        store = InMemorySessionStore()
        order = []

        async def turn(name):
            async with store.lock("s1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        async def main():
            await asyncio.gather(turn("a"), turn("b"))

        asyncio.run(main())

        assert order == ["a-start", "a-end", "b-start", "b-end"]


class TestSessionContext:
    """Context helpers."""

    def test_history_is_bounded(self):
        """Only the newest entries are kept."""
        context = SessionContext(session_id="s1")
        for i in range(5):
            context.add_history(f"m{i}", "general_query", max_history=3)

        assert [h.message for h in context.history] == ["m2", "m3", "m4"]

    def test_active_flow(self):
        """The active flow follows whichever draft exists."""
        context = SessionContext(session_id="s1")
        assert context.active_flow is None

        context.wfh_flow = WfhRequestDraft()
        assert context.active_flow == "apply_wfh"

        context.clear_flows()
        assert context.active_flow is None
