"""
Pytest configuration and fixtures.
Shared test utilities and mock data.
"""

from datetime import date
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from data.holidays import COMPANY_HOLIDAYS
from hr_assistant.chat_engine import ChatEngine
from hr_assistant.conversation_state import EmployeeIdentity
from hr_assistant.holiday_calendar import HolidayCalendar
from hr_assistant.intent_service import IntentService
from hr_assistant.pending_approvals import PendingApprovalStore
from hr_assistant.record_store import InMemoryRecordStore, RequestRecord
from hr_assistant.session_store import InMemorySessionStore

# Monday
TODAY = date(2026, 10, 19)


@pytest.fixture
def today():
    """Fixed reference date used across parser and engine tests."""
    return TODAY


@pytest.fixture
def identity():
    """Identity of the default demo user."""
    return EmployeeIdentity(name="Current User")


@pytest.fixture
def record_store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def holiday_calendar():
    """Built-in company holiday calendar."""
    return HolidayCalendar(COMPANY_HOLIDAYS)


@pytest.fixture
def rules_only_intents():
    """Intent service with the LLM path disabled."""
    return IntentService(api_key="")


@pytest.fixture
def make_engine(record_store, holiday_calendar, rules_only_intents):
    """Factory for a chat engine on the fixed clock with in-memory collaborators."""

    def _make(**overrides):
        options = {
            "session_store": InMemorySessionStore(),
            "record_store": record_store,
            "intent_service": rules_only_intents,
            "holiday_calendar": holiday_calendar,
            "approvals": PendingApprovalStore(),
            "clock": lambda: TODAY,
        }
        options.update(overrides)
        return ChatEngine(**options)

    return _make


@pytest.fixture
def engine(make_engine):
    """Chat engine with default test collaborators."""
    return make_engine()


@pytest.fixture
def seed_record(record_store):
    """Insert an existing request for the default demo user."""

    def _seed(record_id, kind, start, end=None, **fields):
        fields.setdefault("employee_name", "Current User")
        record = RequestRecord(id=record_id, kind=kind, start_date=start, end_date=end or start, **fields)
        return record_store.add_record(record)

    return _seed


@pytest.fixture
def mock_snowflake_session():
    """Mock Snowflake session."""
    session = Mock()
    session.sql = Mock()
    session.table = Mock()
    return session


@pytest.fixture
def test_client():
    """Create FastAPI test client."""
    from hr_assistant.main import app

    return TestClient(app)
