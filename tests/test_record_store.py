"""
Tests for the record store business queries and backends.
"""

from datetime import date
from unittest.mock import Mock, patch

import pytest
from snowflake.snowpark.exceptions import SnowparkSQLException

from hr_assistant.circuit_breaker import CircuitBreaker
from hr_assistant.conversation_state import EmployeeIdentity, LeaveRequestDraft, WfhRequestDraft
from hr_assistant.record_store import (
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_REJECTED,
    InMemoryRecordStore,
    RecordStoreError,
    SnowflakeRecordStore,
    create_record_store,
)


class TestOverlap:
    """Overlap detection across both request kinds."""

    def test_overlapping_leave(self, record_store, identity, seed_record):
        """A leave range overlapping the new dates is reported."""
        seed_record("LR-1", "leave", date(2026, 10, 26), date(2026, 10, 28), leave_type="ANNUAL")

        result = record_store.check_overlap(identity, date(2026, 10, 28), date(2026, 10, 29))

        assert result.has_overlap
        assert result.conflicting_requests[0].id == "LR-1"

    def test_wfh_blocks_leave_dates(self, record_store, identity, seed_record):
        """WFH records count as overlapping too."""
        seed_record("WFH-1", "wfh", date(2026, 10, 22))
        assert record_store.check_overlap(identity, date(2026, 10, 22)).has_overlap

    @pytest.mark.parametrize("status", [STATUS_REJECTED, STATUS_CANCELLED])
    def test_inactive_records_are_ignored(self, record_store, identity, seed_record, status):
        """Rejected and cancelled requests free their dates."""
        seed_record("LR-1", "leave", date(2026, 10, 26), status=status)
        assert not record_store.check_overlap(identity, date(2026, 10, 26)).has_overlap

    def test_other_employees_are_ignored(self, record_store, identity, seed_record):
        """Only the employee's own records overlap."""
        seed_record("LR-1", "leave", date(2026, 10, 26), employee_name="Someone Else")
        assert not record_store.check_overlap(identity, date(2026, 10, 26)).has_overlap

    def test_email_identity(self, record_store, seed_record):
        """With an email, records are matched by email."""
        seed_record("LR-1", "leave", date(2026, 10, 26), employee_email="john.doe@company.com")
        john = EmployeeIdentity(name="Someone", email="John.Doe@company.com")
        assert record_store.check_overlap(john, date(2026, 10, 26)).has_overlap


class TestBalances:
    """Entitlement minus active usage."""

    def test_fresh_balance(self, record_store, identity):
        """No records means the full entitlement."""
        balance = record_store.get_leave_balance(identity, "casual")
        assert (balance.leave_type, balance.total, balance.used, balance.remaining) == ("CASUAL", 12, 0, 12)

    def test_used_days(self, record_store, identity, seed_record):
        """Active records consume balance; rejected ones do not."""
        seed_record("LR-1", "leave", date(2026, 3, 2), leave_type="SICK", duration_days=3)
        seed_record("LR-2", "leave", date(2026, 4, 6), leave_type="SICK", duration_days=2, status=STATUS_REJECTED)

        balance = record_store.get_leave_balance(identity, "SICK")

        assert balance.used == 3
        assert balance.remaining == 9

    def test_check_balance(self, record_store, identity):
        """Requests beyond the remaining days are not available."""
        assert record_store.check_balance(identity, "PATERNITY", 15).is_available
        assert not record_store.check_balance(identity, "PATERNITY", 16).is_available

    def test_all_balances(self, record_store, identity):
        """One balance per leave type."""
        types = [b.leave_type for b in record_store.get_all_leave_balances(identity)]
        assert types == ["ANNUAL", "CASUAL", "SICK", "MATERNITY", "PATERNITY"]

    def test_wfh_week_count(self, record_store, identity, seed_record):
        """WFH requests are counted per Monday-Sunday week."""
        seed_record("WFH-1", "wfh", date(2026, 10, 19))
        seed_record("WFH-2", "wfh", date(2026, 10, 25))
        seed_record("WFH-3", "wfh", date(2026, 10, 26))

        assert record_store.count_wfh_in_week(identity, date(2026, 10, 22)) == 2


class TestCreateAndUpdate:
    """Record creation, listing and status updates."""

    def test_create_leave_record(self, record_store, identity):
        """A complete draft becomes a pending record."""
        draft = LeaveRequestDraft(
            start_date=date(2026, 10, 20), end_date=date(2026, 10, 21), leave_type="CASUAL", reason="trip"
        )

        result = record_store.create_leave_record(identity, draft)

        assert result.success
        record = record_store.get_record(result.id)
        assert record.status == "Pending Approval"
        assert record.duration_days == 2
        assert record.employee_name == "Current User"

    def test_create_leave_requires_type(self, record_store, identity):
        """Incomplete drafts are rejected without raising."""
        result = record_store.create_leave_record(identity, LeaveRequestDraft(start_date=date(2026, 10, 20)))
        assert not result.success
        assert result.message == "Missing required fields"

    def test_create_wfh_record(self, record_store, identity):
        """WFH records default the end date to the start."""
        result = record_store.create_wfh_record(
            identity, WfhRequestDraft(start_date=date(2026, 10, 22), reason="plumber")
        )
        record = record_store.get_record(result.id)
        assert record.kind == "wfh"
        assert record.end_date == date(2026, 10, 22)

    def test_list_requests_sorted(self, record_store, identity, seed_record):
        """Listing filters by kind and sorts by date."""
        seed_record("LR-2", "leave", date(2026, 11, 2), leave_type="ANNUAL")
        seed_record("WFH-1", "wfh", date(2026, 10, 22))
        seed_record("LR-1", "leave", date(2026, 10, 26), leave_type="ANNUAL")

        assert [r.id for r in record_store.list_requests(identity)] == ["WFH-1", "LR-1", "LR-2"]
        assert [r.id for r in record_store.list_requests(identity, "leave")] == ["LR-1", "LR-2"]

    def test_update_status(self, record_store, seed_record):
        """Status updates report unknown ids."""
        seed_record("LR-1", "leave", date(2026, 10, 26))

        assert record_store.update_record_status("LR-1", STATUS_APPROVED).success
        assert record_store.get_record("LR-1").status == STATUS_APPROVED
        assert not record_store.update_record_status("missing", STATUS_APPROVED).success

    def test_lookup_employee(self):
        """The demo store reads the mock directory."""
        store = InMemoryRecordStore()
        assert store.lookup_employee("Priya.Sharma@company.com")["gender"] == "female"
        assert InMemoryRecordStore(employees={}).lookup_employee("priya.sharma@company.com") is None


class TestSnowflakeRecordStore:
    """Snowflake backend with a mocked Snowpark session."""

    def _store(self, session, threshold=5):
        breaker = CircuitBreaker(failure_threshold=threshold, timeout=60, name="TestSnowflake")
        return SnowflakeRecordStore(session=session, circuit_breaker=breaker)

    def test_rows_become_records(self, mock_snowflake_session, identity):
        """Upper-cased Snowflake columns map onto request records."""
        frame = Mock()
        frame.columns = ["ID", "START_DATE", "END_DATE", "STATUS", "EMPLOYEE_NAME", "LEAVE_TYPE"]
        frame.to_dict.return_value = [
            {
                "id": "LR-9",
                "start_date": "2026-10-26",
                "end_date": "2026-10-27",
                "status": "Approved",
                "employee_name": "Current User",
                "leave_type": "ANNUAL",
            }
        ]
        mock_snowflake_session.table.return_value.filter.return_value.to_pandas.return_value = frame

        records = self._store(mock_snowflake_session).list_requests(identity, "leave")

        assert len(records) == 1
        assert records[0].id == "LR-9"
        assert records[0].end_date == date(2026, 10, 27)
        mock_snowflake_session.table.assert_called_with("leave_requests")

    def test_sql_error_becomes_record_store_error(self, mock_snowflake_session, identity):
        """Snowpark failures surface as RecordStoreError."""
        mock_snowflake_session.table.side_effect = SnowparkSQLException("warehouse suspended")

        with pytest.raises(RecordStoreError):
            self._store(mock_snowflake_session).list_requests(identity, "leave")

    def test_open_circuit_becomes_record_store_error(self, mock_snowflake_session, identity):
        """Once the circuit opens, calls fail fast."""
        mock_snowflake_session.table.side_effect = SnowparkSQLException("down")
        store = self._store(mock_snowflake_session, threshold=1)

        with pytest.raises(RecordStoreError):
            store.list_requests(identity, "leave")
        with pytest.raises(RecordStoreError, match="OPEN"):
            store.list_requests(identity, "leave")

        assert store.get_circuit_breaker_state()["state"] == "open"

    def test_factory_without_account_uses_memory(self):
        """No Snowflake account configured means the demo store."""
        with patch("hr_assistant.record_store.settings") as mock_settings:
            mock_settings.use_snowflake = False
            assert isinstance(create_record_store(), InMemoryRecordStore)
