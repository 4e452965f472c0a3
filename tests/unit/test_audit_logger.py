"""
Unit Tests: FormAuditLogger

Append-only trail, view intervals and flush-on-exit persistence.
"""

import json
from datetime import datetime, timedelta

import pytest

from formsave.audit import AuditEvent, FormAuditLogger, read_audit_log
from formsave.saving import AuditEventType, Clock

T0 = datetime(2024, 3, 1, 9, 0, 0)


class SteppingClock(Clock):
    """Each call is one second later than the previous one."""

    def __init__(self):
        self._ticks = 0

    def now(self) -> datetime:
        self._ticks += 1
        return T0 + timedelta(seconds=self._ticks)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "audit.jsonl"


@pytest.fixture
def audit_logger(log_path):
    return FormAuditLogger("inst-001", log_path=log_path, clock=SteppingClock())


class TestPolicy:
    """Tests for the policy queries the coordinator consumes."""

    def test_defaults(self):
        audit_logger = FormAuditLogger("inst-001")
        assert audit_logger.is_editing() is False
        assert audit_logger.is_change_reason_required() is False
        assert audit_logger.is_changes_made() is False

    def test_configured_policy(self):
        audit_logger = FormAuditLogger("inst-001", editing=True, change_reason_required=True)
        assert audit_logger.is_editing() is True
        assert audit_logger.is_change_reason_required() is True

    def test_answer_change_marks_changes_made(self, audit_logger):
        event_id = audit_logger.record_answer_change("age", "41", "42")

        assert event_id is not None
        assert audit_logger.is_changes_made() is True
        change = audit_logger.get_events_by_type(AuditEventType.CHANGE_ANSWER)[0]
        assert (change.node, change.old_value, change.new_value) == ("age", "41", "42")

    def test_unchanged_answer_is_not_a_change(self, audit_logger):
        assert audit_logger.record_answer_change("age", "42", "42") is None
        assert audit_logger.is_changes_made() is False
        assert audit_logger.get_all_events() == []


class TestEvents:
    """Tests for event recording."""

    def test_start_logs_form_start(self, audit_logger):
        audit_logger.start()
        assert audit_logger.get_all_events()[0].event_type == AuditEventType.FORM_START

    def test_start_when_editing_logs_form_resume(self, log_path):
        audit_logger = FormAuditLogger("inst-001", editing=True, log_path=log_path)
        audit_logger.start(T0)
        assert audit_logger.get_all_events()[0].event_type == AuditEventType.FORM_RESUME

    def test_log_event_records_fields(self, audit_logger):
        audit_logger.log_event(AuditEventType.CHANGE_REASON, True, T0, "typo")

        event = audit_logger.get_all_events()[0]
        assert event.event_type == AuditEventType.CHANGE_REASON
        assert event.exiting is True
        assert event.timestamp == T0
        assert event.reason == "typo"
        assert event.instance_id == "inst-001"

    def test_event_ids_are_sequential(self, audit_logger):
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        audit_logger.log_event(AuditEventType.FORM_EXIT, False, T0)

        assert [e.event_id for e in audit_logger.get_all_events()] == ["evt_000001", "evt_000002"]

    def test_exit_view_closes_open_question(self, audit_logger):
        audit_logger.enter_view("age")
        audit_logger.exit_view()

        question = audit_logger.get_events_by_type(AuditEventType.QUESTION)[0]
        assert question.end_timestamp == T0 + timedelta(seconds=2)
        assert not question.is_open

    def test_entering_a_view_closes_the_previous_one(self, audit_logger):
        audit_logger.enter_view("age")
        audit_logger.enter_view("name")

        first, second = audit_logger.get_events_by_type(AuditEventType.QUESTION)
        assert first.end_timestamp == second.timestamp
        assert second.is_open

    def test_count_by_type(self, audit_logger):
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        audit_logger.log_event(AuditEventType.FORM_EXIT, False, T0)

        assert audit_logger.count_by_type() == {"form_save": 2, "form_exit": 1}

    def test_get_all_events_returns_copy(self, audit_logger):
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        audit_logger.get_all_events().clear()
        assert len(audit_logger.get_all_events()) == 1


class TestPersistence:
    """Tests for buffering and flushing to the JSON-lines file."""

    def test_non_exiting_events_stay_buffered(self, audit_logger, log_path):
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        assert not log_path.exists()

    def test_exiting_event_flushes_buffer(self, audit_logger, log_path):
        audit_logger.log_event(AuditEventType.FORM_SAVE, False, T0)
        audit_logger.log_event(AuditEventType.FORM_EXIT, True, T0)

        lines = log_path.read_text().splitlines()
        assert [json.loads(line)["event_type"] for line in lines] == ["form_save", "form_exit"]

    def test_flush_writes_each_event_once(self, audit_logger, log_path):
        audit_logger.log_event(AuditEventType.FORM_SAVE, True, T0)
        audit_logger.log_event(AuditEventType.FORM_EXIT, True, T0)
        assert audit_logger.flush() == 0

        assert len(log_path.read_text().splitlines()) == 2

    def test_open_view_is_closed_before_flush(self, audit_logger, log_path):
        audit_logger.enter_view("age")
        audit_logger.exit_view()
        audit_logger.log_event(AuditEventType.CONSTRAINT_ERROR, True, T0)

        events = read_audit_log(log_path)
        assert events[0].event_type == AuditEventType.QUESTION
        assert events[0].end_timestamp is not None

    def test_read_audit_log_restores_events(self, audit_logger, log_path):
        audit_logger.record_answer_change("age", None, "42")
        audit_logger.log_event(AuditEventType.CHANGE_REASON, True, T0, "late entry")

        restored = read_audit_log(log_path)
        assert restored == audit_logger.get_all_events()
        assert isinstance(restored[0], AuditEvent)

    def test_without_log_path_flush_only_advances(self):
        audit_logger = FormAuditLogger("inst-001")
        audit_logger.log_event(AuditEventType.FORM_EXIT, True, T0)
        assert audit_logger.flush() == 0
        assert len(audit_logger.get_all_events()) == 1
