"""
Form Audit Logger

Append-only audit trail for one form editing session.

Properties:
    - Append-only (events are never modified once flushed)
    - Timestamped by the caller or by the session clock
    - Buffered in memory, flushed to a JSON-lines file on exit events
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from formsave.saving.ports import AuditEventType, AuditLogger, Clock, SystemClock

from .events import AuditEvent

logger = logging.getLogger(__name__)


class FormAuditLogger(AuditLogger):
    """
    Audit logger for a single form instance.

    editing:                the session reopened a previously saved instance
    change_reason_required: the form's audit policy demands a reason for
                            saving edits to such an instance
    """

    def __init__(
        self,
        instance_id: str,
        *,
        editing: bool = False,
        change_reason_required: bool = False,
        log_path: Optional[Path] = None,
        clock: Optional[Clock] = None,
    ):
        self.instance_id = instance_id
        self.log_path = Path(log_path) if log_path else None
        self._editing = editing
        self._change_reason_required = change_reason_required
        self._clock = clock or SystemClock()

        self._events: List[AuditEvent] = []
        self._flushed = 0
        self._event_counter = 0
        self._changes_made = False

    # =========================================================================
    # Policy
    # =========================================================================

    def is_change_reason_required(self) -> bool:
        return self._change_reason_required

    def is_changes_made(self) -> bool:
        return self._changes_made

    def is_editing(self) -> bool:
        return self._editing

    # =========================================================================
    # Session events
    # =========================================================================

    def start(self, timestamp: Optional[datetime] = None) -> str:
        """Log the start (or resumption, when editing) of the session."""
        event_type = AuditEventType.FORM_RESUME if self._editing else AuditEventType.FORM_START
        return self._append(event_type, timestamp or self._clock.now())

    def enter_view(self, node: str, timestamp: Optional[datetime] = None) -> str:
        """Open a view interval for a question; closes any interval still open."""
        now = timestamp or self._clock.now()
        self._close_open_views(now)
        return self._append(AuditEventType.QUESTION, now, node=node)

    def exit_view(self) -> None:
        self._close_open_views(self._clock.now())

    def record_answer_change(
        self,
        node: str,
        old_value: Optional[str],
        new_value: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> Optional[str]:
        """Track an edited answer. Returns the event id, or None if unchanged."""
        if old_value == new_value:
            return None
        self._changes_made = True
        return self._append(
            AuditEventType.CHANGE_ANSWER,
            timestamp or self._clock.now(),
            node=node,
            old_value=old_value,
            new_value=new_value,
        )

    def log_event(
        self,
        event_type: AuditEventType,
        exiting: bool,
        timestamp: datetime,
        reason: Optional[str] = None,
    ) -> None:
        self._append(event_type, timestamp, exiting=exiting, reason=reason)
        if exiting:
            self.flush()

    # =========================================================================
    # Storage
    # =========================================================================

    def _append(self, event_type: AuditEventType, timestamp: datetime, **fields) -> str:
        self._event_counter += 1
        event_id = f"evt_{self._event_counter:06d}"
        self._events.append(
            AuditEvent(
                event_id=event_id,
                event_type=event_type,
                timestamp=timestamp,
                instance_id=self.instance_id,
                **fields,
            )
        )
        logger.debug(f"Audit event logged: {event_id} ({event_type.value})")
        return event_id

    def _close_open_views(self, end: datetime) -> None:
        # Only the unflushed tail can still be open
        for i in range(self._flushed, len(self._events)):
            if self._events[i].is_open:
                self._events[i] = self._events[i].closed_at(end)

    def flush(self) -> int:
        """Write buffered events to the log file. Returns how many were written."""
        pending = self._events[self._flushed:]
        if not pending:
            return 0

        if self.log_path:
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.log_path, "a") as f:
                    for event in pending:
                        f.write(event.to_json() + "\n")
            except OSError as e:
                logger.error(f"Failed to persist audit events: {e}")
                return 0

        self._flushed = len(self._events)
        logger.info(f"Flushed {len(pending)} audit event(s) for {self.instance_id}")
        return len(pending)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_all_events(self) -> List[AuditEvent]:
        """Get all audit events."""
        return list(self._events)

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def count_by_type(self) -> Dict[str, int]:
        """Count events by event type."""
        counts: Dict[str, int] = {}
        for event in self._events:
            key = event.event_type.value
            counts[key] = counts.get(key, 0) + 1
        return counts


def read_audit_log(log_path: Path) -> List[AuditEvent]:
    """Load events from a JSON-lines audit log."""
    events = []
    with open(log_path) as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(AuditEvent.from_dict(json.loads(line)))
    return events
