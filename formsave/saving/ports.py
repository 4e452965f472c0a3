"""
Save Coordinator Ports

Interfaces of the collaborators the coordinator orchestrates:
    Clock              - timestamp source
    PersistenceBackend - writes a form submission to storage
    AuditLogger        - audit policy queries + ordered event log

Concrete implementations live in formsave.audit and formsave.storage;
tests substitute mocks.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .results import SaveOutcome


class AuditEventType(str, Enum):
    """Audit event types recorded against a form instance."""
    # Emitted by the save coordinator
    CHANGE_REASON = "change_reason"
    FORM_SAVE = "form_save"
    FORM_EXIT = "form_exit"
    FORM_FINALIZE = "form_finalize"
    SAVE_ERROR = "save_error"
    FINALIZE_ERROR = "finalize_error"
    CONSTRAINT_ERROR = "constraint_error"

    # Emitted by the editing session
    FORM_START = "form_start"
    FORM_RESUME = "form_resume"
    QUESTION = "question"
    CHANGE_ANSWER = "change_answer"


class Clock(ABC):
    """Supplies the current time for audit timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now()


class PersistenceBackend(ABC):
    """Performs the actual save-to-storage of a form submission."""

    @abstractmethod
    def save(
        self,
        locator: Any,
        should_finalize: bool,
        reason: str,
        is_exiting: bool,
    ) -> SaveOutcome:
        """
        Persist the submission identified by locator.

        Runs on a worker context and may take arbitrarily long.
        Failures are reported through the returned status, not raised.
        """
        pass


class AuditLogger(ABC):
    """Audit policy and append-only event log for one editing session."""

    @abstractmethod
    def is_change_reason_required(self) -> bool:
        pass

    @abstractmethod
    def is_changes_made(self) -> bool:
        pass

    @abstractmethod
    def is_editing(self) -> bool:
        pass

    @abstractmethod
    def exit_view(self) -> None:
        """Close whatever view the session currently has open."""
        pass

    @abstractmethod
    def log_event(
        self,
        event_type: AuditEventType,
        exiting: bool,
        timestamp: datetime,
        reason: Optional[str] = None,
    ) -> None:
        """Append an audit event."""
        pass
