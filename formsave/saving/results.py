"""
Save Results

Value types shared by the coordinator, the result stream and the
persistence backends.

Two vocabularies live here:
    SaveStatus      - what a persistence backend reports
    SaveResultState - what observers of a save see
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


# =============================================================================
# Outward vocabulary
# =============================================================================

class SaveResultState(str, Enum):
    """States published on a result stream."""
    SAVING = "saving"
    ALREADY_SAVING = "already_saving"
    CHANGE_REASON_REQUIRED = "change_reason_required"
    SAVED = "saved"
    SAVE_ERROR = "save_error"
    CONSTRAINT_ERROR = "constraint_error"
    FINALIZE_ERROR = "finalize_error"


# No further value follows one of these on the same stream
TERMINAL_STATES: Set[SaveResultState] = {
    SaveResultState.ALREADY_SAVING,
    SaveResultState.SAVED,
    SaveResultState.SAVE_ERROR,
    SaveResultState.CONSTRAINT_ERROR,
    SaveResultState.FINALIZE_ERROR,
}

# States that carry the backend's diagnostic text
MESSAGE_STATES: Set[SaveResultState] = {
    SaveResultState.SAVE_ERROR,
    SaveResultState.FINALIZE_ERROR,
}


@dataclass(frozen=True)
class SaveResult:
    """One observable update of a save request."""
    state: SaveResultState
    message: Optional[str] = None

    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "message": self.message,
        }


# =============================================================================
# Backend vocabulary
# =============================================================================

class SaveStatus(str, Enum):
    """Result codes returned by a PersistenceBackend."""
    SAVED = "saved"
    SAVED_AND_EXIT = "saved_and_exit"
    SAVE_ERROR = "save_error"
    ENCRYPTION_ERROR = "encryption_error"
    ANSWER_CONSTRAINT_VIOLATED = "answer_constraint_violated"
    ANSWER_REQUIRED_BUT_EMPTY = "answer_required_but_empty"


@dataclass(frozen=True)
class SaveOutcome:
    """What a backend hands back after a save attempt."""
    status: SaveStatus
    message: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================

@dataclass(frozen=True)
class SaveRequest:
    """A single call to save_form, captured for dispatch or parking."""
    locator: Any
    should_finalize: bool
    reason: str
    is_exiting: bool

    def with_reason(self, reason: str) -> "SaveRequest":
        return SaveRequest(
            locator=self.locator,
            should_finalize=self.should_finalize,
            reason=reason,
            is_exiting=self.is_exiting,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locator": str(self.locator),
            "should_finalize": self.should_finalize,
            "reason": self.reason,
            "is_exiting": self.is_exiting,
        }
