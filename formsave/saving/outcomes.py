"""
Save Outcome Translation

Maps backend result codes onto outward save states, and plans the audit
trail that must be recorded when a save completes.

Both are pure: given the same inputs they return the same answer, so the
coordinator's completion handler only has to execute the plan.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .ports import AuditEventType
from .results import (
    MESSAGE_STATES,
    SaveOutcome,
    SaveRequest,
    SaveResult,
    SaveResultState,
    SaveStatus,
)


# =============================================================================
# Translation Table
# =============================================================================

# Checked in order, first match wins.
OUTCOME_TABLE: Tuple[Tuple[SaveStatus, SaveResultState], ...] = (
    (SaveStatus.ANSWER_CONSTRAINT_VIOLATED, SaveResultState.CONSTRAINT_ERROR),
    (SaveStatus.ANSWER_REQUIRED_BUT_EMPTY, SaveResultState.CONSTRAINT_ERROR),
    (SaveStatus.ENCRYPTION_ERROR, SaveResultState.FINALIZE_ERROR),
    (SaveStatus.SAVE_ERROR, SaveResultState.SAVE_ERROR),
    (SaveStatus.SAVED, SaveResultState.SAVED),
    (SaveStatus.SAVED_AND_EXIT, SaveResultState.SAVED),
)

UNRECOGNISED_STATUS_MESSAGE = "Unrecognised save status: {status}"


def translate_outcome(outcome: SaveOutcome) -> SaveResult:
    """Translate a backend outcome into the terminal SaveResult."""
    for status, state in OUTCOME_TABLE:
        if outcome.status == status:
            message = outcome.message if state in MESSAGE_STATES else None
            return SaveResult(state, message)

    return SaveResult(
        SaveResultState.SAVE_ERROR,
        UNRECOGNISED_STATUS_MESSAGE.format(status=outcome.status),
    )


# =============================================================================
# Audit Plan
# =============================================================================

@dataclass(frozen=True)
class AuditStep:
    """
    One side effect against the audit logger.

    event_type None means exit_view(); otherwise log_event(event_type, flag, now).
    """
    event_type: Optional[AuditEventType]
    flag: bool = False

    @property
    def is_exit_view(self) -> bool:
        return self.event_type is None


EXIT_VIEW = AuditStep(event_type=None)


def plan_audit_trail(result: SaveResult, request: SaveRequest) -> List[AuditStep]:
    """Audit steps to record, in order, for a completed save."""
    state = result.state

    if state == SaveResultState.CONSTRAINT_ERROR:
        return [EXIT_VIEW, AuditStep(AuditEventType.CONSTRAINT_ERROR, True)]

    if state == SaveResultState.FINALIZE_ERROR:
        return [AuditStep(AuditEventType.FINALIZE_ERROR, True)]

    if state == SaveResultState.SAVE_ERROR:
        return [AuditStep(AuditEventType.SAVE_ERROR, True)]

    if state == SaveResultState.SAVED:
        steps = [AuditStep(AuditEventType.FORM_SAVE, not request.is_exiting)]
        if request.is_exiting:
            steps.append(AuditStep(AuditEventType.FORM_EXIT, not request.should_finalize))
            if request.should_finalize:
                steps.append(AuditStep(AuditEventType.FORM_FINALIZE, True))
        return steps

    return []
