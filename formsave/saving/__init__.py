"""
Form Save Coordination

Single-flight save state machine with reason gating, an observable
result stream per request and an ordered audit trail.
"""

from .coordinator import AwaitingReason, Dispatched, Idle, SaveCoordinator, is_valid_reason
from .outcomes import OUTCOME_TABLE, AuditStep, plan_audit_trail, translate_outcome
from .ports import AuditEventType, AuditLogger, Clock, PersistenceBackend, SystemClock
from .results import (
    TERMINAL_STATES,
    SaveOutcome,
    SaveRequest,
    SaveResult,
    SaveResultState,
    SaveStatus,
)
from .stream import ResultStream, StreamClosedError
from .worker import ManualWorker, ThreadWorker, Worker, WorkerShutdownError

__all__ = [
    # Coordinator
    "SaveCoordinator",
    "Idle",
    "AwaitingReason",
    "Dispatched",
    "is_valid_reason",
    # Results
    "SaveResult",
    "SaveResultState",
    "SaveRequest",
    "SaveOutcome",
    "SaveStatus",
    "TERMINAL_STATES",
    # Translation
    "OUTCOME_TABLE",
    "AuditStep",
    "translate_outcome",
    "plan_audit_trail",
    # Ports
    "AuditEventType",
    "AuditLogger",
    "Clock",
    "SystemClock",
    "PersistenceBackend",
    # Streams
    "ResultStream",
    "StreamClosedError",
    # Workers
    "Worker",
    "ThreadWorker",
    "ManualWorker",
    "WorkerShutdownError",
]
