"""
Save Coordinator

Single-flight save state machine for one editing session.

State machine:
    idle → awaiting_reason → dispatched → idle
    idle → dispatched → idle

INVARIANTS:
    - At most one save is parked or dispatched at any time
    - A rejected save_form creates no work and records no audit events
    - Audit events of a completed save are recorded, in order, before its
      terminal result is pushed
    - Nothing raised by a backend, worker or audit logger escapes to the
      caller; every save failure ends as a SaveResult on the stream
    - The token is released only after the terminal result is pushed
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Optional, Union

from .outcomes import plan_audit_trail, translate_outcome
from .ports import AuditEventType, AuditLogger, Clock, PersistenceBackend, SystemClock
from .results import SaveOutcome, SaveRequest, SaveResult, SaveResultState, SaveStatus
from .stream import ResultStream
from .worker import ThreadWorker, Worker

logger = logging.getLogger(__name__)


# =============================================================================
# Internal State
# =============================================================================

@dataclass(frozen=True)
class Idle:
    """No save parked or in flight."""
    pass


@dataclass(frozen=True)
class AwaitingReason:
    """A save is parked until a valid change reason is saved."""
    request: SaveRequest
    stream: ResultStream


@dataclass(frozen=True)
class Dispatched:
    """A save is running on the worker."""
    request: SaveRequest
    stream: ResultStream


CoordinatorState = Union[Idle, AwaitingReason, Dispatched]

IDLE = Idle()


def is_valid_reason(reason: Optional[str]) -> bool:
    """A reason counts only if something is left after trimming."""
    return reason is not None and bool(reason.strip())


# =============================================================================
# Save Coordinator
# =============================================================================

class SaveCoordinator:
    """
    Orchestrates Clock, PersistenceBackend and AuditLogger for saves.

    Callers never block: save_form returns a ResultStream immediately and
    later updates are pushed onto it.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
        worker: Optional[Worker] = None,
    ):
        self._backend = backend
        self._clock = clock or SystemClock()
        self._audit_logger = audit_logger
        self._worker = worker or ThreadWorker()

        self._state: CoordinatorState = IDLE
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    def set_audit_logger(self, audit_logger: Optional[AuditLogger]) -> None:
        """Attach (or detach) the session's audit logger."""
        self._audit_logger = audit_logger

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return self._state

    # =========================================================================
    # Public API
    # =========================================================================

    def save_form(
        self,
        locator: Any,
        should_finalize: bool,
        reason: str,
        is_exiting: bool,
    ) -> ResultStream:
        """Request a save. Always returns a fresh stream."""
        request = SaveRequest(
            locator=locator,
            should_finalize=should_finalize,
            reason=reason or "",
            is_exiting=is_exiting,
        )

        with self._lock:
            if not isinstance(self._state, Idle):
                logger.warning(f"Save of {locator} rejected: another save is in progress")
                return ResultStream.completed(SaveResult(SaveResultState.ALREADY_SAVING))

            stream = ResultStream(SaveResult(SaveResultState.SAVING))

            if self._requires_reason_to_save():
                self._state = AwaitingReason(request, stream)
                logger.info(f"Save of {locator} parked: change reason required")
                return stream

            self._state = Dispatched(request, stream)

        self._dispatch(request, stream)
        return stream

    def set_reason(self, reason: Optional[str]) -> None:
        """Buffer a change reason for a later save_reason()."""
        self._reason = reason

    def save_reason(self) -> bool:
        """
        Record the buffered change reason.

        Returns False, doing nothing else, if the reason is blank. Otherwise
        logs CHANGE_REASON and resumes a parked save, if there is one.
        """
        if not is_valid_reason(self._reason):
            return False

        reason = self._reason.strip()
        try:
            self._log(AuditEventType.CHANGE_REASON, True, reason)
        except Exception:
            logger.exception("Audit logging failed while recording change reason")

        with self._lock:
            parked = self._state
            if not isinstance(parked, AwaitingReason):
                return True
            request = parked.request.with_reason(reason)
            self._state = Dispatched(request, parked.stream)
            self._reason = None

        logger.info(f"Change reason recorded, resuming save of {request.locator}")
        self._dispatch(request, parked.stream)
        return True

    def is_saving(self) -> bool:
        with self._lock:
            return not isinstance(self._state, Idle)

    # =========================================================================
    # Dispatch & Completion
    # =========================================================================

    def _requires_reason_to_save(self) -> bool:
        audit_logger = self._audit_logger
        return (
            audit_logger is not None
            and audit_logger.is_change_reason_required()
            and audit_logger.is_changes_made()
            and audit_logger.is_editing()
        )

    def _dispatch(self, request: SaveRequest, stream: ResultStream) -> None:
        def task() -> SaveOutcome:
            return self._backend.save(
                request.locator,
                request.should_finalize,
                request.reason,
                request.is_exiting,
            )

        def on_complete(future: "Future[SaveOutcome]") -> None:
            self._on_save_complete(request, stream, future)

        logger.info(
            f"Dispatching save of {request.locator} "
            f"(finalize={request.should_finalize}, exiting={request.is_exiting})"
        )
        try:
            self._worker.submit(task, on_complete)
        except Exception as e:
            logger.error(f"Could not dispatch save of {request.locator}: {e}")
            self._finish(stream, SaveResult(SaveResultState.SAVE_ERROR, str(e)))

    def _on_save_complete(
        self,
        request: SaveRequest,
        stream: ResultStream,
        future: "Future[SaveOutcome]",
    ) -> None:
        try:
            outcome = future.result()
        except Exception as e:
            logger.exception(f"Persistence backend raised while saving {request.locator}")
            outcome = SaveOutcome(SaveStatus.SAVE_ERROR, str(e) or type(e).__name__)

        result = translate_outcome(outcome)

        try:
            for step in plan_audit_trail(result, request):
                if step.is_exit_view:
                    self._exit_view()
                else:
                    self._log(step.event_type, step.flag)
        except Exception:
            logger.exception(f"Audit logging failed after saving {request.locator}")

        logger.info(f"Save of {request.locator} finished: {result.state.value}")
        self._finish(stream, result)

    def _finish(self, stream: ResultStream, result: SaveResult) -> None:
        try:
            stream.push(result, close=True)
        finally:
            with self._lock:
                self._state = IDLE

    # =========================================================================
    # Audit helpers
    # =========================================================================

    def _log(self, event_type: AuditEventType, exiting: bool, reason: Optional[str] = None) -> None:
        audit_logger = self._audit_logger
        if audit_logger is None:
            return
        if reason is None:
            audit_logger.log_event(event_type, exiting, self._clock.now())
        else:
            audit_logger.log_event(event_type, exiting, self._clock.now(), reason)

    def _exit_view(self) -> None:
        if self._audit_logger is not None:
            self._audit_logger.exit_view()
