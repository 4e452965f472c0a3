"""
CLI Wiring

Constructs the saver, audit logger, worker and coordinator for a CLI run.

Tests inject a JsonFormSaver (and, if they like, a worker factory) by
replacing the module globals.
"""

from pathlib import Path
from typing import Callable, Optional

from formsave.audit import FormAuditLogger
from formsave.config import config
from formsave.saving import SaveCoordinator, ThreadWorker, Worker
from formsave.storage import JsonFormSaver


def make_worker() -> Worker:
    """Thread worker sized from configuration."""
    return ThreadWorker(max_workers=config.worker.max_workers)


def make_audit_logger(
    instance_id: str,
    *,
    editing: bool,
    change_reason_required: Optional[bool] = None,
    log_path: Optional[Path] = None,
) -> FormAuditLogger:
    """
    Audit logger for one editing session.

    Falls back to configuration for the reason policy and the log file.
    """
    if change_reason_required is None:
        change_reason_required = config.audit.change_reason_required
    return FormAuditLogger(
        instance_id,
        editing=editing,
        change_reason_required=change_reason_required,
        log_path=log_path or config.audit.log_path,
    )


def make_coordinator(saver: JsonFormSaver, audit_logger: FormAuditLogger, worker: Worker) -> SaveCoordinator:
    return SaveCoordinator(saver, audit_logger=audit_logger, worker=worker)


# Global instances (lazily initialized)
_saver: Optional[JsonFormSaver] = None
_worker_factory: Callable[[], Worker] = make_worker


def get_saver() -> JsonFormSaver:
    """Get or create the global JsonFormSaver instance."""
    global _saver
    if _saver is None:
        _saver = JsonFormSaver()
    return _saver


def get_worker() -> Worker:
    return _worker_factory()
