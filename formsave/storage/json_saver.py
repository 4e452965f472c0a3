"""
JSON Form Saver

PersistenceBackend that keeps form instances as JSON files.

Save pipeline:
    validate (finalize only) → record reason → seal (finalize only) → write instance

Every failure is reported as a SaveOutcome; nothing is raised from save().
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from formsave.saving.ports import Clock, PersistenceBackend, SystemClock
from formsave.saving.results import SaveOutcome, SaveStatus

from .models import ChangeReason, FormInstance, SealedSubmission

logger = logging.getLogger(__name__)

Locator = Union[str, Path]

SEAL_SUFFIX = ".submission.json"


class FormLoadError(Exception):
    """Raised when a form instance file cannot be read or parsed."""
    pass


def seal_path_for(path: Path) -> Path:
    return path.with_name(path.stem + SEAL_SUFFIX)


def _write_atomic(path: Path, text: str) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
    os.replace(tmp, path)


class JsonFormSaver(PersistenceBackend):
    """
    Loads, edits and saves form instances stored as JSON files.

    Instances are cached by resolved path after first load, so staged
    answers survive until the next save.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._instances: Dict[Path, FormInstance] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Instance access
    # =========================================================================

    def load(self, locator: Locator) -> FormInstance:
        """Return the cached instance, reading it from disk on first use."""
        path = Path(locator).resolve()
        with self._lock:
            cached = self._instances.get(path)
            if cached is not None:
                return cached

            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise FormLoadError(f"Cannot read form instance {path}: {e}") from e

            try:
                instance = FormInstance.model_validate_json(text)
            except ValidationError as e:
                raise FormLoadError(f"Invalid form instance {path}: {e}") from e

            self._instances[path] = instance
            logger.info(f"Loaded form instance {instance.instance_id} from {path}")
            return instance

    def set_answer(self, locator: Locator, name: str, value: Optional[str]) -> Optional[str]:
        """Stage an answer for the next save. Returns the previous answer."""
        instance = self.load(locator)
        instance.question(name)  # KeyError for undeclared questions
        with self._lock:
            old_value = instance.answers.get(name)
            instance.answers[name] = value
        return old_value

    # =========================================================================
    # PersistenceBackend
    # =========================================================================

    def save(
        self,
        locator: Any,
        should_finalize: bool,
        reason: str,
        is_exiting: bool,
    ) -> SaveOutcome:
        try:
            instance = self.load(locator)
        except FormLoadError as e:
            logger.error(str(e))
            return SaveOutcome(SaveStatus.SAVE_ERROR, str(e))

        path = Path(locator).resolve()

        if should_finalize:
            missing = instance.first_missing_required()
            if missing is not None:
                return SaveOutcome(
                    SaveStatus.ANSWER_REQUIRED_BUT_EMPTY,
                    f"Question '{missing.name}' requires an answer",
                )
            violated = instance.first_constraint_violation()
            if violated is not None:
                return SaveOutcome(
                    SaveStatus.ANSWER_CONSTRAINT_VIOLATED,
                    f"Answer to '{violated.name}' does not match {violated.pattern}",
                )

        now = self._clock.now()
        with self._lock:
            updated = instance.model_copy(deep=True)
            if reason and reason.strip():
                updated.change_reasons.append(ChangeReason(reason=reason.strip(), recorded_at=now))
            if should_finalize:
                updated.status = "complete"
                updated.finalized_at = now
            else:
                updated.status = "incomplete"

            # Seal before the instance is written, so an instance on disk
            # never claims to be complete without its seal
            if should_finalize:
                seal = SealedSubmission(
                    instance_id=updated.instance_id,
                    form_id=updated.form_id,
                    digest=updated.digest(),
                    sealed_at=now,
                )
                try:
                    _write_atomic(seal_path_for(path), seal.model_dump_json(indent=2))
                except OSError as e:
                    logger.error(f"Failed to seal submission {path}: {e}")
                    return SaveOutcome(SaveStatus.ENCRYPTION_ERROR, f"Failed to seal {path.name}: {e}")

            try:
                _write_atomic(path, updated.model_dump_json(indent=2))
            except OSError as e:
                logger.error(f"Failed to write form instance {path}: {e}")
                return SaveOutcome(SaveStatus.SAVE_ERROR, f"Failed to write {path.name}: {e}")

            self._instances[path] = updated

        logger.info(
            f"Saved form instance {updated.instance_id} "
            f"(status={updated.status}, exiting={is_exiting})"
        )
        return SaveOutcome(SaveStatus.SAVED_AND_EXIT if is_exiting else SaveStatus.SAVED)
