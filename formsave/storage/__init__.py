"""
Form Storage

Reference PersistenceBackend keeping form instances as JSON files.
"""

from .json_saver import FormLoadError, JsonFormSaver, seal_path_for
from .models import ChangeReason, FormInstance, QuestionSpec, SealedSubmission

__all__ = [
    "JsonFormSaver",
    "FormLoadError",
    "seal_path_for",
    "FormInstance",
    "QuestionSpec",
    "ChangeReason",
    "SealedSubmission",
]
