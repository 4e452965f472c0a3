"""
Form Instance Models

On-disk shape of a form submission handled by JsonFormSaver.
"""

import hashlib
import json
import re
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class QuestionSpec(BaseModel):
    """A question on the form and the rules its answer must satisfy."""
    name: str
    required: bool = False

    # Full-match regex the answer must satisfy, if any
    pattern: Optional[str] = None

    def is_answered(self, answer: Optional[str]) -> bool:
        return answer is not None and bool(str(answer).strip())

    def accepts(self, answer: Optional[str]) -> bool:
        """Whether an answer satisfies the constraint. Blank answers are not checked."""
        if self.pattern is None or not self.is_answered(answer):
            return True
        return re.fullmatch(self.pattern, str(answer)) is not None


class ChangeReason(BaseModel):
    """A reason given for editing an already saved submission."""
    reason: str
    recorded_at: datetime


class FormInstance(BaseModel):
    """
    A single submission of a form.

    INVARIANT: answers only reference declared questions.
    """
    instance_id: str
    form_id: str
    questions: List[QuestionSpec] = Field(default_factory=list)
    answers: Dict[str, Optional[str]] = Field(default_factory=dict)
    status: Literal["incomplete", "complete"] = "incomplete"
    change_reasons: List[ChangeReason] = Field(default_factory=list)
    finalized_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_answers_declared(self) -> "FormInstance":
        declared = {f.name for f in self.questions}
        unknown = sorted(set(self.answers) - declared)
        if unknown:
            raise ValueError(f"Answers for undeclared questions: {unknown}")
        return self

    def question(self, name: str) -> QuestionSpec:
        for spec in self.questions:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def first_missing_required(self) -> Optional[QuestionSpec]:
        for spec in self.questions:
            if spec.required and not spec.is_answered(self.answers.get(spec.name)):
                return spec
        return None

    def first_constraint_violation(self) -> Optional[QuestionSpec]:
        for spec in self.questions:
            if not spec.accepts(self.answers.get(spec.name)):
                return spec
        return None

    def digest(self) -> str:
        """Stable hash of the submitted content, used to seal a finalized submission."""
        data = {
            "instance_id": self.instance_id,
            "form_id": self.form_id,
            "answers": {k: self.answers[k] for k in sorted(self.answers)},
        }
        s = json.dumps(data, sort_keys=True)
        return hashlib.sha256(s.encode("utf-8")).hexdigest()


class SealedSubmission(BaseModel):
    """Written next to a finalized instance; the digest pins its answers."""
    instance_id: str
    form_id: str
    digest: str
    sealed_at: datetime
