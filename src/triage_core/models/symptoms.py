"""Symptom record submitted by the patient.

The record is immutable once submitted.  Malformed fields are repaired
rather than rejected: the rule engine must always be able to produce a
result, so validation here clamps and defaults instead of raising.
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from triage_core.models.enums import InputMethod

MIN_SEVERITY = 0
MAX_SEVERITY = 10


class Symptoms(BaseModel):
    """Patient-reported symptom set."""

    model_config = ConfigDict(frozen=True)

    primary_complaint: str = ""
    duration: str = ""
    # 0-10 scale; out-of-range input is clamped
    severity: int = 0
    associated_symptoms: list[str] = []
    input_method: InputMethod = InputMethod.TEXT

    @field_validator("primary_complaint", "duration", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _clamp_severity(cls, value: Any) -> int:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return MIN_SEVERITY
        except OverflowError:
            # Integer too large for a float
            return MAX_SEVERITY if value > 0 else MIN_SEVERITY
        if math.isnan(number):
            return MIN_SEVERITY
        return int(max(MIN_SEVERITY, min(MAX_SEVERITY, number)))

    @field_validator("associated_symptoms", mode="before")
    @classmethod
    def _coerce_associated(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, (list, tuple, set, frozenset)):
            return [str(value)]
        return [str(v) for v in value if v is not None]

    @field_validator("input_method", mode="before")
    @classmethod
    def _default_input_method(cls, value: Any) -> Any:
        if value is None:
            return InputMethod.TEXT
        try:
            return InputMethod(value)
        except ValueError:
            return InputMethod.TEXT

    @property
    def all_text(self) -> str:
        """Complaint and associated symptoms joined, for cross-field keyword rules."""
        return " ".join([self.primary_complaint, *self.associated_symptoms])
