"""Clinical rule models — the data-driven rule table.

Each rule is a named set of predicates over a :class:`Symptoms` record
that maps to an urgency tier and a fixed score.  Rules are loaded once
from YAML (see :mod:`triage_core.ruleset`) and never mutated.

A rule triggers when every ``when`` predicate holds and, if ``any_of`` is
non-empty, at least one ``any_of`` predicate holds.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator

from triage_core import constants
from triage_core.models.enums import UrgencyLevel

# Symptom attributes a predicate may inspect.
PredicateField = Literal[
    "primary_complaint",
    "associated_symptoms",
    "all_text",
    "duration",
    "severity",
]

PredicateOp = Literal[
    "contains_any",
    "contains_all",
    "min_count",
    "eq",
    "lt",
    "le",
    "gt",
    "ge",
    "between",
]


class Predicate(BaseModel):
    """A single comparison against one symptom attribute.

    ``value`` shape depends on ``op``:
      - contains_any / contains_all: list of keywords
      - min_count: ``{"terms": [...], "count": N}``
      - between: ``[lo, hi]`` inclusive
      - eq / lt / le / gt / ge: scalar
    """

    model_config = ConfigDict(frozen=True)

    field: PredicateField
    op: PredicateOp
    value: Any


class ClinicalRule(BaseModel):
    """One row of the clinical rule table."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    urgency: UrgencyLevel
    score: int
    reasoning: str
    when: list[Predicate] = []
    any_of: list[Predicate] = []

    @model_validator(mode="after")
    def _check_score_band(self) -> "ClinicalRule":
        lo, hi = constants.SCORE_BANDS[self.urgency]
        if not lo <= self.score < hi:
            raise ValueError(
                f"Rule {self.id}: score {self.score} outside the "
                f"{self.urgency.value} band [{lo}, {hi})"
            )
        if not self.when and not self.any_of:
            raise ValueError(f"Rule {self.id}: no predicates")
        return self
