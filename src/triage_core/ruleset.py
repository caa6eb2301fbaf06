"""RuleTable — loads the clinical rule table from YAML into typed models.

The table is loaded once and is immutable afterwards; engine instances
share it freely.

Usage::

    table = RuleTable.load()              # packaged clinical_rules.yaml
    table = RuleTable.load("my_rules.yaml")
    rule = table.get("EMERGENCY_CHEST_PAIN")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

import yaml

from triage_core.models.enums import UrgencyLevel
from triage_core.models.rule import ClinicalRule

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "rules" / "clinical_rules.yaml"


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class RuleTable:
    """Ordered, read-only collection of :class:`ClinicalRule`.

    Table order matters: triggered rules are reported in this order, and
    when several rules of the winning tier trigger, the first one supplies
    the primary reasoning.
    """

    def __init__(self, rules: Iterable[ClinicalRule]) -> None:
        self._rules: tuple[ClinicalRule, ...] = tuple(rules)
        self._by_id: dict[str, ClinicalRule] = {}
        for rule in self._rules:
            if rule.id in self._by_id:
                raise ValueError(f"Duplicate rule id '{rule.id}'")
            self._by_id[rule.id] = rule

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str | None = None) -> RuleTable:
        """Parse a rule YAML file (``{"rules": [...]}``) into a table.

        Raises ``FileNotFoundError`` for a missing file and
        ``pydantic.ValidationError`` for a rule whose score falls outside
        its tier's band.
        """
        path = Path(path) if path is not None else DEFAULT_RULES_PATH
        raw = load_yaml(path)
        table = cls.from_dicts(raw.get("rules", []) if isinstance(raw, dict) else raw)
        logger.info("RuleTable loaded: %d rules from %s", len(table), path)
        return table

    @classmethod
    def from_dicts(cls, raw_rules: Iterable[dict]) -> RuleTable:
        """Build a table from already-parsed rule dicts."""
        return cls(ClinicalRule(**raw) for raw in raw_rules)

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    @property
    def rules(self) -> tuple[ClinicalRule, ...]:
        return self._rules

    def get(self, rule_id: str) -> ClinicalRule:
        """Look up a rule by id.

        Raises:
            KeyError: if the id is not in the table.
        """
        return self._by_id[rule_id]

    def urgencies_of(self, rule_ids: Iterable[str]) -> set[UrgencyLevel]:
        """Return the distinct tiers of the given rule ids (unknown ids ignored)."""
        return {
            self._by_id[rid].urgency for rid in rule_ids if rid in self._by_id
        }

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)
