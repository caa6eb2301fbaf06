"""AssistanceGate and combiner tests.

Gate criteria (any one is enough):
  - conflicting_rules  — triggered rules span several tiers
  - uncertain_score    — 40 <= score <= 60
  - complex_symptoms   — more than 3 associated symptoms
  - vague_complaint    — non-specific complaint text

Combiner: tier always from the rules; score blended 0.7 / 0.3 when a
secondary assessment was used.
"""

from datetime import datetime, timezone

import pytest

from triage_core.combiner import combine, round_half_up
from triage_core.gate import AssistanceGate, is_vague_complaint
from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessmentNotUsed,
    SecondaryAssessmentUsed,
)
from triage_core.models.enums import UrgencyLevel
from triage_core.models.symptoms import Symptoms


def _result(score, urgency=UrgencyLevel.ROUTINE, rules=()):
    return RuleEvaluationResult(
        urgency=urgency, score=score, triggered_rules=list(rules), reasoning="r",
    )


def _secondary(confidence, recommended=None):
    return SecondaryAssessmentUsed(
        confidence=confidence,
        reasoning="model reasoning",
        model="test-model",
        timestamp=datetime(2026, 1, 5, tzinfo=timezone.utc),
        recommended_urgency=recommended,
    )


@pytest.fixture
def gate(engine):
    return AssistanceGate(engine.table)


# =====================================================================
# Gate
# =====================================================================


class TestAssistanceGate:
    def test_clear_emergency_needs_no_assistance(self, engine, gate):
        symptoms = Symptoms(
            primary_complaint="severe chest pain",
            severity=9,
            associated_symptoms=["shortness of breath"],
        )
        result = engine.assess_symptoms(symptoms)
        assert gate.reasons(result, symptoms) == []
        assert gate.needs_assistance(result, symptoms) is False

    def test_clear_self_care_needs_no_assistance(self, engine, gate):
        symptoms = Symptoms(primary_complaint="annual wellness visit", severity=0)
        result = engine.assess_symptoms(symptoms)
        assert result.score == 20
        assert gate.needs_assistance(result, symptoms) is False

    @pytest.mark.parametrize("score, expected", [(39, False), (40, True), (50, True), (60, True), (61, False)])
    def test_uncertain_band_inclusive(self, gate, score, expected):
        symptoms = Symptoms(primary_complaint="rash")
        assert ("uncertain_score" in gate.reasons(_result(score), symptoms)) is expected

    def test_default_result_is_uncertain(self, engine, gate):
        symptoms = Symptoms(primary_complaint="blurred vision", severity=2)
        assert gate.reasons(engine.assess_symptoms(symptoms), symptoms) == ["uncertain_score"]

    def test_conflicting_tiers(self, gate):
        result = _result(80, UrgencyLevel.URGENT, ["URGENT_HIGH_FEVER", "ROUTINE_MILD_FEVER"])
        assert "conflicting_rules" in gate.reasons(result, Symptoms(primary_complaint="fever"))

    def test_same_tier_rules_not_conflicting(self, gate):
        result = _result(82, UrgencyLevel.URGENT, ["URGENT_HIGH_FEVER", "URGENT_INFECTION_SIGNS"])
        assert gate.reasons(result, Symptoms(primary_complaint="fever")) == []

    def test_complex_symptoms(self, gate):
        many = Symptoms(primary_complaint="rash", associated_symptoms=["a", "b", "c", "d"])
        three = Symptoms(primary_complaint="rash", associated_symptoms=["a", "b", "c"])
        assert gate.reasons(_result(80, UrgencyLevel.URGENT), many) == ["complex_symptoms"]
        assert gate.reasons(_result(80, UrgencyLevel.URGENT), three) == []

    @pytest.mark.parametrize("complaint, expected", [
        ("I'm just not feeling well", True),
        ("Feeling Sick since morning", True),
        ("always tired", True),
        ("something feels off", True),
        ("spilled coffee on my hand", False),
        ("sprained ankle", False),
    ])
    def test_vague_complaints(self, complaint, expected):
        assert is_vague_complaint(complaint) is expected

    @pytest.mark.parametrize("severity", [-5, 0, 3, 7, 9, 15])
    @pytest.mark.parametrize("complaint", [
        "crushing chest pain",
        "fever",
        "vomiting since yesterday",
        "cough and runny nose",
        "mild headache",
        "not feeling well",
    ])
    def test_decision_is_deterministic(self, engine, gate, complaint, severity):
        symptoms = Symptoms(
            primary_complaint=complaint,
            severity=severity,
            associated_symptoms=["chills", "fatigue", "dizziness", "nausea"],
        )
        result = engine.assess_symptoms(symptoms)
        first = gate.needs_assistance(result, symptoms)
        reasons = gate.reasons(result, symptoms)

        assert gate.needs_assistance(result, symptoms) is first
        assert AssistanceGate(engine.table).needs_assistance(result, symptoms) is first
        assert gate.reasons(result, symptoms) == reasons
        assert first is bool(reasons)


# =====================================================================
# Combiner
# =====================================================================


class TestCombine:
    def test_without_secondary_passes_through(self):
        assert combine(_result(95, UrgencyLevel.EMERGENCY), SecondaryAssessmentNotUsed()) == (
            UrgencyLevel.EMERGENCY, 95,
        )

    def test_blended_score(self):
        assert combine(_result(50), _secondary(0.9)) == (UrgencyLevel.ROUTINE, 62)
        assert combine(_result(80, UrgencyLevel.URGENT), _secondary(0.5)) == (UrgencyLevel.URGENT, 71)

    def test_tier_never_changes(self):
        urgency, _ = combine(_result(20, UrgencyLevel.SELF_CARE), _secondary(1.0, UrgencyLevel.EMERGENCY))
        assert urgency == UrgencyLevel.SELF_CARE

    def test_score_stays_in_range(self):
        assert combine(_result(100, UrgencyLevel.EMERGENCY), _secondary(1.0))[1] == 100
        assert combine(_result(0, UrgencyLevel.SELF_CARE), _secondary(0.0))[1] == 0

    @pytest.mark.parametrize("value, expected", [(2.5, 3), (3.5, 4), (2.49, 2), (0.0, 0)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected
