"""Triage constants shared across the SDK.

Tier ordering, score bands and queue priorities are clinical policy and are
fixed.  Operational defaults that deployments may tune live in
:mod:`triage_core.config` instead.
"""

from triage_core.models.enums import UrgencyLevel

# Rank used to resolve the winning tier when several rules trigger.
URGENCY_ORDER: dict[UrgencyLevel, int] = {
    UrgencyLevel.EMERGENCY: 4,
    UrgencyLevel.URGENT: 3,
    UrgencyLevel.ROUTINE: 2,
    UrgencyLevel.SELF_CARE: 1,
}

# Inclusive lower bound, exclusive upper bound of the score band per tier.
# Emergency is closed at 100.
SCORE_BANDS: dict[UrgencyLevel, tuple[int, int]] = {
    UrgencyLevel.EMERGENCY: (90, 101),
    UrgencyLevel.URGENT: (70, 90),
    UrgencyLevel.ROUTINE: (30, 70),
    UrgencyLevel.SELF_CARE: (0, 30),
}

# Validation-queue priority derived solely from tier.
QUEUE_PRIORITY: dict[UrgencyLevel, int] = {
    UrgencyLevel.EMERGENCY: 100,
    UrgencyLevel.URGENT: 75,
    UrgencyLevel.ROUTINE: 50,
    UrgencyLevel.SELF_CARE: 25,
}

# Result returned when no clinical rule triggers.
DEFAULT_URGENCY = UrgencyLevel.ROUTINE
DEFAULT_SCORE = 50
DEFAULT_REASONING = (
    "No specific clinical rules triggered. "
    "Symptoms require routine medical evaluation."
)

# Rule-based results in this band are considered uncertain.
UNCERTAIN_SCORE_RANGE: tuple[int, int] = (40, 60)

# More associated symptoms than this makes a presentation "complex".
MAX_SIMPLE_ASSOCIATED_SYMPTOMS = 3

# Non-specific complaints that warrant a second opinion.
VAGUE_COMPLAINT_TERMS: list[str] = [
    "not feeling well",
    "feeling sick",
    "something wrong",
    "general discomfort",
    "tired",
    "weak",
    "unwell",
    "strange feeling",
]
# Short terms that must match as whole words ("off" but not "coffee").
VAGUE_COMPLAINT_WORDS: list[str] = ["off"]

# Blend weights for the final score when a secondary assessment was used.
RULE_SCORE_WEIGHT = 0.7
SECONDARY_CONFIDENCE_WEIGHT = 0.3

# Fallbacks when the secondary assessor's JSON cannot be used.
DEFAULT_SECONDARY_CONFIDENCE = 0.7
FALLBACK_REASONING_UNPARSEABLE = (
    "AI assessment completed but reasoning could not be extracted"
)
FALLBACK_REASONING_MISSING = (
    "AI assessment completed with additional clinical considerations"
)

# Supervisor identity stamped on automatic approvals.
SYSTEM_ESCALATION_SUPERVISOR = "system-escalation"
