"""Deterministic triage decision engine.

Rules run in a fixed priority order:

1. Red flags. Any match sets the emergency circuit breaker. That verdict is
   final; nothing after it (scoring, narrative augmentation) may change the
   action, tier or rationale.
2. Composite scoring. Severity is adjusted by age and pregnancy modifiers and
   the result is run through ``SCORING_BANDS`` top to bottom; the first band
   whose condition holds decides the tier.

The engine holds no mutable state, so one instance can serve concurrent calls.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple
from safetriage.config.settings import settings
from safetriage.models.intake import IntakeRecord
from safetriage.models.triage import SexAtBirth, SystemAction, UrgencyTier
from safetriage.models.verdict import TriageVerdict
from safetriage.utils.red_flags import (
    detect_red_flags,
    get_red_flag_description,
    normalize_text,
    phrase_pattern,
)
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringInputs:
    adjusted_severity: int
    duration_hours: float


@dataclass(frozen=True)
class Modifier:
    rule_id: str
    weight: int
    applies: Callable[[IntakeRecord], bool]


@dataclass(frozen=True)
class ScoringBand:
    rule_id: str
    tier: UrgencyTier
    applies: Callable[[ScoringInputs], bool]


MODIFIERS: Tuple[Modifier, ...] = (
    Modifier(
        "modifier.young_child",
        1,
        lambda r: r.age_years is not None and r.age_years < 5,
    ),
    Modifier(
        "modifier.older_adult",
        1,
        lambda r: r.age_years is not None and r.age_years >= 65,
    ),
    Modifier(
        "modifier.pregnancy",
        1,
        lambda r: r.pregnant is True and r.sex_at_birth != SexAtBirth.MALE,
    ),
)

# Highest urgency first. The last band always applies.
SCORING_BANDS: Tuple[ScoringBand, ...] = (
    ScoringBand(
        "band.urgent.high_severity",
        UrgencyTier.URGENT,
        lambda s: s.adjusted_severity >= 8,
    ),
    ScoringBand(
        "band.urgent.persistent_moderate",
        UrgencyTier.URGENT,
        lambda s: s.adjusted_severity >= 5 and s.duration_hours >= 72,
    ),
    ScoringBand(
        "band.routine.persistent",
        UrgencyTier.ROUTINE,
        lambda s: s.duration_hours >= 72,
    ),
    ScoringBand(
        "band.routine.self_care",
        UrgencyTier.ROUTINE,
        lambda s: True,
    ),
)

RECOMMENDED_ACTIONS = {
    UrgencyTier.EMERGENCY: (
        "Call your local emergency number or go to the nearest emergency "
        "department now. Do not drive yourself."
    ),
    UrgencyTier.URGENT: (
        "Seek same-day clinical evaluation at an urgent care clinic or hospital. "
        "If breathing difficulty, chest pain or confusion develops, call emergency services."
    ),
    UrgencyTier.ROUTINE: (
        "Self-care and monitoring are reasonable for now. Book a visit with your "
        "doctor if symptoms persist, and seek care sooner if they worsen."
    ),
}

_ROUTINE_PERSISTENT_ACTION = (
    "Schedule a visit with your doctor within the next few days and keep "
    "track of your symptoms."
)

# Symptom keywords -> common explanations, shown on non-emergency verdicts only
POSSIBLE_CAUSES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    (("cough", "fever"), ("Viral respiratory infection", "Seasonal allergies", "Bronchitis")),
    (("headache",), ("Tension headache", "Dehydration", "Migraine")),
    (("nausea", "vomiting", "diarrhea"), ("Gastroenteritis", "Food intolerance", "Medication side effects")),
    (("rash",), ("Contact dermatitis", "Allergic reaction", "Viral rash")),
    (("fatigue", "tired"), ("Sleep disruption", "Stress", "Viral illness")),
    (("fever",), ("Viral infection", "Bacterial infection", "Inflammatory response")),
    (("sore throat",), ("Viral pharyngitis", "Strep throat", "Postnasal drip")),
    (("abdominal pain", "stomach pain"), ("Gastritis", "Gallbladder irritation", "Appendicitis")),
)
MAX_POSSIBLE_CAUSES = 3

_CAUSE_PATTERNS = tuple(
    (tuple(phrase_pattern(k) for k in keywords), causes)
    for keywords, causes in POSSIBLE_CAUSES
)


def suggest_possible_causes(text: Optional[str]) -> Tuple[str, ...]:
    """Up to ``MAX_POSSIBLE_CAUSES`` explanations for the described symptoms."""
    normalized = normalize_text(text or "")
    matched: List[str] = []
    for patterns, causes in _CAUSE_PATTERNS:
        if any(p.search(normalized) for p in patterns):
            matched.extend(c for c in causes if c not in matched)
    return tuple(matched[:MAX_POSSIBLE_CAUSES])


class DecisionEngine:
    """Turns a completed intake record into a ``TriageVerdict``."""

    def __init__(self, extra_red_flag_phrases: Iterable[str] = ()):
        self._extra_patterns = tuple(
            phrase_pattern(p) for p in extra_red_flag_phrases if p.strip()
        )

    def decide(self, record: IntakeRecord) -> TriageVerdict:
        red_flags = detect_red_flags(
            record.free_text,
            severity=record.severity,
            duration_hours=record.duration_hours,
            age_years=record.age_years,
            extra_patterns=self._extra_patterns,
        )
        if red_flags:
            logger.warning(f"Red flags matched, circuit breaker set: {red_flags}")
            return self._emergency_verdict(red_flags)

        return self._scored_verdict(record)

    def _emergency_verdict(self, red_flags: List[str]) -> TriageVerdict:
        descriptions = []
        for rule_id in red_flags:
            description = get_red_flag_description(rule_id)
            if description not in descriptions:
                descriptions.append(description)
        return TriageVerdict(
            system_action=SystemAction.EMERGENCY_CIRCUIT_BREAKER,
            urgency_tier=UrgencyTier.EMERGENCY,
            rationale=tuple(red_flags),
            summary=(
                "Reported symptoms match emergency warning signs ("
                + "; ".join(descriptions)
                + ") that need immediate evaluation."
            ),
            recommended_action=RECOMMENDED_ACTIONS[UrgencyTier.EMERGENCY],
        )

    def _scored_verdict(self, record: IntakeRecord) -> TriageVerdict:
        applied = [m for m in MODIFIERS if m.applies(record)]
        base = record.severity or 0
        inputs = ScoringInputs(
            adjusted_severity=min(10, base + sum(m.weight for m in applied)),
            duration_hours=record.duration_hours or 0,
        )
        band = next(b for b in SCORING_BANDS if b.applies(inputs))
        rationale = tuple(m.rule_id for m in applied) + (band.rule_id,)

        logger.info(
            f"Scored triage: tier={band.tier.value} band={band.rule_id} "
            f"adjusted_severity={inputs.adjusted_severity}"
        )
        return TriageVerdict(
            system_action=SystemAction.NORMAL,
            urgency_tier=band.tier,
            rationale=rationale,
            summary=_summary_for(band, inputs),
            possible_causes=suggest_possible_causes(record.free_text),
            recommended_action=(
                _ROUTINE_PERSISTENT_ACTION
                if band.rule_id == "band.routine.persistent"
                else RECOMMENDED_ACTIONS[band.tier]
            ),
        )


def _summary_for(band: ScoringBand, inputs: ScoringInputs) -> str:
    if band.rule_id == "band.urgent.high_severity":
        return (
            f"Symptoms are intense (adjusted severity {inputs.adjusted_severity}/10) "
            "and may benefit from same-day evaluation."
        )
    if band.rule_id == "band.urgent.persistent_moderate":
        return (
            "Moderate symptoms have lasted three days or more; same-day "
            "evaluation is recommended."
        )
    if band.rule_id == "band.routine.persistent":
        return (
            "Symptoms are persistent but not clearly urgent; a clinician visit "
            "is recommended."
        )
    return (
        "No emergency warning signs were reported and symptoms appear mild; "
        "monitor for changes."
    )


# Global engine instance
_decision_engine: Optional[DecisionEngine] = None


def get_decision_engine() -> DecisionEngine:
    """Get or create DecisionEngine instance."""
    global _decision_engine
    if _decision_engine is None:
        _decision_engine = DecisionEngine(settings.extra_red_flag_phrases)
    return _decision_engine
