"""Triage classification enums."""

from enum import Enum


class Slot(str, Enum):
    """Mandatory intake slots, in the order they are requested."""

    SYMPTOMS = "symptoms"
    SEVERITY = "severity"
    DURATION = "duration"
    AGE = "age"


SLOT_ORDER = (Slot.SYMPTOMS, Slot.SEVERITY, Slot.DURATION, Slot.AGE)


class IntakeStage(str, Enum):
    """Explicit state of an intake conversation."""

    AWAITING_SYMPTOMS = "awaiting_symptoms"
    AWAITING_SEVERITY = "awaiting_severity"
    AWAITING_DURATION = "awaiting_duration"
    AWAITING_AGE = "awaiting_age"
    COMPLETE = "complete"

    @classmethod
    def awaiting(cls, slot: Slot) -> "IntakeStage":
        return _STAGE_FOR_SLOT[slot]

    @property
    def slot(self):
        """The slot this stage waits on, or None when complete."""
        return _SLOT_FOR_STAGE.get(self)


_STAGE_FOR_SLOT = {
    Slot.SYMPTOMS: IntakeStage.AWAITING_SYMPTOMS,
    Slot.SEVERITY: IntakeStage.AWAITING_SEVERITY,
    Slot.DURATION: IntakeStage.AWAITING_DURATION,
    Slot.AGE: IntakeStage.AWAITING_AGE,
}
_SLOT_FOR_STAGE = {stage: slot for slot, stage in _STAGE_FOR_SLOT.items()}


class SexAtBirth(str, Enum):
    FEMALE = "female"
    MALE = "male"
    INTERSEX = "intersex"
    UNKNOWN = "unknown"


class SystemAction(str, Enum):
    """What the system does with a verdict."""

    NORMAL = "normal"
    EMERGENCY_CIRCUIT_BREAKER = "emergency_circuit_breaker"


class UrgencyTier(str, Enum):
    """Triage urgency levels."""

    ROUTINE = "routine"  # Self-care or scheduled primary care
    URGENT = "urgent"  # Same-day clinical evaluation
    EMERGENCY = "emergency"  # Emergency services now


class InteractionSeverity(str, Enum):
    """Severity of a medication finding, lowest first."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CONTRAINDICATED = "contraindicated"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    InteractionSeverity.MINOR: 1,
    InteractionSeverity.MODERATE: 2,
    InteractionSeverity.MAJOR: 3,
    InteractionSeverity.CONTRAINDICATED: 4,
}


class OverallRisk(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CONTRAINDICATED = "contraindicated"


class FindingKind(str, Enum):
    INTERACTION = "interaction"
    DUPLICATION = "duplication"
    PREGNANCY = "pregnancy"


class ValueFlag(str, Enum):
    """Classification of an extracted lab value against its reference range."""

    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"
    UNPARSEABLE_SKIP = "unparseable-skip"
