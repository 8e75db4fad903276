"""Triage verdict model and the emergency finality guard."""

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Tuple
from safetriage.models.base import CamelModel
from safetriage.models.intake import IntakeRecord
from safetriage.models.triage import SexAtBirth, SystemAction, UrgencyTier


class SafetyInvariantViolation(AssertionError):
    """Something tried to downgrade an emergency circuit-breaker verdict."""


class TriageVerdict(CamelModel):
    """Deterministic triage decision.

    ``narrative`` is optional prose and is never authoritative.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    system_action: SystemAction
    urgency_tier: UrgencyTier
    rationale: Tuple[str, ...] = ()
    summary: str = ""
    recommended_action: str = ""
    possible_causes: Tuple[str, ...] = ()
    narrative: Optional[str] = None

    @model_validator(mode="after")
    def _breaker_is_emergency(self):
        if (
            self.system_action == SystemAction.EMERGENCY_CIRCUIT_BREAKER
            and self.urgency_tier != UrgencyTier.EMERGENCY
        ):
            raise ValueError("circuit breaker verdicts must carry the emergency tier")
        if self.is_circuit_breaker and self.possible_causes:
            raise ValueError("circuit breaker verdicts carry no possible causes")
        return self

    @property
    def is_circuit_breaker(self) -> bool:
        return self.system_action == SystemAction.EMERGENCY_CIRCUIT_BREAKER

    def with_narrative(self, narrative: str) -> "TriageVerdict":
        """Copy of this verdict with prose attached; nothing else changes."""
        return self.model_copy(update={"narrative": narrative})


def ensure_not_downgraded(original: TriageVerdict, candidate: TriageVerdict) -> TriageVerdict:
    """Return ``candidate`` unless it alters a circuit-breaker verdict.

    Raises:
        SafetyInvariantViolation: if ``original`` is a circuit breaker and
            ``candidate`` differs in anything but its narrative.
    """
    if original.is_circuit_breaker:
        if (
            candidate.system_action != original.system_action
            or candidate.urgency_tier != original.urgency_tier
            or candidate.rationale != original.rationale
            or candidate.possible_causes != original.possible_causes
        ):
            raise SafetyInvariantViolation(
                "emergency circuit breaker verdict cannot be changed"
            )
    return candidate


class DecisionRequest(CamelModel):
    """One-shot decision input."""

    text: str = Field(..., min_length=1, max_length=4000)
    age_years: Optional[float] = Field(default=None, ge=0, le=120)
    severity: Optional[int] = Field(default=None, ge=1, le=10)
    duration_hours: Optional[float] = Field(default=None, ge=0, le=8760)
    sex_at_birth: Optional[SexAtBirth] = None
    pregnant: Optional[bool] = None

    def to_record(self) -> IntakeRecord:
        return IntakeRecord(
            free_text=self.text,
            age_years=self.age_years,
            severity=self.severity,
            duration_hours=self.duration_hours,
            sex_at_birth=self.sex_at_birth,
            pregnant=self.pregnant,
        )
