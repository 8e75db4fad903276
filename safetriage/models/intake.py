"""Intake record, turn payload and intake outcome models."""

from pydantic import Field, model_validator
from typing import Annotated, Literal, Optional, Union
from datetime import datetime, timezone
from safetriage.models.base import CamelModel
from safetriage.models.triage import SexAtBirth, Slot


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _ClinicalFields(CamelModel):
    """Structured clinical fields shared by records and turn payloads."""

    age_years: Optional[float] = Field(default=None, ge=0, le=120)
    severity: Optional[int] = Field(default=None, ge=1, le=10)
    duration_hours: Optional[float] = Field(default=None, ge=0, le=8760)
    sex_at_birth: Optional[SexAtBirth] = None
    pregnant: Optional[bool] = None

    @model_validator(mode="after")
    def _pregnancy_consistent_with_sex(self):
        if self.pregnant and self.sex_at_birth == SexAtBirth.MALE:
            raise ValueError("pregnant cannot be true when sexAtBirth is male")
        return self


class IntakeRecord(_ClinicalFields):
    """State of one triage conversation."""

    free_text: Optional[str] = None
    awaiting: Optional[Slot] = None
    skip_severity: bool = False
    skip_duration: bool = False
    skip_age: bool = False
    updated_at: datetime = Field(default_factory=utc_now)

    def is_skipped(self, slot: Slot) -> bool:
        if slot == Slot.SEVERITY:
            return self.skip_severity
        if slot == Slot.DURATION:
            return self.skip_duration
        if slot == Slot.AGE:
            return self.skip_age
        return False

    def is_populated(self, slot: Slot) -> bool:
        if slot == Slot.SYMPTOMS:
            return bool(self.free_text and self.free_text.strip())
        if slot == Slot.SEVERITY:
            return self.severity is not None
        if slot == Slot.DURATION:
            return self.duration_hours is not None
        return self.age_years is not None


class TurnPayload(_ClinicalFields):
    """One user turn: optional free text plus any explicitly supplied fields."""

    text: Optional[str] = Field(default=None, max_length=4000)
    skip_severity: Optional[bool] = None
    skip_duration: Optional[bool] = None
    skip_age: Optional[bool] = None

    def explicit_fields(self) -> dict:
        """Structured fields the caller actually set on this turn."""
        return self.model_dump(
            exclude_none=True,
            exclude={"text"},
        )


class PromptNeeded(CamelModel):
    """The turn halted: a slot still has to be answered."""

    kind: Literal["prompt"] = "prompt"
    awaiting: Slot
    prompt: str
    record: IntakeRecord


class IntakeComplete(CamelModel):
    """Every non-skipped slot is populated; ready for a decision."""

    kind: Literal["complete"] = "complete"
    record: IntakeRecord


IntakeOutcome = Annotated[
    Union[PromptNeeded, IntakeComplete], Field(discriminator="kind")
]
