"""Prescription screening request and report models."""

from pydantic import Field, model_validator
from typing import List, Optional
from safetriage.models.base import CamelModel
from safetriage.models.triage import FindingKind, InteractionSeverity, OverallRisk


class PrescriptionRequest(CamelModel):
    """Current medications, an optional new prescription and patient flags."""

    current_meds: List[str] = Field(default_factory=list, max_length=50)
    new_prescription: Optional[str] = Field(default=None, max_length=200)
    pregnant: bool = False

    @model_validator(mode="after")
    def _has_medication(self):
        names = [m for m in self.current_meds if m and m.strip()]
        if not names and not (self.new_prescription and self.new_prescription.strip()):
            raise ValueError("at least one medication is required")
        return self


class InteractionFinding(CamelModel):
    """One drug-drug or drug-condition finding.

    ``drug_b`` holds the second drug, or the condition (e.g. ``pregnancy``).
    """

    drug_a: str
    drug_b: str
    severity: InteractionSeverity
    kind: FindingKind = FindingKind.INTERACTION
    rationale: str
    management: str = ""


class PrescriptionReport(CamelModel):
    findings: List[InteractionFinding] = Field(default_factory=list)
    overall_risk: OverallRisk = OverallRisk.NONE
    normalized: List[str] = Field(default_factory=list)
    unrecognized: List[str] = Field(default_factory=list)
